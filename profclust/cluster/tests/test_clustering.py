#!/usr/bin/env python

"""Unittests of the greedy clustering engine.

The in-process ungapped oracle is used throughout, so no external
programs are needed.

- every accepted sequence lands in exactly one cluster
- the representative of a cluster is its first member
- results are identical across runs
- the traversal order changes the clusters of overlapping fragments
- duplicate ids raise or are skipped by policy
- seeds found the first clusters
- classify does not change the engine state
- the file sink writes one fasta and id list per cluster
- a bucket clustered on an engine reports its events on stdout
"""

import io
import random
import contextlib
import tempfile
import unittest
from pathlib import Path
from profclust.core.sequence import Sequence
from profclust.core.exceptions import ConfigurationError, DuplicateIdError
from profclust.oracle import UngappedOracle, SimilarityResult
from profclust.seqio import read_fasta
from profclust.cluster import (
    ClusteringEngine, ClusterConfig, ClusterFileSink, ClusterSink, SinkGroup,
    DivergentMembers, RepresentativeOnly, traverse, get_traversal,
)
from profclust.cluster.sinks import REPRESENTATIVES
from profclust.cluster.cluster_step import (
    bucket_by_length, bucket_names, cluster_bucket, remove_duplicates,
)

AMINO = "ACDEFGHIKLMNPQRSTVWY"


def random_protein(rng: random.Random, length: int) -> str:
    return "".join(rng.choice(AMINO) for _ in range(length))


def mutate(rng: random.Random, residues: str, nsites: int) -> str:
    """Return residues with nsites positions changed to another residue."""
    residues = list(residues)
    for pos in rng.sample(range(len(residues)), nsites):
        residues[pos] = rng.choice([i for i in AMINO if i != residues[pos]])
    return "".join(residues)


def family_data(seed: int = 7):
    """Return three families of four 100-residue members each, shuffled."""
    rng = random.Random(seed)
    seqs = []
    for fam in range(3):
        base = random_protein(rng, 100)
        seqs.append(Sequence(f"f{fam}_0", "", base))
        for idx in range(1, 4):
            seqs.append(Sequence(f"f{fam}_{idx}", "", mutate(rng, base, 3)))
    rng.shuffle(seqs)
    return seqs


class RecordingSink(ClusterSink):
    def __init__(self):
        self.assignments = []
        self.skipped = []
        self.finished = None

    def on_assignment(self, assignment):
        self.assignments.append(assignment)

    def on_skip(self, sequence, reason):
        self.skipped.append((sequence.id, reason))

    def on_finish(self, clusters):
        self.finished = clusters


class TestClusteringEngine(unittest.TestCase):

    def setUp(self):
        self.oracle = UngappedOracle()
        self.seqs = family_data()
        self.config = ClusterConfig(threshold=0.9, min_coverage=0.8)

    def test_partition_of_families(self):
        engine = ClusteringEngine(self.oracle, self.config)
        clusters = engine.run(self.seqs)
        self.assertEqual(len(clusters), 3)

        ids = [i for clust in clusters for i in clust.ids]
        self.assertEqual(sorted(ids), sorted(i.id for i in self.seqs))
        for clust in clusters:
            self.assertIs(clust.members[0], clust.representative)
            self.assertEqual(len({i.split("_")[0] for i in clust.ids}), 1)

        self.assertEqual(engine.stats.nclustered, 12)
        self.assertEqual(engine.stats.nclusters, 3)
        self.assertEqual(engine.stats.npool, 3)
        # the first sequence needs no comparison
        self.assertEqual(engine.stats.noracle_calls, 11)

    def test_deterministic(self):
        first = ClusteringEngine(self.oracle, self.config).run(self.seqs)
        second = ClusteringEngine(self.oracle, self.config).run(self.seqs)
        self.assertEqual([i.ids for i in first], [i.ids for i in second])

    def test_events_reach_the_sink(self):
        sink = RecordingSink()
        clusters = ClusteringEngine(self.oracle, self.config).run(self.seqs, sink)
        self.assertEqual(len(sink.assignments), 12)
        self.assertEqual(sum(i.is_new for i in sink.assignments), 3)
        self.assertEqual(sink.finished, clusters)
        joined = [i for i in sink.assignments if not i.is_new]
        self.assertTrue(all(isinstance(i.result, SimilarityResult) for i in joined))

    def test_threshold_of_one_gives_singletons(self):
        config = ClusterConfig(threshold=1.0, min_coverage=0.8)
        clusters = ClusteringEngine(self.oracle, config).run(self.seqs)
        self.assertEqual(len(clusters), 12)

    def test_size_order_is_stable(self):
        seqs = [
            Sequence("a", "", random_protein(random.Random(1), 50)),
            Sequence("b", "", random_protein(random.Random(2), 50)),
        ]
        seqs.append(Sequence("b2", "", seqs[1].residues))
        config = ClusterConfig(threshold=0.9, traversal="input", cluster_order="size")
        clusters = ClusteringEngine(self.oracle, config).run(seqs)
        self.assertEqual([i.ids for i in clusters], [["b", "b2"], ["a"]])
        self.assertEqual([i.index for i in clusters], [1, 0])

    def test_classify_leaves_state_unchanged(self):
        engine = ClusteringEngine(self.oracle, self.config)
        engine.run(self.seqs[:6])
        nclusters, npool = len(engine.clusters), len(engine.pool)
        sizes = [len(i) for i in engine.clusters]
        probe = Sequence("probe", "", self.seqs[0].residues)
        assignment = engine.classify(probe)
        self.assertFalse(assignment.is_new)
        self.assertEqual(len(engine.clusters), nclusters)
        self.assertEqual(len(engine.pool), npool)
        self.assertEqual([len(i) for i in engine.clusters], sizes)

    def test_empty_input(self):
        engine = ClusteringEngine(self.oracle, self.config)
        self.assertEqual(engine.run([]), [])
        self.assertEqual(engine.stats.noracle_calls, 0)


class TestTraversal(unittest.TestCase):
    """Two overlapping fragments of one sequence and the sequence."""

    def setUp(self):
        whole = random_protein(random.Random(42), 100)
        self.frag1 = Sequence("frag1", "", whole[0:60])
        self.frag2 = Sequence("frag2", "", whole[40:100])
        self.whole = Sequence("whole", "", whole)
        self.seqs = [self.frag1, self.frag2, self.whole]

    def _config(self, traversal):
        return ClusterConfig(threshold=0.9, min_coverage=0.6, traversal=traversal)

    def test_input_order(self):
        clusters = ClusteringEngine(UngappedOracle(), self._config("input")).run(self.seqs)
        self.assertEqual([i.ids for i in clusters], [["frag1", "whole"], ["frag2"]])

    def test_length_order(self):
        clusters = ClusteringEngine(UngappedOracle(), self._config("length")).run(self.seqs)
        self.assertEqual([i.ids for i in clusters], [["whole", "frag1", "frag2"]])

    def test_max_offset(self):
        config = ClusterConfig(threshold=0.9, min_coverage=0.3, max_offset=0.5, traversal="input")
        clusters = ClusteringEngine(UngappedOracle(), config).run([self.frag1, self.frag2])
        self.assertEqual(len(clusters), 2)
        config = ClusterConfig(threshold=0.9, min_coverage=0.3, traversal="input")
        clusters = ClusteringEngine(UngappedOracle(), config).run([self.frag1, self.frag2])
        self.assertEqual(len(clusters), 1)

    def test_orders(self):
        seqs = [Sequence(str(i), "", "A" * i) for i in (3, 5, 1, 4, 2)]
        self.assertEqual([i.id for i in traverse(seqs, "input")], ["3", "5", "1", "4", "2"])
        self.assertEqual([i.id for i in traverse(seqs, "length")], ["5", "4", "3", "2", "1"])
        self.assertEqual([i.id for i in traverse(seqs, "median")], ["3", "4", "2", "5", "1"])
        self.assertEqual(traverse([], "median"), [])
        with self.assertRaises(ConfigurationError):
            get_traversal("random")


class TestPolicies(unittest.TestCase):

    def setUp(self):
        rng = random.Random(3)
        self.seq = Sequence("a", "", random_protein(rng, 80))
        self.other = Sequence("b", "", random_protein(rng, 80))

    def test_strict_duplicates(self):
        engine = ClusteringEngine(UngappedOracle(), ClusterConfig())
        with self.assertRaises(DuplicateIdError):
            engine.run([self.seq, self.other, self.seq])
        # nothing was classified
        self.assertEqual(engine.clusters, [])

    def test_skip_duplicates_and_malformed(self):
        sink = RecordingSink()
        engine = ClusteringEngine(UngappedOracle(), ClusterConfig(duplicate_policy="skip"))
        clusters = engine.run([self.seq, Sequence("c", "", "---"), self.seq, self.other], sink)
        self.assertEqual(len(clusters), 2)
        self.assertEqual(engine.stats.nduplicates, 1)
        self.assertEqual(engine.stats.nmalformed, 1)
        self.assertEqual(engine.stats.nsequences, 4)
        self.assertEqual(sink.skipped, [("c", "malformed"), ("a", "duplicate")])

    def test_seeds(self):
        seed = Sequence("seed", "", self.seq.residues)
        engine = ClusteringEngine(UngappedOracle(), ClusterConfig(), seeds=[seed])
        clusters = engine.run([self.other, self.seq])
        self.assertEqual(engine.stats.nseeds, 1)
        self.assertEqual(clusters[0].representative.id, "seed")
        self.assertEqual(clusters[0].ids, ["seed", "a"])
        with self.assertRaises(DuplicateIdError):
            ClusteringEngine(UngappedOracle(), ClusterConfig(), seeds=[seed, seed])

    def test_config_errors(self):
        for kwargs in (
            {"threshold": 0},
            {"threshold": 1.5},
            {"measure": "evalue"},
            {"min_coverage": 2},
            {"max_offset": -0.1},
            {"traversal": "random"},
            {"duplicate_policy": "merge"},
            {"cluster_order": "name"},
        ):
            with self.assertRaises(ConfigurationError):
                ClusterConfig(**kwargs)

    def test_divergent_members(self):
        policy = DivergentMembers(max_per_cluster=1, max_similarity=0.95)
        close = SimilarityResult("q", "s", 10, 10, 20., 1e-5, 10, 10, 10, 1, 10, 1, 10)
        far = SimilarityResult("q", "s", 10, 10, 20., 1e-5, 10, 9, 10, 1, 10, 1, 10)
        self.assertFalse(policy.admit(self.seq, close, "identity", 0))
        self.assertTrue(policy.admit(self.seq, far, "identity", 0))
        self.assertFalse(policy.admit(self.seq, far, "identity", 1))
        self.assertFalse(RepresentativeOnly().admit(self.seq, far, "identity", 0))
        with self.assertRaises(ConfigurationError):
            DivergentMembers(max_per_cluster=-1)

    def test_multi_representative_pool(self):
        base = self.seq.residues
        rng = random.Random(11)
        seqs = [Sequence("a0", "", base)] + [
            Sequence(f"a{i}", "", mutate(rng, base, 6)) for i in range(1, 5)
        ]
        config = ClusterConfig(
            threshold=0.8, traversal="input",
            diversity=DivergentMembers(max_per_cluster=2, max_similarity=0.99))
        engine = ClusteringEngine(UngappedOracle(), config)
        clusters = engine.run(seqs)
        self.assertEqual(len(clusters), 1)
        self.assertEqual(len(engine.pool), 3)
        self.assertEqual(engine.pool.clusters, [0, 0, 0])


class TestSinksAndBuckets(unittest.TestCase):

    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory(prefix="profclust-tests-")
        self.addCleanup(tmpdir.cleanup)
        self.tmpdir = Path(tmpdir.name)

    def test_file_sink(self):
        seqs = family_data()
        outdir = self.tmpdir / "size_0-max"
        sink = SinkGroup([RecordingSink(), ClusterFileSink(outdir)])
        config = ClusterConfig(threshold=0.9, cluster_order="size")
        clusters = ClusteringEngine(UngappedOracle(), config).run(seqs, sink)

        reps = read_fasta(outdir / REPRESENTATIVES)
        self.assertEqual([i.id for i in reps], [i.representative.id for i in clusters])
        first = read_fasta(outdir / "clust_00000.fasta")
        self.assertEqual([i.id for i in first], clusters[0].ids)
        rows = (outdir / "clust_00002.ids.tsv").read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(rows), len(clusters[2]))
        self.assertEqual(rows[0].split("\t")[:2], [clusters[2].ids[0]] * 2)
        self.assertFalse((outdir / "clust_00003.fasta").exists())

    def test_remote_bucket_reports_on_stdout(self):
        seqs = family_data()
        outdir = self.tmpdir / "size_0-max"
        stdout = io.StringIO()
        with contextlib.redirect_stdout(stdout):
            stats = cluster_bucket(
                "size_0-max", seqs, [], ClusterConfig(threshold=0.9),
                "ungapped", "blastp", outdir, remote=True)
        lines = stdout.getvalue().split("@@")[1:]
        self.assertTrue(all(i.startswith("DEBUG: ") for i in lines))
        events = [i for i in lines if "founds cluster" in i or "joins cluster" in i]
        self.assertEqual(len(events), len(seqs))
        self.assertIn(f"into {stats['nclusters']} clusters", lines[-1])
        self.assertTrue((outdir / REPRESENTATIVES).exists())

    def test_bucket_names(self):
        self.assertEqual(
            [i[0] for i in bucket_names([200, 100])],
            ["size_0-99", "size_100-199", "size_200-max"])
        self.assertEqual(bucket_names([]), [("size_0-max", 0, None)])

    def test_bucket_by_length(self):
        seqs = [Sequence(str(i), "", "M" * i) for i in (50, 100, 150, 250, 99)]
        buckets = bucket_by_length(seqs, [100, 200, 300])
        self.assertEqual(list(buckets), ["size_0-99", "size_100-199", "size_200-299"])
        self.assertEqual([i.id for i in buckets["size_0-99"]], ["50", "99"])
        self.assertEqual([i.id for i in buckets["size_100-199"]], ["100", "150"])

    def test_remove_duplicates(self):
        seqs = [Sequence("a", "", "M"), Sequence("b", "", "K"), Sequence("a", "", "L")]
        unique, ndups = remove_duplicates(seqs, "skip")
        self.assertEqual([i.residues for i in unique], ["M", "K"])
        self.assertEqual(ndups, 1)
        with self.assertRaises(DuplicateIdError):
            remove_duplicates(seqs, "strict")


if __name__ == "__main__":
    unittest.main()
