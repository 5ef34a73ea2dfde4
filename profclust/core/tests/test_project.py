#!/usr/bin/env python

"""Unittests of Project objects and the two pipeline steps.

The steps are run with the ungapped oracle and without an ipcluster.
All input sequences are unrelated, so every cluster is a singleton
and step 2 needs neither muscle nor BLAST+.

- save to JSON and reload
- branch to a new name
- run step 1 and check the bucket dirs and stats
- run step 2 and check the profile files and stats
- re-running skips finished work unless forced
"""

import random
import tempfile
import unittest
from pathlib import Path
import profclust as pc
from profclust.core.exceptions import ConfigurationError
from profclust.seqio import write_fasta, read_fasta
from profclust.core.sequence import Sequence
from profclust.purify import read_report, IN_PROFILE

AMINO = "ACDEFGHIKLMNPQRSTVWY"


def random_protein(rng: random.Random, length: int) -> str:
    return "".join(rng.choice(AMINO) for _ in range(length))


class TestProject(unittest.TestCase):

    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory(prefix="profclust-tests-")
        self.addCleanup(tmpdir.cleanup)
        self.tmpdir = Path(tmpdir.name)

        rng = random.Random(17)
        seqs = [
            Sequence(f"p{idx}", "protein", random_protein(rng, length))
            for idx, length in enumerate((80, 90, 120, 130))
        ]
        self.fasta = write_fasta(seqs, self.tmpdir / "data" / "seqs.fasta")

        self.proj = pc.Project("TEST")
        self.proj.params.project_dir = self.tmpdir / "out"
        self.proj.params.fasta_paths = self.fasta
        self.proj.params.size_bins = [100]
        self.proj.params.oracle = "ungapped"

    def test_save_and_load(self):
        self.proj.params.clust_threshold = 0.9
        self.proj.save_json()
        self.assertTrue(self.proj.json_file.exists())
        back = pc.load_json(self.proj.json_file)
        self.assertEqual(back.name, "TEST")
        self.assertEqual(back.params.clust_threshold, 0.9)
        self.assertEqual(back.params.fasta_paths, [self.fasta.resolve()])
        with self.assertRaises(ConfigurationError):
            pc.load_json(self.tmpdir / "missing.json")

    def test_branch(self):
        branch = self.proj.branch("TEST2")
        self.assertEqual(branch.name, "TEST2")
        self.assertEqual(branch.params.size_bins, [100])
        branch.params.size_bins = [50]
        self.assertEqual(self.proj.params.size_bins, [100])

    def test_bad_steps(self):
        with self.assertRaises(ConfigurationError):
            self.proj.run("3", parallel=False)
        with self.assertRaises(ConfigurationError):
            self.proj.run("", parallel=False)

    def test_step2_requires_step1(self):
        with self.assertRaises(ConfigurationError):
            self.proj.run("2", parallel=False, quiet=True)

    def test_run_steps(self):
        self.proj.run("12", cores=1, parallel=False, quiet=True)

        # step 1
        clustdir = self.tmpdir / "out" / "TEST_clusters"
        self.assertEqual(
            sorted(i.name for i in clustdir.iterdir() if i.is_dir()),
            ["size_0-99", "size_100-max"])
        stats = self.proj.cluster_stats["size_100-max"]
        self.assertEqual(stats.nclustered, 2)
        self.assertEqual(stats.nclusters, 2)
        self.assertEqual(stats.nsingletons, 2)
        reps = read_fasta(clustdir / "size_0-99" / "representatives.fasta")
        self.assertEqual(sorted(i.id for i in reps), ["p0", "p1"])
        self.assertTrue(self.proj.stats_files.s1.exists())

        # step 2
        profdir = self.tmpdir / "out" / "TEST_profiles" / "size_0-99"
        self.assertEqual(len(self.proj.profile_stats), 4)
        for key, pstats in self.proj.profile_stats.items():
            self.assertEqual(pstats.status, 0, msg=key)
            self.assertEqual(pstats.nin_profile, 1)
        report = read_report(profdir / "clust_00000.report.tsv")
        self.assertEqual(list(report["status"]), [IN_PROFILE])
        self.assertTrue((profdir / "clust_00000.purified.fasta").exists())
        self.assertTrue((profdir / "clust_00000.align.txt").exists())
        self.assertFalse((profdir / "clust_00000.smp").exists())

        summary = self.proj.stats
        self.assertEqual(list(summary.index), ["size_0-99", "size_100-max"])
        self.assertEqual(summary.loc["size_0-99", "profiles"], 2)

        # stats were saved and reload
        back = pc.load_json(self.proj.json_file)
        self.assertEqual(len(back.profile_stats), 4)
        self.assertEqual(back.cluster_stats["size_0-99"].nclusters, 2)

        # a re-run skips finished work, a forced re-run redoes it
        rep_file = clustdir / "size_0-99" / "representatives.fasta"
        mtime = rep_file.stat().st_mtime_ns
        back.run("12", cores=1, parallel=False, quiet=True)
        self.assertEqual(rep_file.stat().st_mtime_ns, mtime)
        self.assertEqual(len(back.profile_stats), 4)
        back.run("1", cores=1, parallel=False, quiet=True, force=True)
        self.assertTrue(rep_file.exists())
        self.assertEqual(back.cluster_stats["size_0-99"].nclusters, 2)


if __name__ == "__main__":
    unittest.main()
