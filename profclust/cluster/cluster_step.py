#!/usr/bin/env python

"""Step 1: cluster input sequences within size buckets.

Sequences are read from all fasta_paths and split into buckets by
ungapped length at the size_bins boundaries. Each bucket is clustered
by its own ClusteringEngine, as an independent job on the ipcluster,
and writes its clusters to `<project>_clusters/<bucket>/`. A bucket
whose representatives.fasta already exists is skipped unless forced.
"""

from typing import Dict, List, Optional, Tuple
import shutil
from pathlib import Path
from loguru import logger
import pandas as pd
from profclust.core.base_step import BaseStep
from profclust.core.progress import track_remote_jobs
from profclust.core.sequence import Sequence
from profclust.core.exceptions import ConfigurationError, DuplicateIdError
from profclust.seqio.fasta import FastaReader
from profclust.oracle import get_oracle, OracleOptions
from profclust.schema import BucketStats
from profclust.cluster.engine import ClusterConfig, ClusteringEngine
from profclust.cluster.diversity import RepresentativeOnly, DivergentMembers
from profclust.cluster.sinks import LogSink, ClusterFileSink, SinkGroup, REPRESENTATIVES

logger = logger.bind(name="profclust")


def expand_paths(paths: List[Path]) -> List[Path]:
    """Return the sorted files matched by each path or glob."""
    files = []
    for path in paths:
        path = Path(path)
        matched = sorted(path.parent.glob(path.name))
        if not matched:
            raise ConfigurationError(f"no files match the path: {path}")
        files.extend(matched)
    return files


def load_sequences(paths: List[Path]) -> Tuple[List[Sequence], int]:
    """Return ungapped Sequences of all files and the malformed count."""
    seqs = []
    nskipped = 0
    for path in expand_paths(paths):
        reader = FastaReader(path, keep_gaps=False)
        seqs.extend(reader)
        nskipped += reader.nskipped
        logger.debug(f"read {reader.nread} sequences from {path}")
    return seqs, nskipped


def remove_duplicates(seqs: List[Sequence], policy: str) -> Tuple[List[Sequence], int]:
    """Return first occurrences and the number of dropped repeats."""
    seen = set()
    unique = []
    for seq in seqs:
        if seq.id in seen:
            if policy == "strict":
                raise DuplicateIdError(f"duplicate sequence id '{seq.id}'")
            continue
        seen.add(seq.id)
        unique.append(seq)
    return unique, len(seqs) - len(unique)


def bucket_names(size_bins: List[int]) -> List[Tuple[str, int, Optional[int]]]:
    """Return (name, min length, max length or None) for each bucket."""
    edges = [0] + sorted(size_bins)
    buckets = []
    for idx, low in enumerate(edges):
        high = edges[idx + 1] - 1 if idx + 1 < len(edges) else None
        name = f"size_{low}-{high}" if high is not None else f"size_{low}-max"
        buckets.append((name, low, high))
    return buckets


def bucket_by_length(seqs: List[Sequence], size_bins: List[int]) -> Dict[str, List[Sequence]]:
    """Return {bucket name: sequences in input order}, non-empty only.

    >>> bucket_by_length(seqs, [100, 200])
    {'size_0-99': [...], 'size_100-199': [...], 'size_200-max': [...]}
    """
    buckets = bucket_names(size_bins)
    grouped = {i[0]: [] for i in buckets}
    for seq in seqs:
        length = len(seq.ungapped)
        for name, low, high in buckets:
            if length >= low and (high is None or length <= high):
                grouped[name].append(seq)
                break
    return {i: j for i, j in grouped.items() if j}


def cluster_bucket(
    bucket: str,
    seqs: List[Sequence],
    seeds: List[Sequence],
    config: ClusterConfig,
    oracle_name: str,
    program: str,
    outdir: Path,
    remote: bool = False,
) -> Dict[str, int]:
    """Cluster one bucket and write its files.

    With remote=True this runs on an ipengine and reports by printing
    '@@LEVEL: message' lines.
    """
    oracle = get_oracle(oracle_name, program)
    engine = ClusteringEngine(oracle, config, seeds=seeds)
    sink = SinkGroup([LogSink(remote=remote), ClusterFileSink(outdir)])
    engine.run(seqs, sink)
    message = (
        f"{bucket} clustered {engine.stats.nclustered} sequences "
        f"into {engine.stats.nclusters} clusters")
    if remote:
        print(f"@@DEBUG: {message}", flush=True)
    else:
        logger.debug(message)
    return engine.stats.to_dict()


class ClusterStep(BaseStep):
    """Cluster sequences of each size bucket in parallel."""
    def __init__(self, data, force: bool = False, ipyclient=None, quiet: bool = False):
        super().__init__(data, step=1, force=force, quiet=quiet)
        self.ipyclient = ipyclient
        self.buckets: Dict[str, List[Sequence]] = {}
        self.seeds: Dict[str, List[Sequence]] = {}
        self._stats: Dict[str, Dict[str, int]] = {}
        self._nmalformed = 0
        self._nduplicates = 0

    def run(self) -> None:
        self._load_buckets()
        self._remote_cluster_buckets()
        self._write_json_file()
        self._write_stats_file()

    @property
    def config(self) -> ClusterConfig:
        """Return the engine settings built from the project params."""
        params = self.data.params
        if params.multi_representative:
            diversity = DivergentMembers(
                max_per_cluster=params.max_extra_representatives,
                max_similarity=params.max_representative_similarity,
            )
        else:
            diversity = RepresentativeOnly()
        return ClusterConfig(
            threshold=params.clust_threshold,
            measure=params.clust_measure,
            min_coverage=params.clust_min_coverage,
            max_offset=params.clust_max_offset,
            traversal=params.traversal,
            duplicate_policy=params.duplicate_policy,
            cluster_order=params.cluster_order,
            options=OracleOptions(
                max_e_value=params.max_e_value,
                threads=self.data.ipcluster["threads"],
                program=params.blast_program,
            ),
            diversity=diversity,
        )

    def _load_buckets(self) -> None:
        """Read input and seeds, drop duplicates, and bucket by length."""
        params = self.data.params
        if not params.fasta_paths:
            raise ConfigurationError("no fasta_paths are set; nothing to cluster")
        seqs, self._nmalformed = load_sequences(params.fasta_paths)
        seqs, self._nduplicates = remove_duplicates(seqs, params.duplicate_policy)
        if self._nmalformed:
            logger.warning(f"skipped {self._nmalformed} malformed records")
        if self._nduplicates:
            logger.warning(f"skipped {self._nduplicates} duplicate ids")
        logger.info(f"loaded {len(seqs)} sequences")

        buckets = bucket_by_length(seqs, params.size_bins)
        seeds = {}
        if params.seed_paths:
            seedseqs, _ = load_sequences(params.seed_paths)
            seeds = bucket_by_length(seedseqs, params.size_bins)
            logger.info(f"loaded {len(seedseqs)} seed representatives")

        for bucket, bseqs in buckets.items():
            done = self.stepdir / bucket / REPRESENTATIVES
            if done.exists() and not self.force:
                logger.warning(
                    f"skipping bucket {bucket}, already clustered. "
                    "Use force (-f) to redo it.")
                continue
            if (self.stepdir / bucket).exists():
                logger.info(f"removing previous clusters of bucket {bucket}")
                shutil.rmtree(self.stepdir / bucket)
            self.buckets[bucket] = bseqs
            self.seeds[bucket] = seeds.get(bucket, [])

    def _remote_cluster_buckets(self) -> None:
        """Run one clustering job per bucket."""
        if not self.buckets:
            return
        config = self.config
        params = self.data.params
        logger.info(f"clustering {len(self.buckets)} size buckets")
        if self.ipyclient is None:
            for bucket, seqs in self.buckets.items():
                self._stats[bucket] = cluster_bucket(
                    bucket, seqs, self.seeds[bucket], config,
                    params.oracle, params.blast_program, self.stepdir / bucket)
            return

        rasyncs = {}
        lbview = self.ipyclient.load_balanced_view()
        for bucket, seqs in self.buckets.items():
            args = (
                bucket, seqs, self.seeds[bucket], config,
                params.oracle, params.blast_program, self.stepdir / bucket,
            )
            rasyncs[bucket] = lbview.apply(cluster_bucket, *args, remote=True)
        self._stats = track_remote_jobs(rasyncs, self.ipyclient)

    def _write_json_file(self) -> None:
        for bucket, stats in self._stats.items():
            self.data.cluster_stats[bucket] = BucketStats(**stats)
        self.data.save_json()

    def _write_stats_file(self) -> None:
        statsdf = pd.DataFrame(
            index=sorted(self.data.cluster_stats),
            columns=list(BucketStats.model_fields),
        )
        for bucket, stats in self.data.cluster_stats.items():
            for key, value in stats.model_dump().items():
                statsdf.loc[bucket, key] = value
        handle = self.stepdir / "s1_cluster_stats.txt"
        with open(handle, "w", encoding="utf-8") as out:
            statsdf.fillna(value=0).to_string(out)
        self.data.stats_files.s1 = handle
        logger.info(f"step 1 results written to {handle}")
