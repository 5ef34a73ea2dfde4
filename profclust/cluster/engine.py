#!/usr/bin/env python

"""Incremental greedy clustering against a pool of representatives.

Each sequence, visited in the configured traversal order, is compared
by a single oracle call against every entry of the pool. It joins the
cluster of the best scoring entry that passes the similarity
threshold, the coverage minimum (on both query and subject) and the
optional offset maximum; ties go to the earliest created cluster.
If no entry qualifies the sequence founds a new cluster and becomes
its representative in the pool.

The engine does no I/O. Every assignment is passed to a sink, see
`profclust.cluster.sinks`, which may log it or write files.

Examples
--------
>>> engine = ClusteringEngine(oracle, ClusterConfig(threshold=0.9))
>>> clusters = engine.run(seqs, sink=LogSink())
>>> engine.stats
"""

from typing import List, Dict, Optional, Iterable, Set
from dataclasses import dataclass, field, asdict
from loguru import logger
from profclust.core.sequence import Sequence, Cluster, ClusterAssignment
from profclust.core.exceptions import ConfigurationError, DuplicateIdError
from profclust.align.pairwise import MEASURES
from profclust.oracle.base import SimilarityOracle, SimilarityResult, OracleOptions, best_hits
from profclust.cluster.traversal import TRAVERSALS, traverse
from profclust.cluster.diversity import DiversityPolicy, RepresentativeOnly
from profclust.cluster.sinks import ClusterSink

logger = logger.bind(name="profclust")

DUPLICATE_POLICIES = ("strict", "skip")
CLUSTER_ORDERS = ("creation", "size")


@dataclass
class ClusterConfig:
    """Settings of one clustering run. Validated on creation."""
    threshold: float = 0.8
    """: min similarity (under `measure`) to a pool entry, in (0, 1]."""
    measure: str = "identity"
    """: identity, positives, or nbs."""
    min_coverage: float = 0.8
    """: min aligned fraction of both the query and the subject."""
    max_offset: Optional[float] = None
    """: max end shift of the alignment, as a fraction of the shorter."""
    traversal: str = "length"
    duplicate_policy: str = "strict"
    cluster_order: str = "creation"
    options: OracleOptions = field(default_factory=OracleOptions)
    diversity: DiversityPolicy = field(default_factory=RepresentativeOnly)

    def __post_init__(self):
        if not 0 < self.threshold <= 1:
            raise ConfigurationError(
                f"similarity threshold must be in (0, 1], not {self.threshold}")
        if self.measure not in MEASURES:
            raise ConfigurationError(
                f"unknown similarity measure '{self.measure}', choose from {MEASURES}")
        if not 0 <= self.min_coverage <= 1:
            raise ConfigurationError(
                f"min_coverage must be in [0, 1], not {self.min_coverage}")
        if self.max_offset is not None and not 0 <= self.max_offset <= 1:
            raise ConfigurationError(
                f"max_offset must be in [0, 1] or None, not {self.max_offset}")
        if self.traversal not in TRAVERSALS:
            raise ConfigurationError(
                f"unknown traversal '{self.traversal}', choose from {list(TRAVERSALS)}")
        if self.duplicate_policy not in DUPLICATE_POLICIES:
            raise ConfigurationError(
                f"duplicate_policy must be one of {DUPLICATE_POLICIES}")
        if self.cluster_order not in CLUSTER_ORDERS:
            raise ConfigurationError(
                f"cluster_order must be one of {CLUSTER_ORDERS}")


@dataclass
class ClusterStats:
    """Counters of a clustering run."""
    nsequences: int = 0
    nclustered: int = 0
    nclusters: int = 0
    nsingletons: int = 0
    nseeds: int = 0
    nduplicates: int = 0
    nmalformed: int = 0
    npool: int = 0
    noracle_calls: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class RepresentativePool:
    """Append-only arrays of pool sequences and their cluster indices.

    The whole `sequences` list is passed as subjects to each oracle
    call; `index` maps a pool sequence id back to its position.
    """
    def __init__(self):
        self.sequences: List[Sequence] = []
        self.clusters: List[int] = []
        self.index: Dict[str, int] = {}
        self.nextra: Dict[int, int] = {}

    def __len__(self) -> int:
        return len(self.sequences)

    def add(self, sequence: Sequence, cluster_index: int, extra: bool = False) -> None:
        self.index[sequence.id] = len(self.sequences)
        self.sequences.append(sequence)
        self.clusters.append(cluster_index)
        if extra:
            self.nextra[cluster_index] = self.nextra.get(cluster_index, 0) + 1

    def cluster_of(self, seq_id: str) -> Optional[int]:
        idx = self.index.get(seq_id)
        return None if idx is None else self.clusters[idx]


class ClusteringEngine:
    """Assign sequences to clusters one at a time.

    Parameters
    ----------
    oracle: SimilarityOracle
        Compares each new sequence with the pool.
    config: ClusterConfig
        Threshold, measure, coverage, traversal, and policies.
    seeds: list of Sequence
        Existing representatives. Each founds its own cluster, in
        order, before any input is classified.
    """
    def __init__(
        self,
        oracle: SimilarityOracle,
        config: Optional[ClusterConfig] = None,
        seeds: Optional[Iterable[Sequence]] = None,
    ):
        self.oracle = oracle
        self.config = config or ClusterConfig()
        self.clusters: List[Cluster] = []
        self.pool = RepresentativePool()
        self.stats = ClusterStats()
        self._seen: Set[str] = set()

        for seed in seeds or []:
            seed = seed.to_ungapped()
            if not seed.is_valid():
                self.stats.nmalformed += 1
                continue
            if seed.id in self._seen:
                if self.config.duplicate_policy == "strict":
                    raise DuplicateIdError(f"duplicate seed id '{seed.id}'")
                self.stats.nduplicates += 1
                continue
            self._seen.add(seed.id)
            self._apply(ClusterAssignment(seed, len(self.clusters), True))
            self.stats.nseeds += 1

    def _qualifies(self, res: SimilarityResult) -> bool:
        cfg = self.config
        if res.score(cfg.measure) < cfg.threshold:
            return False
        if res.coverage_query < cfg.min_coverage:
            return False
        if res.coverage_subject < cfg.min_coverage:
            return False
        if cfg.max_offset is not None and res.offset > cfg.max_offset:
            return False
        return True

    def classify(self, sequence: Sequence) -> ClusterAssignment:
        """Return the cluster a sequence would join, leaving clusters and pool unchanged.

        A sequence that matches nothing gets the index of the next
        new cluster and is_new=True.
        """
        new = ClusterAssignment(sequence, len(self.clusters), True)
        if not self.pool:
            return new

        results = self.oracle.compare([sequence], self.pool.sequences, self.config.options)
        self.stats.noracle_calls += 1

        best = None
        best_key = None
        for (query_id, subject_id), res in best_hits(results).items():
            if query_id != sequence.id:
                continue
            cidx = self.pool.cluster_of(subject_id)
            if cidx is None or not self._qualifies(res):
                continue
            key = (-res.score(self.config.measure), cidx)
            if best_key is None or key < best_key:
                best_key = key
                best = ClusterAssignment(sequence, cidx, False, res)
        return best if best is not None else new

    def _apply(self, assignment: ClusterAssignment) -> None:
        seq = assignment.sequence
        if assignment.is_new:
            self.clusters.append(Cluster(assignment.cluster_index, seq))
            self.pool.add(seq, assignment.cluster_index)
            return
        self.clusters[assignment.cluster_index].members.append(seq)
        nextra = self.pool.nextra.get(assignment.cluster_index, 0)
        if self.config.diversity.admit(seq, assignment.result, self.config.measure, nextra):
            self.pool.add(seq, assignment.cluster_index, extra=True)

    def assign(self, sequence: Sequence) -> ClusterAssignment:
        """Classify a sequence and add it to its cluster (and pool)."""
        assignment = self.classify(sequence)
        self._apply(assignment)
        return assignment

    def _accept(self, sequences: Iterable[Sequence], sink: ClusterSink) -> List[Sequence]:
        """Return valid, first-seen sequences in input order."""
        accepted = []
        for seq in sequences:
            self.stats.nsequences += 1
            seq = seq.to_ungapped()
            if not seq.is_valid():
                self.stats.nmalformed += 1
                sink.on_skip(seq, "malformed")
                continue
            if seq.id in self._seen:
                if self.config.duplicate_policy == "strict":
                    raise DuplicateIdError(f"duplicate sequence id '{seq.id}'")
                self.stats.nduplicates += 1
                sink.on_skip(seq, "duplicate")
                continue
            self._seen.add(seq.id)
            accepted.append(seq)
        return accepted

    def run(self, sequences: Iterable[Sequence], sink: Optional[ClusterSink] = None) -> List[Cluster]:
        """Cluster sequences and return all clusters in output order.

        Duplicates are checked before any sequence is classified, so
        under the strict policy a DuplicateIdError leaves the engine
        without partial assignments from this call.
        """
        sink = sink or ClusterSink()
        accepted = self._accept(sequences, sink)
        for seq in traverse(accepted, self.config.traversal):
            assignment = self.assign(seq)
            self.stats.nclustered += 1
            sink.on_assignment(assignment)

        clusters = self.ordered_clusters()
        self.stats.nclusters = len(clusters)
        self.stats.nsingletons = sum(1 for i in clusters if len(i) == 1)
        self.stats.npool = len(self.pool)
        sink.on_finish(clusters)
        logger.debug(
            f"clustered {self.stats.nclustered} sequences into "
            f"{self.stats.nclusters} clusters")
        return clusters

    def ordered_clusters(self) -> List[Cluster]:
        """Return clusters in creation order or by descending size (stable)."""
        if self.config.cluster_order == "size":
            return sorted(self.clusters, key=lambda x: -len(x))
        return list(self.clusters)
