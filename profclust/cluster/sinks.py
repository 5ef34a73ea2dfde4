#!/usr/bin/env python

"""Receivers of clustering events.

The clustering engine reports each classified sequence, each skipped
record, and the finished cluster list to a sink. The base class does
nothing, so subclasses override only the events they care about.
"""

from typing import List, Iterable
from pathlib import Path
from loguru import logger
from profclust.core.sequence import Sequence, Cluster, ClusterAssignment
from profclust.seqio.fasta import write_fasta, write_id_list

logger = logger.bind(name="profclust")

REPRESENTATIVES = "representatives.fasta"


def cluster_name(position: int) -> str:
    """Return the file stem of the cluster at an output position."""
    return f"clust_{position:05d}"


class ClusterSink:
    """A sink that ignores all events."""

    def on_assignment(self, assignment: ClusterAssignment) -> None:
        """Called once per classified sequence, in traversal order."""

    def on_skip(self, sequence: Sequence, reason: str) -> None:
        """Called for each malformed or duplicate record."""

    def on_finish(self, clusters: List[Cluster]) -> None:
        """Called once with the clusters in output order."""


class LogSink(ClusterSink):
    """Log classification events to the profclust logger.

    With remote=True (on an ipengine) events are printed as
    '@@LEVEL: message' lines, which track_remote_jobs forwards to
    the logger of the main process.
    """

    def __init__(self, level: str = "DEBUG", remote: bool = False):
        self.level = level
        self.remote = remote

    def _emit(self, message: str) -> None:
        if self.remote:
            print(f"@@{self.level}: {message}", flush=True)
        else:
            logger.log(self.level, message)

    def on_assignment(self, assignment):
        seq = assignment.sequence
        if assignment.is_new:
            self._emit(
                f"{seq.id} ({len(seq)}) founds cluster {assignment.cluster_index}")
        else:
            res = assignment.result
            self._emit(
                f"{seq.id} ({len(seq)}) joins cluster {assignment.cluster_index} via "
                f"{res.subject_id}: identity={res.identity_fraction:.3f} "
                f"qcov={res.coverage_query:.3f} scov={res.coverage_subject:.3f} "
                f"evalue={res.e_value:.2g}")

    def on_skip(self, sequence, reason):
        self._emit(f"skipped {reason} record '{sequence.id}'")

    def on_finish(self, clusters):
        self._emit(f"{len(clusters)} clusters")


class ClusterFileSink(ClusterSink):
    """Write each cluster's members as FASTA and as an id list.

    For the cluster at output position N this writes
    `clust_N.fasta` (unaligned members, representative first) and
    `clust_N.ids.tsv` (member id, representative id, description).
    `representatives.fasta` is written last, so its presence marks
    a finished directory.
    """
    def __init__(self, outdir: Path):
        self.outdir = Path(outdir)

    def on_finish(self, clusters):
        self.outdir.mkdir(parents=True, exist_ok=True)
        for pos, clust in enumerate(clusters):
            name = cluster_name(pos)
            write_fasta(clust.members, self.outdir / f"{name}.fasta")
            rows = [
                (i.id, clust.representative.id, i.description)
                for i in clust.members
            ]
            write_id_list(rows, self.outdir / f"{name}.ids.tsv")
        write_fasta(
            [i.representative for i in clusters],
            self.outdir / REPRESENTATIVES)
        logger.debug(f"wrote {len(clusters)} clusters to {self.outdir}")


class SinkGroup(ClusterSink):
    """Pass every event to each of several sinks, in order."""

    def __init__(self, sinks: Iterable[ClusterSink]):
        self.sinks = list(sinks)

    def on_assignment(self, assignment):
        for sink in self.sinks:
            sink.on_assignment(assignment)

    def on_skip(self, sequence, reason):
        for sink in self.sinks:
            sink.on_skip(sequence, reason)

    def on_finish(self, clusters):
        for sink in self.sinks:
            sink.on_finish(clusters)
