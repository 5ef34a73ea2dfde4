#!/usr/bin/env python

"""Functions run on workers to build the profile of one cluster.

Each scheduled bin calls `load_context` once, to create the oracle
and the purification settings, and then `profile_cluster` for each of
its clusters. A cluster job aligns the members with muscle, purifies
the alignment, writes a PSSM, and writes the report file last, so a
report exists only for a finished cluster.
"""

from typing import Dict, Any, Optional
from pathlib import Path
from dataclasses import dataclass
from loguru import logger
from profclust.core.exceptions import ProfClustError
from profclust.seqio.fasta import FastaReader, read_fasta, write_fasta
from profclust.seqio.clustal import write_pseudoclustal
from profclust.align.muscle import align_sequences
from profclust.oracle import get_oracle, SimilarityOracle
from profclust.purify.purify import PurifyConfig, purify_alignment, write_report

logger = logger.bind(name="profclust")


@dataclass
class ProfileJob:
    """One cluster file to turn into a profile."""
    bucket: str
    name: str
    fasta: Path
    outdir: Path

    @property
    def key(self) -> str:
        return f"{self.bucket}/{self.name}"

    def output(self, suffix: str) -> Path:
        """Return the path of an output file, e.g., output('report.tsv')."""
        return self.outdir / f"{self.name}.{suffix}"

    @property
    def is_done(self) -> bool:
        report = self.output("report.tsv")
        return report.exists() and report.stat().st_size > 0


@dataclass
class ProfileContext:
    """Worker state shared by all jobs of a bin."""
    oracle: SimilarityOracle
    config: PurifyConfig
    threads: int = 1


def cluster_cost(fasta: Path) -> Dict[str, float]:
    """Return the member count and the cost (members^2 x mean length)."""
    lengths = [len(i.ungapped) for i in FastaReader(fasta, keep_gaps=False)]
    nmembers = len(lengths)
    mean = sum(lengths) / nmembers if nmembers else 0.
    return {"nmembers": nmembers, "cost": nmembers ** 2 * mean}


def load_context(oracle_name: str, program: str, config: PurifyConfig, threads: int = 1) -> ProfileContext:
    """Bootstrap a worker: build the oracle once per bin."""
    return ProfileContext(get_oracle(oracle_name, program), config, threads)


def job_record(job: ProfileJob, error: Optional[BaseException] = None) -> Dict[str, Any]:
    """Return an empty stats record of a job, with status 1 if it failed."""
    return {
        "bucket": job.bucket,
        "name": job.name,
        "nmembers": 0,
        "ncolumns": 0,
        "nin_profile": 0,
        "nredundant": 0,
        "npoor_match": 0,
        "status": 0 if error is None else 1,
        "error": None if error is None else f"{type(error).__name__}: {error}",
    }


def profile_cluster(ctx: ProfileContext, job: ProfileJob) -> Dict[str, Any]:
    """Align, purify, and build the PSSM of one cluster.

    Errors of the external tools or of the input are caught and
    returned as status 1 so that the other clusters of the bin still
    run.
    """
    record = job_record(job)
    log = logger.bind(job=job.key)
    try:
        seqs = read_fasta(job.fasta, keep_gaps=False)
        record["nmembers"] = len(seqs)
        job.outdir.mkdir(parents=True, exist_ok=True)

        align = align_sequences(seqs, threads=ctx.threads)
        log.debug(f"aligned {len(seqs)} members over {len(align[0]) if align else 0} columns")
        write_fasta(align, job.output("align.fasta"))
        write_pseudoclustal(align, job.output("align.txt"))

        result = purify_alignment(align, ctx.oracle, ctx.config)
        write_fasta(result.alignment, job.output("purified.fasta"))
        if result.alignment and ctx.oracle.builds_pssm:
            ctx.oracle.build_pssm(
                result.alignment,
                job.output("smp"),
                pssm_id=f"{job.bucket}|{job.name}",
                title=f"{len(result.alignment)} of {len(seqs)} sequences",
            )
        write_report(result.report, job.output("report.tsv"))

        counts = result.counts
        record["ncolumns"] = len(result.alignment[0]) if result.alignment else 0
        record["nin_profile"] = counts["in_profile"]
        record["nredundant"] = counts["redundant"]
        record["npoor_match"] = counts["poor_match"]
        log.debug(f"{counts['in_profile']} of {len(seqs)} members in profile")

    except ProfClustError as exc:
        log.error(f"profile failed: {exc}")
        record["status"] = 1
        record["error"] = f"{type(exc).__name__}: {exc}"
    return record
