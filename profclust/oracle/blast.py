#!/usr/bin/env python

"""Similarity oracle calling the BLAST+ programs.

Each call works in its own scratch directory: subjects are written
and formatted with makeblastdb, queries are searched with blastp or
blastn (profiles with psiblast -in_msa), and the tabular output is
parsed into SimilarityResults. Sequences are written under short
internal names and mapped back, so that BLAST never rewrites ids.
"""

from typing import List, Optional, Dict, Tuple
import sys
import shutil
import tempfile
import subprocess
from pathlib import Path
from dataclasses import replace
from loguru import logger
from profclust.core.sequence import Sequence, Alignment
from profclust.core.exceptions import OracleInvocationError, InputFormatError
from profclust.seqio.fasta import format_fasta
from profclust.align.msa import pack_alignment, to_upper
from profclust.oracle.base import (
    SimilarityOracle, SimilarityResult, OracleOptions, representative_for_profile,
)
from profclust.oracle.pssm import Pssm, parse_smp, edit_smp, write_smp

logger = logger.bind(name="profclust")

BIN = Path(sys.prefix) / "bin"

OUTFMT_FIELDS = (
    "qseqid sseqid qlen slen bitscore evalue length nident positive "
    "qstart qend sstart send"
)


def find_tool(name: str) -> str:
    """Return a BLAST+ binary from the env prefix, else from PATH."""
    path = BIN / name
    if path.exists():
        return str(path)
    found = shutil.which(name)
    if not found:
        raise OracleInvocationError(
            f"{name} not found in the environment bin or in PATH. "
            "Install BLAST+, e.g., `conda install blast -c bioconda`.")
    return found


def rename(seqs: List[Sequence], prefix: str) -> Tuple[List[Sequence], Dict[str, str]]:
    """Return copies named prefix0, prefix1, ... and a map back to ids."""
    names = {}
    renamed = []
    for idx, seq in enumerate(seqs):
        name = f"{prefix}{idx}"
        names[name] = seq.id
        renamed.append(Sequence(name, "", seq.residues))
    return renamed, names


def parse_tabular(text: str, qnames: Dict[str, str], snames: Dict[str, str]) -> List[SimilarityResult]:
    """Return SimilarityResults parsed from BLAST -outfmt 6 text."""
    results = []
    for line in text.splitlines():
        if not line.strip() or line.startswith("#"):
            continue
        fields = line.rstrip("\n").split("\t")
        if len(fields) != 13:
            raise OracleInvocationError(f"unexpected BLAST output line: {line!r}")
        try:
            res = SimilarityResult(
                query_id=qnames.get(fields[0], fields[0]),
                subject_id=snames.get(fields[1], fields[1]),
                query_length=int(fields[2]),
                subject_length=int(fields[3]),
                bit_score=float(fields[4]),
                e_value=float(fields[5]),
                aligned_length=int(fields[6]),
                n_identical=int(fields[7]),
                n_positive=int(fields[8]),
                q_start=int(fields[9]),
                q_end=int(fields[10]),
                s_start=int(fields[11]),
                s_end=int(fields[12]),
            )
        except ValueError as err:
            raise OracleInvocationError(f"unparseable BLAST output line: {line!r}") from err
        results.append(res)
    return results


class BlastOracle(SimilarityOracle):
    """Similarity oracle running BLAST+ as subprocesses.

    Parameters
    ----------
    program: str
        blastp or blastn, used by `compare`. Profiles are always
        compared with psiblast (proteins).
    tmpdir: Path or None
        Parent of the per-call scratch directories.
    """
    def __init__(self, program: str = "blastp", tmpdir: Optional[Path] = None):
        self.program = program
        self.tmpdir = tmpdir

    def _run(self, cmd: List[str], options: OracleOptions) -> str:
        logger.debug(" ".join(cmd))
        try:
            with subprocess.Popen(
                cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE) as proc:
                out, err = proc.communicate()
        except OSError as exc:
            raise OracleInvocationError(f"could not run {cmd[0]}: {exc}") from exc
        err = err.decode(errors="replace")
        if proc.returncode:
            raise OracleInvocationError(
                f"error in {Path(cmd[0]).name} (exit {proc.returncode}):\n"
                f"{' '.join(cmd)}\n{err}")
        if err.strip() and options.warnings:
            logger.warning(f"{Path(cmd[0]).name}: {err.strip()}")
        return out.decode(errors="replace")

    def _makeblastdb(self, subjects: List[Sequence], workdir: Path, dbtype: str, options) -> Path:
        fasta = workdir / "subjects.fa"
        fasta.write_text(format_fasta(i.to_ungapped() for i in subjects), encoding="utf-8")
        dbase = workdir / "subjects"
        self._run([
            find_tool("makeblastdb"),
            "-in", str(fasta),
            "-dbtype", dbtype,
            "-out", str(dbase),
        ], options)
        return dbase

    def _search_args(self, options: OracleOptions, dbsize: int) -> List[str]:
        args = [
            "-outfmt", f"6 {OUTFMT_FIELDS}",
            "-evalue", str(options.max_e_value),
            "-num_threads", str(max(1, options.threads)),
        ]
        # with no limit report every subject of the database
        args += ["-max_target_seqs", str(options.max_hits or max(dbsize, 1))]
        if options.best_per_pair:
            args += ["-max_hsps", "1"]
        return args

    def compare(
        self,
        queries: List[Sequence],
        subjects: List[Sequence],
        options: Optional[OracleOptions] = None,
    ) -> List[SimilarityResult]:
        options = options or OracleOptions(program=self.program)
        if not (queries and subjects):
            return []
        program = options.program or self.program
        dbtype = "nucl" if program == "blastn" else "prot"
        queries, qnames = rename(queries, "q")
        subjects, snames = rename(subjects, "s")

        with tempfile.TemporaryDirectory(prefix="profclust-blast-", dir=self.tmpdir) as tmpdir:
            workdir = Path(tmpdir)
            dbase = self._makeblastdb(subjects, workdir, dbtype, options)
            qfasta = workdir / "queries.fa"
            qfasta.write_text(format_fasta(i.to_ungapped() for i in queries), encoding="utf-8")
            cmd = [
                find_tool(program),
                "-query", str(qfasta),
                "-db", str(dbase),
            ] + self._search_args(options, len(subjects))
            out = self._run(cmd, options)
        return parse_tabular(out, qnames, snames)

    def compare_profile(
        self,
        profile: Alignment,
        subjects: List[Sequence],
        options: Optional[OracleOptions] = None,
    ) -> List[SimilarityResult]:
        """Search subjects with psiblast using the profile as query.

        The master row is the one with the fewest terminal gaps. The
        query length of each result is the profile column count.
        """
        options = options or OracleOptions()
        if not (profile and subjects):
            return []
        profile = to_upper(pack_alignment(profile))
        master_idx = representative_for_profile(profile)
        master_id = profile[master_idx].id
        rows, _ = rename(profile, "p")
        subjects, snames = rename(subjects, "s")

        with tempfile.TemporaryDirectory(prefix="profclust-psiblast-", dir=self.tmpdir) as tmpdir:
            workdir = Path(tmpdir)
            dbase = self._makeblastdb(subjects, workdir, "prot", options)
            msa = workdir / "profile.fa"
            msa.write_text(format_fasta(rows), encoding="utf-8")
            cmd = [
                find_tool("psiblast"),
                "-in_msa", str(msa),
                "-msa_master_idx", str(master_idx + 1),
                "-db", str(dbase),
            ] + self._search_args(options, len(subjects))
            out = self._run(cmd, options)

        ncols = len(profile[0])
        return [
            replace(i, query_id=master_id, query_length=ncols)
            for i in parse_tabular(out, {}, snames)
        ]

    def build_pssm(
        self,
        profile: Alignment,
        path: Path,
        pssm_id: str,
        title: str = "",
        options: Optional[OracleOptions] = None,
    ) -> Pssm:
        """Build a PSSM with psiblast and write it atomically to path.

        The PSSM is computed by searching the profile master against
        itself; the written text carries pssm_id and title and has
        its intermediateData block removed.
        """
        options = options or OracleOptions()
        if not profile:
            raise OracleInvocationError("cannot build a PSSM from an empty profile")
        profile = to_upper(pack_alignment(profile))
        master_idx = representative_for_profile(profile)
        rows, _ = rename(profile, "p")

        with tempfile.TemporaryDirectory(prefix="profclust-pssm-", dir=self.tmpdir) as tmpdir:
            workdir = Path(tmpdir)
            msa = workdir / "profile.fa"
            msa.write_text(format_fasta(rows), encoding="utf-8")
            master = workdir / "master.fa"
            master.write_text(format_fasta([rows[master_idx].to_ungapped()]), encoding="utf-8")
            smp = workdir / "profile.smp"
            self._run([
                find_tool("psiblast"),
                "-in_msa", str(msa),
                "-msa_master_idx", str(master_idx + 1),
                "-subject", str(master),
                "-out_pssm", str(smp),
                "-out", str(workdir / "search.out"),
            ], options)
            if not smp.exists():
                raise OracleInvocationError("psiblast did not write a PSSM")
            text = edit_smp(smp.read_text(encoding="utf-8"), pssm_id, title)

        try:
            pssm = parse_smp(text)
        except InputFormatError as err:
            raise OracleInvocationError(f"psiblast wrote an unreadable PSSM: {err}") from err
        write_smp(text, path)
        return pssm
