#!/usr/bin/env python

"""Align the members of a cluster with muscle.

muscle v5 is called once per cluster as a subprocess. Single-member
clusters are returned as is. The aligned rows are returned in the
order of the input members (muscle reorders them by guide tree), so
the first row remains the cluster representative.
"""

from typing import List
import sys
import shutil
import tempfile
import subprocess
from pathlib import Path
from loguru import logger
from profclust.core.sequence import Sequence, Alignment, check_alignment
from profclust.core.exceptions import AlignerInvocationError
from profclust.seqio.fasta import format_fasta, FastaReader

logger = logger.bind(name="profclust")

BIN = Path(sys.prefix) / "bin"
BIN_MUSCLE = str(BIN / "muscle")


def find_muscle() -> str:
    """Return the muscle binary from the env prefix, else from PATH."""
    if Path(BIN_MUSCLE).exists():
        return BIN_MUSCLE
    found = shutil.which("muscle")
    if not found:
        raise AlignerInvocationError(
            "muscle not found in the environment bin or in PATH. "
            "Install it, e.g., `conda install muscle -c bioconda`.")
    return found


def align_sequences(seqs: List[Sequence], threads: int = 1, binary: str = None) -> Alignment:
    """Return the multiple alignment of seqs as a list of Sequences."""
    if len(seqs) < 2:
        return [i.to_ungapped() for i in seqs]

    binary = binary or find_muscle()
    with tempfile.TemporaryDirectory(prefix="profclust-muscle-") as tmpdir:
        infile = Path(tmpdir) / "unaligned.fa"
        outfile = Path(tmpdir) / "aligned.fa"
        infile.write_text(format_fasta(i.to_ungapped() for i in seqs), encoding="utf-8")
        cmd = [
            binary,
            "-align", str(infile),
            "-output", str(outfile),
            "-threads", str(max(1, threads)),
            "-quiet",
        ]
        logger.debug(" ".join(cmd))
        try:
            with subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT) as proc:
                res = proc.communicate()[0].decode()
        except OSError as exc:
            raise AlignerInvocationError(f"could not run muscle: {exc}") from exc
        if proc.returncode:
            raise AlignerInvocationError(f"error in muscle alignment:\n{' '.join(cmd)}\n{res}")
        aligned = {i.id: i for i in FastaReader(outfile)}

    try:
        align = [
            Sequence(seq.id, seq.description, aligned[seq.id].residues.upper())
            for seq in seqs
        ]
    except KeyError as err:
        raise AlignerInvocationError(f"muscle output is missing sequence {err}") from err
    return check_alignment(align)
