#!/usr/bin/env python

"""Plain text rendering of an alignment in blocks (pseudo-clustal).

Each block holds `line_len` columns of every row, prefixed by the
row id padded to a common width, and blocks are separated by a blank
line. There is no clustal header or conservation line, so the text
can be read back with `read_pseudoclustal`.
"""

from typing import List
from pathlib import Path
from profclust.core.sequence import Sequence, Alignment
from profclust.seqio.fasta import write_text_atomic, _open


def format_pseudoclustal(align: Alignment, line_len: int = 60, case: int = 0) -> str:
    """Return the text alignment. case: 1=upper, -1=lower, 0=as is."""
    if not align:
        return ""
    namelen = max(len(i.id) for i in align)

    blocks = []
    width = len(align[0])
    for start in range(0, max(width, 1), line_len):
        block = []
        for seq in align:
            chunk = seq.residues[start:start + line_len]
            if case > 0:
                chunk = chunk.upper()
            elif case < 0:
                chunk = chunk.lower()
            block.append(f"{seq.id:<{namelen}}  {chunk}")
        blocks.append("\n".join(block) + "\n")
    return "\n".join(blocks) + "\n"


def write_pseudoclustal(align: Alignment, path: Path, line_len: int = 60, case: int = 0) -> Path:
    """Write the text alignment to path."""
    return write_text_atomic(format_pseudoclustal(align, line_len, case), path)


def read_pseudoclustal(path: Path) -> List[Sequence]:
    """Return Sequences from a pseudo-clustal file, in first-seen order."""
    chunks = {}
    with _open(path) as infile:
        for line in infile:
            parts = line.split(None, 1)
            if len(parts) != 2:
                continue
            sid, data = parts
            chunks.setdefault(sid, []).append("".join(data.split()))
    return [Sequence(sid, "", "".join(data)) for sid, data in chunks.items()]
