#!/usr/bin/env python

"""Column operations on alignments: packing and consensus.

"""

from typing import List
from collections import Counter
import numpy as np
from profclust.core.sequence import Alignment
from profclust.core.utils import GAP
from profclust.align.pairwise import to_codes, GAP_CODES


def alignment_array(align: Alignment) -> np.ndarray:
    """Return a (nrows, ncols) uint8 array of the alignment."""
    if not align:
        return np.zeros((0, 0), dtype=np.uint8)
    return np.vstack([to_codes(i.residues) for i in align])


def pack_alignment(align: Alignment) -> Alignment:
    """Return a copy with the columns that are gaps in every row removed."""
    if not align or not len(align[0]):
        return list(align)
    arr = alignment_array(align)
    keep = ~GAP_CODES[arr].all(axis=0)
    if keep.all():
        return list(align)
    idxs = np.flatnonzero(keep)
    return [
        seq.with_residues("".join(seq.residues[i] for i in idxs))
        for seq in align
    ]


def consensus(align: Alignment) -> str:
    """Return the plurality residue of each column ('-' if all gaps).

    Ties are broken by the first row, in order, that has one of the
    tied residues, so the result is deterministic for a given order.
    """
    if not align:
        return ""
    cons: List[str] = []
    for column in zip(*(i.residues.upper() for i in align)):
        counts = Counter(i for i in column if i not in "-.~")
        if not counts:
            cons.append(GAP)
            continue
        top = max(counts.values())
        cons.append(next(i for i in column if counts.get(i) == top))
    return "".join(cons)


def to_upper(align: Alignment) -> Alignment:
    """Return a copy with all residues upper-cased."""
    return [seq.with_residues(seq.residues.upper()) for seq in align]
