#!/usr/bin/env python

"""Similarity of two rows of an alignment, measured over their columns.

Only columns where both rows have a residue are counted. The three
measures mirror the BLAST statistics used elsewhere:

identity   fraction of counted columns with identical residues
positives  fraction of counted columns with a positive BLOSUM62 score
nbs        BLOSUM62 score in bits (half-bit units / 2) per counted column

Rows are converted to uint8 arrays once, so that pairwise comparisons
against many rows are simple vectorized lookups.
"""

from typing import Dict
import numpy as np
from profclust.core.exceptions import ConfigurationError

MEASURES = ("identity", "positives", "nbs")

# NCBI BLOSUM62, in half-bit units.
_BLOSUM62_TEXT = """
   A  R  N  D  C  Q  E  G  H  I  L  K  M  F  P  S  T  W  Y  V  B  Z  X  *
A  4 -1 -2 -2  0 -1 -1  0 -2 -1 -1 -1 -1 -2 -1  1  0 -3 -2  0 -2 -1  0 -4
R -1  5  0 -2 -3  1  0 -2  0 -3 -2  2 -1 -3 -2 -1 -1 -3 -2 -3 -1  0 -1 -4
N -2  0  6  1 -3  0  0  0  1 -3 -3  0 -2 -3 -2  1  0 -4 -2 -3  3  0 -1 -4
D -2 -2  1  6 -3  0  2 -1 -1 -3 -4 -1 -3 -3 -1  0 -1 -4 -3 -3  4  1 -1 -4
C  0 -3 -3 -3  9 -3 -4 -3 -3 -1 -1 -3 -1 -2 -3 -1 -1 -2 -2 -1 -3 -3 -2 -4
Q -1  1  0  0 -3  5  2 -2  0 -3 -2  1  0 -3 -1  0 -1 -2 -1 -2  0  3 -1 -4
E -1  0  0  2 -4  2  5 -2  0 -3 -3  1 -2 -3 -1  0 -1 -3 -2 -2  1  4 -1 -4
G  0 -2  0 -1 -3 -2 -2  6 -2 -4 -4 -2 -3 -3 -2  0 -2 -2 -3 -3 -1 -2 -1 -4
H -2  0  1 -1 -3  0  0 -2  8 -3 -3 -1 -2 -1 -2 -1 -2 -2  2 -3  0  0 -1 -4
I -1 -3 -3 -3 -1 -3 -3 -4 -3  4  2 -3  1  0 -3 -2 -1 -3 -1  3 -3 -3 -1 -4
L -1 -2 -3 -4 -1 -2 -3 -4 -3  2  4 -2  2  0 -3 -2 -1 -2 -1  1 -4 -3 -1 -4
K -1  2  0 -1 -3  1  1 -2 -1 -3 -2  5 -1 -3 -1  0 -1 -3 -2 -2  0  1 -1 -4
M -1 -1 -2 -3 -1  0 -2 -3 -2  1  2 -1  5  0 -2 -1 -1 -1 -1  1 -3 -1 -1 -4
F -2 -3 -3 -3 -2 -3 -3 -3 -1  0  0 -3  0  6 -4 -2 -2  1  3 -1 -3 -3 -1 -4
P -1 -2 -2 -1 -3 -1 -1 -2 -2 -3 -3 -1 -2 -4  7 -1 -1 -4 -3 -2 -2 -1 -2 -4
S  1 -1  1  0 -1  0  0  0 -1 -2 -2  0 -1 -2 -1  4  1 -3 -2 -2  0  0  0 -4
T  0 -1  0 -1 -1 -1 -1 -2 -2 -1 -1 -1 -1 -2 -1  1  5 -2 -2  0 -1 -1  0 -4
W -3 -3 -4 -4 -2 -2 -3 -2 -2 -3 -2 -3 -1  1 -4 -3 -2 11  2 -3 -4 -3 -2 -4
Y -2 -2 -2 -3 -2 -1 -2 -3  2 -1 -1 -2 -1  3 -3 -2 -2  2  7 -1 -3 -2 -1 -4
V  0 -3 -3 -3 -1 -2 -2 -3 -3  3  1 -2  1 -1 -2 -2  0 -3 -1  4 -3 -2 -1 -4
B -2 -1  3  4 -3  0  1 -1  0 -3 -4  0 -3 -3 -2  0 -1 -4 -3 -3  4  1 -1 -4
Z -1  0  0  1 -3  3  4 -2  0 -3 -3  1 -1 -3 -1  0 -1 -3 -2 -2  1  4 -1 -4
X  0 -1 -1 -1 -2 -1 -1 -1 -1 -1 -1 -1 -1 -1 -2  0  0 -2 -1 -1 -1 -1 -1 -4
* -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4 -4  1
"""


def _build_blosum62() -> np.ndarray:
    """Return a 256x256 score table indexed by (upper or lower) ASCII codes.

    Characters outside the table score as 'X'.
    """
    lines = [i.split() for i in _BLOSUM62_TEXT.strip().split("\n")]
    alphabet = lines[0]
    xidx = alphabet.index("X")
    square = np.array([[int(j) for j in i[1:]] for i in lines[1:]], dtype=np.int16)

    # map every byte to a row of the square matrix
    index = np.full(256, xidx, dtype=np.int16)
    for idx, char in enumerate(alphabet):
        index[ord(char)] = idx
        index[ord(char.lower())] = idx
    return square[index][:, index]


BLOSUM62 = _build_blosum62()
GAP_CODES = np.zeros(256, dtype=bool)
GAP_CODES[[ord("-"), ord("."), ord("~")]] = True


def to_codes(residues: str) -> np.ndarray:
    """Return residues as an upper-cased uint8 array."""
    return np.frombuffer(residues.upper().encode("ascii", "replace"), dtype=np.uint8)


def column_stats(row1: np.ndarray, row2: np.ndarray) -> Dict[str, float]:
    """Return counts over the columns where both rows have residues."""
    both = ~GAP_CODES[row1] & ~GAP_CODES[row2]
    ncols = int(both.sum())
    if not ncols:
        return {"columns": 0, "identical": 0, "positive": 0, "score": 0}
    res1 = row1[both]
    res2 = row2[both]
    scores = BLOSUM62[res1, res2]
    return {
        "columns": ncols,
        "identical": int((res1 == res2).sum()),
        "positive": int((scores > 0).sum()),
        "score": int(scores.sum()),
    }


def similarity(row1: np.ndarray, row2: np.ndarray, measure: str = "identity") -> float:
    """Return the similarity of two aligned rows under a measure.

    Rows with no shared residue columns have similarity 0.
    """
    stats = column_stats(row1, row2)
    if not stats["columns"]:
        return 0.
    if measure == "identity":
        return stats["identical"] / stats["columns"]
    if measure == "positives":
        return stats["positive"] / stats["columns"]
    if measure == "nbs":
        return 0.5 * stats["score"] / stats["columns"]
    raise ConfigurationError(f"unknown similarity measure '{measure}', choose from {MEASURES}")
