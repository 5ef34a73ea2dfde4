#!/usr/bin/env python

"""Trim ragged alignment ends.

The trim amount at each end is read from the sorted terminal gap run
lengths of the rows, at rank floor(min_depth * N). With min_depth
0.25 the ends are cut back until at least a quarter of the rows have
a residue in the first (or last) remaining column.
"""

from typing import List, Tuple
import math
from profclust.core.sequence import Alignment
from profclust.core.exceptions import ConfigurationError


def trim_amount(gap_runs: List[int], min_depth: float = 0.25) -> int:
    """Return the number of columns to cut given terminal gap runs.

    >>> trim_amount([0, 1, 3, 3, 5], 0.25)
    1
    """
    if not 0 <= min_depth <= 1:
        raise ConfigurationError(f"min_depth must be in [0, 1], not {min_depth}")
    if not gap_runs:
        return 0
    ordered = sorted(gap_runs)
    rank = min(math.floor(min_depth * len(ordered)), len(ordered) - 1)
    return ordered[rank]


def trim_amounts(align: Alignment, min_depth: float = 0.25) -> Tuple[int, int]:
    """Return (leading, trailing) column counts to trim."""
    if not align:
        return 0, 0
    width = len(align[0])
    lead = trim_amount([i.leading_gaps for i in align], min_depth)
    trail = trim_amount([i.trailing_gaps for i in align], min_depth)
    return lead, min(trail, width - lead)


def trim_alignment(align: Alignment, min_depth: float = 0.25) -> Alignment:
    """Return a copy with leading and trailing columns trimmed."""
    lead, trail = trim_amounts(align, min_depth)
    if not (lead or trail):
        return list(align)
    return [
        seq.with_residues(seq.residues[lead:len(seq) - trail])
        for seq in align
    ]
