#!/usr/bin/env python

"""Greedy removal of near-duplicate rows from an alignment.

Rows are visited in descending order of residue count (stable), the
top remaining row is kept, and every remaining row whose similarity
to it reaches any ceiling is dropped. Similarity is measured over the
alignment columns where both rows have residues. Every pair of kept
rows is therefore below every ceiling.
"""

from typing import List, Sequence as Seq, Tuple
from profclust.core.sequence import Alignment
from profclust.core.exceptions import ConfigurationError
from profclust.align.pairwise import MEASURES, to_codes, similarity

Ceiling = Tuple[str, float]


def order_rows(align: Alignment, keep_first: bool = False, no_reorder: bool = False) -> Alignment:
    """Return rows in dereplication priority order."""
    if no_reorder or not align:
        return list(align)
    if keep_first:
        return [align[0]] + sorted(align[1:], key=lambda x: -x.nresidues)
    return sorted(align, key=lambda x: -x.nresidues)


def dereplicate(
    align: Alignment,
    ceilings: Seq[Ceiling] = (("identity", 0.85),),
    keep_first: bool = False,
    no_reorder: bool = False,
) -> Tuple[Alignment, List[str]]:
    """Return (kept rows in priority order, ids of dropped rows).

    Parameters
    ----------
    align: Alignment
        Rows of equal length.
    ceilings: list of (measure, value)
        A row is redundant to a kept row if its similarity under
        any of these measures is >= the value.
    keep_first: bool
        Keep the first row at the front regardless of its length.
    no_reorder: bool
        Visit rows in their given order.
    """
    for measure, _ in ceilings:
        if measure not in MEASURES:
            raise ConfigurationError(
                f"unknown similarity measure '{measure}', choose from {MEASURES}")

    remaining = [(seq, to_codes(seq.residues)) for seq in order_rows(align, keep_first, no_reorder)]
    kept = []
    dropped = []
    while remaining:
        top, tcodes = remaining.pop(0)
        kept.append(top)
        survivors = []
        for seq, codes in remaining:
            if any(similarity(tcodes, codes, m) >= ceil for m, ceil in ceilings):
                dropped.append(seq.id)
            else:
                survivors.append((seq, codes))
        remaining = survivors
    return kept, dropped
