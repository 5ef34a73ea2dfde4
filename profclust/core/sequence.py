#!/usr/bin/env python

"""Record types shared by the clustering and purification engines.

Sequences are never modified in place; every transformation returns
a new Sequence. An alignment is simply a list of Sequences of equal
length, where the list order is a priority (tie-break) order.
"""

from typing import List, Optional, Iterable, TYPE_CHECKING
from dataclasses import dataclass, field, replace
from profclust.core.utils import ungap, leading_gaps, trailing_gaps, residue_count
from profclust.core.exceptions import InputFormatError

if TYPE_CHECKING:
    from profclust.oracle.base import SimilarityResult


@dataclass(frozen=True)
class Sequence:
    """An (id, description, residues) triple."""
    id: str
    description: str = ""
    residues: str = ""

    def __len__(self) -> int:
        return len(self.residues)

    @property
    def ungapped(self) -> str:
        """Residues with gap characters removed."""
        return ungap(self.residues)

    @property
    def nresidues(self) -> int:
        return residue_count(self.residues)

    @property
    def leading_gaps(self) -> int:
        return leading_gaps(self.residues)

    @property
    def trailing_gaps(self) -> int:
        return trailing_gaps(self.residues)

    def with_residues(self, residues: str) -> 'Sequence':
        """Return a copy with new residues."""
        return replace(self, residues=residues)

    def to_ungapped(self) -> 'Sequence':
        return replace(self, residues=self.ungapped)

    def is_valid(self) -> bool:
        """A record needs a non-empty id and at least one residue."""
        return bool(self.id) and bool(self.ungapped)


Alignment = List[Sequence]


def check_alignment(align: Iterable[Sequence]) -> Alignment:
    """Return the alignment as a list, raising if rows differ in length."""
    align = list(align)
    if align:
        width = len(align[0])
        for seq in align:
            if len(seq) != width:
                raise InputFormatError(
                    f"aligned sequence {seq.id} has length {len(seq)}, "
                    f"expected {width}")
    return align


@dataclass
class Cluster:
    """A representative and its ordered members (representative first)."""
    index: int
    representative: Sequence
    members: List[Sequence] = field(default_factory=list)

    def __post_init__(self):
        if not self.members:
            self.members = [self.representative]

    def __len__(self) -> int:
        return len(self.members)

    @property
    def ids(self) -> List[str]:
        return [i.id for i in self.members]


@dataclass(frozen=True)
class ClusterAssignment:
    """Outcome of classifying one sequence."""
    sequence: Sequence
    cluster_index: int
    is_new: bool
    result: Optional["SimilarityResult"] = None
    """: the hit that placed the sequence, None if it founded a cluster."""
