#!/usr/bin/env python

"""The Similarity Oracle interface and its result record.

An oracle compares query sequences (or a profile) against subject
sequences and returns one SimilarityResult per local alignment
(high scoring pair). Both the clustering and purification engines
only ever see this interface, so the scoring program can be swapped
(BLAST+ for production, an in-process ungapped scorer for tests).
"""

from typing import List, Dict, Iterable, Optional, Tuple
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from profclust.core.sequence import Sequence, Alignment


@dataclass(frozen=True)
class SimilarityResult:
    """Statistics of one local alignment of a query to a subject.

    Ranges are 1-based and inclusive, as reported by BLAST.
    """
    query_id: str
    subject_id: str
    query_length: int
    subject_length: int
    bit_score: float
    e_value: float
    aligned_length: int
    n_identical: int
    n_positive: int
    q_start: int
    q_end: int
    s_start: int
    s_end: int

    @property
    def identity_fraction(self) -> float:
        return self.n_identical / self.aligned_length if self.aligned_length else 0.

    @property
    def positive_fraction(self) -> float:
        return self.n_positive / self.aligned_length if self.aligned_length else 0.

    @property
    def normalized_bit_score(self) -> float:
        """Bit score per alignment position."""
        return self.bit_score / self.aligned_length if self.aligned_length else 0.

    @property
    def aligned_q_range(self) -> Tuple[int, int]:
        return (self.q_start, self.q_end)

    @property
    def aligned_s_range(self) -> Tuple[int, int]:
        return (self.s_start, self.s_end)

    @property
    def q_span(self) -> int:
        return abs(self.q_end - self.q_start) + 1

    @property
    def s_span(self) -> int:
        return abs(self.s_end - self.s_start) + 1

    @property
    def coverage_query(self) -> float:
        return self.q_span / self.query_length if self.query_length else 0.

    @property
    def coverage_subject(self) -> float:
        return self.s_span / self.subject_length if self.subject_length else 0.

    @property
    def offset_n(self) -> int:
        """Number of positions by which the two sequences are shifted.

        This is the smaller of the unaligned extensions beyond the
        start and beyond the end, taken on opposite sequences. It is
        zero when one sequence is wholly mapped within the other.
        """
        q1, q2, s1, s2 = self.q_start, self.q_end, self.s_start, self.s_end
        qlen, slen = self.query_length, self.subject_length
        if q1 >= s1:
            shift = min(q1 - s1, (slen - s2) - (qlen - q2))
        else:
            shift = min(s1 - q1, (qlen - q2) - (slen - s2))
        return max(shift, 0)

    @property
    def offset(self) -> float:
        """Offset as a fraction of the shorter sequence length."""
        shortest = min(self.query_length, self.subject_length)
        return self.offset_n / shortest if shortest else 0.

    def score(self, measure: str) -> float:
        """Return the value of a named similarity measure."""
        if measure == "identity":
            return self.identity_fraction
        if measure == "positives":
            return self.positive_fraction
        if measure == "nbs":
            return self.normalized_bit_score
        raise KeyError(measure)


@dataclass
class OracleOptions:
    """Options passed with each oracle call."""
    max_e_value: float = 10.
    threads: int = 1
    max_hits: Optional[int] = None
    """: max number of subjects reported per query (None = all)."""
    best_per_pair: bool = True
    """: output shape, report only the best HSP per query/subject pair."""
    program: str = "blastp"
    """: blastp for proteins, blastn for nucleotides."""
    warnings: bool = False
    """: pass tool stderr to the logger even on success."""


def best_hits(results: Iterable[SimilarityResult]) -> Dict[Tuple[str, str], SimilarityResult]:
    """Return {(query, subject): result} keeping the first (best) HSP.

    BLAST reports HSPs of each pair in descending score order, so the
    first seen is the best.
    """
    best = {}
    for res in results:
        key = (res.query_id, res.subject_id)
        if key not in best:
            best[key] = res
    return best


def representative_for_profile(align: Alignment) -> int:
    """Return the index of the row best suited as a profile master.

    The master is the row with the fewest terminal gaps, and among
    those the one with the most residues; ties go to the earlier row.
    """
    if not align:
        raise ValueError("representative_for_profile called with an empty alignment")
    keyed = [
        (seq.leading_gaps + seq.trailing_gaps, -seq.nresidues, idx)
        for idx, seq in enumerate(align)
    ]
    return min(keyed)[2]


class SimilarityOracle(ABC):
    """Abstract base class for similarity tools."""
    builds_pssm: bool = True
    """: False if build_pssm always raises."""

    @abstractmethod
    def compare(
        self,
        queries: List[Sequence],
        subjects: List[Sequence],
        options: Optional[OracleOptions] = None,
    ) -> List[SimilarityResult]:
        """Return local alignment statistics of queries vs subjects."""

    @abstractmethod
    def compare_profile(
        self,
        profile: Alignment,
        subjects: List[Sequence],
        options: Optional[OracleOptions] = None,
    ) -> List[SimilarityResult]:
        """Return statistics of a profile vs subjects.

        The query length of each result is the number of columns
        of the profile.
        """

    @abstractmethod
    def build_pssm(
        self,
        profile: Alignment,
        path: Path,
        pssm_id: str,
        title: str = "",
        options: Optional[OracleOptions] = None,
    ) -> "Pssm":
        """Write a PSSM built from the profile to path and return it."""
