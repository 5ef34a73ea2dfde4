#!/usr/bin/env python

"""An in-process similarity oracle scoring ungapped local alignments.

For each query/subject pair the best maximal scoring segment is found
over all diagonals of the substitution score matrix. Bit scores and
e-values use the Karlin-Altschul ungapped constants of the matrix,
with the total subject length as the search space, as BLAST does.

This oracle requires no external programs. It is used by the test
suite and can be selected for small data sets where BLAST+ is not
installed. It does not build PSSMs.
"""

from typing import List, Optional, Tuple
import math
from pathlib import Path
import numpy as np
from loguru import logger
from profclust.core.sequence import Sequence, Alignment
from profclust.core.exceptions import OracleInvocationError, ConfigurationError
from profclust.align.pairwise import BLOSUM62, to_codes
from profclust.align.msa import pack_alignment, consensus
from profclust.oracle.base import (
    SimilarityOracle, SimilarityResult, OracleOptions, representative_for_profile,
)

logger = logger.bind(name="profclust")


def _nucleotide_matrix(match: int = 1, mismatch: int = -2) -> np.ndarray:
    matrix = np.full((256, 256), mismatch, dtype=np.int16)
    np.fill_diagonal(matrix, match)
    return matrix


# (matrix, lambda, K) for ungapped scoring
SCORING = {
    "blastp": (BLOSUM62, 0.3176, 0.134),
    "blastn": (_nucleotide_matrix(), 1.28, 0.46),
}


def best_segment(scores: np.ndarray) -> Tuple[int, int, int]:
    """Return (score, start, end) of the maximal scoring segment.

    end is inclusive. Ties go to the segment ending first.
    """
    cum = np.concatenate(([0], np.cumsum(scores, dtype=np.int64)))
    minpref = np.minimum.accumulate(cum)
    gains = cum[1:] - minpref[:-1]
    end = int(np.argmax(gains))
    start = int(np.argmin(cum[:end + 1]))
    return int(gains[end]), start, end


class UngappedOracle(SimilarityOracle):
    """Score sequences by their best ungapped local alignment."""
    builds_pssm = False

    def __init__(self, program: str = "blastp"):
        if program not in SCORING:
            raise ConfigurationError(
                f"program '{program}' not supported, choose from {list(SCORING)}")
        self.program = program

    def _pair(self, query: Sequence, subject: Sequence, dbsize: int) -> Optional[SimilarityResult]:
        matrix, lambda_, kappa = SCORING[self.program]
        qcodes = to_codes(query.ungapped)
        scodes = to_codes(subject.ungapped)
        qlen, slen = qcodes.size, scodes.size
        if not (qlen and slen):
            return None
        square = matrix[qcodes][:, scodes]

        best = None
        for diag in range(-(qlen - 1), slen):
            values = np.diagonal(square, offset=diag)
            score, start, end = best_segment(values)
            if score > 0 and (best is None or score > best[0]):
                best = (score, diag, start, end)
        if best is None:
            return None

        score, diag, start, end = best
        qidx = max(0, -diag) + np.arange(start, end + 1)
        sidx = max(0, diag) + np.arange(start, end + 1)
        qres = qcodes[qidx]
        sres = scodes[sidx]
        return SimilarityResult(
            query_id=query.id,
            subject_id=subject.id,
            query_length=qlen,
            subject_length=slen,
            bit_score=(lambda_ * score - math.log(kappa)) / math.log(2),
            e_value=kappa * qlen * dbsize * math.exp(-lambda_ * score),
            aligned_length=int(qidx.size),
            n_identical=int((qres == sres).sum()),
            n_positive=int((matrix[qres, sres] > 0).sum()),
            q_start=int(qidx[0]) + 1,
            q_end=int(qidx[-1]) + 1,
            s_start=int(sidx[0]) + 1,
            s_end=int(sidx[-1]) + 1,
        )

    def compare(
        self,
        queries: List[Sequence],
        subjects: List[Sequence],
        options: Optional[OracleOptions] = None,
    ) -> List[SimilarityResult]:
        """Return the best hit of each query to each subject.

        Hits of a query are sorted by descending bit score, ties in
        subject order, as in BLAST tabular output.
        """
        options = options or OracleOptions()
        dbsize = sum(len(i.ungapped) for i in subjects)
        results = []
        for query in queries:
            hits = []
            for subject in subjects:
                hit = self._pair(query, subject, dbsize)
                if hit is not None and hit.e_value <= options.max_e_value:
                    hits.append(hit)
            hits.sort(key=lambda x: -x.bit_score)
            if options.max_hits is not None:
                hits = hits[:options.max_hits]
            results.extend(hits)
        return results

    def compare_profile(
        self,
        profile: Alignment,
        subjects: List[Sequence],
        options: Optional[OracleOptions] = None,
    ) -> List[SimilarityResult]:
        """Compare the plurality consensus of the profile to subjects.

        The query id is the id of the profile master row.
        """
        if not profile:
            return []
        packed = pack_alignment(profile)
        master = profile[representative_for_profile(profile)]
        query = Sequence(master.id, master.description, consensus(packed))
        logger.trace(f"ungapped profile comparison, master {master.id}")
        return self.compare([query], subjects, options)

    def build_pssm(
        self,
        profile: Alignment,
        path: Path,
        pssm_id: str,
        title: str = "",
        options: Optional[OracleOptions] = None,
    ):
        raise OracleInvocationError(
            "the ungapped oracle cannot build PSSMs, use the blast oracle")
