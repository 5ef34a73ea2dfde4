#!/usr/bin/env python

"""Purify a cluster alignment into a profile.

1. trim ragged ends (`trim_alignment`)
2. remove near-duplicate rows (`dereplicate`)
3. compare every original sequence to the packed, dereplicated
   profile and keep those with a good enough hit
4. build the final profile from the kept rows of the input
   alignment: dereplicate, trim, dereplicate again if the trim
   removed columns, pack, and upper-case

Each input row gets a PurifyRecord with status `in_profile` (a row
of the final profile), `redundant` (passed but was removed as a
near-duplicate) or `poor_match` (failed the validation thresholds).
An input where every row fails gives an empty profile, not an error.
"""

from typing import List, Optional, Dict, Tuple
from pathlib import Path
from dataclasses import dataclass, field, asdict
from loguru import logger
import pandas as pd
from profclust.core.sequence import Alignment, check_alignment
from profclust.core.exceptions import (
    ConfigurationError, EmptyAlignmentError, DuplicateIdError,
)
from profclust.align.msa import pack_alignment, to_upper
from profclust.oracle.base import SimilarityOracle, SimilarityResult, OracleOptions
from profclust.seqio.fasta import write_text_atomic
from profclust.purify.trim import trim_alignment
from profclust.purify.derep import dereplicate

logger = logger.bind(name="profclust")

IN_PROFILE = "in_profile"
REDUNDANT = "redundant"
POOR_MATCH = "poor_match"

REPORT_COLUMNS = [
    "id", "status", "e_value", "bit_score", "nbs",
    "query_coverage", "subject_coverage",
]

# values recorded for a sequence with no hit to the profile
MISSING_E_VALUE = 20.


@dataclass
class PurifyConfig:
    """Thresholds for purification. Validated on creation."""
    min_depth: float = 0.25
    max_identity: Optional[float] = None
    """: redundancy ceiling, 0.85 when no other ceiling is set."""
    max_positives: Optional[float] = None
    max_nbs: Optional[float] = None
    min_nbs: float = 0.25
    min_q_cover: float = 0.80
    min_s_cover: float = 0.80
    max_e_value: float = 1e-4
    keep_first: bool = False
    no_pack: bool = False
    no_reorder: bool = False
    keep_case: bool = False
    threads: int = 1

    def __post_init__(self):
        for name in ("min_depth", "min_q_cover", "min_s_cover"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ConfigurationError(f"{name} must be in [0, 1], not {value}")
        for name in ("max_identity", "max_positives"):
            value = getattr(self, name)
            if value is not None and not 0 < value <= 1:
                raise ConfigurationError(f"{name} must be in (0, 1], not {value}")
        if self.max_nbs is not None and self.max_nbs <= 0:
            raise ConfigurationError(f"max_nbs must be > 0, not {self.max_nbs}")
        if self.min_nbs < 0:
            raise ConfigurationError(f"min_nbs must be >= 0, not {self.min_nbs}")
        if self.max_e_value <= 0:
            raise ConfigurationError(f"max_e_value must be > 0, not {self.max_e_value}")

    @property
    def ceilings(self) -> List[Tuple[str, float]]:
        """Redundancy ceilings in the order they are applied."""
        ceilings = [
            (measure, value) for measure, value in (
                ("identity", self.max_identity),
                ("positives", self.max_positives),
                ("nbs", self.max_nbs),
            ) if value is not None
        ]
        return ceilings or [("identity", 0.85)]


@dataclass
class PurifyRecord:
    """Disposition of one input sequence."""
    id: str
    status: str
    e_value: float
    bit_score: float
    nbs: float
    query_coverage: float
    subject_coverage: float


@dataclass
class PurifyResult:
    alignment: Alignment
    """: the final profile, possibly with zero rows."""
    filtered: Alignment
    """: input rows that passed validation, untrimmed."""
    report: List[PurifyRecord] = field(default_factory=list)

    @property
    def counts(self) -> Dict[str, int]:
        counts = {IN_PROFILE: 0, REDUNDANT: 0, POOR_MATCH: 0}
        for rec in self.report:
            counts[rec.status] += 1
        return counts


def _score_hit(hit: Optional[SimilarityResult], ncols: int, slen: int) -> Dict[str, float]:
    if hit is None:
        return {
            "e_value": MISSING_E_VALUE, "bit_score": 0., "nbs": 0.,
            "query_coverage": 0., "subject_coverage": 0.,
        }
    return {
        "e_value": hit.e_value,
        "bit_score": hit.bit_score,
        "nbs": hit.bit_score / hit.s_span,
        "query_coverage": hit.q_span / ncols if ncols else 0.,
        "subject_coverage": hit.s_span / slen if slen else 0.,
    }


def _passes(scores: Dict[str, float], config: PurifyConfig) -> bool:
    return (
        scores["e_value"] <= config.max_e_value
        and scores["nbs"] >= config.min_nbs
        and scores["query_coverage"] >= config.min_q_cover
        and scores["subject_coverage"] >= config.min_s_cover
    )


def finish_profile(align: Alignment, config: PurifyConfig) -> Alignment:
    """Dereplicate, trim, pack, and upper-case passing rows.

    When trimming removes columns the rows are dereplicated again, in
    their current priority order, so that the final rows stay below
    the redundancy ceilings.
    """
    if not align:
        return []
    derep, _ = dereplicate(align, config.ceilings, config.keep_first, config.no_reorder)
    profile = trim_alignment(derep, config.min_depth)
    if profile and len(profile[0]) < len(derep[0]):
        profile, _ = dereplicate(profile, config.ceilings, no_reorder=True)
    if not config.no_pack:
        profile = pack_alignment(profile)
    if not config.keep_case:
        profile = to_upper(profile)
    return profile


def purify_alignment(
    align: Alignment,
    oracle: SimilarityOracle,
    config: Optional[PurifyConfig] = None,
) -> PurifyResult:
    """Return the purified profile of an alignment and a report.

    Parameters
    ----------
    align: Alignment
        Aligned rows with unique ids. The order is used to break ties
        and, with keep_first, to protect the first row.
    oracle: SimilarityOracle
        Scores each original sequence against the profile.
    config: PurifyConfig
        Thresholds; the defaults if None.
    """
    config = config or PurifyConfig()
    align = check_alignment(align)
    if not align:
        raise EmptyAlignmentError("cannot purify an alignment with no sequences")
    ids = [i.id for i in align]
    if len(set(ids)) != len(ids):
        dups = sorted({i for i in ids if ids.count(i) > 1})
        raise DuplicateIdError(f"duplicate ids in alignment: {', '.join(dups)}")

    # candidate profile
    trimmed = trim_alignment(align, config.min_depth)
    derep, _ = dereplicate(trimmed, config.ceilings, config.keep_first, config.no_reorder)
    profile = to_upper(pack_alignment(derep))
    ncols = len(profile[0]) if profile else 0

    # validate all original sequences against it
    subjects = [i.to_ungapped() for i in align]
    hits: Dict[str, SimilarityResult] = {}
    if ncols:
        options = OracleOptions(
            max_e_value=max(config.max_e_value, MISSING_E_VALUE),
            threads=config.threads,
            best_per_pair=True,
        )
        for res in oracle.compare_profile(profile, subjects, options):
            if res.subject_id not in hits:
                hits[res.subject_id] = res

    scores = {
        seq.id: _score_hit(hits.get(seq.id), ncols, len(seq))
        for seq in subjects
    }
    filtered = [i for i in align if _passes(scores[i.id], config)]
    final = finish_profile(filtered, config)

    kept = {i.id for i in final}
    passed = {i.id for i in filtered}
    report = []
    for seq in align:
        if seq.id in kept:
            status = IN_PROFILE
        elif seq.id in passed:
            status = REDUNDANT
        else:
            status = POOR_MATCH
        report.append(PurifyRecord(seq.id, status, **scores[seq.id]))

    result = PurifyResult(final, filtered, report)
    logger.debug(
        f"purified {len(align)} rows x {len(align[0])} cols -> "
        f"{len(final)} rows x {len(final[0]) if final else 0} cols {result.counts}")
    return result


def report_table(report: List[PurifyRecord]) -> pd.DataFrame:
    """Return the report as a DataFrame in report column order."""
    return pd.DataFrame([asdict(i) for i in report], columns=REPORT_COLUMNS)


def write_report(report: List[PurifyRecord], path: Path) -> Path:
    """Write the report as tab-separated text with a header line."""
    text = report_table(report).to_csv(sep="\t", index=False, float_format="%.6g")
    return write_text_atomic(text, path)


def read_report(path: Path) -> pd.DataFrame:
    return pd.read_csv(path, sep="\t", dtype={"id": str, "status": str})
