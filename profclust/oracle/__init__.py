#!/usr/bin/env python

from profclust.oracle.base import (
    SimilarityResult,
    SimilarityOracle,
    OracleOptions,
    best_hits,
    representative_for_profile,
)
from profclust.oracle.pssm import Pssm, read_smp, parse_smp
from profclust.oracle.blast import BlastOracle
from profclust.oracle.ungapped import UngappedOracle
from profclust.core.exceptions import ConfigurationError

ORACLES = {
    "blast": BlastOracle,
    "ungapped": UngappedOracle,
}


def get_oracle(name: str = "blast", program: str = "blastp") -> SimilarityOracle:
    """Return an oracle instance by name ('blast' or 'ungapped')."""
    try:
        return ORACLES[name](program=program)
    except KeyError:
        raise ConfigurationError(
            f"unknown oracle '{name}', choose from {list(ORACLES)}") from None
