#!/usr/bin/env python

"""Policies deciding which assigned members also join the pool.

With `RepresentativeOnly` the pool holds exactly one entry per
cluster. `DivergentMembers` also admits a bounded number of members
that are not too close to the pool entry they matched, so that a
cluster can recruit relatives of its later members that the original
representative alone would miss.
"""

from abc import ABC, abstractmethod
from profclust.core.sequence import Sequence
from profclust.core.exceptions import ConfigurationError
from profclust.oracle.base import SimilarityResult


class DiversityPolicy(ABC):
    """Decide whether an assigned member is added to the pool."""

    @abstractmethod
    def admit(self, sequence: Sequence, result: SimilarityResult, measure: str, nextra: int) -> bool:
        """Return True to add sequence to the pool.

        Parameters
        ----------
        sequence: Sequence
            The member just assigned to a cluster.
        result: SimilarityResult
            Its best qualifying hit (against a pool entry of the cluster).
        measure: str
            The similarity measure the engine uses.
        nextra: int
            Number of non-representative pool entries the cluster has.
        """


class RepresentativeOnly(DiversityPolicy):
    """Single-representative mode: never admit members."""

    def admit(self, sequence, result, measure, nextra) -> bool:
        return False

    def __repr__(self):
        return "RepresentativeOnly()"


class DivergentMembers(DiversityPolicy):
    """Admit members below a similarity ceiling, up to a count per cluster."""

    def __init__(self, max_per_cluster: int = 4, max_similarity: float = 0.95):
        if max_per_cluster < 0:
            raise ConfigurationError("max_per_cluster must be >= 0")
        if max_similarity <= 0:
            raise ConfigurationError("max_similarity must be > 0")
        self.max_per_cluster = max_per_cluster
        self.max_similarity = max_similarity

    def admit(self, sequence, result, measure, nextra) -> bool:
        if nextra >= self.max_per_cluster:
            return False
        return result.score(measure) < self.max_similarity

    def __repr__(self):
        return (
            f"DivergentMembers(max_per_cluster={self.max_per_cluster}, "
            f"max_similarity={self.max_similarity})")
