#!/usr/bin/env python

"""Params schema for type checking and serialization.

Pydantic Models are similar to dataclases but they also include
*type validation*, meaning that if you try to set an attribute to
the wrong type it will raise an error. By using type validation the
pydantic models can be easily serialized to JSON and then reloaded
as the appropriate data types.

Range checks that the engines also enforce are repeated here so that
a bad value is reported when it is set, rather than when a step runs.
"""

# pylint: disable=no-self-argument, no-name-in-module

from pathlib import Path
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, field_validator
from loguru import logger
from profclust.core.exceptions import ConfigurationError

logger = logger.bind(name="profclust")

Measure = Literal["identity", "positives", "nbs"]


class Params(BaseModel):
    """Project parameters for clustering and profile building."""
    project_name: str = Field(frozen=True)
    project_dir: Path = Field(default_factory=Path.cwd)
    fasta_paths: List[Path] = Field(default_factory=list)
    seed_paths: List[Path] = Field(default_factory=list)
    size_bins: List[int] = Field(default_factory=list)
    # clustering options
    clust_threshold: float = 0.8
    clust_measure: Measure = "identity"
    clust_min_coverage: float = 0.8
    clust_max_offset: Optional[float] = None
    traversal: Literal["input", "length", "median"] = "length"
    multi_representative: bool = False
    max_extra_representatives: int = 4
    max_representative_similarity: float = 0.95
    duplicate_policy: Literal["strict", "skip"] = "strict"
    cluster_order: Literal["creation", "size"] = "size"
    # similarity tool options
    oracle: Literal["blast", "ungapped"] = "blast"
    blast_program: Literal["blastp", "blastn"] = "blastp"
    max_e_value: float = 1e-3
    # profile options
    min_profile_size: int = 1
    min_depth: float = 0.25
    max_identity: Optional[float] = None
    max_positives: Optional[float] = None
    max_nbs: Optional[float] = None
    min_nbs: float = 0.25
    min_q_cover: float = 0.80
    min_s_cover: float = 0.80
    purify_max_e_value: float = 1e-4
    keep_first: bool = True
    no_pack: bool = False
    no_reorder: bool = False

    class Config:
        """Enables type checking validation when using setattr in API."""
        validate_assignment = True

    def __str__(self):
        return self.model_dump_json(indent=2)

    def __repr__(self):
        return self.model_dump_json(indent=2)

    @field_validator("project_name")
    @classmethod
    def _name_validator(cls, value: str) -> str:
        """Names cannot have whitespace. This becomes immutable."""
        if " " in value:
            raise ConfigurationError("project_name cannot contain spaces")
        if not value:
            raise ConfigurationError("project_name cannot be empty")
        return value

    @field_validator("project_dir")
    @classmethod
    def _dir_validator(cls, value: Path) -> Path:
        """Project_dir cannot have whitespace and is expanded."""
        if " " in value.name:
            raise ConfigurationError("project_dir cannot contain spaces")
        return value.expanduser().resolve()

    @field_validator("fasta_paths", "seed_paths", mode="before")
    @classmethod
    def _path_validator(cls, value) -> List[Path]:
        """Expand each path; warn if a path or glob matches no files."""
        if not value:
            return []
        if not isinstance(value, (list, tuple)):
            value = [value]
        paths = []
        for path in value:
            path = Path(path).expanduser().resolve()
            if path.is_dir():
                raise ConfigurationError(
                    "You entered a dir path where you must enter a file path.\n"
                    "To select multiple files in a dir you can use a glob, "
                    "e.g., './data/*.fasta'.")
            if not list(path.parent.glob(path.name)):
                logger.warning(f"no files match the path: {path}")
            paths.append(path)
        return paths

    @field_validator("size_bins")
    @classmethod
    def _size_bins_validator(cls, value: List[int]) -> List[int]:
        """Boundaries must be positive and are stored sorted."""
        if any(i <= 0 for i in value):
            raise ConfigurationError("size_bins must be positive lengths")
        if len(set(value)) != len(value):
            raise ConfigurationError("size_bins cannot contain duplicates")
        return sorted(value)

    @field_validator("clust_threshold")
    @classmethod
    def _threshold_validator(cls, value: float) -> float:
        if not 0 < value <= 1:
            raise ConfigurationError(f"clust_threshold must be in (0, 1], not {value}")
        return value

    @field_validator(
        "clust_min_coverage", "min_depth", "min_q_cover", "min_s_cover")
    @classmethod
    def _fraction_validator(cls, value: float) -> float:
        if not 0 <= value <= 1:
            raise ConfigurationError(f"fraction must be in [0, 1], not {value}")
        return value

    @field_validator("clust_max_offset", "max_identity", "max_positives")
    @classmethod
    def _optional_fraction_validator(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and not 0 <= value <= 1:
            raise ConfigurationError(f"fraction must be in [0, 1] or None, not {value}")
        return value

    @field_validator("max_representative_similarity")
    @classmethod
    def _similarity_validator(cls, value: float) -> float:
        if value <= 0:
            raise ConfigurationError(f"max_representative_similarity must be > 0, not {value}")
        return value

    @field_validator("max_e_value", "purify_max_e_value")
    @classmethod
    def _evalue_validator(cls, value: float) -> float:
        if value <= 0:
            raise ConfigurationError(f"e-value threshold must be > 0, not {value}")
        return value

    @field_validator("max_extra_representatives", "min_profile_size")
    @classmethod
    def _count_validator(cls, value: int) -> int:
        if value < 0:
            raise ConfigurationError(f"count must be >= 0, not {value}")
        return value


if __name__ == "__main__":

    PARAMS = Params(project_name="test", fasta_paths="./*.fasta")
    print(PARAMS)
