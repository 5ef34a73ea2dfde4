#!/usr/bin/env python

"""Top-level schema for serializing Project objects to JSON and back.

"""

from typing import Dict, Optional
from pathlib import Path
from importlib.metadata import distribution, PackageNotFoundError
from pydantic import BaseModel, Field
from profclust.schema.params_schema import Params

try:
    VERSION = distribution("profclust").version
except PackageNotFoundError:
    VERSION = "0.0.0"


class BucketStats(BaseModel):
    """Stats of clustering one size bucket (step 1)."""
    nsequences: int = 0
    nclustered: int = 0
    nclusters: int = 0
    nsingletons: int = 0
    nseeds: int = 0
    nduplicates: int = 0
    nmalformed: int = 0
    npool: int = 0
    noracle_calls: int = 0


class ProfileStats(BaseModel):
    """Stats of building one cluster profile (step 2)."""
    bucket: str
    nmembers: int = 0
    ncolumns: int = 0
    nin_profile: int = 0
    nredundant: int = 0
    npoor_match: int = 0
    status: int = 0
    error: Optional[str] = None


class StatsFiles(BaseModel):
    s1: Optional[Path] = None
    s2: Optional[Path] = None


class ProjectSchema(BaseModel):
    """Everything written to the project JSON file.

    A Project calls `.save_json()` at the start of a run and at the
    end of each step, so a finished step's stats survive a failure
    in a later step.
    """
    version: str = VERSION
    params: Params
    cluster_stats: Dict[str, BucketStats] = Field(default_factory=dict)
    profile_stats: Dict[str, ProfileStats] = Field(default_factory=dict)
    stats_files: StatsFiles = StatsFiles()

    def __str__(self):
        return self.model_dump_json(indent=2)

    def __repr__(self):
        return self.model_dump_json(indent=2)
