#!/usr/bin/env python

from profclust.schema.params_schema import Params
from profclust.schema.project_schema import (
    ProjectSchema,
    BucketStats,
    ProfileStats,
    StatsFiles,
)
