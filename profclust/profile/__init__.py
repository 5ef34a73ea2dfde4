#!/usr/bin/env python

from profclust.profile.profile_funcs import (
    ProfileJob,
    ProfileContext,
    cluster_cost,
    job_record,
    load_context,
    profile_cluster,
)
