#!/usr/bin/env python

from profclust.core.exceptions import (
    ProfClustError,
    ConfigurationError,
    InputFormatError,
    DuplicateIdError,
    ExternalToolError,
    OracleInvocationError,
    AlignerInvocationError,
    EmptyResultError,
    EmptyAlignmentError,
)
from profclust.core.sequence import Sequence, Alignment, Cluster, ClusterAssignment
from profclust.core.progress import progress, track_remote_jobs
