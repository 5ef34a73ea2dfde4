#!/usr/bin/env python

"""Exceptions raised by profclust.

Configuration and input format errors are fatal to the run that
detects them. External tool errors abort only the enclosing cluster
job. Empty results are legitimate terminal states and are usually
handled by the caller rather than reported as failures.
"""


class ProfClustError(Exception):
    """Raise a custom exception that will report with traceback.

    This is used to catch and report internal errors in the code,
    and the traceback will include the source error and error type
    for debugging.
    """
    def __init__(self, *args, **kwargs):
        Exception.__init__(self, *args, **kwargs)


class ConfigurationError(ProfClustError):
    """Bad threshold, worker count, traversal name, or other setting."""


class InputFormatError(ProfClustError):
    """Malformed input records."""


class DuplicateIdError(InputFormatError):
    """A sequence id was seen twice under the strict duplicate policy."""


class ExternalToolError(ProfClustError):
    """An external program is missing, failed, or wrote garbage."""


class OracleInvocationError(ExternalToolError):
    """The similarity tool (BLAST+) failed."""


class AlignerInvocationError(ExternalToolError):
    """The multiple sequence aligner (muscle) failed."""


class EmptyResultError(ProfClustError):
    """A zero-output condition that the caller may decide to accept."""


class EmptyAlignmentError(EmptyResultError):
    """Purification was asked to work on an alignment with no rows."""
