#!/usr/bin/env python

"""Globals and small string helpers used commonly.

"""

import re
import string

# characters treated as alignment gaps on input. Output uses GAP.
GAP = "-"
GAP_CHARS = "-.~"
GAP_RE = re.compile(r"[-.~]+")

# used to make safe file names from bucket and cluster names.
BADCHARS = (
    string.punctuation
    .replace("_", "")
    .replace("-", "")
    .replace(".", "") + " "
)


def ungap(residues: str) -> str:
    """Return residues with all gap characters removed."""
    return GAP_RE.sub("", residues)


def leading_gaps(residues: str) -> int:
    """Return the length of the run of gaps at the start of a row."""
    return len(residues) - len(residues.lstrip(GAP_CHARS))


def trailing_gaps(residues: str) -> int:
    """Return the length of the run of gaps at the end of a row."""
    return len(residues) - len(residues.rstrip(GAP_CHARS))


def residue_count(residues: str) -> int:
    """Return the number of non-gap characters."""
    return sum(1 for i in residues if i not in GAP_CHARS)


def safe_name(name: str) -> str:
    """Replace characters that are awkward in file names with '_'."""
    for char in BADCHARS:
        name = name.replace(char, "_")
    return name
