#!/usr/bin/env python

"""Orders in which the clustering engine visits its input.

input   as given
length  longest first (stable), so long sequences found clusters
        before fragments of them arrive
median  the sequence of median length first, then alternating
        outward (m, m+1, m-1, m+2, m-2, ...), so that neither the
        shortest nor the longest members anchor the early clusters
"""

from typing import List, Callable, Dict
from profclust.core.sequence import Sequence
from profclust.core.exceptions import ConfigurationError


def input_order(seqs: List[Sequence]) -> List[Sequence]:
    return list(seqs)


def length_order(seqs: List[Sequence]) -> List[Sequence]:
    return sorted(seqs, key=lambda x: -len(x.ungapped))


def median_order(seqs: List[Sequence]) -> List[Sequence]:
    ascending = sorted(seqs, key=lambda x: len(x.ungapped))
    nseqs = len(ascending)
    if not nseqs:
        return []
    mid = nseqs // 2
    order = [mid]
    step = 1
    while len(order) < nseqs:
        if mid + step < nseqs:
            order.append(mid + step)
        if mid - step >= 0:
            order.append(mid - step)
        step += 1
    return [ascending[i] for i in order]


TRAVERSALS: Dict[str, Callable[[List[Sequence]], List[Sequence]]] = {
    "input": input_order,
    "length": length_order,
    "median": median_order,
}


def get_traversal(name: str) -> Callable[[List[Sequence]], List[Sequence]]:
    """Return the ordering function for a traversal name."""
    try:
        return TRAVERSALS[name]
    except KeyError:
        raise ConfigurationError(
            f"unknown traversal '{name}', choose from {list(TRAVERSALS)}") from None


def traverse(seqs: List[Sequence], name: str) -> List[Sequence]:
    """Return seqs in the order of the named traversal."""
    return get_traversal(name)(seqs)
