"""
Node Ranker

Assigns every node an integer rank describing where it typically sits in
a traversal: entry states get low ranks, late/exit states high ranks.

Scoring:
    For each occurrence of a node at 0-based index i in a path seen c times,
    accumulate c*i and c. The node's weighted position is
        mean = sum(c*i) / sum(c)
    and its rank is mean rounded half up. Every occurrence counts, so a
    node repeated inside one path contributes each of its positions.
    If all of a node's paths have count 0 the unweighted mean of its
    positions is used instead.

Results are ordered by (mean, name) so iteration order is reproducible
and equal means fall back to lexical order.
"""

import math
from typing import Iterable, Optional, Sequence

from ..graph_types import UNRANKED


def weighted_positions(paths: Iterable[tuple[Sequence[str], int]]) -> dict[str, float]:
    """
    Frequency-weighted mean ordinal position of every node.

    Args:
        paths: (node names in traversal order, path count) pairs

    Returns:
        Dict name -> mean position, ordered by (mean, name)
    """
    weighted_sum: dict[str, float] = {}
    weight: dict[str, int] = {}
    plain_sum: dict[str, int] = {}
    occurrences: dict[str, int] = {}

    for names, count in paths:
        for index, name in enumerate(names):
            weighted_sum[name] = weighted_sum.get(name, 0) + count * index
            weight[name] = weight.get(name, 0) + count
            plain_sum[name] = plain_sum.get(name, 0) + index
            occurrences[name] = occurrences.get(name, 0) + 1

    means = {}
    for name in occurrences:
        if weight[name] > 0:
            means[name] = weighted_sum[name] / weight[name]
        else:
            means[name] = plain_sum[name] / occurrences[name]

    return dict(sorted(means.items(), key=lambda kv: (kv[1], kv[0])))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def rank_nodes(
    paths: Iterable[tuple[Sequence[str], int]],
    names: Optional[Iterable[str]] = None,
) -> dict[str, Optional[int]]:
    """
    Rank nodes by their weighted mean position.

    Args:
        paths: (node names in traversal order, path count) pairs
        names: Optional node universe; names that occur in no path are
            returned with UNRANKED (None)

    Returns:
        Dict name -> rank, ranked nodes ordered by (mean, name), then any
        unranked names in the order given
    """
    ranks: dict[str, Optional[int]] = {
        name: _round_half_up(mean) for name, mean in weighted_positions(paths).items()
    }
    for name in names or []:
        if name not in ranks:
            ranks[name] = UNRANKED
    return ranks
