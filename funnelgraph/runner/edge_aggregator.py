"""
Edge Aggregator

Flattens the nested from -> to transition summary into weighted edges.
"""

from typing import Optional

from ..graph_types import GraphEdge
from ..name_codec import decode
from .types import EdgeSummary


def has_edges(edge_summary: Optional[EdgeSummary]) -> bool:
    """False when the aggregation is absent or has no buckets (no matching sessions)."""
    return bool(edge_summary)


def aggregate_edges(edge_summary: Optional[EdgeSummary]) -> list[GraphEdge]:
    """
    Convert {fromToken: {toToken: count}} into GraphEdges.

    Tokens are decoded to display names and count becomes weight. The
    backend already yields one count per (from, to) pair, so nothing is
    merged; output follows bucket arrival order.

    Raises:
        NameDecodeError: a bucket key is not a valid token
    """
    edges = []
    if not edge_summary:
        return edges

    for from_token, targets in edge_summary.items():
        from_name = decode(from_token)
        for to_token, count in (targets or {}).items():
            edges.append(GraphEdge(**{
                'from': from_name,
                'to': decode(to_token),
                'weight': count,
            }))
    return edges
