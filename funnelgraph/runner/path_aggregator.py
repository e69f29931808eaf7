"""
Path Aggregator

Turns the flat path summary (encoded path -> session count) into FlatPath
records and the table of distinct nodes taking part in them.

Node identity is the decoded name, used both to look a node up and to
store it, so two tokens decoding to the same name share one GraphNode.
Ids are handed out 0, 1, 2, ... the first time a name is seen, scanning
buckets in the order given and nodes in traversal order.
"""

from dataclasses import dataclass, field
from typing import Iterable

from ..graph_types import FlatPath, GraphNode
from ..name_codec import decode, split_path


@dataclass
class PathAggregation:
    """Output of aggregate_paths()."""
    paths: list[FlatPath] = field(default_factory=list)
    vertices: dict[str, GraphNode] = field(default_factory=dict)  # name -> node, insertion = id order
    sequences: list[tuple[list[str], int]] = field(default_factory=list)  # (decoded names, count) per path

    def vertex_list(self) -> list[GraphNode]:
        """Vertices in first-seen order."""
        return list(self.vertices.values())

    def names(self) -> list[str]:
        return list(self.vertices.keys())


def aggregate_paths(buckets: Iterable[tuple[str, int]]) -> PathAggregation:
    """
    Aggregate (encodedPath, count) buckets.

    Args:
        buckets: Path buckets in backend (or caller-pinned) order

    Returns:
        PathAggregation with one FlatPath per bucket (path kept encoded),
        the deduplicated vertex table and the decoded node sequences used
        for ranking.

    Raises:
        NameDecodeError: a node token in some path is malformed
    """
    result = PathAggregation()
    node_counter = 0

    for encoded_path, count in buckets:
        names = [decode(token) for token in split_path(encoded_path)]
        result.paths.append(FlatPath(path=encoded_path, count=count))
        result.sequences.append((names, count))

        for name in names:
            if name not in result.vertices:
                result.vertices[name] = GraphNode(id=node_counter, name=name)
                node_counter += 1

    return result
