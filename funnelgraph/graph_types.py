"""
Funnel graph data types using Pydantic

Output shapes produced by the graph/path builds. Field names and the
aliased 'from' field match the JSON returned by the HTTP surface.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from .name_codec import decode_path


# Rank value for nodes that never occur in a path
UNRANKED: Optional[int] = None


class GraphNode(BaseModel):
    """A funnel state. id is dense and assigned in first-seen order."""
    id: int = Field(..., ge=0, description="Dense per-build identifier, first-seen order")
    name: str = Field(..., description="Decoded display name")
    rank: Optional[int] = Field(UNRANKED, description="Typical step class in a path; None when unranked")


class GraphEdge(BaseModel):
    """Observed from -> to transition with its count."""
    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from", description="Decoded source node name")
    to: str = Field(..., description="Decoded target node name")
    weight: int = Field(..., ge=0, description="Observed transition count")


class FlatPath(BaseModel):
    """One distinct complete traversal and how often it occurred."""
    path: str = Field(..., description="Encoded, separator-joined node tokens")
    count: int = Field(..., ge=0, description="Number of sessions with this traversal")

    def nodes(self) -> List[str]:
        """Decoded node names in traversal order."""
        return decode_path(self.path)


class Graph(BaseModel):
    """
    Ranked funnel graph.

    NOTE: vertices come from path records only. An edge endpoint that never
    occurs in a path has no GraphNode here; consumers must not assume every
    edge endpoint resolves to a vertex (see get_graph_stats 'dangling_nodes').
    """
    vertices: List[GraphNode] = Field(default_factory=list, description="Sorted ascending by id")
    edges: List[GraphEdge] = Field(default_factory=list, description="In bucket arrival order")

    @classmethod
    def empty(cls) -> "Graph":
        return cls(vertices=[], edges=[])

    def is_empty(self) -> bool:
        return not self.vertices and not self.edges


class Paths(BaseModel):
    """Path enumeration view: distinct traversals plus their nodes."""
    vertices: List[GraphNode] = Field(default_factory=list, description="First-seen order, never re-sorted")
    paths: List[FlatPath] = Field(default_factory=list)
