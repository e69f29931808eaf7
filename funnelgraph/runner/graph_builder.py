"""
Graph Builder

Assembles the funnel graph and the path-enumeration view from the two
aggregation summaries, and exposes the build operations called by the
API layer.

    edge summary ──> aggregate_edges ─────────────────┐
                                                      ├─> Graph
    path summary ──> aggregate_paths ──> rank_nodes ──┘

    path summary ──> aggregate_paths ───────────────────> Paths

Every structure is local to one call; builds share no state.
"""

from typing import Any, Optional
import networkx as nx

from ..graph_types import Graph, GraphNode, Paths, UNRANKED
from .edge_aggregator import aggregate_edges, has_edges
from .path_aggregator import aggregate_paths
from .node_ranker import rank_nodes
from .types import (
    AnalyticsContext,
    AnalyticsError,
    BackendError,
    BuildError,
    BucketOrder,
    EdgeSummary,
    GraphRequest,
    GraphResponse,
    PathsRequest,
    PathsResponse,
    PathSummary,
    BACKEND_FAILURE,
    INVARIANT_VIOLATION,
)


# ============================================================================
# Assembly
# ============================================================================

def _path_buckets(path_summary: Optional[PathSummary], bucket_order: Optional[BucketOrder]) -> list[tuple[str, int]]:
    if path_summary is None:
        raise ValueError("Path aggregation missing from a successful summary query")
    buckets = list(path_summary.items())
    if bucket_order is not None:
        buckets = list(bucket_order(buckets))
    return buckets


def assemble_graph(
    edge_summary: Optional[EdgeSummary],
    path_summary: Optional[PathSummary],
    bucket_order: Optional[BucketOrder] = None,
) -> Graph:
    """
    Build the ranked funnel graph.

    An absent or empty edge summary means no matching sessions: the empty
    Graph is returned and the path summary is not looked at.

    Vertices come from the path summary only, ranked and sorted by id;
    edges keep bucket order.
    """
    if not has_edges(edge_summary):
        return Graph.empty()

    edges = aggregate_edges(edge_summary)
    aggregation = aggregate_paths(_path_buckets(path_summary, bucket_order))
    ranks = rank_nodes(aggregation.sequences, names=aggregation.names())

    vertices = [
        GraphNode(id=node.id, name=node.name, rank=ranks.get(name, UNRANKED))
        for name, node in aggregation.vertices.items()
    ]
    vertices.sort(key=lambda node: node.id)

    return Graph(vertices=vertices, edges=edges)


def assemble_paths(
    path_summary: Optional[PathSummary],
    bucket_order: Optional[BucketOrder] = None,
) -> Paths:
    """Build the path-enumeration view. Vertices stay in first-seen order, unranked."""
    aggregation = aggregate_paths(_path_buckets(path_summary, bucket_order))
    return Paths(vertices=aggregation.vertex_list(), paths=aggregation.paths)


# ============================================================================
# Build operations
# ============================================================================

def _classify(e: Exception) -> str:
    if isinstance(e, BackendError):
        return BACKEND_FAILURE
    return INVARIANT_VIOLATION


def build_graph(tenant: str, context: AnalyticsContext, request: GraphRequest) -> Graph:
    """
    Fetch both summaries for tenant and assemble the graph.

    Raises:
        AnalyticsError: wrapping whatever went wrong; no partial graph
    """
    try:
        edge_summary, path_summary = context.source.fetch_graph_summaries(tenant, request)
        return assemble_graph(edge_summary, path_summary, context.bucket_order)
    except Exception as e:
        kind = _classify(e)
        print(f"[build_graph] Error running grouping for tenant={tenant!r} ({kind}): {type(e).__name__}: {e}")
        raise AnalyticsError(kind, 'build_graph', e) from e


def build_paths(tenant: str, context: AnalyticsContext, request: PathsRequest) -> Paths:
    """
    Fetch the path summary for tenant and assemble the path view.

    Raises:
        AnalyticsError: wrapping whatever went wrong; no partial result
    """
    try:
        path_summary = context.source.fetch_path_summary(tenant, request)
        return assemble_paths(path_summary, context.bucket_order)
    except Exception as e:
        kind = _classify(e)
        print(f"[build_paths] Error calculating paths for tenant={tenant!r} ({kind}): {type(e).__name__}: {e}")
        raise AnalyticsError(kind, 'build_paths', e) from e


def run_build_graph(tenant: str, context: AnalyticsContext, request: GraphRequest) -> GraphResponse:
    """build_graph as a typed result instead of an exception."""
    try:
        return GraphResponse(success=True, result=build_graph(tenant, context, request))
    except AnalyticsError as e:
        return GraphResponse(success=False, error=BuildError.from_exception(e))


def run_build_paths(tenant: str, context: AnalyticsContext, request: PathsRequest) -> PathsResponse:
    """build_paths as a typed result instead of an exception."""
    try:
        return PathsResponse(success=True, result=build_paths(tenant, context, request))
    except AnalyticsError as e:
        return PathsResponse(success=False, error=BuildError.from_exception(e))


# ============================================================================
# NetworkX export
# ============================================================================

def build_networkx_graph(graph: Graph) -> nx.DiGraph:
    """
    Convert a funnel Graph to a NetworkX DiGraph keyed by node name.

    Node attributes: id, rank (None for endpoints with no vertex).
    Edge attributes: weight.

    Edge endpoints missing from graph.vertices are still added so the
    topology is complete; they carry id=None and dangling=True.
    """
    G = nx.DiGraph()

    for node in graph.vertices:
        G.add_node(node.name, id=node.id, rank=node.rank, dangling=False)

    for edge in graph.edges:
        for endpoint in (edge.from_, edge.to):
            if endpoint not in G:
                G.add_node(endpoint, id=None, rank=UNRANKED, dangling=True)
        G.add_edge(edge.from_, edge.to, weight=edge.weight)

    return G


def find_entry_nodes(G: nx.DiGraph) -> list[str]:
    """Nodes with outgoing transitions and no incoming ones."""
    return sorted(n for n in G.nodes if G.in_degree(n) == 0 and G.out_degree(n) > 0)


def find_exit_nodes(G: nx.DiGraph) -> list[str]:
    """Nodes with incoming transitions and no outgoing ones."""
    return sorted(n for n in G.nodes if G.out_degree(n) == 0 and G.in_degree(n) > 0)


def get_graph_stats(graph: Graph) -> dict[str, Any]:
    """Summary numbers for a built graph."""
    G = build_networkx_graph(graph)
    vertex_names = {node.name for node in graph.vertices}

    return {
        'node_count': len(graph.vertices),
        'edge_count': len(graph.edges),
        'total_transitions': sum(edge.weight for edge in graph.edges),
        'entry_nodes': find_entry_nodes(G),
        'exit_nodes': find_exit_nodes(G),
        'dangling_nodes': sorted(n for n in G.nodes if n not in vertex_names),
        'unranked_nodes': sorted(node.name for node in graph.vertices if node.rank is UNRANKED),
        'is_dag': nx.is_directed_acyclic_graph(G),
    }

