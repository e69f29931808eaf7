"""
Funnel Graph Builder Package

Turns backend aggregation summaries into the ranked funnel graph and the
path-enumeration view.
"""

from .types import (
    GraphRequest,
    PathsRequest,
    AnalyticsContext,
    GraphResponse,
    PathsResponse,
    BuildError,
    AnalyticsError,
    BackendError,
    order_by_count_then_key,
)

from .graph_builder import (
    assemble_graph,
    assemble_paths,
    build_graph,
    build_paths,
    run_build_graph,
    run_build_paths,
    build_networkx_graph,
    get_graph_stats,
)
from .summary_source import InMemorySummarySource, ElasticsearchSummarySource

__all__ = [
    # Types
    'GraphRequest',
    'PathsRequest',
    'AnalyticsContext',
    'GraphResponse',
    'PathsResponse',
    'BuildError',
    'AnalyticsError',
    'BackendError',
    'order_by_count_then_key',
    # Functions
    'assemble_graph',
    'assemble_paths',
    'build_graph',
    'build_paths',
    'run_build_graph',
    'run_build_paths',
    'build_networkx_graph',
    'get_graph_stats',
    # Sources
    'InMemorySummarySource',
    'ElasticsearchSummarySource',
]
