"""
Summary Sources

A summary source produces the two aggregation summaries a build consumes:

    edge summary   fromToken -> {toToken -> docCount}   (None when absent)
    path summary   encodedPath -> docCount              (None when absent)

Builders receive the source through AnalyticsContext, never from a global.
InMemorySummarySource serves fixed summaries (tests, replays);
ElasticsearchSummarySource runs the terms aggregations over session and
state-transition documents with one multi-search round trip.
"""

import json
from typing import Any, Optional, Protocol

import requests

from ..settings import BuilderSettings
from .types import BackendError, EdgeSummary, PathSummary


FROM_NODES_AGG = "from_nodes"
TO_NODES_AGG = "to_nodes"
PATHS_AGG = "paths"


class SummarySource(Protocol):
    def fetch_graph_summaries(
        self, tenant: str, request: Any
    ) -> tuple[Optional[EdgeSummary], Optional[PathSummary]]:
        ...

    def fetch_path_summary(self, tenant: str, request: Any) -> Optional[PathSummary]:
        ...


class InMemorySummarySource:
    """Serves the same pre-computed summaries for every tenant and request."""

    def __init__(self, edges: Optional[EdgeSummary] = None, paths: Optional[PathSummary] = None):
        self.edges = edges
        self.paths = paths
        self.calls: list[tuple[str, str]] = []

    def fetch_graph_summaries(self, tenant, request):
        self.calls.append(('graph', tenant))
        return self.edges, self.paths

    def fetch_path_summary(self, tenant, request):
        self.calls.append(('paths', tenant))
        return self.paths


# ============================================================================
# Elasticsearch
# ============================================================================

def tenant_indices(settings: BuilderSettings, tenant: str) -> str:
    """Index pattern covering every index of a tenant."""
    if not tenant:
        raise ValueError("tenant is required")
    return f"{settings.index_prefix}-{tenant}-*"


def _session_query(filters: list[dict[str, Any]]) -> dict[str, Any]:
    return {"bool": {"filter": list(filters)}}


def build_transition_summary_body(settings: BuilderSettings, filters: list[dict[str, Any]]) -> dict[str, Any]:
    """
    State transitions whose parent session matches the filters, grouped
    by from node then to node.
    """
    return {
        "size": 0,
        "_source": False,
        "query": {
            "bool": {
                "filter": [{
                    "has_parent": {
                        "parent_type": settings.session_type,
                        "query": _session_query(filters),
                    }
                }]
            }
        },
        "aggs": {
            FROM_NODES_AGG: {
                "terms": {"field": "from", "size": settings.max_buckets},
                "aggs": {
                    TO_NODES_AGG: {
                        "terms": {"field": "to", "size": settings.max_buckets},
                    }
                },
            }
        },
    }


def build_path_summary_body(settings: BuilderSettings, filters: list[dict[str, Any]]) -> dict[str, Any]:
    """Sessions matching the filters, grouped by normalised (encoded) path."""
    return {
        "size": 0,
        "_source": False,
        "query": _session_query(filters),
        "aggs": {
            PATHS_AGG: {
                "terms": {"field": "normalizedPath", "size": settings.max_buckets},
            }
        },
    }


def parse_edge_summary(response: dict[str, Any]) -> Optional[EdgeSummary]:
    """from_nodes/to_nodes buckets -> nested dict. None when the aggregation is absent."""
    aggregations = response.get("aggregations")
    if not aggregations or FROM_NODES_AGG not in aggregations:
        return None

    summary: EdgeSummary = {}
    for from_bucket in aggregations[FROM_NODES_AGG].get("buckets", []):
        targets = summary.setdefault(str(from_bucket["key"]), {})
        for to_bucket in from_bucket.get(TO_NODES_AGG, {}).get("buckets", []):
            targets[str(to_bucket["key"])] = int(to_bucket["doc_count"])
    return summary


def parse_path_summary(response: dict[str, Any]) -> Optional[PathSummary]:
    """paths buckets -> flat dict. None when the aggregation is absent."""
    aggregations = response.get("aggregations")
    if not aggregations or PATHS_AGG not in aggregations:
        return None

    return {
        str(bucket["key"]): int(bucket["doc_count"])
        for bucket in aggregations[PATHS_AGG].get("buckets", [])
    }


class ElasticsearchSummarySource:
    """
    Summary source backed by an Elasticsearch cluster over HTTP.

    Indices are resolved leniently: a tenant without indices yields empty
    aggregations rather than an error.
    """

    def __init__(self, settings: Optional[BuilderSettings] = None, session: Optional[requests.Session] = None):
        self.settings = settings or BuilderSettings()
        self.session = session or requests.Session()

    def fetch_graph_summaries(self, tenant, request):
        filters = list(getattr(request, 'filters', []) or [])
        bodies = [
            build_transition_summary_body(self.settings, filters),
            build_path_summary_body(self.settings, filters),
        ]
        responses = self._msearch(tenant_indices(self.settings, tenant), bodies)
        return parse_edge_summary(responses[0]), parse_path_summary(responses[1])

    def fetch_path_summary(self, tenant, request):
        filters = list(getattr(request, 'filters', []) or [])
        body = build_path_summary_body(self.settings, filters)
        responses = self._msearch(tenant_indices(self.settings, tenant), [body])
        return parse_path_summary(responses[0])

    def _msearch(self, index: str, bodies: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Run bodies as one _msearch against index.

        Raises:
            BackendError: transport failure, non-2xx status, undecodable
                reply, an error entry, a timeout or failed shards for
                any of the searches
        """
        header = {"index": index, "ignore_unavailable": True, "allow_no_indices": True}
        lines = []
        for body in bodies:
            lines.append(json.dumps(header))
            lines.append(json.dumps(body))
        payload = "\n".join(lines) + "\n"

        url = f"{self.settings.es_url.rstrip('/')}/_msearch"
        if self.settings.debug:
            print(f"[ES] POST {url}")
            for body in bodies:
                print(f"[ES] query: {json.dumps(body)}")

        try:
            response = self.session.post(
                url,
                data=payload.encode("utf-8"),
                headers={"Content-Type": "application/x-ndjson"},
                timeout=self.settings.timeout_seconds,
            )
        except requests.RequestException as e:
            raise BackendError(f"msearch request to {url} failed: {e}") from e

        if response.status_code >= 300:
            raise BackendError(
                f"msearch returned HTTP {response.status_code}: {response.text[:500]}",
                status=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise BackendError(f"msearch returned invalid JSON: {e}") from e

        results = data.get("responses")
        if not isinstance(results, list) or len(results) != len(bodies):
            raise BackendError(
                f"msearch returned {len(results) if isinstance(results, list) else 'no'} responses "
                f"for {len(bodies)} searches"
            )

        for i, result in enumerate(results):
            if "error" in result:
                raise BackendError(
                    f"search {i} failed: {json.dumps(result['error'])[:500]}",
                    status=result.get("status"),
                )
            # Partial aggregations are not usable
            if result.get("timed_out"):
                raise BackendError(f"search {i} timed out")
            shards = result.get("_shards") or {}
            if shards.get("failed", 0) > 0:
                raise BackendError(
                    f"search {i} failed on {shards['failed']} of {shards.get('total', '?')} shards"
                )
        return results
