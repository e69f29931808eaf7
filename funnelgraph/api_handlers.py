"""
Shared API handlers for the funnel graph endpoints.

Used by dev-server.py (FastAPI). Handlers take the parsed JSON body and
return a JSON-ready dict, so the HTTP layer only maps errors to status
codes.
"""
import re
from typing import Dict, Any, Optional

from .connections import settings_for_connection
from .settings import settings_from_dict
from .runner.types import (
    AnalyticsContext,
    GraphRequest,
    PathsRequest,
    order_by_count_then_key,
)
from .runner.graph_builder import run_build_graph, run_build_paths, get_graph_stats
from .runner.summary_source import ElasticsearchSummarySource


# Backend location is chosen by 'connection' only, never by request overrides
_PROTECTED_SETTINGS = ('es_url',)
_BAD_TENANT_RE = re.compile(r"[*,\s]")


def _build_context(data: Dict[str, Any], source: Optional[Any]) -> AnalyticsContext:
    """
    Resolve settings and summary source for one request.

    Body fields used:
        - connection: Optional named connection from connections.yaml
        - settings: Optional per-request overrides of BuilderSettings fields
          (es_url is ignored)
        - stableOrder: Optional (default False) - order path buckets by
          count then key before ids are assigned
    """
    settings = settings_for_connection(data.get('connection'))
    overrides = data.get('settings')
    if isinstance(overrides, dict):
        overrides = {k: v for k, v in overrides.items() if k not in _PROTECTED_SETTINGS}
    else:
        overrides = None
    settings = settings_from_dict(overrides, base=settings)
    if source is None:
        source = ElasticsearchSummarySource(settings)
    bucket_order = order_by_count_then_key if data.get('stableOrder', False) else None
    return AnalyticsContext(source=source, bucket_order=bucket_order)


def _require_tenant(data: Dict[str, Any]) -> str:
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    tenant = data.get('tenant')
    if not tenant or not isinstance(tenant, str):
        raise ValueError("Missing 'tenant' field")
    if _BAD_TENANT_RE.search(tenant):
        raise ValueError(f"Invalid tenant: {tenant!r}")
    return tenant


def handle_build_graph(data: Dict[str, Any], source: Optional[Any] = None) -> Dict[str, Any]:
    """
    Handle graph endpoint.

    Args:
        data: Request body containing:
            - tenant: Tenant whose sessions are summarised (required)
            - filters: Optional backend filter clauses
            - includeStats: Optional (default False) - add get_graph_stats()
            - connection / settings / stableOrder: see _build_context
        source: Summary source override (tests); defaults to Elasticsearch

    Returns:
        {"success": True, "graph": {...}} or
        {"success": False, "error": {"error_type", "message", "details"}}
    """
    tenant = _require_tenant(data)
    request = GraphRequest.model_validate({'filters': data.get('filters') or []})
    context = _build_context(data, source)

    response = run_build_graph(tenant, context, request)
    if not response.success:
        return {"success": False, "error": response.error.model_dump()}

    body = {
        "success": True,
        "graph": response.result.model_dump(by_alias=True),
    }
    if data.get('includeStats', False):
        body["stats"] = get_graph_stats(response.result)
    return body


def handle_build_paths(data: Dict[str, Any], source: Optional[Any] = None) -> Dict[str, Any]:
    """
    Handle paths endpoint.

    Args:
        data: Request body containing:
            - tenant: Tenant whose sessions are summarised (required)
            - filters: Optional backend filter clauses
            - connection / settings / stableOrder: see _build_context
        source: Summary source override (tests); defaults to Elasticsearch

    Returns:
        {"success": True, "paths": {...}} or the error shape of handle_build_graph
    """
    tenant = _require_tenant(data)
    request = PathsRequest.model_validate({'filters': data.get('filters') or []})
    context = _build_context(data, source)

    response = run_build_paths(tenant, context, request)
    if not response.success:
        return {"success": False, "error": response.error.model_dump()}

    return {
        "success": True,
        "paths": response.result.model_dump(by_alias=True),
    }
