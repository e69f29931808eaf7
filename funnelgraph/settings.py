"""
Builder settings — search backend location and aggregation limits.

Defaults are for local development. Deployments supply values through the
environment (settings_from_env) or a named entry in connections.yaml
(see connections.py). Request bodies may override individual fields via
settings_from_dict.
"""

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class BuilderSettings:
    """Everything the Elasticsearch summary source needs to run its queries."""

    es_url: str = "http://localhost:9200"
    """Base URL of the search backend."""

    index_prefix: str = "funnel"
    """Tenant indices are '{index_prefix}-{tenant}-*'."""

    session_type: str = "session"
    """Join-field parent type of session documents."""

    max_buckets: int = 10000
    """Terms bucket size used for the 'all buckets' aggregations."""

    timeout_seconds: float = 30.0
    """HTTP timeout for one multi-search round trip."""

    debug: bool = False
    """Print generated query bodies."""


_ENV_KEYS = {
    "es_url": "FUNNEL_ES_URL",
    "index_prefix": "FUNNEL_INDEX_PREFIX",
    "session_type": "FUNNEL_SESSION_TYPE",
    "max_buckets": "FUNNEL_MAX_BUCKETS",
    "timeout_seconds": "FUNNEL_ES_TIMEOUT",
    "debug": "FUNNEL_DEBUG",
}


def _coerce(field_name: str, value: Any) -> Any:
    """Convert a raw value to the field's type. Returns None when it can't."""
    default = getattr(BuilderSettings, field_name)
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return None
    if isinstance(default, int):
        try:
            n = int(value)
        except (TypeError, ValueError):
            return None
        return n if n > 0 else None
    if isinstance(default, float):
        try:
            f = float(value)
        except (TypeError, ValueError):
            return None
        return f if f > 0 else None
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def settings_from_dict(d: Optional[Dict[str, Any]], base: Optional[BuilderSettings] = None) -> BuilderSettings:
    """
    Construct BuilderSettings from a dict (e.g. a request body or YAML entry).

    Missing fields keep the base values. Extra fields and values of the
    wrong type are ignored.
    """
    settings = base or BuilderSettings()
    if not d:
        return settings

    kwargs = {}
    for field_name in BuilderSettings.__dataclass_fields__:
        if field_name in d:
            val = _coerce(field_name, d[field_name])
            if val is not None:
                kwargs[field_name] = val
    return replace(settings, **kwargs)


def settings_from_env(environ: Optional[Dict[str, str]] = None) -> BuilderSettings:
    """Read FUNNEL_* environment variables on top of the defaults."""
    env = os.environ if environ is None else environ
    raw = {field_name: env[key] for field_name, key in _ENV_KEYS.items() if key in env}
    return settings_from_dict(raw)
