"""
Connection Loader

Loads named search-backend connections from connections.yaml so callers
can pick a backend by name ("local", "prod", ...) instead of wiring URLs.
"""

import yaml
from typing import Dict, Any, Optional
from pathlib import Path

from .settings import BuilderSettings, settings_from_dict, settings_from_env


DEFAULT_CONNECTIONS_PATH = Path(__file__).resolve().parent.parent / "defaults" / "connections.yaml"


def load_connections(path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load connection entries from connections.yaml.

    Returns:
        Dict mapping connection name -> raw settings dict
        Example: {
            "local": {"es_url": "http://localhost:9200", "index_prefix": "funnel"}
        }
    """
    connections_path = Path(path) if path else DEFAULT_CONNECTIONS_PATH

    if not connections_path.exists():
        print(f"[WARNING] connections.yaml not found at {connections_path}")
        return {}

    with open(connections_path, 'r') as f:
        connections_data = yaml.safe_load(f) or {}

    connections = {}
    for conn in connections_data.get('connections', []):
        conn_name = conn.get('name')
        if conn_name:
            connections[conn_name] = conn.get('settings', {}) or {}
    return connections


def settings_for_connection(name: Optional[str], path: Optional[Path] = None) -> BuilderSettings:
    """
    Resolve settings for a named connection.

    Environment variables form the base; the named entry overrides them.
    An unknown name is a configuration error.
    """
    base = settings_from_env()
    if not name:
        return base

    connections = load_connections(path)
    if name not in connections:
        raise ValueError(f"Unknown connection: {name!r} (known: {', '.join(sorted(connections)) or 'none'})")
    return settings_from_dict(connections[name], base=base)
