"""
Pytest configuration for tests under tests/.

Tests import the package as `funnelgraph.*`. When the project is not
installed (no `pip install -e .`), the repo root is not automatically on
`sys.path`; this conftest puts it there regardless of invocation cwd.
"""

from __future__ import annotations

import sys
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
