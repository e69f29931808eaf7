#!/usr/bin/env python3
"""
dev-server.py - Local development server for the funnel graph builds.

Run: python dev-server.py
Backend settings come from FUNNEL_* environment variables (optionally in
.env.local) or a named connection in defaults/connections.yaml.
"""
from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
import os

from funnelgraph.api_handlers import handle_build_graph, handle_build_paths
from funnelgraph.runner.types import BACKEND_FAILURE

load_dotenv(os.path.join(os.path.dirname(__file__), '.env.local'))

# Read configuration from environment
FRONTEND_PORT = os.environ.get("VITE_PORT", "5173")
ALLOWED_ORIGINS = os.environ.get(
    "ALLOWED_ORIGINS",
    f"http://localhost:{FRONTEND_PORT},http://127.0.0.1:{FRONTEND_PORT}"
).split(",")

app = FastAPI(
    title="Funnel Graph (Local Dev)",
    version="1.0.0",
    description="Funnel graph and path enumeration from session aggregations"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
@app.get("/api")
def health():
    return {
        "status": "ok",
        "service": "funnel-graph",
        "env": "local"
    }


def _raise_for_build_error(result: dict):
    """Map a failed build to 502 (backend) or 500 (internal)."""
    if result.get("success"):
        return
    error = result.get("error") or {}
    status = 502 if error.get("error_type") == BACKEND_FAILURE else 500
    raise HTTPException(status_code=status, detail=error)


@app.post("/api/graph")
async def graph_endpoint(request: Request):
    """
    Build the ranked funnel graph for a tenant.

    Request: { "tenant": "acme", "filters": [...], "includeStats": false }
    Response: { "graph": {"vertices": [...], "edges": [...]}, "success": true }
    """
    try:
        data = await request.json()
        result = handle_build_graph(data)
        _raise_for_build_error(result)
        return result
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/paths")
async def paths_endpoint(request: Request):
    """
    Enumerate distinct traversal paths for a tenant.

    Request: { "tenant": "acme", "filters": [...] }
    Response: { "paths": {"vertices": [...], "paths": [...]}, "success": true }
    """
    try:
        data = await request.json()
        result = handle_build_paths(data)
        _raise_for_build_error(result)
        return result
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PYTHON_API_PORT", "9000"))
    print(f"[dev-server] Listening on http://localhost:{port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
