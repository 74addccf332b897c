"""Service status endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter()

VERSION = "0.1.0"


@router.get("/health")
async def health_check(request: Request):
    """Startup probe results plus the live state of the in-process caches."""
    state = request.app.state
    return {
        "status": "ok",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "integrations": getattr(state, "integrations", {}),
        "database": "configured" if state.connections.configured else "not_configured",
        "cachedResponses": len(state.upstream_cache),
    }
