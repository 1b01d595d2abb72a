"""Health check endpoint."""

from fastapi import APIRouter

from safetrail.core.fanout import fanout

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict:
    """Return API health status."""
    return {"status": "ok", "ws_connections": fanout.total_connections}
