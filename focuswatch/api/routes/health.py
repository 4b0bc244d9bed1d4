"""Health check endpoints."""

from fastapi import APIRouter

from focuswatch.api.services.state import get_engine

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    """Liveness plus whether a monitoring session is active."""

    engine = get_engine()
    running = engine is not None and engine.running
    return {"status": "ok", "session": "running" if running else "idle"}
