"""Stats endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from focuswatch.api.schemas.models import StatsSchema
from focuswatch.api.services.engine import MonitorEngine
from focuswatch.api.services.state import get_engine

router = APIRouter()


@router.get("/stats", response_model=StatsSchema)
def stats(engine: MonitorEngine | None = Depends(get_engine)) -> StatsSchema:
    """Return the latest tick's counts."""

    summary = engine.latest_summary() if engine is not None else None
    if summary is None:
        return StatsSchema(
            running=bool(engine is not None and engine.running),
            total_subjects=0,
            suspicious_count=0,
            fps=0.0,
            audio_level=0.0,
            hottest_cell=None,
            error=engine.last_error if engine is not None else None,
        )
    heatmap = summary.heatmap or {}
    return StatsSchema(
        running=bool(engine.running),
        total_subjects=summary.total_subjects,
        suspicious_count=summary.suspicious_count,
        fps=summary.fps,
        audio_level=summary.audio_level,
        hottest_cell=heatmap.get("max_cell"),
        error=engine.last_error,
    )
