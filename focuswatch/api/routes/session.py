"""Session lifecycle endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Response

from focuswatch.api.schemas.models import ReportSchema
from focuswatch.api.services.state import get_engine, get_last_report, start_session, stop_session
from focuswatch.core.session import SessionStartError

router = APIRouter(prefix="/session", tags=["session"])


@router.post("/start")
def start() -> dict[str, str]:
    """Start monitoring. Camera or model failures return 503 and nothing runs."""

    try:
        engine = start_session()
    except SessionStartError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from None
    tag = engine.session.tag if engine.session is not None else ""
    return {"status": "running", "session": tag}


@router.post("/stop", response_model=ReportSchema, responses={204: {"description": "Nothing to summarize"}})
def stop():
    """Stop monitoring and return the session report.

    An empty session (no timeline samples) answers 204 with no body.
    """

    if get_engine() is None:
        raise HTTPException(status_code=409, detail="No session running")
    report = stop_session()
    if report is None:
        return Response(status_code=204)
    return ReportSchema(**report.to_payload())


@router.get("/report", response_model=ReportSchema)
def last_report() -> ReportSchema:
    """Return the report of the last finished session."""

    report = get_last_report()
    if report is None:
        raise HTTPException(status_code=404, detail="No report available")
    return ReportSchema(**report.to_payload())
