from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from focuswatch.api.services.state import get_engine

router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/stream/video")
async def stream_video():
    async def generator():
        last_sent: bytes | None = None
        while True:
            engine = get_engine()
            frame = engine.latest_frame() if engine is not None else None
            if frame is not None and frame != last_sent:
                headers = b"--frame\r\n" b"Content-Type: image/jpeg\r\n"
                headers += f"Content-Length: {len(frame)}\r\n".encode("ascii")
                headers += b"\r\n"
                yield headers + frame + b"\r\n"
                last_sent = frame
            await asyncio.sleep(0.02)

    return StreamingResponse(
        generator(),
        media_type="multipart/x-mixed-replace; boundary=frame",
        headers={
            "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
            "Pragma": "no-cache",
            # Helps avoid proxy buffering (e.g., nginx) in front of the stream.
            "X-Accel-Buffering": "no",
        },
    )


@router.websocket("/stream/metadata")
async def stream_metadata(ws: WebSocket):
    """Push every new tick summary (verdicts, alerts, heatmap) as JSON."""

    await ws.accept()
    last_engine = None
    last_id = -1
    try:
        while True:
            engine = get_engine()
            if engine is not last_engine:
                last_engine = engine
                last_id = -1
            summary = engine.latest_summary() if engine is not None else None
            if summary is not None and summary.tick_id != last_id:
                try:
                    await ws.send_json(asdict(summary))
                    last_id = summary.tick_id
                except WebSocketDisconnect:
                    raise
                except RuntimeError as exc:
                    # Uvicorn raises this when a send happens after close.
                    if "websocket.send" in str(exc) or "response already completed" in str(exc):
                        return
                    logger.exception("Failed to send metadata tick")
                    await asyncio.sleep(0.05)
                except Exception:
                    # Keep the websocket alive even if one tick fails serialization.
                    logger.exception("Failed to send metadata tick")
                    await asyncio.sleep(0.05)
            await asyncio.sleep(0.02)
    except WebSocketDisconnect:
        return
