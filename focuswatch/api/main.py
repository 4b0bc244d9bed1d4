"""FocusWatch HTTP/WebSocket service."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from focuswatch.api.routes import config, health, session, stats, stream

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Stop a session left running at shutdown so its report still gets written."""

    from focuswatch.api.services.state import stop_engine

    try:
        yield
    finally:
        logger.info("Shutting down; stopping any running session")
        stop_engine()


app = FastAPI(title="FocusWatch API", version="0.1.0", lifespan=lifespan)

# The dashboard is served from another origin during development.
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

for module in (health, config, session, stats, stream):
    app.include_router(module.router)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=os.getenv("FW_HOST", "0.0.0.0"), port=int(os.getenv("FW_PORT", "8000")))


if __name__ == "__main__":
    main()
