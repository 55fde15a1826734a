from __future__ import annotations
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api import router
from app.web import router as web_router
from datastore.event_log import build_default_event_log
from logging_config import configure_logging
from services.classifier import build_default_classifier
from services.monitor import build_default_monitor
from storage.history import build_default_history


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    monitor = build_default_monitor()
    await monitor.start()
    try:
        yield
    finally:
        await monitor.shutdown()
        build_default_monitor.cache_clear()
        build_default_classifier.cache_clear()
        build_default_history.cache_clear()
        build_default_event_log.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="PyroGuard IoT Dashboard",
        description="Simulated fire-detection rig with threshold escalation and AI confirmation.",
        version="0.1.0",
        lifespan=lifespan,
    )
    static_dir = Path(__file__).resolve().parent / "static"
    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    app.include_router(router)
    app.include_router(web_router)
    return app

app = create_app()
