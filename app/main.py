from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from app.web import router as web_router
from logging_config import configure_logging
from services.exporter import build_default_exporter
from settings import VERSION, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    exporter = build_default_exporter()
    logger.info(
        "Starting mget_exporter",
        extra={
            "version": VERSION,
            "port": get_settings().port,
            "devices": len(exporter.devices),
        },
    )
    exporter.start()
    try:
        yield
    finally:
        exporter.shutdown()
        build_default_exporter.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="mget_exporter",
        description="Prometheus exporter for mget_temp adapter temperature and voltage readings.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(web_router)
    return app
