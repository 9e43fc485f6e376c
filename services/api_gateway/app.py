"""API gateway entrypoint."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from services.api_gateway.dependencies import (
    guardian_service,
    heartbeat,
    scheduler,
    settings,
)
from services.api_gateway.presentation.http.routes import API_VERSION, router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    heartbeat.start()
    logger.info(
        "Connectivity heartbeat started (period=%.1fs)", settings.heartbeat_period_sec
    )
    try:
        yield
    finally:
        heartbeat.stop()
        guardian_service.shutdown()
        scheduler.shutdown()


app = FastAPI(title="Ride Guardian API", version=API_VERSION, lifespan=lifespan)
app.include_router(router)
