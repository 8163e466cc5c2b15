"""
FastAPI application for the attendance engine.

Routes live under ``api/v1``; this module wires settings, logging,
middleware and error handlers around them. Run with
``uvicorn attendance_engine.main:app``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from attendance_engine.api.v1.api import api_router
from attendance_engine.core.config import settings
from attendance_engine.core.exceptions import register_exception_handlers
from attendance_engine.core.log import configure_logging
from attendance_engine.db.session import engine
from attendance_engine.models.registry import Base

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(
        "%s v%s ready (grace %d min, half-day after %d min, cross-site policy %s)",
        settings.PROJECT_NAME,
        settings.VERSION,
        settings.DEFAULT_GRACE_PERIOD_MINUTES,
        settings.HALF_DAY_THRESHOLD_MINUTES,
        settings.CROSS_SITE_POLICY,
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Engine disposed")


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Biometric attendance reconciliation and point expiration",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    register_exception_handlers(application)
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)
    return application


app = create_app()
