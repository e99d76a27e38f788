from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from assessment_service.api.admin import router as admin_router
from assessment_service.api.assessments import router as assessments_router
from assessment_service.api.attempts import router as attempts_router
from assessment_service.api.dependencies import question_bank
from assessment_service.api.health import router as health_router
from assessment_service.api.metrics_endpoint import router as metrics_router
from assessment_service.api.sample_data import seed_sample_assessment
from assessment_service.core.config import SETTINGS
from assessment_service.core.logging import setup_logging
from assessment_service.db.engine import async_session_factory, lifespan_db
from assessment_service.db.redis import lifespan_redis
from assessment_service.middleware.metrics import MetricsMiddleware
from assessment_service.middleware.request_context import (
    RequestContextMiddleware,
    install_context_filter,
)

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_context_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order even if one fails.
    async with lifespan_db():
        async with lifespan_redis():
            if SETTINGS.is_dev and async_session_factory is None:
                seed_sample_assessment(question_bank)
            yield


app = FastAPI(
    title="assessment-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext → Metrics → CORS → route handler.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(admin_router)
app.include_router(assessments_router)
app.include_router(attempts_router)

logger.info(
    "assessment-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
