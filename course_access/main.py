from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from course_access.api.enrollments import router as enrollments_router
from course_access.api.errors import register_error_handlers
from course_access.api.health import router as health_router
from course_access.api.lessons import router as lessons_router
from course_access.api.metrics_endpoint import router as metrics_router
from course_access.api.progress import router as progress_router
from course_access.core.config import SETTINGS
from course_access.core.logging import setup_logging
from course_access.db.engine import lifespan_db
from course_access.db.redis import lifespan_redis
from course_access.middleware.metrics import MetricsMiddleware
from course_access.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # teardown runs in reverse order: Redis closes before the DB engine
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="course-access-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

# Last added runs first: RequestContext -> Metrics -> route handler
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

register_error_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(enrollments_router)
app.include_router(lessons_router)
app.include_router(progress_router)

logger.info(
    "course-access-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
