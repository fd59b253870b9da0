"""FastAPI application entrypoint and router wiring for the backend."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import APIRouter, FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi_pagination import add_pagination

from course_approval.api.approvals import router as approvals_router
from course_approval.api.evaluations import router as evaluations_router
from course_approval.api.pipeline_settings import router as pipeline_settings_router
from course_approval.api.reviewers import router as reviewers_router
from course_approval.core.config import settings
from course_approval.core.error_handling import install_error_handling
from course_approval.core.logging import configure_logging, get_logger
from course_approval.db.session import init_db
from course_approval.schemas.health import HealthStatusResponse

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

configure_logging()
logger = get_logger(__name__)
OPENAPI_TAGS = [
    {
        "name": "health",
        "description": "Service liveness probe used by infrastructure checks.",
    },
    {
        "name": "evaluations",
        "description": (
            "Course submission, background AI scoring results, admin review, "
            "bulk approval, and retry of failed attempts."
        ),
    },
    {
        "name": "approvals",
        "description": (
            "Multi-stage human review: reviewer assignment, reviewer feedback, "
            "final decisions, review queue, and dashboard."
        ),
    },
    {
        "name": "reviewers",
        "description": "Reviewer pool management and per-reviewer workload statistics.",
    },
    {
        "name": "pipeline-settings",
        "description": "Auto-approval thresholds, daily cap, role capacities, and model checks.",
    },
]


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Initialize application resources before serving requests."""
    logger.info(
        "app.lifecycle.starting",
        extra={"environment": settings.environment, "db_auto_migrate": settings.db_auto_migrate},
    )
    await init_db()
    logger.info("app.lifecycle.started")
    try:
        yield
    finally:
        logger.info("app.lifecycle.stopped")


app = FastAPI(
    title="Course Approval API",
    version="0.1.0",
    lifespan=lifespan,
    openapi_tags=OPENAPI_TAGS,
)

origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
if origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Total-Count", "X-Limit", "X-Offset", "X-Request-Id"],
    )
    logger.info("app.cors.enabled", extra={"origins_count": len(origins)})
else:
    logger.info("app.cors.disabled")

install_error_handling(app)


@app.get(
    "/healthz",
    tags=["health"],
    response_model=HealthStatusResponse,
    summary="Health Check",
    description="Lightweight liveness probe endpoint.",
    responses={
        status.HTTP_200_OK: {
            "description": "Service is alive.",
            "content": {"application/json": {"example": {"ok": True}}},
        }
    },
)
def healthz() -> HealthStatusResponse:
    """Lightweight liveness probe endpoint."""
    return HealthStatusResponse(ok=True)


api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(evaluations_router)
api_v1.include_router(approvals_router)
api_v1.include_router(reviewers_router)
api_v1.include_router(pipeline_settings_router)
app.include_router(api_v1)

add_pagination(app)
logger.debug("app.routes.registered", extra={"count": len(app.routes)})
