"""Administrator endpoints for mutable pipeline settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter

from course_approval.api.deps import ADMIN_DEP, SESSION_DEP
from course_approval.models.pipeline_settings import PipelineSettings
from course_approval.schemas.pipeline_settings import (
    PipelineSettingsRead,
    PipelineSettingsUpdate,
    ScoringCheckResponse,
)
from course_approval.services.pipeline_settings import (
    get_pipeline_settings,
    update_pipeline_settings,
)
from course_approval.services.scoring import get_scoring_adapter

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from course_approval.services.actors import Actor

router = APIRouter(prefix="/pipeline-settings", tags=["pipeline-settings"])


def _to_read(row: PipelineSettings) -> PipelineSettingsRead:
    return PipelineSettingsRead.model_validate(row, from_attributes=True)


@router.get("", response_model=PipelineSettingsRead)
async def read_pipeline_settings(
    session: AsyncSession = SESSION_DEP,
    _admin: Actor = ADMIN_DEP,
) -> PipelineSettingsRead:
    row = await get_pipeline_settings(session)
    await session.commit()
    return _to_read(row)


@router.patch("", response_model=PipelineSettingsRead)
async def patch_pipeline_settings(
    payload: PipelineSettingsUpdate,
    session: AsyncSession = SESSION_DEP,
    admin: Actor = ADMIN_DEP,
) -> PipelineSettingsRead:
    """Update auto-approval thresholds, the daily cap, or role capacities."""
    row = await update_pipeline_settings(
        session,
        changes=payload.model_dump(exclude_unset=True, exclude_none=True),
        actor=admin,
    )
    return _to_read(row)


@router.post("/scoring-check", response_model=ScoringCheckResponse)
async def check_scoring_connection(_admin: Actor = ADMIN_DEP) -> ScoringCheckResponse:
    """Round-trip the scoring model to verify credentials and model id."""
    adapter = get_scoring_adapter()
    return ScoringCheckResponse(ok=await adapter.test_connection(), model=adapter.model)
