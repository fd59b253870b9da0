"""Central access to mutable pipeline settings and the shared usage counter."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, or_, update
from sqlmodel import col

from course_approval.core.config import settings
from course_approval.core.logging import get_logger
from course_approval.core.time import utcnow
from course_approval.models.pipeline_settings import SETTINGS_ROW_ID, PipelineSettings

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from course_approval.services.actors import Actor

logger = get_logger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "auto_approval_enabled",
        "auto_approval_threshold",
        "min_description_length",
        "require_learning_objectives",
        "min_sections",
        "min_lessons",
        "daily_usage_cap",
        "role_capacity",
    },
)


def _default_row() -> PipelineSettings:
    return PipelineSettings(
        id=SETTINGS_ROW_ID,
        auto_approval_enabled=settings.auto_approval_enabled,
        auto_approval_threshold=settings.auto_approval_threshold,
        min_description_length=settings.auto_approval_min_description_length,
        require_learning_objectives=settings.auto_approval_require_learning_objectives,
        min_sections=settings.auto_approval_min_sections,
        min_lessons=settings.auto_approval_min_lessons,
        daily_usage_cap=settings.auto_approval_daily_cap,
        role_capacity=dict(settings.reviewer_role_capacity),
    )


async def get_pipeline_settings(session: AsyncSession) -> PipelineSettings:
    """Return the settings row, seeding it from environment defaults once."""
    row = await PipelineSettings.objects.by_id(SETTINGS_ROW_ID).first(session)
    if row is not None:
        return row
    row = _default_row()
    session.add(row)
    await session.flush()
    logger.info("pipeline_settings.seeded", extra={"auto_approval": row.auto_approval_enabled})
    return row


async def update_pipeline_settings(
    session: AsyncSession,
    *,
    changes: dict[str, Any],
    actor: Actor,
) -> PipelineSettings:
    """Apply a partial update and commit."""
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValueError(f"Settings fields not editable: {', '.join(sorted(unknown))}")
    row = await get_pipeline_settings(session)
    for field_name, value in changes.items():
        if field_name == "role_capacity":
            value = {**(row.role_capacity or {}), **value}
        setattr(row, field_name, value)
    row.updated_by = str(actor.id)
    row.updated_at = utcnow()
    session.add(row)
    await session.commit()
    await session.refresh(row)
    logger.info(
        "pipeline_settings.updated",
        extra={"fields": sorted(changes), "actor_id": str(actor.id)},
    )
    return row


def role_capacity(row: PipelineSettings, role: str) -> int:
    """Capacity cap for a reviewer role; settings row first, then env defaults."""
    configured = (row.role_capacity or {}).get(role)
    if configured is None:
        configured = settings.reviewer_role_capacity.get(role, 0)
    return int(configured)


async def try_consume_daily_usage(session: AsyncSession, *, today: date | None = None) -> bool:
    """Atomically take one unit of today's auto-approval budget.

    A single conditional UPDATE resets the counter on date change and only
    increments while below the cap, so concurrent callers cannot overshoot.
    """
    row = await get_pipeline_settings(session)
    day = today or utcnow().date()
    statement = (
        update(PipelineSettings)
        .where(col(PipelineSettings.id) == SETTINGS_ROW_ID)
        .where(col(PipelineSettings.daily_usage_cap) > 0)
        .where(
            or_(
                col(PipelineSettings.usage_date).is_(None),
                col(PipelineSettings.usage_date) != day,
                col(PipelineSettings.daily_usage_count) < col(PipelineSettings.daily_usage_cap),
            ),
        )
        .values(
            daily_usage_count=case(
                (col(PipelineSettings.usage_date) == day, col(PipelineSettings.daily_usage_count) + 1),
                else_=1,
            ),
            usage_date=day,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.exec(statement)  # type: ignore[call-overload]
    consumed = result.rowcount == 1
    await session.refresh(row, attribute_names=["daily_usage_count", "usage_date"])
    logger.info(
        "pipeline_settings.usage",
        extra={
            "consumed": consumed,
            "count": row.daily_usage_count,
            "cap": row.daily_usage_cap,
            "usage_date": str(row.usage_date),
        },
    )
    return consumed
