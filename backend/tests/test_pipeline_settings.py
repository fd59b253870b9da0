# ruff: noqa: INP001
"""Pipeline settings seeding, updates, and the daily auto-approval budget."""

from __future__ import annotations

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from course_approval.core.config import settings
from course_approval.services.actors import Actor
from course_approval.services.pipeline_settings import (
    get_pipeline_settings,
    role_capacity,
    try_consume_daily_usage,
    update_pipeline_settings,
)

ADMIN = Actor(id=uuid4(), name="Ada Admin", role="admin")


async def _make_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


@pytest.mark.asyncio
async def test_settings_row_is_seeded_from_environment_defaults() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        row = await get_pipeline_settings(session)
        again = await get_pipeline_settings(session)

        assert row is again
        assert row.auto_approval_enabled is settings.auto_approval_enabled
        assert row.auto_approval_threshold == settings.auto_approval_threshold
        assert row.daily_usage_cap == settings.auto_approval_daily_cap
        assert row.role_capacity["primary"] == 10
        assert role_capacity(row, "final") == 5
    await engine.dispose()


@pytest.mark.asyncio
async def test_update_merges_role_capacity_and_rejects_unknown_fields() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        row = await update_pipeline_settings(
            session,
            changes={"auto_approval_enabled": True, "role_capacity": {"technical": 2}},
            actor=ADMIN,
        )

        assert row.auto_approval_enabled is True
        assert row.role_capacity["technical"] == 2
        assert row.role_capacity["content"] == 8
        assert row.updated_by == str(ADMIN.id)

        with pytest.raises(ValueError, match="daily_usage_count"):
            await update_pipeline_settings(
                session,
                changes={"daily_usage_count": 0},
                actor=ADMIN,
            )
    await engine.dispose()


@pytest.mark.asyncio
async def test_role_capacity_falls_back_to_environment_default() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        row = await get_pipeline_settings(session)
        row.role_capacity = {}

        assert role_capacity(row, "quality") == 8
    await engine.dispose()


@pytest.mark.asyncio
async def test_daily_usage_is_capped_and_resets_on_a_new_day() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        row = await get_pipeline_settings(session)
        row.daily_usage_cap = 2
        session.add(row)
        await session.commit()

        day = date(2026, 3, 2)
        assert await try_consume_daily_usage(session, today=day) is True
        assert await try_consume_daily_usage(session, today=day) is True
        assert await try_consume_daily_usage(session, today=day) is False
        assert row.daily_usage_count == 2

        assert await try_consume_daily_usage(session, today=date(2026, 3, 3)) is True
        assert row.daily_usage_count == 1
        assert row.usage_date == date(2026, 3, 3)
    await engine.dispose()


@pytest.mark.asyncio
async def test_zero_cap_never_allows_auto_approval() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        row = await get_pipeline_settings(session)
        row.daily_usage_cap = 0
        session.add(row)
        await session.commit()

        assert await try_consume_daily_usage(session) is False
    await engine.dispose()
