# ruff: noqa: INP001
"""Reviewer selection, workload caps, and manual overrides."""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from course_approval.core.errors import (
    AlreadyDecidedError,
    InvalidStateError,
    NoAvailableReviewerError,
    ReviewerAlreadyAssignedError,
)
from course_approval.models.approvals import CourseApproval
from course_approval.models.courses import Course
from course_approval.models.reviewers import Reviewer
from course_approval.services.actors import Actor
from course_approval.services.pipeline_settings import get_pipeline_settings
from course_approval.services.reviewer_assignment import (
    ReviewerCandidate,
    approval_assignments,
    assign_for_approval,
    auto_assign_for_stage,
    build_candidates,
    reviewer_workloads,
    select_reviewer,
)

ADMIN = Actor(id=uuid4(), name="Ada Admin", role="admin")


async def _make_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.connect() as conn, conn.begin():
        await conn.run_sync(SQLModel.metadata.create_all)
    return engine


async def _seed_reviewer(
    session: AsyncSession,
    name: str,
    roles: list[str],
    *,
    is_active: bool = True,
    expertise: list[str] | None = None,
) -> Reviewer:
    reviewer = Reviewer(
        display_name=name,
        roles=roles,
        is_active=is_active,
        expertise=expertise or [],
    )
    session.add(reviewer)
    await session.commit()
    return reviewer


async def _seed_approval(
    session: AsyncSession,
    *,
    stage: str = "initial_review",
) -> CourseApproval:
    course = Course(title="Intro to SQL", instructor_id=uuid4())
    approval = CourseApproval(
        approval_code=f"APPR-2026-{uuid4().int % 1_000_000:06d}",
        course_id=course.id,
        submitter_id=course.instructor_id,
        current_stage=stage,
    )
    session.add(course)
    session.add(approval)
    await session.commit()
    return approval


async def _set_capacity(session: AsyncSession, **caps: int) -> None:
    row = await get_pipeline_settings(session)
    row.role_capacity = {**row.role_capacity, **caps}
    session.add(row)
    await session.commit()


def test_select_reviewer_prefers_lowest_workload_then_name() -> None:
    candidates = [
        ReviewerCandidate(reviewer_id=uuid4(), display_name="Casey", workload=1),
        ReviewerCandidate(reviewer_id=uuid4(), display_name="Blake", workload=2),
        ReviewerCandidate(reviewer_id=uuid4(), display_name="Avery", workload=1),
    ]

    assert select_reviewer(candidates, cap=3).display_name == "Avery"
    chosen = select_reviewer(candidates, cap=3, exclude=[candidates[2].reviewer_id])
    assert chosen.display_name == "Casey"


def test_select_reviewer_breaks_workload_ties_by_expertise() -> None:
    candidates = [
        ReviewerCandidate(reviewer_id=uuid4(), display_name="Avery", workload=1),
        ReviewerCandidate(
            reviewer_id=uuid4(), display_name="Blake", workload=1, expertise_match=2
        ),
        ReviewerCandidate(
            reviewer_id=uuid4(), display_name="Casey", workload=0, expertise_match=0
        ),
    ]

    assert select_reviewer(candidates, cap=3).display_name == "Casey"
    chosen = select_reviewer(candidates, cap=3, exclude=[candidates[2].reviewer_id])
    assert chosen.display_name == "Blake"


def test_select_reviewer_raises_when_everyone_is_at_capacity() -> None:
    candidates = [
        ReviewerCandidate(reviewer_id=uuid4(), display_name="Avery", workload=2),
        ReviewerCandidate(reviewer_id=uuid4(), display_name="Blake", workload=3),
    ]

    with pytest.raises(NoAvailableReviewerError) as exc_info:
        select_reviewer(candidates, cap=2)
    assert exc_info.value.retryable is True
    with pytest.raises(NoAvailableReviewerError):
        select_reviewer([], cap=5)


@pytest.mark.asyncio
async def test_automatic_assignment_respects_role_capacity() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        await _set_capacity(session, primary=1)
        avery = await _seed_reviewer(session, "Avery", ["primary"])
        blake = await _seed_reviewer(session, "Blake", ["primary", "content"])
        await _seed_reviewer(session, "Casey", ["content"])
        first = await _seed_approval(session)
        second = await _seed_approval(session)
        third = await _seed_approval(session)

        one = await assign_for_approval(session, approval_id=first.id, role="primary", actor=ADMIN)
        two = await assign_for_approval(session, approval_id=second.id, role="primary", actor=ADMIN)

        assert one.reviewer_id == avery.id
        assert two.reviewer_id == blake.id
        assert one.assignment_method == "auto"
        assert first.status == "under_review"
        assert first.assigned_at is not None
        assert first.audit_log[-1]["action"] == "reviewer_assigned"
        assert await reviewer_workloads(session, [avery.id, blake.id]) == {avery.id: 1, blake.id: 1}

        with pytest.raises(NoAvailableReviewerError):
            await assign_for_approval(session, approval_id=third.id, role="primary", actor=ADMIN)
        assert await approval_assignments(session, third.id) == []
        assert third.status == "pending"
    await engine.dispose()


@pytest.mark.asyncio
async def test_workload_only_counts_active_approvals() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        await _set_capacity(session, primary=1)
        avery = await _seed_reviewer(session, "Avery", ["primary"])
        first = await _seed_approval(session)
        second = await _seed_approval(session)
        await assign_for_approval(session, approval_id=first.id, role="primary", actor=ADMIN)

        first.status = "approved"
        first.final_decision = "approved"
        session.add(first)
        await session.commit()

        assert (await reviewer_workloads(session, [avery.id]))[avery.id] == 0
        assignment = await assign_for_approval(
            session, approval_id=second.id, role="primary", actor=ADMIN
        )
        assert assignment.reviewer_id == avery.id
    await engine.dispose()


@pytest.mark.asyncio
async def test_inactive_and_ineligible_reviewers_are_not_candidates() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        await _seed_reviewer(session, "Avery", ["technical"], is_active=False)
        blake = await _seed_reviewer(session, "Blake", ["technical"])
        await _seed_reviewer(session, "Casey", ["final"])

        candidates = await build_candidates(session, "technical")

        assert [item.reviewer_id for item in candidates] == [blake.id]
        assert candidates[0].workload == 0
    await engine.dispose()


@pytest.mark.asyncio
async def test_matching_expertise_wins_among_equally_loaded_reviewers() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        await _seed_reviewer(session, "Avery", ["content"], expertise=["management"])
        blake = await _seed_reviewer(
            session,
            "Blake",
            ["content"],
            expertise=["instructional_design", "content_design"],
        )
        approval = await _seed_approval(session, stage="content_review")

        candidates = await build_candidates(session, "content")
        assignment = await assign_for_approval(
            session, approval_id=approval.id, role="content", actor=ADMIN
        )

        assert {item.display_name: item.expertise_match for item in candidates} == {
            "Avery": 0,
            "Blake": 2,
        }
        assert assignment.reviewer_id == blake.id
    await engine.dispose()


@pytest.mark.asyncio
async def test_manual_assignment_bypasses_the_capacity_cap() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        await _set_capacity(session, primary=1)
        avery = await _seed_reviewer(session, "Avery", ["primary"])
        first = await _seed_approval(session)
        second = await _seed_approval(session)
        await assign_for_approval(session, approval_id=first.id, role="primary", actor=ADMIN)

        forced = await assign_for_approval(
            session,
            approval_id=second.id,
            role="primary",
            reviewer_id=avery.id,
            actor=ADMIN,
        )

        assert forced.reviewer_id == avery.id
        assert forced.assignment_method == "manual"
        assert forced.assigned_by == ADMIN.id
        assert second.status == "under_review"
        assert (await reviewer_workloads(session, [avery.id]))[avery.id] == 2
    await engine.dispose()


@pytest.mark.asyncio
async def test_manual_assignment_replaces_the_slot_holder_in_place() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        avery = await _seed_reviewer(session, "Avery", ["primary"])
        blake = await _seed_reviewer(session, "Blake", ["primary"])
        approval = await _seed_approval(session)
        original = await assign_for_approval(
            session, approval_id=approval.id, role="primary", actor=ADMIN
        )
        assert original.reviewer_id == avery.id

        replaced = await assign_for_approval(
            session,
            approval_id=approval.id,
            role="primary",
            reviewer_id=blake.id,
            actor=ADMIN,
        )

        assert replaced.id == original.id
        assert replaced.reviewer_id == blake.id
        assert [item.reviewer_id for item in await approval_assignments(session, approval.id)] == [
            blake.id,
        ]
        assert approval.audit_log[-1]["metadata"]["replaced_reviewer_id"] == str(avery.id)
    await engine.dispose()


@pytest.mark.asyncio
async def test_reviewer_cannot_hold_two_slots_on_one_approval() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        avery = await _seed_reviewer(session, "Avery", ["primary", "content"])
        approval = await _seed_approval(session)
        await assign_for_approval(
            session,
            approval_id=approval.id,
            role="primary",
            reviewer_id=avery.id,
            actor=ADMIN,
        )

        with pytest.raises(ReviewerAlreadyAssignedError):
            await assign_for_approval(
                session,
                approval_id=approval.id,
                role="content",
                reviewer_id=avery.id,
                actor=ADMIN,
            )
    await engine.dispose()


@pytest.mark.asyncio
async def test_filled_slot_and_decided_record_are_rejected() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        await _seed_reviewer(session, "Avery", ["primary"])
        await _seed_reviewer(session, "Blake", ["primary"])
        approval = await _seed_approval(session)
        await assign_for_approval(session, approval_id=approval.id, role="primary", actor=ADMIN)

        with pytest.raises(InvalidStateError):
            await assign_for_approval(session, approval_id=approval.id, role="primary", actor=ADMIN)

        approval.final_decision = "rejected"
        approval.status = "rejected"
        session.add(approval)
        await session.commit()

        with pytest.raises(AlreadyDecidedError):
            await assign_for_approval(session, approval_id=approval.id, role="content", actor=ADMIN)
    await engine.dispose()


@pytest.mark.asyncio
async def test_stage_staffing_fills_each_role_with_a_different_reviewer() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        both = await _seed_reviewer(session, "Avery", ["technical", "quality"])
        quality = await _seed_reviewer(session, "Blake", ["quality"])
        approval = await _seed_approval(session, stage="quality_assurance")
        outbox: list = []

        created = await auto_assign_for_stage(session, approval, actor=ADMIN, outbox=outbox)
        await session.commit()

        assert {(item.role, item.reviewer_id) for item in created} == {
            ("technical", both.id),
            ("quality", quality.id),
        }
        assert [item.event_type for item in outbox] == ["reviewer_assigned", "reviewer_assigned"]
    await engine.dispose()


@pytest.mark.asyncio
async def test_stage_staffing_records_unfillable_slots() -> None:
    engine = await _make_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        await _seed_reviewer(session, "Avery", ["technical", "quality"])
        approval = await _seed_approval(session, stage="quality_assurance")
        outbox: list = []

        created = await auto_assign_for_stage(session, approval, actor=ADMIN, outbox=outbox)
        await session.commit()

        assert [item.role for item in created] == ["technical"]
        assert approval.audit_log[-1]["action"] == "assignment_failed"
        assert approval.audit_log[-1]["metadata"] == {
            "role": "quality",
            "stage": "quality_assurance",
        }
        assert [item.event_type for item in outbox] == ["reviewer_assigned", "assignment_failed"]
    await engine.dispose()
