"""Approval workflow endpoints: review team, reviewer feedback, decisions, dashboard."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Literal
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from course_approval.api.deps import ACTOR_DEP, ADMIN_DEP, SESSION_DEP
from course_approval.db.pagination import paginate
from course_approval.models.approvals import ApprovalAssignment, CourseApproval
from course_approval.schemas.approvals import (
    ApprovalAssignmentCreate,
    ApprovalAssignmentRead,
    ApprovalDashboardRead,
    ApprovalDecisionCreate,
    ApprovalDetailRead,
    ApprovalRead,
    ApprovalReviewCreate,
    ApprovalReviewRead,
)
from course_approval.schemas.errors import ErrorResponse
from course_approval.schemas.pagination import DefaultLimitOffsetPage
from course_approval.services.approval_workflow import (
    approval_dashboard,
    approval_detail,
    get_approval,
    get_approval_by_code,
    make_final_decision,
    review_queue_statement,
    submit_review,
)
from course_approval.services.reviewer_assignment import assign_for_approval

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from course_approval.services.actors import Actor

router = APIRouter(prefix="/approvals", tags=["approvals"])
INCLUDE_REVIEWERS_QUERY = Query(default=False)
QUEUE_REVIEWER_QUERY = Query(default=None)
QUEUE_PRIORITY_QUERY = Query(default=None)
ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    status.HTTP_403_FORBIDDEN: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
}


async def _detail_read(session: AsyncSession, approval: CourseApproval) -> ApprovalDetailRead:
    detail = await approval_detail(session, approval)
    return ApprovalDetailRead(
        approval=ApprovalRead.model_validate(detail["approval"], from_attributes=True),
        assignments=[
            ApprovalAssignmentRead.model_validate(item, from_attributes=True)
            for item in detail["assignments"]
        ],
        reviews=[
            ApprovalReviewRead.model_validate(item, from_attributes=True)
            for item in detail["reviews"]
        ],
        review_team=detail["review_team"],
        audit_log=detail["audit_log"],
        is_overdue=detail["is_overdue"],
        time_remaining_hours=detail["time_remaining_hours"],
        completion_percentage=detail["completion_percentage"],
    )


def _coerce_approvals(items: Sequence[Any]) -> list[ApprovalRead]:
    reads: list[ApprovalRead] = []
    for item in items:
        if not isinstance(item, CourseApproval):
            msg = "Expected CourseApproval items from paginated query"
            raise TypeError(msg)
        reads.append(ApprovalRead.model_validate(item, from_attributes=True))
    return reads


async def _ensure_can_view(session: AsyncSession, approval: CourseApproval, actor: Actor) -> None:
    if actor.role == "admin" or approval.submitter_id == actor.id:
        return
    on_team = await ApprovalAssignment.objects.filter_by(
        approval_id=approval.id,
        reviewer_id=actor.id,
    ).exists(session)
    if not on_team:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)


@router.get("/dashboard", response_model=ApprovalDashboardRead)
async def get_dashboard(
    include_reviewers: bool = INCLUDE_REVIEWERS_QUERY,
    session: AsyncSession = SESSION_DEP,
    _admin: Actor = ADMIN_DEP,
) -> ApprovalDashboardRead:
    """Counts by status, priority and SLA, plus recent activity."""
    dashboard = await approval_dashboard(session, include_reviewers=include_reviewers)
    dashboard["recent_activity"] = _coerce_approvals(dashboard["recent_activity"])
    return ApprovalDashboardRead.model_validate(dashboard)


@router.get("/queue", response_model=DefaultLimitOffsetPage[ApprovalRead])
async def get_review_queue(
    reviewer_id: UUID | None = QUEUE_REVIEWER_QUERY,
    priority: Literal["low", "normal", "high", "urgent"] | None = QUEUE_PRIORITY_QUERY,
    session: AsyncSession = SESSION_DEP,
    actor: Actor = ACTOR_DEP,
) -> DefaultLimitOffsetPage[ApprovalRead]:
    """Active records, urgent first; reviewers only see their own queue."""
    if actor.role != "admin":
        if reviewer_id is not None and reviewer_id != actor.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        reviewer_id = actor.id
    statement = review_queue_statement(reviewer_id=reviewer_id, priority=priority)
    return await paginate(session, statement, transformer=_coerce_approvals)


@router.get("/by-code/{approval_code}", response_model=ApprovalDetailRead, responses=ERROR_RESPONSES)
async def get_approval_by_code_endpoint(
    approval_code: str,
    session: AsyncSession = SESSION_DEP,
    actor: Actor = ACTOR_DEP,
) -> ApprovalDetailRead:
    approval = await get_approval_by_code(session, approval_code)
    await _ensure_can_view(session, approval, actor)
    return await _detail_read(session, approval)


@router.get("/{approval_id}", response_model=ApprovalDetailRead, responses=ERROR_RESPONSES)
async def get_approval_endpoint(
    approval_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: Actor = ACTOR_DEP,
) -> ApprovalDetailRead:
    approval = await get_approval(session, approval_id)
    await _ensure_can_view(session, approval, actor)
    return await _detail_read(session, approval)


@router.post(
    "/{approval_id}/assignments",
    response_model=ApprovalAssignmentRead,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def assign_reviewer_endpoint(
    approval_id: UUID,
    payload: ApprovalAssignmentCreate,
    session: AsyncSession = SESSION_DEP,
    admin: Actor = ADMIN_DEP,
) -> ApprovalAssignmentRead:
    """Fill a role slot automatically, or with a named reviewer as an override."""
    assignment = await assign_for_approval(
        session,
        approval_id=approval_id,
        role=payload.role,
        reviewer_id=payload.reviewer_id,
        actor=admin,
    )
    return ApprovalAssignmentRead.model_validate(assignment, from_attributes=True)


@router.post(
    "/{approval_id}/reviews",
    response_model=ApprovalDetailRead,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def submit_review_endpoint(
    approval_id: UUID,
    payload: ApprovalReviewCreate,
    session: AsyncSession = SESSION_DEP,
    actor: Actor = ACTOR_DEP,
) -> ApprovalDetailRead:
    """Submit feedback for the role slot the calling reviewer holds."""
    approval = await submit_review(
        session,
        approval_id=approval_id,
        reviewer_id=actor.id,
        actor=actor,
        score=payload.score,
        feedback=payload.feedback,
        category=payload.category,
        issues=[issue.model_dump() for issue in payload.issues],
        approved=payload.approved,
    )
    return await _detail_read(session, approval)


@router.post(
    "/{approval_id}/decision",
    response_model=ApprovalDetailRead,
    responses=ERROR_RESPONSES,
)
async def make_decision_endpoint(
    approval_id: UUID,
    payload: ApprovalDecisionCreate,
    session: AsyncSession = SESSION_DEP,
    admin: Actor = ADMIN_DEP,
) -> ApprovalDetailRead:
    approval = await make_final_decision(
        session,
        approval_id=approval_id,
        decision=payload.decision,
        actor=admin,
        reason=payload.reason,
        conditions=payload.conditions,
    )
    return await _detail_read(session, approval)
