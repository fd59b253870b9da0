"""Course submission and evaluation endpoints."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from course_approval.api.deps import ACTOR_DEP, ADMIN_DEP, SESSION_DEP
from course_approval.db.pagination import paginate
from course_approval.models.evaluations import CourseEvaluation
from course_approval.schemas.errors import ErrorResponse
from course_approval.schemas.evaluations import (
    AdminReviewCreate,
    BulkApproveRequest,
    BulkApproveResponse,
    EvaluationRead,
    EvaluationStatisticsRead,
    EvaluationSubmit,
)
from course_approval.schemas.pagination import DefaultLimitOffsetPage
from course_approval.services.evaluations import (
    bulk_approve,
    evaluation_statistics,
    evaluations_by_submitter_statement,
    get_evaluation,
    list_stale_evaluations,
    pending_evaluations_statement,
    retry_evaluation,
    submit_admin_review,
    submit_for_evaluation,
)

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from course_approval.services.actors import Actor

router = APIRouter(prefix="/evaluations", tags=["evaluations"])
SUBMITTER_ID_QUERY = Query(default=None)
OLDER_THAN_QUERY = Query(default=None, ge=1)
CONFLICT_RESPONSES: dict[int | str, dict[str, Any]] = {
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse},
}


def _to_read(evaluation: CourseEvaluation) -> EvaluationRead:
    return EvaluationRead.model_validate(evaluation, from_attributes=True)


def _coerce_evaluations(items: Sequence[Any]) -> list[EvaluationRead]:
    reads: list[EvaluationRead] = []
    for item in items:
        if not isinstance(item, CourseEvaluation):
            msg = "Expected CourseEvaluation items from paginated query"
            raise TypeError(msg)
        reads.append(_to_read(item))
    return reads


@router.post(
    "",
    response_model=EvaluationRead,
    status_code=status.HTTP_202_ACCEPTED,
    responses=CONFLICT_RESPONSES,
)
async def submit_evaluation_endpoint(
    payload: EvaluationSubmit,
    session: AsyncSession = SESSION_DEP,
    actor: Actor = ACTOR_DEP,
) -> EvaluationRead:
    """Submit a course for evaluation; scoring continues in the background."""
    evaluation = await submit_for_evaluation(
        session,
        course_id=payload.course_id,
        submitter=actor,
        submission_type=payload.submission_type,
        priority=payload.priority,
    )
    return _to_read(evaluation)


@router.get("", response_model=DefaultLimitOffsetPage[EvaluationRead])
async def list_evaluations(
    submitter_id: UUID | None = SUBMITTER_ID_QUERY,
    session: AsyncSession = SESSION_DEP,
    actor: Actor = ACTOR_DEP,
) -> DefaultLimitOffsetPage[EvaluationRead]:
    """List evaluations for a submitter; non-admins only see their own."""
    target = submitter_id or actor.id
    if target != actor.id and actor.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    statement = evaluations_by_submitter_statement(target)
    return await paginate(session, statement, transformer=_coerce_evaluations)


@router.get("/pending", response_model=DefaultLimitOffsetPage[EvaluationRead])
async def list_pending_evaluations(
    session: AsyncSession = SESSION_DEP,
    _admin: Actor = ADMIN_DEP,
) -> DefaultLimitOffsetPage[EvaluationRead]:
    """Scored evaluations waiting for an admin decision, oldest first."""
    return await paginate(session, pending_evaluations_statement(), transformer=_coerce_evaluations)


@router.get("/statistics", response_model=EvaluationStatisticsRead)
async def get_evaluation_statistics(
    session: AsyncSession = SESSION_DEP,
    _admin: Actor = ADMIN_DEP,
) -> EvaluationStatisticsRead:
    return EvaluationStatisticsRead.model_validate(await evaluation_statistics(session))


@router.get("/stale", response_model=list[EvaluationRead])
async def list_stale(
    older_than_minutes: int | None = OLDER_THAN_QUERY,
    session: AsyncSession = SESSION_DEP,
    _admin: Actor = ADMIN_DEP,
) -> list[EvaluationRead]:
    """Attempts stuck in processing; candidates for an explicit retry."""
    evaluations = await list_stale_evaluations(session, older_than_minutes=older_than_minutes)
    return [_to_read(item) for item in evaluations]


@router.post(
    "/bulk-approve",
    response_model=BulkApproveResponse,
)
async def bulk_approve_endpoint(
    payload: BulkApproveRequest,
    session: AsyncSession = SESSION_DEP,
    admin: Actor = ADMIN_DEP,
) -> BulkApproveResponse:
    result = await bulk_approve(
        session,
        evaluation_ids=payload.evaluation_ids,
        reviewer=admin,
        feedback=payload.feedback,
    )
    return BulkApproveResponse.model_validate(result)


@router.get("/{evaluation_id}", response_model=EvaluationRead, responses=CONFLICT_RESPONSES)
async def get_evaluation_endpoint(
    evaluation_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: Actor = ACTOR_DEP,
) -> EvaluationRead:
    evaluation = await get_evaluation(session, evaluation_id)
    if actor.role != "admin" and evaluation.submitter_id != actor.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return _to_read(evaluation)


@router.post(
    "/{evaluation_id}/review",
    response_model=EvaluationRead,
    responses=CONFLICT_RESPONSES,
)
async def submit_admin_review_endpoint(
    evaluation_id: UUID,
    payload: AdminReviewCreate,
    session: AsyncSession = SESSION_DEP,
    admin: Actor = ADMIN_DEP,
) -> EvaluationRead:
    """Record an administrator decision on a scored evaluation."""
    evaluation = await submit_admin_review(
        session,
        evaluation_id=evaluation_id,
        reviewer=admin,
        decision=payload.decision,
        score=payload.score,
        feedback=payload.feedback,
        comments=payload.comments,
        revision_request=(
            payload.revision_request.model_dump(mode="json") if payload.revision_request else None
        ),
    )
    return _to_read(evaluation)


@router.post(
    "/{evaluation_id}/retry",
    response_model=EvaluationRead,
    status_code=status.HTTP_202_ACCEPTED,
    responses=CONFLICT_RESPONSES,
)
async def retry_evaluation_endpoint(
    evaluation_id: UUID,
    session: AsyncSession = SESSION_DEP,
    admin: Actor = ADMIN_DEP,
) -> EvaluationRead:
    """Start a fresh attempt for a failed or stale evaluation."""
    evaluation = await retry_evaluation(session, evaluation_id=evaluation_id, actor=admin)
    return _to_read(evaluation)
