"""Reviewer pool endpoints."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status
from sqlmodel import col, select

from course_approval.api.deps import ACTOR_DEP, ADMIN_DEP, SESSION_DEP
from course_approval.db.pagination import paginate
from course_approval.models.reviewers import Reviewer
from course_approval.schemas.errors import ErrorResponse
from course_approval.schemas.pagination import DefaultLimitOffsetPage
from course_approval.schemas.reviewers import ReviewerCreate, ReviewerRead, ReviewerStatsRead
from course_approval.services.approval_workflow import reviewer_stats

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

    from course_approval.services.actors import Actor

router = APIRouter(prefix="/reviewers", tags=["reviewers"])
ACTIVE_ONLY_QUERY = Query(default=True)


def _coerce_reviewers(items: Sequence[Any]) -> list[ReviewerRead]:
    reads: list[ReviewerRead] = []
    for item in items:
        if not isinstance(item, Reviewer):
            msg = "Expected Reviewer items from paginated query"
            raise TypeError(msg)
        reads.append(ReviewerRead.model_validate(item, from_attributes=True))
    return reads


@router.post("", response_model=ReviewerRead, status_code=status.HTTP_201_CREATED)
async def create_reviewer(
    payload: ReviewerCreate,
    session: AsyncSession = SESSION_DEP,
    _admin: Actor = ADMIN_DEP,
) -> ReviewerRead:
    """Add a staff member to the reviewer pool."""
    reviewer = Reviewer(
        display_name=payload.display_name,
        email=payload.email,
        roles=[role.value for role in payload.roles],
        expertise=payload.expertise,
        is_active=payload.is_active,
    )
    session.add(reviewer)
    await session.commit()
    await session.refresh(reviewer)
    return ReviewerRead.model_validate(reviewer, from_attributes=True)


@router.get("", response_model=DefaultLimitOffsetPage[ReviewerRead])
async def list_reviewers(
    active_only: bool = ACTIVE_ONLY_QUERY,
    session: AsyncSession = SESSION_DEP,
    _admin: Actor = ADMIN_DEP,
) -> DefaultLimitOffsetPage[ReviewerRead]:
    statement = select(Reviewer)
    if active_only:
        statement = statement.where(col(Reviewer.is_active).is_(True))
    statement = statement.order_by(col(Reviewer.display_name))
    return await paginate(session, statement, transformer=_coerce_reviewers)


@router.get(
    "/{reviewer_id}/stats",
    response_model=ReviewerStatsRead,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
async def get_reviewer_stats(
    reviewer_id: UUID,
    session: AsyncSession = SESSION_DEP,
    actor: Actor = ACTOR_DEP,
) -> ReviewerStatsRead:
    """Workload and review history; reviewers may read their own."""
    if actor.role != "admin" and actor.id != reviewer_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
    return ReviewerStatsRead.model_validate(await reviewer_stats(session, reviewer_id))
