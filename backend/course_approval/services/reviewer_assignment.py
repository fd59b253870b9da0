"""Reviewer selection and role-slot assignment for approval records.

Automatic assignment picks the least-loaded eligible reviewer below the
role's capacity cap, preferring reviewers whose expertise matches the role.
Workload is the number of distinct active approval records on which a
reviewer holds any slot.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import distinct, func
from sqlmodel import col, select

from course_approval.core.config import settings
from course_approval.core.errors import (
    AlreadyDecidedError,
    InvalidStateError,
    NoAvailableReviewerError,
    NotFoundError,
    ReviewerAlreadyAssignedError,
)
from course_approval.core.logging import get_logger
from course_approval.core.time import utcnow
from course_approval.db.locking import claim_revision, lock_row
from course_approval.models.approvals import (
    ACTIVE_APPROVAL_STATUSES,
    ApprovalAssignment,
    CourseApproval,
)
from course_approval.models.reviewers import Reviewer
from course_approval.services.approval_stages import ReviewerRole, required_roles
from course_approval.services.audit import record_audit
from course_approval.services.notifications import (
    AUDIENCE_ADMINS,
    AUDIENCE_REVIEWERS,
    PipelineNotification,
    notify_all,
)
from course_approval.services.pipeline_settings import get_pipeline_settings, role_capacity
from course_approval.services.sla import recompute_sla

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

    from course_approval.services.actors import Actor

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReviewerCandidate:
    reviewer_id: UUID
    display_name: str
    workload: int
    email: str | None = None
    expertise_match: int = 0


async def reviewer_workloads(
    session: AsyncSession,
    reviewer_ids: Iterable[UUID],
) -> dict[UUID, int]:
    ids = list(reviewer_ids)
    if not ids:
        return {}
    statement = (
        select(
            col(ApprovalAssignment.reviewer_id),
            func.count(distinct(col(ApprovalAssignment.approval_id))),
        )
        .join(CourseApproval, col(CourseApproval.id) == col(ApprovalAssignment.approval_id))
        .where(col(ApprovalAssignment.reviewer_id).in_(ids))
        .where(col(CourseApproval.status).in_(ACTIVE_APPROVAL_STATUSES))
        .group_by(col(ApprovalAssignment.reviewer_id))
    )
    counts = {reviewer_id: 0 for reviewer_id in ids}
    for reviewer_id, count in await session.exec(statement):
        counts[reviewer_id] = int(count)
    return counts


async def build_candidates(session: AsyncSession, role: ReviewerRole | str) -> list[ReviewerCandidate]:
    """Active reviewers eligible for `role`, with their current workload."""
    role_value = ReviewerRole(role).value
    reviewers = await (
        Reviewer.objects.filter(col(Reviewer.is_active).is_(True))
        .order_by(col(Reviewer.display_name))
        .all(session)
    )
    eligible = [reviewer for reviewer in reviewers if role_value in (reviewer.roles or [])]
    wanted = set(settings.reviewer_role_expertise.get(role_value, []))
    workloads = await reviewer_workloads(session, [reviewer.id for reviewer in eligible])
    return [
        ReviewerCandidate(
            reviewer_id=reviewer.id,
            display_name=reviewer.display_name,
            workload=workloads.get(reviewer.id, 0),
            email=reviewer.email,
            expertise_match=len(wanted.intersection(reviewer.expertise or [])),
        )
        for reviewer in eligible
    ]


def select_reviewer(
    candidates: Sequence[ReviewerCandidate],
    *,
    cap: int,
    exclude: Iterable[UUID] = (),
) -> ReviewerCandidate:
    """Least-loaded candidate strictly below `cap`.

    Ties go to the closest expertise match for the role, then name, then id.
    """
    excluded = set(exclude)
    available = [
        candidate
        for candidate in candidates
        if candidate.workload < cap and candidate.reviewer_id not in excluded
    ]
    if not available:
        raise NoAvailableReviewerError(
            f"No reviewer available below the workload cap of {cap}",
        )
    available.sort(
        key=lambda item: (
            item.workload,
            -item.expertise_match,
            item.display_name,
            str(item.reviewer_id),
        ),
    )
    return available[0]


async def approval_assignments(session: AsyncSession, approval_id: UUID) -> list[ApprovalAssignment]:
    return await (
        ApprovalAssignment.objects.filter_by(approval_id=approval_id)
        .order_by(col(ApprovalAssignment.assigned_at))
        .all(session)
    )


def _mark_assigned(
    approval: CourseApproval,
    assignment: ApprovalAssignment,
    *,
    actor: Actor,
    replaced: UUID | None = None,
) -> None:
    previous_status = approval.status
    if approval.status == "pending":
        approval.status = "under_review"
    if approval.assigned_at is None:
        approval.assigned_at = assignment.assigned_at
    metadata: dict[str, object] = {
        "role": assignment.role,
        "reviewer_id": str(assignment.reviewer_id),
        "method": assignment.assignment_method,
    }
    if replaced is not None:
        metadata["replaced_reviewer_id"] = str(replaced)
    record_audit(
        approval,
        action="reviewer_assigned",
        actor=actor,
        details=f"Assigned {assignment.role} reviewer",
        previous_status=previous_status,
        new_status=approval.status,
        metadata=metadata,
    )
    approval.updated_at = utcnow()


def _assignment_notice(
    approval: CourseApproval,
    assignment: ApprovalAssignment,
) -> PipelineNotification:
    return PipelineNotification(
        event_type="reviewer_assigned",
        audience=AUDIENCE_REVIEWERS,
        title=f"Review assigned: {approval.approval_code}",
        message=f"You have been assigned as {assignment.role} reviewer for {approval.approval_code}.",
        priority=approval.priority,
        recipient_ids=[str(assignment.reviewer_id)],
        payload={"approval_id": str(approval.id), "role": assignment.role},
    )


async def assign_reviewer(
    session: AsyncSession,
    approval: CourseApproval,
    *,
    role: ReviewerRole | str,
    actor: Actor,
    candidates: Sequence[ReviewerCandidate] | None = None,
    outbox: list[PipelineNotification] | None = None,
) -> ApprovalAssignment:
    """Fill an empty role slot automatically; nothing is written on failure."""
    role_value = ReviewerRole(role).value
    current = await approval_assignments(session, approval.id)
    if any(item.role == role_value for item in current):
        raise InvalidStateError(
            f"Role {role_value} on approval {approval.approval_code} is already filled",
        )
    settings_row = await get_pipeline_settings(session)
    cap = role_capacity(settings_row, role_value)
    if candidates is None:
        candidates = await build_candidates(session, role_value)
    remaining = list(candidates)
    exclude = {item.reviewer_id for item in current}

    while True:
        chosen = select_reviewer(remaining, cap=cap, exclude=exclude)
        # Lock the reviewer and recount so concurrent assignments cannot overshoot the cap.
        await Reviewer.objects.by_id(chosen.reviewer_id).for_update().first(session)
        workload = (await reviewer_workloads(session, [chosen.reviewer_id]))[chosen.reviewer_id]
        if workload < cap:
            break
        remaining = [item for item in remaining if item.reviewer_id != chosen.reviewer_id]

    assignment = ApprovalAssignment(
        approval_id=approval.id,
        role=role_value,
        reviewer_id=chosen.reviewer_id,
        assigned_by=actor.id,
        assignment_method="auto",
    )
    session.add(assignment)
    _mark_assigned(approval, assignment, actor=actor)
    session.add(approval)
    await session.flush()
    if outbox is not None:
        outbox.append(_assignment_notice(approval, assignment))
    logger.info(
        "approval.reviewer.assigned",
        extra={
            "approval_id": str(approval.id),
            "role": role_value,
            "reviewer_id": str(chosen.reviewer_id),
            "workload": workload,
            "cap": cap,
        },
    )
    return assignment


async def manual_assign_reviewer(
    session: AsyncSession,
    approval: CourseApproval,
    *,
    role: ReviewerRole | str,
    reviewer_id: UUID,
    actor: Actor,
    outbox: list[PipelineNotification] | None = None,
) -> ApprovalAssignment:
    """Administrator override: put `reviewer_id` in the slot, replacing any holder.

    The workload cap is not enforced here; over-cap assignments are logged.
    """
    role_value = ReviewerRole(role).value
    reviewer = await Reviewer.objects.by_id(reviewer_id).first(session)
    if reviewer is None:
        raise NotFoundError(f"Reviewer {reviewer_id} not found")
    if not reviewer.is_active:
        raise InvalidStateError(f"Reviewer {reviewer_id} is inactive")

    current = await approval_assignments(session, approval.id)
    for item in current:
        if item.reviewer_id == reviewer_id and item.role != role_value:
            raise ReviewerAlreadyAssignedError(
                f"Reviewer {reviewer_id} already holds the {item.role} slot on "
                f"{approval.approval_code}",
            )
    existing = next((item for item in current if item.role == role_value), None)
    if existing is not None and existing.reviewer_id == reviewer_id:
        return existing

    settings_row = await get_pipeline_settings(session)
    cap = role_capacity(settings_row, role_value)
    workload = (await reviewer_workloads(session, [reviewer_id]))[reviewer_id]
    if workload >= cap:
        logger.warning(
            "approval.reviewer.over_capacity",
            extra={
                "approval_id": str(approval.id),
                "reviewer_id": str(reviewer_id),
                "role": role_value,
                "workload": workload,
                "cap": cap,
            },
        )

    replaced: UUID | None = None
    if existing is not None:
        # Update in place so the (approval_id, role) constraint is never violated mid-flush.
        replaced = existing.reviewer_id
        existing.reviewer_id = reviewer_id
        existing.assigned_by = actor.id
        existing.assignment_method = "manual"
        existing.assigned_at = utcnow()
        assignment = existing
    else:
        assignment = ApprovalAssignment(
            approval_id=approval.id,
            role=role_value,
            reviewer_id=reviewer_id,
            assigned_by=actor.id,
            assignment_method="manual",
        )
    session.add(assignment)
    _mark_assigned(approval, assignment, actor=actor, replaced=replaced)
    session.add(approval)
    await session.flush()
    if outbox is not None:
        outbox.append(_assignment_notice(approval, assignment))
    logger.info(
        "approval.reviewer.manual_assigned",
        extra={
            "approval_id": str(approval.id),
            "role": role_value,
            "reviewer_id": str(reviewer_id),
            "replaced_reviewer_id": str(replaced) if replaced else None,
        },
    )
    return assignment


async def auto_assign_for_stage(
    session: AsyncSession,
    approval: CourseApproval,
    *,
    actor: Actor,
    outbox: list[PipelineNotification],
) -> list[ApprovalAssignment]:
    """Fill every empty slot the current stage needs; failures leave the slot empty."""
    filled = {item.role for item in await approval_assignments(session, approval.id)}
    created: list[ApprovalAssignment] = []
    for role in required_roles(approval.current_stage):
        if role.value in filled:
            continue
        try:
            assignment = await assign_reviewer(
                session,
                approval,
                role=role,
                actor=actor,
                outbox=outbox,
            )
        except NoAvailableReviewerError as exc:
            record_audit(
                approval,
                action="assignment_failed",
                actor=actor,
                details=exc.message,
                metadata={"role": role.value, "stage": approval.current_stage},
            )
            session.add(approval)
            outbox.append(
                PipelineNotification(
                    event_type="assignment_failed",
                    audience=AUDIENCE_ADMINS,
                    title=f"No reviewer available for {approval.approval_code}",
                    message=f"The {role.value} slot could not be filled automatically: {exc.message}",
                    priority="high",
                    payload={"approval_id": str(approval.id), "role": role.value},
                ),
            )
            logger.warning(
                "approval.reviewer.assignment_failed",
                extra={"approval_id": str(approval.id), "role": role.value, "error": exc.message},
            )
            continue
        filled.add(role.value)
        created.append(assignment)
    return created


async def assign_for_approval(
    session: AsyncSession,
    *,
    approval_id: UUID,
    role: ReviewerRole | str,
    actor: Actor,
    reviewer_id: UUID | None = None,
) -> ApprovalAssignment:
    """Assign one role slot on an undecided record (manual when `reviewer_id` is given)."""
    approval = await lock_row(session, CourseApproval, approval_id, label="Approval")
    if approval.final_decision is not None:
        raise AlreadyDecidedError(
            f"Approval {approval.approval_code} was already {approval.final_decision}",
        )
    outbox: list[PipelineNotification] = []
    if reviewer_id is None:
        assignment = await assign_reviewer(session, approval, role=role, actor=actor, outbox=outbox)
    else:
        assignment = await manual_assign_reviewer(
            session,
            approval,
            role=role,
            reviewer_id=reviewer_id,
            actor=actor,
            outbox=outbox,
        )
    recompute_sla(approval)
    session.add(approval)
    await claim_revision(session, approval)
    await session.commit()
    await session.refresh(assignment)
    notify_all(outbox)
    return assignment
