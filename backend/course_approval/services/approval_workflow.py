"""Approval workflow: record creation, reviews, stage advancement, and decisions.

Every mutation locks the approval row, applies its change, recomputes the
SLA status, claims the record revision, and commits. Notifications are
collected while the transaction is open and sent only after commit.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, or_
from sqlmodel import col, select

from course_approval.core.config import settings
from course_approval.core.errors import (
    AlreadyDecidedError,
    ConcurrentUpdateError,
    InvalidStateError,
    NotFoundError,
    ReviewerNotAssignedError,
)
from course_approval.core.logging import get_logger
from course_approval.core.time import hours_between, utcnow
from course_approval.db.locking import claim_revision, lock_row
from course_approval.models.approvals import (
    ACTIVE_APPROVAL_STATUSES,
    REVIEWABLE_APPROVAL_STATUSES,
    ApprovalAssignment,
    ApprovalReview,
    CourseApproval,
)
from course_approval.models.evaluations import CourseEvaluation
from course_approval.models.reviewers import Reviewer
from course_approval.services.actors import SYSTEM_ACTOR
from course_approval.services.approval_stages import (
    ReviewStage,
    completion_percentage,
    next_stage,
    required_roles,
    review_team,
)
from course_approval.services.audit import append_processing_log, record_audit
from course_approval.services.course_catalog import get_course, set_course_status
from course_approval.services.notifications import (
    AUDIENCE_ADMINS,
    AUDIENCE_REVIEWERS,
    AUDIENCE_SUBMITTER,
    PipelineNotification,
    notify_all,
)
from course_approval.services.reviewer_assignment import (
    approval_assignments,
    auto_assign_for_stage,
    reviewer_workloads,
)
from course_approval.services.sla import (
    SLA_SEVERITY,
    classify_sla,
    elapsed_hours,
    is_overdue,
    recompute_sla,
    target_hours_for,
    time_remaining_hours,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar

    from course_approval.models.courses import Course
    from course_approval.services.actors import Actor

logger = get_logger(__name__)

PRIORITIES = ("low", "normal", "high", "urgent")
FINAL_DECISIONS = ("approved", "rejected")
_APPROVAL_CODE_ATTEMPTS = 10
_RECENT_ACTIVITY_LIMIT = 20


# --- creation -----------------------------------------------------------------


async def generate_approval_code(session: AsyncSession, *, year: int) -> str:
    """`APPR-YYYY-NNNNNN`, re-rolled until unused."""
    for _ in range(_APPROVAL_CODE_ATTEMPTS):
        code = f"APPR-{year}-{secrets.randbelow(1_000_000):06d}"
        if not await CourseApproval.objects.filter_by(approval_code=code).exists(session):
            return code
    raise ConcurrentUpdateError("Could not allocate a unique approval code; retry the request")


def determine_priority(
    course: Course,
    *,
    requested: str | None = None,
    now: datetime | None = None,
) -> str:
    if requested in PRIORITIES:
        return requested
    if course.instructor_tier == "enterprise":
        return "high"
    if course.target_publish_date is not None:
        days_left = (course.target_publish_date - (now or utcnow())) / timedelta(days=1)
        if days_left <= 2:
            return "urgent"
        if days_left <= 7:
            return "high"
    return "normal"


async def create_approval(
    session: AsyncSession,
    *,
    evaluation: CourseEvaluation,
    course: Course,
    actor: Actor,
    outbox: list[PipelineNotification],
) -> CourseApproval:
    """Open an approval record for an evaluation and staff its first stage.

    The caller owns the transaction.
    """
    now = utcnow()
    priority = determine_priority(course, requested=evaluation.requested_priority, now=now)
    approval = CourseApproval(
        approval_code=await generate_approval_code(session, year=now.year),
        course_id=course.id,
        evaluation_id=evaluation.id,
        submitter_id=evaluation.submitter_id,
        submitter_name=evaluation.submitter_name,
        submission_type=evaluation.submission_type,
        priority=priority,
        sla_target_hours=target_hours_for(priority),
        submitted_at=now,
        created_at=now,
        updated_at=now,
    )
    record_audit(
        approval,
        action="submitted",
        actor=actor,
        details=f"Approval opened for evaluation {evaluation.id}",
        metadata={"priority": priority, "ai_score": evaluation.ai_overall_score},
    )
    session.add(approval)
    await session.flush()
    await auto_assign_for_stage(session, approval, actor=actor, outbox=outbox)
    logger.info(
        "approval.created",
        extra={
            "approval_id": str(approval.id),
            "approval_code": approval.approval_code,
            "course_id": str(course.id),
            "priority": priority,
        },
    )
    return approval


async def close_superseded_approvals(
    session: AsyncSession,
    *,
    course_id: UUID,
    actor: Actor,
) -> list[CourseApproval]:
    """Reject open `revision_required` records replaced by a new submission."""
    stale = await (
        CourseApproval.objects.filter_by(course_id=course_id, status="revision_required")
        .filter(col(CourseApproval.final_decision).is_(None))
        .for_update()
        .all(session)
    )
    now = utcnow()
    for approval in stale:
        record_audit(
            approval,
            action="superseded",
            actor=actor,
            details="superseded by resubmission",
            new_status="rejected",
        )
        approval.status = "rejected"
        approval.final_decision = "rejected"
        approval.decision_reason = "superseded by resubmission"
        approval.decided_by = actor.id
        approval.decided_by_name = actor.name
        approval.decided_at = now
        approval.current_stage = ReviewStage.COMPLETED.value
        approval.review_completed_at = now
        approval.actual_review_hours = round(hours_between(approval.submitted_at, now), 2)
        approval.updated_at = now
        recompute_sla(approval, now)
        session.add(approval)
        await claim_revision(session, approval)
    return stale


# --- reviews and stages -------------------------------------------------------


async def approval_reviews(session: AsyncSession, approval_id: UUID) -> list[ApprovalReview]:
    return await (
        ApprovalReview.objects.filter_by(approval_id=approval_id)
        .order_by(col(ApprovalReview.submitted_at))
        .all(session)
    )


def _ensure_undecided(approval: CourseApproval) -> None:
    if approval.final_decision is not None:
        raise AlreadyDecidedError(
            f"Approval {approval.approval_code} was already {approval.final_decision}",
        )


def advance_stages(
    approval: CourseApproval,
    reviews: list[ApprovalReview],
    *,
    actor: Actor,
) -> list[str]:
    """Move forward through every stage whose required roles all have a review.

    Returns the stages completed by this call; a stage already recorded as
    complete is never recorded again.
    """
    reviewed_roles = {review.role for review in reviews}
    recorded = {entry.get("stage") for entry in approval.completed_stages}
    advanced: list[str] = []
    while approval.current_stage != ReviewStage.COMPLETED.value:
        stage = approval.current_stage
        roles = required_roles(stage)
        if not all(role.value in reviewed_roles for role in roles):
            break
        if stage not in recorded:
            role_values = {role.value for role in roles}
            approval.completed_stages = [
                *approval.completed_stages,
                {
                    "stage": stage,
                    "completed_at": utcnow().isoformat(),
                    "reviewer_ids": sorted(
                        {str(review.reviewer_id) for review in reviews if review.role in role_values},
                    ),
                },
            ]
            recorded.add(stage)
            advanced.append(stage)
        following = next_stage(stage).value
        record_audit(
            approval,
            action="stage_advanced",
            actor=actor,
            details=f"{stage} -> {following}",
            metadata={"from_stage": stage, "to_stage": following},
        )
        approval.current_stage = following
    return advanced


def auto_decision(
    reviews: list[ApprovalReview],
    overall_score: float | None,
) -> tuple[str, str] | None:
    """(decision, reason) when the reviews settle the outcome, else None."""
    critical = [
        issue
        for review in reviews
        for issue in review.issues or []
        if issue.get("severity") == "critical"
    ]
    if critical:
        descriptions = "; ".join(str(issue.get("description", "")) for issue in critical)
        return "rejected", f"Auto-rejected: critical issue(s) found: {descriptions}"
    if overall_score is None:
        return None
    if overall_score >= settings.auto_decision_approve_score:
        return "approved", f"Auto-approved: overall review score {overall_score:g}"
    if overall_score < settings.auto_decision_reject_score:
        return "rejected", f"Auto-rejected: overall review score {overall_score:g}"
    return None


async def submit_review(
    session: AsyncSession,
    *,
    approval_id: UUID,
    reviewer_id: UUID,
    actor: Actor,
    score: float,
    feedback: str = "",
    category: str = "general",
    issues: list[dict[str, Any]] | None = None,
    approved: bool = False,
) -> CourseApproval:
    """Record a reviewer's feedback for the role slot they hold."""
    approval = await lock_row(session, CourseApproval, approval_id, label="Approval")
    _ensure_undecided(approval)
    if approval.status not in REVIEWABLE_APPROVAL_STATUSES:
        raise InvalidStateError(
            f"Approval {approval.approval_code} is {approval.status}; reviews are accepted "
            f"only while it is {' or '.join(REVIEWABLE_APPROVAL_STATUSES)}",
        )
    assignments = await approval_assignments(session, approval.id)
    slot = next((item for item in assignments if item.reviewer_id == reviewer_id), None)
    if slot is None:
        raise ReviewerNotAssignedError(
            f"Reviewer {reviewer_id} is not assigned to approval {approval.approval_code}",
        )

    now = utcnow()
    review = ApprovalReview(
        approval_id=approval.id,
        reviewer_id=reviewer_id,
        role=slot.role,
        score=score,
        category=category,
        feedback=feedback,
        issues=[{**issue, "resolved": False} for issue in issues or []],
        approved=approved,
        submitted_at=now,
    )
    session.add(review)
    await session.flush()

    reviews = await approval_reviews(session, approval.id)
    approval.overall_score = round(sum(item.score for item in reviews) / len(reviews), 2)
    if approval.review_started_at is None:
        approval.review_started_at = now
    record_audit(
        approval,
        action="review_submitted",
        actor=actor,
        details=f"{slot.role} review submitted",
        metadata={"role": slot.role, "score": score, "approved": approved},
    )

    outbox: list[PipelineNotification] = []
    advanced = advance_stages(approval, reviews, actor=actor)
    outcome = auto_decision(reviews, approval.overall_score)
    if outcome is not None:
        decision, reason = outcome
        await apply_final_decision(
            session,
            approval,
            decision=decision,
            actor=SYSTEM_ACTOR,
            reason=reason,
            reviews=reviews,
            outbox=outbox,
        )
    elif advanced:
        await auto_assign_for_stage(session, approval, actor=SYSTEM_ACTOR, outbox=outbox)
        outbox.append(
            PipelineNotification(
                event_type="review_completed",
                audience=AUDIENCE_REVIEWERS,
                title=f"{approval.approval_code} moved to {approval.current_stage}",
                message=f"Completed stage(s): {', '.join(advanced)}.",
                priority=approval.priority,
                recipient_ids=[str(item.reviewer_id) for item in assignments],
                payload={"approval_id": str(approval.id), "stage": approval.current_stage},
            ),
        )

    approval.updated_at = now
    recompute_sla(approval, now)
    session.add(approval)
    await claim_revision(session, approval)
    await session.commit()
    notify_all(outbox)
    logger.info(
        "approval.review.submitted",
        extra={
            "approval_id": str(approval.id),
            "role": slot.role,
            "score": score,
            "overall_score": approval.overall_score,
            "stage": approval.current_stage,
            "auto_decision": outcome[0] if outcome else None,
        },
    )
    return approval


# --- decisions ----------------------------------------------------------------


def resubmission_guidelines(
    reviews: list[ApprovalReview],
    overall_score: float | None,
) -> list[str]:
    """Guidance derived from unresolved issues, grouped by category.

    Per category every critical issue is listed, otherwise the first high one.
    """
    by_category: dict[str, list[dict[str, Any]]] = {}
    for review in reviews:
        for issue in review.issues or []:
            if issue.get("resolved"):
                continue
            category = str(issue.get("category") or review.category or "general")
            by_category.setdefault(category, []).append(issue)

    guidelines: list[str] = []
    for category, issues in by_category.items():
        critical = [issue for issue in issues if issue.get("severity") == "critical"]
        chosen = critical or [issue for issue in issues if issue.get("severity") == "high"][:1]
        guidelines.extend(
            f"Address {category} issues: {issue.get('description', '')}" for issue in chosen
        )
    threshold = settings.auto_decision_reject_score
    if not guidelines and overall_score is not None and overall_score < threshold:
        guidelines.append(
            f"Improve overall course quality: review score {overall_score:g} is below "
            f"the required {threshold:g}",
        )
    return guidelines


def _mirror_onto_evaluation(
    evaluation: CourseEvaluation,
    approval: CourseApproval,
    *,
    actor: Actor,
) -> None:
    now = approval.decided_at or utcnow()
    evaluation.status = "completed"
    evaluation.review_decision = approval.final_decision or "pending"
    evaluation.reviewer_id = actor.id
    evaluation.reviewer_name = actor.name
    evaluation.review_score = approval.overall_score
    evaluation.review_feedback = approval.decision_reason
    evaluation.reviewed_at = now
    evaluation.updated_at = now
    append_processing_log(
        evaluation,
        stage="approval_decision",
        message=f"Approval {approval.approval_code} {approval.final_decision}",
    )


async def apply_final_decision(
    session: AsyncSession,
    approval: CourseApproval,
    *,
    decision: str,
    actor: Actor,
    reason: str = "",
    reviews: list[ApprovalReview] | None = None,
    outbox: list[PipelineNotification],
    mirror_evaluation: bool = True,
    conditions: Sequence[str] = (),
) -> CourseApproval:
    """Set the terminal decision on a locked record. The caller commits."""
    _ensure_undecided(approval)
    if decision not in FINAL_DECISIONS:
        raise ValueError(f"Unknown decision {decision!r}")
    now = utcnow()
    previous_status = approval.status
    if reviews is None:
        reviews = await approval_reviews(session, approval.id)

    approval.final_decision = decision
    approval.status = decision
    approval.decided_by = actor.id
    approval.decided_by_name = actor.name
    approval.decision_reason = reason
    approval.decision_conditions = list(conditions)
    approval.decided_at = now
    approval.current_stage = ReviewStage.COMPLETED.value
    approval.review_completed_at = now
    approval.actual_review_hours = round(hours_between(approval.submitted_at, now), 2)
    approval.updated_at = now

    course = await get_course(session, approval.course_id)
    if decision == "approved":
        approval.publish_date = now
        set_course_status(session, course, "approved")
    else:
        approval.resubmission_guidelines = resubmission_guidelines(reviews, approval.overall_score)
        approval.resubmission_allowed = True
        approval.appeal_eligible = True
        set_course_status(session, course, "rejected")

    record_audit(
        approval,
        action="final_decision",
        actor=actor,
        details=reason,
        previous_status=previous_status,
        new_status=decision,
        metadata={"automatic": actor.is_system, "overall_score": approval.overall_score},
    )
    recompute_sla(approval, now)
    session.add(approval)

    if mirror_evaluation and approval.evaluation_id is not None:
        evaluation = await lock_row(
            session, CourseEvaluation, approval.evaluation_id, label="Evaluation"
        )
        if evaluation.status != "completed":
            _mirror_onto_evaluation(evaluation, approval, actor=actor)
            session.add(evaluation)
            await claim_revision(session, evaluation)

    assignments = await approval_assignments(session, approval.id)
    message = f"{approval.approval_code} was {decision}."
    if approval.resubmission_guidelines:
        message += " " + " ".join(approval.resubmission_guidelines)
    outbox.append(
        PipelineNotification(
            event_type="approval_decided",
            audience=AUDIENCE_SUBMITTER,
            title=f"Course {decision}",
            message=message,
            priority=approval.priority,
            recipient_ids=[str(approval.submitter_id)],
            payload={
                "approval_id": str(approval.id),
                "decision": decision,
                "resubmission_guidelines": approval.resubmission_guidelines,
            },
        ),
    )
    if assignments:
        outbox.append(
            PipelineNotification(
                event_type="approval_decided",
                audience=AUDIENCE_REVIEWERS,
                title=f"{approval.approval_code} {decision}",
                message=message,
                priority=approval.priority,
                recipient_ids=[str(item.reviewer_id) for item in assignments],
                payload={"approval_id": str(approval.id), "decision": decision},
            ),
        )
    logger.info(
        "approval.decided",
        extra={
            "approval_id": str(approval.id),
            "decision": decision,
            "actor_id": str(actor.id),
            "automatic": actor.is_system,
            "review_hours": approval.actual_review_hours,
        },
    )
    return approval


async def make_final_decision(
    session: AsyncSession,
    *,
    approval_id: UUID,
    decision: str,
    actor: Actor,
    reason: str = "",
    conditions: Sequence[str] = (),
) -> CourseApproval:
    approval = await lock_row(session, CourseApproval, approval_id, label="Approval")
    outbox: list[PipelineNotification] = []
    await apply_final_decision(
        session,
        approval,
        decision=decision,
        actor=actor,
        reason=reason,
        outbox=outbox,
        conditions=conditions,
    )
    await claim_revision(session, approval)
    await session.commit()
    notify_all(outbox)
    return approval


# --- reads --------------------------------------------------------------------


async def get_approval(session: AsyncSession, approval_id: UUID) -> CourseApproval:
    approval = await CourseApproval.objects.by_id(approval_id).first(session)
    if approval is None:
        raise NotFoundError(f"Approval {approval_id} not found")
    return approval


async def get_approval_by_code(session: AsyncSession, approval_code: str) -> CourseApproval:
    approval = await CourseApproval.objects.filter_by(approval_code=approval_code).first(session)
    if approval is None:
        raise NotFoundError(f"Approval {approval_code} not found")
    return approval


async def approval_detail(session: AsyncSession, approval: CourseApproval) -> dict[str, Any]:
    """Record plus review team, reviews, and derived SLA/progress views."""
    assignments = await approval_assignments(session, approval.id)
    now = utcnow()
    return {
        "approval": approval,
        "assignments": assignments,
        "reviews": await approval_reviews(session, approval.id),
        "audit_log": approval.audit_log,
        "review_team": {role.value: reviewer for role, reviewer in review_team(assignments).items()},
        "is_overdue": is_overdue(approval, now),
        "time_remaining_hours": round(time_remaining_hours(approval, now), 2),
        "completion_percentage": completion_percentage(approval.current_stage),
    }


def review_queue_statement(
    *,
    reviewer_id: UUID | None = None,
    priority: str | None = None,
) -> SelectOfScalar[CourseApproval]:
    """Active records, urgent first, then oldest submission first."""
    priority_rank = case(
        {"urgent": 0, "high": 1, "normal": 2, "low": 3},
        value=col(CourseApproval.priority),
        else_=4,
    )
    statement = select(CourseApproval).where(
        col(CourseApproval.status).in_(ACTIVE_APPROVAL_STATUSES),
    )
    if reviewer_id is not None:
        statement = statement.where(
            col(CourseApproval.id).in_(
                select(ApprovalAssignment.approval_id).where(
                    col(ApprovalAssignment.reviewer_id) == reviewer_id,
                ),
            ),
        )
    if priority is not None:
        statement = statement.where(col(CourseApproval.priority) == priority)
    return statement.order_by(priority_rank, col(CourseApproval.submitted_at))


async def reviewer_stats(session: AsyncSession, reviewer_id: UUID) -> dict[str, Any]:
    reviewer = await Reviewer.objects.by_id(reviewer_id).first(session)
    if reviewer is None:
        raise NotFoundError(f"Reviewer {reviewer_id} not found")
    workload = (await reviewer_workloads(session, [reviewer_id]))[reviewer_id]
    review_count, average_score = (
        await session.exec(
            select(func.count(col(ApprovalReview.id)), func.avg(col(ApprovalReview.score))).where(
                col(ApprovalReview.reviewer_id) == reviewer_id,
            ),
        )
    ).one()
    total_assignments = await ApprovalAssignment.objects.filter_by(
        reviewer_id=reviewer_id,
    ).count(session)
    return {
        "reviewer_id": reviewer.id,
        "display_name": reviewer.display_name,
        "roles": reviewer.roles,
        "active_workload": workload,
        "total_assignments": total_assignments,
        "completed_reviews": int(review_count or 0),
        "average_score_given": round(float(average_score), 2) if average_score is not None else None,
    }


async def approval_dashboard(
    session: AsyncSession,
    *,
    include_reviewers: bool = False,
) -> dict[str, Any]:
    now = utcnow()
    by_status: dict[str, dict[str, Any]] = {}
    status_rows = await session.exec(
        select(
            col(CourseApproval.status),
            func.count(col(CourseApproval.id)),
            func.avg(col(CourseApproval.overall_score)),
        ).group_by(col(CourseApproval.status)),
    )
    for status_value, count, average in status_rows:
        by_status[status_value] = {
            "count": int(count),
            "average_score": round(float(average), 2) if average is not None else None,
        }

    active_filter = col(CourseApproval.status).in_(ACTIVE_APPROVAL_STATUSES)
    by_priority = {priority: 0 for priority in PRIORITIES}
    for priority, count in await session.exec(
        select(col(CourseApproval.priority), func.count(col(CourseApproval.id)))
        .where(active_filter)
        .group_by(col(CourseApproval.priority)),
    ):
        by_priority[priority] = int(count)

    active = await CourseApproval.objects.filter(active_filter).all(session)
    by_sla = {"on_track": 0, "at_risk": 0, "breached": 0}
    for approval in active:
        by_sla[classify_sla(elapsed_hours(approval, now), approval.sla_target_hours)] += 1

    recent = await (
        CourseApproval.objects.filter(
            or_(active_filter, col(CourseApproval.updated_at) >= now - timedelta(hours=24)),
        )
        .order_by(col(CourseApproval.updated_at).desc())
        .limit(_RECENT_ACTIVITY_LIMIT)
        .all(session)
    )

    total = sum(item["count"] for item in by_status.values())
    approved = by_status.get("approved", {}).get("count", 0)
    rejected = by_status.get("rejected", {}).get("count", 0)
    decided = approved + rejected
    dashboard: dict[str, Any] = {
        "by_status": by_status,
        "by_priority": by_priority,
        "by_sla_status": by_sla,
        "recent_activity": recent,
        "summary": {
            "total": total,
            "active": len(active),
            "overdue": sum(1 for approval in active if is_overdue(approval, now)),
            "approval_rate": round(approved / decided * 100, 2) if decided else None,
        },
    }
    if include_reviewers:
        reviewers = await Reviewer.objects.filter(col(Reviewer.is_active).is_(True)).all(session)
        dashboard["reviewers"] = [await reviewer_stats(session, item.id) for item in reviewers]
    return dashboard


# --- SLA sweep ----------------------------------------------------------------


async def run_sla_sweep(session: AsyncSession, *, now: datetime | None = None) -> dict[str, int]:
    """Recompute SLA on active records and escalate worsening ones.

    Each record is committed on its own; a record changed concurrently is
    skipped and picked up by the next sweep.
    """
    now = now or utcnow()
    active = select(CourseApproval.id).where(col(CourseApproval.status).in_(ACTIVE_APPROVAL_STATUSES))
    approval_ids = list(await session.exec(active))
    checked = 0
    escalated = 0
    skipped = 0
    for approval_id in approval_ids:
        approval = await lock_row(session, CourseApproval, approval_id, label="Approval")
        checked += 1
        previous = approval.sla_status
        current = recompute_sla(approval, now)
        if current == previous:
            await session.commit()
            continue

        worsened = SLA_SEVERITY[current] > SLA_SEVERITY.get(previous, 0)
        if worsened:
            approval.escalation_level += 1
            approval.reminders_sent += 1
            approval.updated_at = now
            record_audit(
                approval,
                action="sla_escalated",
                actor=SYSTEM_ACTOR,
                details=f"SLA {previous} -> {current}",
                metadata={"escalation_level": approval.escalation_level},
            )
        assignments = await approval_assignments(session, approval.id)
        session.add(approval)
        try:
            await claim_revision(session, approval)
        except ConcurrentUpdateError:
            await session.rollback()
            skipped += 1
            continue
        await session.commit()
        if not worsened:
            continue
        escalated += 1
        message = (
            f"{approval.approval_code} is {current.replace('_', ' ')} "
            f"({approval.sla_target_hours}h target)."
        )
        outbox = [
            PipelineNotification(
                event_type="sla_escalated",
                audience=AUDIENCE_ADMINS,
                title=f"SLA {current}: {approval.approval_code}",
                message=message,
                priority="urgent" if current == "breached" else "high",
                payload={"approval_id": str(approval.id), "sla_status": current},
            ),
        ]
        if assignments:
            outbox.append(
                PipelineNotification(
                    event_type="sla_escalated",
                    audience=AUDIENCE_REVIEWERS,
                    title=f"Reminder: {approval.approval_code}",
                    message=message,
                    priority=approval.priority,
                    recipient_ids=[str(item.reviewer_id) for item in assignments],
                    payload={"approval_id": str(approval.id), "sla_status": current},
                ),
            )
        notify_all(outbox)
    logger.info(
        "approval.sla_sweep.complete",
        extra={"checked": checked, "escalated": escalated, "skipped": skipped},
    )
    return {"checked": checked, "escalated": escalated, "skipped": skipped}
