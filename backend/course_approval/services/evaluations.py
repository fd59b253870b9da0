"""Evaluation orchestration: submission, background scoring, auto-approval, and admin review."""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import col, select

from course_approval.core.config import settings
from course_approval.core.errors import (
    ConcurrentUpdateError,
    DuplicateSubmissionError,
    InvalidStateError,
    NotFoundError,
    PipelineError,
    ScoringError,
)
from course_approval.core.logging import get_logger
from course_approval.core.time import utcnow
from course_approval.db.locking import claim_revision, lock_row
from course_approval.db.session import worker_session
from course_approval.models.approvals import CourseApproval
from course_approval.models.evaluations import IN_FLIGHT_STATUSES, CourseEvaluation
from course_approval.services.actors import SYSTEM_ACTOR, Actor
from course_approval.services.approval_workflow import (
    apply_final_decision,
    close_superseded_approvals,
    create_approval,
)
from course_approval.services.audit import append_processing_log, record_audit
from course_approval.services.course_catalog import (
    get_course,
    lesson_count,
    section_count,
    set_course_status,
)
from course_approval.services.notifications import (
    AUDIENCE_ADMINS,
    AUDIENCE_SUBMITTER,
    PipelineNotification,
    notify_all,
)
from course_approval.services.pipeline_settings import get_pipeline_settings, try_consume_daily_usage
from course_approval.services.scoring import ScoringAdapter, build_course_payload, get_scoring_adapter
from course_approval.services.scoring_queue import decode_scoring_task, enqueue_scoring
from course_approval.services.sla import recompute_sla

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar

    from course_approval.models.courses import Course
    from course_approval.models.pipeline_settings import PipelineSettings
    from course_approval.services.queue import QueuedTask
    from course_approval.services.scoring import ScoreResult

logger = get_logger(__name__)

SUBMISSION_TYPES = ("new_course", "course_update", "content_revision", "resubmission")
ADMIN_DECISIONS = ("approved", "rejected", "needs_revision")
REVIEWABLE_STATUSES = ("ai_completed", "admin_review")
_COURSE_STATUS_FOR_DECISION = {
    "approved": "approved",
    "rejected": "rejected",
    "needs_revision": "needs_revision",
}


def _format_score(score: float | None) -> str:
    return "n/a" if score is None else f"{score:g}"


# --- submission ---------------------------------------------------------------


async def submit_for_evaluation(
    session: AsyncSession,
    *,
    course_id: UUID,
    submitter: Actor,
    submission_type: str | None = None,
    priority: str | None = None,
) -> CourseEvaluation:
    """Open a new scoring attempt and queue it; returns before scoring runs."""
    course = await get_course(session, course_id)
    in_flight = await (
        CourseEvaluation.objects.filter_by(course_id=course_id)
        .filter(col(CourseEvaluation.status).in_(IN_FLIGHT_STATUSES))
        .first(session)
    )
    if in_flight is not None:
        raise DuplicateSubmissionError(
            f"Course {course_id} already has an evaluation in progress "
            f"(evaluation {in_flight.id}, status {in_flight.status}); "
            "wait for it to finish before resubmitting",
        )

    previous = await (
        CourseEvaluation.objects.filter_by(course_id=course_id)
        .order_by(col(CourseEvaluation.attempt).desc())
        .first(session)
    )
    if submission_type is None:
        submission_type = "resubmission" if previous is not None else "new_course"
    if submission_type not in SUBMISSION_TYPES:
        raise ValueError(f"Unknown submission type {submission_type!r}")

    now = utcnow()
    evaluation = CourseEvaluation(
        course_id=course_id,
        submitter_id=submitter.id,
        submitter_name=submitter.name,
        submitter_role=submitter.role,
        submission_type=submission_type,
        requested_priority=priority,
        attempt=previous.attempt + 1 if previous is not None else 1,
        previous_evaluation_id=previous.id if previous is not None else None,
        status="processing",
        submitted_at=now,
        created_at=now,
        updated_at=now,
    )
    append_processing_log(
        evaluation,
        stage="submission",
        message=f"Submitted as {submission_type} (attempt {evaluation.attempt})",
    )
    superseded = await close_superseded_approvals(session, course_id=course_id, actor=submitter)
    set_course_status(session, course, "submitted")
    session.add(evaluation)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise DuplicateSubmissionError(
            f"Course {course_id} already has an evaluation in progress; "
            "wait for it to finish before resubmitting",
        ) from exc
    await session.refresh(evaluation)

    enqueue_scoring(evaluation.id)
    notify_all(
        [
            PipelineNotification(
                event_type="submission_received",
                audience=AUDIENCE_ADMINS,
                title=f"Course submitted: {course.title}",
                message=f"{submitter.name or submitter.id} submitted {course.title} for evaluation.",
                payload={"evaluation_id": str(evaluation.id), "course_id": str(course_id)},
            ),
        ],
    )
    logger.info(
        "evaluation.submitted",
        extra={
            "evaluation_id": str(evaluation.id),
            "course_id": str(course_id),
            "attempt": evaluation.attempt,
            "submission_type": submission_type,
            "superseded_approvals": len(superseded),
        },
    )
    return evaluation


# --- scoring and auto-approval ------------------------------------------------


def evaluate_auto_approval(
    pipeline: PipelineSettings,
    course: Course,
    score: float,
) -> list[str]:
    """Reasons auto-approval does not apply, in check order; empty means it does."""
    if not pipeline.auto_approval_enabled:
        return ["auto-approval is disabled"]
    reasons: list[str] = []
    if score < pipeline.auto_approval_threshold:
        reasons.append(
            f"score {_format_score(score)} is below the threshold "
            f"{_format_score(pipeline.auto_approval_threshold)}",
        )
    description_length = len((course.description or "").strip())
    if description_length < pipeline.min_description_length:
        reasons.append(
            f"description has {description_length} characters, "
            f"{pipeline.min_description_length} required",
        )
    if pipeline.require_learning_objectives and not course.learning_objectives:
        reasons.append("no learning objectives")
    if section_count(course) < pipeline.min_sections:
        reasons.append(f"fewer than {pipeline.min_sections} section(s)")
    if lesson_count(course) < pipeline.min_lessons:
        reasons.append(f"fewer than {pipeline.min_lessons} lesson(s)")
    return reasons


def _mark_failed(
    session: AsyncSession,
    evaluation: CourseEvaluation,
    course: Course,
    *,
    error: str,
    stage: str = "error",
    message: str = "Scoring failed",
) -> PipelineNotification:
    now = utcnow()
    evaluation.status = "failed"
    evaluation.updated_at = now
    append_processing_log(evaluation, stage=stage, message=message, error=error)
    session.add(evaluation)
    # Put the course back in the instructor's hands so it can be revised and resubmitted.
    set_course_status(session, course, "draft")
    return PipelineNotification(
        event_type="evaluation_failed",
        audience=AUDIENCE_SUBMITTER,
        title=f"Evaluation failed: {course.title}",
        message=f"Automated evaluation could not be completed: {error}",
        priority="high",
        recipient_ids=[str(evaluation.submitter_id)],
        email_to=[course.instructor_email] if course.instructor_email else [],
        payload={"evaluation_id": str(evaluation.id), "course_id": str(course.id)},
    )


def _store_score(evaluation: CourseEvaluation, result: ScoreResult, elapsed_ms: int) -> None:
    now = utcnow()
    evaluation.ai_analysis = result.analysis()
    evaluation.ai_overall_score = result.overall_score
    evaluation.ai_model = result.model
    evaluation.processing_time_ms = elapsed_ms
    evaluation.ai_completed_at = now
    evaluation.status = "ai_completed"
    evaluation.updated_at = now
    append_processing_log(
        evaluation,
        stage="ai_analysis",
        message=f"AI analysis complete (score {_format_score(result.overall_score)})",
    )


async def _route_scored(
    session: AsyncSession,
    evaluation: CourseEvaluation,
    course: Course,
    *,
    outbox: list[PipelineNotification],
) -> None:
    score = evaluation.ai_overall_score or 0.0
    pipeline = await get_pipeline_settings(session)
    reasons = evaluate_auto_approval(pipeline, course, score)
    if not reasons and not await try_consume_daily_usage(session):
        reasons = ["daily auto-approval cap reached"]

    now = utcnow()
    if not reasons:
        evaluation.status = "completed"
        evaluation.review_decision = "approved"
        evaluation.auto_approved = True
        evaluation.review_score = score
        evaluation.review_feedback = f"Auto-approved by AI (Score: {_format_score(score)}/100)"
        evaluation.reviewer_name = SYSTEM_ACTOR.name
        evaluation.reviewed_at = now
        append_processing_log(evaluation, stage="auto_approval", message=evaluation.review_feedback)
        set_course_status(session, course, "approved")
        outbox.append(
            PipelineNotification(
                event_type="auto_approved",
                audience=AUDIENCE_SUBMITTER,
                title=f"Course approved: {course.title}",
                message=evaluation.review_feedback,
                recipient_ids=[str(evaluation.submitter_id)],
                email_to=[course.instructor_email] if course.instructor_email else [],
                payload={"evaluation_id": str(evaluation.id), "score": score},
            ),
        )
        logger.info(
            "evaluation.auto_approved",
            extra={"evaluation_id": str(evaluation.id), "score": score},
        )
        return

    append_processing_log(
        evaluation,
        stage="auto_approval",
        message=f"Auto-approval skipped: {'; '.join(reasons)}",
    )
    evaluation.status = "admin_review"
    approval = await create_approval(
        session,
        evaluation=evaluation,
        course=course,
        actor=SYSTEM_ACTOR,
        outbox=outbox,
    )
    evaluation.approval_id = approval.id
    append_processing_log(
        evaluation,
        stage="approval_handoff",
        message=f"Handed to human review as {approval.approval_code}",
    )
    outbox.append(
        PipelineNotification(
            event_type="evaluation_ready",
            audience=AUDIENCE_ADMINS,
            title=f"Review needed: {course.title}",
            message=(
                f"AI score {_format_score(score)}. "
                f"Auto-approval skipped: {'; '.join(reasons)}."
            ),
            priority=approval.priority,
            payload={
                "evaluation_id": str(evaluation.id),
                "approval_id": str(approval.id),
                "skip_reasons": reasons,
            },
        ),
    )
    logger.info(
        "evaluation.handed_off",
        extra={
            "evaluation_id": str(evaluation.id),
            "approval_id": str(approval.id),
            "score": score,
            "skip_reasons": reasons,
        },
    )


async def run_scoring(
    session: AsyncSession,
    evaluation_id: UUID,
    *,
    adapter: ScoringAdapter | None = None,
) -> CourseEvaluation | None:
    """Score one `processing` attempt and route it.

    The model call runs without holding the row lock; the attempt is locked
    again afterwards and the result is discarded if the attempt left
    `processing` in the meantime (for example, an admin retry marked it failed).
    """
    evaluation = await CourseEvaluation.objects.by_id(evaluation_id).for_update().first(session)
    if evaluation is None:
        logger.warning("evaluation.scoring.missing", extra={"evaluation_id": str(evaluation_id)})
        return None
    if evaluation.status != "processing":
        await session.commit()
        logger.info(
            "evaluation.scoring.skipped",
            extra={"evaluation_id": str(evaluation_id), "status": evaluation.status},
        )
        return evaluation

    append_processing_log(evaluation, stage="ai_processing", message="Automated scoring started")
    session.add(evaluation)
    await claim_revision(session, evaluation)
    await session.commit()

    course = await get_course(session, evaluation.course_id)
    payload = build_course_payload(course)
    adapter = adapter or get_scoring_adapter()
    started = time.perf_counter()
    result: ScoreResult | None = None
    error: str | None = None
    try:
        result = await adapter.evaluate(payload)
    except ScoringError as exc:
        error = exc.message
    except Exception as exc:
        logger.exception(
            "evaluation.scoring.adapter_error",
            extra={"evaluation_id": str(evaluation_id)},
        )
        error = str(exc) or type(exc).__name__
    elapsed_ms = int((time.perf_counter() - started) * 1000)

    evaluation = await lock_row(session, CourseEvaluation, evaluation_id, label="Evaluation")
    if evaluation.status != "processing":
        await session.commit()
        logger.warning(
            "evaluation.scoring.discarded",
            extra={"evaluation_id": str(evaluation_id), "status": evaluation.status},
        )
        return evaluation

    course = await get_course(session, evaluation.course_id)
    outbox: list[PipelineNotification] = []
    if result is None:
        outbox.append(_mark_failed(session, evaluation, course, error=error or "unknown error"))
        logger.warning(
            "evaluation.scoring.failed",
            extra={"evaluation_id": str(evaluation_id), "error": error, "elapsed_ms": elapsed_ms},
        )
    else:
        _store_score(evaluation, result, elapsed_ms)
        await _route_scored(session, evaluation, course, outbox=outbox)
    session.add(evaluation)
    await claim_revision(session, evaluation)
    await session.commit()
    notify_all(outbox)
    return evaluation


async def process_scoring_task(task: QueuedTask) -> None:
    """Queue handler for `course_evaluation.score` tasks."""
    evaluation_id = decode_scoring_task(task)
    async with worker_session() as session:
        await run_scoring(session, evaluation_id)


# --- admin actions ------------------------------------------------------------


async def submit_admin_review(
    session: AsyncSession,
    *,
    evaluation_id: UUID,
    reviewer: Actor,
    decision: str,
    score: float | None = None,
    feedback: str = "",
    comments: str = "",
    revision_request: dict[str, Any] | None = None,
) -> CourseEvaluation:
    """Apply an administrator's decision to a scored attempt."""
    if decision not in ADMIN_DECISIONS:
        raise ValueError(f"Unknown review decision {decision!r}")
    # Lock order is approval, then evaluation, matching reviewer submissions.
    current = await CourseEvaluation.objects.by_id(evaluation_id).first(session)
    if current is None:
        raise NotFoundError(f"Evaluation {evaluation_id} not found")
    approval_id = current.approval_id
    approval: CourseApproval | None = None
    if approval_id is not None:
        approval = await lock_row(session, CourseApproval, approval_id, label="Approval")
    evaluation = await lock_row(session, CourseEvaluation, evaluation_id, label="Evaluation")
    if evaluation.approval_id != approval_id:
        raise ConcurrentUpdateError(
            f"Evaluation {evaluation_id} was linked to an approval while being reviewed",
        )
    if evaluation.status not in REVIEWABLE_STATUSES:
        raise InvalidStateError(
            f"Evaluation {evaluation_id} is {evaluation.status}; only "
            f"{' or '.join(REVIEWABLE_STATUSES)} evaluations can be reviewed",
        )

    now = utcnow()
    evaluation.review_decision = decision
    evaluation.reviewer_id = reviewer.id
    evaluation.reviewer_name = reviewer.name
    evaluation.review_score = score
    evaluation.review_feedback = feedback
    evaluation.review_comments = comments
    evaluation.revision_request = revision_request if decision == "needs_revision" else None
    evaluation.reviewed_at = now
    evaluation.status = "completed"
    evaluation.updated_at = now
    append_processing_log(
        evaluation,
        stage="admin_review",
        message=f"Admin review: {decision} by {reviewer.name or reviewer.id}",
    )
    course = await get_course(session, evaluation.course_id)
    set_course_status(session, course, _COURSE_STATUS_FOR_DECISION[decision])

    outbox: list[PipelineNotification] = []
    if approval is not None:
        if approval.final_decision is None:
            if decision == "needs_revision":
                record_audit(
                    approval,
                    action="revision_requested",
                    actor=reviewer,
                    details=feedback,
                    new_status="revision_required",
                )
                approval.status = "revision_required"
                approval.updated_at = now
                recompute_sla(approval, now)
                session.add(approval)
            else:
                await apply_final_decision(
                    session,
                    approval,
                    decision=decision,
                    actor=reviewer,
                    reason=feedback or f"Admin review: {decision}",
                    outbox=outbox,
                    mirror_evaluation=False,
                )
            await claim_revision(session, approval)

    session.add(evaluation)
    await claim_revision(session, evaluation)
    await session.commit()

    outbox.append(
        PipelineNotification(
            event_type="review_completed",
            audience=AUDIENCE_SUBMITTER,
            title=f"Review completed: {course.title}",
            message=feedback or f"Your course was reviewed: {decision}.",
            priority="high" if decision == "needs_revision" else "normal",
            recipient_ids=[str(evaluation.submitter_id)],
            email_to=[course.instructor_email] if course.instructor_email else [],
            payload={
                "evaluation_id": str(evaluation.id),
                "decision": decision,
                "revision_request": evaluation.revision_request,
            },
        ),
    )
    notify_all(outbox)
    logger.info(
        "evaluation.reviewed",
        extra={
            "evaluation_id": str(evaluation.id),
            "decision": decision,
            "reviewer_id": str(reviewer.id),
        },
    )
    return evaluation


async def bulk_approve(
    session: AsyncSession,
    *,
    evaluation_ids: list[UUID],
    reviewer: Actor,
    feedback: str = "Bulk approved",
) -> dict[str, Any]:
    """Approve each attempt independently; one failure never blocks the rest."""
    results: list[dict[str, Any]] = []
    for evaluation_id in evaluation_ids:
        try:
            await submit_admin_review(
                session,
                evaluation_id=evaluation_id,
                reviewer=reviewer,
                decision="approved",
                feedback=feedback,
            )
        except PipelineError as exc:
            await session.rollback()
            results.append({"evaluation_id": evaluation_id, "status": "error", "error": exc.message})
            continue
        results.append({"evaluation_id": evaluation_id, "status": "approved", "error": None})
    approved = sum(1 for item in results if item["status"] == "approved")
    logger.info(
        "evaluation.bulk_approve",
        extra={"total": len(results), "approved": approved, "reviewer_id": str(reviewer.id)},
    )
    return {
        "results": results,
        "summary": {"total": len(results), "approved": approved, "failed": len(results) - approved},
    }


def _stale_cutoff(older_than_minutes: int | None = None) -> datetime:
    minutes = older_than_minutes
    if minutes is None:
        minutes = settings.scoring_stale_after_minutes
    return utcnow() - timedelta(minutes=minutes)


async def retry_evaluation(
    session: AsyncSession,
    *,
    evaluation_id: UUID,
    actor: Actor,
) -> CourseEvaluation:
    """Start a fresh attempt for a failed or stuck one."""
    evaluation = await lock_row(session, CourseEvaluation, evaluation_id, label="Evaluation")
    if evaluation.status == "processing":
        if evaluation.submitted_at > _stale_cutoff():
            raise InvalidStateError(
                f"Evaluation {evaluation_id} is still processing; it can be retried after "
                f"{settings.scoring_stale_after_minutes} minutes",
            )
        course = await get_course(session, evaluation.course_id)
        _mark_failed(
            session,
            evaluation,
            course,
            error=f"No result after {settings.scoring_stale_after_minutes} minutes",
            stage="retry",
            message=f"Marked failed for retry by {actor.name or actor.id}",
        )
        await claim_revision(session, evaluation)
        await session.commit()
        logger.warning(
            "evaluation.retry.stale_failed",
            extra={"evaluation_id": str(evaluation_id), "actor_id": str(actor.id)},
        )
    elif evaluation.status == "failed":
        await session.commit()
    else:
        raise InvalidStateError(
            f"Evaluation {evaluation_id} is {evaluation.status}; only failed or stale "
            "processing evaluations can be retried",
        )

    retry = await submit_for_evaluation(
        session,
        course_id=evaluation.course_id,
        submitter=Actor(
            id=evaluation.submitter_id,
            name=evaluation.submitter_name,
            role=evaluation.submitter_role,
        ),
        submission_type=evaluation.submission_type,
        priority=evaluation.requested_priority,
    )
    logger.info(
        "evaluation.retried",
        extra={
            "evaluation_id": str(evaluation_id),
            "retry_evaluation_id": str(retry.id),
            "actor_id": str(actor.id),
        },
    )
    return retry


# --- reads --------------------------------------------------------------------


async def get_evaluation(session: AsyncSession, evaluation_id: UUID) -> CourseEvaluation:
    evaluation = await CourseEvaluation.objects.by_id(evaluation_id).first(session)
    if evaluation is None:
        raise NotFoundError(f"Evaluation {evaluation_id} not found")
    return evaluation


def pending_evaluations_statement() -> SelectOfScalar[CourseEvaluation]:
    """Scored attempts awaiting an admin decision, oldest first."""
    return (
        select(CourseEvaluation)
        .where(col(CourseEvaluation.status).in_(REVIEWABLE_STATUSES))
        .where(col(CourseEvaluation.review_decision) == "pending")
        .order_by(col(CourseEvaluation.submitted_at))
    )


def evaluations_by_submitter_statement(submitter_id: UUID) -> SelectOfScalar[CourseEvaluation]:
    return (
        select(CourseEvaluation)
        .where(col(CourseEvaluation.submitter_id) == submitter_id)
        .order_by(col(CourseEvaluation.submitted_at).desc())
    )


async def list_stale_evaluations(
    session: AsyncSession,
    *,
    older_than_minutes: int | None = None,
) -> list[CourseEvaluation]:
    return await (
        CourseEvaluation.objects.filter_by(status="processing")
        .filter(col(CourseEvaluation.submitted_at) <= _stale_cutoff(older_than_minutes))
        .order_by(col(CourseEvaluation.submitted_at))
        .all(session)
    )


async def evaluation_statistics(session: AsyncSession) -> dict[str, Any]:
    by_status = {
        status_value: int(count)
        for status_value, count in await session.exec(
            select(col(CourseEvaluation.status), func.count(col(CourseEvaluation.id))).group_by(
                col(CourseEvaluation.status),
            ),
        )
    }
    by_decision = {
        decision: int(count)
        for decision, count in await session.exec(
            select(col(CourseEvaluation.review_decision), func.count(col(CourseEvaluation.id))).group_by(
                col(CourseEvaluation.review_decision),
            ),
        )
    }
    avg_processing_ms, avg_score, auto_approved = (
        await session.exec(
            select(
                func.avg(col(CourseEvaluation.processing_time_ms)),
                func.avg(col(CourseEvaluation.ai_overall_score)),
                func.count(col(CourseEvaluation.id)).filter(col(CourseEvaluation.auto_approved).is_(True)),
            ),
        )
    ).one()
    approved = by_decision.get("approved", 0)
    decided = approved + by_decision.get("rejected", 0) + by_decision.get("needs_revision", 0)
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_decision": by_decision,
        "average_processing_time_ms": round(float(avg_processing_ms), 2)
        if avg_processing_ms is not None
        else None,
        "average_ai_score": round(float(avg_score), 2) if avg_score is not None else None,
        "auto_approved": int(auto_approved or 0),
        "approval_rate": round(approved / decided * 100, 2) if decided else None,
    }
