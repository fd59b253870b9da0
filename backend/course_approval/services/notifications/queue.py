"""Notification queue persistence helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from course_approval.core.config import settings
from course_approval.core.logging import get_logger
from course_approval.services.queue import QueuedTask, enqueue_task
from course_approval.services.queue import requeue_if_failed as generic_requeue_if_failed

logger = get_logger(__name__)
TASK_TYPE = "pipeline_notification"

AUDIENCE_ADMINS = "admins"
AUDIENCE_SUBMITTER = "submitter"
AUDIENCE_REVIEWERS = "reviewers"


@dataclass(frozen=True)
class PipelineNotification:
    """In-app notification (and optional email) about a pipeline event."""

    event_type: str
    # submission_received | evaluation_failed | evaluation_ready | auto_approved
    # review_completed | reviewer_assigned | assignment_failed | approval_decided | sla_escalated
    audience: str
    title: str
    message: str
    priority: str = "normal"  # low | normal | high | urgent
    recipient_ids: list[str] = field(default_factory=list)
    email_to: list[str] = field(default_factory=list)
    payload: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    attempts: int = 0


def _task_from_notification(notification: PipelineNotification) -> QueuedTask:
    return QueuedTask(
        task_type=TASK_TYPE,
        payload={
            "event_type": notification.event_type,
            "audience": notification.audience,
            "title": notification.title,
            "message": notification.message,
            "priority": notification.priority,
            "recipient_ids": list(notification.recipient_ids),
            "email_to": list(notification.email_to),
            "payload": notification.payload,
        },
        created_at=notification.created_at,
        attempts=notification.attempts,
    )


def decode_notification_task(task: QueuedTask) -> PipelineNotification:
    """Decode a QueuedTask into a PipelineNotification."""
    if task.task_type != TASK_TYPE:
        raise ValueError(f"Unexpected task_type={task.task_type!r}; expected {TASK_TYPE!r}")

    p: dict[str, Any] = task.payload
    return PipelineNotification(
        event_type=str(p["event_type"]),
        audience=str(p["audience"]),
        title=str(p.get("title", "")),
        message=str(p.get("message", "")),
        priority=str(p.get("priority", "normal")),
        recipient_ids=[str(rid) for rid in p.get("recipient_ids", [])],
        email_to=[str(addr) for addr in p.get("email_to", [])],
        payload=p.get("payload", {}),
        created_at=task.created_at,
        attempts=task.attempts,
    )


def enqueue_notification(notification: PipelineNotification) -> bool:
    """Persist a notification in the Redis queue."""
    queued = _task_from_notification(notification)
    if not enqueue_task(queued, settings.rq_queue_name, redis_url=settings.rq_redis_url):
        logger.warning(
            "notification.enqueue_failed",
            extra={
                "event_type": notification.event_type,
                "audience": notification.audience,
            },
        )
        return False
    logger.info(
        "notification.enqueued",
        extra={
            "event_type": notification.event_type,
            "audience": notification.audience,
            "recipient_count": len(notification.recipient_ids),
        },
    )
    return True


def requeue_if_failed(
    notification: PipelineNotification,
    *,
    delay_seconds: float = 0,
) -> bool:
    """Requeue a failed notification with capped retries."""
    try:
        return generic_requeue_if_failed(
            _task_from_notification(notification),
            settings.rq_queue_name,
            max_retries=settings.rq_dispatch_max_retries,
            redis_url=settings.rq_redis_url,
            delay_seconds=delay_seconds,
        )
    except Exception as exc:
        logger.warning(
            "notification.requeue_failed",
            extra={"event_type": notification.event_type, "error": str(exc)},
        )
        return False
