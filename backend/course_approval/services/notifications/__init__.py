"""Pipeline notification queueing + dispatch utilities."""

from __future__ import annotations

from typing import TYPE_CHECKING

from course_approval.core.logging import get_logger
from course_approval.services.notifications.queue import (
    AUDIENCE_ADMINS,
    AUDIENCE_REVIEWERS,
    AUDIENCE_SUBMITTER,
    TASK_TYPE,
    PipelineNotification,
    decode_notification_task,
    enqueue_notification,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = get_logger(__name__)


def notify(notification: PipelineNotification) -> None:
    """Fire-and-forget enqueue; failures are logged and never raised."""
    try:
        enqueue_notification(notification)
    except Exception:
        logger.warning(
            "notification.enqueue_error",
            exc_info=True,
            extra={"event_type": notification.event_type},
        )


def notify_all(outbox: Iterable[PipelineNotification]) -> None:
    """Send notifications collected during a transaction, after it committed."""
    for notification in outbox:
        notify(notification)


__all__ = [
    "AUDIENCE_ADMINS",
    "AUDIENCE_REVIEWERS",
    "AUDIENCE_SUBMITTER",
    "TASK_TYPE",
    "PipelineNotification",
    "decode_notification_task",
    "enqueue_notification",
    "notify",
    "notify_all",
]
