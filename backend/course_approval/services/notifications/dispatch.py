"""Notification dispatch handler run by the queue worker."""

from __future__ import annotations

import httpx

from course_approval.core.config import settings
from course_approval.core.logging import get_logger
from course_approval.services.notifications.queue import (
    PipelineNotification,
    decode_notification_task,
    requeue_if_failed,
)
from course_approval.services.queue import QueuedTask

logger = get_logger(__name__)


def _delivery_body(notification: PipelineNotification) -> dict[str, object]:
    return {
        "type": notification.event_type,
        "audience": notification.audience,
        "recipient_ids": notification.recipient_ids,
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority,
        "email": {
            "to": notification.email_to,
            "subject": notification.title,
            "body": notification.message,
        }
        if notification.email_to
        else None,
        "data": notification.payload,
        "created_at": notification.created_at.isoformat(),
    }


async def _dispatch(notification: PipelineNotification) -> None:
    """Deliver to the configured notification endpoint, or log when none is set.

    HTTP errors propagate so the worker can retry with backoff.
    """
    url = settings.notification_webhook_url.strip()
    if not url:
        logger.info(
            "notification.dispatch.logged",
            extra={
                "event_type": notification.event_type,
                "audience": notification.audience,
                "recipient_ids": notification.recipient_ids,
                "title": notification.title,
            },
        )
        return

    async with httpx.AsyncClient(timeout=settings.notification_timeout_seconds) as client:
        response = await client.post(url, json=_delivery_body(notification))
        response.raise_for_status()
    logger.info(
        "notification.dispatch.delivered",
        extra={
            "event_type": notification.event_type,
            "audience": notification.audience,
            "status_code": response.status_code,
            "attempt": notification.attempts,
        },
    )


async def process_notification_task(task: QueuedTask) -> None:
    """Decode and dispatch a notification task."""
    await _dispatch(decode_notification_task(task))


def requeue_notification_task(task: QueuedTask, *, delay_seconds: float = 0) -> bool:
    """Requeue a failed notification task."""
    return requeue_if_failed(decode_notification_task(task), delay_seconds=delay_seconds)
