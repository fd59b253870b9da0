"""Queue envelope for background course scoring."""

from __future__ import annotations

from uuid import UUID

from course_approval.core.logging import get_logger
from course_approval.services.queue import QueuedTask, enqueue_task, new_task

logger = get_logger(__name__)
TASK_TYPE = "course_evaluation.score"


def enqueue_scoring(evaluation_id: UUID) -> bool:
    """Queue one scoring run; False when the queue is unreachable."""
    queued = enqueue_task(new_task(TASK_TYPE, {"evaluation_id": str(evaluation_id)}))
    if not queued:
        logger.warning(
            "evaluation.scoring.enqueue_failed",
            extra={"evaluation_id": str(evaluation_id)},
        )
    return queued


def decode_scoring_task(task: QueuedTask) -> UUID:
    if task.task_type != TASK_TYPE:
        raise ValueError(f"Unexpected task_type={task.task_type!r}; expected {TASK_TYPE!r}")
    return UUID(str(task.payload["evaluation_id"]))


def requeue_scoring_task(task: QueuedTask, delay_seconds: float) -> bool:
    """Scoring is never retried automatically; stale attempts are retried by an admin."""
    logger.warning(
        "evaluation.scoring.not_requeued",
        extra={"task_id": task.task_id, "payload": task.payload, "delay_seconds": delay_seconds},
    )
    return False
