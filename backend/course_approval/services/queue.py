"""Redis list-backed task queue with delayed (sorted-set) retries."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, cast
from uuid import uuid4

import redis

from course_approval.core.config import settings
from course_approval.core.logging import get_logger

logger = get_logger(__name__)

_SCHEDULED_SUFFIX = ":scheduled"
_DRAIN_BATCH_SIZE = 100


@dataclass(frozen=True)
class QueuedTask:
    """Queued task envelope."""

    task_type: str
    payload: dict[str, Any]
    created_at: datetime
    attempts: int = 0
    task_id: str = field(default_factory=lambda: uuid4().hex)

    def to_json(self) -> str:
        return json.dumps(
            {
                "task_id": self.task_id,
                "task_type": self.task_type,
                "payload": self.payload,
                "created_at": self.created_at.isoformat(),
                "attempts": self.attempts,
            },
            sort_keys=True,
        )

    def next_attempt(self) -> QueuedTask:
        return QueuedTask(
            task_type=self.task_type,
            payload=self.payload,
            created_at=self.created_at,
            attempts=self.attempts + 1,
            task_id=self.task_id,
        )


def new_task(task_type: str, payload: dict[str, Any]) -> QueuedTask:
    return QueuedTask(task_type=task_type, payload=payload, created_at=datetime.now(UTC))


def _redis_client(redis_url: str | None = None) -> redis.Redis:
    return redis.Redis.from_url(redis_url or settings.rq_redis_url)


def _scheduled_queue_name(queue_name: str) -> str:
    return f"{queue_name}{_SCHEDULED_SUFFIX}"


def _now_seconds() -> float:
    return time.time()


def _drain_ready_scheduled_tasks(
    client: redis.Redis,
    queue_name: str,
    *,
    max_items: int = _DRAIN_BATCH_SIZE,
) -> float | None:
    """Move due delayed tasks onto the list; return seconds until the next one."""
    scheduled_queue = _scheduled_queue_name(queue_name)
    now = _now_seconds()

    ready_items = cast(
        list[str | bytes],
        client.zrangebyscore(scheduled_queue, "-inf", now, start=0, num=max_items),
    )
    if ready_items:
        ready_values = tuple(ready_items)
        client.lpush(queue_name, *ready_values)
        client.zrem(scheduled_queue, *ready_values)
        logger.debug(
            "queue.drain_ready_scheduled",
            extra={"queue_name": queue_name, "count": len(ready_items)},
        )

    next_item = cast(
        list[tuple[str | bytes, float]],
        client.zrangebyscore(scheduled_queue, now, "+inf", start=0, num=1, withscores=True),
    )
    if not next_item:
        return None
    return max(0.0, float(next_item[0][1]) - now)


def _schedule_for_later(
    task: QueuedTask,
    queue_name: str,
    delay_seconds: float,
    *,
    redis_url: str | None = None,
) -> bool:
    client = _redis_client(redis_url=redis_url)
    client.zadd(
        _scheduled_queue_name(queue_name),
        {task.to_json(): _now_seconds() + delay_seconds},
    )
    logger.info(
        "queue.scheduled",
        extra={
            "task_id": task.task_id,
            "task_type": task.task_type,
            "queue_name": queue_name,
            "delay_seconds": delay_seconds,
        },
    )
    return True


def enqueue_task(
    task: QueuedTask,
    queue_name: str | None = None,
    *,
    redis_url: str | None = None,
) -> bool:
    """Push a task onto the queue; returns False when Redis is unavailable."""
    target = queue_name or settings.rq_queue_name
    try:
        client = _redis_client(redis_url=redis_url)
        client.lpush(target, task.to_json())
    except Exception as exc:
        logger.warning(
            "queue.enqueue_failed",
            extra={
                "task_id": task.task_id,
                "task_type": task.task_type,
                "queue_name": target,
                "error": str(exc),
            },
        )
        return False
    logger.info(
        "queue.enqueued",
        extra={
            "task_id": task.task_id,
            "task_type": task.task_type,
            "queue_name": target,
            "attempt": task.attempts,
        },
    )
    return True


def dequeue_task(
    queue_name: str | None = None,
    *,
    redis_url: str | None = None,
    block: bool = False,
    block_timeout: float = 0,
) -> QueuedTask | None:
    """Pop one task envelope from the queue."""
    target = queue_name or settings.rq_queue_name
    client = _redis_client(redis_url=redis_url)
    raw: str | bytes | None
    if block:
        timeout = max(0.0, float(block_timeout))
        next_delay = _drain_ready_scheduled_tasks(client, target)
        if next_delay is not None:
            timeout = min(timeout, next_delay) if timeout else next_delay
        raw_result = cast(
            tuple[bytes | str, bytes | str] | None,
            client.brpop([target], timeout=timeout),
        )
        raw = raw_result[1] if raw_result is not None else None
    else:
        raw = cast(str | bytes | None, client.rpop(target))
    if raw is None:
        _drain_ready_scheduled_tasks(client, target)
        return None
    return _decode_task(raw, target)


def _decode_task(raw: str | bytes, queue_name: str) -> QueuedTask:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    try:
        payload: dict[str, Any] = json.loads(raw)
        return QueuedTask(
            task_type=str(payload["task_type"]),
            payload=dict(payload["payload"]),
            created_at=datetime.fromisoformat(payload["created_at"]),
            attempts=int(payload.get("attempts", 0)),
            task_id=str(payload.get("task_id") or uuid4().hex),
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.error(
            "queue.decode_failed",
            extra={"queue_name": queue_name, "raw_payload": raw, "error": str(exc)},
        )
        raise


def requeue_if_failed(
    task: QueuedTask,
    queue_name: str | None = None,
    *,
    max_retries: int,
    redis_url: str | None = None,
    delay_seconds: float = 0,
) -> bool:
    """Requeue a failed task with capped retries.

    Returns True if requeued.
    """
    target = queue_name or settings.rq_queue_name
    retry = task.next_attempt()
    if retry.attempts > max_retries:
        logger.warning(
            "queue.drop_failed_task",
            extra={
                "task_id": task.task_id,
                "task_type": task.task_type,
                "queue_name": target,
                "attempts": retry.attempts,
            },
        )
        return False
    if delay_seconds > 0:
        return _schedule_for_later(retry, target, delay_seconds, redis_url=redis_url)
    return enqueue_task(retry, target, redis_url=redis_url)
