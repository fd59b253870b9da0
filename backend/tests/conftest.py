# ruff: noqa: INP001
"""Pytest configuration shared across backend tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Deterministic defaults for import-time settings initialization, regardless of shell env.
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""
os.environ["ANTHROPIC_API_KEY"] = "test-key"
os.environ["RQ_DISPATCH_THROTTLE_SECONDS"] = "0"


class FakeRedis:
    """In-memory stand-in for the list and sorted-set calls the queue makes."""

    def __init__(self) -> None:
        self.lists: dict[str, list[str]] = {}
        self.zsets: dict[str, dict[str, float]] = {}

    def lpush(self, key: str, *values: str | bytes) -> int:
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value.decode("utf-8") if isinstance(value, bytes) else value)
        return len(items)

    def rpop(self, key: str) -> str | None:
        items = self.lists.get(key) or []
        if not items:
            return None
        return items.pop()

    def brpop(self, keys: list[str], timeout: float = 0) -> tuple[str, str] | None:
        del timeout
        for key in keys:
            value = self.rpop(key)
            if value is not None:
                return key, value
        return None

    def zadd(self, key: str, mapping: dict[str, float]) -> int:
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    def zrem(self, key: str, *values: str | bytes) -> int:
        zset = self.zsets.get(key, {})
        removed = 0
        for value in values:
            member = value.decode("utf-8") if isinstance(value, bytes) else value
            if zset.pop(member, None) is not None:
                removed += 1
        return removed

    def zrangebyscore(
        self,
        key: str,
        min_score: float | str,
        max_score: float | str,
        start: int | None = None,
        num: int | None = None,
        withscores: bool = False,
    ) -> list[object]:
        low = float(min_score)
        high = float(max_score)
        members = sorted(
            (score, member)
            for member, score in self.zsets.get(key, {}).items()
            if low <= score <= high
        )
        if start is not None and num is not None:
            members = members[start : start + num]
        if withscores:
            return [(member, score) for score, member in members]
        return [member for _, member in members]

    def queued(self, key: str) -> list[str]:
        return list(self.lists.get(key, []))


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
    """Route every queue operation to an in-memory Redis."""
    fake = FakeRedis()

    def _fake_client(redis_url: str | None = None) -> FakeRedis:
        del redis_url
        return fake

    monkeypatch.setattr("course_approval.services.queue._redis_client", _fake_client)
    return fake
