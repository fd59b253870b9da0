"""Per-record serialization for read-modify-write sequences.

Mutations load the row with `SELECT ... FOR UPDATE` and, before commit, claim
the row's `revision` with a conditional UPDATE. The row lock serializes
writers on PostgreSQL; the revision claim catches lost updates on backends
that ignore row locks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, TypeVar

from sqlalchemy import update
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import col

from course_approval.core.errors import ConcurrentUpdateError, NotFoundError
from course_approval.core.logging import get_logger

if TYPE_CHECKING:
    from uuid import UUID

    from sqlmodel.ext.asyncio.session import AsyncSession

logger = get_logger(__name__)


class Revisioned(Protocol):
    id: UUID
    revision: int


RecordT = TypeVar("RecordT", bound=Revisioned)


async def lock_row(
    session: AsyncSession,
    model: type[RecordT],
    record_id: UUID,
    *,
    label: str,
) -> RecordT:
    """Load one row for update, raising `NotFoundError` when it does not exist."""
    record = await model.objects.by_id(record_id).for_update().first(session)  # type: ignore[attr-defined]
    if record is None:
        raise NotFoundError(f"{label} {record_id} not found")
    return record


async def claim_revision(session: AsyncSession, record: RecordT) -> None:
    """Bump `record.revision` only if nobody else did since it was read."""
    model = type(record)
    seen = record.revision
    statement = (
        update(model)
        .where(col(model.id) == record.id)
        .where(col(model.revision) == seen)
        .values(revision=seen + 1)
        .execution_options(synchronize_session=False)
    )
    result = await session.exec(statement)  # type: ignore[call-overload]
    if result.rowcount != 1:
        logger.warning(
            "db.record.concurrent_update",
            extra={"table": model.__tablename__, "record_id": str(record.id), "revision": seen},
        )
        raise ConcurrentUpdateError(
            f"{model.__tablename__} {record.id} was modified concurrently; reload and retry",
        )
    set_committed_value(record, "revision", seen + 1)
