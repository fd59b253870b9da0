"""Async pagination helper over SQLModel select statements."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi_pagination.ext.sqlmodel import paginate as _paginate

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from fastapi_pagination.bases import AbstractPage
    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import Select, SelectOfScalar


async def paginate(
    session: AsyncSession,
    statement: Select[Any] | SelectOfScalar[Any],
    *,
    transformer: Callable[[Sequence[Any]], Sequence[Any]] | None = None,
) -> AbstractPage[Any]:
    """Run `statement` with the request's limit/offset params applied."""
    return await _paginate(session, statement, transformer=transformer)
