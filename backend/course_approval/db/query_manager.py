"""Chainable query helpers exposed on models as `Model.objects`."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import func
from sqlmodel import SQLModel, col, select

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlmodel.ext.asyncio.session import AsyncSession
    from sqlmodel.sql.expression import SelectOfScalar

ModelT = TypeVar("ModelT", bound=SQLModel)


@dataclass(frozen=True)
class QuerySet(Generic[ModelT]):
    """Immutable wrapper around a `select(...)` statement."""

    model: type[ModelT]
    statement: SelectOfScalar[ModelT]

    def filter(self, *criteria: Any) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.where(*criteria))

    def filter_by(self, **kwargs: object) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.filter_by(**kwargs))

    def order_by(self, *ordering: Any) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.order_by(*ordering))

    def limit(self, count: int) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.limit(count))

    def offset(self, count: int) -> QuerySet[ModelT]:
        return replace(self, statement=self.statement.offset(count))

    def for_update(self) -> QuerySet[ModelT]:
        """Lock matched rows until the transaction ends (no-op on SQLite)."""
        statement = self.statement.with_for_update().execution_options(
            populate_existing=True,
        )
        return replace(self, statement=statement)

    async def all(self, session: AsyncSession) -> list[ModelT]:
        return list(await session.exec(self.statement))

    async def first(self, session: AsyncSession) -> ModelT | None:
        return (await session.exec(self.statement)).first()

    async def one(self, session: AsyncSession) -> ModelT:
        return (await session.exec(self.statement)).one()

    async def count(self, session: AsyncSession) -> int:
        subquery = self.statement.order_by(None).subquery()
        result = await session.exec(select(func.count()).select_from(subquery))
        return int(result.one())

    async def exists(self, session: AsyncSession) -> bool:
        return await self.limit(1).first(session) is not None


class ModelManager(Generic[ModelT]):
    """Entry point for building `QuerySet` instances for one model."""

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    def all(self) -> QuerySet[ModelT]:
        return QuerySet(self.model, select(self.model))

    def filter(self, *criteria: Any) -> QuerySet[ModelT]:
        return self.all().filter(*criteria)

    def filter_by(self, **kwargs: object) -> QuerySet[ModelT]:
        return self.all().filter_by(**kwargs)

    def by_id(self, obj_id: object) -> QuerySet[ModelT]:
        return self.filter(col(getattr(self.model, "id")) == obj_id)

    def by_ids(self, obj_ids: Iterable[object]) -> QuerySet[ModelT]:
        return self.by_field_in("id", obj_ids)

    def by_field_in(self, field_name: str, values: Iterable[object]) -> QuerySet[ModelT]:
        return self.filter(col(getattr(self.model, field_name)).in_(list(values)))


class ManagerDescriptor:
    """Class-level descriptor returning a fresh manager bound to the model."""

    def __get__(self, instance: object, owner: type[ModelT]) -> ModelManager[ModelT]:
        return ModelManager(owner)
