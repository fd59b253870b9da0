"""Base SQLModel class with the shared `objects` query manager."""

from __future__ import annotations

from typing import ClassVar

from sqlmodel import SQLModel

from course_approval.db.query_manager import ManagerDescriptor


class QueryModel(SQLModel, table=False):
    """SQLModel base that exposes `Model.objects` query helpers."""

    objects: ClassVar[ManagerDescriptor] = ManagerDescriptor()
