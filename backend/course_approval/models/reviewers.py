"""Reviewer pool used for role-slot assignment."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from course_approval.core.time import utcnow
from course_approval.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Reviewer(QueryModel, table=True):
    """Staff member eligible to hold one or more reviewer roles."""

    __tablename__ = "reviewers"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    display_name: str
    email: str | None = None
    roles: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    expertise: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
