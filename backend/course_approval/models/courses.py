"""Course catalog record read for scoring and updated with review outcomes."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field

from course_approval.core.time import utcnow
from course_approval.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)


class Course(QueryModel, table=True):
    """Course content and publication state."""

    __tablename__ = "courses"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str
    description: str = Field(default="")
    learning_objectives: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    # [{"title": str, "lessons": [{"title": str, "content_type": str, ...}]}]
    sections: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    assignments: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    instructor_id: UUID = Field(index=True)
    instructor_name: str = Field(default="")
    instructor_email: str | None = None
    instructor_tier: str = Field(default="standard")  # standard | enterprise
    target_publish_date: datetime | None = None
    # draft | submitted | approved | rejected | needs_revision
    status: str = Field(default="draft", index=True)
    is_approved: bool = Field(default=False)
    approved_at: datetime | None = None
    is_published: bool = Field(default=False)
    published_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
