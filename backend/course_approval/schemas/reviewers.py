"""Schemas for the reviewer pool."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

from course_approval.services.approval_stages import ReviewerRole

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)


class ReviewerCreate(SQLModel):
    display_name: str = Field(min_length=1)
    email: str | None = None
    roles: list[ReviewerRole] = Field(min_length=1)
    expertise: list[str] = Field(default_factory=list)
    is_active: bool = True


class ReviewerRead(SQLModel):
    id: UUID
    display_name: str
    email: str | None = None
    roles: list[str]
    expertise: list[str]
    is_active: bool
    created_at: datetime


class ReviewerStatsRead(SQLModel):
    reviewer_id: UUID
    display_name: str
    roles: list[str]
    active_workload: int
    total_assignments: int
    completed_reviews: int
    average_score_given: float | None = None


ReviewerCreate.model_rebuild()
