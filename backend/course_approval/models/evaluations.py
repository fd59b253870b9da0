"""Evaluation records: one row per automated-scoring attempt of a course submission."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, Index, text
from sqlmodel import Field

from course_approval.core.time import utcnow
from course_approval.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)

IN_FLIGHT_STATUSES = ("processing", "ai_completed", "admin_review")
TERMINAL_STATUSES = ("completed", "failed")
_IN_FLIGHT_SQL = "status IN ('processing', 'ai_completed', 'admin_review')"


class CourseEvaluation(QueryModel, table=True):
    """Submission attempt with AI analysis, admin review, and processing log."""

    __tablename__ = "course_evaluations"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        # At most one in-flight attempt per course.
        Index(
            "uq_course_evaluations_in_flight",
            "course_id",
            unique=True,
            postgresql_where=text(_IN_FLIGHT_SQL),
            sqlite_where=text(_IN_FLIGHT_SQL),
        ),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    course_id: UUID = Field(foreign_key="courses.id", index=True)
    submitter_id: UUID = Field(index=True)
    submitter_name: str = Field(default="")
    submitter_role: str = Field(default="instructor")
    submission_type: str = Field(default="new_course")
    # Carried to the approval record when the attempt is handed to human review.
    requested_priority: str | None = None
    attempt: int = Field(default=1)
    previous_evaluation_id: UUID | None = Field(default=None, foreign_key="course_evaluations.id")
    status: str = Field(default="processing", index=True)
    # processing | ai_completed | admin_review | completed | failed

    ai_analysis: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    ai_overall_score: float | None = None
    ai_model: str | None = None
    processing_time_ms: int | None = None
    ai_completed_at: datetime | None = None

    review_decision: str = Field(default="pending", index=True)
    # pending | approved | rejected | needs_revision
    reviewer_id: UUID | None = None
    reviewer_name: str | None = None
    review_score: float | None = None
    review_feedback: str = Field(default="")
    review_comments: str = Field(default="")
    revision_request: dict[str, Any] | None = Field(default=None, sa_column=Column(JSON))
    reviewed_at: datetime | None = None
    auto_approved: bool = Field(default=False)

    approval_id: UUID | None = Field(default=None, index=True)
    processing_logs: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    revision: int = Field(default=0)

    submitted_at: datetime = Field(default_factory=utcnow, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
