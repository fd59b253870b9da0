"""Approval records for the multi-stage human review of a course submission."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field

from course_approval.core.time import utcnow
from course_approval.models.base import QueryModel

RUNTIME_ANNOTATION_TYPES = (datetime,)

ACTIVE_APPROVAL_STATUSES = ("pending", "under_review", "revision_required")
REVIEWABLE_APPROVAL_STATUSES = ("pending", "under_review")


class CourseApproval(QueryModel, table=True):
    """Review process state, SLA tracking, decision, and audit log."""

    __tablename__ = "course_approvals"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    approval_code: str = Field(index=True, unique=True)
    course_id: UUID = Field(foreign_key="courses.id", index=True)
    evaluation_id: UUID | None = Field(
        default=None, foreign_key="course_evaluations.id", index=True
    )
    submitter_id: UUID = Field(index=True)
    submitter_name: str = Field(default="")
    submission_type: str = Field(default="new_course")
    # new_course | course_update | content_revision | resubmission
    priority: str = Field(default="normal", index=True)  # low | normal | high | urgent
    status: str = Field(default="pending", index=True)
    # pending | under_review | approved | rejected | revision_required | published | delisted

    current_stage: str = Field(default="initial_review")
    completed_stages: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    assigned_at: datetime | None = None
    review_started_at: datetime | None = None
    review_completed_at: datetime | None = None

    overall_score: float | None = None

    sla_target_hours: int = Field(default=72)
    sla_status: str = Field(default="on_track", index=True)  # on_track | at_risk | breached
    actual_review_hours: float | None = None
    escalation_level: int = Field(default=0)
    reminders_sent: int = Field(default=0)

    final_decision: str | None = Field(default=None)  # approved | rejected
    decided_by: UUID | None = None
    decided_by_name: str | None = None
    decision_reason: str = Field(default="")
    decided_at: datetime | None = None
    decision_conditions: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    resubmission_allowed: bool | None = None
    appeal_eligible: bool | None = None
    resubmission_guidelines: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    publish_date: datetime | None = None

    audit_log: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    revision: int = Field(default=0)

    submitted_at: datetime = Field(default_factory=utcnow, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, index=True)


class ApprovalAssignment(QueryModel, table=True):
    """One reviewer holding one role slot on an approval record."""

    __tablename__ = "approval_assignments"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        UniqueConstraint("approval_id", "role", name="uq_approval_assignment_role"),
        UniqueConstraint("approval_id", "reviewer_id", name="uq_approval_assignment_reviewer"),
    )

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    approval_id: UUID = Field(foreign_key="course_approvals.id", index=True)
    role: str  # primary | content | technical | quality | final
    reviewer_id: UUID = Field(foreign_key="reviewers.id", index=True)
    assigned_by: UUID | None = None
    assignment_method: str = Field(default="auto")  # auto | manual
    assigned_at: datetime = Field(default_factory=utcnow)


class ApprovalReview(QueryModel, table=True):
    """Append-only reviewer feedback for one role on an approval record."""

    __tablename__ = "approval_reviews"  # pyright: ignore[reportAssignmentType]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    approval_id: UUID = Field(foreign_key="course_approvals.id", index=True)
    reviewer_id: UUID = Field(foreign_key="reviewers.id", index=True)
    role: str
    score: float
    category: str = Field(default="general")
    feedback: str = Field(default="")
    issues: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    approved: bool = Field(default=False)
    submitted_at: datetime = Field(default_factory=utcnow)
