"""Schemas for approval workflow API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

from course_approval.services.approval_stages import ReviewerRole

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)

IssueSeverity = Literal["low", "medium", "high", "critical"]


class ReviewIssue(SQLModel):
    severity: IssueSeverity
    category: str = "general"
    description: str
    location: str | None = None
    suggestion: str | None = None


class ApprovalReviewCreate(SQLModel):
    """Reviewer feedback for the role slot the caller holds."""

    score: float = Field(ge=0, le=100)
    category: str = "general"
    feedback: str = ""
    issues: list[ReviewIssue] = Field(default_factory=list)
    approved: bool = False


class ApprovalAssignmentCreate(SQLModel):
    """Fill a role slot; omit `reviewer_id` to pick the least-loaded reviewer."""

    role: ReviewerRole
    reviewer_id: UUID | None = None


class ApprovalDecisionCreate(SQLModel):
    decision: Literal["approved", "rejected"]
    reason: str = ""
    conditions: list[str] = Field(default_factory=list)


class ApprovalAssignmentRead(SQLModel):
    id: UUID
    approval_id: UUID
    role: str
    reviewer_id: UUID
    assigned_by: UUID | None = None
    assignment_method: str
    assigned_at: datetime


class ApprovalReviewRead(SQLModel):
    id: UUID
    approval_id: UUID
    reviewer_id: UUID
    role: str
    score: float
    category: str
    feedback: str
    issues: list[dict[str, Any]] = Field(default_factory=list)
    approved: bool
    submitted_at: datetime


class ApprovalRead(SQLModel):
    """Approval record returned by read endpoints."""

    id: UUID
    approval_code: str
    course_id: UUID
    evaluation_id: UUID | None = None
    submitter_id: UUID
    submitter_name: str
    submission_type: str
    priority: str
    status: str
    current_stage: str
    completed_stages: list[dict[str, Any]] = Field(default_factory=list)
    assigned_at: datetime | None = None
    review_started_at: datetime | None = None
    review_completed_at: datetime | None = None
    overall_score: float | None = None
    sla_target_hours: int
    sla_status: str
    actual_review_hours: float | None = None
    escalation_level: int
    reminders_sent: int
    final_decision: str | None = None
    decided_by: UUID | None = None
    decided_by_name: str | None = None
    decision_reason: str
    decided_at: datetime | None = None
    decision_conditions: list[str] = Field(default_factory=list)
    resubmission_allowed: bool | None = None
    appeal_eligible: bool | None = None
    resubmission_guidelines: list[str] = Field(default_factory=list)
    publish_date: datetime | None = None
    revision: int
    submitted_at: datetime
    updated_at: datetime


class ApprovalDetailRead(SQLModel):
    """Approval record with its review team, reviews, and audit trail."""

    approval: ApprovalRead
    assignments: list[ApprovalAssignmentRead] = Field(default_factory=list)
    reviews: list[ApprovalReviewRead] = Field(default_factory=list)
    review_team: dict[str, UUID] = Field(default_factory=dict)
    audit_log: list[dict[str, Any]] = Field(default_factory=list)
    is_overdue: bool
    time_remaining_hours: float
    completion_percentage: float


class StatusBucket(SQLModel):
    count: int
    average_score: float | None = None


class DashboardSummary(SQLModel):
    total: int
    active: int
    overdue: int
    approval_rate: float | None = None


class ApprovalDashboardRead(SQLModel):
    by_status: dict[str, StatusBucket]
    by_priority: dict[str, int]
    by_sla_status: dict[str, int]
    recent_activity: list[ApprovalRead]
    summary: DashboardSummary
    reviewers: list[dict[str, Any]] | None = None


ApprovalReviewCreate.model_rebuild()
ApprovalDetailRead.model_rebuild()
ApprovalDashboardRead.model_rebuild()
