"""Schemas for evaluation API payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field
from sqlmodel import SQLModel

RUNTIME_ANNOTATION_TYPES = (datetime, UUID)

SubmissionType = Literal["new_course", "course_update", "content_revision", "resubmission"]
Priority = Literal["low", "normal", "high", "urgent"]
AdminDecision = Literal["approved", "rejected", "needs_revision"]


class EvaluationSubmit(SQLModel):
    """Payload for submitting a course for automated evaluation."""

    course_id: UUID
    submission_type: SubmissionType | None = None
    priority: Priority | None = None


class RevisionRequest(SQLModel):
    sections: list[str] = Field(default_factory=list)
    details: str = ""
    deadline: datetime | None = None


class AdminReviewCreate(SQLModel):
    """Payload for an administrator decision on a scored evaluation."""

    decision: AdminDecision
    score: float | None = Field(default=None, ge=0, le=100)
    feedback: str = ""
    comments: str = ""
    revision_request: RevisionRequest | None = None


class BulkApproveRequest(SQLModel):
    evaluation_ids: list[UUID] = Field(min_length=1, max_length=200)
    feedback: str = "Bulk approved"


class BulkApproveResult(SQLModel):
    evaluation_id: UUID
    status: Literal["approved", "error"]
    error: str | None = None


class BulkApproveSummary(SQLModel):
    total: int
    approved: int
    failed: int


class BulkApproveResponse(SQLModel):
    results: list[BulkApproveResult]
    summary: BulkApproveSummary


class EvaluationRead(SQLModel):
    """Evaluation payload returned by read endpoints."""

    id: UUID
    course_id: UUID
    submitter_id: UUID
    submitter_name: str
    submitter_role: str
    submission_type: str
    requested_priority: str | None = None
    attempt: int
    previous_evaluation_id: UUID | None = None
    status: str
    ai_analysis: dict[str, Any] | None = None
    ai_overall_score: float | None = None
    ai_model: str | None = None
    processing_time_ms: int | None = None
    ai_completed_at: datetime | None = None
    review_decision: str
    reviewer_id: UUID | None = None
    reviewer_name: str | None = None
    review_score: float | None = None
    review_feedback: str
    review_comments: str
    revision_request: dict[str, Any] | None = None
    reviewed_at: datetime | None = None
    auto_approved: bool
    approval_id: UUID | None = None
    processing_logs: list[dict[str, Any]] = Field(default_factory=list)
    submitted_at: datetime
    updated_at: datetime


class EvaluationStatisticsRead(SQLModel):
    total: int
    by_status: dict[str, int]
    by_decision: dict[str, int]
    average_processing_time_ms: float | None = None
    average_ai_score: float | None = None
    auto_approved: int
    approval_rate: float | None = None


AdminReviewCreate.model_rebuild()
BulkApproveResponse.model_rebuild()
