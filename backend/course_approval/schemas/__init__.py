"""Public schema exports shared across API route modules."""

from course_approval.schemas.approvals import (
    ApprovalAssignmentCreate,
    ApprovalAssignmentRead,
    ApprovalDecisionCreate,
    ApprovalDetailRead,
    ApprovalRead,
    ApprovalReviewCreate,
    ApprovalReviewRead,
    ApprovalDashboardRead,
)
from course_approval.schemas.evaluations import (
    AdminReviewCreate,
    BulkApproveRequest,
    BulkApproveResponse,
    EvaluationRead,
    EvaluationStatisticsRead,
    EvaluationSubmit,
)
from course_approval.schemas.health import HealthStatusResponse
from course_approval.schemas.pipeline_settings import (
    PipelineSettingsRead,
    PipelineSettingsUpdate,
    ScoringCheckResponse,
)
from course_approval.schemas.reviewers import ReviewerCreate, ReviewerRead, ReviewerStatsRead

__all__ = [
    "AdminReviewCreate",
    "ApprovalAssignmentCreate",
    "ApprovalAssignmentRead",
    "ApprovalDashboardRead",
    "ApprovalDecisionCreate",
    "ApprovalDetailRead",
    "ApprovalRead",
    "ApprovalReviewCreate",
    "ApprovalReviewRead",
    "BulkApproveRequest",
    "BulkApproveResponse",
    "EvaluationRead",
    "EvaluationStatisticsRead",
    "EvaluationSubmit",
    "HealthStatusResponse",
    "PipelineSettingsRead",
    "PipelineSettingsUpdate",
    "ReviewerCreate",
    "ReviewerRead",
    "ReviewerStatsRead",
    "ScoringCheckResponse",
]
