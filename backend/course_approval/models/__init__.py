"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from course_approval.models.approvals import ApprovalAssignment, ApprovalReview, CourseApproval
from course_approval.models.courses import Course
from course_approval.models.evaluations import CourseEvaluation
from course_approval.models.pipeline_settings import PipelineSettings
from course_approval.models.reviewers import Reviewer

__all__ = [
    "ApprovalAssignment",
    "ApprovalReview",
    "Course",
    "CourseApproval",
    "CourseEvaluation",
    "PipelineSettings",
    "Reviewer",
]
