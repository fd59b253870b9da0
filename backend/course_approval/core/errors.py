"""Pipeline error taxonomy.

Each error is an `HTTPException` so services can raise it directly and the
API error handlers render it with a stable machine-readable `code` and a
`retryable` hint.
"""

from __future__ import annotations

from typing import ClassVar

from fastapi import HTTPException, status


class PipelineError(HTTPException):
    """Base class for submission, scoring, and approval workflow errors."""

    default_status: ClassVar[int] = status.HTTP_400_BAD_REQUEST
    code: ClassVar[str] = "pipeline_error"
    retryable: ClassVar[bool] = False

    def __init__(self, detail: str) -> None:
        super().__init__(status_code=self.default_status, detail=detail)
        self.message = detail

    def __str__(self) -> str:
        return self.message


class DuplicateSubmissionError(PipelineError):
    default_status = status.HTTP_409_CONFLICT
    code = "duplicate_submission"


class ScoringError(PipelineError):
    """Upstream model failure or malformed model output."""

    default_status = status.HTTP_502_BAD_GATEWAY
    code = "scoring_failed"


class NoAvailableReviewerError(PipelineError):
    """No candidate below the role capacity cap; the slot stays unassigned."""

    default_status = status.HTTP_409_CONFLICT
    code = "no_available_reviewer"
    retryable = True


class ReviewerNotAssignedError(PipelineError):
    default_status = status.HTTP_403_FORBIDDEN
    code = "reviewer_not_assigned"


class ReviewerAlreadyAssignedError(PipelineError):
    default_status = status.HTTP_409_CONFLICT
    code = "reviewer_already_assigned"


class AlreadyDecidedError(PipelineError):
    default_status = status.HTTP_409_CONFLICT
    code = "already_decided"


class NotFoundError(PipelineError):
    default_status = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InvalidStateError(PipelineError):
    default_status = status.HTTP_409_CONFLICT
    code = "invalid_state"


class ConcurrentUpdateError(PipelineError):
    """Another writer changed the record between read and write."""

    default_status = status.HTTP_409_CONFLICT
    code = "concurrent_update"
    retryable = True
