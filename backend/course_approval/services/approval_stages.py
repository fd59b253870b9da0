"""Review stages, reviewer roles, and stage-requirement lookups."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from course_approval.core.config import settings

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from course_approval.models.approvals import ApprovalAssignment


class ReviewerRole(str, Enum):
    PRIMARY = "primary"
    CONTENT = "content"
    TECHNICAL = "technical"
    QUALITY = "quality"
    FINAL = "final"


class ReviewStage(str, Enum):
    INITIAL_REVIEW = "initial_review"
    CONTENT_REVIEW = "content_review"
    QUALITY_ASSURANCE = "quality_assurance"
    FINAL_APPROVAL = "final_approval"
    COMPLETED = "completed"


STAGE_ORDER: tuple[ReviewStage, ...] = (
    ReviewStage.INITIAL_REVIEW,
    ReviewStage.CONTENT_REVIEW,
    ReviewStage.QUALITY_ASSURANCE,
    ReviewStage.FINAL_APPROVAL,
    ReviewStage.COMPLETED,
)
REVIEW_STAGE_COUNT = len(STAGE_ORDER) - 1


def required_roles(
    stage: str | ReviewStage,
    stage_roles: dict[str, list[str]] | None = None,
) -> list[ReviewerRole]:
    """Roles that must each have a submitted review before `stage` completes."""
    mapping = stage_roles if stage_roles is not None else settings.approval_stage_roles
    key = ReviewStage(stage).value
    return [ReviewerRole(role) for role in mapping.get(key, [])]


def next_stage(stage: str | ReviewStage) -> ReviewStage:
    current = ReviewStage(stage)
    if current is ReviewStage.COMPLETED:
        return current
    return STAGE_ORDER[STAGE_ORDER.index(current) + 1]


def stage_index(stage: str | ReviewStage) -> int:
    return STAGE_ORDER.index(ReviewStage(stage))


def completion_percentage(stage: str | ReviewStage) -> float:
    return round(stage_index(stage) / REVIEW_STAGE_COUNT * 100, 2)


def review_team(assignments: Iterable[ApprovalAssignment]) -> dict[ReviewerRole, UUID]:
    """Map each filled role slot to the reviewer holding it."""
    return {ReviewerRole(item.role): item.reviewer_id for item in assignments}
