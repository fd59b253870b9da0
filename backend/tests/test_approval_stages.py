# ruff: noqa: INP001
"""Stage ordering, requirements, and progress."""

from __future__ import annotations

from uuid import uuid4

import pytest

from course_approval.models.approvals import ApprovalAssignment
from course_approval.services.approval_stages import (
    ReviewerRole,
    ReviewStage,
    completion_percentage,
    next_stage,
    required_roles,
    review_team,
)


def test_default_stage_requirements() -> None:
    assert required_roles("initial_review") == [ReviewerRole.PRIMARY]
    assert required_roles(ReviewStage.CONTENT_REVIEW) == [ReviewerRole.CONTENT]
    assert required_roles("quality_assurance") == [ReviewerRole.TECHNICAL, ReviewerRole.QUALITY]
    assert required_roles("final_approval") == [ReviewerRole.FINAL]
    assert required_roles("completed") == []


def test_stage_requirements_are_configurable() -> None:
    mapping = {"quality_assurance": ["content", "technical"]}

    assert required_roles("quality_assurance", mapping) == [
        ReviewerRole.CONTENT,
        ReviewerRole.TECHNICAL,
    ]
    assert required_roles("initial_review", mapping) == []


def test_next_stage_walks_the_fixed_order() -> None:
    assert next_stage("initial_review") is ReviewStage.CONTENT_REVIEW
    assert next_stage("content_review") is ReviewStage.QUALITY_ASSURANCE
    assert next_stage("quality_assurance") is ReviewStage.FINAL_APPROVAL
    assert next_stage("final_approval") is ReviewStage.COMPLETED
    assert next_stage("completed") is ReviewStage.COMPLETED


@pytest.mark.parametrize(
    ("stage", "percent"),
    [
        ("initial_review", 0.0),
        ("content_review", 25.0),
        ("quality_assurance", 50.0),
        ("final_approval", 75.0),
        ("completed", 100.0),
    ],
)
def test_completion_percentage(stage: str, percent: float) -> None:
    assert completion_percentage(stage) == percent


def test_unknown_stage_is_rejected() -> None:
    with pytest.raises(ValueError):
        next_stage("legal_review")


def test_review_team_maps_roles_to_reviewers() -> None:
    approval_id = uuid4()
    primary, content = uuid4(), uuid4()
    assignments = [
        ApprovalAssignment(approval_id=approval_id, role="primary", reviewer_id=primary),
        ApprovalAssignment(approval_id=approval_id, role="content", reviewer_id=content),
    ]

    assert review_team(assignments) == {
        ReviewerRole.PRIMARY: primary,
        ReviewerRole.CONTENT: content,
    }
