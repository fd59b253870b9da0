# ruff: noqa: INP001
"""Settings defaults and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from course_approval.core.config import Settings


def _settings(**overrides: object) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[arg-type]


def test_workflow_defaults() -> None:
    config = _settings()

    assert config.approval_stage_roles["quality_assurance"] == ["technical", "quality"]
    assert config.sla_target_hours == {"low": 120, "normal": 72, "high": 48, "urgent": 24}
    assert config.reviewer_role_capacity["final"] == 5
    assert config.reviewer_role_expertise["content"] == ["content_design", "instructional_design"]
    assert config.auto_decision_approve_score == 90
    assert config.auto_decision_reject_score == 60
    assert config.sla_at_risk_ratio == 0.8


def test_partial_sla_targets_keep_defaults_for_missing_priorities() -> None:
    config = _settings(sla_target_hours={"urgent": 12})

    assert config.sla_target_hours["urgent"] == 12
    assert config.sla_target_hours["normal"] == 72


def test_reject_score_above_approve_score_is_invalid() -> None:
    with pytest.raises(ValidationError, match="AUTO_DECISION_REJECT_SCORE"):
        _settings(auto_decision_reject_score=95, auto_decision_approve_score=90)


def test_dev_environment_enables_auto_migrate_by_default() -> None:
    assert _settings(environment="dev").db_auto_migrate is True
    assert _settings(environment="prod").db_auto_migrate is False
    assert _settings(environment="dev", db_auto_migrate=False).db_auto_migrate is False
