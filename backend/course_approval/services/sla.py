"""SLA classification for approval records. Advisory only; nothing is blocked."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from course_approval.core.config import settings
from course_approval.core.time import hours_between, utcnow

if TYPE_CHECKING:
    from course_approval.models.approvals import CourseApproval

SLA_ON_TRACK = "on_track"
SLA_AT_RISK = "at_risk"
SLA_BREACHED = "breached"
SLA_SEVERITY = {SLA_ON_TRACK: 0, SLA_AT_RISK: 1, SLA_BREACHED: 2}


def target_hours_for(priority: str) -> int:
    return settings.sla_target_hours.get(priority, settings.sla_target_hours["normal"])


def classify_sla(elapsed_hours: float, target_hours: float) -> str:
    if elapsed_hours > target_hours:
        return SLA_BREACHED
    if elapsed_hours > target_hours * settings.sla_at_risk_ratio:
        return SLA_AT_RISK
    return SLA_ON_TRACK


def elapsed_hours(approval: CourseApproval, now: datetime | None = None) -> float:
    end = approval.review_completed_at or now or utcnow()
    return hours_between(approval.submitted_at, end)


def recompute_sla(approval: CourseApproval, now: datetime | None = None) -> str:
    """Refresh `approval.sla_status` and return the new value."""
    approval.sla_status = classify_sla(elapsed_hours(approval, now), approval.sla_target_hours)
    return approval.sla_status


def time_remaining_hours(approval: CourseApproval, now: datetime | None = None) -> float:
    return max(0.0, approval.sla_target_hours - elapsed_hours(approval, now))


def is_overdue(approval: CourseApproval, now: datetime | None = None) -> bool:
    if approval.final_decision is not None:
        return False
    return elapsed_hours(approval, now) > approval.sla_target_hours
