"""Append-only audit and processing logs embedded in pipeline records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from course_approval.core.time import utcnow

if TYPE_CHECKING:
    from course_approval.models.approvals import CourseApproval
    from course_approval.models.evaluations import CourseEvaluation
    from course_approval.services.actors import Actor


def append_processing_log(
    evaluation: CourseEvaluation,
    *,
    stage: str,
    message: str,
    error: str | None = None,
) -> dict[str, Any]:
    """Append one entry to `evaluation.processing_logs`."""
    entry: dict[str, Any] = {
        "timestamp": utcnow().isoformat(),
        "stage": stage,
        "message": message,
    }
    if error is not None:
        entry["error"] = error
    # Reassign so the JSON column is flagged dirty.
    evaluation.processing_logs = [*evaluation.processing_logs, entry]
    return entry


def record_audit(
    approval: CourseApproval,
    *,
    action: str,
    actor: Actor,
    details: str = "",
    previous_status: str | None = None,
    new_status: str | None = None,
    metadata: dict[str, object] | None = None,
) -> dict[str, Any]:
    """Append one entry to `approval.audit_log`.

    `previous_status` defaults to the record's current status, `new_status`
    to the same value, so callers only pass them for transitions.
    """
    entry: dict[str, Any] = {
        "action": action,
        "actor_id": str(actor.id),
        "actor_name": actor.name,
        "actor_role": actor.role,
        "timestamp": utcnow().isoformat(),
        "previous_status": previous_status or approval.status,
        "new_status": new_status or approval.status,
        "details": details,
    }
    if metadata:
        entry["metadata"] = metadata
    approval.audit_log = [*approval.audit_log, entry]
    return entry
