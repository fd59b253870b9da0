"""Initial course approval schema.

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None

_IN_FLIGHT_SQL = "status IN ('processing', 'ai_completed', 'admin_review')"


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=False, server_default=""),
        sa.Column("learning_objectives", sa.JSON(), nullable=True),
        sa.Column("sections", sa.JSON(), nullable=True),
        sa.Column("assignments", sa.JSON(), nullable=True),
        sa.Column("instructor_id", sa.Uuid(), nullable=False),
        sa.Column("instructor_name", sa.String(), nullable=False, server_default=""),
        sa.Column("instructor_email", sa.String(), nullable=True),
        sa.Column("instructor_tier", sa.String(), nullable=False, server_default="standard"),
        sa.Column("target_publish_date", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_courses_instructor_id"), "courses", ["instructor_id"])
    op.create_index(op.f("ix_courses_status"), "courses", ["status"])

    op.create_table(
        "reviewers",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("roles", sa.JSON(), nullable=True),
        sa.Column("expertise", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_reviewers_is_active"), "reviewers", ["is_active"])

    op.create_table(
        "course_evaluations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("course_id", sa.Uuid(), nullable=False),
        sa.Column("submitter_id", sa.Uuid(), nullable=False),
        sa.Column("submitter_name", sa.String(), nullable=False, server_default=""),
        sa.Column("submitter_role", sa.String(), nullable=False, server_default="instructor"),
        sa.Column("submission_type", sa.String(), nullable=False, server_default="new_course"),
        sa.Column("requested_priority", sa.String(), nullable=True),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("previous_evaluation_id", sa.Uuid(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="processing"),
        sa.Column("ai_analysis", sa.JSON(), nullable=True),
        sa.Column("ai_overall_score", sa.Float(), nullable=True),
        sa.Column("ai_model", sa.String(), nullable=True),
        sa.Column("processing_time_ms", sa.Integer(), nullable=True),
        sa.Column("ai_completed_at", sa.DateTime(), nullable=True),
        sa.Column("review_decision", sa.String(), nullable=False, server_default="pending"),
        sa.Column("reviewer_id", sa.Uuid(), nullable=True),
        sa.Column("reviewer_name", sa.String(), nullable=True),
        sa.Column("review_score", sa.Float(), nullable=True),
        sa.Column("review_feedback", sa.String(), nullable=False, server_default=""),
        sa.Column("review_comments", sa.String(), nullable=False, server_default=""),
        sa.Column("revision_request", sa.JSON(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("auto_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("approval_id", sa.Uuid(), nullable=True),
        sa.Column("processing_logs", sa.JSON(), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
        sa.ForeignKeyConstraint(["previous_evaluation_id"], ["course_evaluations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_course_evaluations_course_id"), "course_evaluations", ["course_id"])
    op.create_index(
        op.f("ix_course_evaluations_submitter_id"), "course_evaluations", ["submitter_id"]
    )
    op.create_index(op.f("ix_course_evaluations_status"), "course_evaluations", ["status"])
    op.create_index(
        op.f("ix_course_evaluations_review_decision"), "course_evaluations", ["review_decision"]
    )
    op.create_index(
        op.f("ix_course_evaluations_approval_id"), "course_evaluations", ["approval_id"]
    )
    op.create_index(
        op.f("ix_course_evaluations_submitted_at"), "course_evaluations", ["submitted_at"]
    )
    op.create_index(
        "uq_course_evaluations_in_flight",
        "course_evaluations",
        ["course_id"],
        unique=True,
        postgresql_where=sa.text(_IN_FLIGHT_SQL),
        sqlite_where=sa.text(_IN_FLIGHT_SQL),
    )

    op.create_table(
        "course_approvals",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("approval_code", sa.String(), nullable=False),
        sa.Column("course_id", sa.Uuid(), nullable=False),
        sa.Column("evaluation_id", sa.Uuid(), nullable=True),
        sa.Column("submitter_id", sa.Uuid(), nullable=False),
        sa.Column("submitter_name", sa.String(), nullable=False, server_default=""),
        sa.Column("submission_type", sa.String(), nullable=False, server_default="new_course"),
        sa.Column("priority", sa.String(), nullable=False, server_default="normal"),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("current_stage", sa.String(), nullable=False, server_default="initial_review"),
        sa.Column("completed_stages", sa.JSON(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(), nullable=True),
        sa.Column("review_started_at", sa.DateTime(), nullable=True),
        sa.Column("review_completed_at", sa.DateTime(), nullable=True),
        sa.Column("overall_score", sa.Float(), nullable=True),
        sa.Column("sla_target_hours", sa.Integer(), nullable=False, server_default=sa.text("72")),
        sa.Column("sla_status", sa.String(), nullable=False, server_default="on_track"),
        sa.Column("actual_review_hours", sa.Float(), nullable=True),
        sa.Column("escalation_level", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reminders_sent", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("final_decision", sa.String(), nullable=True),
        sa.Column("decided_by", sa.Uuid(), nullable=True),
        sa.Column("decided_by_name", sa.String(), nullable=True),
        sa.Column("decision_reason", sa.String(), nullable=False, server_default=""),
        sa.Column("decided_at", sa.DateTime(), nullable=True),
        sa.Column("resubmission_guidelines", sa.JSON(), nullable=True),
        sa.Column("publish_date", sa.DateTime(), nullable=True),
        sa.Column("audit_log", sa.JSON(), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["course_id"], ["courses.id"]),
        sa.ForeignKeyConstraint(["evaluation_id"], ["course_evaluations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_course_approvals_approval_code"),
        "course_approvals",
        ["approval_code"],
        unique=True,
    )
    for column in (
        "course_id",
        "evaluation_id",
        "submitter_id",
        "priority",
        "status",
        "sla_status",
        "submitted_at",
        "updated_at",
    ):
        op.create_index(op.f(f"ix_course_approvals_{column}"), "course_approvals", [column])

    op.create_table(
        "approval_assignments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("approval_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), nullable=False),
        sa.Column("assigned_by", sa.Uuid(), nullable=True),
        sa.Column("assignment_method", sa.String(), nullable=False, server_default="auto"),
        sa.Column("assigned_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["approval_id"], ["course_approvals.id"]),
        sa.ForeignKeyConstraint(["reviewer_id"], ["reviewers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("approval_id", "role", name="uq_approval_assignment_role"),
        sa.UniqueConstraint("approval_id", "reviewer_id", name="uq_approval_assignment_reviewer"),
    )
    op.create_index(
        op.f("ix_approval_assignments_approval_id"), "approval_assignments", ["approval_id"]
    )
    op.create_index(
        op.f("ix_approval_assignments_reviewer_id"), "approval_assignments", ["reviewer_id"]
    )

    op.create_table(
        "approval_reviews",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("approval_id", sa.Uuid(), nullable=False),
        sa.Column("reviewer_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("category", sa.String(), nullable=False, server_default="general"),
        sa.Column("feedback", sa.String(), nullable=False, server_default=""),
        sa.Column("issues", sa.JSON(), nullable=True),
        sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("submitted_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["approval_id"], ["course_approvals.id"]),
        sa.ForeignKeyConstraint(["reviewer_id"], ["reviewers.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_approval_reviews_approval_id"), "approval_reviews", ["approval_id"])
    op.create_index(op.f("ix_approval_reviews_reviewer_id"), "approval_reviews", ["reviewer_id"])

    op.create_table(
        "pipeline_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "auto_approval_enabled", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("auto_approval_threshold", sa.Float(), nullable=False, server_default="70"),
        sa.Column(
            "min_description_length", sa.Integer(), nullable=False, server_default=sa.text("50")
        ),
        sa.Column(
            "require_learning_objectives", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("min_sections", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("min_lessons", sa.Integer(), nullable=False, server_default=sa.text("3")),
        sa.Column("daily_usage_cap", sa.Integer(), nullable=False, server_default=sa.text("1500")),
        sa.Column("daily_usage_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("usage_date", sa.Date(), nullable=True),
        sa.Column("role_capacity", sa.JSON(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("pipeline_settings")
    op.drop_index(op.f("ix_approval_reviews_reviewer_id"), table_name="approval_reviews")
    op.drop_index(op.f("ix_approval_reviews_approval_id"), table_name="approval_reviews")
    op.drop_table("approval_reviews")
    op.drop_index(op.f("ix_approval_assignments_reviewer_id"), table_name="approval_assignments")
    op.drop_index(op.f("ix_approval_assignments_approval_id"), table_name="approval_assignments")
    op.drop_table("approval_assignments")
    op.drop_index(op.f("ix_course_approvals_approval_code"), table_name="course_approvals")
    for column in (
        "course_id",
        "evaluation_id",
        "submitter_id",
        "priority",
        "status",
        "sla_status",
        "submitted_at",
        "updated_at",
    ):
        op.drop_index(op.f(f"ix_course_approvals_{column}"), table_name="course_approvals")
    op.drop_table("course_approvals")
    op.drop_index("uq_course_evaluations_in_flight", table_name="course_evaluations")
    for column in (
        "submitted_at",
        "approval_id",
        "review_decision",
        "status",
        "submitter_id",
        "course_id",
    ):
        op.drop_index(op.f(f"ix_course_evaluations_{column}"), table_name="course_evaluations")
    op.drop_table("course_evaluations")
    op.drop_index(op.f("ix_reviewers_is_active"), table_name="reviewers")
    op.drop_table("reviewers")
    op.drop_index(op.f("ix_courses_status"), table_name="courses")
    op.drop_index(op.f("ix_courses_instructor_id"), table_name="courses")
    op.drop_table("courses")
