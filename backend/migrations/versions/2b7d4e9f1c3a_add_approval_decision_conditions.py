"""Add decision conditions and appeal flags to course approvals.

Revision ID: 2b7d4e9f1c3a
Revises: 1a2b3c4d5e6f
Create Date: 2026-10-17 12:00:00.000000
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision = "2b7d4e9f1c3a"
down_revision = "1a2b3c4d5e6f"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Store approval conditions and the resubmission/appeal flags of a decision."""
    op.add_column("course_approvals", sa.Column("decision_conditions", sa.JSON(), nullable=True))
    op.add_column(
        "course_approvals",
        sa.Column("resubmission_allowed", sa.Boolean(), nullable=True),
    )
    op.add_column("course_approvals", sa.Column("appeal_eligible", sa.Boolean(), nullable=True))


def downgrade() -> None:
    """Drop decision conditions and appeal flags."""
    op.drop_column("course_approvals", "appeal_eligible")
    op.drop_column("course_approvals", "resubmission_allowed")
    op.drop_column("course_approvals", "decision_conditions")
