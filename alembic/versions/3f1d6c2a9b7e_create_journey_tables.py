"""create journey tables

Revision ID: 3f1d6c2a9b7e
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1d6c2a9b7e"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create users, employee_journeys, journey_phases and journey_activities."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("employee_category", sa.String(length=32), nullable=True),
        sa.Column("journey_status", sa.String(length=32), nullable=True),
        sa.Column("current_phase_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "employee_journeys",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("employee_category", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("cycle_number", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_employee_journeys_user_id", "employee_journeys", ["user_id"])
    op.create_index("ix_employee_journeys_status", "employee_journeys", ["status"])
    op.create_index("ix_employee_journeys_created_at", "employee_journeys", ["created_at"])

    op.create_table(
        "journey_phases",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("journey_id", sa.Uuid(), nullable=False),
        sa.Column("phase_number", sa.Integer(), nullable=False),
        sa.Column("phase_type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("duration_days", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("mentor_id", sa.Uuid(), nullable=True),
        sa.Column("assessment_id", sa.String(length=64), nullable=True),
        sa.Column("training_assignment_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["journey_id"], ["employee_journeys.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["mentor_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("journey_id", "phase_number", name="uq_journey_phase_number"),
    )
    op.create_index("ix_journey_phases_journey_id", "journey_phases", ["journey_id"])
    op.create_index("ix_journey_phases_status", "journey_phases", ["status"])
    op.create_index("ix_journey_phases_due_date", "journey_phases", ["due_date"])
    op.create_index("ix_journey_phases_mentor_id", "journey_phases", ["mentor_id"])
    op.create_index("ix_journey_phases_assessment_id", "journey_phases", ["assessment_id"])
    op.create_index("ix_journey_phases_training_assignment_id", "journey_phases", ["training_assignment_id"])

    op.create_table(
        "journey_activities",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("journey_id", sa.Uuid(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("phase_number", sa.Integer(), nullable=True),
        sa.Column("activity_type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("detail", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default="{}"),
        sa.Column("actor_user_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["journey_id"], ["employee_journeys.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("journey_id", "sequence", name="uq_journey_activity_sequence"),
    )
    op.create_index("ix_journey_activities_journey_id", "journey_activities", ["journey_id"])
    op.create_index("ix_journey_activities_created_at", "journey_activities", ["created_at"])


def downgrade() -> None:
    """Drop journey tables."""
    op.drop_table("journey_activities")
    op.drop_table("journey_phases")
    op.drop_table("employee_journeys")
    op.drop_table("users")
