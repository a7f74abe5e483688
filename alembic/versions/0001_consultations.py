"""Consultations and consultation drafts.

Revision ID: 0001
Revises:
Create Date: 2026-10-17

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- Consultations --
    op.create_table(
        "consultations",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False, server_default=""),
        sa.Column("contact_info", sa.JSON, nullable=False),
        sa.Column("business_context", sa.JSON, nullable=False),
        sa.Column("pain_points", sa.JSON, nullable=False),
        sa.Column("goals_objectives", sa.JSON, nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="draft"),
        sa.Column("completion_percentage", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('draft', 'completed', 'archived')", name="ck_consultations_status"
        ),
        sa.CheckConstraint(
            "completion_percentage >= 0 AND completion_percentage <= 100",
            name="ck_consultations_completion",
        ),
    )
    op.create_index("ix_consultations_user_id", "consultations", ["user_id"])
    op.create_index("ix_consultations_status", "consultations", ["status"])

    # -- Consultation drafts (one per consultation) --
    op.create_table(
        "consultation_drafts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "consultation_id",
            sa.String(64),
            sa.ForeignKey("consultations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(128), nullable=False, server_default=""),
        sa.Column("contact_info", sa.JSON, nullable=False),
        sa.Column("business_context", sa.JSON, nullable=False),
        sa.Column("pain_points", sa.JSON, nullable=False),
        sa.Column("goals_objectives", sa.JSON, nullable=False),
        sa.Column("auto_saved", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("consultation_id", name="uq_consultation_drafts_consultation_id"),
    )


def downgrade() -> None:
    op.drop_table("consultation_drafts")
    op.drop_index("ix_consultations_status", table_name="consultations")
    op.drop_index("ix_consultations_user_id", table_name="consultations")
    op.drop_table("consultations")
