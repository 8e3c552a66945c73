"""Recorded entries and value fingerprints.

Revision ID: 0001_recorded_state
Revises:
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_recorded_state"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "recorded_entry",
        sa.Column("subject_id", sa.String(), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("remote_id", sa.String(), nullable=False),
        sa.Column("targets", sa.String(), nullable=False),
        sa.Column("custom_environment_ids", sa.String(), nullable=False),
        sa.Column("git_branch", sa.String(), nullable=True),
        sa.Column("sensitive", sa.Boolean(), nullable=True),
        sa.Column("comment", sa.String(length=1000), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("subject_id", "key", name="pk_recorded_entry"),
    )
    op.create_table(
        "entry_fingerprint",
        sa.Column("subject_id", sa.String(), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("digest", sa.LargeBinary(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("subject_id", "key", name="pk_entry_fingerprint"),
    )


def downgrade() -> None:
    op.drop_table("entry_fingerprint")
    op.drop_table("recorded_entry")
