"""add memory_shares and memory_access_logs tables

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18

Passcode grants over memories plus their access trail.
Shares are never deleted (revocation flips is_active); access logs are
append-only. Downgrade drops cleanly.
"""
from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "memory_shares",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("memory_id", sa.String(36), sa.ForeignKey("memories.id"), nullable=False),
        sa.Column("shared_by_user_id", sa.String(64), nullable=False),
        sa.Column("recipient_email", sa.Text(), nullable=True),
        sa.Column("access_passcode", sa.String(12), nullable=False),
        sa.Column("allowed_views", sa.Integer(), nullable=False, server_default="-1"),
        sa.Column("current_views", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "allowed_views = -1 OR allowed_views > 0", name="ck_memory_shares_allowed_views"
        ),
        sa.CheckConstraint("current_views >= 0", name="ck_memory_shares_current_views"),
    )
    op.create_index(
        "ix_memory_shares_access_passcode", "memory_shares", ["access_passcode"], unique=True
    )
    op.create_index("ix_memory_shares_memory_id", "memory_shares", ["memory_id"])
    op.create_index("ix_memory_shares_shared_by_user_id", "memory_shares", ["shared_by_user_id"])

    op.create_table(
        "memory_access_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "memory_share_id", sa.String(36), sa.ForeignKey("memory_shares.id"), nullable=False
        ),
        sa.Column("viewer_ip_address", sa.Text(), nullable=False, server_default="unknown"),
        sa.Column("viewer_user_agent", sa.Text(), nullable=False, server_default="unknown"),
        sa.Column(
            "accessed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_memory_access_logs_memory_share_id", "memory_access_logs", ["memory_share_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_memory_access_logs_memory_share_id", table_name="memory_access_logs")
    op.drop_table("memory_access_logs")
    op.drop_index("ix_memory_shares_shared_by_user_id", table_name="memory_shares")
    op.drop_index("ix_memory_shares_memory_id", table_name="memory_shares")
    op.drop_index("ix_memory_shares_access_passcode", table_name="memory_shares")
    op.drop_table("memory_shares")
