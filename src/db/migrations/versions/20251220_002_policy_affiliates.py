"""Policy membership of affiliates.

Revision ID: 20251220_002
Revises: 20251218_001
Create Date: 2025-12-20
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision = "20251220_002"
down_revision = "20251218_001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create policy_affiliates."""
    op.create_table(
        "policy_affiliates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "policy_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("policies.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "affiliate_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("affiliates.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("added_at", sa.Date, nullable=False),
        sa.Column("removed_at", sa.Date, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("policy_id", "affiliate_id", name="uq_policy_affiliate"),
    )


def downgrade() -> None:
    """Drop policy_affiliates."""
    op.drop_table("policy_affiliates")
