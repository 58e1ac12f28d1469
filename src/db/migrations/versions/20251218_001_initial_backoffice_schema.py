"""Initial back office schema: parties, policies, claims, invoices, audit.

Revision ID: 20251218_001
Revises:
Create Date: 2025-12-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision = "20251218_001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create all back office tables."""

    # NOTE: Status columns are VARCHAR, not PostgreSQL ENUMs; the Python
    # models validate the values.

    # Parties
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("role", sa.String(50), nullable=True, index=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "clients",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, index=True),
        sa.Column("tax_id", sa.String(50), nullable=False, unique=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "insurers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("code", sa.String(50), nullable=True, unique=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("billing_cutoff_day", sa.Integer, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "user_client_access",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "client_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clients.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "client_id", name="uq_user_client_access"),
    )

    op.create_table(
        "affiliates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False, index=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("date_of_birth", sa.Date, nullable=True),
        sa.Column("document_type", sa.String(20), nullable=True),
        sa.Column("document_number", sa.String(50), nullable=True, index=True),
        sa.Column("affiliate_type", sa.String(30), nullable=False, server_default="OWNER"),
        sa.Column(
            "primary_affiliate_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("affiliates.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column(
            "client_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clients.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
            unique=True,
        ),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # Policies
    op.create_table(
        "policies",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("policy_number", sa.String(100), nullable=False, unique=True, index=True),
        sa.Column(
            "client_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clients.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "insurer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("insurers.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("type", sa.String(100), nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="PENDING", index=True),
        sa.Column("start_date", sa.Date, nullable=False),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("amb_copay", sa.Numeric(12, 2), nullable=True),
        sa.Column("hosp_copay", sa.Numeric(12, 2), nullable=True),
        sa.Column("maternity", sa.Numeric(12, 2), nullable=True),
        sa.Column("t_premium", sa.Numeric(12, 2), nullable=True),
        sa.Column("tplus1_premium", sa.Numeric(12, 2), nullable=True),
        sa.Column("tplusf_premium", sa.Numeric(12, 2), nullable=True),
        sa.Column("tax_rate", sa.Numeric(6, 4), nullable=True),
        sa.Column("additional_costs", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "updated_by_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_policies_client_status", "policies", ["client_id", "status"])

    # Claims
    op.create_table(
        "claims",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("claim_sequence", sa.Integer, nullable=False, unique=True),
        sa.Column("claim_number", sa.String(50), nullable=False, unique=True, index=True),
        sa.Column(
            "client_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clients.id", ondelete="RESTRICT"),
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
        sa.Column(
            "patient_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("affiliates.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "policy_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("policies.id", ondelete="RESTRICT"),
            nullable=True,
            index=True,
        ),
        sa.Column("status", sa.String(30), nullable=False, server_default="DRAFT", index=True),
        sa.Column("care_type", sa.String(30), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("diagnosis_code", sa.String(20), nullable=True),
        sa.Column("diagnosis_description", sa.Text, nullable=True),
        sa.Column("amount_submitted", sa.Numeric(12, 2), nullable=True),
        sa.Column("incident_date", sa.Date, nullable=True),
        sa.Column("submitted_date", sa.Date, nullable=True),
        sa.Column("business_days", sa.Integer, nullable=True),
        sa.Column("amount_approved", sa.Numeric(12, 2), nullable=True),
        sa.Column("amount_denied", sa.Numeric(12, 2), nullable=True),
        sa.Column("amount_unprocessed", sa.Numeric(12, 2), nullable=True),
        sa.Column("deductible_applied", sa.Numeric(12, 2), nullable=True),
        sa.Column("copay_applied", sa.Numeric(12, 2), nullable=True),
        sa.Column("settlement_date", sa.Date, nullable=True),
        sa.Column("settlement_number", sa.String(100), nullable=True),
        sa.Column("settlement_notes", sa.Text, nullable=True),
        sa.Column(
            "created_by_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "updated_by_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_claims_client_status", "claims", ["client_id", "status"])
    op.create_index("ix_claims_affiliate_status", "claims", ["affiliate_id", "status"])

    op.create_table(
        "claim_invoices",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "claim_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("claims.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("invoice_number", sa.String(100), nullable=False),
        sa.Column("provider_name", sa.String(255), nullable=False),
        sa.Column("amount_submitted", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "created_by_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "claim_reprocesses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "claim_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("claims.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("reprocess_date", sa.Date, nullable=False),
        sa.Column("reprocess_description", sa.Text, nullable=False),
        sa.Column("business_days", sa.Integer, nullable=True),
        sa.Column(
            "created_by_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Insurer invoices
    op.create_table(
        "invoices",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("invoice_number", sa.String(100), nullable=False, unique=True, index=True),
        sa.Column("insurer_invoice_number", sa.String(100), nullable=False),
        sa.Column(
            "client_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("clients.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "insurer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("insurers.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        ),
        sa.Column("status", sa.String(30), nullable=False, server_default="PENDING", index=True),
        sa.Column(
            "payment_status",
            sa.String(30),
            nullable=False,
            server_default="PENDING_PAYMENT",
            index=True,
        ),
        sa.Column("billing_period", sa.String(20), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("expected_affiliate_count", sa.Integer, nullable=True),
        sa.Column("actual_affiliate_count", sa.Integer, nullable=True),
        sa.Column("count_matches", sa.Boolean, nullable=True),
        sa.Column("expected_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("amount_matches", sa.Boolean, nullable=True),
        sa.Column("discrepancy_notes", sa.Text, nullable=True),
        sa.Column("issue_date", sa.Date, nullable=False),
        sa.Column("due_date", sa.Date, nullable=True),
        sa.Column("payment_date", sa.Date, nullable=True),
        sa.Column(
            "created_by_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "updated_by_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_invoices_client_status", "invoices", ["client_id", "status"])

    op.create_table(
        "invoice_policies",
        sa.Column(
            "invoice_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("invoices.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "policy_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("policies.id", ondelete="CASCADE"),
            primary_key=True,
            index=True,
        ),
        sa.Column("expected_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("expected_affiliate_count", sa.Integer, nullable=True),
        sa.Column("added_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Audit
    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("action", sa.String(50), nullable=False, index=True),
        sa.Column("resource_type", sa.String(30), nullable=False),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("client_id", postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("changes", postgresql.JSONB, nullable=True),
        sa.Column("details", postgresql.JSONB, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
            index=True,
        ),
    )
    op.create_index("ix_audit_logs_resource", "audit_logs", ["resource_type", "resource_id"])
    op.create_index("ix_audit_logs_user_created", "audit_logs", ["user_id", "created_at"])


def downgrade() -> None:
    """Drop all back office tables."""
    op.drop_table("audit_logs")
    op.drop_table("invoice_policies")
    op.drop_table("invoices")
    op.drop_table("claim_reprocesses")
    op.drop_table("claim_invoices")
    op.drop_table("claims")
    op.drop_table("policies")
    op.drop_table("affiliates")
    op.drop_table("user_client_access")
    op.drop_table("insurers")
    op.drop_table("clients")
    op.drop_table("users")
