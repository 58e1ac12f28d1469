"""
Claim Models for Reimbursement Claims Management.

- Claim: a reimbursement request filed for a patient through an affiliate
- ClaimInvoice: provider invoices attached to a claim
- ClaimReprocess: justification recorded each time a claim is resubmitted
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import (
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.core.enums import CareType, ClaimStatus
from src.models.base import Base, TimeStampedModel, UUIDModel, enum_column_type

if TYPE_CHECKING:
    from src.models.affiliate import Affiliate
    from src.models.client import Client
    from src.models.policy import Policy
    from src.models.user import User


class Claim(Base, UUIDModel, TimeStampedModel):
    """
    Reimbursement claim.

    Status changes go exclusively through the claim edit service, which
    enforces the claim lifecycle blueprint.
    """

    __tablename__ = "claims"

    # Claim Identification
    claim_sequence: Mapped[int] = mapped_column(
        Integer,
        unique=True,
        nullable=False,
        comment="Monotonic sequence the claim number is derived from",
    )
    claim_number: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        nullable=False,
        index=True,
        comment="Human-readable claim number (e.g., CLM-2025-000001)",
    )

    # Ownership
    client_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    affiliate_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("affiliates.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Policy holder filing the claim",
    )
    patient_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("affiliates.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Person who received care (the affiliate or a dependent)",
    )
    policy_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("policies.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    # Status
    status: Mapped[ClaimStatus] = mapped_column(
        enum_column_type(ClaimStatus),
        default=ClaimStatus.DRAFT,
        nullable=False,
        index=True,
        comment="Current claim status",
    )

    # Intake
    care_type: Mapped[Optional[CareType]] = mapped_column(
        enum_column_type(CareType),
        nullable=True,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    diagnosis_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    diagnosis_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    amount_submitted: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    incident_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    submitted_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Settlement
    business_days: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Business days the insurer took to answer",
    )
    amount_approved: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    amount_denied: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    amount_unprocessed: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    deductible_applied: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    copay_applied: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    settlement_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    settlement_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    settlement_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Actors
    created_by_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    updated_by_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    client: Mapped["Client"] = relationship()
    affiliate: Mapped["Affiliate"] = relationship(foreign_keys=[affiliate_id])
    patient: Mapped["Affiliate"] = relationship(foreign_keys=[patient_id])
    policy: Mapped[Optional["Policy"]] = relationship()
    created_by: Mapped["User"] = relationship(foreign_keys=[created_by_id])
    updated_by: Mapped[Optional["User"]] = relationship(foreign_keys=[updated_by_id])
    invoices: Mapped[list["ClaimInvoice"]] = relationship(
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimInvoice.created_at",
    )
    reprocesses: Mapped[list["ClaimReprocess"]] = relationship(
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimReprocess.created_at",
    )

    # Indexes
    __table_args__ = (
        Index("ix_claims_client_status", "client_id", "status"),
        Index("ix_claims_affiliate_status", "affiliate_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Claim(id={self.id}, number='{self.claim_number}', status='{self.status}')>"


class ClaimInvoice(Base, UUIDModel):
    """Provider invoice backing a claim."""

    __tablename__ = "claim_invoices"

    claim_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("claims.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    provider_name: Mapped[str] = mapped_column(String(255), nullable=False)
    amount_submitted: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    claim: Mapped["Claim"] = relationship(back_populates="invoices")

    def __repr__(self) -> str:
        return f"<ClaimInvoice(id={self.id}, number='{self.invoice_number}')>"


class ClaimReprocess(Base, UUIDModel):
    """Record of a PENDING_INFO -> SUBMITTED resubmission."""

    __tablename__ = "claim_reprocesses"

    claim_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("claims.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reprocess_date: Mapped[date] = mapped_column(Date, nullable=False)
    reprocess_description: Mapped[str] = mapped_column(Text, nullable=False)
    business_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_by_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    claim: Mapped["Claim"] = relationship(back_populates="reprocesses")

    def __repr__(self) -> str:
        return f"<ClaimReprocess(claim_id={self.claim_id}, date={self.reprocess_date})>"
