"""
Invoice Models.
Insurer premium invoices billed to a client, and the policies each one covers.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import (
    Boolean,
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

from src.core.enums import InvoiceStatus, PaymentStatus
from src.models.base import Base, TimeStampedModel, UUIDModel, enum_column_type

if TYPE_CHECKING:
    from src.models.client import Client, Insurer
    from src.models.policy import Policy
    from src.models.user import User


class Invoice(Base, UUIDModel, TimeStampedModel):
    """
    Insurer invoice.

    Lifecycle status (reconciliation) and payment status are tracked
    independently. Status changes go exclusively through the invoice edit
    service.
    """

    __tablename__ = "invoices"

    # Identification
    invoice_number: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
        comment="Brokerage-side invoice number",
    )
    insurer_invoice_number: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Number printed by the insurer",
    )
    client_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    insurer_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("insurers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Status
    status: Mapped[InvoiceStatus] = mapped_column(
        enum_column_type(InvoiceStatus),
        default=InvoiceStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        enum_column_type(PaymentStatus),
        default=PaymentStatus.PENDING_PAYMENT,
        nullable=False,
        index=True,
    )

    # Billing
    billing_period: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        comment="Billed month, e.g. 2025-01",
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)

    # Reconciliation
    expected_affiliate_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    actual_affiliate_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    count_matches: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    expected_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    amount_matches: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    discrepancy_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Dates
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Actors
    created_by_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    updated_by_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    client: Mapped["Client"] = relationship()
    insurer: Mapped["Insurer"] = relationship()
    updated_by: Mapped[Optional["User"]] = relationship(foreign_keys=[updated_by_id])
    policies: Mapped[list["InvoicePolicy"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoicePolicy.added_at",
    )

    __table_args__ = (Index("ix_invoices_client_status", "client_id", "status"),)

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number='{self.invoice_number}', status='{self.status}')>"


class InvoicePolicy(Base):
    """Policy covered by an invoice."""

    __tablename__ = "invoice_policies"

    invoice_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        primary_key=True,
    )
    policy_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("policies.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    expected_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    expected_affiliate_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    invoice: Mapped["Invoice"] = relationship(back_populates="policies")
    policy: Mapped["Policy"] = relationship()

    def __repr__(self) -> str:
        return f"<InvoicePolicy(invoice_id={self.invoice_id}, policy_id={self.policy_id})>"
