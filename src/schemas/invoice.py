"""
Pydantic Schemas for Insurer Invoices.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.core.enums import InvoiceStatus, PaymentStatus
from src.schemas.common import EntityRef, PartialUpdate, UserRef

BILLING_PERIOD_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class InvoiceCreate(BaseModel):
    """Schema for registering an insurer invoice."""

    invoice_number: str = Field(..., min_length=1, max_length=100)
    insurer_invoice_number: str = Field(..., min_length=1, max_length=100)
    client_id: UUID
    insurer_id: UUID
    total_amount: Decimal = Field(..., ge=0)
    issue_date: date
    tax_amount: Optional[Decimal] = Field(None, ge=0)
    billing_period: Optional[str] = Field(None, pattern=BILLING_PERIOD_PATTERN, description="YYYY-MM")
    due_date: Optional[date] = None
    expected_amount: Optional[Decimal] = Field(None, ge=0)
    expected_affiliate_count: Optional[int] = Field(None, ge=0)
    actual_affiliate_count: Optional[int] = Field(None, ge=0)
    policy_ids: list[UUID] = Field(default_factory=list, description="Policies billed by this invoice")

    @field_validator("policy_ids")
    @classmethod
    def dedupe_policy_ids(cls, v: list[UUID]) -> list[UUID]:
        """Keep the first occurrence of each policy id."""
        return list(dict.fromkeys(v))


class InvoiceUpdate(PartialUpdate):
    """Schema for editing an invoice; ``status`` requests a transition."""

    NON_NULLABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {
            "status",
            "invoice_number",
            "insurer_invoice_number",
            "client_id",
            "insurer_id",
            "total_amount",
            "issue_date",
            "payment_status",
        }
    )

    status: Optional[InvoiceStatus] = None
    invoice_number: Optional[str] = Field(None, min_length=1, max_length=100)
    insurer_invoice_number: Optional[str] = Field(None, min_length=1, max_length=100)
    client_id: Optional[UUID] = None
    insurer_id: Optional[UUID] = None
    billing_period: Optional[str] = Field(None, pattern=BILLING_PERIOD_PATTERN)
    total_amount: Optional[Decimal] = Field(None, ge=0)
    tax_amount: Optional[Decimal] = Field(None, ge=0)
    expected_amount: Optional[Decimal] = Field(None, ge=0)
    expected_affiliate_count: Optional[int] = Field(None, ge=0)
    actual_affiliate_count: Optional[int] = Field(None, ge=0)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    payment_status: Optional[PaymentStatus] = None
    payment_date: Optional[date] = None
    discrepancy_notes: Optional[str] = Field(None, max_length=5000)


class InvoicePolicyResponse(BaseModel):
    """Policy billed by an invoice."""

    policy_id: UUID
    policy_number: str
    expected_amount: Optional[Decimal] = None
    expected_affiliate_count: Optional[int] = None


class InvoiceDetailResponse(BaseModel):
    """Canonical detail projection of an invoice."""

    id: UUID
    invoice_number: str
    insurer_invoice_number: str
    status: InvoiceStatus
    status_label: str
    is_terminal: bool
    payment_status: PaymentStatus
    client: EntityRef
    insurer: EntityRef

    billing_period: Optional[str] = None
    total_amount: Decimal
    tax_amount: Optional[Decimal] = None
    expected_amount: Optional[Decimal] = None
    amount_matches: Optional[bool] = None
    expected_affiliate_count: Optional[int] = None
    actual_affiliate_count: Optional[int] = None
    count_matches: Optional[bool] = None
    discrepancy_notes: Optional[str] = None

    issue_date: date
    due_date: Optional[date] = None
    payment_date: Optional[date] = None

    policies: list[InvoicePolicyResponse] = Field(default_factory=list)
    updated_by: Optional[UserRef] = None
    created_at: datetime
    updated_at: datetime


class InvoiceListItem(BaseModel):
    """Row of the invoices list."""

    id: UUID
    invoice_number: str
    insurer_invoice_number: str
    status: InvoiceStatus
    status_label: str
    payment_status: PaymentStatus
    client_name: str
    insurer_name: str
    billing_period: Optional[str] = None
    total_amount: Decimal
    issue_date: date
    due_date: Optional[date] = None
    created_at: datetime


class InvoiceListResponse(BaseModel):
    """Schema for listing invoices."""

    items: list[InvoiceListItem]
    total: int
    skip: int
    limit: int
