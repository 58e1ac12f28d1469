"""
Pydantic Schemas for Claims Management.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.core.enums import CareType, ClaimStatus
from src.schemas.common import EntityRef, PartialUpdate, UserRef


# =============================================================================
# Claim Invoice Schemas
# =============================================================================


class ClaimInvoiceCreate(BaseModel):
    """Provider invoice attached to a claim."""

    invoice_number: str = Field(..., min_length=1, max_length=100)
    provider_name: str = Field(..., min_length=1, max_length=255)
    amount_submitted: Decimal = Field(..., gt=0, description="Invoiced amount")


class ClaimInvoiceUpdate(PartialUpdate):
    """Partial update of a claim invoice."""

    NON_NULLABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"invoice_number", "provider_name", "amount_submitted"}
    )

    invoice_number: Optional[str] = Field(None, min_length=1, max_length=100)
    provider_name: Optional[str] = Field(None, min_length=1, max_length=255)
    amount_submitted: Optional[Decimal] = Field(None, gt=0)


class ClaimInvoiceResponse(BaseModel):
    """Schema for claim invoice response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    claim_id: UUID
    invoice_number: str
    provider_name: str
    amount_submitted: Decimal
    created_at: datetime


class ClaimReprocessResponse(BaseModel):
    """Schema for a recorded resubmission."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reprocess_date: date
    reprocess_description: str
    business_days: Optional[int] = None
    created_at: datetime


# =============================================================================
# Claim Schemas
# =============================================================================


class ClaimCreate(BaseModel):
    """Schema for filing a new claim."""

    client_id: UUID
    affiliate_id: UUID = Field(..., description="Policy holder filing the claim")
    patient_id: UUID = Field(..., description="Affiliate or one of their dependents")
    description: Optional[str] = Field(None, max_length=5000)
    care_type: Optional[CareType] = None
    incident_date: Optional[date] = None
    amount_submitted: Optional[Decimal] = Field(None, ge=0)


class ClaimUpdate(PartialUpdate):
    """
    Schema for editing a claim.

    ``status`` requests a transition; ``reprocess_date`` and
    ``reprocess_description`` justify a resubmission from PENDING_INFO and
    are stored on a separate reprocess record.
    """

    status: Optional[ClaimStatus] = None

    # Intake
    care_type: Optional[CareType] = None
    description: Optional[str] = Field(None, max_length=5000)
    diagnosis_code: Optional[str] = Field(None, max_length=20)
    diagnosis_description: Optional[str] = Field(None, max_length=5000)
    amount_submitted: Optional[Decimal] = Field(None, ge=0)
    incident_date: Optional[date] = None
    submitted_date: Optional[date] = None
    policy_id: Optional[UUID] = None

    # Settlement
    business_days: Optional[int] = Field(None, ge=0)
    amount_approved: Optional[Decimal] = Field(None, ge=0)
    amount_denied: Optional[Decimal] = Field(None, ge=0)
    amount_unprocessed: Optional[Decimal] = Field(None, ge=0)
    deductible_applied: Optional[Decimal] = Field(None, ge=0)
    copay_applied: Optional[Decimal] = Field(None, ge=0)
    settlement_date: Optional[date] = None
    settlement_number: Optional[str] = Field(None, max_length=100)
    settlement_notes: Optional[str] = Field(None, max_length=5000)

    # Resubmission
    reprocess_date: Optional[date] = None
    reprocess_description: Optional[str] = Field(None, max_length=5000)


class PolicyRef(BaseModel):
    """Policy a claim is filed against."""

    id: UUID
    policy_number: str


class ClaimDetailResponse(BaseModel):
    """Canonical detail projection of a claim."""

    id: UUID
    claim_number: str
    status: ClaimStatus
    status_label: str
    is_terminal: bool

    client: EntityRef
    affiliate: EntityRef
    patient: EntityRef
    policy: Optional[PolicyRef] = None

    care_type: Optional[CareType] = None
    description: Optional[str] = None
    diagnosis_code: Optional[str] = None
    diagnosis_description: Optional[str] = None
    amount_submitted: Optional[Decimal] = None
    incident_date: Optional[date] = None
    submitted_date: Optional[date] = None

    business_days: Optional[int] = None
    amount_approved: Optional[Decimal] = None
    amount_denied: Optional[Decimal] = None
    amount_unprocessed: Optional[Decimal] = None
    deductible_applied: Optional[Decimal] = None
    copay_applied: Optional[Decimal] = None
    settlement_date: Optional[date] = None
    settlement_number: Optional[str] = None
    settlement_notes: Optional[str] = None

    invoices: list[ClaimInvoiceResponse] = Field(default_factory=list)
    invoices_total: Decimal = Decimal("0")
    reprocesses: list[ClaimReprocessResponse] = Field(default_factory=list)

    created_by: Optional[UserRef] = None
    updated_by: Optional[UserRef] = None
    created_at: datetime
    updated_at: datetime


class ClaimListItem(BaseModel):
    """Row of the claims list."""

    id: UUID
    claim_number: str
    status: ClaimStatus
    status_label: str
    client_name: str
    affiliate_name: str
    patient_name: str
    care_type: Optional[CareType] = None
    amount_submitted: Optional[Decimal] = None
    amount_approved: Optional[Decimal] = None
    submitted_date: Optional[date] = None
    created_at: datetime


class ClaimListResponse(BaseModel):
    """Schema for listing claims."""

    items: list[ClaimListItem]
    total: int
    skip: int
    limit: int
