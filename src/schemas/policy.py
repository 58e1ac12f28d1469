"""
Pydantic Schemas for Policy Management.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from src.core.enums import PolicyStatus
from src.schemas.common import EntityRef, PartialUpdate, UserRef


class PolicyTerms(BaseModel):
    """Coverage and premium terms shared by create and detail schemas."""

    type: Optional[str] = Field(None, max_length=100, description="Plan type")
    amb_copay: Optional[Decimal] = Field(None, ge=0, description="Ambulatory copay")
    hosp_copay: Optional[Decimal] = Field(None, ge=0, description="Hospitalization copay")
    maternity: Optional[Decimal] = Field(None, ge=0, description="Maternity coverage")
    t_premium: Optional[Decimal] = Field(None, ge=0, description="Premium, holder only")
    tplus1_premium: Optional[Decimal] = Field(None, ge=0, description="Premium, holder + 1")
    tplusf_premium: Optional[Decimal] = Field(None, ge=0, description="Premium, holder + family")
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1, description="Tax rate (0.12 = 12%)")
    additional_costs: Optional[Decimal] = Field(None, ge=0)


class PolicyCreate(PolicyTerms):
    """Schema for registering a policy."""

    policy_number: str = Field(..., min_length=1, max_length=100)
    client_id: UUID
    insurer_id: UUID
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_dates(self) -> "PolicyCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class PolicyUpdate(PartialUpdate):
    """Schema for editing a policy; ``status`` requests a transition."""

    NON_NULLABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"status", "policy_number", "client_id", "insurer_id", "start_date", "end_date"}
    )

    status: Optional[PolicyStatus] = None
    policy_number: Optional[str] = Field(None, min_length=1, max_length=100)
    client_id: Optional[UUID] = None
    insurer_id: Optional[UUID] = None
    type: Optional[str] = Field(None, max_length=100)
    amb_copay: Optional[Decimal] = Field(None, ge=0)
    hosp_copay: Optional[Decimal] = Field(None, ge=0)
    maternity: Optional[Decimal] = Field(None, ge=0)
    t_premium: Optional[Decimal] = Field(None, ge=0)
    tplus1_premium: Optional[Decimal] = Field(None, ge=0)
    tplusf_premium: Optional[Decimal] = Field(None, ge=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    additional_costs: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class PolicyDetailResponse(PolicyTerms):
    """Canonical detail projection of a policy."""

    id: UUID
    policy_number: str
    status: PolicyStatus
    status_label: str
    is_terminal: bool
    client: EntityRef
    insurer: EntityRef
    start_date: date
    end_date: date
    is_active: bool
    updated_by: Optional[UserRef] = None
    created_at: datetime
    updated_at: datetime


class PolicyListItem(BaseModel):
    """Row of the policies list."""

    id: UUID
    policy_number: str
    status: PolicyStatus
    status_label: str
    type: Optional[str] = None
    client_name: str
    insurer_name: str
    start_date: date
    end_date: date
    created_at: datetime


class PolicyListResponse(BaseModel):
    """Schema for listing policies."""

    items: list[PolicyListItem]
    total: int
    skip: int
    limit: int


class AvailablePolicy(BaseModel):
    """Policy a claim can be linked to."""

    id: UUID
    policy_number: str
    type: Optional[str] = None
    insurer_name: str
    end_date: date
