"""
Pydantic Schemas for Affiliates.
Insured persons of a client, their policy memberships and the claim-form lookups.
"""

from datetime import date, datetime
from typing import ClassVar, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from src.core.enums import AffiliateType
from src.schemas.common import EntityRef, PartialUpdate


# =============================================================================
# Affiliate Schemas
# =============================================================================


class AffiliateCreate(BaseModel):
    """Schema for registering an affiliate of a client."""

    model_config = ConfigDict(str_strip_whitespace=True)

    client_id: UUID
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    date_of_birth: Optional[date] = None
    document_type: Optional[str] = Field(None, max_length=20)
    document_number: Optional[str] = Field(None, min_length=1, max_length=50)
    affiliate_type: AffiliateType = AffiliateType.OWNER
    primary_affiliate_id: Optional[UUID] = Field(None, description="Owner a dependent is covered through")

    @model_validator(mode="after")
    def check_type_links(self) -> "AffiliateCreate":
        if self.affiliate_type == AffiliateType.DEPENDENT and self.primary_affiliate_id is None:
            raise ValueError("primary_affiliate_id is required for dependents")
        if self.affiliate_type == AffiliateType.OWNER and self.primary_affiliate_id is not None:
            raise ValueError("Owners cannot have a primary affiliate")
        if self.affiliate_type == AffiliateType.OWNER and not self.email:
            raise ValueError("Owners must have an email")
        return self


class AffiliateUpdate(PartialUpdate):
    """
    Partial update of an affiliate.

    Type rules are checked by the service against the merged state, since a
    request may change the type and the owner link separately.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    NON_NULLABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(
        {"first_name", "last_name", "affiliate_type", "is_active"}
    )

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    date_of_birth: Optional[date] = None
    document_type: Optional[str] = Field(None, max_length=20)
    document_number: Optional[str] = Field(None, min_length=1, max_length=50)
    affiliate_type: Optional[AffiliateType] = None
    primary_affiliate_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class AffiliateResponse(BaseModel):
    """Detail projection of an affiliate."""

    id: UUID
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    document_type: Optional[str] = None
    document_number: Optional[str] = None
    affiliate_type: AffiliateType
    client: EntityRef
    primary_affiliate: Optional[EntityRef] = None
    has_user_account: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AffiliateListResponse(BaseModel):
    """Schema for listing affiliates."""

    items: list[AffiliateResponse]
    total: int
    skip: int
    limit: int


# =============================================================================
# Policy Membership Schemas
# =============================================================================


class PolicyAffiliateAdd(BaseModel):
    """Add an existing affiliate to a policy."""

    affiliate_id: UUID
    added_at: date = Field(..., description="Date the affiliate's coverage starts")

    @model_validator(mode="after")
    def check_not_future(self) -> "PolicyAffiliateAdd":
        if self.added_at > date.today():
            raise ValueError("added_at cannot be in the future")
        return self


class PolicyAffiliateRemove(BaseModel):
    """Remove an affiliate from a policy as of a date."""

    removed_at: date


class PolicyAffiliateResponse(BaseModel):
    """Membership of an affiliate in a policy."""

    policy_id: UUID
    affiliate: EntityRef
    affiliate_type: AffiliateType
    primary_affiliate_id: Optional[UUID] = None
    added_at: date
    removed_at: Optional[date] = None
    is_active: bool


class PolicyAffiliateListResponse(BaseModel):
    """Schema for listing the members of a policy."""

    items: list[PolicyAffiliateResponse]
    total: int
    skip: int
    limit: int


class PolicyAffiliateRemovalResponse(BaseModel):
    """Removed membership plus the dependents removed along with an owner."""

    removed: PolicyAffiliateResponse
    cascaded_dependents: list[EntityRef] = []


# =============================================================================
# Claim Form Lookups
# =============================================================================


class AvailableAffiliate(BaseModel):
    """Owner affiliate a claim can be filed for."""

    id: UUID
    first_name: str
    last_name: str


class AvailablePatient(BaseModel):
    """Person a claim of an affiliate can cover: the affiliate or a dependent."""

    id: UUID
    first_name: str
    last_name: str
    relationship: Literal["self", "dependent"]
