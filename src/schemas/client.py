"""
Pydantic Schemas for Clients and Insurers.
"""

from datetime import datetime
from typing import ClassVar, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from src.schemas.common import PartialUpdate

# Tax id (RUC): digits only
TAX_ID_PATTERN = r"^\d{8,20}$"


# =============================================================================
# Client Schemas
# =============================================================================


class ClientCreate(BaseModel):
    """Schema for registering a client company."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=2, max_length=200, description="Company name")
    tax_id: str = Field(..., pattern=TAX_ID_PATTERN, description="Tax identification number (RUC)")
    email: Optional[EmailStr] = Field(None, description="Primary contact email")
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    address: Optional[str] = Field(None, max_length=500)


class ClientUpdate(PartialUpdate):
    """Partial update of a client; contact fields may be cleared with null."""

    model_config = ConfigDict(str_strip_whitespace=True)

    NON_NULLABLE_FIELDS: ClassVar[frozenset[str]] = frozenset({"name", "tax_id", "is_active"})

    name: Optional[str] = Field(None, min_length=2, max_length=200)
    tax_id: Optional[str] = Field(None, pattern=TAX_ID_PATTERN)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    address: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


class ClientResponse(BaseModel):
    """Schema for client response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    tax_id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ClientListResponse(BaseModel):
    """Schema for listing clients."""

    items: list[ClientResponse]
    total: int
    skip: int
    limit: int


# =============================================================================
# Insurer Schemas
# =============================================================================


class InsurerFields(BaseModel):
    """Normalization shared by insurer create and update."""

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("code", check_fields=False)
    @classmethod
    def uppercase_code(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v is not None else v


class InsurerCreate(InsurerFields):
    """Schema for registering an insurer."""

    name: str = Field(..., min_length=2, max_length=100)
    code: Optional[str] = Field(None, min_length=2, max_length=20, description="Short code, stored uppercase")
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    website: Optional[str] = Field(None, max_length=255)
    billing_cutoff_day: Optional[int] = Field(
        None, ge=1, le=28, description="Day of month the insurer closes its billing period"
    )


class InsurerUpdate(InsurerFields, PartialUpdate):
    """Partial update of an insurer."""

    NON_NULLABLE_FIELDS: ClassVar[frozenset[str]] = frozenset({"name", "is_active"})

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    code: Optional[str] = Field(None, min_length=2, max_length=20)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, min_length=7, max_length=20)
    website: Optional[str] = Field(None, max_length=255)
    billing_cutoff_day: Optional[int] = Field(None, ge=1, le=28)
    is_active: Optional[bool] = None


class InsurerResponse(BaseModel):
    """Schema for insurer response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    code: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    billing_cutoff_day: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class InsurerListResponse(BaseModel):
    """Schema for listing insurers."""

    items: list[InsurerResponse]
    total: int
    skip: int
    limit: int
