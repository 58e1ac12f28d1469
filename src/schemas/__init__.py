"""
Pydantic Schemas for the Brokerage Back Office.

Request bodies, partial updates and response models of the claim, policy
and insurer invoice endpoints, and of the parties they reference.
"""

from src.schemas.affiliate import (
    AffiliateCreate,
    AffiliateListResponse,
    AffiliateResponse,
    AffiliateUpdate,
    AvailableAffiliate,
    AvailablePatient,
    PolicyAffiliateAdd,
    PolicyAffiliateListResponse,
    PolicyAffiliateRemovalResponse,
    PolicyAffiliateRemove,
    PolicyAffiliateResponse,
)
from src.schemas.audit import AuditLogEntry, AuditLogListResponse
from src.schemas.claim import (
    ClaimCreate,
    ClaimDetailResponse,
    ClaimInvoiceCreate,
    ClaimInvoiceResponse,
    ClaimInvoiceUpdate,
    ClaimListItem,
    ClaimListResponse,
    ClaimReprocessResponse,
    ClaimUpdate,
)
from src.schemas.client import (
    ClientCreate,
    ClientListResponse,
    ClientResponse,
    ClientUpdate,
    InsurerCreate,
    InsurerListResponse,
    InsurerResponse,
    InsurerUpdate,
)
from src.schemas.common import EntityRef, PartialUpdate, UserRef
from src.schemas.invoice import (
    InvoiceCreate,
    InvoiceDetailResponse,
    InvoiceListItem,
    InvoiceListResponse,
    InvoicePolicyResponse,
    InvoiceUpdate,
)
from src.schemas.policy import (
    AvailablePolicy,
    PolicyCreate,
    PolicyDetailResponse,
    PolicyListItem,
    PolicyListResponse,
    PolicyUpdate,
)

__all__ = [
    # Common
    "PartialUpdate",
    "EntityRef",
    "UserRef",
    # Claims
    "ClaimCreate",
    "ClaimUpdate",
    "ClaimDetailResponse",
    "ClaimListItem",
    "ClaimListResponse",
    "ClaimInvoiceCreate",
    "ClaimInvoiceUpdate",
    "ClaimInvoiceResponse",
    "ClaimReprocessResponse",
    "AvailableAffiliate",
    "AvailablePatient",
    "AvailablePolicy",
    # Policies
    "PolicyCreate",
    "PolicyUpdate",
    "PolicyDetailResponse",
    "PolicyListItem",
    "PolicyListResponse",
    "PolicyAffiliateAdd",
    "PolicyAffiliateRemove",
    "PolicyAffiliateResponse",
    "PolicyAffiliateListResponse",
    "PolicyAffiliateRemovalResponse",
    # Invoices
    "InvoiceCreate",
    "InvoiceUpdate",
    "InvoiceDetailResponse",
    "InvoiceListItem",
    "InvoiceListResponse",
    "InvoicePolicyResponse",
    # Parties
    "ClientCreate",
    "ClientUpdate",
    "ClientResponse",
    "ClientListResponse",
    "InsurerCreate",
    "InsurerUpdate",
    "InsurerResponse",
    "InsurerListResponse",
    "AffiliateCreate",
    "AffiliateUpdate",
    "AffiliateResponse",
    "AffiliateListResponse",
    # Audit
    "AuditLogEntry",
    "AuditLogListResponse",
]
