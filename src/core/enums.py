"""
Core Enumerations for the Brokerage Back Office.
Source: https://docs.python.org/3/library/enum.html
Verified: 2025-12-18
"""

from enum import Enum


# =============================================================================
# Identity Enums
# =============================================================================


class Role(str, Enum):
    """Global role assigned to a user account."""

    SUPER_ADMIN = "SUPER_ADMIN"  # Top admin: unrestricted, including terminal states
    CLAIMS_EMPLOYEE = "CLAIMS_EMPLOYEE"
    OPERATIONS_EMPLOYEE = "OPERATIONS_EMPLOYEE"
    ADMIN_EMPLOYEE = "ADMIN_EMPLOYEE"
    CLIENT_ADMIN = "CLIENT_ADMIN"  # Scoped to clients granted through user_client_access
    AFFILIATE = "AFFILIATE"  # Scoped to their own affiliate record


class AffiliateType(str, Enum):
    """Whether an affiliate holds the coverage or depends on someone who does."""

    OWNER = "OWNER"
    DEPENDENT = "DEPENDENT"


# =============================================================================
# Lifecycle Status Enums
# =============================================================================


class ClaimStatus(str, Enum):
    """Claim lifecycle states."""

    DRAFT = "DRAFT"  # Initial state
    VALIDATION = "VALIDATION"
    SUBMITTED = "SUBMITTED"  # Sent to the insurer
    PENDING_INFO = "PENDING_INFO"  # Insurer asked for more information
    RETURNED = "RETURNED"  # Terminal
    SETTLED = "SETTLED"  # Terminal
    CANCELLED = "CANCELLED"  # Terminal


class PolicyStatus(str, Enum):
    """Policy lifecycle states."""

    PENDING = "PENDING"  # Initial state
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"  # Terminal


class InvoiceStatus(str, Enum):
    """Insurer invoice lifecycle states."""

    PENDING = "PENDING"  # Initial state
    VALIDATED = "VALIDATED"
    DISCREPANCY = "DISCREPANCY"
    CANCELLED = "CANCELLED"  # Terminal


# =============================================================================
# Business Value Enums
# =============================================================================


class CareType(str, Enum):
    """Type of care a claim is filed for."""

    AMBULATORY = "AMBULATORY"
    HOSPITALIZATION = "HOSPITALIZATION"
    MATERNITY = "MATERNITY"
    EMERGENCY = "EMERGENCY"
    OTHER = "OTHER"


class PaymentStatus(str, Enum):
    """Payment state of an insurer invoice, tracked apart from its lifecycle."""

    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"


# =============================================================================
# Audit Enums
# =============================================================================


class AuditAction(str, Enum):
    """Audit log action types."""

    CLAIM_CREATED = "CLAIM_CREATED"
    CLAIM_UPDATED = "CLAIM_UPDATED"
    CLAIM_INVOICE_ADDED = "CLAIM_INVOICE_ADDED"
    CLAIM_INVOICE_UPDATED = "CLAIM_INVOICE_UPDATED"
    CLAIM_INVOICE_REMOVED = "CLAIM_INVOICE_REMOVED"
    POLICY_CREATED = "POLICY_CREATED"
    POLICY_UPDATED = "POLICY_UPDATED"
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_UPDATED = "INVOICE_UPDATED"
    CLIENT_CREATED = "CLIENT_CREATED"
    CLIENT_UPDATED = "CLIENT_UPDATED"
    INSURER_CREATED = "INSURER_CREATED"
    INSURER_UPDATED = "INSURER_UPDATED"
    AFFILIATE_CREATED = "AFFILIATE_CREATED"
    AFFILIATE_UPDATED = "AFFILIATE_UPDATED"
    POLICY_AFFILIATE_ADDED = "POLICY_AFFILIATE_ADDED"
    POLICY_AFFILIATE_REMOVED = "POLICY_AFFILIATE_REMOVED"


class AuditResourceType(str, Enum):
    """Resource types for audit logging."""

    CLAIM = "Claim"
    CLAIM_INVOICE = "ClaimInvoice"
    POLICY = "Policy"
    INVOICE = "Invoice"
    CLIENT = "Client"
    INSURER = "Insurer"
    AFFILIATE = "Affiliate"
    POLICY_AFFILIATE = "PolicyAffiliate"
