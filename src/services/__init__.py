"""
Services Layer for the Brokerage Back Office.

Lifecycle blueprints, the shared lifecycle validator, and the edit services
that are the only writers of claim, policy and invoice state.
"""

from src.services.audit_service import AuditService
from src.services.claim_lifecycle import (
    CLAIM_LIFECYCLE_BLUEPRINT,
    get_claim_lifecycle_validator,
)
from src.services.claims_service import ClaimsService, get_claims_service
from src.services.invoice_lifecycle import (
    INVOICE_LIFECYCLE_BLUEPRINT,
    get_invoice_lifecycle_validator,
)
from src.services.invoices_service import InvoicesService, get_invoices_service
from src.services.lifecycle import (
    LifecycleBlueprint,
    LifecycleRule,
    LifecycleValidator,
    UpdatePlan,
    plan_update,
)
from src.services.policies_service import PoliciesService, get_policies_service
from src.services.policy_lifecycle import (
    POLICY_LIFECYCLE_BLUEPRINT,
    get_policy_lifecycle_validator,
)
from src.services.user_context import UserContext, get_user_context, require_user_context

__all__ = [
    # Lifecycle core
    "LifecycleRule",
    "LifecycleBlueprint",
    "LifecycleValidator",
    "UpdatePlan",
    "plan_update",
    # Blueprints
    "CLAIM_LIFECYCLE_BLUEPRINT",
    "POLICY_LIFECYCLE_BLUEPRINT",
    "INVOICE_LIFECYCLE_BLUEPRINT",
    "get_claim_lifecycle_validator",
    "get_policy_lifecycle_validator",
    "get_invoice_lifecycle_validator",
    # Edit services
    "ClaimsService",
    "PoliciesService",
    "InvoicesService",
    "get_claims_service",
    "get_policies_service",
    "get_invoices_service",
    # Supporting
    "AuditService",
    "UserContext",
    "get_user_context",
    "require_user_context",
]
