"""
Claim Lifecycle Blueprint.

State Diagram:
    DRAFT -> VALIDATION | CANCELLED
    VALIDATION -> SUBMITTED | RETURNED | CANCELLED
    SUBMITTED -> PENDING_INFO | SETTLED | CANCELLED
    PENDING_INFO -> SUBMITTED | CANCELLED
    RETURNED, SETTLED, CANCELLED are terminal

Non-terminal states are worked by senior claim managers. Terminal states
belong to the super admin, with nothing left to edit.
"""

from typing import Optional

from src.core.enums import ClaimStatus
from src.core.roles import SENIOR_CLAIM_MANAGERS, SUPER_ADMIN_ONLY
from src.services.lifecycle import LifecycleBlueprint, LifecycleRule, LifecycleValidator

# Fields of the claim itself, editable while it is being prepared
CLAIM_INTAKE_FIELDS = (
    "care_type",
    "diagnosis_code",
    "diagnosis_description",
    "amount_submitted",
    "incident_date",
    "submitted_date",
    "description",
    "policy_id",
)

# Insurer settlement figures, filled once the claim has been submitted
CLAIM_SETTLEMENT_FIELDS = (
    "business_days",
    "amount_approved",
    "amount_denied",
    "amount_unprocessed",
    "deductible_applied",
    "copay_applied",
    "settlement_date",
    "settlement_number",
    "settlement_notes",
)

# Justification of a resubmission; stored on a ClaimReprocess row, not on the claim
REPROCESS_FIELDS = frozenset({"reprocess_date", "reprocess_description"})


CLAIM_LIFECYCLE_BLUEPRINT: LifecycleBlueprint[ClaimStatus] = LifecycleBlueprint(
    entity="claim",
    initial_status=ClaimStatus.DRAFT,
    rules={
        ClaimStatus.DRAFT: LifecycleRule(
            label="Borrador",
            allowed_editors=SENIOR_CLAIM_MANAGERS,
            editable_fields=CLAIM_INTAKE_FIELDS,
            allowed_transitions={ClaimStatus.VALIDATION, ClaimStatus.CANCELLED},
            transition_requirements={
                ClaimStatus.VALIDATION: (
                    "care_type",
                    "incident_date",
                    "submitted_date",
                    "amount_submitted",
                    "diagnosis_description",
                ),
                ClaimStatus.CANCELLED: (),
            },
        ),
        ClaimStatus.VALIDATION: LifecycleRule(
            label="Validación",
            allowed_editors=SENIOR_CLAIM_MANAGERS,
            editable_fields=CLAIM_INTAKE_FIELDS,
            allowed_transitions={
                ClaimStatus.SUBMITTED,
                ClaimStatus.RETURNED,
                ClaimStatus.CANCELLED,
            },
            transition_requirements={
                ClaimStatus.SUBMITTED: (),
                ClaimStatus.RETURNED: (),
                ClaimStatus.CANCELLED: (),
            },
        ),
        ClaimStatus.SUBMITTED: LifecycleRule(
            label="Tramitado",
            allowed_editors=SENIOR_CLAIM_MANAGERS,
            editable_fields=CLAIM_SETTLEMENT_FIELDS,
            allowed_transitions={
                ClaimStatus.PENDING_INFO,
                ClaimStatus.SETTLED,
                ClaimStatus.CANCELLED,
            },
            transition_requirements={
                ClaimStatus.PENDING_INFO: (),
                ClaimStatus.SETTLED: (
                    "amount_approved",
                    "amount_denied",
                    "amount_unprocessed",
                    "deductible_applied",
                    "copay_applied",
                    "settlement_date",
                    "settlement_number",
                ),
                ClaimStatus.CANCELLED: (),
            },
        ),
        ClaimStatus.PENDING_INFO: LifecycleRule(
            label="Pendiente Info",
            allowed_editors=SENIOR_CLAIM_MANAGERS,
            editable_fields=CLAIM_INTAKE_FIELDS + ("business_days",),
            allowed_transitions={ClaimStatus.SUBMITTED, ClaimStatus.CANCELLED},
            transition_requirements={
                ClaimStatus.SUBMITTED: ("reprocess_date", "reprocess_description"),
                ClaimStatus.CANCELLED: (),
            },
        ),
        ClaimStatus.RETURNED: LifecycleRule(
            label="Devuelto",
            allowed_editors=SUPER_ADMIN_ONLY,
            editable_fields=(),
            allowed_transitions=(),
        ),
        ClaimStatus.SETTLED: LifecycleRule(
            label="Liquidado",
            allowed_editors=SUPER_ADMIN_ONLY,
            editable_fields=(),
            allowed_transitions=(),
        ),
        ClaimStatus.CANCELLED: LifecycleRule(
            label="Cancelado",
            allowed_editors=SUPER_ADMIN_ONLY,
            editable_fields=(),
            allowed_transitions=(),
        ),
    },
)


def is_reprocess_transition(from_status: object, to_status: object) -> bool:
    """Resubmitting after the insurer asked for more information."""
    return from_status == ClaimStatus.PENDING_INFO and to_status == ClaimStatus.SUBMITTED


_validator: Optional[LifecycleValidator[ClaimStatus]] = None


def get_claim_lifecycle_validator() -> LifecycleValidator[ClaimStatus]:
    """Get singleton claim lifecycle validator."""
    global _validator
    if _validator is None:
        _validator = LifecycleValidator(CLAIM_LIFECYCLE_BLUEPRINT)
    return _validator
