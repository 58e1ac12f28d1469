"""
Policy Lifecycle Blueprint.

State Diagram:
    PENDING -> ACTIVE | CANCELLED
    ACTIVE -> EXPIRED | CANCELLED
    EXPIRED -> ACTIVE | CANCELLED
    CANCELLED is terminal

Broker employees configure pending policies; from activation onwards only
the super admin may touch them.
"""

from typing import Optional

from src.core.enums import PolicyStatus
from src.core.roles import BROKER_EMPLOYEES, SUPER_ADMIN_ONLY
from src.services.lifecycle import LifecycleBlueprint, LifecycleRule, LifecycleValidator

# Coverage, premium and validity terms; all of them must be set to activate
POLICY_TERMS_FIELDS = (
    "policy_number",
    "client_id",
    "insurer_id",
    "type",
    "amb_copay",
    "hosp_copay",
    "maternity",
    "t_premium",
    "tplus1_premium",
    "tplusf_premium",
    "tax_rate",
    "additional_costs",
    "start_date",
    "end_date",
)


POLICY_LIFECYCLE_BLUEPRINT: LifecycleBlueprint[PolicyStatus] = LifecycleBlueprint(
    entity="policy",
    initial_status=PolicyStatus.PENDING,
    rules={
        PolicyStatus.PENDING: LifecycleRule(
            label="Pendiente",
            allowed_editors=BROKER_EMPLOYEES,
            editable_fields=POLICY_TERMS_FIELDS,
            allowed_transitions={PolicyStatus.ACTIVE, PolicyStatus.CANCELLED},
            transition_requirements={
                PolicyStatus.ACTIVE: POLICY_TERMS_FIELDS,
                PolicyStatus.CANCELLED: (),
            },
        ),
        PolicyStatus.ACTIVE: LifecycleRule(
            label="Activa",
            allowed_editors=SUPER_ADMIN_ONLY,
            editable_fields=POLICY_TERMS_FIELDS,
            allowed_transitions={PolicyStatus.EXPIRED, PolicyStatus.CANCELLED},
            transition_requirements={
                PolicyStatus.EXPIRED: (),
                PolicyStatus.CANCELLED: (),
            },
        ),
        PolicyStatus.EXPIRED: LifecycleRule(
            label="Vencida",
            allowed_editors=SUPER_ADMIN_ONLY,
            editable_fields=POLICY_TERMS_FIELDS,
            allowed_transitions={PolicyStatus.ACTIVE, PolicyStatus.CANCELLED},
            transition_requirements={
                PolicyStatus.ACTIVE: POLICY_TERMS_FIELDS,
                PolicyStatus.CANCELLED: (),
            },
        ),
        PolicyStatus.CANCELLED: LifecycleRule(
            label="Cancelada",
            allowed_editors=SUPER_ADMIN_ONLY,
            editable_fields=(),
            allowed_transitions=(),
        ),
    },
)


_validator: Optional[LifecycleValidator[PolicyStatus]] = None


def get_policy_lifecycle_validator() -> LifecycleValidator[PolicyStatus]:
    """Get singleton policy lifecycle validator."""
    global _validator
    if _validator is None:
        _validator = LifecycleValidator(POLICY_LIFECYCLE_BLUEPRINT)
    return _validator
