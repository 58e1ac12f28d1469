"""
Invoice Lifecycle Blueprint.

State Diagram:
    PENDING -> VALIDATED | DISCREPANCY | CANCELLED
    VALIDATED -> DISCREPANCY | CANCELLED
    DISCREPANCY -> VALIDATED | CANCELLED
    CANCELLED is terminal

A cancelled invoice keeps one door open: the super admin may still
annotate it through discrepancy_notes.
"""

from typing import Optional

from src.core.enums import InvoiceStatus
from src.core.roles import BROKER_EMPLOYEES, SUPER_ADMIN_ONLY
from src.services.lifecycle import LifecycleBlueprint, LifecycleRule, LifecycleValidator

# Figures that must be known before an invoice can be reconciled
INVOICE_RECONCILIATION_FIELDS = (
    "billing_period",
    "tax_amount",
    "actual_affiliate_count",
    "due_date",
)


INVOICE_LIFECYCLE_BLUEPRINT: LifecycleBlueprint[InvoiceStatus] = LifecycleBlueprint(
    entity="invoice",
    initial_status=InvoiceStatus.PENDING,
    rules={
        InvoiceStatus.PENDING: LifecycleRule(
            label="Pendiente",
            allowed_editors=BROKER_EMPLOYEES,
            editable_fields=(
                "invoice_number",
                "insurer_invoice_number",
                "client_id",
                "insurer_id",
                "billing_period",
                "total_amount",
                "tax_amount",
                "actual_affiliate_count",
                "expected_amount",
                "expected_affiliate_count",
                "issue_date",
                "due_date",
                "discrepancy_notes",
            ),
            allowed_transitions={
                InvoiceStatus.VALIDATED,
                InvoiceStatus.DISCREPANCY,
                InvoiceStatus.CANCELLED,
            },
            transition_requirements={
                InvoiceStatus.VALIDATED: INVOICE_RECONCILIATION_FIELDS,
                InvoiceStatus.DISCREPANCY: INVOICE_RECONCILIATION_FIELDS,
                InvoiceStatus.CANCELLED: (),
            },
        ),
        InvoiceStatus.VALIDATED: LifecycleRule(
            label="Validada",
            allowed_editors=BROKER_EMPLOYEES,
            editable_fields=("payment_status", "payment_date", "discrepancy_notes"),
            allowed_transitions={InvoiceStatus.DISCREPANCY, InvoiceStatus.CANCELLED},
            transition_requirements={
                InvoiceStatus.DISCREPANCY: (),
                InvoiceStatus.CANCELLED: (),
            },
        ),
        InvoiceStatus.DISCREPANCY: LifecycleRule(
            label="Discrepancia",
            allowed_editors=BROKER_EMPLOYEES,
            editable_fields=(
                "discrepancy_notes",
                "expected_amount",
                "actual_affiliate_count",
                "total_amount",
                "tax_amount",
                "billing_period",
                "payment_status",
                "payment_date",
            ),
            allowed_transitions={InvoiceStatus.VALIDATED, InvoiceStatus.CANCELLED},
            transition_requirements={
                InvoiceStatus.VALIDATED: ("discrepancy_notes",),
                InvoiceStatus.CANCELLED: (),
            },
        ),
        InvoiceStatus.CANCELLED: LifecycleRule(
            label="Cancelada",
            allowed_editors=SUPER_ADMIN_ONLY,
            editable_fields=("discrepancy_notes",),
            allowed_transitions=(),
        ),
    },
)


_validator: Optional[LifecycleValidator[InvoiceStatus]] = None


def get_invoice_lifecycle_validator() -> LifecycleValidator[InvoiceStatus]:
    """Get singleton invoice lifecycle validator."""
    global _validator
    if _validator is None:
        _validator = LifecycleValidator(INVOICE_LIFECYCLE_BLUEPRINT)
    return _validator
