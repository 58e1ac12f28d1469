"""
Unit Tests for the Lifecycle Validator and Update Planner
Tests blueprint enforcement in isolation, without a database
"""

from datetime import date
from decimal import Decimal
from enum import Enum

import pytest

from src.core.enums import ClaimStatus, InvoiceStatus, PolicyStatus, Role
from src.services.claim_lifecycle import (
    REPROCESS_FIELDS,
    get_claim_lifecycle_validator,
    is_reprocess_transition,
)
from src.services.invoice_lifecycle import get_invoice_lifecycle_validator
from src.services.lifecycle import (
    LifecycleBlueprint,
    LifecycleRule,
    LifecycleValidator,
    is_missing,
    merge_state,
    plan_update,
)
from src.services.policy_lifecycle import get_policy_lifecycle_validator
from src.utils.errors import BadRequestError, PermissionDeniedError


class DocStatus(str, Enum):
    OPEN = "OPEN"
    REVIEW = "REVIEW"
    CLOSED = "CLOSED"


def _doc_validator() -> LifecycleValidator[DocStatus]:
    """Minimal three-state blueprint to exercise the engine without domain rules."""
    blueprint = LifecycleBlueprint(
        entity="document",
        initial_status=DocStatus.OPEN,
        rules={
            DocStatus.OPEN: LifecycleRule(
                label="Open",
                allowed_editors={Role.CLAIMS_EMPLOYEE, Role.SUPER_ADMIN},
                editable_fields={"title", "body"},
                allowed_transitions={DocStatus.REVIEW},
                transition_requirements={DocStatus.REVIEW: ("title", "reviewer")},
            ),
            DocStatus.REVIEW: LifecycleRule(
                label="Review",
                allowed_editors={Role.SUPER_ADMIN},
                editable_fields={"notes"},
                allowed_transitions={DocStatus.CLOSED},
                transition_requirements={DocStatus.CLOSED: ()},
            ),
            DocStatus.CLOSED: LifecycleRule(
                label="Closed",
                allowed_editors={Role.SUPER_ADMIN},
                editable_fields=(),
                allowed_transitions=(),
            ),
        },
    )
    return LifecycleValidator(blueprint)


@pytest.mark.unit
class TestStateUtilities:
    """Test missing-value detection and state merging"""

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_values(self, value):
        assert is_missing(value) is True

    @pytest.mark.parametrize("value", [0, Decimal("0"), False, "x", date(2025, 1, 1)])
    def test_present_values(self, value):
        """Zero and False are real values, not missing ones"""
        assert is_missing(value) is False

    def test_merge_keeps_absent_keys(self):
        merged = merge_state({"a": 1, "b": 2}, {"b": 3})
        assert merged == {"a": 1, "b": 3}

    def test_merge_explicit_none_clears(self):
        merged = merge_state({"a": 1}, {"a": None})
        assert merged == {"a": None}

    def test_merge_does_not_mutate_inputs(self):
        current = {"a": 1}
        merge_state(current, {"a": 2})
        assert current == {"a": 1}


@pytest.mark.unit
class TestValidatorQueries:
    """Test the validator's individual checks"""

    def test_can_user_edit(self):
        validator = _doc_validator()
        assert validator.can_user_edit("CLAIMS_EMPLOYEE", DocStatus.OPEN) is True
        assert validator.can_user_edit(Role.CLAIMS_EMPLOYEE, DocStatus.REVIEW) is False
        assert validator.can_user_edit("SUPER_ADMIN", DocStatus.REVIEW) is True

    @pytest.mark.parametrize("role", [None, "", "INTERN", "super_admin"])
    def test_unknown_roles_edit_nothing(self, role):
        validator = _doc_validator()
        assert all(not validator.can_user_edit(role, status) for status in DocStatus)

    def test_unknown_status_fails_closed(self):
        validator = _doc_validator()
        assert validator.can_user_edit("SUPER_ADMIN", "ARCHIVED") is False
        assert validator.can_transition("ARCHIVED", DocStatus.OPEN) is False
        assert validator.transition_requirements("ARCHIVED", DocStatus.OPEN) == ()
        assert validator.forbidden_fields(["title"], "ARCHIVED") == ["title"]

    def test_can_transition(self):
        validator = _doc_validator()
        assert validator.can_transition(DocStatus.OPEN, DocStatus.REVIEW) is True
        assert validator.can_transition(DocStatus.OPEN, DocStatus.CLOSED) is False
        assert validator.can_transition(DocStatus.CLOSED, DocStatus.OPEN) is False

    def test_forbidden_fields_without_transition(self):
        validator = _doc_validator()
        assert validator.forbidden_fields(["title", "reviewer"], DocStatus.OPEN) == ["reviewer"]

    def test_transition_requirements_become_writable(self):
        """Fields required by the requested transition may be sent with it"""
        validator = _doc_validator()
        assert validator.forbidden_fields(["reviewer"], DocStatus.OPEN, DocStatus.REVIEW) == []

    def test_self_target_does_not_widen_fields(self):
        validator = _doc_validator()
        assert validator.forbidden_fields(["reviewer"], DocStatus.OPEN, DocStatus.OPEN) == ["reviewer"]

    def test_missing_requirements_uses_merged_state(self):
        validator = _doc_validator()
        current = {"status": DocStatus.OPEN, "title": "", "reviewer": "ana"}

        assert validator.missing_requirements(current, {}, DocStatus.REVIEW) == ["title"]
        assert validator.missing_requirements(current, {"title": "Q1"}, DocStatus.REVIEW) == []
        assert validator.missing_requirements(current, {"reviewer": None}, DocStatus.REVIEW) == [
            "title",
            "reviewer",
        ]

    def test_missing_requirements_is_idempotent(self):
        validator = get_claim_lifecycle_validator()
        current = {"status": ClaimStatus.DRAFT, "care_type": None, "description": "x"}
        updates = {"status": ClaimStatus.VALIDATION}

        first = validator.missing_requirements(current, updates, ClaimStatus.VALIDATION)
        second = validator.missing_requirements(current, updates, ClaimStatus.VALIDATION)

        assert first == second
        assert "care_type" in first
        assert current == {"status": ClaimStatus.DRAFT, "care_type": None, "description": "x"}


@pytest.mark.unit
class TestPlanUpdate:
    """Test the shared update planner"""

    def test_role_denied(self):
        with pytest.raises(PermissionDeniedError) as exc_info:
            plan_update(_doc_validator(), "CLIENT_ADMIN", {"status": DocStatus.OPEN}, {"title": "x"})
        assert exc_info.value.status_code == 403

    def test_forbidden_field_names_the_field(self):
        with pytest.raises(BadRequestError) as exc_info:
            plan_update(_doc_validator(), "SUPER_ADMIN", {"status": DocStatus.OPEN}, {"notes": "x"})
        assert "notes" in exc_info.value.detail

    def test_plain_edit(self):
        plan = plan_update(
            _doc_validator(),
            "CLAIMS_EMPLOYEE",
            {"status": DocStatus.OPEN, "title": "old"},
            {"title": "new"},
        )
        assert plan.is_transition is False
        assert plan.write_set == {"title": "new"}
        assert plan.transition_metadata() is None
        assert plan.merged["title"] == "new"

    def test_same_status_is_a_plain_edit(self):
        plan = plan_update(
            _doc_validator(),
            "CLAIMS_EMPLOYEE",
            {"status": DocStatus.OPEN},
            {"status": DocStatus.OPEN, "body": "text"},
        )
        assert plan.is_transition is False
        assert plan.write_set == {"body": "text"}

    def test_invalid_transition(self):
        with pytest.raises(BadRequestError) as exc_info:
            plan_update(
                _doc_validator(),
                "CLAIMS_EMPLOYEE",
                {"status": DocStatus.OPEN},
                {"status": DocStatus.CLOSED},
            )
        assert "OPEN" in exc_info.value.detail and "CLOSED" in exc_info.value.detail

    def test_missing_requirements_listed(self):
        with pytest.raises(BadRequestError) as exc_info:
            plan_update(
                _doc_validator(),
                "CLAIMS_EMPLOYEE",
                {"status": DocStatus.OPEN, "title": None},
                {"status": DocStatus.REVIEW},
            )
        assert "title" in exc_info.value.detail
        assert "reviewer" in exc_info.value.detail

    def test_transition_with_requirements_in_same_request(self):
        plan = plan_update(
            _doc_validator(),
            "CLAIMS_EMPLOYEE",
            {"status": DocStatus.OPEN, "title": "Q1"},
            {"status": DocStatus.REVIEW, "reviewer": "ana"},
        )
        assert plan.to_status == DocStatus.REVIEW
        assert plan.write_set == {"reviewer": "ana", "status": DocStatus.REVIEW}
        assert plan.transition_metadata() == {"from": "OPEN", "to": "REVIEW"}

    def test_side_channel_fields_left_out_of_write_set(self):
        plan = plan_update(
            _doc_validator(),
            "CLAIMS_EMPLOYEE",
            {"status": DocStatus.OPEN, "title": "Q1"},
            {"status": DocStatus.REVIEW, "reviewer": "ana"},
            side_channel_fields=frozenset({"reviewer"}),
        )
        assert plan.write_set == {"status": DocStatus.REVIEW}
        assert plan.side_channel == {"reviewer": "ana"}

    def test_checks_run_in_order(self):
        """Authorization is checked before field permissions"""
        with pytest.raises(PermissionDeniedError):
            plan_update(
                _doc_validator(),
                "CLAIMS_EMPLOYEE",
                {"status": DocStatus.REVIEW},
                {"title": "x", "status": DocStatus.OPEN},
            )

    def test_requirements_not_checked_without_transition(self):
        plan = plan_update(
            _doc_validator(),
            "CLAIMS_EMPLOYEE",
            {"status": DocStatus.OPEN, "title": None},
            {"body": "draft"},
        )
        assert plan.write_set == {"body": "draft"}


@pytest.mark.unit
class TestClaimRules:
    """Test the claim blueprint through the validator"""

    def test_submitted_rejects_intake_fields(self):
        with pytest.raises(BadRequestError) as exc_info:
            plan_update(
                get_claim_lifecycle_validator(),
                "CLAIMS_EMPLOYEE",
                {"status": ClaimStatus.SUBMITTED},
                {"amount_submitted": Decimal("10")},
            )
        assert "amount_submitted" in exc_info.value.detail

    def test_draft_to_validation_requires_intake(self):
        current = {
            "status": ClaimStatus.DRAFT,
            "care_type": "AMBULATORY",
            "incident_date": date(2025, 3, 1),
            "submitted_date": None,
            "amount_submitted": Decimal("200"),
            "diagnosis_description": "",
        }
        with pytest.raises(BadRequestError) as exc_info:
            plan_update(
                get_claim_lifecycle_validator(),
                "CLAIMS_EMPLOYEE",
                current,
                {"status": ClaimStatus.VALIDATION},
            )
        assert "submitted_date" in exc_info.value.detail
        assert "diagnosis_description" in exc_info.value.detail

    def test_reprocess_fields_only_on_resubmission(self):
        validator = get_claim_lifecycle_validator()
        with pytest.raises(BadRequestError):
            plan_update(
                validator,
                "CLAIMS_EMPLOYEE",
                {"status": ClaimStatus.PENDING_INFO},
                {"reprocess_description": "more docs"},
                side_channel_fields=REPROCESS_FIELDS,
            )

        plan = plan_update(
            validator,
            "CLAIMS_EMPLOYEE",
            {"status": ClaimStatus.PENDING_INFO},
            {
                "status": ClaimStatus.SUBMITTED,
                "reprocess_date": date(2025, 4, 2),
                "reprocess_description": "Sent lab results",
            },
            side_channel_fields=REPROCESS_FIELDS,
        )
        assert plan.write_set == {"status": ClaimStatus.SUBMITTED}
        assert plan.side_channel["reprocess_description"] == "Sent lab results"
        assert is_reprocess_transition(plan.from_status, plan.to_status)

    @pytest.mark.parametrize(
        "status", [ClaimStatus.RETURNED, ClaimStatus.SETTLED, ClaimStatus.CANCELLED]
    )
    def test_terminal_claims(self, status):
        validator = get_claim_lifecycle_validator()
        with pytest.raises(PermissionDeniedError):
            plan_update(validator, "CLAIMS_EMPLOYEE", {"status": status}, {"settlement_notes": "x"})
        with pytest.raises(BadRequestError):
            plan_update(validator, "SUPER_ADMIN", {"status": status}, {"settlement_notes": "x"})
        with pytest.raises(BadRequestError):
            plan_update(validator, "SUPER_ADMIN", {"status": status}, {"status": ClaimStatus.DRAFT})


@pytest.mark.unit
class TestPolicyAndInvoiceRules:
    """Test the policy and invoice blueprints through the validator"""

    def test_only_super_admin_edits_active_policy(self):
        validator = get_policy_lifecycle_validator()
        assert validator.can_user_edit("OPERATIONS_EMPLOYEE", PolicyStatus.PENDING) is True
        assert validator.can_user_edit("OPERATIONS_EMPLOYEE", PolicyStatus.ACTIVE) is False
        assert validator.can_user_edit("SUPER_ADMIN", PolicyStatus.ACTIVE) is True

    def test_policy_activation_requires_terms(self):
        with pytest.raises(BadRequestError) as exc_info:
            plan_update(
                get_policy_lifecycle_validator(),
                "ADMIN_EMPLOYEE",
                {"status": PolicyStatus.PENDING, "policy_number": "P-1"},
                {"status": PolicyStatus.ACTIVE},
            )
        assert "t_premium" in exc_info.value.detail

    def test_discrepancy_resolution_requires_notes(self):
        with pytest.raises(BadRequestError) as exc_info:
            plan_update(
                get_invoice_lifecycle_validator(),
                "OPERATIONS_EMPLOYEE",
                {"status": InvoiceStatus.DISCREPANCY, "discrepancy_notes": None},
                {"status": InvoiceStatus.VALIDATED},
            )
        assert "discrepancy_notes" in exc_info.value.detail

    def test_cancelled_invoice_accepts_notes_from_super_admin(self):
        plan = plan_update(
            get_invoice_lifecycle_validator(),
            "SUPER_ADMIN",
            {"status": InvoiceStatus.CANCELLED},
            {"discrepancy_notes": "Reissued as INV-2"},
        )
        assert plan.write_set == {"discrepancy_notes": "Reissued as INV-2"}
