"""
Integration Tests for the Claims Service
Claim filing, scoping, the claim edit flow, claim invoices and audit history
against a real (SQLite) database.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from src.core.enums import AuditAction, CareType, ClaimStatus
from src.models import AuditLog, ClaimReprocess
from src.schemas.claim import ClaimCreate, ClaimInvoiceCreate
from src.services.claims_service import ClaimsService
from src.utils.errors import (
    AuthenticationError,
    BadRequestError,
    NotFoundError,
    PermissionDeniedError,
)

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]


def _intake(**overrides):
    """Claim fields that satisfy DRAFT -> VALIDATION, except care_type."""
    values = {
        "care_type": None,
        "incident_date": date(2025, 3, 1),
        "submitted_date": date(2025, 3, 5),
        "amount_submitted": Decimal("100.00"),
        "diagnosis_description": "x",
    }
    values.update(overrides)
    return values


async def _count_audit(session, action: AuditAction) -> int:
    result = await session.execute(
        select(func.count()).select_from(AuditLog).where(AuditLog.action == action)
    )
    return result.scalar_one()


# =============================================================================
# Creation
# =============================================================================


class TestCreateClaim:
    async def test_creates_draft_with_number_and_audit(self, session, world):
        service = ClaimsService(session)
        detail = await service.create_claim(
            world.claims_employee.id,
            ClaimCreate(
                client_id=world.acme.id,
                affiliate_id=world.owner.id,
                patient_id=world.dependent.id,
                description="Consulta pediatrica",
                care_type=CareType.AMBULATORY,
                amount_submitted=Decimal("45.00"),
            ),
        )

        assert detail.status == ClaimStatus.DRAFT
        assert detail.status_label == "Borrador"
        assert detail.claim_number == f"CLM-{datetime.now(timezone.utc).year}-000001"
        assert detail.patient.name == "Sofia Perez"
        assert detail.created_by.id == world.claims_employee.id
        assert await _count_audit(session, AuditAction.CLAIM_CREATED) == 1

    async def test_numbers_are_sequential(self, session, world):
        service = ClaimsService(session)
        data = ClaimCreate(client_id=world.acme.id, affiliate_id=world.owner.id, patient_id=world.owner.id)
        first = await service.create_claim(world.claims_employee.id, data)
        second = await service.create_claim(world.claims_employee.id, data)
        assert first.claim_number.endswith("000001")
        assert second.claim_number.endswith("000002")

    async def test_patient_must_be_self_or_dependent(self, session, world):
        with pytest.raises(BadRequestError, match="dependents"):
            await ClaimsService(session).create_claim(
                world.claims_employee.id,
                ClaimCreate(
                    client_id=world.acme.id,
                    affiliate_id=world.owner.id,
                    patient_id=world.colleague.id,
                ),
            )

    async def test_affiliate_must_belong_to_client(self, session, world):
        with pytest.raises(BadRequestError, match="client"):
            await ClaimsService(session).create_claim(
                world.claims_employee.id,
                ClaimCreate(
                    client_id=world.acme.id,
                    affiliate_id=world.outsider.id,
                    patient_id=world.outsider.id,
                ),
            )

    async def test_missing_affiliate(self, session, world):
        with pytest.raises(NotFoundError):
            await ClaimsService(session).create_claim(
                world.claims_employee.id,
                ClaimCreate(client_id=world.acme.id, affiliate_id=uuid4(), patient_id=uuid4()),
            )

    async def test_affiliate_files_only_for_themselves(self, session, world):
        service = ClaimsService(session)
        own = await service.create_claim(
            world.affiliate_user.id,
            ClaimCreate(client_id=world.acme.id, affiliate_id=world.owner.id, patient_id=world.owner.id),
        )
        assert own.affiliate.id == world.owner.id

        with pytest.raises(PermissionDeniedError):
            await service.create_claim(
                world.affiliate_user.id,
                ClaimCreate(
                    client_id=world.acme.id,
                    affiliate_id=world.colleague.id,
                    patient_id=world.colleague.id,
                ),
            )

    async def test_client_admin_limited_to_granted_clients(self, session, world):
        with pytest.raises(PermissionDeniedError):
            await ClaimsService(session).create_claim(
                world.client_admin.id,
                ClaimCreate(
                    client_id=world.globex.id,
                    affiliate_id=world.outsider.id,
                    patient_id=world.outsider.id,
                ),
            )

    @pytest.mark.parametrize("user_attr", ["inactive", None])
    async def test_unknown_or_inactive_user(self, session, world, user_attr):
        user_id = getattr(world, user_attr).id if user_attr else uuid4()
        with pytest.raises(AuthenticationError):
            await ClaimsService(session).create_claim(
                user_id,
                ClaimCreate(client_id=world.acme.id, affiliate_id=world.owner.id, patient_id=world.owner.id),
            )

    async def test_unknown_role_cannot_file(self, session, world):
        with pytest.raises(PermissionDeniedError):
            await ClaimsService(session).create_claim(
                world.stranger.id,
                ClaimCreate(client_id=world.acme.id, affiliate_id=world.owner.id, patient_id=world.owner.id),
            )


# =============================================================================
# Edit Flow
# =============================================================================


class TestUpdateClaim:
    async def test_missing_requirement_is_named(self, session, world, make_claim):
        claim = await make_claim(world, **_intake())
        with pytest.raises(BadRequestError) as exc_info:
            await ClaimsService(session).update_claim(
                world.claims_employee.id, claim.id, {"status": ClaimStatus.VALIDATION}
            )
        assert exc_info.value.status_code == 400
        assert "care_type" in exc_info.value.detail

    async def test_requirement_satisfied_in_same_request(self, session, world, make_claim):
        claim = await make_claim(world, **_intake())
        service = ClaimsService(session)

        updated = await service.update_claim(
            world.claims_employee.id,
            claim.id,
            {"status": ClaimStatus.VALIDATION, "care_type": CareType.AMBULATORY},
        )

        assert updated.status == ClaimStatus.VALIDATION
        assert updated.care_type == CareType.AMBULATORY
        assert updated.updated_by.id == world.claims_employee.id

        fetched = await service.get_claim_detail(world.claims_employee.id, claim.id)
        assert fetched == updated

    async def test_transition_audited_with_snapshots(self, session, world, make_claim):
        claim = await make_claim(world, **_intake(care_type=CareType.EMERGENCY))
        await ClaimsService(session).update_claim(
            world.super_admin.id, claim.id, {"status": ClaimStatus.VALIDATION}
        )

        entry = (
            await session.execute(select(AuditLog).where(AuditLog.action == AuditAction.CLAIM_UPDATED))
        ).scalar_one()
        assert entry.resource_id == claim.id
        assert entry.user_id == world.super_admin.id
        assert entry.changes["before"]["status"] == "DRAFT"
        assert entry.changes["after"]["status"] == "VALIDATION"
        assert entry.details == {
            "role": "SUPER_ADMIN",
            "transition": {"from": "DRAFT", "to": "VALIDATION"},
        }

    async def test_terminal_claim_blocked_for_managers(self, session, world, make_claim):
        claim = await make_claim(world, status=ClaimStatus.SETTLED)
        with pytest.raises(PermissionDeniedError) as exc_info:
            await ClaimsService(session).update_claim(
                world.claims_employee.id, claim.id, {"description": "edit"}
            )
        assert exc_info.value.status_code == 403
        assert "SETTLED" in exc_info.value.detail

    async def test_terminal_claim_has_nothing_for_super_admin(self, session, world, make_claim):
        claim = await make_claim(world, status=ClaimStatus.CANCELLED)
        with pytest.raises(BadRequestError, match="description"):
            await ClaimsService(session).update_claim(
                world.super_admin.id, claim.id, {"description": "edit"}
            )

    async def test_field_not_editable_in_status(self, session, world, make_claim):
        claim = await make_claim(world, status=ClaimStatus.SUBMITTED)
        with pytest.raises(BadRequestError, match="amount_submitted"):
            await ClaimsService(session).update_claim(
                world.claims_employee.id, claim.id, {"amount_submitted": Decimal("1")}
            )

    async def test_illegal_transition(self, session, world, make_claim):
        claim = await make_claim(world, status=ClaimStatus.DRAFT)
        with pytest.raises(BadRequestError, match="DRAFT to SETTLED"):
            await ClaimsService(session).update_claim(
                world.claims_employee.id, claim.id, {"status": ClaimStatus.SETTLED}
            )

    async def test_rejected_update_leaves_no_trace(self, session, world, make_claim):
        claim = await make_claim(world, **_intake())
        with pytest.raises(BadRequestError):
            await ClaimsService(session).update_claim(
                world.claims_employee.id,
                claim.id,
                {"status": ClaimStatus.VALIDATION, "description": "should not persist"},
            )

        assert await _count_audit(session, AuditAction.CLAIM_UPDATED) == 0
        detail = await ClaimsService(session).get_claim_detail(world.claims_employee.id, claim.id)
        assert detail.status == ClaimStatus.DRAFT
        assert detail.description is None

    async def test_explicit_null_clears_field(self, session, world, make_claim):
        claim = await make_claim(world, diagnosis_code="J06.9")
        updated = await ClaimsService(session).update_claim(
            world.claims_employee.id, claim.id, {"diagnosis_code": None}
        )
        assert updated.diagnosis_code is None

    async def test_missing_claim(self, session, world):
        with pytest.raises(NotFoundError):
            await ClaimsService(session).update_claim(world.claims_employee.id, uuid4(), {"description": "x"})

    async def test_operations_employee_cannot_work_claims(self, session, world, make_claim):
        claim = await make_claim(world)
        with pytest.raises(PermissionDeniedError):
            await ClaimsService(session).update_claim(
                world.operations_employee.id, claim.id, {"description": "x"}
            )

    async def test_policy_must_belong_to_claim_client(self, session, world, make_claim, make_policy):
        foreign_policy = await make_policy(world.globex, world.insurer, number="GLX-1")
        own_policy = await make_policy(world.acme, world.insurer, number="ACM-1")
        claim = await make_claim(world)
        service = ClaimsService(session)

        with pytest.raises(BadRequestError, match="client"):
            await service.update_claim(world.claims_employee.id, claim.id, {"policy_id": foreign_policy.id})

        updated = await service.update_claim(world.claims_employee.id, claim.id, {"policy_id": own_policy.id})
        assert updated.policy.policy_number == "ACM-1"

    async def test_settlement_requires_figures(self, session, world, make_claim):
        claim = await make_claim(world, status=ClaimStatus.SUBMITTED)
        service = ClaimsService(session)
        figures = {
            "amount_approved": Decimal("80.00"),
            "amount_denied": Decimal("20.00"),
            "amount_unprocessed": Decimal("0"),
            "deductible_applied": Decimal("0"),
            "copay_applied": Decimal("0"),
            "settlement_date": date(2025, 4, 10),
        }

        with pytest.raises(BadRequestError, match="settlement_number"):
            await service.update_claim(
                world.claims_employee.id, claim.id, {**figures, "status": ClaimStatus.SETTLED}
            )

        settled = await service.update_claim(
            world.claims_employee.id,
            claim.id,
            {**figures, "settlement_number": "LIQ-991", "status": ClaimStatus.SETTLED},
        )
        assert settled.status == ClaimStatus.SETTLED
        assert settled.is_terminal is True
        assert settled.amount_denied == Decimal("20.00")


class TestReprocess:
    async def test_resubmission_records_reprocess(self, session, world, make_claim):
        claim = await make_claim(world, status=ClaimStatus.PENDING_INFO, business_days=4)
        updated = await ClaimsService(session).update_claim(
            world.claims_employee.id,
            claim.id,
            {
                "status": ClaimStatus.SUBMITTED,
                "reprocess_date": date(2025, 5, 2),
                "reprocess_description": "Sent missing lab results",
            },
        )

        assert updated.status == ClaimStatus.SUBMITTED
        assert len(updated.reprocesses) == 1
        reprocess = updated.reprocesses[0]
        assert reprocess.reprocess_description == "Sent missing lab results"
        assert reprocess.business_days == 4

    async def test_business_days_taken_from_request(self, session, world, make_claim):
        claim = await make_claim(world, status=ClaimStatus.PENDING_INFO, business_days=4)
        updated = await ClaimsService(session).update_claim(
            world.claims_employee.id,
            claim.id,
            {
                "status": ClaimStatus.SUBMITTED,
                "business_days": 9,
                "reprocess_date": date(2025, 5, 2),
                "reprocess_description": "Second attempt",
            },
        )
        assert updated.business_days == 9
        assert updated.reprocesses[0].business_days == 9

    async def test_resubmission_requires_justification(self, session, world, make_claim):
        claim = await make_claim(world, status=ClaimStatus.PENDING_INFO)
        with pytest.raises(BadRequestError, match="reprocess_description"):
            await ClaimsService(session).update_claim(
                world.claims_employee.id,
                claim.id,
                {"status": ClaimStatus.SUBMITTED, "reprocess_date": date(2025, 5, 2)},
            )

        count = (await session.execute(select(func.count()).select_from(ClaimReprocess))).scalar_one()
        assert count == 0

    async def test_reprocess_fields_outside_resubmission(self, session, world, make_claim):
        claim = await make_claim(world, status=ClaimStatus.PENDING_INFO)
        with pytest.raises(BadRequestError, match="reprocess_date"):
            await ClaimsService(session).update_claim(
                world.claims_employee.id, claim.id, {"reprocess_date": date(2025, 5, 2)}
            )


# =============================================================================
# Reads and Scoping
# =============================================================================


class TestClaimScoping:
    async def test_list_scoped_per_role(self, session, world, make_claim):
        own = await make_claim(world)
        colleague = await make_claim(world, affiliate_id=world.colleague.id, patient_id=world.colleague.id)
        foreign = await make_claim(
            world, client_id=world.globex.id, affiliate_id=world.outsider.id, patient_id=world.outsider.id
        )
        service = ClaimsService(session)

        broker = await service.list_claims(world.claims_employee.id)
        assert broker.total == 3

        client_admin = await service.list_claims(world.client_admin.id)
        assert {item.id for item in client_admin.items} == {own.id, colleague.id}

        affiliate = await service.list_claims(world.affiliate_user.id, client_id=world.globex.id)
        assert [item.id for item in affiliate.items] == [own.id]

        filtered = await service.list_claims(world.super_admin.id, client_id=world.globex.id)
        assert [item.id for item in filtered.items] == [foreign.id]

    async def test_client_admin_filter_outside_grants(self, session, world):
        with pytest.raises(PermissionDeniedError):
            await ClaimsService(session).list_claims(world.client_admin.id, client_id=world.globex.id)

    async def test_list_search_and_status(self, session, world, make_claim):
        await make_claim(world, patient_id=world.dependent.id, status=ClaimStatus.SUBMITTED)
        await make_claim(world, affiliate_id=world.colleague.id, patient_id=world.colleague.id)
        service = ClaimsService(session)

        by_name = await service.list_claims(world.claims_employee.id, search="sofia")
        assert by_name.total == 1
        assert by_name.items[0].patient_name == "Sofia Perez"

        by_status = await service.list_claims(world.claims_employee.id, status=ClaimStatus.DRAFT)
        assert by_status.total == 1
        assert by_status.items[0].affiliate_name == "Luis Mora"

    async def test_list_pagination(self, session, world, make_claim):
        for _ in range(3):
            await make_claim(world)
        page = await ClaimsService(session).list_claims(world.claims_employee.id, skip=1, limit=1)
        assert page.total == 3
        assert len(page.items) == 1
        assert (page.skip, page.limit) == (1, 1)

    async def test_out_of_scope_detail_looks_missing(self, session, world, make_claim):
        foreign = await make_claim(
            world, client_id=world.globex.id, affiliate_id=world.outsider.id, patient_id=world.outsider.id
        )
        colleague = await make_claim(world, affiliate_id=world.colleague.id, patient_id=world.colleague.id)
        service = ClaimsService(session)

        with pytest.raises(NotFoundError):
            await service.get_claim_detail(world.client_admin.id, foreign.id)
        with pytest.raises(NotFoundError):
            await service.get_claim_detail(world.affiliate_user.id, colleague.id)

        visible = await service.get_claim_detail(world.client_admin.id, colleague.id)
        assert visible.affiliate.name == "Luis Mora"


# =============================================================================
# Claim Invoices and History
# =============================================================================


class TestClaimInvoices:
    async def test_invoice_lifecycle(self, session, world, make_claim):
        claim = await make_claim(world)
        service = ClaimsService(session)

        invoice = await service.add_claim_invoice(
            world.claims_employee.id,
            claim.id,
            ClaimInvoiceCreate(invoice_number="F-001", provider_name="Clinica Norte", amount_submitted=Decimal("60")),
        )
        await service.add_claim_invoice(
            world.claims_employee.id,
            claim.id,
            ClaimInvoiceCreate(invoice_number="F-002", provider_name="Farmacia Sur", amount_submitted=Decimal("15.50")),
        )

        detail = await service.get_claim_detail(world.claims_employee.id, claim.id)
        assert detail.invoices_total == Decimal("75.50")

        edited = await service.update_claim_invoice(
            world.claims_employee.id, claim.id, invoice.id, {"amount_submitted": Decimal("65")}
        )
        assert edited.amount_submitted == Decimal("65")

        await service.remove_claim_invoice(world.claims_employee.id, claim.id, invoice.id)
        detail = await service.get_claim_detail(world.claims_employee.id, claim.id)
        assert [i.invoice_number for i in detail.invoices] == ["F-002"]

    async def test_terminal_claim_rejects_invoices(self, session, world, make_claim):
        claim = await make_claim(world, status=ClaimStatus.RETURNED)
        with pytest.raises(PermissionDeniedError, match="RETURNED"):
            await ClaimsService(session).add_claim_invoice(
                world.super_admin.id,
                claim.id,
                ClaimInvoiceCreate(invoice_number="F-9", provider_name="X", amount_submitted=Decimal("1")),
            )

    async def test_invoice_of_another_claim(self, session, world, make_claim):
        first = await make_claim(world)
        second = await make_claim(world)
        service = ClaimsService(session)
        invoice = await service.add_claim_invoice(
            world.claims_employee.id,
            first.id,
            ClaimInvoiceCreate(invoice_number="F-1", provider_name="X", amount_submitted=Decimal("1")),
        )
        with pytest.raises(NotFoundError):
            await service.remove_claim_invoice(world.claims_employee.id, second.id, invoice.id)

    async def test_only_claim_managers(self, session, world, make_claim):
        claim = await make_claim(world)
        with pytest.raises(PermissionDeniedError):
            await ClaimsService(session).add_claim_invoice(
                world.client_admin.id,
                claim.id,
                ClaimInvoiceCreate(invoice_number="F-1", provider_name="X", amount_submitted=Decimal("1")),
            )


class TestClaimHistory:
    async def test_history_includes_invoice_events_newest_first(self, session, world, make_claim):
        claim = await make_claim(world, **_intake(care_type=CareType.MATERNITY))
        other = await make_claim(world)
        service = ClaimsService(session)

        await service.add_claim_invoice(
            world.claims_employee.id,
            claim.id,
            ClaimInvoiceCreate(invoice_number="F-1", provider_name="X", amount_submitted=Decimal("10")),
        )
        await service.add_claim_invoice(
            world.claims_employee.id,
            other.id,
            ClaimInvoiceCreate(invoice_number="F-2", provider_name="Y", amount_submitted=Decimal("10")),
        )
        await service.update_claim(world.claims_employee.id, claim.id, {"status": ClaimStatus.VALIDATION})

        history = await service.get_claim_audit_logs(world.claims_employee.id, claim.id)

        assert history.total == 2
        assert [entry.action for entry in history.items] == [
            AuditAction.CLAIM_UPDATED,
            AuditAction.CLAIM_INVOICE_ADDED,
        ]
        assert history.items[0].user_name == "Claims"
        assert history.items[1].changes["claim_id"] == str(claim.id)

    async def test_history_scoped_like_detail(self, session, world, make_claim):
        foreign = await make_claim(
            world, client_id=world.globex.id, affiliate_id=world.outsider.id, patient_id=world.outsider.id
        )
        with pytest.raises(NotFoundError):
            await ClaimsService(session).get_claim_audit_logs(world.client_admin.id, foreign.id)
