"""
Integration Tests for the Policies Service
Registration, scoping, the policy edit flow and policy members
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from src.core.enums import AuditAction, PolicyStatus
from src.models import AuditLog
from src.schemas.affiliate import PolicyAffiliateAdd, PolicyAffiliateRemove
from src.schemas.policy import PolicyCreate
from src.services.policies_service import PoliciesService
from src.utils.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]


FULL_TERMS = {
    "type": "Salud Corporativo",
    "amb_copay": Decimal("10.00"),
    "hosp_copay": Decimal("250.00"),
    "maternity": Decimal("1500.00"),
    "t_premium": Decimal("45.00"),
    "tplus1_premium": Decimal("80.00"),
    "tplusf_premium": Decimal("120.00"),
    "tax_rate": Decimal("0.12"),
    "additional_costs": Decimal("0"),
}


def _create(world, number: str = "POL-100", **overrides) -> PolicyCreate:
    values = {
        "policy_number": number,
        "client_id": world.acme.id,
        "insurer_id": world.insurer.id,
        "start_date": date(2025, 1, 1),
        "end_date": date(2025, 12, 31),
    }
    values.update(overrides)
    return PolicyCreate(**values)


class TestCreatePolicy:
    async def test_creates_pending_policy(self, session, world):
        detail = await PoliciesService(session).create_policy(
            world.operations_employee.id, _create(world, type="Salud")
        )

        assert detail.status == PolicyStatus.PENDING
        assert detail.status_label == "Pendiente"
        assert detail.is_terminal is False
        assert detail.client.name == "Acme Corp"
        assert detail.insurer.name == "Seguros Andinos"
        assert detail.updated_by.id == world.operations_employee.id

        entry = (
            await session.execute(select(AuditLog).where(AuditLog.action == AuditAction.POLICY_CREATED))
        ).scalar_one()
        assert entry.resource_id == detail.id
        assert entry.changes["after"]["policy_number"] == "POL-100"

    async def test_duplicate_number(self, session, world, make_policy):
        await make_policy(world.acme, world.insurer, number="POL-100")
        with pytest.raises(ConflictError) as exc_info:
            await PoliciesService(session).create_policy(world.super_admin.id, _create(world))
        assert exc_info.value.status_code == 409

    @pytest.mark.parametrize("user_attr", ["client_admin", "affiliate_user"])
    async def test_only_broker_employees(self, session, world, user_attr):
        with pytest.raises(PermissionDeniedError):
            await PoliciesService(session).create_policy(getattr(world, user_attr).id, _create(world))

    async def test_missing_insurer(self, session, world):
        with pytest.raises(NotFoundError, match="Insurer"):
            await PoliciesService(session).create_policy(
                world.super_admin.id, _create(world, insurer_id=uuid4())
            )

    async def test_inactive_client(self, session, world):
        world.globex.is_active = False
        await session.commit()
        with pytest.raises(BadRequestError, match="inactive"):
            await PoliciesService(session).create_policy(
                world.super_admin.id, _create(world, client_id=world.globex.id)
            )


class TestUpdatePolicy:
    async def test_activation_requires_all_terms(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer, type="Salud")
        with pytest.raises(BadRequestError) as exc_info:
            await PoliciesService(session).update_policy(
                world.operations_employee.id, policy.id, {"status": PolicyStatus.ACTIVE}
            )
        missing = exc_info.value.detail.split(": ", 1)[1].split(", ")
        assert "amb_copay" in missing
        assert "type" not in missing

    async def test_activation_with_terms_in_same_request(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        service = PoliciesService(session)

        active = await service.update_policy(
            world.operations_employee.id,
            policy.id,
            {**FULL_TERMS, "status": PolicyStatus.ACTIVE},
        )

        assert active.status == PolicyStatus.ACTIVE
        assert active.status_label == "Activa"
        assert active.tax_rate == Decimal("0.12")
        assert await service.get_policy_detail(world.super_admin.id, policy.id) == active

    async def test_edit_result_matches_detail(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        service = PoliciesService(session)

        edited = await service.update_policy(
            world.operations_employee.id, policy.id, {"type": "Dental", "tax_rate": Decimal("0.15")}
        )

        assert edited == await service.get_policy_detail(world.operations_employee.id, policy.id)
        assert edited.status == PolicyStatus.PENDING

    async def test_active_policy_belongs_to_super_admin(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer, status=PolicyStatus.ACTIVE, **FULL_TERMS)
        service = PoliciesService(session)

        with pytest.raises(PermissionDeniedError, match="ACTIVE"):
            await service.update_policy(world.operations_employee.id, policy.id, {"type": "Otro"})

        updated = await service.update_policy(world.super_admin.id, policy.id, {"type": "Otro"})
        assert updated.type == "Otro"

    async def test_cancelled_policy_cannot_reactivate(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer, status=PolicyStatus.CANCELLED, **FULL_TERMS)
        with pytest.raises(BadRequestError, match="CANCELLED to ACTIVE"):
            await PoliciesService(session).update_policy(
                world.super_admin.id, policy.id, {"status": PolicyStatus.ACTIVE}
            )

    async def test_expired_policy_renewal(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer, status=PolicyStatus.EXPIRED, **FULL_TERMS)
        renewed = await PoliciesService(session).update_policy(
            world.super_admin.id,
            policy.id,
            {"status": PolicyStatus.ACTIVE, "end_date": date(2026, 12, 31)},
        )
        assert renewed.status == PolicyStatus.ACTIVE
        assert renewed.end_date == date(2026, 12, 31)

    async def test_renumber_to_taken_number(self, session, world, make_policy):
        await make_policy(world.acme, world.insurer, number="POL-A")
        policy = await make_policy(world.acme, world.insurer, number="POL-B")
        with pytest.raises(ConflictError, match="POL-A"):
            await PoliciesService(session).update_policy(
                world.operations_employee.id, policy.id, {"policy_number": "POL-A"}
            )

    async def test_validity_dates_checked_against_stored_values(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        with pytest.raises(BadRequestError, match="end_date"):
            await PoliciesService(session).update_policy(
                world.operations_employee.id, policy.id, {"end_date": date(2024, 6, 30)}
            )

    async def test_moving_to_unknown_insurer(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        with pytest.raises(NotFoundError):
            await PoliciesService(session).update_policy(
                world.operations_employee.id, policy.id, {"insurer_id": uuid4()}
            )

    async def test_update_audited(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        await PoliciesService(session).update_policy(
            world.operations_employee.id, policy.id, {"status": PolicyStatus.CANCELLED}
        )
        entry = (
            await session.execute(select(AuditLog).where(AuditLog.action == AuditAction.POLICY_UPDATED))
        ).scalar_one()
        assert entry.details["transition"] == {"from": "PENDING", "to": "CANCELLED"}
        assert entry.changes["after"]["status"] == "CANCELLED"


class TestPolicyScoping:
    async def test_client_admin_sees_granted_clients(self, session, world, make_policy):
        own = await make_policy(world.acme, world.insurer, number="ACM-1")
        foreign = await make_policy(world.globex, world.insurer, number="GLX-1")
        service = PoliciesService(session)

        listing = await service.list_policies(world.client_admin.id)
        assert [item.id for item in listing.items] == [own.id]

        with pytest.raises(NotFoundError):
            await service.get_policy_detail(world.client_admin.id, foreign.id)
        with pytest.raises(PermissionDeniedError):
            await service.list_policies(world.client_admin.id, client_id=world.globex.id)

    async def test_affiliates_cannot_view(self, session, world):
        with pytest.raises(PermissionDeniedError):
            await PoliciesService(session).list_policies(world.affiliate_user.id)

    async def test_filters(self, session, world, make_policy):
        await make_policy(world.acme, world.insurer, number="ACM-1")
        await make_policy(world.acme, world.other_insurer, number="ACM-2", status=PolicyStatus.ACTIVE)
        await make_policy(world.globex, world.insurer, number="GLX-1")
        service = PoliciesService(session)

        by_insurer = await service.list_policies(world.super_admin.id, insurer_id=world.other_insurer.id)
        assert [item.policy_number for item in by_insurer.items] == ["ACM-2"]

        by_status = await service.list_policies(world.super_admin.id, status=PolicyStatus.PENDING)
        assert by_status.total == 2

        by_search = await service.list_policies(world.super_admin.id, search="glx")
        assert [item.insurer_name for item in by_search.items] == ["Seguros Andinos"]


class TestPolicyMembers:
    async def _add(self, service, world, policy, affiliate, added_at=date(2025, 2, 1)):
        return await service.add_policy_affiliate(
            world.operations_employee.id,
            policy.id,
            PolicyAffiliateAdd(affiliate_id=affiliate.id, added_at=added_at),
        )

    async def _remove(self, service, world, policy, affiliate, removed_at):
        return await service.remove_policy_affiliate(
            world.super_admin.id, policy.id, affiliate.id, PolicyAffiliateRemove(removed_at=removed_at)
        )

    async def test_add_and_list(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        service = PoliciesService(session)

        member = await self._add(service, world, policy, world.owner)
        await self._add(service, world, policy, world.dependent)
        await self._add(service, world, policy, world.colleague)

        assert member.affiliate.name == "Ana Perez"
        assert member.is_active is True
        assert member.removed_at is None

        listing = await service.list_policy_affiliates(world.client_admin.id, policy.id)
        assert [item.affiliate.name for item in listing.items] == ["Luis Mora", "Ana Perez", "Sofia Perez"]

        entries = (
            await session.execute(
                select(func.count()).select_from(AuditLog).where(
                    AuditLog.action == AuditAction.POLICY_AFFILIATE_ADDED
                )
            )
        ).scalar_one()
        assert entries == 3

    async def test_affiliate_of_another_client(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        with pytest.raises(BadRequestError, match="different client"):
            await self._add(PoliciesService(session), world, policy, world.outsider)

    async def test_already_on_policy(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        service = PoliciesService(session)
        await self._add(service, world, policy, world.owner)

        with pytest.raises(ConflictError):
            await self._add(service, world, policy, world.owner)

    async def test_inactive_policy(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer, is_active=False)
        with pytest.raises(BadRequestError, match="inactive"):
            await self._add(PoliciesService(session), world, policy, world.owner)

    async def test_removing_owner_removes_dependents(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        service = PoliciesService(session)
        await self._add(service, world, policy, world.owner)
        await self._add(service, world, policy, world.dependent)
        await self._add(service, world, policy, world.colleague)

        result = await self._remove(service, world, policy, world.owner, date(2025, 6, 30))

        assert result.removed.is_active is False
        assert result.removed.removed_at == date(2025, 6, 30)
        assert [ref.id for ref in result.cascaded_dependents] == [world.dependent.id]

        active = await service.list_policy_affiliates(world.super_admin.id, policy.id, is_active=True)
        assert [item.affiliate.id for item in active.items] == [world.colleague.id]

    async def test_readding_reactivates_membership(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        service = PoliciesService(session)
        await self._add(service, world, policy, world.colleague)
        await self._remove(service, world, policy, world.colleague, date(2025, 3, 1))

        member = await self._add(service, world, policy, world.colleague, added_at=date(2025, 4, 1))

        assert member.is_active is True
        assert member.added_at == date(2025, 4, 1)
        assert member.removed_at is None
        listing = await service.list_policy_affiliates(world.super_admin.id, policy.id)
        assert listing.total == 1

    async def test_removal_rules(self, session, world, make_policy):
        policy = await make_policy(world.acme, world.insurer)
        service = PoliciesService(session)
        await self._add(service, world, policy, world.colleague)

        with pytest.raises(NotFoundError, match="not on this policy"):
            await self._remove(service, world, policy, world.owner, date(2025, 3, 1))
        with pytest.raises(BadRequestError, match="before added_at"):
            await self._remove(service, world, policy, world.colleague, date(2025, 1, 15))

        await self._remove(service, world, policy, world.colleague, date(2025, 3, 1))
        with pytest.raises(BadRequestError, match="already removed"):
            await self._remove(service, world, policy, world.colleague, date(2025, 3, 2))

    async def test_member_permissions(self, session, world, make_policy):
        own = await make_policy(world.acme, world.insurer, number="ACM-1")
        foreign = await make_policy(world.globex, world.insurer, number="GLX-1")
        service = PoliciesService(session)

        with pytest.raises(PermissionDeniedError):
            await service.add_policy_affiliate(
                world.client_admin.id,
                own.id,
                PolicyAffiliateAdd(affiliate_id=world.owner.id, added_at=date(2025, 2, 1)),
            )
        with pytest.raises(PermissionDeniedError):
            await service.list_policy_affiliates(world.affiliate_user.id, own.id)
        with pytest.raises(NotFoundError):
            await service.list_policy_affiliates(world.client_admin.id, foreign.id)
