"""
Policies Service.

Provides:
- Policy registration by broker employees
- Role-scoped listing and detail projection
- The policy edit flow, driven by the policy lifecycle blueprint
- Policy membership of affiliates (add, remove with dependents, list)
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.enums import AffiliateType, AuditAction, AuditResourceType
from src.core.roles import BROKER_EMPLOYEES
from src.models.affiliate import Affiliate
from src.models.client import Client, Insurer
from src.models.policy import Policy, PolicyAffiliate
from src.schemas.affiliate import (
    PolicyAffiliateAdd,
    PolicyAffiliateListResponse,
    PolicyAffiliateRemovalResponse,
    PolicyAffiliateRemove,
    PolicyAffiliateResponse,
)
from src.schemas.common import EntityRef, UserRef
from src.schemas.policy import (
    PolicyCreate,
    PolicyDetailResponse,
    PolicyListItem,
    PolicyListResponse,
)
from src.services.audit_service import AuditService, column_values
from src.services.lifecycle import merge_state, plan_update, status_name
from src.services.policy_lifecycle import (
    POLICY_LIFECYCLE_BLUEPRINT,
    get_policy_lifecycle_validator,
)
from src.services.user_context import UserContext, require_user_context
from src.utils.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    is_unique_violation,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

POLICY_NOT_FOUND = "Policy not found"


def build_policy_detail(policy: Policy) -> PolicyDetailResponse:
    """Canonical detail projection of a policy."""
    updated_by = policy.updated_by
    return PolicyDetailResponse(
        id=policy.id,
        policy_number=policy.policy_number,
        status=policy.status,
        status_label=POLICY_LIFECYCLE_BLUEPRINT.label_for(policy.status),
        is_terminal=POLICY_LIFECYCLE_BLUEPRINT.is_terminal_state(policy.status),
        client=EntityRef(id=policy.client.id, name=policy.client.name),
        insurer=EntityRef(id=policy.insurer.id, name=policy.insurer.name),
        type=policy.type,
        amb_copay=policy.amb_copay,
        hosp_copay=policy.hosp_copay,
        maternity=policy.maternity,
        t_premium=policy.t_premium,
        tplus1_premium=policy.tplus1_premium,
        tplusf_premium=policy.tplusf_premium,
        tax_rate=policy.tax_rate,
        additional_costs=policy.additional_costs,
        start_date=policy.start_date,
        end_date=policy.end_date,
        is_active=policy.is_active,
        updated_by=(
            UserRef(id=updated_by.id, name=updated_by.display_name, email=updated_by.email)
            if updated_by
            else None
        ),
        created_at=policy.created_at,
        updated_at=policy.updated_at,
    )


def build_membership(member: PolicyAffiliate) -> PolicyAffiliateResponse:
    affiliate = member.affiliate
    return PolicyAffiliateResponse(
        policy_id=member.policy_id,
        affiliate=EntityRef(id=affiliate.id, name=affiliate.full_name),
        affiliate_type=affiliate.affiliate_type,
        primary_affiliate_id=affiliate.primary_affiliate_id,
        added_at=member.added_at,
        removed_at=member.removed_at,
        is_active=member.is_active,
    )


class PoliciesService:
    """Service for policy management operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.validator = get_policy_lifecycle_validator()
        self.audit = AuditService(session)

    def _require_viewer(self, context: UserContext) -> None:
        if not (context.is_broker_employee or context.is_client_admin):
            logger.warning(f"User {context.user_id} ({context.role_name}) denied policy access")
            raise PermissionDeniedError("Role cannot view policies")

    async def _check_parties(self, client_id: Optional[UUID], insurer_id: Optional[UUID]) -> None:
        """Referenced client and insurer must exist and be active."""
        if client_id is not None:
            client = await self.session.get(Client, client_id)
            if client is None:
                raise NotFoundError("Client not found")
            if not client.is_active:
                raise BadRequestError("Client is inactive")
        if insurer_id is not None:
            insurer = await self.session.get(Insurer, insurer_id)
            if insurer is None:
                raise NotFoundError("Insurer not found")
            if not insurer.is_active:
                raise BadRequestError("Insurer is inactive")

    async def _policy_number_taken(self, policy_number: str, exclude_id: Optional[UUID] = None) -> bool:
        query = select(Policy.id).where(Policy.policy_number == policy_number)
        if exclude_id is not None:
            query = query.where(Policy.id != exclude_id)
        return (await self.session.execute(query)).first() is not None

    async def _load_detail(self, policy_id: UUID) -> PolicyDetailResponse:
        result = await self.session.execute(
            select(Policy)
            .options(
                selectinload(Policy.client),
                selectinload(Policy.insurer),
                selectinload(Policy.updated_by),
            )
            .where(Policy.id == policy_id)
            .execution_options(populate_existing=True)
        )
        policy = result.scalar_one_or_none()
        if policy is None:
            raise NotFoundError(POLICY_NOT_FOUND)
        return build_policy_detail(policy)

    # =========================================================================
    # Create
    # =========================================================================

    async def create_policy(self, user_id: UUID, data: PolicyCreate) -> PolicyDetailResponse:
        """
        Register a policy in the blueprint's initial status.

        Raises:
            PermissionDeniedError: Not a broker employee
            ConflictError: Policy number already registered
            NotFoundError: Client or insurer missing
            BadRequestError: Inactive client/insurer or invalid validity dates
        """
        context = await require_user_context(self.session, user_id)
        if context.role not in BROKER_EMPLOYEES:
            logger.warning(f"User {user_id} ({context.role_name}) tried to create a policy")
            raise PermissionDeniedError("Only broker employees can create policies")

        if await self._policy_number_taken(data.policy_number):
            raise ConflictError(f"Policy number {data.policy_number} already exists")

        await self._check_parties(data.client_id, data.insurer_id)
        if data.end_date <= data.start_date:
            raise BadRequestError("end_date must be after start_date")

        policy = Policy(
            status=POLICY_LIFECYCLE_BLUEPRINT.initial_status,
            updated_by_id=user_id,
            **data.model_dump(),
        )
        self.session.add(policy)

        try:
            await self.session.flush()
            self.audit.record(
                action=AuditAction.POLICY_CREATED,
                resource_type=AuditResourceType.POLICY,
                resource_id=policy.id,
                user_id=user_id,
                client_id=policy.client_id,
                after=column_values(policy),
                metadata={"role": context.role_name},
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"Policy number {data.policy_number} already exists") from e

        logger.info(f"Created policy {policy.policy_number} (ID: {policy.id}) by user {user_id}")
        return await self._load_detail(policy.id)

    # =========================================================================
    # Read
    # =========================================================================

    async def get_policy_detail(self, user_id: UUID, policy_id: UUID) -> PolicyDetailResponse:
        """Detail projection of a policy within the user's scope."""
        context = await require_user_context(self.session, user_id)
        self._require_viewer(context)

        policy = await self.session.get(Policy, policy_id)
        if policy is None or not context.can_access_client(policy.client_id):
            raise NotFoundError(POLICY_NOT_FOUND)
        return await self._load_detail(policy_id)

    async def list_policies(
        self,
        user_id: UUID,
        status: Optional[str] = None,
        client_id: Optional[UUID] = None,
        insurer_id: Optional[UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> PolicyListResponse:
        """List policies visible to the user, newest first."""
        context = await require_user_context(self.session, user_id)
        self._require_viewer(context)

        query = select(Policy)
        if context.is_client_admin:
            if client_id is not None and client_id not in context.accessible_client_ids:
                logger.warning(f"User {user_id} filtered policies by inaccessible client {client_id}")
                raise PermissionDeniedError("No access to this client")
            if not context.accessible_client_ids:
                return PolicyListResponse(items=[], total=0, skip=skip, limit=limit)
            query = query.where(Policy.client_id.in_(context.accessible_client_ids))

        if client_id is not None:
            query = query.where(Policy.client_id == client_id)
        if insurer_id is not None:
            query = query.where(Policy.insurer_id == insurer_id)
        if status:
            query = query.where(Policy.status == status)
        if search:
            query = query.where(Policy.policy_number.ilike(f"%{search}%"))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(
            query.options(selectinload(Policy.client), selectinload(Policy.insurer))
            .order_by(Policy.created_at.desc(), Policy.policy_number)
            .offset(skip)
            .limit(limit)
        )
        items = [
            PolicyListItem(
                id=policy.id,
                policy_number=policy.policy_number,
                status=policy.status,
                status_label=POLICY_LIFECYCLE_BLUEPRINT.label_for(policy.status),
                type=policy.type,
                client_name=policy.client.name,
                insurer_name=policy.insurer.name,
                start_date=policy.start_date,
                end_date=policy.end_date,
                created_at=policy.created_at,
            )
            for policy in result.scalars().all()
        ]
        return PolicyListResponse(items=items, total=total, skip=skip, limit=limit)

    # =========================================================================
    # Update
    # =========================================================================

    async def update_policy(
        self,
        user_id: UUID,
        policy_id: UUID,
        updates: dict[str, Any],
    ) -> PolicyDetailResponse:
        """
        Edit a policy and optionally move it to another status.

        Raises:
            AuthenticationError: Unknown or inactive user
            NotFoundError: Policy, client or insurer does not exist
            PermissionDeniedError: Role may not edit the policy in its status
            BadRequestError: Forbidden fields, illegal transition, unmet
                requirements or invalid validity dates
            ConflictError: Policy number already in use
        """
        context = await require_user_context(self.session, user_id)

        policy = await self.session.get(Policy, policy_id)
        if policy is None:
            raise NotFoundError(POLICY_NOT_FOUND)

        before = column_values(policy)
        try:
            plan = plan_update(self.validator, context.role_name, before, updates)
        except PermissionDeniedError:
            logger.warning(
                f"User {user_id} ({context.role_name}) cannot edit policy {policy_id} "
                f"in status {status_name(policy.status)}"
            )
            raise

        write_set = plan.write_set
        await self._check_parties(write_set.get("client_id"), write_set.get("insurer_id"))

        new_number = write_set.get("policy_number")
        if new_number and new_number != policy.policy_number:
            if await self._policy_number_taken(new_number, exclude_id=policy.id):
                raise ConflictError(f"Policy number {new_number} already exists")

        start_date, end_date = plan.merged.get("start_date"), plan.merged.get("end_date")
        if start_date and end_date and end_date <= start_date:
            raise BadRequestError("end_date must be after start_date")

        now = datetime.now(timezone.utc)
        for name, value in write_set.items():
            setattr(policy, name, value)
        policy.updated_by_id = user_id
        policy.updated_at = now

        self.audit.record(
            action=AuditAction.POLICY_UPDATED,
            resource_type=AuditResourceType.POLICY,
            resource_id=policy.id,
            user_id=user_id,
            client_id=policy.client_id,
            before=before,
            after=merge_state(before, {**write_set, "updated_by_id": user_id, "updated_at": now}),
            metadata={"role": context.role_name, "transition": plan.transition_metadata()},
        )

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if is_unique_violation(e):
                raise ConflictError(
                    f"Policy number {plan.merged.get('policy_number')} already exists"
                ) from e
            raise ConflictError("Policy update violates a data constraint") from e

        if plan.is_transition:
            logger.info(
                f"Policy {policy.policy_number} moved {status_name(plan.from_status)} -> "
                f"{status_name(plan.to_status)} by user {user_id}"
            )
        else:
            logger.info(f"Policy {policy.policy_number} updated by user {user_id}")

        return await self._load_detail(policy_id)

    # =========================================================================
    # Members
    # =========================================================================

    async def _get_policy_for_members(self, context: UserContext, policy_id: UUID) -> Policy:
        policy = await self.session.get(Policy, policy_id)
        if policy is None or not context.can_access_client(policy.client_id):
            raise NotFoundError(POLICY_NOT_FOUND)
        return policy

    def _require_member_manager(self, context: UserContext, action: str) -> None:
        if context.role not in BROKER_EMPLOYEES:
            logger.warning(f"User {context.user_id} ({context.role_name}) denied: {action} policy members")
            raise PermissionDeniedError(f"Only broker employees can {action} policy members")

    async def _membership(self, policy_id: UUID, affiliate_id: UUID) -> Optional[PolicyAffiliate]:
        result = await self.session.execute(
            select(PolicyAffiliate)
            .options(selectinload(PolicyAffiliate.affiliate))
            .where(PolicyAffiliate.policy_id == policy_id, PolicyAffiliate.affiliate_id == affiliate_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_policy_affiliates(
        self,
        user_id: UUID,
        policy_id: UUID,
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> PolicyAffiliateListResponse:
        """Members of a policy by family: last name, owners first, first name."""
        context = await require_user_context(self.session, user_id)
        self._require_viewer(context)
        await self._get_policy_for_members(context, policy_id)

        query = (
            select(PolicyAffiliate)
            .join(Affiliate, PolicyAffiliate.affiliate_id == Affiliate.id)
            .where(PolicyAffiliate.policy_id == policy_id)
        )
        if is_active is not None:
            query = query.where(PolicyAffiliate.is_active == is_active)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(
            query.options(selectinload(PolicyAffiliate.affiliate))
            .order_by(Affiliate.last_name, Affiliate.affiliate_type.desc(), Affiliate.first_name)
            .offset(skip)
            .limit(limit)
        )
        items = [build_membership(member) for member in result.scalars().all()]
        return PolicyAffiliateListResponse(items=items, total=total, skip=skip, limit=limit)

    async def add_policy_affiliate(
        self,
        user_id: UUID,
        policy_id: UUID,
        data: PolicyAffiliateAdd,
    ) -> PolicyAffiliateResponse:
        """
        Put an affiliate of the policy's client on the policy.

        A previously removed member is reactivated with the new start date.

        Raises:
            PermissionDeniedError: Not a broker employee
            NotFoundError: Policy or affiliate missing
            BadRequestError: Inactive policy or affiliate, or another client's affiliate
            ConflictError: Affiliate already an active member
        """
        context = await require_user_context(self.session, user_id)
        self._require_member_manager(context, "add")

        policy = await self._get_policy_for_members(context, policy_id)
        if not policy.is_active:
            raise BadRequestError("Policy is inactive")

        affiliate = await self.session.get(Affiliate, data.affiliate_id)
        if affiliate is None:
            raise NotFoundError("Affiliate not found")
        if affiliate.client_id != policy.client_id:
            raise BadRequestError("Affiliate belongs to a different client than the policy")
        if not affiliate.is_active:
            raise BadRequestError("Affiliate is inactive")

        membership = await self._membership(policy_id, affiliate.id)
        if membership is not None and membership.is_active:
            raise ConflictError(f"{affiliate.full_name} is already on policy {policy.policy_number}")

        before = column_values(membership) if membership is not None else None
        if membership is None:
            membership = PolicyAffiliate(policy_id=policy_id, affiliate_id=affiliate.id, added_at=data.added_at)
            self.session.add(membership)
        else:
            membership.added_at = data.added_at
            membership.removed_at = None
            membership.is_active = True
            membership.updated_at = datetime.now(timezone.utc)

        try:
            await self.session.flush()
            self.audit.record(
                action=AuditAction.POLICY_AFFILIATE_ADDED,
                resource_type=AuditResourceType.POLICY_AFFILIATE,
                resource_id=membership.id,
                user_id=user_id,
                client_id=policy.client_id,
                before=before,
                after=column_values(membership),
                metadata={
                    "role": context.role_name,
                    "policy_id": str(policy_id),
                    "affiliate_id": str(affiliate.id),
                    "reactivated": before is not None,
                },
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if is_unique_violation(e):
                raise ConflictError("Affiliate is already on this policy") from e
            raise ConflictError("Policy membership violates a data constraint") from e

        logger.info(f"Affiliate {data.affiliate_id} added to policy {policy_id} by user {user_id}")
        return build_membership(await self._membership(policy_id, data.affiliate_id))

    async def remove_policy_affiliate(
        self,
        user_id: UUID,
        policy_id: UUID,
        affiliate_id: UUID,
        data: PolicyAffiliateRemove,
    ) -> PolicyAffiliateRemovalResponse:
        """
        Take an affiliate off a policy as of ``removed_at``.

        Removing an owner also removes their active dependents on the same
        policy with the same date.

        Raises:
            PermissionDeniedError: Not a broker employee
            NotFoundError: Policy missing or affiliate not on it
            BadRequestError: Already removed, or removal before the start date
        """
        context = await require_user_context(self.session, user_id)
        self._require_member_manager(context, "remove")
        policy = await self._get_policy_for_members(context, policy_id)

        membership = await self._membership(policy_id, affiliate_id)
        if membership is None:
            raise NotFoundError("Affiliate is not on this policy")
        if not membership.is_active:
            raise BadRequestError("Affiliate was already removed from this policy")
        if data.removed_at < membership.added_at:
            raise BadRequestError("removed_at cannot be before added_at")

        removed = [membership]
        if membership.affiliate.affiliate_type == AffiliateType.OWNER:
            result = await self.session.execute(
                select(PolicyAffiliate)
                .join(Affiliate, PolicyAffiliate.affiliate_id == Affiliate.id)
                .options(selectinload(PolicyAffiliate.affiliate))
                .where(
                    PolicyAffiliate.policy_id == policy_id,
                    PolicyAffiliate.is_active.is_(True),
                    Affiliate.primary_affiliate_id == affiliate_id,
                )
            )
            removed.extend(result.scalars().all())

        now = datetime.now(timezone.utc)
        for member in removed:
            before = column_values(member)
            member.removed_at = data.removed_at
            member.is_active = False
            member.updated_at = now
            self.audit.record(
                action=AuditAction.POLICY_AFFILIATE_REMOVED,
                resource_type=AuditResourceType.POLICY_AFFILIATE,
                resource_id=member.id,
                user_id=user_id,
                client_id=policy.client_id,
                before=before,
                after=column_values(member),
                metadata={
                    "role": context.role_name,
                    "policy_id": str(policy_id),
                    "affiliate_id": str(member.affiliate_id),
                    "cascaded_from": str(affiliate_id) if member is not membership else None,
                },
            )
        await self.session.commit()

        dependents = [EntityRef(id=m.affiliate.id, name=m.affiliate.full_name) for m in removed[1:]]
        logger.info(
            f"Affiliate {affiliate_id} removed from policy {policy_id} by user {user_id}"
            + (f" with {len(dependents)} dependent(s)" if dependents else "")
        )
        return PolicyAffiliateRemovalResponse(removed=build_membership(membership), cascaded_dependents=dependents)


async def get_policies_service(session: AsyncSession) -> PoliciesService:
    """Get policies service instance."""
    return PoliciesService(session)
