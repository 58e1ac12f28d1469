"""
Claims Service for Reimbursement Claims Management.

Provides:
- Claim creation with affiliate/patient validation and claim numbering
- Role-scoped listing and detail projection
- The claim edit flow, driven by the claim lifecycle blueprint
- Provider invoices attached to a claim
- Claim audit history
- Claim form lookups: affiliates, patients and assignable policies
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from src.core.enums import AffiliateType, AuditAction, AuditResourceType, PolicyStatus
from src.core.roles import ALL_AUTHORIZED_ROLES, SENIOR_CLAIM_MANAGERS
from src.models.affiliate import Affiliate
from src.models.audit import AuditLog
from src.models.claim import Claim, ClaimInvoice, ClaimReprocess
from src.models.client import Client
from src.models.policy import Policy, PolicyAffiliate
from src.models.user import User
from src.schemas.affiliate import AvailableAffiliate, AvailablePatient
from src.schemas.audit import AuditLogEntry, AuditLogListResponse
from src.schemas.claim import (
    ClaimCreate,
    ClaimDetailResponse,
    ClaimInvoiceCreate,
    ClaimInvoiceResponse,
    ClaimListItem,
    ClaimListResponse,
    ClaimReprocessResponse,
    PolicyRef,
)
from src.schemas.common import EntityRef, UserRef
from src.schemas.policy import AvailablePolicy
from src.services.audit_service import AuditService, column_values
from src.services.claim_lifecycle import (
    CLAIM_LIFECYCLE_BLUEPRINT,
    REPROCESS_FIELDS,
    get_claim_lifecycle_validator,
    is_reprocess_transition,
)
from src.services.lifecycle import merge_state, plan_update, status_name
from src.services.user_context import UserContext, require_user_context
from src.utils.errors import BadRequestError, ConflictError, NotFoundError, PermissionDeniedError
from src.utils.logging import get_logger

logger = get_logger(__name__)

CLAIM_NOT_FOUND = "Claim not found"


def _user_ref(user: Optional[User]) -> Optional[UserRef]:
    if user is None:
        return None
    return UserRef(id=user.id, name=user.display_name, email=user.email)


def _claim_load_options() -> list[Any]:
    return [
        selectinload(Claim.client),
        selectinload(Claim.affiliate),
        selectinload(Claim.patient),
        selectinload(Claim.policy),
        selectinload(Claim.created_by),
        selectinload(Claim.updated_by),
        selectinload(Claim.invoices),
        selectinload(Claim.reprocesses),
    ]


def build_claim_detail(claim: Claim) -> ClaimDetailResponse:
    """Canonical detail projection; used by reads and after every edit."""
    invoices = [ClaimInvoiceResponse.model_validate(invoice) for invoice in claim.invoices]
    return ClaimDetailResponse(
        id=claim.id,
        claim_number=claim.claim_number,
        status=claim.status,
        status_label=CLAIM_LIFECYCLE_BLUEPRINT.label_for(claim.status),
        is_terminal=CLAIM_LIFECYCLE_BLUEPRINT.is_terminal_state(claim.status),
        client=EntityRef(id=claim.client.id, name=claim.client.name),
        affiliate=EntityRef(id=claim.affiliate.id, name=claim.affiliate.full_name),
        patient=EntityRef(id=claim.patient.id, name=claim.patient.full_name),
        policy=(
            PolicyRef(id=claim.policy.id, policy_number=claim.policy.policy_number)
            if claim.policy
            else None
        ),
        care_type=claim.care_type,
        description=claim.description,
        diagnosis_code=claim.diagnosis_code,
        diagnosis_description=claim.diagnosis_description,
        amount_submitted=claim.amount_submitted,
        incident_date=claim.incident_date,
        submitted_date=claim.submitted_date,
        business_days=claim.business_days,
        amount_approved=claim.amount_approved,
        amount_denied=claim.amount_denied,
        amount_unprocessed=claim.amount_unprocessed,
        deductible_applied=claim.deductible_applied,
        copay_applied=claim.copay_applied,
        settlement_date=claim.settlement_date,
        settlement_number=claim.settlement_number,
        settlement_notes=claim.settlement_notes,
        invoices=invoices,
        invoices_total=sum((invoice.amount_submitted for invoice in invoices), Decimal("0")),
        reprocesses=[ClaimReprocessResponse.model_validate(r) for r in claim.reprocesses],
        created_by=_user_ref(claim.created_by),
        updated_by=_user_ref(claim.updated_by),
        created_at=claim.created_at,
        updated_at=claim.updated_at,
    )


# =============================================================================
# Claims Service
# =============================================================================


class ClaimsService:
    """
    Service for claims management operations.

    Every public method takes the acting user's id and resolves their
    context first, so an unknown user always fails as unauthenticated.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.validator = get_claim_lifecycle_validator()
        self.audit = AuditService(session)

    # =========================================================================
    # Authorization helpers
    # =========================================================================

    def _in_scope(self, context: UserContext, claim: Claim) -> bool:
        """Whether a scoped role may see this claim."""
        if context.is_broker_employee:
            return True
        if context.is_client_admin:
            return claim.client_id in context.accessible_client_ids
        if context.is_affiliate:
            return context.affiliate_id is not None and claim.affiliate_id == context.affiliate_id
        return False

    async def _get_claim_in_scope(self, context: UserContext, claim_id: UUID) -> Claim:
        claim = await self.session.get(Claim, claim_id)
        if claim is None:
            raise NotFoundError(CLAIM_NOT_FOUND)
        if not self._in_scope(context, claim):
            # Out-of-scope claims look exactly like missing ones
            logger.warning(
                f"Claim {claim_id} outside scope of user {context.user_id} ({context.role_name})"
            )
            raise NotFoundError(CLAIM_NOT_FOUND)
        return claim

    def _require_claim_manager(self, context: UserContext, action: str) -> None:
        if context.role not in SENIOR_CLAIM_MANAGERS:
            logger.warning(f"User {context.user_id} ({context.role_name}) denied: {action}")
            raise PermissionDeniedError(f"Role {context.role_name} cannot {action}")

    # =========================================================================
    # Claim Number Generation
    # =========================================================================

    async def _next_claim_number(self) -> tuple[int, str]:
        """
        Next claim sequence and its number.

        Format: CLM-{YEAR}-{SEQUENCE:06d}
        Example: CLM-2025-000001
        """
        result = await self.session.execute(select(func.max(Claim.claim_sequence)))
        sequence = (result.scalar_one_or_none() or 0) + 1
        year = datetime.now(timezone.utc).year
        return sequence, f"CLM-{year}-{sequence:06d}"

    # =========================================================================
    # Create Operations
    # =========================================================================

    async def create_claim(self, user_id: UUID, data: ClaimCreate) -> ClaimDetailResponse:
        """
        File a new claim in the blueprint's initial status.

        Raises:
            AuthenticationError: Unknown or inactive user
            PermissionDeniedError: Role or client/affiliate scope violation
            NotFoundError: Affiliate or patient does not exist
            BadRequestError: Affiliate/patient mismatch or inactive
            ConflictError: Claim number taken by a concurrent request
        """
        context = await require_user_context(self.session, user_id)

        if context.role not in ALL_AUTHORIZED_ROLES:
            raise PermissionDeniedError("Role cannot create claims")

        if not context.is_broker_employee and not context.can_access_client(data.client_id):
            logger.warning(
                f"User {user_id} ({context.role_name}) tried to file a claim for client {data.client_id}"
            )
            raise PermissionDeniedError("No access to this client")

        if context.is_affiliate and data.affiliate_id != context.affiliate_id:
            logger.warning(f"Affiliate user {user_id} tried to file a claim for {data.affiliate_id}")
            raise PermissionDeniedError("Affiliates can only file claims for themselves")

        affiliate = await self.session.get(Affiliate, data.affiliate_id)
        if affiliate is None:
            raise NotFoundError("Affiliate not found")
        patient = affiliate if data.patient_id == data.affiliate_id else await self.session.get(
            Affiliate, data.patient_id
        )
        if patient is None:
            raise NotFoundError("Patient not found")

        if affiliate.client_id != data.client_id:
            raise BadRequestError("Affiliate does not belong to this client")
        if patient.client_id != data.client_id:
            raise BadRequestError("Patient does not belong to this client")
        if not affiliate.is_active:
            raise BadRequestError("Affiliate is inactive")
        if not patient.is_active:
            raise BadRequestError("Patient is inactive")
        if patient.id != affiliate.id and patient.primary_affiliate_id != affiliate.id:
            raise BadRequestError("Patient must be the affiliate or one of their dependents")

        sequence, claim_number = await self._next_claim_number()
        claim = Claim(
            claim_sequence=sequence,
            claim_number=claim_number,
            status=CLAIM_LIFECYCLE_BLUEPRINT.initial_status,
            client_id=data.client_id,
            affiliate_id=data.affiliate_id,
            patient_id=data.patient_id,
            description=data.description,
            care_type=data.care_type,
            incident_date=data.incident_date,
            amount_submitted=data.amount_submitted,
            created_by_id=user_id,
        )
        self.session.add(claim)

        try:
            await self.session.flush()
            self.audit.record(
                action=AuditAction.CLAIM_CREATED,
                resource_type=AuditResourceType.CLAIM,
                resource_id=claim.id,
                user_id=user_id,
                client_id=claim.client_id,
                after=column_values(claim),
                metadata={"role": context.role_name},
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"Claim number {claim_number} already exists, retry") from e

        logger.info(f"Created claim {claim_number} (ID: {claim.id}) by user {user_id}")
        return await self._load_detail(claim.id)

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def _load_detail(self, claim_id: UUID) -> ClaimDetailResponse:
        result = await self.session.execute(
            select(Claim)
            .options(*_claim_load_options())
            .where(Claim.id == claim_id)
            .execution_options(populate_existing=True)
        )
        claim = result.scalar_one_or_none()
        if claim is None:
            raise NotFoundError(CLAIM_NOT_FOUND)
        return build_claim_detail(claim)

    async def get_claim_detail(self, user_id: UUID, claim_id: UUID) -> ClaimDetailResponse:
        """Detail projection of a claim within the user's scope."""
        context = await require_user_context(self.session, user_id)
        if context.role not in ALL_AUTHORIZED_ROLES:
            raise PermissionDeniedError("Role cannot view claims")
        await self._get_claim_in_scope(context, claim_id)
        return await self._load_detail(claim_id)

    async def list_claims(
        self,
        user_id: UUID,
        status: Optional[str] = None,
        client_id: Optional[UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> ClaimListResponse:
        """
        List claims visible to the user, newest first.

        Scoping:
        - Broker employees: all claims
        - CLIENT_ADMIN: claims of accessible clients
        - AFFILIATE: claims where they are the filing affiliate
        """
        context = await require_user_context(self.session, user_id)
        if context.role not in ALL_AUTHORIZED_ROLES:
            raise PermissionDeniedError("Role cannot view claims")

        empty = ClaimListResponse(items=[], total=0, skip=skip, limit=limit)
        query = select(Claim)

        if context.is_affiliate:
            if context.affiliate_id is None:
                return empty
            query = query.where(
                Claim.affiliate_id == context.affiliate_id,
                Claim.client_id == context.affiliate_client_id,
            )
            # Affiliates only ever see their own client; the filter is ignored
            client_id = None
        elif context.is_client_admin:
            if client_id is not None and client_id not in context.accessible_client_ids:
                logger.warning(f"User {user_id} filtered claims by inaccessible client {client_id}")
                raise PermissionDeniedError("No access to this client")
            if not context.accessible_client_ids:
                return empty
            query = query.where(Claim.client_id.in_(context.accessible_client_ids))

        if client_id is not None:
            query = query.where(Claim.client_id == client_id)
        if status:
            query = query.where(Claim.status == status)
        if search:
            affiliate_alias = aliased(Affiliate)
            patient_alias = aliased(Affiliate)
            term = f"%{search}%"
            query = (
                query.join(affiliate_alias, Claim.affiliate_id == affiliate_alias.id)
                .join(patient_alias, Claim.patient_id == patient_alias.id)
                .where(
                    or_(
                        Claim.claim_number.ilike(term),
                        affiliate_alias.first_name.ilike(term),
                        affiliate_alias.last_name.ilike(term),
                        patient_alias.first_name.ilike(term),
                        patient_alias.last_name.ilike(term),
                    )
                )
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        query = (
            query.options(
                selectinload(Claim.client),
                selectinload(Claim.affiliate),
                selectinload(Claim.patient),
            )
            .order_by(Claim.created_at.desc(), Claim.claim_sequence.desc())
            .offset(skip)
            .limit(limit)
        )
        claims = (await self.session.execute(query)).scalars().all()

        items = [
            ClaimListItem(
                id=claim.id,
                claim_number=claim.claim_number,
                status=claim.status,
                status_label=CLAIM_LIFECYCLE_BLUEPRINT.label_for(claim.status),
                client_name=claim.client.name,
                affiliate_name=claim.affiliate.full_name,
                patient_name=claim.patient.full_name,
                care_type=claim.care_type,
                amount_submitted=claim.amount_submitted,
                amount_approved=claim.amount_approved,
                submitted_date=claim.submitted_date,
                created_at=claim.created_at,
            )
            for claim in claims
        ]
        return ClaimListResponse(items=items, total=total, skip=skip, limit=limit)

    # =========================================================================
    # Update Operations
    # =========================================================================

    async def update_claim(
        self,
        user_id: UUID,
        claim_id: UUID,
        updates: dict[str, Any],
    ) -> ClaimDetailResponse:
        """
        Edit a claim and optionally move it to another status.

        ``updates`` holds only the fields present in the request; an explicit
        None clears a field. Moving PENDING_INFO -> SUBMITTED requires
        ``reprocess_date`` and ``reprocess_description``, which are stored as
        a ClaimReprocess record in the same transaction.

        Raises:
            AuthenticationError: Unknown or inactive user
            NotFoundError: Claim does not exist
            PermissionDeniedError: Role may not edit the claim in its status
            BadRequestError: Forbidden fields, illegal transition, unmet requirements
            ConflictError: The change breaks a database constraint
        """
        context = await require_user_context(self.session, user_id)

        claim = await self.session.get(Claim, claim_id)
        if claim is None:
            raise NotFoundError(CLAIM_NOT_FOUND)

        before = column_values(claim)
        try:
            plan = plan_update(
                self.validator,
                context.role_name,
                before,
                updates,
                side_channel_fields=REPROCESS_FIELDS,
            )
        except PermissionDeniedError:
            logger.warning(
                f"User {user_id} ({context.role_name}) cannot edit claim {claim_id} "
                f"in status {status_name(claim.status)}"
            )
            raise

        policy_id = plan.write_set.get("policy_id")
        if policy_id is not None:
            policy = await self.session.get(Policy, policy_id)
            if policy is None:
                raise NotFoundError("Policy not found")
            if policy.client_id != claim.client_id:
                raise BadRequestError("Policy does not belong to the claim's client")

        now = datetime.now(timezone.utc)
        for name, value in plan.write_set.items():
            setattr(claim, name, value)
        claim.updated_by_id = user_id
        claim.updated_at = now

        if is_reprocess_transition(plan.from_status, plan.to_status):
            self.session.add(
                ClaimReprocess(
                    claim_id=claim.id,
                    reprocess_date=plan.side_channel["reprocess_date"],
                    reprocess_description=plan.side_channel["reprocess_description"],
                    business_days=plan.merged.get("business_days"),
                    created_by_id=user_id,
                )
            )

        self.audit.record(
            action=AuditAction.CLAIM_UPDATED,
            resource_type=AuditResourceType.CLAIM,
            resource_id=claim.id,
            user_id=user_id,
            client_id=claim.client_id,
            before=before,
            after=merge_state(before, {**plan.write_set, "updated_by_id": user_id, "updated_at": now}),
            metadata={"role": context.role_name, "transition": plan.transition_metadata()},
        )

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError("Claim update violates a data constraint") from e

        if plan.is_transition:
            logger.info(
                f"Claim {claim.claim_number} moved {status_name(plan.from_status)} -> "
                f"{status_name(plan.to_status)} by user {user_id}"
            )
        else:
            logger.info(f"Claim {claim.claim_number} updated by user {user_id}")

        return await self._load_detail(claim_id)

    # =========================================================================
    # Claim Invoices
    # =========================================================================

    async def _get_editable_claim(self, context: UserContext, claim_id: UUID, action: str) -> Claim:
        self._require_claim_manager(context, action)
        claim = await self.session.get(Claim, claim_id)
        if claim is None:
            raise NotFoundError(CLAIM_NOT_FOUND)
        if CLAIM_LIFECYCLE_BLUEPRINT.is_terminal_state(claim.status):
            logger.warning(
                f"User {context.user_id} tried to {action} on terminal claim {claim_id} "
                f"({status_name(claim.status)})"
            )
            raise PermissionDeniedError(
                f"Cannot {action} on a claim in status {status_name(claim.status)}"
            )
        return claim

    async def _get_claim_invoice(self, claim: Claim, invoice_id: UUID) -> ClaimInvoice:
        invoice = await self.session.get(ClaimInvoice, invoice_id)
        if invoice is None or invoice.claim_id != claim.id:
            raise NotFoundError("Claim invoice not found")
        return invoice

    async def add_claim_invoice(
        self,
        user_id: UUID,
        claim_id: UUID,
        data: ClaimInvoiceCreate,
    ) -> ClaimInvoiceResponse:
        """Attach a provider invoice to a non-terminal claim."""
        context = await require_user_context(self.session, user_id)
        claim = await self._get_editable_claim(context, claim_id, "add invoices")

        invoice = ClaimInvoice(
            claim_id=claim.id,
            invoice_number=data.invoice_number,
            provider_name=data.provider_name,
            amount_submitted=data.amount_submitted,
            created_by_id=user_id,
        )
        self.session.add(invoice)
        await self.session.flush()

        self.audit.record(
            action=AuditAction.CLAIM_INVOICE_ADDED,
            resource_type=AuditResourceType.CLAIM_INVOICE,
            resource_id=invoice.id,
            user_id=user_id,
            client_id=claim.client_id,
            after=column_values(invoice),
            metadata={"role": context.role_name, "claim_status": status_name(claim.status)},
            claim_id=claim.id,
        )
        await self.session.commit()
        await self.session.refresh(invoice)

        logger.info(f"Invoice {invoice.invoice_number} added to claim {claim.claim_number}")
        return ClaimInvoiceResponse.model_validate(invoice)

    async def update_claim_invoice(
        self,
        user_id: UUID,
        claim_id: UUID,
        invoice_id: UUID,
        updates: dict[str, Any],
    ) -> ClaimInvoiceResponse:
        """Edit a provider invoice of a non-terminal claim."""
        context = await require_user_context(self.session, user_id)
        claim = await self._get_editable_claim(context, claim_id, "edit invoices")
        invoice = await self._get_claim_invoice(claim, invoice_id)

        before = column_values(invoice)
        for name, value in updates.items():
            setattr(invoice, name, value)

        self.audit.record(
            action=AuditAction.CLAIM_INVOICE_UPDATED,
            resource_type=AuditResourceType.CLAIM_INVOICE,
            resource_id=invoice.id,
            user_id=user_id,
            client_id=claim.client_id,
            before=before,
            after=merge_state(before, updates),
            metadata={"role": context.role_name, "claim_status": status_name(claim.status)},
            claim_id=claim.id,
        )
        await self.session.commit()
        await self.session.refresh(invoice)

        logger.info(f"Invoice {invoice.invoice_number} of claim {claim.claim_number} updated")
        return ClaimInvoiceResponse.model_validate(invoice)

    async def remove_claim_invoice(self, user_id: UUID, claim_id: UUID, invoice_id: UUID) -> None:
        """Delete a provider invoice from a non-terminal claim."""
        context = await require_user_context(self.session, user_id)
        claim = await self._get_editable_claim(context, claim_id, "remove invoices")
        invoice = await self._get_claim_invoice(claim, invoice_id)

        self.audit.record(
            action=AuditAction.CLAIM_INVOICE_REMOVED,
            resource_type=AuditResourceType.CLAIM_INVOICE,
            resource_id=invoice.id,
            user_id=user_id,
            client_id=claim.client_id,
            before=column_values(invoice),
            metadata={"role": context.role_name, "claim_status": status_name(claim.status)},
            claim_id=claim.id,
        )
        await self.session.delete(invoice)
        await self.session.commit()

        logger.info(f"Invoice {invoice.invoice_number} removed from claim {claim.claim_number}")

    # =========================================================================
    # Claim Form Lookups
    # =========================================================================

    async def get_available_affiliates(self, user_id: UUID, client_id: UUID) -> list[AvailableAffiliate]:
        """
        Owners a claim can be filed for at a client, by last and first name.

        An AFFILIATE only ever gets themselves back.

        Raises:
            PermissionDeniedError: Client outside the user's reach
            NotFoundError: Client does not exist
            BadRequestError: Client is inactive
        """
        context = await require_user_context(self.session, user_id)
        if context.role not in ALL_AUTHORIZED_ROLES:
            raise PermissionDeniedError("Role cannot file claims")
        if not context.can_access_client(client_id):
            logger.warning(f"User {user_id} ({context.role_name}) looked up affiliates of client {client_id}")
            raise PermissionDeniedError("No access to this client")

        client = await self.session.get(Client, client_id)
        if client is None:
            raise NotFoundError("Client not found")
        if not client.is_active:
            raise BadRequestError("Client is inactive")

        query = select(Affiliate).where(
            Affiliate.client_id == client_id,
            Affiliate.affiliate_type == AffiliateType.OWNER,
            Affiliate.is_active.is_(True),
        )
        if context.is_affiliate:
            query = query.where(Affiliate.id == context.affiliate_id)

        result = await self.session.execute(query.order_by(Affiliate.last_name, Affiliate.first_name))
        return [
            AvailableAffiliate(id=a.id, first_name=a.first_name, last_name=a.last_name)
            for a in result.scalars().all()
        ]

    async def get_available_patients(self, user_id: UUID, affiliate_id: UUID) -> list[AvailablePatient]:
        """
        The affiliate itself followed by their active dependents.

        Raises:
            PermissionDeniedError: Affiliate outside the user's reach
            NotFoundError: Affiliate does not exist
            BadRequestError: Affiliate is inactive
        """
        context = await require_user_context(self.session, user_id)
        if context.role not in ALL_AUTHORIZED_ROLES:
            raise PermissionDeniedError("Role cannot file claims")
        if context.is_affiliate and affiliate_id != context.affiliate_id:
            logger.warning(f"Affiliate user {user_id} looked up patients of {affiliate_id}")
            raise PermissionDeniedError("Affiliates can only file claims for themselves")

        affiliate = await self.session.get(Affiliate, affiliate_id)
        if affiliate is None:
            raise NotFoundError("Affiliate not found")
        if not affiliate.is_active:
            raise BadRequestError("Affiliate is inactive")
        if not context.can_access_client(affiliate.client_id):
            logger.warning(f"User {user_id} ({context.role_name}) looked up patients of {affiliate_id}")
            raise PermissionDeniedError("No access to this client")

        result = await self.session.execute(
            select(Affiliate)
            .where(
                Affiliate.primary_affiliate_id == affiliate_id,
                Affiliate.affiliate_type == AffiliateType.DEPENDENT,
                Affiliate.is_active.is_(True),
            )
            .order_by(Affiliate.last_name, Affiliate.first_name)
        )
        patients = [
            AvailablePatient(
                id=affiliate.id,
                first_name=affiliate.first_name,
                last_name=affiliate.last_name,
                relationship="self",
            )
        ]
        patients.extend(
            AvailablePatient(id=d.id, first_name=d.first_name, last_name=d.last_name, relationship="dependent")
            for d in result.scalars().all()
        )
        return patients

    async def get_available_policies(self, user_id: UUID, claim_id: UUID) -> list[AvailablePolicy]:
        """
        Policies a claim can be assigned to.

        Active, unexpired policies of the claim's client on which the claim's
        affiliate is an active member, by policy number.
        """
        context = await require_user_context(self.session, user_id)
        if context.role not in ALL_AUTHORIZED_ROLES:
            raise PermissionDeniedError("Role cannot view claims")
        claim = await self._get_claim_in_scope(context, claim_id)

        result = await self.session.execute(
            select(Policy)
            .join(PolicyAffiliate, PolicyAffiliate.policy_id == Policy.id)
            .options(selectinload(Policy.insurer))
            .where(
                Policy.client_id == claim.client_id,
                Policy.is_active.is_(True),
                Policy.status == PolicyStatus.ACTIVE,
                Policy.end_date >= date.today(),
                PolicyAffiliate.affiliate_id == claim.affiliate_id,
                PolicyAffiliate.is_active.is_(True),
            )
            .order_by(Policy.policy_number)
        )
        return [
            AvailablePolicy(
                id=policy.id,
                policy_number=policy.policy_number,
                type=policy.type,
                insurer_name=policy.insurer.name,
                end_date=policy.end_date,
            )
            for policy in result.scalars().all()
        ]

    # =========================================================================
    # Audit History
    # =========================================================================

    async def get_claim_audit_logs(
        self,
        user_id: UUID,
        claim_id: UUID,
        skip: int = 0,
        limit: int = 20,
    ) -> AuditLogListResponse:
        """
        Audit history of a claim and its invoices, newest first.

        Invoice events are matched through the ``claim_id`` stored in their
        changes payload.
        """
        context = await require_user_context(self.session, user_id)
        if context.role not in ALL_AUTHORIZED_ROLES:
            raise PermissionDeniedError("Role cannot view claim history")
        await self._get_claim_in_scope(context, claim_id)

        condition = or_(
            and_(
                AuditLog.resource_type == AuditResourceType.CLAIM,
                AuditLog.resource_id == claim_id,
            ),
            and_(
                AuditLog.resource_type == AuditResourceType.CLAIM_INVOICE,
                AuditLog.changes["claim_id"].as_string() == str(claim_id),
            ),
        )

        total = (
            await self.session.execute(select(func.count()).select_from(AuditLog).where(condition))
        ).scalar_one()

        result = await self.session.execute(
            select(AuditLog)
            .options(selectinload(AuditLog.user))
            .where(condition)
            .order_by(AuditLog.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        items = [
            AuditLogEntry(
                id=entry.id,
                action=entry.action,
                resource_type=entry.resource_type,
                resource_id=entry.resource_id,
                user_id=entry.user_id,
                user_name=entry.user.display_name if entry.user else None,
                changes=entry.changes,
                details=entry.details,
                created_at=entry.created_at,
            )
            for entry in result.scalars().all()
        ]
        return AuditLogListResponse(items=items, total=total, skip=skip, limit=limit)


# =============================================================================
# Factory Functions
# =============================================================================


async def get_claims_service(session: AsyncSession) -> ClaimsService:
    """Get claims service instance."""
    return ClaimsService(session)
