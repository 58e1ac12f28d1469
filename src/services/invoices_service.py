"""
Invoices Service.

Provides:
- Insurer invoice registration with the policies it bills
- Role-scoped listing and detail projection
- The invoice edit flow, driven by the invoice lifecycle blueprint
- Reconciliation flags (affiliate count / amount match) kept in sync on edit
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.enums import AuditAction, AuditResourceType, PaymentStatus
from src.core.roles import BROKER_EMPLOYEES
from src.models.client import Client, Insurer
from src.models.invoice import Invoice, InvoicePolicy
from src.models.policy import Policy
from src.schemas.common import EntityRef, UserRef
from src.schemas.invoice import (
    InvoiceCreate,
    InvoiceDetailResponse,
    InvoiceListItem,
    InvoiceListResponse,
    InvoicePolicyResponse,
)
from src.services.audit_service import AuditService, column_values
from src.services.invoice_lifecycle import (
    INVOICE_LIFECYCLE_BLUEPRINT,
    get_invoice_lifecycle_validator,
)
from src.services.lifecycle import merge_state, plan_update, status_name
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

INVOICE_NOT_FOUND = "Invoice not found"

# Rounding tolerance when comparing billed and expected amounts
AMOUNT_MATCH_TOLERANCE = Decimal("1.00")

# Stored flags; a flag whose comparison loses one side is cleared
RECONCILIATION_FLAG_FIELDS = ("count_matches", "amount_matches")


def reconciliation_flags(state: Mapping[str, Any]) -> dict[str, bool]:
    """
    Match flags derivable from an invoice state.

    A flag is only produced when both sides of its comparison are known.
    """
    flags: dict[str, bool] = {}

    expected_count = state.get("expected_affiliate_count")
    actual_count = state.get("actual_affiliate_count")
    if expected_count is not None and actual_count is not None:
        flags["count_matches"] = expected_count == actual_count

    expected_amount = state.get("expected_amount")
    total_amount = state.get("total_amount")
    if expected_amount is not None and total_amount is not None:
        difference = abs(Decimal(str(expected_amount)) - Decimal(str(total_amount)))
        flags["amount_matches"] = difference <= AMOUNT_MATCH_TOLERANCE

    return flags


def build_invoice_detail(invoice: Invoice) -> InvoiceDetailResponse:
    """Canonical detail projection of an invoice."""
    updated_by = invoice.updated_by
    return InvoiceDetailResponse(
        id=invoice.id,
        invoice_number=invoice.invoice_number,
        insurer_invoice_number=invoice.insurer_invoice_number,
        status=invoice.status,
        status_label=INVOICE_LIFECYCLE_BLUEPRINT.label_for(invoice.status),
        is_terminal=INVOICE_LIFECYCLE_BLUEPRINT.is_terminal_state(invoice.status),
        payment_status=invoice.payment_status,
        client=EntityRef(id=invoice.client.id, name=invoice.client.name),
        insurer=EntityRef(id=invoice.insurer.id, name=invoice.insurer.name),
        billing_period=invoice.billing_period,
        total_amount=invoice.total_amount,
        tax_amount=invoice.tax_amount,
        expected_amount=invoice.expected_amount,
        amount_matches=invoice.amount_matches,
        expected_affiliate_count=invoice.expected_affiliate_count,
        actual_affiliate_count=invoice.actual_affiliate_count,
        count_matches=invoice.count_matches,
        discrepancy_notes=invoice.discrepancy_notes,
        issue_date=invoice.issue_date,
        due_date=invoice.due_date,
        payment_date=invoice.payment_date,
        policies=[
            InvoicePolicyResponse(
                policy_id=link.policy_id,
                policy_number=link.policy.policy_number,
                expected_amount=link.expected_amount,
                expected_affiliate_count=link.expected_affiliate_count,
            )
            for link in invoice.policies
        ],
        updated_by=(
            UserRef(id=updated_by.id, name=updated_by.display_name, email=updated_by.email)
            if updated_by
            else None
        ),
        created_at=invoice.created_at,
        updated_at=invoice.updated_at,
    )


class InvoicesService:
    """Service for insurer invoice operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.validator = get_invoice_lifecycle_validator()
        self.audit = AuditService(session)

    def _require_viewer(self, context: UserContext) -> None:
        if not (context.is_broker_employee or context.is_client_admin):
            logger.warning(f"User {context.user_id} ({context.role_name}) denied invoice access")
            raise PermissionDeniedError("Role cannot view invoices")

    async def _check_parties(self, client_id: Optional[UUID], insurer_id: Optional[UUID]) -> None:
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

    async def _invoice_number_taken(self, invoice_number: str, exclude_id: Optional[UUID] = None) -> bool:
        query = select(Invoice.id).where(Invoice.invoice_number == invoice_number)
        if exclude_id is not None:
            query = query.where(Invoice.id != exclude_id)
        return (await self.session.execute(query)).first() is not None

    async def _load_detail(self, invoice_id: UUID) -> InvoiceDetailResponse:
        result = await self.session.execute(
            select(Invoice)
            .options(
                selectinload(Invoice.client),
                selectinload(Invoice.insurer),
                selectinload(Invoice.updated_by),
                selectinload(Invoice.policies).selectinload(InvoicePolicy.policy),
            )
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise NotFoundError(INVOICE_NOT_FOUND)

        return build_invoice_detail(invoice)

    # =========================================================================
    # Create
    # =========================================================================

    async def create_invoice(self, user_id: UUID, data: InvoiceCreate) -> InvoiceDetailResponse:
        """
        Register an insurer invoice in the blueprint's initial status.

        Raises:
            PermissionDeniedError: Not a broker employee
            ConflictError: Invoice number already registered
            NotFoundError: Client, insurer or any listed policy missing
            BadRequestError: Inactive party or policy of another insurer
        """
        context = await require_user_context(self.session, user_id)
        if context.role not in BROKER_EMPLOYEES:
            logger.warning(f"User {user_id} ({context.role_name}) tried to create an invoice")
            raise PermissionDeniedError("Only broker employees can create invoices")

        if await self._invoice_number_taken(data.invoice_number):
            raise ConflictError(f"Invoice number {data.invoice_number} already exists")

        await self._check_parties(data.client_id, data.insurer_id)

        policies: list[Policy] = []
        if data.policy_ids:
            result = await self.session.execute(select(Policy).where(Policy.id.in_(data.policy_ids)))
            found = {policy.id: policy for policy in result.scalars().all()}
            missing = [str(policy_id) for policy_id in data.policy_ids if policy_id not in found]
            if missing:
                raise NotFoundError(f"Policies not found: {', '.join(missing)}")
            policies = [found[policy_id] for policy_id in data.policy_ids]
            for policy in policies:
                if policy.insurer_id != data.insurer_id:
                    raise BadRequestError(
                        f"Policy {policy.policy_number} belongs to another insurer"
                    )

        values = data.model_dump(exclude={"policy_ids"})
        invoice = Invoice(
            status=INVOICE_LIFECYCLE_BLUEPRINT.initial_status,
            payment_status=PaymentStatus.PENDING_PAYMENT,
            created_by_id=user_id,
            updated_by_id=user_id,
            **values,
            **reconciliation_flags(values),
        )
        self.session.add(invoice)

        try:
            await self.session.flush()
            for policy in policies:
                self.session.add(InvoicePolicy(invoice_id=invoice.id, policy_id=policy.id))
            self.audit.record(
                action=AuditAction.INVOICE_CREATED,
                resource_type=AuditResourceType.INVOICE,
                resource_id=invoice.id,
                user_id=user_id,
                client_id=invoice.client_id,
                after=column_values(invoice),
                metadata={
                    "role": context.role_name,
                    "policy_ids": [str(policy.id) for policy in policies],
                },
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(f"Invoice number {data.invoice_number} already exists") from e

        logger.info(f"Created invoice {invoice.invoice_number} (ID: {invoice.id}) by user {user_id}")
        return await self._load_detail(invoice.id)

    # =========================================================================
    # Read
    # =========================================================================

    async def get_invoice_detail(self, user_id: UUID, invoice_id: UUID) -> InvoiceDetailResponse:
        """Detail projection of an invoice within the user's scope."""
        context = await require_user_context(self.session, user_id)
        self._require_viewer(context)

        invoice = await self.session.get(Invoice, invoice_id)
        if invoice is None or not context.can_access_client(invoice.client_id):
            raise NotFoundError(INVOICE_NOT_FOUND)
        return await self._load_detail(invoice_id)

    async def list_invoices(
        self,
        user_id: UUID,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        client_id: Optional[UUID] = None,
        insurer_id: Optional[UUID] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> InvoiceListResponse:
        """List invoices visible to the user, newest first."""
        context = await require_user_context(self.session, user_id)
        self._require_viewer(context)

        query = select(Invoice)
        if context.is_client_admin:
            if client_id is not None and client_id not in context.accessible_client_ids:
                logger.warning(f"User {user_id} filtered invoices by inaccessible client {client_id}")
                raise PermissionDeniedError("No access to this client")
            if not context.accessible_client_ids:
                return InvoiceListResponse(items=[], total=0, skip=skip, limit=limit)
            query = query.where(Invoice.client_id.in_(context.accessible_client_ids))

        if client_id is not None:
            query = query.where(Invoice.client_id == client_id)
        if insurer_id is not None:
            query = query.where(Invoice.insurer_id == insurer_id)
        if status:
            query = query.where(Invoice.status == status)
        if payment_status:
            query = query.where(Invoice.payment_status == payment_status)
        if search:
            term = f"%{search}%"
            query = query.where(
                or_(Invoice.invoice_number.ilike(term), Invoice.insurer_invoice_number.ilike(term))
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(
            query.options(selectinload(Invoice.client), selectinload(Invoice.insurer))
            .order_by(Invoice.issue_date.desc(), Invoice.invoice_number)
            .offset(skip)
            .limit(limit)
        )
        items = [
            InvoiceListItem(
                id=invoice.id,
                invoice_number=invoice.invoice_number,
                insurer_invoice_number=invoice.insurer_invoice_number,
                status=invoice.status,
                status_label=INVOICE_LIFECYCLE_BLUEPRINT.label_for(invoice.status),
                payment_status=invoice.payment_status,
                client_name=invoice.client.name,
                insurer_name=invoice.insurer.name,
                billing_period=invoice.billing_period,
                total_amount=invoice.total_amount,
                issue_date=invoice.issue_date,
                due_date=invoice.due_date,
                created_at=invoice.created_at,
            )
            for invoice in result.scalars().all()
        ]
        return InvoiceListResponse(items=items, total=total, skip=skip, limit=limit)

    # =========================================================================
    # Update
    # =========================================================================

    async def update_invoice(
        self,
        user_id: UUID,
        invoice_id: UUID,
        updates: dict[str, Any],
    ) -> InvoiceDetailResponse:
        """
        Edit an invoice and optionally move it to another status.

        The requested status is applied as is; the match flags are
        recomputed from the post-update figures and stored alongside.

        Raises:
            AuthenticationError: Unknown or inactive user
            NotFoundError: Invoice, client or insurer does not exist
            PermissionDeniedError: Role may not edit the invoice in its status
            BadRequestError: Forbidden fields, illegal transition, unmet requirements
            ConflictError: Invoice number already in use
        """
        context = await require_user_context(self.session, user_id)

        invoice = await self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise NotFoundError(INVOICE_NOT_FOUND)

        before = column_values(invoice)
        try:
            plan = plan_update(self.validator, context.role_name, before, updates)
        except PermissionDeniedError:
            logger.warning(
                f"User {user_id} ({context.role_name}) cannot edit invoice {invoice_id} "
                f"in status {status_name(invoice.status)}"
            )
            raise

        write_set = dict(plan.write_set)
        await self._check_parties(write_set.get("client_id"), write_set.get("insurer_id"))

        new_number = write_set.get("invoice_number")
        if new_number and new_number != invoice.invoice_number:
            if await self._invoice_number_taken(new_number, exclude_id=invoice.id):
                raise ConflictError(f"Invoice number {new_number} already exists")

        # Derived columns follow the figures, never the request
        flags = reconciliation_flags(plan.merged)
        for name in RECONCILIATION_FLAG_FIELDS:
            value = flags.get(name)
            if before.get(name) != value:
                write_set[name] = value

        now = datetime.now(timezone.utc)
        for name, value in write_set.items():
            setattr(invoice, name, value)
        invoice.updated_by_id = user_id
        invoice.updated_at = now

        self.audit.record(
            action=AuditAction.INVOICE_UPDATED,
            resource_type=AuditResourceType.INVOICE,
            resource_id=invoice.id,
            user_id=user_id,
            client_id=invoice.client_id,
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
                    f"Invoice number {plan.merged.get('invoice_number')} already exists"
                ) from e
            raise ConflictError("Invoice update violates a data constraint") from e

        if plan.is_transition:
            logger.info(
                f"Invoice {invoice.invoice_number} moved {status_name(plan.from_status)} -> "
                f"{status_name(plan.to_status)} by user {user_id}"
            )
        else:
            logger.info(f"Invoice {invoice.invoice_number} updated by user {user_id}")

        return await self._load_detail(invoice_id)


async def get_invoices_service(session: AsyncSession) -> InvoicesService:
    """Get invoices service instance."""
    return InvoicesService(session)
