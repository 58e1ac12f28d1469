"""
Affiliates Service.

Provides:
- Affiliate registration and edits by broker employees
- Listing and detail for broker employees and CLIENT_ADMIN (scoped)

Owners hold the coverage and need an email; dependents are covered through
an active owner of the same client.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.enums import AffiliateType, AuditAction, AuditResourceType
from src.core.roles import BROKER_EMPLOYEES
from src.models.affiliate import Affiliate
from src.models.client import Client
from src.schemas.affiliate import AffiliateCreate, AffiliateListResponse, AffiliateResponse
from src.schemas.common import EntityRef
from src.services.audit_service import AuditService, column_values
from src.services.lifecycle import merge_state
from src.services.user_context import UserContext, require_user_context
from src.utils.errors import BadRequestError, ConflictError, NotFoundError, PermissionDeniedError
from src.utils.logging import get_logger

logger = get_logger(__name__)

AFFILIATE_NOT_FOUND = "Affiliate not found"


def build_affiliate_response(affiliate: Affiliate) -> AffiliateResponse:
    """Detail projection; needs client and primary_affiliate loaded."""
    primary = affiliate.primary_affiliate
    return AffiliateResponse(
        id=affiliate.id,
        first_name=affiliate.first_name,
        last_name=affiliate.last_name,
        email=affiliate.email,
        phone=affiliate.phone,
        date_of_birth=affiliate.date_of_birth,
        document_type=affiliate.document_type,
        document_number=affiliate.document_number,
        affiliate_type=affiliate.affiliate_type,
        client=EntityRef(id=affiliate.client.id, name=affiliate.client.name),
        primary_affiliate=EntityRef(id=primary.id, name=primary.full_name) if primary else None,
        has_user_account=affiliate.user_id is not None,
        is_active=affiliate.is_active,
        created_at=affiliate.created_at,
        updated_at=affiliate.updated_at,
    )


class AffiliatesService:
    """Service for affiliate management operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit = AuditService(session)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require_broker(self, context: UserContext, action: str) -> None:
        if context.role not in BROKER_EMPLOYEES:
            logger.warning(f"User {context.user_id} ({context.role_name}) denied: {action} affiliate")
            raise PermissionDeniedError(f"Only broker employees can {action} affiliates")

    def _require_viewer(self, context: UserContext) -> None:
        if not (context.is_broker_employee or context.is_client_admin):
            logger.warning(f"User {context.user_id} ({context.role_name}) denied affiliate access")
            raise PermissionDeniedError("Role cannot view affiliates")

    async def _check_primary(self, primary_id: UUID, client_id: UUID) -> None:
        """A dependent's owner must be an active OWNER of the same client."""
        primary = await self.session.get(Affiliate, primary_id)
        if primary is None:
            raise NotFoundError("Primary affiliate not found")
        if primary.affiliate_type != AffiliateType.OWNER:
            raise BadRequestError("Primary affiliate must be an OWNER")
        if not primary.is_active:
            raise BadRequestError("Primary affiliate is inactive")
        if primary.client_id != client_id:
            raise BadRequestError("Primary affiliate must belong to the same client")

    async def _check_document_number(self, document_number: Optional[str], exclude_id: Optional[UUID] = None) -> None:
        if not document_number:
            return
        query = select(Affiliate.id).where(Affiliate.document_number == document_number)
        if exclude_id is not None:
            query = query.where(Affiliate.id != exclude_id)
        if (await self.session.execute(query)).first() is not None:
            raise ConflictError(f"An affiliate with document number {document_number} already exists")

    async def _load_detail(self, affiliate_id: UUID) -> AffiliateResponse:
        result = await self.session.execute(
            select(Affiliate)
            .options(selectinload(Affiliate.client), selectinload(Affiliate.primary_affiliate))
            .where(Affiliate.id == affiliate_id)
            .execution_options(populate_existing=True)
        )
        affiliate = result.scalar_one_or_none()
        if affiliate is None:
            raise NotFoundError(AFFILIATE_NOT_FOUND)
        return build_affiliate_response(affiliate)

    # =========================================================================
    # Create
    # =========================================================================

    async def create_affiliate(self, user_id: UUID, data: AffiliateCreate) -> AffiliateResponse:
        """
        Register an affiliate of a client.

        Raises:
            PermissionDeniedError: Not a broker employee
            NotFoundError: Client or primary affiliate missing
            BadRequestError: Inactive client or an unusable primary affiliate
            ConflictError: Document number already registered
        """
        context = await require_user_context(self.session, user_id)
        self._require_broker(context, "create")

        client = await self.session.get(Client, data.client_id)
        if client is None:
            raise NotFoundError("Client not found")
        if not client.is_active:
            raise BadRequestError("Client is inactive")

        if data.primary_affiliate_id is not None:
            await self._check_primary(data.primary_affiliate_id, data.client_id)
        await self._check_document_number(data.document_number)

        affiliate = Affiliate(**data.model_dump())
        self.session.add(affiliate)
        await self.session.flush()

        self.audit.record(
            action=AuditAction.AFFILIATE_CREATED,
            resource_type=AuditResourceType.AFFILIATE,
            resource_id=affiliate.id,
            user_id=user_id,
            client_id=affiliate.client_id,
            after=column_values(affiliate),
            metadata={"role": context.role_name},
        )
        await self.session.commit()

        logger.info(
            f"Created {data.affiliate_type.value} affiliate {affiliate.id} "
            f"for client {data.client_id} by user {user_id}"
        )
        return await self._load_detail(affiliate.id)

    # =========================================================================
    # Read
    # =========================================================================

    async def get_affiliate_detail(self, user_id: UUID, affiliate_id: UUID) -> AffiliateResponse:
        """Detail of an affiliate; a CLIENT_ADMIN outside the client gets NotFound."""
        context = await require_user_context(self.session, user_id)
        self._require_viewer(context)

        affiliate = await self.session.get(Affiliate, affiliate_id)
        if affiliate is None or not context.can_access_client(affiliate.client_id):
            if affiliate is not None:
                logger.warning(
                    f"Affiliate {affiliate_id} outside scope of user {user_id} ({context.role_name})"
                )
            raise NotFoundError(AFFILIATE_NOT_FOUND)
        return await self._load_detail(affiliate_id)

    async def list_affiliates(
        self,
        user_id: UUID,
        client_id: Optional[UUID] = None,
        affiliate_type: Optional[AffiliateType] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> AffiliateListResponse:
        """
        List affiliates grouped by client, then family.

        Ordered by client name, last name, owners before dependents, and
        first name. ``search`` matches names, document number or client name.
        """
        context = await require_user_context(self.session, user_id)
        self._require_viewer(context)

        query = select(Affiliate).join(Client, Affiliate.client_id == Client.id)
        if context.is_client_admin:
            if client_id is not None and client_id not in context.accessible_client_ids:
                logger.warning(f"User {user_id} filtered affiliates by inaccessible client {client_id}")
                raise PermissionDeniedError("No access to this client")
            if not context.accessible_client_ids:
                return AffiliateListResponse(items=[], total=0, skip=skip, limit=limit)
            query = query.where(Affiliate.client_id.in_(context.accessible_client_ids))

        if client_id is not None:
            query = query.where(Affiliate.client_id == client_id)
        if affiliate_type is not None:
            query = query.where(Affiliate.affiliate_type == affiliate_type)
        if is_active is not None:
            query = query.where(Affiliate.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    Affiliate.first_name.ilike(pattern),
                    Affiliate.last_name.ilike(pattern),
                    Affiliate.document_number.ilike(pattern),
                    Client.name.ilike(pattern),
                )
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(
            query.options(selectinload(Affiliate.client), selectinload(Affiliate.primary_affiliate))
            .order_by(Client.name, Affiliate.last_name, Affiliate.affiliate_type.desc(), Affiliate.first_name)
            .offset(skip)
            .limit(limit)
        )
        items = [build_affiliate_response(affiliate) for affiliate in result.scalars().all()]
        return AffiliateListResponse(items=items, total=total, skip=skip, limit=limit)

    # =========================================================================
    # Update
    # =========================================================================

    async def update_affiliate(
        self,
        user_id: UUID,
        affiliate_id: UUID,
        updates: dict[str, Any],
    ) -> AffiliateResponse:
        """
        Edit an affiliate.

        Type rules are checked on the merged state: an OWNER needs an email
        and no primary affiliate, a DEPENDENT needs a primary affiliate.

        Raises:
            PermissionDeniedError: Not a broker employee
            NotFoundError: Affiliate or primary affiliate missing
            BadRequestError: Type rules broken or an unusable primary affiliate
            ConflictError: Document number used by another affiliate
        """
        context = await require_user_context(self.session, user_id)
        self._require_broker(context, "edit")

        affiliate = await self.session.get(Affiliate, affiliate_id)
        if affiliate is None:
            raise NotFoundError(AFFILIATE_NOT_FOUND)

        before = column_values(affiliate)
        merged = merge_state(before, updates)

        if merged["affiliate_type"] == AffiliateType.OWNER:
            if not merged.get("email"):
                raise BadRequestError("Owners must have an email")
            if merged.get("primary_affiliate_id") is not None:
                raise BadRequestError("Owners cannot have a primary affiliate")
        elif merged.get("primary_affiliate_id") is None:
            raise BadRequestError("Dependents must have a primary affiliate")

        new_primary = updates.get("primary_affiliate_id")
        if new_primary is not None:
            if new_primary == affiliate.id:
                raise BadRequestError("An affiliate cannot be their own primary affiliate")
            await self._check_primary(new_primary, affiliate.client_id)

        if updates.get("document_number") not in (None, before.get("document_number")):
            await self._check_document_number(updates["document_number"], exclude_id=affiliate.id)

        now = datetime.now(timezone.utc)
        for name, value in updates.items():
            setattr(affiliate, name, value)
        affiliate.updated_at = now

        self.audit.record(
            action=AuditAction.AFFILIATE_UPDATED,
            resource_type=AuditResourceType.AFFILIATE,
            resource_id=affiliate.id,
            user_id=user_id,
            client_id=affiliate.client_id,
            before=before,
            after=merge_state(merged, {"updated_at": now}),
            metadata={"role": context.role_name, "fields": sorted(updates)},
        )
        await self.session.commit()

        logger.info(f"Affiliate {affiliate_id} updated by user {user_id}: {', '.join(sorted(updates))}")
        return await self._load_detail(affiliate_id)


async def get_affiliates_service(session: AsyncSession) -> AffiliatesService:
    """Get affiliates service instance."""
    return AffiliatesService(session)
