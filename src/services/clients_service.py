"""
Clients Service.

Provides:
- Client registration and edits by broker employees
- Role-scoped listing and detail

Clients have no lifecycle: every field is editable at any time, and the
only business rule is the unique tax id.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import AuditAction, AuditResourceType
from src.core.roles import ALL_AUTHORIZED_ROLES, BROKER_EMPLOYEES
from src.models.client import Client
from src.schemas.client import ClientCreate, ClientListResponse, ClientResponse
from src.services.audit_service import AuditService, column_values
from src.services.lifecycle import merge_state
from src.services.user_context import UserContext, require_user_context
from src.utils.errors import ConflictError, NotFoundError, PermissionDeniedError, is_unique_violation
from src.utils.logging import get_logger

logger = get_logger(__name__)

CLIENT_NOT_FOUND = "Client not found"


def _tax_id_conflict(tax_id: str) -> ConflictError:
    return ConflictError(f"A client with tax id {tax_id} already exists")


class ClientsService:
    """Service for client management operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit = AuditService(session)

    def _require_broker(self, context: UserContext, action: str) -> None:
        if context.role not in BROKER_EMPLOYEES:
            logger.warning(f"User {context.user_id} ({context.role_name}) denied: {action} client")
            raise PermissionDeniedError(f"Only broker employees can {action} clients")

    async def _tax_id_taken(self, tax_id: str, exclude_id: Optional[UUID] = None) -> bool:
        query = select(Client.id).where(Client.tax_id == tax_id)
        if exclude_id is not None:
            query = query.where(Client.id != exclude_id)
        return (await self.session.execute(query)).first() is not None

    async def _reload(self, client_id: UUID) -> ClientResponse:
        result = await self.session.execute(
            select(Client).where(Client.id == client_id).execution_options(populate_existing=True)
        )
        return ClientResponse.model_validate(result.scalar_one())

    # =========================================================================
    # Create
    # =========================================================================

    async def create_client(self, user_id: UUID, data: ClientCreate) -> ClientResponse:
        """
        Register a client company.

        Raises:
            PermissionDeniedError: Not a broker employee
            ConflictError: Tax id already registered
        """
        context = await require_user_context(self.session, user_id)
        self._require_broker(context, "create")

        if await self._tax_id_taken(data.tax_id):
            logger.warning(f"User {user_id} tried to register duplicate tax id {data.tax_id}")
            raise _tax_id_conflict(data.tax_id)

        client = Client(**data.model_dump())
        self.session.add(client)

        try:
            await self.session.flush()
            self.audit.record(
                action=AuditAction.CLIENT_CREATED,
                resource_type=AuditResourceType.CLIENT,
                resource_id=client.id,
                user_id=user_id,
                client_id=client.id,
                after=column_values(client),
                metadata={"role": context.role_name},
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if is_unique_violation(e):
                raise _tax_id_conflict(data.tax_id) from e
            raise ConflictError("Client violates a data constraint") from e

        logger.info(f"Created client {client.name} (ID: {client.id}) by user {user_id}")
        return await self._reload(client.id)

    # =========================================================================
    # Read
    # =========================================================================

    async def get_client_detail(self, user_id: UUID, client_id: UUID) -> ClientResponse:
        """A client within the user's reach; others look missing."""
        context = await require_user_context(self.session, user_id)
        if context.role not in ALL_AUTHORIZED_ROLES:
            raise PermissionDeniedError("Role cannot view clients")

        client = await self.session.get(Client, client_id)
        if client is None or not context.can_access_client(client.id):
            if client is not None:
                logger.warning(f"Client {client_id} outside scope of user {user_id} ({context.role_name})")
            raise NotFoundError(CLIENT_NOT_FOUND)
        return ClientResponse.model_validate(client)

    async def list_clients(
        self,
        user_id: UUID,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> ClientListResponse:
        """
        List clients visible to the user, newest first.

        Broker employees see all clients, a CLIENT_ADMIN the granted ones and
        an AFFILIATE their own. ``search`` matches name, tax id or email.
        """
        context = await require_user_context(self.session, user_id)
        if context.role not in ALL_AUTHORIZED_ROLES:
            raise PermissionDeniedError("Role cannot view clients")

        query = select(Client)
        if context.is_client_admin:
            if not context.accessible_client_ids:
                return ClientListResponse(items=[], total=0, skip=skip, limit=limit)
            query = query.where(Client.id.in_(context.accessible_client_ids))
        elif context.is_affiliate:
            if context.affiliate_client_id is None:
                return ClientListResponse(items=[], total=0, skip=skip, limit=limit)
            query = query.where(Client.id == context.affiliate_client_id)

        if is_active is not None:
            query = query.where(Client.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(Client.name.ilike(pattern), Client.tax_id.ilike(pattern), Client.email.ilike(pattern))
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(
            query.order_by(Client.created_at.desc(), Client.name).offset(skip).limit(limit)
        )
        items = [ClientResponse.model_validate(client) for client in result.scalars().all()]
        return ClientListResponse(items=items, total=total, skip=skip, limit=limit)

    # =========================================================================
    # Update
    # =========================================================================

    async def update_client(self, user_id: UUID, client_id: UUID, updates: dict[str, Any]) -> ClientResponse:
        """
        Edit a client.

        Raises:
            PermissionDeniedError: Not a broker employee
            NotFoundError: Client does not exist
            ConflictError: Tax id already used by another client
        """
        context = await require_user_context(self.session, user_id)
        self._require_broker(context, "edit")

        client = await self.session.get(Client, client_id)
        if client is None:
            raise NotFoundError(CLIENT_NOT_FOUND)

        new_tax_id = updates.get("tax_id")
        if new_tax_id and new_tax_id != client.tax_id:
            if await self._tax_id_taken(new_tax_id, exclude_id=client.id):
                logger.warning(f"User {user_id} tried to move client {client_id} to taken tax id {new_tax_id}")
                raise _tax_id_conflict(new_tax_id)

        before = column_values(client)
        now = datetime.now(timezone.utc)
        for name, value in updates.items():
            setattr(client, name, value)
        client.updated_at = now

        self.audit.record(
            action=AuditAction.CLIENT_UPDATED,
            resource_type=AuditResourceType.CLIENT,
            resource_id=client.id,
            user_id=user_id,
            client_id=client.id,
            before=before,
            after=merge_state(before, {**updates, "updated_at": now}),
            metadata={"role": context.role_name, "fields": sorted(updates)},
        )

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if is_unique_violation(e):
                raise _tax_id_conflict(new_tax_id or before["tax_id"]) from e
            raise ConflictError("Client update violates a data constraint") from e

        logger.info(f"Client {client_id} updated by user {user_id}: {', '.join(sorted(updates))}")
        return await self._reload(client_id)


async def get_clients_service(session: AsyncSession) -> ClientsService:
    """Get clients service instance."""
    return ClientsService(session)
