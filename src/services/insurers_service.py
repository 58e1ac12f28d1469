"""
Insurers Service.

Insurers are internal reference data: only broker employees list, view,
register or edit them. Name and code are each unique.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import AuditAction, AuditResourceType
from src.core.roles import BROKER_EMPLOYEES
from src.models.client import Insurer
from src.schemas.client import InsurerCreate, InsurerListResponse, InsurerResponse
from src.services.audit_service import AuditService, column_values
from src.services.lifecycle import merge_state
from src.services.user_context import UserContext, require_user_context
from src.utils.errors import ConflictError, NotFoundError, PermissionDeniedError, is_unique_violation
from src.utils.logging import get_logger

logger = get_logger(__name__)

INSURER_NOT_FOUND = "Insurer not found"


class InsurersService:
    """Service for insurer management operations."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.audit = AuditService(session)

    async def _require_broker(self, user_id: UUID, action: str) -> UserContext:
        context = await require_user_context(self.session, user_id)
        if context.role not in BROKER_EMPLOYEES:
            logger.warning(f"User {user_id} ({context.role_name}) denied: {action} insurers")
            raise PermissionDeniedError(f"Only broker employees can {action} insurers")
        return context

    async def _check_unique(
        self,
        name: Optional[str],
        code: Optional[str],
        exclude_id: Optional[UUID] = None,
    ) -> None:
        """Name first, then code; the first clash is reported."""
        for column, value, label in ((Insurer.name, name, "name"), (Insurer.code, code, "code")):
            if value is None:
                continue
            query = select(Insurer.id).where(column == value)
            if exclude_id is not None:
                query = query.where(Insurer.id != exclude_id)
            if (await self.session.execute(query)).first() is not None:
                raise ConflictError(f'An insurer with {label} "{value}" already exists')

    async def _reload(self, insurer_id: UUID) -> InsurerResponse:
        result = await self.session.execute(
            select(Insurer).where(Insurer.id == insurer_id).execution_options(populate_existing=True)
        )
        return InsurerResponse.model_validate(result.scalar_one())

    @staticmethod
    def _conflict(error: IntegrityError, name: Optional[str], code: Optional[str]) -> ConflictError:
        if is_unique_violation(error):
            return ConflictError(f'An insurer named "{name}" or coded "{code}" already exists')
        return ConflictError("Insurer violates a data constraint")

    async def create_insurer(self, user_id: UUID, data: InsurerCreate) -> InsurerResponse:
        """
        Register an insurer.

        Raises:
            PermissionDeniedError: Not a broker employee
            ConflictError: Name or code already registered
        """
        context = await self._require_broker(user_id, "create")
        await self._check_unique(data.name, data.code)

        insurer = Insurer(**data.model_dump())
        self.session.add(insurer)

        try:
            await self.session.flush()
            self.audit.record(
                action=AuditAction.INSURER_CREATED,
                resource_type=AuditResourceType.INSURER,
                resource_id=insurer.id,
                user_id=user_id,
                after=column_values(insurer),
                metadata={"role": context.role_name},
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise self._conflict(e, data.name, data.code) from e

        logger.info(f"Created insurer {data.name} (ID: {insurer.id}) by user {user_id}")
        return await self._reload(insurer.id)

    async def get_insurer_detail(self, user_id: UUID, insurer_id: UUID) -> InsurerResponse:
        await self._require_broker(user_id, "view")
        insurer = await self.session.get(Insurer, insurer_id)
        if insurer is None:
            raise NotFoundError(INSURER_NOT_FOUND)
        return InsurerResponse.model_validate(insurer)

    async def list_insurers(
        self,
        user_id: UUID,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> InsurerListResponse:
        """List insurers by name; ``search`` matches name or code."""
        await self._require_broker(user_id, "view")

        query = select(Insurer)
        if is_active is not None:
            query = query.where(Insurer.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Insurer.name.ilike(pattern), Insurer.code.ilike(pattern)))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(query.order_by(Insurer.name).offset(skip).limit(limit))
        items = [InsurerResponse.model_validate(insurer) for insurer in result.scalars().all()]
        return InsurerListResponse(items=items, total=total, skip=skip, limit=limit)

    async def update_insurer(self, user_id: UUID, insurer_id: UUID, updates: dict[str, Any]) -> InsurerResponse:
        """
        Edit an insurer.

        Raises:
            PermissionDeniedError: Not a broker employee
            NotFoundError: Insurer does not exist
            ConflictError: Name or code used by another insurer
        """
        context = await self._require_broker(user_id, "edit")

        insurer = await self.session.get(Insurer, insurer_id)
        if insurer is None:
            raise NotFoundError(INSURER_NOT_FOUND)

        await self._check_unique(updates.get("name"), updates.get("code"), exclude_id=insurer.id)

        before = column_values(insurer)
        now = datetime.now(timezone.utc)
        for name, value in updates.items():
            setattr(insurer, name, value)
        insurer.updated_at = now

        after = merge_state(before, {**updates, "updated_at": now})
        self.audit.record(
            action=AuditAction.INSURER_UPDATED,
            resource_type=AuditResourceType.INSURER,
            resource_id=insurer.id,
            user_id=user_id,
            before=before,
            after=after,
            metadata={"role": context.role_name, "fields": sorted(updates)},
        )

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise self._conflict(e, after["name"], after["code"]) from e

        logger.info(f"Insurer {insurer_id} updated by user {user_id}: {', '.join(sorted(updates))}")
        return await self._reload(insurer_id)


async def get_insurers_service(session: AsyncSession) -> InsurersService:
    """Get insurers service instance."""
    return InsurersService(session)
