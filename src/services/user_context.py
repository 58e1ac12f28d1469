"""
User Context Resolution.

Loads, in one place, everything authorization needs about the acting user:
role, own affiliate record and the clients a CLIENT_ADMIN was granted.
"""

from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.enums import Role
from src.core.roles import BROKER_EMPLOYEES, parse_role
from src.models.user import User
from src.utils.errors import AuthenticationError


@dataclass(frozen=True)
class UserContext:
    """Authorization view of the acting user."""

    user_id: UUID
    role_name: Optional[str]
    affiliate_id: Optional[UUID] = None
    affiliate_client_id: Optional[UUID] = None
    accessible_client_ids: frozenset[UUID] = field(default_factory=frozenset)

    @property
    def role(self) -> Optional[Role]:
        return parse_role(self.role_name)

    @property
    def is_broker_employee(self) -> bool:
        return self.role in BROKER_EMPLOYEES

    @property
    def is_client_admin(self) -> bool:
        return self.role == Role.CLIENT_ADMIN

    @property
    def is_affiliate(self) -> bool:
        return self.role == Role.AFFILIATE

    def can_access_client(self, client_id: UUID) -> bool:
        """Whether the client's data is within this user's reach."""
        if self.is_broker_employee:
            return True
        if self.is_client_admin:
            return client_id in self.accessible_client_ids
        if self.is_affiliate:
            return client_id == self.affiliate_client_id
        return False


async def get_user_context(session: AsyncSession, user_id: UUID) -> Optional[UserContext]:
    """
    Resolve the acting user's context.

    Returns:
        UserContext, or None when the user does not exist or is inactive
    """
    result = await session.execute(
        select(User)
        .options(selectinload(User.client_access), selectinload(User.affiliate))
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None

    affiliate = user.affiliate
    return UserContext(
        user_id=user.id,
        role_name=user.role,
        affiliate_id=affiliate.id if affiliate else None,
        affiliate_client_id=affiliate.client_id if affiliate else None,
        accessible_client_ids=frozenset(
            access.client_id for access in user.client_access if access.is_active
        ),
    )


async def require_user_context(session: AsyncSession, user_id: UUID) -> UserContext:
    """Resolve the acting user's context or fail as unauthenticated."""
    context = await get_user_context(session, user_id)
    if context is None:
        raise AuthenticationError("User not found")
    return context
