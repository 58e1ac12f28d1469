"""
FastAPI Dependencies
Dependency injection for the acting user, pagination and services
Source: https://fastapi.tiangolo.com/tutorial/dependencies/
Verified: 2025-11-14
"""

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.config import settings
from src.db.connection import get_session
from src.services.affiliates_service import AffiliatesService, get_affiliates_service
from src.services.claims_service import ClaimsService, get_claims_service
from src.services.clients_service import ClientsService, get_clients_service
from src.services.insurers_service import InsurersService, get_insurers_service
from src.services.invoices_service import InvoicesService, get_invoices_service
from src.services.policies_service import PoliciesService, get_policies_service
from src.utils.auth import decode_token
from src.utils.errors import AuthenticationError

# HTTP Bearer token security scheme
# Evidence: Bearer token authentication for REST APIs
# Source: https://swagger.io/docs/specification/authentication/bearer-authentication/
# Verified: 2025-11-14
security = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> UUID:
    """
    Get the acting user's id from the bearer token.

    The user record itself is resolved by the services, which fail as
    unauthenticated when it does not exist or is inactive.

    Raises:
        AuthenticationError: If the token is invalid
    """
    payload = decode_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Invalid token")

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    user_id_str: str | None = payload.get("sub")
    if user_id_str is None:
        raise AuthenticationError("Invalid token payload")

    try:
        return UUID(user_id_str)
    except ValueError as err:
        raise AuthenticationError("Invalid user ID in token") from err


@dataclass
class Pagination:
    """Offset pagination shared by list endpoints."""

    skip: int
    limit: int


def get_pagination(
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int | None = Query(None, ge=1, description="Page size"),
) -> Pagination:
    """Clamp the requested page size to the configured maximum."""
    size = limit or settings.DEFAULT_PAGE_SIZE
    return Pagination(skip=skip, limit=min(size, settings.MAX_PAGE_SIZE))


async def provide_claims_service(session: AsyncSession = Depends(get_session)) -> ClaimsService:
    return await get_claims_service(session)


async def provide_policies_service(session: AsyncSession = Depends(get_session)) -> PoliciesService:
    return await get_policies_service(session)


async def provide_invoices_service(session: AsyncSession = Depends(get_session)) -> InvoicesService:
    return await get_invoices_service(session)


async def provide_clients_service(session: AsyncSession = Depends(get_session)) -> ClientsService:
    return await get_clients_service(session)


async def provide_insurers_service(session: AsyncSession = Depends(get_session)) -> InsurersService:
    return await get_insurers_service(session)


async def provide_affiliates_service(session: AsyncSession = Depends(get_session)) -> AffiliatesService:
    return await get_affiliates_service(session)
