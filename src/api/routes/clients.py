"""
Clients API Endpoints.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import Pagination, get_current_user_id, get_pagination, provide_clients_service
from src.schemas.client import ClientCreate, ClientListResponse, ClientResponse, ClientUpdate
from src.services.clients_service import ClientsService

router = APIRouter(
    prefix="/clients",
    tags=["clients"],
)


@router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_client(
    data: ClientCreate,
    user_id: UUID = Depends(get_current_user_id),
    service: ClientsService = Depends(provide_clients_service),
) -> ClientResponse:
    """Register a client company; the tax id must be unused."""
    return await service.create_client(user_id, data)


@router.get("", response_model=ClientListResponse)
async def list_clients(
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    is_active: Optional[bool] = None,
    pagination: Pagination = Depends(get_pagination),
    user_id: UUID = Depends(get_current_user_id),
    service: ClientsService = Depends(provide_clients_service),
) -> ClientListResponse:
    return await service.list_clients(
        user_id,
        search=search,
        is_active=is_active,
        skip=pagination.skip,
        limit=pagination.limit,
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(
    client_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ClientsService = Depends(provide_clients_service),
) -> ClientResponse:
    return await service.get_client_detail(user_id, client_id)


@router.patch("/{client_id}", response_model=ClientResponse)
async def update_client(
    client_id: UUID,
    data: ClientUpdate,
    user_id: UUID = Depends(get_current_user_id),
    service: ClientsService = Depends(provide_clients_service),
) -> ClientResponse:
    return await service.update_client(user_id, client_id, data.to_updates())
