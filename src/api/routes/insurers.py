"""
Insurers API Endpoints.
Broker employees only.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import Pagination, get_current_user_id, get_pagination, provide_insurers_service
from src.schemas.client import InsurerCreate, InsurerListResponse, InsurerResponse, InsurerUpdate
from src.services.insurers_service import InsurersService

router = APIRouter(
    prefix="/insurers",
    tags=["insurers"],
)


@router.post(
    "",
    response_model=InsurerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_insurer(
    data: InsurerCreate,
    user_id: UUID = Depends(get_current_user_id),
    service: InsurersService = Depends(provide_insurers_service),
) -> InsurerResponse:
    return await service.create_insurer(user_id, data)


@router.get("", response_model=InsurerListResponse)
async def list_insurers(
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    is_active: Optional[bool] = None,
    pagination: Pagination = Depends(get_pagination),
    user_id: UUID = Depends(get_current_user_id),
    service: InsurersService = Depends(provide_insurers_service),
) -> InsurerListResponse:
    return await service.list_insurers(
        user_id,
        search=search,
        is_active=is_active,
        skip=pagination.skip,
        limit=pagination.limit,
    )


@router.get("/{insurer_id}", response_model=InsurerResponse)
async def get_insurer(
    insurer_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: InsurersService = Depends(provide_insurers_service),
) -> InsurerResponse:
    return await service.get_insurer_detail(user_id, insurer_id)


@router.patch("/{insurer_id}", response_model=InsurerResponse)
async def update_insurer(
    insurer_id: UUID,
    data: InsurerUpdate,
    user_id: UUID = Depends(get_current_user_id),
    service: InsurersService = Depends(provide_insurers_service),
) -> InsurerResponse:
    """Edit an insurer; name and code stay unique."""
    return await service.update_insurer(user_id, insurer_id, data.to_updates())
