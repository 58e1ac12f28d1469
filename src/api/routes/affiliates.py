"""
Affiliates API Endpoints.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import Pagination, get_current_user_id, get_pagination, provide_affiliates_service
from src.core.enums import AffiliateType
from src.schemas.affiliate import AffiliateCreate, AffiliateListResponse, AffiliateResponse, AffiliateUpdate
from src.services.affiliates_service import AffiliatesService

router = APIRouter(
    prefix="/affiliates",
    tags=["affiliates"],
)


@router.post(
    "",
    response_model=AffiliateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_affiliate(
    data: AffiliateCreate,
    user_id: UUID = Depends(get_current_user_id),
    service: AffiliatesService = Depends(provide_affiliates_service),
) -> AffiliateResponse:
    """Register an owner, or a dependent under an owner of the same client."""
    return await service.create_affiliate(user_id, data)


@router.get("", response_model=AffiliateListResponse)
async def list_affiliates(
    client_id: Optional[UUID] = None,
    affiliate_type: Optional[AffiliateType] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    pagination: Pagination = Depends(get_pagination),
    user_id: UUID = Depends(get_current_user_id),
    service: AffiliatesService = Depends(provide_affiliates_service),
) -> AffiliateListResponse:
    return await service.list_affiliates(
        user_id,
        client_id=client_id,
        affiliate_type=affiliate_type,
        is_active=is_active,
        search=search,
        skip=pagination.skip,
        limit=pagination.limit,
    )


@router.get("/{affiliate_id}", response_model=AffiliateResponse)
async def get_affiliate(
    affiliate_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: AffiliatesService = Depends(provide_affiliates_service),
) -> AffiliateResponse:
    return await service.get_affiliate_detail(user_id, affiliate_id)


@router.patch("/{affiliate_id}", response_model=AffiliateResponse)
async def update_affiliate(
    affiliate_id: UUID,
    data: AffiliateUpdate,
    user_id: UUID = Depends(get_current_user_id),
    service: AffiliatesService = Depends(provide_affiliates_service),
) -> AffiliateResponse:
    return await service.update_affiliate(user_id, affiliate_id, data.to_updates())
