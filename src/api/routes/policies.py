"""
Policies API Endpoints.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import Pagination, get_current_user_id, get_pagination, provide_policies_service
from src.core.enums import PolicyStatus
from src.schemas.affiliate import (
    PolicyAffiliateAdd,
    PolicyAffiliateListResponse,
    PolicyAffiliateRemovalResponse,
    PolicyAffiliateRemove,
    PolicyAffiliateResponse,
)
from src.schemas.policy import PolicyCreate, PolicyDetailResponse, PolicyListResponse, PolicyUpdate
from src.services.policies_service import PoliciesService

router = APIRouter(
    prefix="/policies",
    tags=["policies"],
)


@router.post(
    "",
    response_model=PolicyDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_policy(
    data: PolicyCreate,
    user_id: UUID = Depends(get_current_user_id),
    service: PoliciesService = Depends(provide_policies_service),
) -> PolicyDetailResponse:
    """Register a policy in PENDING."""
    return await service.create_policy(user_id, data)


@router.get("", response_model=PolicyListResponse)
async def list_policies(
    status_filter: Optional[PolicyStatus] = Query(None, alias="status"),
    client_id: Optional[UUID] = None,
    insurer_id: Optional[UUID] = None,
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    pagination: Pagination = Depends(get_pagination),
    user_id: UUID = Depends(get_current_user_id),
    service: PoliciesService = Depends(provide_policies_service),
) -> PolicyListResponse:
    return await service.list_policies(
        user_id,
        status=status_filter,
        client_id=client_id,
        insurer_id=insurer_id,
        search=search,
        skip=pagination.skip,
        limit=pagination.limit,
    )


@router.get("/{policy_id}", response_model=PolicyDetailResponse)
async def get_policy(
    policy_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: PoliciesService = Depends(provide_policies_service),
) -> PolicyDetailResponse:
    return await service.get_policy_detail(user_id, policy_id)


@router.patch("/{policy_id}", response_model=PolicyDetailResponse)
async def update_policy(
    policy_id: UUID,
    data: PolicyUpdate,
    user_id: UUID = Depends(get_current_user_id),
    service: PoliciesService = Depends(provide_policies_service),
) -> PolicyDetailResponse:
    """Edit a policy; ``status`` requests a transition."""
    return await service.update_policy(user_id, policy_id, data.to_updates())


# =============================================================================
# Members
# =============================================================================


@router.get("/{policy_id}/affiliates", response_model=PolicyAffiliateListResponse)
async def list_policy_affiliates(
    policy_id: UUID,
    is_active: Optional[bool] = None,
    pagination: Pagination = Depends(get_pagination),
    user_id: UUID = Depends(get_current_user_id),
    service: PoliciesService = Depends(provide_policies_service),
) -> PolicyAffiliateListResponse:
    return await service.list_policy_affiliates(
        user_id, policy_id, is_active=is_active, skip=pagination.skip, limit=pagination.limit
    )


@router.post(
    "/{policy_id}/affiliates",
    response_model=PolicyAffiliateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_policy_affiliate(
    policy_id: UUID,
    data: PolicyAffiliateAdd,
    user_id: UUID = Depends(get_current_user_id),
    service: PoliciesService = Depends(provide_policies_service),
) -> PolicyAffiliateResponse:
    """Put an affiliate of the policy's client on the policy."""
    return await service.add_policy_affiliate(user_id, policy_id, data)


@router.patch("/{policy_id}/affiliates/{affiliate_id}", response_model=PolicyAffiliateRemovalResponse)
async def remove_policy_affiliate(
    policy_id: UUID,
    affiliate_id: UUID,
    data: PolicyAffiliateRemove,
    user_id: UUID = Depends(get_current_user_id),
    service: PoliciesService = Depends(provide_policies_service),
) -> PolicyAffiliateRemovalResponse:
    """Take an affiliate off the policy; an owner's dependents go with them."""
    return await service.remove_policy_affiliate(user_id, policy_id, affiliate_id, data)
