"""
Claims API Endpoints.

Provides:
- Claim filing, listing and detail
- Claim edits and status transitions
- Provider invoices of a claim
- Claim audit history
- Claim form lookups (affiliates, patients, assignable policies)

Error kinds raised by the service are HTTPException subclasses and reach
the client with their own status code.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import Pagination, get_current_user_id, get_pagination, provide_claims_service
from src.core.enums import ClaimStatus
from src.schemas.affiliate import AvailableAffiliate, AvailablePatient
from src.schemas.audit import AuditLogListResponse
from src.schemas.claim import (
    ClaimCreate,
    ClaimDetailResponse,
    ClaimInvoiceCreate,
    ClaimInvoiceResponse,
    ClaimInvoiceUpdate,
    ClaimListResponse,
    ClaimUpdate,
)
from src.schemas.policy import AvailablePolicy
from src.services.claims_service import ClaimsService

router = APIRouter(
    prefix="/claims",
    tags=["claims"],
)


# =============================================================================
# Claims
# =============================================================================


@router.post(
    "",
    response_model=ClaimDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_claim(
    data: ClaimCreate,
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> ClaimDetailResponse:
    """File a new claim in DRAFT."""
    return await service.create_claim(user_id, data)


@router.get("", response_model=ClaimListResponse)
async def list_claims(
    status_filter: Optional[ClaimStatus] = Query(None, alias="status"),
    client_id: Optional[UUID] = None,
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    pagination: Pagination = Depends(get_pagination),
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> ClaimListResponse:
    """List claims visible to the caller."""
    return await service.list_claims(
        user_id,
        status=status_filter,
        client_id=client_id,
        search=search,
        skip=pagination.skip,
        limit=pagination.limit,
    )


# =============================================================================
# Claim Form Lookups
# =============================================================================


@router.get("/lookups/affiliates", response_model=list[AvailableAffiliate])
async def list_available_affiliates(
    client_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> list[AvailableAffiliate]:
    """Owners of a client a claim can be filed for."""
    return await service.get_available_affiliates(user_id, client_id)


@router.get("/lookups/patients", response_model=list[AvailablePatient])
async def list_available_patients(
    affiliate_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> list[AvailablePatient]:
    """The affiliate and their active dependents."""
    return await service.get_available_patients(user_id, affiliate_id)


@router.get("/{claim_id}", response_model=ClaimDetailResponse)
async def get_claim(
    claim_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> ClaimDetailResponse:
    return await service.get_claim_detail(user_id, claim_id)


@router.patch("/{claim_id}", response_model=ClaimDetailResponse)
async def update_claim(
    claim_id: UUID,
    data: ClaimUpdate,
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> ClaimDetailResponse:
    """
    Edit a claim.

    Send ``status`` to request a transition; fields it requires may be sent
    in the same request.
    """
    return await service.update_claim(user_id, claim_id, data.to_updates())


@router.get("/{claim_id}/available-policies", response_model=list[AvailablePolicy])
async def list_available_policies(
    claim_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> list[AvailablePolicy]:
    """Active policies the claim's affiliate is covered by."""
    return await service.get_available_policies(user_id, claim_id)


@router.get("/{claim_id}/audit-logs", response_model=AuditLogListResponse)
async def get_claim_audit_logs(
    claim_id: UUID,
    pagination: Pagination = Depends(get_pagination),
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> AuditLogListResponse:
    return await service.get_claim_audit_logs(
        user_id, claim_id, skip=pagination.skip, limit=pagination.limit
    )


# =============================================================================
# Claim Invoices
# =============================================================================


@router.post(
    "/{claim_id}/invoices",
    response_model=ClaimInvoiceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_claim_invoice(
    claim_id: UUID,
    data: ClaimInvoiceCreate,
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> ClaimInvoiceResponse:
    return await service.add_claim_invoice(user_id, claim_id, data)


@router.patch("/{claim_id}/invoices/{invoice_id}", response_model=ClaimInvoiceResponse)
async def update_claim_invoice(
    claim_id: UUID,
    invoice_id: UUID,
    data: ClaimInvoiceUpdate,
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> ClaimInvoiceResponse:
    return await service.update_claim_invoice(user_id, claim_id, invoice_id, data.to_updates())


@router.delete(
    "/{claim_id}/invoices/{invoice_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_claim_invoice(
    claim_id: UUID,
    invoice_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: ClaimsService = Depends(provide_claims_service),
) -> None:
    await service.remove_claim_invoice(user_id, claim_id, invoice_id)
