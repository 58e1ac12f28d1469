"""
Insurer Invoices API Endpoints.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.api.deps import Pagination, get_current_user_id, get_pagination, provide_invoices_service
from src.core.enums import InvoiceStatus, PaymentStatus
from src.schemas.invoice import (
    InvoiceCreate,
    InvoiceDetailResponse,
    InvoiceListResponse,
    InvoiceUpdate,
)
from src.services.invoices_service import InvoicesService

router = APIRouter(
    prefix="/invoices",
    tags=["invoices"],
)


@router.post(
    "",
    response_model=InvoiceDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    data: InvoiceCreate,
    user_id: UUID = Depends(get_current_user_id),
    service: InvoicesService = Depends(provide_invoices_service),
) -> InvoiceDetailResponse:
    """Register an insurer invoice in PENDING."""
    return await service.create_invoice(user_id, data)


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = None,
    client_id: Optional[UUID] = None,
    insurer_id: Optional[UUID] = None,
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    pagination: Pagination = Depends(get_pagination),
    user_id: UUID = Depends(get_current_user_id),
    service: InvoicesService = Depends(provide_invoices_service),
) -> InvoiceListResponse:
    return await service.list_invoices(
        user_id,
        status=status_filter,
        payment_status=payment_status,
        client_id=client_id,
        insurer_id=insurer_id,
        search=search,
        skip=pagination.skip,
        limit=pagination.limit,
    )


@router.get("/{invoice_id}", response_model=InvoiceDetailResponse)
async def get_invoice(
    invoice_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    service: InvoicesService = Depends(provide_invoices_service),
) -> InvoiceDetailResponse:
    return await service.get_invoice_detail(user_id, invoice_id)


@router.patch("/{invoice_id}", response_model=InvoiceDetailResponse)
async def update_invoice(
    invoice_id: UUID,
    data: InvoiceUpdate,
    user_id: UUID = Depends(get_current_user_id),
    service: InvoicesService = Depends(provide_invoices_service),
) -> InvoiceDetailResponse:
    """Edit an invoice; ``status`` requests a transition."""
    return await service.update_invoice(user_id, invoice_id, data.to_updates())
