"""
Invoice and payment API endpoints
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, get_clock
from app.models.financial import InvoiceStatus
from app.schemas.invoice import (
    DiscountUpdate,
    InvoiceCreate,
    InvoiceItemCreate,
    InvoicePreviewRequest,
    InvoiceResponse,
    InvoiceTotalsResponse,
    PaymentCreate,
)
from app.services.invoice_engine import preview_totals
from app.services.invoice_service import invoice_service
from database import get_async_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    db: AsyncSession = Depends(get_async_session),
    status: Optional[InvoiceStatus] = Query(None),
):
    return await invoice_service.get_all(db, status=status)


@router.post("/preview", response_model=InvoiceTotalsResponse)
async def preview_invoice(preview_in: InvoicePreviewRequest):
    """
    Live totals for the billing form; nothing is stored
    """
    return preview_totals(
        preview_in.items,
        preview_in.discount_type,
        preview_in.discount_value,
        preview_in.tax_rate,
        preview_in.payments,
    )


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_async_session),
):
    return await invoice_service.get_by_id(db, invoice_id)


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_in: InvoiceCreate,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Create an invoice with its line items and optional discount
    """
    return await invoice_service.create(db, invoice_in, clock)


@router.post("/{invoice_id}/items", response_model=InvoiceResponse)
async def add_invoice_item(
    invoice_id: int,
    item_in: InvoiceItemCreate,
    db: AsyncSession = Depends(get_async_session),
):
    return await invoice_service.add_item(db, invoice_id, item_in)


@router.put("/{invoice_id}/discount", response_model=InvoiceResponse)
async def update_invoice_discount(
    invoice_id: int,
    discount_in: DiscountUpdate,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Set or clear (``discount_type: null``) the invoice discount
    """
    return await invoice_service.apply_discount(
        db, invoice_id, discount_in.discount_type, discount_in.discount_value, clock
    )


@router.post("/{invoice_id}/payments", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def record_invoice_payment(
    invoice_id: int,
    payment_in: PaymentCreate,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Record a payment and return the invoice with its new balance
    """
    await invoice_service.add_payment(db, invoice_id, payment_in, clock)
    return await invoice_service.get_by_id(db, invoice_id)


@router.post("/{invoice_id}/cancel", response_model=InvoiceResponse)
async def cancel_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    return await invoice_service.cancel(db, invoice_id, clock)
