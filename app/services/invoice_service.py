"""
Invoice Service
Persistence for invoices; every amount change goes through the invoice engine.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.error_handling import NotFoundException
from app.models import Appointment, Patient
from app.models.financial import DiscountType, Invoice, InvoiceStatus, Payment
from app.schemas.invoice import InvoiceCreate, InvoiceItemCreate, PaymentCreate
from app.services import invoice_engine as engine
from app.services.numbering import next_number
from config import settings

logger = logging.getLogger(__name__)


class InvoiceService:
    """Service for invoice persistence"""

    @staticmethod
    async def get_all(db: AsyncSession, status: Optional[InvoiceStatus] = None) -> List[Invoice]:
        query = select(Invoice)
        if status:
            query = query.filter(Invoice.status == status)
        query = query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_by_id(db: AsyncSession, invoice_id: int) -> Invoice:
        query = (
            select(Invoice)
            .filter(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundException("Invoice not found", {"invoice_id": invoice_id})
        return invoice

    @staticmethod
    async def create(db: AsyncSession, data: InvoiceCreate, clock: Clock = system_clock) -> Invoice:
        """
        Create an invoice with its initial items and discount.

        DRAFT without items, PENDING once the first item is on it.
        """
        patient = await db.get(Patient, data.patient_id)
        if not patient or patient.deleted_at is not None:
            raise NotFoundException("Patient not found", {"patient_id": data.patient_id})
        if data.appointment_id is not None and not await db.get(Appointment, data.appointment_id):
            raise NotFoundException("Appointment not found", {"appointment_id": data.appointment_id})

        tax_rate = data.tax_rate if data.tax_rate is not None else Decimal(str(settings.DEFAULT_TAX_RATE))
        invoice = Invoice(
            patient_id=data.patient_id,
            appointment_id=data.appointment_id,
            discount_type=None,
            discount_value=Decimal("0"),
            tax_rate=tax_rate,
            is_cancelled=False,
            paid_at=None,
            notes=data.notes,
            created_at=clock.now(),
        )
        engine.recalculate(invoice)

        # Build the whole invoice in memory first so a bad line adds nothing
        for item in data.items:
            engine.add_item(invoice, item.description, item.quantity, item.unit_price, item.service_id)
        if data.discount_type:
            engine.apply_discount(invoice, data.discount_type, data.discount_value)

        try:
            invoice.invoice_number = await next_number(db, "invoice", clock.today())
            db.add(invoice)
            await db.commit()
        except Exception as e:
            logger.error(f"Error creating invoice: {str(e)}", exc_info=True)
            await db.rollback()
            raise

        logger.info(f"Created invoice {invoice.invoice_number} total={invoice.total_amount} status={invoice.status.value}")
        return await InvoiceService.get_by_id(db, invoice.id)

    @staticmethod
    async def add_item(db: AsyncSession, invoice_id: int, item: InvoiceItemCreate) -> Invoice:
        invoice = await InvoiceService.get_by_id(db, invoice_id)
        engine.add_item(invoice, item.description, item.quantity, item.unit_price, item.service_id)
        await db.commit()
        return await InvoiceService.get_by_id(db, invoice_id)

    @staticmethod
    async def apply_discount(
        db: AsyncSession,
        invoice_id: int,
        discount_type: Optional[DiscountType],
        value: Decimal,
        clock: Clock = system_clock,
    ) -> Invoice:
        invoice = await InvoiceService.get_by_id(db, invoice_id)
        engine.apply_discount(invoice, discount_type, value, now=clock.now())
        await db.commit()
        return await InvoiceService.get_by_id(db, invoice_id)

    @staticmethod
    async def add_payment(
        db: AsyncSession,
        invoice_id: int,
        data: PaymentCreate,
        clock: Clock = system_clock,
    ) -> Payment:
        """Record a payment; the caller reloads the invoice for its new totals"""
        invoice = await InvoiceService.get_by_id(db, invoice_id)

        # A rejected payment rolls back with the request, counter included
        payment_no = await next_number(db, "payment", clock.today())
        payment = engine.record_payment(
            invoice,
            data.amount,
            data.method,
            data.reference,
            data.notes,
            paid_at=clock.now(),
            payment_no=payment_no,
        )
        await db.commit()

        logger.info(
            f"Recorded payment {payment.payment_no} of {payment.amount} on invoice "
            f"{invoice.invoice_number} (balance {invoice.balance_amount}, {invoice.status.value})"
        )
        return payment

    @staticmethod
    async def cancel(db: AsyncSession, invoice_id: int, clock: Clock = system_clock) -> Invoice:
        invoice = await InvoiceService.get_by_id(db, invoice_id)
        engine.cancel_invoice(invoice, now=clock.now())
        await db.commit()
        logger.info(f"Cancelled invoice {invoice.invoice_number}")
        return await InvoiceService.get_by_id(db, invoice_id)


# Global service instance
invoice_service = InvoiceService()
