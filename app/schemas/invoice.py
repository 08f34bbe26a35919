"""
Invoice and payment schemas
"""
import datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field
from app.models.financial import DiscountType, InvoiceStatus, PaymentMethod


class InvoiceItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(1, description="Must be greater than zero")
    unit_price: Decimal = Field(..., description="Must not be negative")
    service_id: Optional[int] = None


class DiscountUpdate(BaseModel):
    discount_type: Optional[DiscountType] = None
    discount_value: Decimal = Field(Decimal("0"), description="Percent (0-100) for PERCENTAGE, amount for FIXED")


class InvoiceCreate(BaseModel):
    patient_id: int
    appointment_id: Optional[int] = None
    items: List[InvoiceItemCreate] = Field(default_factory=list)
    discount_type: Optional[DiscountType] = None
    discount_value: Decimal = Decimal("0")
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1, description="Defaults to the configured tax rate")
    notes: Optional[str] = None


class PaymentCreate(BaseModel):
    amount: Decimal = Field(..., description="Payment amount, greater than zero")
    method: PaymentMethod = PaymentMethod.CASH
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class InvoicePreviewRequest(BaseModel):
    items: List[InvoiceItemCreate] = Field(default_factory=list)
    discount_type: Optional[DiscountType] = None
    discount_value: Decimal = Decimal("0")
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    payments: List[Decimal] = Field(default_factory=list)


class InvoiceTotalsResponse(BaseModel):
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal
    discount_value: Decimal
    tax_rate: Decimal
    status: InvoiceStatus


class InvoiceItemResponse(BaseModel):
    id: int
    description: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    service_id: Optional[int] = None

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    id: int
    payment_no: str
    invoice_id: int
    amount: Decimal
    method: PaymentMethod
    reference: Optional[str] = None
    notes: Optional[str] = None
    paid_at: datetime.datetime

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    patient_id: int
    patient_name: Optional[str] = None
    appointment_id: Optional[int] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Decimal
    tax_rate: Decimal
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal
    status: InvoiceStatus
    notes: Optional[str] = None
    paid_at: Optional[datetime.datetime] = None
    cancelled_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime
    items: List[InvoiceItemResponse] = []
    payments: List[PaymentResponse] = []

    model_config = {"from_attributes": True}
