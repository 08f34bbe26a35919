"""
Invoice Financial Engine

Computes the monetary fields of an invoice (subtotal, discount, tax, total,
paid, balance) and derives its status from them. The pure functions
(compute_totals, derive_status, preview_totals) are usable for live preview;
the mutators (add_item, apply_discount, record_payment, cancel_invoice)
validate first and only then touch the invoice, so a rejected call leaves it
exactly as it was.

Rounding: every derived amount is quantized half-up to the currency minor
unit (0.01), and total/balance are computed from the already rounded parts so
``total == subtotal - discount + tax`` and ``balance == total - paid`` hold
exactly.
"""
import datetime
import logging
from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Optional, Any

from app.core.error_handling import InvalidAmount, InvoiceLocked, OverpaymentNotAllowed
from app.models.financial import (
    DiscountType, Invoice, InvoiceItem, InvoiceStatus, Payment, PaymentMethod,
)
from config import settings

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
RATE = Decimal("0.0001")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

LOCKED_STATUSES = (InvoiceStatus.PAID, InvoiceStatus.CANCELLED)


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Convert user input to Decimal without going through binary floats"""
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidAmount(f"{field} is not a number", field=field, value=value)
    if not result.is_finite():
        raise InvalidAmount(f"{field} is not a finite number", field=field, value=value)
    return result


def money(value: Any) -> Decimal:
    return to_decimal(value if value is not None else 0).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal

    def as_dict(self):
        return asdict(self)


def line_total(quantity: Any, unit_price: Any) -> Decimal:
    return money(to_decimal(quantity, "quantity") * to_decimal(unit_price, "unit_price"))


def discount_for(subtotal: Decimal, discount_type: Optional[DiscountType], discount_value: Any) -> Decimal:
    """Discount amount for a normalized discount specification"""
    if not discount_type:
        return ZERO
    value = to_decimal(discount_value or 0, "discount_value")
    if discount_type == DiscountType.PERCENTAGE:
        return money(subtotal * value)
    return money(value)


def compute_totals(
    items: Iterable[Any],
    discount_type: Optional[DiscountType] = None,
    discount_value: Any = 0,
    tax_rate: Any = 0,
    payments: Iterable[Any] = (),
) -> InvoiceTotals:
    """
    Pure totals computation.

    ``items`` need ``quantity`` and ``unit_price`` attributes (or keys);
    ``payments`` may be amounts or objects/dicts with an ``amount``.
    Percentage discounts are expected as a fraction (see normalize_discount).
    """
    subtotal = sum((line_total(_get(item, "quantity"), _get(item, "unit_price")) for item in items), ZERO)
    discount_amount = discount_for(subtotal, discount_type, discount_value)
    taxable = subtotal - discount_amount
    tax_amount = money(taxable * to_decimal(tax_rate or 0, "tax_rate"))
    total_amount = taxable + tax_amount
    paid_amount = sum((money(_amount(p)) for p in payments), ZERO)
    return InvoiceTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total_amount=total_amount,
        paid_amount=paid_amount,
        balance_amount=total_amount - paid_amount,
    )


def derive_status(totals: InvoiceTotals, cancelled: bool = False, has_items: bool = True) -> InvoiceStatus:
    """Invoice status as a pure function of its amounts and the cancel flag"""
    if cancelled:
        return InvoiceStatus.CANCELLED
    if totals.balance_amount <= 0 and totals.paid_amount > 0:
        return InvoiceStatus.PAID
    if 0 < totals.paid_amount < totals.total_amount:
        return InvoiceStatus.PARTIALLY_PAID
    if totals.paid_amount == 0 and has_items:
        return InvoiceStatus.PENDING
    return InvoiceStatus.DRAFT


def normalize_discount(
    discount_type: Optional[DiscountType],
    value: Any,
    subtotal: Decimal,
    max_ratio: Optional[float] = None,
) -> Decimal:
    """
    Validate a discount and return the value to store.

    PERCENTAGE: always a percent in 0..100 (``1`` is 1%), stored as a
    fraction. FIXED: 0..subtotal. Either way the resulting discount may not
    exceed ``max_ratio`` of the subtotal.
    """
    if not discount_type:
        return Decimal("0")

    value = to_decimal(value, "discount_value")
    if value < 0:
        raise InvalidAmount("Discount cannot be negative", field="discount_value", value=value)

    if discount_type == DiscountType.PERCENTAGE:
        if value > HUNDRED:
            raise InvalidAmount("Percentage discount must be between 0 and 100", field="discount_value", value=value)
        normalized = (value / HUNDRED).quantize(RATE, rounding=ROUND_HALF_UP)
    else:
        if value > subtotal:
            raise InvalidAmount(
                "Fixed discount cannot exceed the subtotal",
                field="discount_value",
                value=value,
                subtotal=subtotal,
            )
        normalized = money(value)

    ratio = Decimal(str(settings.MAX_DISCOUNT_RATIO if max_ratio is None else max_ratio))
    if discount_for(subtotal, discount_type, normalized) > money(subtotal * ratio):
        raise InvalidAmount(
            "Discount exceeds the maximum allowed share of the subtotal",
            field="discount_value",
            value=value,
            max_ratio=ratio,
        )
    return normalized


def totals_of(invoice: Invoice) -> InvoiceTotals:
    return compute_totals(
        invoice.items,
        invoice.discount_type,
        invoice.discount_value,
        invoice.tax_rate,
        invoice.payments,
    )


def recalculate(invoice: Invoice, now: Optional[datetime.datetime] = None) -> InvoiceTotals:
    """
    Write derived amounts and status back onto the invoice.

    The first time the invoice reaches PAID, by payment or by discount,
    ``paid_at`` is stamped with ``now``.
    """
    totals = totals_of(invoice)
    invoice.subtotal = totals.subtotal
    invoice.discount_amount = totals.discount_amount
    invoice.tax_amount = totals.tax_amount
    invoice.total_amount = totals.total_amount
    invoice.paid_amount = totals.paid_amount
    invoice.balance_amount = totals.balance_amount
    invoice.status = derive_status(totals, bool(invoice.is_cancelled), bool(invoice.items))
    if invoice.status == InvoiceStatus.PAID and invoice.paid_at is None:
        invoice.paid_at = now or datetime.datetime.now()
    return totals


def _ensure_unlocked(invoice: Invoice, operation: str):
    status = invoice.status or InvoiceStatus.DRAFT
    if invoice.is_cancelled or status in LOCKED_STATUSES:
        raise InvoiceLocked(
            f"Cannot {operation} on a {status.value} invoice",
            field="status",
            value=status,
            invoice_id=invoice.id,
        )


def add_item(
    invoice: Invoice,
    description: str,
    quantity: Any,
    unit_price: Any,
    service_id: Optional[int] = None,
) -> InvoiceItem:
    """Append a line item and recompute the invoice"""
    _ensure_unlocked(invoice, "add items")

    qty = to_decimal(quantity, "quantity")
    if qty <= 0 or qty != qty.to_integral_value():
        raise InvalidAmount("Quantity must be a positive whole number", field="quantity", value=quantity)
    price = to_decimal(unit_price, "unit_price")
    if price < 0:
        raise InvalidAmount("Unit price cannot be negative", field="unit_price", value=unit_price)

    item = InvoiceItem(
        description=description,
        service_id=service_id,
        quantity=int(qty),
        unit_price=money(price),
        total_price=line_total(qty, money(price)),
    )
    invoice.items.append(item)

    # A FIXED discount stays valid because the subtotal only grows
    recalculate(invoice)
    return item


def apply_discount(
    invoice: Invoice,
    discount_type: Optional[DiscountType],
    value: Any,
    now: Optional[datetime.datetime] = None,
) -> InvoiceTotals:
    """
    Set (or clear, with ``discount_type=None``) the discount and recompute.

    A discount that exactly settles an already part-paid invoice makes it
    PAID as of ``now``.
    """
    _ensure_unlocked(invoice, "change the discount")

    subtotal = totals_of(invoice).subtotal
    normalized = normalize_discount(discount_type, value, subtotal)

    candidate = compute_totals(invoice.items, discount_type, normalized, invoice.tax_rate, invoice.payments)
    if candidate.balance_amount < 0 and not settings.ALLOW_OVERPAYMENT:
        raise OverpaymentNotAllowed(
            "Discount would leave the invoice overpaid",
            field="discount_value",
            value=value,
            paid_amount=candidate.paid_amount,
        )

    invoice.discount_type = discount_type
    invoice.discount_value = normalized
    return recalculate(invoice, now)


def payment_amount(amount: Any, field: str = "amount") -> Decimal:
    """A payment must be positive and in whole cents"""
    value = to_decimal(amount, field)
    if value <= 0:
        raise InvalidAmount("Payment amount must be greater than zero", field=field, value=amount)
    if value != money(value):
        raise InvalidAmount("Payment amount has more than two decimal places", field=field, value=amount)
    return value


def record_payment(
    invoice: Invoice,
    amount: Any,
    method: PaymentMethod = PaymentMethod.CASH,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    paid_at: Optional[datetime.datetime] = None,
    payment_no: Optional[str] = None,
    allow_overpayment: Optional[bool] = None,
) -> Payment:
    """
    Record a payment against the invoice.

    Overpayment policy: ``allow_overpayment`` (default ALLOW_OVERPAYMENT).
    When allowed the balance may go negative and is kept as a credit.
    """
    _ensure_unlocked(invoice, "record payments")

    value = payment_amount(amount)

    if allow_overpayment is None:
        allow_overpayment = settings.ALLOW_OVERPAYMENT
    balance = totals_of(invoice).balance_amount
    if value > balance and not allow_overpayment:
        raise OverpaymentNotAllowed(
            "Payment exceeds the outstanding balance",
            field="amount",
            value=value,
            balance_amount=balance,
        )

    paid_at = paid_at or datetime.datetime.now()
    payment = Payment(
        payment_no=payment_no,
        amount=money(value),
        method=method,
        reference=reference,
        notes=notes,
        paid_at=paid_at,
    )
    invoice.payments.append(payment)
    recalculate(invoice, paid_at)
    return payment


def cancel_invoice(invoice: Invoice, now: Optional[datetime.datetime] = None) -> Invoice:
    """Irreversibly cancel an unpaid invoice"""
    _ensure_unlocked(invoice, "cancel")
    invoice.is_cancelled = True
    invoice.cancelled_at = now or datetime.datetime.now()
    recalculate(invoice)
    return invoice


def preview_totals(
    items: Iterable[Any],
    discount_type: Optional[DiscountType] = None,
    discount_value: Any = 0,
    tax_rate: Any = None,
    payments: Iterable[Any] = (),
) -> dict:
    """
    Live preview for the billing form: validates the discount like
    apply_discount would and returns totals plus the derived status.
    """
    items = list(items)
    for item in items:
        if to_decimal(_get(item, "quantity"), "quantity") <= 0:
            raise InvalidAmount("Quantity must be greater than zero", field="quantity", value=_get(item, "quantity"))
        if to_decimal(_get(item, "unit_price"), "unit_price") < 0:
            raise InvalidAmount("Unit price cannot be negative", field="unit_price", value=_get(item, "unit_price"))
    payments = [payment_amount(_amount(p), "payments") for p in payments]

    if tax_rate is None:
        tax_rate = settings.DEFAULT_TAX_RATE
    subtotal = compute_totals(items).subtotal
    normalized = normalize_discount(discount_type, discount_value, subtotal)
    totals = compute_totals(items, discount_type, normalized, tax_rate, payments)
    result = totals.as_dict()
    result["status"] = derive_status(totals, has_items=bool(items))
    result["discount_value"] = normalized
    result["tax_rate"] = to_decimal(tax_rate, "tax_rate")
    return result


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name)


def _amount(payment: Any) -> Any:
    if isinstance(payment, (int, float, Decimal, str)):
        return payment
    return _get(payment, "amount")
