"""
Front desk dashboard counters
"""
import datetime
import logging
from typing import List

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.models import Appointment, AppointmentStatus, Doctor, Patient
from app.models.financial import Invoice, InvoiceStatus
from app.services.invoice_engine import ZERO, money

logger = logging.getLogger(__name__)

OPEN_INVOICE_STATUSES = (InvoiceStatus.PENDING, InvoiceStatus.PARTIALLY_PAID)


async def get_dashboard_stats(db: AsyncSession, clock: Clock = system_clock) -> dict:
    """
    Counters for the front desk home screen.

    Revenue is the total of invoices settled today; pending invoices are those
    with an outstanding balance.
    """
    today = clock.today()
    day_start = datetime.datetime.combine(today, datetime.time.min)
    day_end = day_start + datetime.timedelta(days=1)

    revenue_result = await db.execute(
        select(func.coalesce(func.sum(Invoice.total_amount), 0)).filter(
            and_(
                Invoice.status == InvoiceStatus.PAID,
                Invoice.paid_at >= day_start,
                Invoice.paid_at < day_end,
            )
        )
    )
    today_revenue = money(revenue_result.scalar() or 0)

    appointments_result = await db.execute(
        select(func.count(Appointment.id)).filter(Appointment.scheduled_date == today)
    )
    today_appointments = appointments_result.scalar() or 0

    queue_result = await db.execute(
        select(func.count(Appointment.id)).filter(
            and_(
                Appointment.scheduled_date == today,
                Appointment.status == AppointmentStatus.WAITING,
            )
        )
    )
    patients_in_queue = queue_result.scalar() or 0

    patients_result = await db.execute(
        select(func.count(Patient.id)).filter(Patient.deleted_at.is_(None))
    )
    total_patients = patients_result.scalar() or 0

    doctors_result = await db.execute(
        select(func.count(Doctor.id)).filter(
            and_(Doctor.is_active.is_(True), Doctor.deleted_at.is_(None))
        )
    )
    active_doctors = doctors_result.scalar() or 0

    invoices_result = await db.execute(
        select(func.count(Invoice.id)).filter(Invoice.status.in_(OPEN_INVOICE_STATUSES))
    )
    pending_invoices = invoices_result.scalar() or 0

    logger.debug(
        f"Dashboard stats for {today}: revenue={today_revenue} appointments={today_appointments} "
        f"queue={patients_in_queue}"
    )
    return {
        "date": today,
        "today_revenue": today_revenue,
        "today_appointments": today_appointments,
        "patients_in_queue": patients_in_queue,
        "total_patients": total_patients,
        "active_doctors": active_doctors,
        "pending_invoices": pending_invoices,
    }


async def get_revenue_chart(db: AsyncSession, clock: Clock = system_clock, days: int = 30) -> List[dict]:
    """
    Daily revenue for the last ``days`` days, oldest first, today included.

    A day's revenue is the total of invoices that became PAID on it; days
    without revenue are present with zero.
    """
    today = clock.today()
    first_day = today - datetime.timedelta(days=days - 1)
    window_start = datetime.datetime.combine(first_day, datetime.time.min)
    window_end = datetime.datetime.combine(today, datetime.time.min) + datetime.timedelta(days=1)

    result = await db.execute(
        select(Invoice.paid_at, Invoice.total_amount).filter(
            and_(
                Invoice.status == InvoiceStatus.PAID,
                Invoice.paid_at >= window_start,
                Invoice.paid_at < window_end,
            )
        )
    )
    revenue = {first_day + datetime.timedelta(days=offset): ZERO for offset in range(days)}
    for paid_at, total_amount in result.all():
        revenue[paid_at.date()] += money(total_amount)

    return [{"date": day, "revenue": amount} for day, amount in revenue.items()]
