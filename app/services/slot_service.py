"""
Slot Conflict Resolver

A slot is a (doctor, date, "HH:MM") triple. Only exact-slot collisions are
detected: a 60 minute booking at 09:00 does not block 09:30.
"""
import datetime
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.error_handling import SlotConflict
from app.models import Appointment, AppointmentStatus
from config import settings

logger = logging.getLogger(__name__)

# Statuses that free the slot again
RELEASED_STATUSES = (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW)


def normalize_time(value) -> str:
    """'9:5' / time(9, 5) / '09:05:00' -> '09:05'"""
    if isinstance(value, datetime.time):
        return value.strftime("%H:%M")
    text = str(value).strip()
    parts = text.split(":")
    if len(parts) < 2 or len(parts) > 3:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return f"{hours:02d}:{minutes:02d}"


def find_conflict(
    appointments: Iterable[Appointment],
    doctor_id: int,
    date: datetime.date,
    time: str,
    exclude_appointment_id: Optional[int] = None,
) -> Optional[Appointment]:
    for appointment in appointments:
        if exclude_appointment_id is not None and appointment.id == exclude_appointment_id:
            continue
        if appointment.status in RELEASED_STATUSES:
            continue
        if (
            appointment.doctor_id == doctor_id
            and appointment.scheduled_date == date
            and appointment.scheduled_time == time
        ):
            return appointment
    return None


def is_slot_available(
    appointments: Iterable[Appointment],
    doctor_id: int,
    date: datetime.date,
    time: str,
    exclude_appointment_id: Optional[int] = None,
) -> bool:
    """Pure check against an appointment snapshot"""
    return find_conflict(appointments, doctor_id, date, time, exclude_appointment_id) is None


def slot_grid(
    start: Optional[str] = None,
    end: Optional[str] = None,
    step_minutes: Optional[int] = None,
) -> List[str]:
    """Bookable times from start to end inclusive, e.g. 08:00 ... 18:00"""
    start = normalize_time(start or settings.SLOT_GRID_START)
    end = normalize_time(end or settings.SLOT_GRID_END)
    step = datetime.timedelta(minutes=step_minutes or settings.SLOT_MINUTES)

    day = datetime.date(2000, 1, 1)
    current = datetime.datetime.combine(day, datetime.time.fromisoformat(start))
    last = datetime.datetime.combine(day, datetime.time.fromisoformat(end))
    times = []
    while current <= last:
        times.append(current.strftime("%H:%M"))
        current += step
    return times


def available_slots(
    appointments: Iterable[Appointment],
    doctor_id: int,
    date: datetime.date,
    times: Optional[List[str]] = None,
) -> List[dict]:
    appointments = list(appointments)
    return [
        {"time": time, "available": is_slot_available(appointments, doctor_id, date, time)}
        for time in (times or slot_grid())
    ]


async def load_day_snapshot(db: AsyncSession, doctor_id: int, date: datetime.date) -> List[Appointment]:
    """Fresh read of one doctor's appointments for a day"""
    query = select(Appointment).filter(
        and_(
            Appointment.doctor_id == doctor_id,
            Appointment.scheduled_date == date,
        )
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def check_slot_availability(
    db: AsyncSession,
    doctor_id: int,
    date: datetime.date,
    time: str,
    exclude_appointment_id: Optional[int] = None,
) -> bool:
    appointments = await load_day_snapshot(db, doctor_id, date)
    return is_slot_available(appointments, doctor_id, date, normalize_time(time), exclude_appointment_id)


async def ensure_slot_available(
    db: AsyncSession,
    doctor_id: int,
    date: datetime.date,
    time: str,
    exclude_appointment_id: Optional[int] = None,
) -> None:
    """Raise SlotConflict when the slot is already taken"""
    time = normalize_time(time)
    appointments = await load_day_snapshot(db, doctor_id, date)
    conflict = find_conflict(appointments, doctor_id, date, time, exclude_appointment_id)
    if conflict is not None:
        logger.warning(
            f"Slot conflict for doctor {doctor_id} on {date} at {time} "
            f"(appointment {conflict.appointment_no})"
        )
        raise SlotConflict(
            "Selected time slot is not available",
            field="scheduled_time",
            value=time,
            doctor_id=doctor_id,
            scheduled_date=date,
            conflicting_appointment_id=conflict.id,
        )
