"""
Appointment management API endpoints
"""
import datetime
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, get_clock
from app.core.error_handling import ValidationException
from app.models import AppointmentStatus
from app.schemas.appointment import (
    AppointmentCreate,
    AppointmentUpdate,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AppointmentCancel,
    TransitionCheck,
    TransitionCheckResponse,
    TransitionOption,
    SlotCheckResponse,
    SlotResponse,
    QueueResponse,
)
from app.services import appointment_workflow as workflow
from app.services.appointment_service import appointment_service
from app.services.queue_service import build_queue
from app.services.slot_service import (
    available_slots,
    check_slot_availability,
    load_day_snapshot,
    normalize_time,
)
from database import get_async_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


@router.get("", response_model=List[AppointmentResponse])
async def list_appointments(
    db: AsyncSession = Depends(get_async_session),
    date: Optional[datetime.date] = Query(None),
    doctor_id: Optional[int] = Query(None),
    status: Optional[AppointmentStatus] = Query(None),
):
    """
    List appointments with optional filters
    """
    return await appointment_service.get_all(db, date=date, doctor_id=doctor_id, status=status)


@router.get("/queue", response_model=QueueResponse)
async def get_patient_queue(
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Today's queue: waiting patients first, then in consultation, then booked
    """
    now = clock.now()
    appointments = await appointment_service.get_by_date(db, now.date())
    return QueueResponse(date=now.date(), entries=build_queue(appointments, now))


@router.get("/slots/check", response_model=SlotCheckResponse)
async def check_slot(
    doctor_id: int = Query(..., description="Doctor ID"),
    date: datetime.date = Query(..., description="Date in YYYY-MM-DD format"),
    time: str = Query(..., description="Time in HH:MM format"),
    exclude_appointment_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Check whether a doctor's slot is free
    """
    try:
        time = normalize_time(time)
    except ValueError as e:
        raise ValidationException(str(e), {"field": "time", "value": time})

    available = await check_slot_availability(db, doctor_id, date, time, exclude_appointment_id)
    return SlotCheckResponse(doctor_id=doctor_id, scheduled_date=date, scheduled_time=time, available=available)


@router.get("/slots/available", response_model=List[SlotResponse])
async def get_available_slots(
    doctor_id: int = Query(..., description="Doctor ID"),
    date: datetime.date = Query(..., description="Date in YYYY-MM-DD format"),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Get the slot grid for a doctor on a date, each slot flagged free or taken
    """
    appointments = await load_day_snapshot(db, doctor_id, date)
    return available_slots(appointments, doctor_id, date)


@router.post("/transitions/validate", response_model=TransitionCheckResponse)
async def validate_transition(check: TransitionCheck):
    """
    Dry-run a status change without touching any appointment
    """
    return TransitionCheckResponse(
        current=check.current,
        target=check.target,
        allowed=workflow.can_transition(check.current, check.target),
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    db: AsyncSession = Depends(get_async_session),
):
    return await appointment_service.get_by_id(db, appointment_id)


@router.get("/{appointment_id}/transitions", response_model=List[TransitionOption])
async def get_allowed_transitions(
    appointment_id: int,
    db: AsyncSession = Depends(get_async_session),
):
    """
    Actions the front desk may take on this appointment right now
    """
    appointment = await appointment_service.get_by_id(db, appointment_id)
    return [
        TransitionOption(status=target, label=label)
        for target, label in workflow.allowed_transitions(appointment.status)
    ]


@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment_in: AppointmentCreate,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Book a new appointment; the slot must be free
    """
    return await appointment_service.create(db, appointment_in, clock)


@router.put("/{appointment_id}", response_model=AppointmentResponse)
async def update_appointment(
    appointment_id: int,
    appointment_in: AppointmentUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    return await appointment_service.update(db, appointment_id, appointment_in)


@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: int,
    status_update: AppointmentStatusUpdate,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Update appointment status (check-in, start consultation, complete, cancel, no-show)
    """
    return await appointment_service.update_status(
        db, appointment_id, status_update.status, clock, reason=status_update.reason
    )


@router.post("/{appointment_id}/arrive", response_model=AppointmentResponse)
async def mark_arrived(
    appointment_id: int,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    return await appointment_service.mark_arrived(db, appointment_id, clock)


@router.post("/{appointment_id}/start", response_model=AppointmentResponse)
async def start_consultation(
    appointment_id: int,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    return await appointment_service.start_consultation(db, appointment_id, clock)


@router.post("/{appointment_id}/complete", response_model=AppointmentResponse)
async def complete_consultation(
    appointment_id: int,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    return await appointment_service.complete_consultation(db, appointment_id, clock)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    appointment_id: int,
    cancel_in: Optional[AppointmentCancel] = None,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    """
    Cancel a booked or waiting appointment, freeing its slot
    """
    reason = cancel_in.reason if cancel_in else None
    return await appointment_service.cancel(db, appointment_id, reason=reason, clock=clock)


@router.post("/{appointment_id}/no-show", response_model=AppointmentResponse)
async def mark_no_show(
    appointment_id: int,
    db: AsyncSession = Depends(get_async_session),
    clock: Clock = Depends(get_clock),
):
    return await appointment_service.mark_no_show(db, appointment_id, clock)
