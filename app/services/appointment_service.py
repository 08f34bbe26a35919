"""
Appointment Service
Persistence for appointments: reads, booking with slot check, field updates
and status changes routed through the state machine.
"""
import datetime
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import Clock, system_clock
from app.core.error_handling import NotFoundException, InvalidTransition
from app.models import Appointment, AppointmentStatus, Doctor, Patient
from app.schemas.appointment import AppointmentCreate, AppointmentUpdate
from app.services import appointment_workflow as workflow
from app.services.numbering import next_number
from app.services.slot_service import ensure_slot_available

logger = logging.getLogger(__name__)

# Fields that may be edited outside the lifecycle
EDITABLE_FIELDS = (
    "patient_id", "doctor_id", "scheduled_date", "scheduled_time",
    "duration", "reason", "symptoms", "diagnosis", "notes",
)


class AppointmentService:
    """Service for appointment persistence"""

    @staticmethod
    async def get_all(
        db: AsyncSession,
        date: Optional[datetime.date] = None,
        doctor_id: Optional[int] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        query = select(Appointment)
        if date:
            query = query.filter(Appointment.scheduled_date == date)
        if doctor_id:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if status:
            query = query.filter(Appointment.status == status)
        query = query.order_by(Appointment.scheduled_date, Appointment.scheduled_time, Appointment.id)

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_by_date(db: AsyncSession, date: datetime.date) -> List[Appointment]:
        return await AppointmentService.get_all(db, date=date)

    @staticmethod
    async def get_by_id(db: AsyncSession, appointment_id: int) -> Appointment:
        query = (
            select(Appointment)
            .filter(Appointment.id == appointment_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        appointment = result.scalar_one_or_none()
        if not appointment:
            raise NotFoundException("Appointment not found", {"appointment_id": appointment_id})
        return appointment

    @staticmethod
    async def _ensure_references(db: AsyncSession, patient_id: Optional[int], doctor_id: Optional[int]):
        if patient_id is not None:
            patient = await db.get(Patient, patient_id)
            if not patient or patient.deleted_at is not None:
                raise NotFoundException("Patient not found", {"patient_id": patient_id})
        if doctor_id is not None:
            doctor = await db.get(Doctor, doctor_id)
            if not doctor or doctor.deleted_at is not None or not doctor.is_active:
                raise NotFoundException("Doctor not found", {"doctor_id": doctor_id})

    @staticmethod
    async def create(db: AsyncSession, data: AppointmentCreate, clock: Clock = system_clock) -> Appointment:
        """Book a new appointment in SCHEDULED after checking the slot"""
        await AppointmentService._ensure_references(db, data.patient_id, data.doctor_id)
        await ensure_slot_available(db, data.doctor_id, data.scheduled_date, data.scheduled_time)

        try:
            appointment = Appointment(
                appointment_no=await next_number(db, "appointment", clock.today()),
                patient_id=data.patient_id,
                doctor_id=data.doctor_id,
                scheduled_date=data.scheduled_date,
                scheduled_time=data.scheduled_time,
                duration=data.duration,
                reason=data.reason,
                symptoms=data.symptoms,
                notes=data.notes,
                status=AppointmentStatus.SCHEDULED,
                created_at=clock.now(),
            )
            db.add(appointment)
            await db.commit()
        except Exception as e:
            logger.error(f"Error creating appointment: {str(e)}", exc_info=True)
            await db.rollback()
            raise

        logger.info(
            f"Created appointment {appointment.appointment_no} for doctor {data.doctor_id} "
            f"on {data.scheduled_date} at {data.scheduled_time}"
        )
        return await AppointmentService.get_by_id(db, appointment.id)

    @staticmethod
    async def update(db: AsyncSession, appointment_id: int, data: AppointmentUpdate) -> Appointment:
        """Edit non-status fields; moving the slot re-runs the conflict check"""
        appointment = await AppointmentService.get_by_id(db, appointment_id)
        changes = data.model_dump(exclude_unset=True)
        changes = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS and value is not None}

        if appointment.status in workflow.TERMINAL_STATUSES and changes:
            raise InvalidTransition(
                f"Cannot edit a {appointment.status.value} appointment",
                field="status",
                value=appointment.status,
            )

        await AppointmentService._ensure_references(db, changes.get("patient_id"), changes.get("doctor_id"))

        doctor_id = changes.get("doctor_id", appointment.doctor_id)
        scheduled_date = changes.get("scheduled_date", appointment.scheduled_date)
        scheduled_time = changes.get("scheduled_time", appointment.scheduled_time)
        if (doctor_id, scheduled_date, scheduled_time) != (
            appointment.doctor_id, appointment.scheduled_date, appointment.scheduled_time
        ):
            await ensure_slot_available(db, doctor_id, scheduled_date, scheduled_time, exclude_appointment_id=appointment.id)

        for key, value in changes.items():
            setattr(appointment, key, value)

        await db.commit()
        return await AppointmentService.get_by_id(db, appointment_id)

    @staticmethod
    async def update_status(
        db: AsyncSession,
        appointment_id: int,
        status: AppointmentStatus,
        clock: Clock = system_clock,
        reason: Optional[str] = None,
    ) -> Appointment:
        """Apply a lifecycle transition and persist it"""
        appointment = await AppointmentService.get_by_id(db, appointment_id)
        workflow.apply_status(appointment, status, now=clock.now(), reason=reason)
        await db.commit()
        return await AppointmentService.get_by_id(db, appointment_id)

    @staticmethod
    async def mark_arrived(db: AsyncSession, appointment_id: int, clock: Clock = system_clock) -> Appointment:
        return await AppointmentService.update_status(db, appointment_id, AppointmentStatus.WAITING, clock)

    @staticmethod
    async def start_consultation(db: AsyncSession, appointment_id: int, clock: Clock = system_clock) -> Appointment:
        return await AppointmentService.update_status(db, appointment_id, AppointmentStatus.IN_PROGRESS, clock)

    @staticmethod
    async def complete_consultation(db: AsyncSession, appointment_id: int, clock: Clock = system_clock) -> Appointment:
        return await AppointmentService.update_status(db, appointment_id, AppointmentStatus.COMPLETED, clock)

    @staticmethod
    async def mark_no_show(db: AsyncSession, appointment_id: int, clock: Clock = system_clock) -> Appointment:
        return await AppointmentService.update_status(db, appointment_id, AppointmentStatus.NO_SHOW, clock)

    @staticmethod
    async def cancel(
        db: AsyncSession,
        appointment_id: int,
        reason: Optional[str] = None,
        clock: Clock = system_clock,
    ) -> Appointment:
        return await AppointmentService.update_status(
            db, appointment_id, AppointmentStatus.CANCELLED, clock, reason=reason
        )

    @staticmethod
    async def get_today(db: AsyncSession, clock: Clock = system_clock) -> List[Appointment]:
        return await AppointmentService.get_by_date(db, clock.today())


# Global service instance
appointment_service = AppointmentService()
