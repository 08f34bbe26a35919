"""
Today's patient queue for the front desk
"""
import datetime
from typing import Iterable, List

from app.models import Appointment, AppointmentStatus
from app.services.reminder_service import minutes_between

QUEUE_ORDER = {
    AppointmentStatus.WAITING: 1,
    AppointmentStatus.IN_PROGRESS: 2,
    AppointmentStatus.SCHEDULED: 3,
    AppointmentStatus.COMPLETED: 4,
    AppointmentStatus.CANCELLED: 5,
}


def wait_time(appointment: Appointment, now: datetime.datetime):
    """Minutes since arrival for patients still waiting, else None"""
    if appointment.status == AppointmentStatus.WAITING and appointment.arrived_at:
        return minutes_between(now, appointment.arrived_at)
    return None


def build_queue(appointments: Iterable[Appointment], now: datetime.datetime) -> List[dict]:
    today = now.date()
    entries = [
        {
            "id": appointment.id,
            "appointment_no": appointment.appointment_no,
            "patient_id": appointment.patient_id,
            "patient_name": appointment.patient_name,
            "doctor_id": appointment.doctor_id,
            "doctor_name": appointment.doctor_name,
            "scheduled_time": appointment.scheduled_time,
            "status": appointment.status,
            "arrived_at": appointment.arrived_at,
            "started_at": appointment.started_at,
            "wait_time": wait_time(appointment, now),
        }
        for appointment in appointments
        if appointment.scheduled_date == today
    ]
    entries.sort(key=lambda e: (QUEUE_ORDER.get(e["status"], 99), e["scheduled_time"]))
    return entries
