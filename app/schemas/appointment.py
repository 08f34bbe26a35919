"""
Appointment Pydantic schemas for request/response validation
"""
import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
from app.models import AppointmentStatus
from app.services.slot_service import normalize_time


class AppointmentBase(BaseModel):
    scheduled_date: datetime.date
    scheduled_time: str = Field(..., description="Local time of day, HH:MM")
    duration: int = Field(15, gt=0, le=480, description="Duration in minutes")
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def validate_time(cls, value):
        return normalize_time(value)


class AppointmentCreate(AppointmentBase):
    patient_id: int
    doctor_id: int


class AppointmentUpdate(BaseModel):
    """Non-status fields; status only changes through the lifecycle endpoints"""
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    scheduled_date: Optional[datetime.date] = None
    scheduled_time: Optional[str] = None
    duration: Optional[int] = Field(None, gt=0, le=480)
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("scheduled_time", mode="before")
    @classmethod
    def validate_time(cls, value):
        return normalize_time(value) if value is not None else None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus
    reason: Optional[str] = None


class AppointmentCancel(BaseModel):
    reason: Optional[str] = None


class TransitionCheck(BaseModel):
    current: AppointmentStatus
    target: AppointmentStatus


class TransitionCheckResponse(BaseModel):
    current: AppointmentStatus
    target: AppointmentStatus
    allowed: bool


class TransitionOption(BaseModel):
    status: AppointmentStatus
    label: str


class AppointmentResponse(BaseModel):
    id: int
    appointment_no: str
    patient_id: int
    doctor_id: int
    scheduled_date: datetime.date
    scheduled_time: str
    duration: int
    status: AppointmentStatus
    reason: Optional[str] = None
    symptoms: Optional[str] = None
    diagnosis: Optional[str] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    arrived_at: Optional[datetime.datetime] = None
    started_at: Optional[datetime.datetime] = None
    completed_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime
    updated_at: Optional[datetime.datetime] = None

    # Include related data
    patient_name: Optional[str] = None
    doctor_name: Optional[str] = None

    model_config = {"from_attributes": True}


class SlotCheckResponse(BaseModel):
    doctor_id: int
    scheduled_date: datetime.date
    scheduled_time: str
    available: bool


class SlotResponse(BaseModel):
    time: str
    available: bool


class QueueEntryResponse(BaseModel):
    id: int
    appointment_no: str
    patient_id: int
    patient_name: Optional[str] = None
    doctor_id: int
    doctor_name: Optional[str] = None
    scheduled_time: str
    status: AppointmentStatus
    arrived_at: Optional[datetime.datetime] = None
    started_at: Optional[datetime.datetime] = None
    wait_time: Optional[int] = None


class QueueResponse(BaseModel):
    date: datetime.date
    entries: List[QueueEntryResponse]
