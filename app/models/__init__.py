"""
Core models: directory entities (patients, doctors, services), appointments
and the counters behind human-readable numbers.
"""
import datetime
import enum

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime, Numeric, ForeignKey, Index,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from database import Base


class AppointmentStatus(str, enum.Enum):
    """Appointment lifecycle status"""
    SCHEDULED = "SCHEDULED"
    WAITING = "WAITING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class ServiceCategory(str, enum.Enum):
    CONSULTATION = "CONSULTATION"
    PROCEDURE = "PROCEDURE"
    LAB = "LAB"
    PHARMACY = "PHARMACY"
    OTHER = "OTHER"


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    patient_no = Column(String(30), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.now, nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Patient(id={self.id}, patient_no='{self.patient_no}')>"


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String(30), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    specialization = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)
    email = Column(String(255), nullable=True)
    consultation_fee = Column(Numeric(12, 2), nullable=False, default=0)
    consultation_minutes = Column(Integer, nullable=False, default=15)
    is_active = Column(Boolean, default=True, nullable=False)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.now, nullable=False)

    @property
    def full_name(self) -> str:
        return f"Dr. {self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Doctor(id={self.id}, employee_id='{self.employee_id}')>"


class Service(Base):
    """Billable service catalogue entry"""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(30), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(SQLEnum(ServiceCategory, native_enum=False), nullable=False, default=ServiceCategory.OTHER)
    unit_price = Column(Numeric(12, 2), nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.datetime.now, nullable=False)

    def __repr__(self):
        return f"<Service(code='{self.code}', name='{self.name}')>"


class Counter(Base):
    """Sequence backing APT-/INV-/PAY- numbers"""
    __tablename__ = "counters"

    id = Column(Integer, primary_key=True)
    name = Column(String(50), unique=True, nullable=False)
    last_value = Column(Integer, nullable=False, default=0)


class Appointment(Base):
    """
    Appointment
    Status and the arrived/started/completed timestamps only change through
    app.services.appointment_workflow.
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    appointment_no = Column(String(30), unique=True, nullable=False, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)

    # Slot
    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(String(5), nullable=False)  # HH:MM format
    duration = Column(Integer, nullable=False, default=15)  # minutes

    status = Column(
        SQLEnum(AppointmentStatus, native_enum=False),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
        index=True,
    )

    # Clinical fields
    reason = Column(Text, nullable=True)
    symptoms = Column(Text, nullable=True)
    diagnosis = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # Lifecycle timestamps
    arrived_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.datetime.now, nullable=False)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.datetime.now)

    # Relationships
    patient = relationship("Patient", lazy="selectin")
    doctor = relationship("Doctor", lazy="selectin")

    __table_args__ = (
        Index("ix_appointments_doctor_slot", "doctor_id", "scheduled_date", "scheduled_time"),
    )

    @property
    def scheduled_at(self) -> datetime.datetime:
        hours, minutes = (self.scheduled_time or "00:00").split(":")
        return datetime.datetime.combine(
            self.scheduled_date, datetime.time(int(hours), int(minutes))
        )

    @property
    def patient_name(self):
        return self.patient.full_name if self.patient else None

    @property
    def doctor_name(self):
        return self.doctor.full_name if self.doctor else None

    def __repr__(self):
        return f"<Appointment(id={self.id}, no='{self.appointment_no}', status={self.status})>"


from app.models.financial import (  # noqa: E402,F401
    DiscountType, Invoice, InvoiceItem, InvoiceStatus, Payment, PaymentMethod,
)
