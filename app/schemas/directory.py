"""
Read-only directory lookups (patients, doctors, services) and dashboard stats
"""
import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel
from app.models import ServiceCategory


class PatientResponse(BaseModel):
    id: int
    patient_no: str
    first_name: str
    last_name: str
    full_name: str
    phone: Optional[str] = None
    email: Optional[str] = None

    model_config = {"from_attributes": True}


class DoctorResponse(BaseModel):
    id: int
    employee_id: str
    first_name: str
    last_name: str
    full_name: str
    specialization: str
    consultation_fee: Decimal
    consultation_minutes: int
    is_active: bool

    model_config = {"from_attributes": True}


class ServiceResponse(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    category: ServiceCategory
    unit_price: Decimal
    is_active: bool

    model_config = {"from_attributes": True}


class DashboardStats(BaseModel):
    date: datetime.date
    today_revenue: Decimal
    today_appointments: int
    patients_in_queue: int
    total_patients: int
    active_doctors: int
    pending_invoices: int


class RevenuePoint(BaseModel):
    date: datetime.date
    revenue: Decimal
