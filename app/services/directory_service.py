"""
Directory Service
Read-only lookups for patients, doctors and billable services
"""
from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.error_handling import NotFoundException
from app.models import Doctor, Patient, Service


class DirectoryService:
    """Service for directory lookups"""

    @staticmethod
    async def get_patients(db: AsyncSession, search: Optional[str] = None) -> List[Patient]:
        query = select(Patient).filter(Patient.deleted_at.is_(None))
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Patient.first_name.ilike(pattern),
                    Patient.last_name.ilike(pattern),
                    Patient.patient_no.ilike(pattern),
                    Patient.phone.ilike(pattern),
                )
            )
        result = await db.execute(query.order_by(Patient.last_name, Patient.first_name, Patient.id))
        return list(result.scalars().all())

    @staticmethod
    async def get_patient(db: AsyncSession, patient_id: int) -> Patient:
        patient = await db.get(Patient, patient_id)
        if not patient or patient.deleted_at is not None:
            raise NotFoundException("Patient not found", {"patient_id": patient_id})
        return patient

    @staticmethod
    async def get_doctors(db: AsyncSession, active_only: bool = True) -> List[Doctor]:
        query = select(Doctor).filter(Doctor.deleted_at.is_(None))
        if active_only:
            query = query.filter(Doctor.is_active.is_(True))
        result = await db.execute(query.order_by(Doctor.last_name, Doctor.first_name, Doctor.id))
        return list(result.scalars().all())

    @staticmethod
    async def get_doctor(db: AsyncSession, doctor_id: int) -> Doctor:
        doctor = await db.get(Doctor, doctor_id)
        if not doctor or doctor.deleted_at is not None:
            raise NotFoundException("Doctor not found", {"doctor_id": doctor_id})
        return doctor

    @staticmethod
    async def get_services(db: AsyncSession, active_only: bool = True) -> List[Service]:
        query = select(Service)
        if active_only:
            query = query.filter(Service.is_active.is_(True))
        result = await db.execute(query.order_by(Service.name, Service.id))
        return list(result.scalars().all())

    @staticmethod
    async def get_service(db: AsyncSession, service_id: int) -> Service:
        service = await db.get(Service, service_id)
        if not service:
            raise NotFoundException("Service not found", {"service_id": service_id})
        return service


# Global service instance
directory_service = DirectoryService()
