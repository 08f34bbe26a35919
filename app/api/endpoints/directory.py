"""
Directory lookup endpoints (patients, doctors, services)
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.directory import DoctorResponse, PatientResponse, ServiceResponse
from app.services.directory_service import directory_service
from database import get_async_session

router = APIRouter(prefix="/directory", tags=["Directory"])


@router.get("/patients", response_model=List[PatientResponse])
async def list_patients(
    search: Optional[str] = Query(None, description="Name, patient number or phone"),
    db: AsyncSession = Depends(get_async_session),
):
    return await directory_service.get_patients(db, search)


@router.get("/patients/{patient_id}", response_model=PatientResponse)
async def get_patient(patient_id: int, db: AsyncSession = Depends(get_async_session)):
    return await directory_service.get_patient(db, patient_id)


@router.get("/doctors", response_model=List[DoctorResponse])
async def list_doctors(
    active_only: bool = Query(True),
    db: AsyncSession = Depends(get_async_session),
):
    return await directory_service.get_doctors(db, active_only)


@router.get("/doctors/{doctor_id}", response_model=DoctorResponse)
async def get_doctor(doctor_id: int, db: AsyncSession = Depends(get_async_session)):
    return await directory_service.get_doctor(db, doctor_id)


@router.get("/services", response_model=List[ServiceResponse])
async def list_services(
    active_only: bool = Query(True),
    db: AsyncSession = Depends(get_async_session),
):
    return await directory_service.get_services(db, active_only)


@router.get("/services/{service_id}", response_model=ServiceResponse)
async def get_service(service_id: int, db: AsyncSession = Depends(get_async_session)):
    return await directory_service.get_service(db, service_id)
