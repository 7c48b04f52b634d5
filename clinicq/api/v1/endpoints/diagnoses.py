"""Diagnosis and billing endpoints."""

import datetime as dt
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinicq.dependencies import Cache, CurrentUser, DatabaseSession, Notifier
from clinicq.schemas.common import ApiResponse
from clinicq.schemas.diagnoses import (
    DiagnosisCreate,
    DiagnosisResponse,
    DiagnosisUpdate,
    RevenueStatsResponse,
)
from clinicq.services.diagnosis_service import DiagnosisService

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[DiagnosisResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Record diagnosis and bill",
)
async def create_diagnosis(
    data: DiagnosisCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
    notifier: Notifier,
) -> ApiResponse[DiagnosisResponse]:
    """
    Record the outcome of a consultation and complete the appointment.

    The bill is the registration fee plus the doctor fee plus the cost of
    the prescribed drugs.

    Args:
        data: Diagnosis, prescribed drugs and doctor fee
        current_user: Authenticated doctor or admin
        db: Database session
        cache: Cache manager
        notifier: Real-time notifier

    Returns:
        Created diagnosis with totals
    """
    service = DiagnosisService(db, cache, notifier)
    diagnosis = await service.create(data, current_user)
    return ApiResponse(message="Diagnosis recorded successfully", data=diagnosis)


@router.get(
    "",
    response_model=ApiResponse[list[DiagnosisResponse]],
    summary="List diagnoses",
)
async def list_diagnoses(
    current_user: CurrentUser,
    db: DatabaseSession,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse[list[DiagnosisResponse]]:
    """List diagnoses visible to the caller, newest first."""
    service = DiagnosisService(db)
    return ApiResponse(data=await service.list_all(current_user, skip=skip, limit=limit))


@router.get(
    "/revenue-stats",
    response_model=ApiResponse[RevenueStatsResponse],
    summary="Revenue statistics",
)
async def revenue_stats(
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
    start_date: dt.date | None = Query(None),
    end_date: dt.date | None = Query(None),
    doctor_id: UUID | None = Query(None),
) -> ApiResponse[RevenueStatsResponse]:
    """Aggregate billing figures; doctors only see their own revenue."""
    service = DiagnosisService(db, cache)
    stats = await service.revenue_stats(
        current_user, start_date=start_date, end_date=end_date, doctor_id=doctor_id
    )
    return ApiResponse(data=stats)


@router.get(
    "/appointment/{appointment_id}",
    response_model=ApiResponse[DiagnosisResponse],
    summary="Get diagnosis of an appointment",
)
async def get_appointment_diagnosis(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> ApiResponse[DiagnosisResponse]:
    service = DiagnosisService(db)
    return ApiResponse(data=await service.get_by_appointment(appointment_id, current_user))


@router.get(
    "/doctor/{doctor_id}",
    response_model=ApiResponse[list[DiagnosisResponse]],
    summary="List a doctor's diagnoses",
)
async def list_doctor_diagnoses(
    doctor_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse[list[DiagnosisResponse]]:
    service = DiagnosisService(db)
    diagnoses = await service.list_by_doctor(doctor_id, current_user, skip=skip, limit=limit)
    return ApiResponse(data=diagnoses)


@router.get(
    "/patient/{patient_id}",
    response_model=ApiResponse[list[DiagnosisResponse]],
    summary="Get a patient's medical history",
)
async def list_patient_diagnoses(
    patient_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse[list[DiagnosisResponse]]:
    """A patient's diagnoses; doctors only see the ones they wrote."""
    service = DiagnosisService(db)
    diagnoses = await service.list_by_patient(patient_id, current_user, skip=skip, limit=limit)
    return ApiResponse(data=diagnoses)


@router.put(
    "/{diagnosis_id}",
    response_model=ApiResponse[DiagnosisResponse],
    summary="Update diagnosis",
)
async def update_diagnosis(
    diagnosis_id: UUID,
    data: DiagnosisUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
) -> ApiResponse[DiagnosisResponse]:
    service = DiagnosisService(db, cache)
    diagnosis = await service.update(diagnosis_id, data, current_user)
    return ApiResponse(message="Diagnosis updated successfully", data=diagnosis)
