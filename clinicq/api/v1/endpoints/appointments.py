"""Appointment endpoints."""

import datetime as dt
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinicq.dependencies import CurrentUser, DatabaseSession, Notifier
from clinicq.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    AppointmentUpdate,
    CancelRequest,
    RescheduleRequest,
)
from clinicq.schemas.common import ApiResponse
from clinicq.services.access import ensure_staff
from clinicq.services.appointment_service import AppointmentService

router = APIRouter()


@router.post(
    "",
    response_model=ApiResponse[AppointmentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
) -> ApiResponse[AppointmentResponse]:
    """
    Book a half-hour slot with a doctor and join their queue.

    Args:
        data: Booking data
        current_user: Authenticated user
        db: Database session
        notifier: Real-time notifier

    Returns:
        Created appointment with its queue number
    """
    service = AppointmentService(db, notifier)
    appointment = await service.book(data, current_user)
    return ApiResponse(message="Appointment booked successfully", data=appointment)


@router.get(
    "",
    response_model=ApiResponse[AppointmentListResponse],
    summary="List appointments",
)
async def list_appointments(
    current_user: CurrentUser,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    doctor_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    day: dt.date | None = Query(None, alias="date"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> ApiResponse[AppointmentListResponse]:
    """List the appointments visible to the caller, newest date first."""
    filters = AppointmentFilters(
        status=status_filter,
        doctor_id=doctor_id,
        patient_id=patient_id,
        date=day,
        page=page,
        page_size=page_size,
    )
    service = AppointmentService(db)
    return ApiResponse(data=await service.list_appointments(current_user, filters))


@router.get(
    "/doctor/{doctor_id}/date/{day}",
    response_model=ApiResponse[list[AppointmentResponse]],
    summary="List a doctor's appointments for a day",
)
async def list_doctor_day(
    doctor_id: UUID,
    day: dt.date,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> ApiResponse[list[AppointmentResponse]]:
    """
    All appointments of the doctor's day in queue-number order, any status.

    Open to any signed-in user; other patients' entries are redacted.
    """
    service = AppointmentService(db)
    return ApiResponse(data=await service.list_for_queue(doctor_id, day, current_user))


@router.get(
    "/{appointment_id}",
    response_model=ApiResponse[AppointmentResponse],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> ApiResponse[AppointmentResponse]:
    service = AppointmentService(db)
    return ApiResponse(data=await service.get_appointment(appointment_id, current_user))


@router.put(
    "/{appointment_id}",
    response_model=ApiResponse[AppointmentResponse],
    summary="Update appointment",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
) -> ApiResponse[AppointmentResponse]:
    """
    Update notes or priority, reschedule, or change status in one request.

    Args:
        appointment_id: Appointment ID
        data: Fields to change
        current_user: Authenticated user
        db: Database session
        notifier: Real-time notifier

    Returns:
        Updated appointment
    """
    service = AppointmentService(db, notifier)
    appointment = await service.update_appointment(appointment_id, data, current_user)
    return ApiResponse(message="Appointment updated successfully", data=appointment)


@router.patch(
    "/{appointment_id}/status",
    response_model=ApiResponse[AppointmentResponse],
    summary="Change appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
) -> ApiResponse[AppointmentResponse]:
    """Move an appointment through its lifecycle."""
    service = AppointmentService(db, notifier)
    appointment = await service.change_status(
        appointment_id, data.status, current_user, reason=data.reason
    )
    return ApiResponse(message=f"Appointment {appointment.status.value}", data=appointment)


@router.delete(
    "/{appointment_id}",
    response_model=ApiResponse[AppointmentResponse],
    summary="Cancel appointment",
)
async def delete_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
    reason: str | None = Query(None, max_length=500),
) -> ApiResponse[AppointmentResponse]:
    """Cancel an appointment; the record is kept with status ``cancelled``."""
    service = AppointmentService(db, notifier)
    appointment = await service.cancel(appointment_id, current_user, reason=reason)
    return ApiResponse(message="Appointment cancelled successfully", data=appointment)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=ApiResponse[AppointmentResponse],
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: RescheduleRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
) -> ApiResponse[AppointmentResponse]:
    """Move a waiting appointment to a new date and slot; the patient is notified."""
    ensure_staff(current_user)
    service = AppointmentService(db, notifier)
    appointment = await service.reschedule(
        appointment_id, data.new_date, data.new_time, current_user, reason=data.reason
    )
    return ApiResponse(message="Appointment rescheduled successfully", data=appointment)


@router.post(
    "/{appointment_id}/cancel",
    response_model=ApiResponse[AppointmentResponse],
    summary="Cancel appointment with a reason",
)
async def cancel_appointment(
    appointment_id: UUID,
    data: CancelRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
) -> ApiResponse[AppointmentResponse]:
    """Staff cancellation; the reason is shown to the patient."""
    ensure_staff(current_user)
    service = AppointmentService(db, notifier)
    appointment = await service.cancel(appointment_id, current_user, reason=data.reason)
    return ApiResponse(message="Appointment cancelled successfully", data=appointment)
