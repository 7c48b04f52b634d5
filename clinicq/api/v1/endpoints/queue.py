"""Doctor queue endpoints."""

import datetime as dt
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinicq.core.clock import clinic_today
from clinicq.dependencies import CurrentUser, DatabaseSession, Notifier
from clinicq.schemas.appointments import AppointmentResponse, WalkInCreate
from clinicq.schemas.auth import TokenUser
from clinicq.schemas.common import ApiResponse
from clinicq.schemas.queue import (
    PauseRequest,
    QueueAnalyticsResponse,
    QueueSessionResponse,
    QueueStatusResponse,
    QueueTarget,
    WaitingListResponse,
)
from clinicq.services.access import resolve_doctor_id, resolve_queue_reader
from clinicq.services.appointment_service import AppointmentService
from clinicq.services.queue_service import QueueService

router = APIRouter()


def resolve_target(
    user: TokenUser,
    doctor_id: UUID | None,
    day: dt.date | None,
) -> tuple[UUID, dt.date]:
    """Default the doctor to the caller and the date to today, clinic-local."""
    return resolve_doctor_id(user, doctor_id), day or clinic_today()


@router.get(
    "/queue/status",
    response_model=ApiResponse[QueueStatusResponse],
    summary="Get queue status",
)
async def get_queue_status(
    current_user: CurrentUser,
    db: DatabaseSession,
    doctor_id: UUID | None = Query(None),
    day: dt.date | None = Query(None, alias="date"),
) -> ApiResponse[QueueStatusResponse]:
    """
    Get the queue state together with who is being served and who is waiting.

    Any signed-in user may read a queue, so patients can re-sync after a
    reconnect; other patients' entries are redacted for them. The session is
    created on first access.
    """
    doctor_id = resolve_queue_reader(current_user, doctor_id)
    service = QueueService(db)
    status_view = await service.queue_status(doctor_id, day or clinic_today(), current_user)
    return ApiResponse(data=status_view)


@router.post(
    "/queue/pause",
    response_model=ApiResponse[QueueSessionResponse],
    summary="Pause queue",
)
async def pause_queue(
    data: PauseRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
) -> ApiResponse[QueueSessionResponse]:
    """
    Pause an active queue; waiting patients see the reason.

    Args:
        data: Target queue and pause reason
        current_user: Authenticated doctor or admin
        db: Database session
        notifier: Real-time notifier

    Returns:
        Updated queue session
    """
    doctor_id, day = resolve_target(current_user, data.doctor_id, data.date)
    service = QueueService(db, notifier)
    session = await service.pause(doctor_id, day, data.reason)
    return ApiResponse(message="Queue paused successfully", data=session)


@router.post(
    "/queue/resume",
    response_model=ApiResponse[QueueSessionResponse],
    summary="Resume queue",
)
async def resume_queue(
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
    data: QueueTarget | None = None,
) -> ApiResponse[QueueSessionResponse]:
    data = data or QueueTarget()
    doctor_id, day = resolve_target(current_user, data.doctor_id, data.date)
    service = QueueService(db, notifier)
    session = await service.resume(doctor_id, day)
    return ApiResponse(message="Queue resumed successfully", data=session)


@router.post(
    "/queue/start",
    response_model=ApiResponse[QueueSessionResponse],
    summary="Start queue",
)
async def start_queue(
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
    data: QueueTarget | None = None,
) -> ApiResponse[QueueSessionResponse]:
    data = data or QueueTarget()
    doctor_id, day = resolve_target(current_user, data.doctor_id, data.date)
    service = QueueService(db, notifier)
    session = await service.start(doctor_id, day)
    return ApiResponse(message="Queue started successfully", data=session)


@router.post(
    "/queue/stop",
    response_model=ApiResponse[QueueSessionResponse],
    summary="Stop queue",
)
async def stop_queue(
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
    data: QueueTarget | None = None,
) -> ApiResponse[QueueSessionResponse]:
    """Close the queue for the day; no further bookings are accepted."""
    data = data or QueueTarget()
    doctor_id, day = resolve_target(current_user, data.doctor_id, data.date)
    service = QueueService(db, notifier)
    session = await service.stop(doctor_id, day)
    return ApiResponse(message="Queue stopped successfully", data=session)


@router.post(
    "/queue/call-next",
    response_model=ApiResponse[AppointmentResponse],
    summary="Call next patient",
)
async def call_next_patient(
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
    data: QueueTarget | None = None,
) -> ApiResponse[AppointmentResponse]:
    """Move the waiting patient with the lowest queue number into session."""
    data = data or QueueTarget()
    doctor_id, day = resolve_target(current_user, data.doctor_id, data.date)
    service = AppointmentService(db, notifier)
    appointment = await service.call_next(doctor_id, day, current_user)
    return ApiResponse(
        message=f"Queue number {appointment.queue_number} called",
        data=appointment,
    )


@router.post(
    "/queue/walk-in",
    response_model=ApiResponse[AppointmentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Add walk-in patient",
)
async def add_walk_in(
    data: WalkInCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
) -> ApiResponse[AppointmentResponse]:
    service = AppointmentService(db, notifier)
    appointment = await service.add_walk_in(data, current_user)
    return ApiResponse(message="Walk-in patient added to queue", data=appointment)


@router.get(
    "/queue/waiting",
    response_model=ApiResponse[WaitingListResponse],
    summary="List waiting patients",
)
async def list_waiting(
    current_user: CurrentUser,
    db: DatabaseSession,
    doctor_id: UUID | None = Query(None),
    day: dt.date | None = Query(None, alias="date"),
    prioritized: bool = Query(False),
) -> ApiResponse[WaitingListResponse]:
    """
    List waiting patients.

    With ``prioritized`` urgent and VIP patients are listed ahead of the rest;
    the stored queue numbers are not changed.
    """
    doctor_id = resolve_queue_reader(current_user, doctor_id)
    service = QueueService(db)
    waiting = await service.waiting(
        doctor_id, day or clinic_today(), prioritized=prioritized, viewer=current_user
    )
    return ApiResponse(data=waiting)


@router.get(
    "/queue/analytics",
    response_model=ApiResponse[QueueAnalyticsResponse],
    summary="Get queue analytics",
)
async def get_queue_analytics(
    current_user: CurrentUser,
    db: DatabaseSession,
    doctor_id: UUID | None = Query(None),
    day: dt.date | None = Query(None, alias="date"),
) -> ApiResponse[QueueAnalyticsResponse]:
    """Counts of the day's appointments by status, walk-ins and priority."""
    doctor_id, day = resolve_target(current_user, doctor_id, day)
    service = QueueService(db)
    return ApiResponse(data=await service.analytics(doctor_id, day))


@router.post(
    "/queue/reorder",
    response_model=ApiResponse[WaitingListResponse],
    summary="Apply priority order to queue numbers",
)
async def reorder_queue(
    current_user: CurrentUser,
    db: DatabaseSession,
    notifier: Notifier,
    data: QueueTarget | None = None,
) -> ApiResponse[WaitingListResponse]:
    data = data or QueueTarget()
    doctor_id, day = resolve_target(current_user, data.doctor_id, data.date)
    service = QueueService(db, notifier)
    return ApiResponse(message="Queue reordered", data=await service.reorder(doctor_id, day))


@router.get(
    "/queues",
    response_model=ApiResponse[list[QueueSessionResponse]],
    summary="List a doctor's queue sessions",
)
async def list_doctor_queues(
    current_user: CurrentUser,
    db: DatabaseSession,
    doctor_id: UUID | None = Query(None),
) -> ApiResponse[list[QueueSessionResponse]]:
    """Session history of a doctor, newest date first."""
    doctor_id = resolve_doctor_id(current_user, doctor_id)
    service = QueueService(db)
    return ApiResponse(data=await service.doctor_sessions(doctor_id))
