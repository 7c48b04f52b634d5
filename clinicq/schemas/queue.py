"""Queue session schemas."""

import datetime as dt
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from clinicq.schemas.appointments import AppointmentResponse


class QueueStatus(str, Enum):
    """Queue session state."""

    STOPPED = "stopped"
    ACTIVE = "active"
    PAUSED = "paused"


class QueueTarget(BaseModel):
    """Identifies a doctor's queue for one day.

    Both fields are optional: a doctor defaults to their own queue and the
    date defaults to today in the clinic's timezone.
    """

    doctor_id: UUID | None = None
    date: dt.date | None = None


class PauseRequest(QueueTarget):
    """Pause request; the reason is shown to waiting patients."""

    reason: str | None = Field(None, max_length=500)


class QueueSessionResponse(BaseModel):
    """Stored queue session."""

    id: UUID
    doctor_id: UUID
    date: dt.date
    status: QueueStatus
    pause_reason: str | None = None
    paused_at: dt.datetime | None = None
    resumed_at: dt.datetime | None = None
    started_at: dt.datetime | None = None
    stopped_at: dt.datetime | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = {"from_attributes": True}


class QueueStatusResponse(BaseModel):
    """Derived view of a doctor's queue for a day."""

    doctor_id: UUID
    date: dt.date
    status: QueueStatus
    pause_reason: str | None = None
    paused_at: dt.datetime | None = None
    resumed_at: dt.datetime | None = None
    started_at: dt.datetime | None = None
    stopped_at: dt.datetime | None = None
    accepting_appointments: bool
    now_serving: AppointmentResponse | None = None
    current_appointments: list[AppointmentResponse]
    waiting_count: int


class WaitingListResponse(BaseModel):
    """Patients still waiting, in calling order."""

    doctor_id: UUID
    date: dt.date
    prioritized: bool
    items: list[AppointmentResponse]


class QueueStatsResponse(BaseModel):
    """Counts of queue sessions for the admin dashboard."""

    total: int
    active: int
    paused: int
    stopped: int
    today: int


class QueueAnalyticsResponse(BaseModel):
    """Appointment counts for one doctor's day, across every status."""

    doctor_id: UUID
    date: dt.date
    total_appointments: int
    waiting: int
    in_session: int
    completed: int
    cancelled: int
    walk_ins: int
    urgent: int
    vip: int
