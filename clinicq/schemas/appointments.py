"""Appointment schemas for request/response validation."""

import datetime as dt
import re
from enum import Enum
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, Field, field_validator

SLOT_PATTERN = re.compile(r"^([01]\d|2[0-3]):(00|30)$")


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    BOOKED = "booked"
    IN_SESSION = "in_session"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AppointmentPriority(str, Enum):
    """Queue priority of an appointment."""

    NORMAL = "normal"
    URGENT = "urgent"
    VIP = "vip"


class AppointmentSource(str, Enum):
    """How the appointment entered the queue."""

    BOOKED = "booked"
    WALK_IN = "walk_in"


class Actor(str, Enum):
    """Who performed a cancellation or reschedule."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


def validate_slot(v: str) -> str:
    """Validate a half-hour aligned ``HH:MM`` slot."""
    if not SLOT_PATTERN.match(v):
        raise ValueError("Time must be a half-hour slot in HH:MM format (e.g. 09:30)")
    return v


SlotTime = Annotated[str, AfterValidator(validate_slot)]


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    patient_id: UUID
    doctor_id: UUID
    date: dt.date
    time: SlotTime
    notes: str | None = Field(None, max_length=1000)
    priority: AppointmentPriority | None = None


class WalkInCreate(BaseModel):
    """Schema for a doctor adding a walk-in patient to today's queue."""

    patient_id: UUID
    doctor_id: UUID | None = None
    date: dt.date | None = None
    time: SlotTime | None = None
    notes: str | None = Field(None, max_length=1000)
    priority: AppointmentPriority | None = None


class AppointmentUpdate(BaseModel):
    """Schema for updating an existing appointment.

    ``status`` goes through the transition rules, ``date``/``time`` reschedule.
    """

    status: AppointmentStatus | None = None
    date: dt.date | None = None
    time: SlotTime | None = None
    notes: str | None = Field(None, max_length=1000)
    priority: AppointmentPriority | None = None
    reason: str | None = Field(None, max_length=500)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    reason: str | None = Field(None, max_length=500)


class RescheduleRequest(BaseModel):
    """Doctor-initiated reschedule."""

    new_date: dt.date
    new_time: SlotTime
    reason: str | None = Field(None, max_length=500)


class CancelRequest(BaseModel):
    """Doctor-initiated cancellation."""

    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        """Reject whitespace-only reasons."""
        if not v.strip():
            raise ValueError("Cancellation reason is required")
        return v.strip()


class AppointmentResponse(BaseModel):
    """Schema for appointment response.

    ``patient_id`` is None only in queue views shown to other patients.
    """

    id: UUID
    patient_id: UUID | None
    doctor_id: UUID
    date: dt.date
    time: str
    status: AppointmentStatus
    queue_number: int
    priority: AppointmentPriority
    source: AppointmentSource
    notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: str | None = None
    cancelled_at: dt.datetime | None = None
    rescheduled_from_date: dt.date | None = None
    rescheduled_from_time: str | None = None
    rescheduled_reason: str | None = None
    rescheduled_at: dt.datetime | None = None
    called_at: dt.datetime | None = None
    completed_at: dt.datetime | None = None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    patient_id: UUID | None = None
    date: dt.date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
