"""Ownership rules shared by the services."""

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from clinicq.core.exceptions import ForbiddenException, ValidationException
from clinicq.schemas.appointments import Actor, AppointmentResponse
from clinicq.schemas.auth import TokenUser, UserRole


def actor_for(user: TokenUser) -> Actor:
    """Map a caller's role to the actor recorded on audit fields."""
    return Actor(user.role.value)


def ensure_doctor_access(user: TokenUser, doctor_id: UUID) -> None:
    """Only the doctor themself or an admin may manage a doctor's queue."""
    if user.is_admin:
        return
    if user.is_doctor and user.id == doctor_id:
        return
    raise ForbiddenException("You can only manage your own queue")


def resolve_doctor_id(user: TokenUser, doctor_id: UUID | None) -> UUID:
    """
    Fill in the doctor a queue action targets.

    Doctors default to themselves; admins must name the doctor.
    """
    if doctor_id is None:
        if user.is_doctor:
            return user.id
        if user.is_admin:
            raise ValidationException("doctor_id is required")
        raise ForbiddenException("You can only manage your own queue")
    ensure_doctor_access(user, doctor_id)
    return doctor_id


def resolve_queue_reader(user: TokenUser, doctor_id: UUID | None) -> UUID:
    """
    Fill in the doctor whose queue is being read.

    Any signed-in user may watch a queue; only doctors default to their own.
    """
    if doctor_id is not None:
        return doctor_id
    if user.is_doctor:
        return user.id
    raise ValidationException("doctor_id is required")


# Hidden from viewers outside the queue's doctor, admins and the entry's own patient
PRIVATE_QUEUE_FIELDS = (
    "patient_id",
    "notes",
    "cancellation_reason",
    "rescheduled_reason",
)


def visible_to(user: TokenUser, appointment: AppointmentResponse) -> AppointmentResponse:
    """Queue entry as ``user`` may see it; other patients' entries lose identity and notes."""
    if user.is_admin or (user.is_doctor and appointment.doctor_id == user.id):
        return appointment
    if appointment.patient_id == user.id:
        return appointment
    return appointment.model_copy(update=dict.fromkeys(PRIVATE_QUEUE_FIELDS))


def ensure_patient_access(user: TokenUser, patient_id: UUID) -> None:
    """Patients may only act for themselves; staff may act for anyone."""
    if user.role == UserRole.PATIENT and user.id != patient_id:
        raise ForbiddenException("Patients can only act on their own behalf")


def ensure_appointment_access(user: TokenUser, appointment: Mapping[str, Any]) -> None:
    """Check the caller owns the appointment, as its patient or its doctor."""
    if user.is_admin:
        return
    if user.is_doctor and appointment["doctor_id"] == user.id:
        return
    if user.role == UserRole.PATIENT and appointment["patient_id"] == user.id:
        return
    raise ForbiddenException("Access denied to this appointment")


def ensure_staff(user: TokenUser) -> None:
    """Only doctors and admins may use staff-facing operations."""
    if user.role == UserRole.PATIENT:
        raise ForbiddenException("This action is restricted to doctors and admins")