"""Clinic-local date and time helpers."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo

from clinicq.config import settings


def utcnow() -> datetime:
    """Current timezone-aware UTC time."""
    return datetime.now(UTC)


def clinic_now() -> datetime:
    """Current time in the clinic's timezone."""
    return datetime.now(ZoneInfo(settings.clinic_timezone))


def clinic_today() -> date:
    """Today's calendar date as seen by the clinic."""
    return clinic_now().date()


def current_slot() -> str:
    """Half-hour slot containing the current clinic-local time, as ``HH:MM``."""
    now = clinic_now()
    minute = 0 if now.minute < 30 else 30
    return f"{now.hour:02d}:{minute:02d}"
