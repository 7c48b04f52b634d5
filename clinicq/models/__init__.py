"""Database models."""

from clinicq.models.appointments import appointments
from clinicq.models.base import metadata
from clinicq.models.diagnoses import diagnoses, diagnosis_drugs
from clinicq.models.queue_sessions import queue_sessions

__all__ = [
    "appointments",
    "diagnoses",
    "diagnosis_drugs",
    "metadata",
    "queue_sessions",
]
