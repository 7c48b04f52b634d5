"""Identity carried by access tokens."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class UserRole(str, Enum):
    """Roles recognised by the API."""

    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"


class TokenUser(BaseModel):
    """The authenticated caller, as asserted by a verified JWT."""

    id: UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_doctor(self) -> bool:
        return self.role == UserRole.DOCTOR
