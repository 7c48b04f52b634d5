"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class MissingFieldsException(ValidationException):
    """Required fields were not supplied."""

    def __init__(self, message: str = "Missing required fields"):
        super().__init__(message)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class InvalidTransitionException(ConflictException):
    """A status change is not allowed from the current state."""

    def __init__(self, current: str, target: str, entity: str = "appointment"):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move {entity} from '{current}' to '{target}'")


class SessionInProgressException(ConflictException):
    """Another appointment of the same queue is already in session."""

    def __init__(self, message: str = "Another patient is already in session"):
        super().__init__(message)


class SlotUnavailableException(ConflictException):
    """The requested time slot is already taken."""

    def __init__(self, message: str = "This time slot is already booked for the doctor"):
        super().__init__(message)


class DuplicateDiagnosisException(ConflictException):
    """A diagnosis already exists for the appointment."""

    def __init__(self, message: str = "Diagnosis already exists for this appointment"):
        super().__init__(message)
