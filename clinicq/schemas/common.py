"""Response envelope shared by all endpoints."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard ``{success, message, data}`` envelope."""

    success: bool = True
    message: str | None = None
    data: T | None = None
