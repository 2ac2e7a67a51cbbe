from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for every API response. ``success`` always agrees with the HTTP status."""

    success: bool = True
    data: T | None = None
    message: str | None = None
    error: str | None = None
