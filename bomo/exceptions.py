"""Exceptions raised by the tag subsystem.

Each error carries the HTTP status it maps to, so the API layer can turn any
of them into a response envelope without a lookup table.
"""
from typing import Any


class TagError(Exception):
    """Base exception for all tag errors.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status the error is reported with
        details: Additional context about the error
    """

    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    @property
    def kind(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.kind,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.kind}] {self.message} ({detail_str})"
        return f"[{self.kind}] {self.message}"


class ValidationError(TagError):
    """Raised when input fails shape, length or format checks."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]
        super().__init__(message, details=details)
        self.field = field
        self.value = value


class DuplicateNameError(TagError):
    """Raised when a tag name is already taken (case-insensitive)."""

    def __init__(self, name: str):
        super().__init__(
            f'Tag "{name}" already exists, please choose another name',
            details={"name": name},
        )
        self.name = name


class TagNotFoundError(TagError):
    """Raised when a tag id does not resolve."""

    status_code = 404

    def __init__(self, tag_id: Any, message: str | None = None):
        super().__init__(
            message or f'Tag with ID "{tag_id}" not found',
            details={"tag_id": str(tag_id)},
        )
        self.tag_id = tag_id


class SelfParentError(TagError):
    """Raised when a tag is made its own parent."""

    def __init__(self, tag_id: Any):
        super().__init__(
            "A tag cannot be its own parent",
            details={"tag_id": str(tag_id)},
        )
        self.tag_id = tag_id


class CycleError(TagError):
    """Raised when a reparent would put a tag under one of its descendants."""

    def __init__(self, tag_id: Any, parent_id: Any):
        super().__init__(
            "Cannot move a tag under one of its own descendants",
            details={"tag_id": str(tag_id), "parent_id": str(parent_id)},
        )
        self.tag_id = tag_id
        self.parent_id = parent_id


class HasChildrenError(TagError):
    """Raised when deleting a tag that still has child tags."""

    def __init__(self, tag_id: Any, child_count: int | None = None):
        details: dict[str, Any] = {"tag_id": str(tag_id)}
        if child_count is not None:
            details["child_count"] = child_count
        super().__init__(
            "Tag has child tags, delete or move them first",
            details=details,
        )
        self.tag_id = tag_id


class StorageError(TagError):
    """Raised for storage backend failures. Never retried by the service."""

    status_code = 500

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        original_error: Exception | None = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if original_error:
            details["original_error"] = str(original_error)[:200]
        super().__init__(message, details=details)
        self.operation = operation
        self.original_error = original_error
