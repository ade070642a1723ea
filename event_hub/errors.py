"""Error types for the event hub.

Domain errors carry a code and a user-safe message. The HTTP layer maps the
code to a status and renders the error envelope.
"""

from dataclasses import dataclass
from enum import Enum


class ConfigurationError(RuntimeError):
    """Raised at startup when required configuration is missing or malformed."""


class DatabaseConnectionError(Exception):
    """Raised when the store handle cannot be opened."""


class ErrorCode(str, Enum):
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class FieldValidationError(DomainError):
    """Raised when a field fails normalization or validation."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(code=ErrorCode.BAD_REQUEST, message=message)
        self.field = field


class BadRequestError(DomainError):
    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.BAD_REQUEST, message=message)


class SlugConflictError(DomainError):
    """Raised when another event already owns the slug."""

    def __init__(self, slug: str) -> None:
        super().__init__(
            code=ErrorCode.CONFLICT,
            message=f"An event with slug '{slug}' already exists",
        )
        self.slug = slug


class EventNotFoundError(DomainError):
    def __init__(self, event_id: str = "") -> None:
        super().__init__(code=ErrorCode.NOT_FOUND, message="Event not found.")
        self.event_id = event_id


class ReferencedEventNotFoundError(DomainError):
    """Raised when a booking references an event that does not exist."""

    def __init__(self, event_id: str) -> None:
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message="Referenced event does not exist",
        )
        self.event_id = event_id


class InternalError(DomainError):
    """Generic failure; never carries internal details."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INTERNAL_ERROR, message="Unexpected server error."
        )
