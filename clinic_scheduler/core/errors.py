"""Error taxonomy shared by the scheduling services.

Validation problems and contract violations are raised. Missing records and
booking conflicts are not: they come back as ``None``/``False`` or as a
``ConflictReason`` on a result object, and the caller decides what to do.
"""

from enum import Enum
from typing import Any


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling core."""


class AvailabilityValidationError(SchedulingError, ValueError):
    """Raised when an availability window breaks one of its invariants."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class ContractViolationError(SchedulingError, TypeError):
    """Raised when a caller passes ``None`` where a value is required."""


class BookingConflictError(SchedulingError):
    """Raised when a raw registry write would double-book a provider."""


class ConflictReason(str, Enum):
    NOT_FOUND = "not_found"
    SLOT_TAKEN = "slot_taken"
    PROVIDER_MISMATCH = "provider_mismatch"
    INVALID_TRANSITION = "invalid_transition"
    OUTCOME_REQUIRED = "outcome_required"
    NOT_CONFIRMED = "not_confirmed"


def require(value: Any, name: str) -> Any:
    if value is None:
        raise ContractViolationError(f"{name} must not be None")
    return value
