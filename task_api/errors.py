"""
Failure taxonomy shared by the lifecycle operations and the HTTP boundary.

Lifecycle operations return a ``Failure`` instead of raising; the boundary
turns it into an error envelope with the status code from ``STATUS_CODES``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ErrorType(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MALFORMED_REQUEST = "MALFORMED_REQUEST"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    INTERNAL_ERROR = "INTERNAL_ERROR"


STATUS_CODES: Dict[ErrorType, int] = {
    ErrorType.NOT_FOUND: 404,
    ErrorType.VALIDATION_ERROR: 400,
    ErrorType.MALFORMED_REQUEST: 400,
    ErrorType.INVALID_ARGUMENT: 400,
    ErrorType.TYPE_MISMATCH: 400,
    ErrorType.INTERNAL_ERROR: 500,
}

# (field, message) pairs produced by the request validators
FieldError = Tuple[str, str]


@dataclass(frozen=True)
class Failure:
    type: ErrorType
    message: str
    field_errors: Optional[Dict[str, str]] = None

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.type]


def not_found(task_id: int) -> Failure:
    return Failure(ErrorType.NOT_FOUND, f"Task not found with id: {task_id}")


def validation_failed(errors: List[FieldError]) -> Failure:
    field_errors: Dict[str, str] = {}
    for field, message in errors:
        # first message per field wins
        field_errors.setdefault(field, message)
    return Failure(
        ErrorType.VALIDATION_ERROR,
        "Validation failed for one or more fields",
        field_errors,
    )


def malformed_request() -> Failure:
    return Failure(ErrorType.MALFORMED_REQUEST, "Malformed JSON request")


def invalid_argument(message: str) -> Failure:
    return Failure(ErrorType.INVALID_ARGUMENT, message)


def type_mismatch(name: str, value: Any) -> Failure:
    return Failure(ErrorType.TYPE_MISMATCH, f"Invalid value '{value}' for parameter '{name}'")


def internal_error() -> Failure:
    return Failure(ErrorType.INTERNAL_ERROR, "An unexpected error occurred")
