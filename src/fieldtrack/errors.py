"""Error taxonomy shared by ingest, storage, aggregation and the HTTP layer."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status


class ErrorKind(str, Enum):
    INVALID_EVENT = "InvalidEvent"
    NOT_FOUND = "NotFound"
    COMPUTATION_TIMEOUT = "ComputationTimeout"
    INGEST_UNAVAILABLE = "IngestUnavailable"


HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_EVENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.COMPUTATION_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorKind.INGEST_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class TrackingError(Exception):
    """Base class for all tracking engine errors."""

    kind: ErrorKind

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]


class InvalidEvent(TrackingError):
    """Malformed or out-of-bounds ingest payload. Never persisted."""

    kind = ErrorKind.INVALID_EVENT


class NotFound(TrackingError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, identifier: str) -> None:
        super().__init__(
            f"{resource} with identifier '{identifier}' not found",
            details={"resource": resource, "identifier": identifier},
        )


class ComputationTimeout(TrackingError):
    """Aggregation exceeded its time budget; partial results were discarded."""

    kind = ErrorKind.COMPUTATION_TIMEOUT


class ComputationCancelled(ComputationTimeout):
    """Aggregation was cancelled by the caller before it finished."""


class IngestUnavailable(TrackingError):
    """The event store could not persist an event after bounded retries."""

    kind = ErrorKind.INGEST_UNAVAILABLE


def format_error_response(error: TrackingError) -> Dict[str, Any]:
    """Format error response for consistent API responses."""
    response: Dict[str, Any] = {
        "error": True,
        "error_kind": error.kind.value,
        "message": error.message,
        "status_code": error.status_code,
    }
    if error.details:
        response["details"] = error.details
    return response
