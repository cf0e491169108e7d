"""Closed set of workflow error kinds shared by every app.

Services raise one of the :class:`WorkflowError` subclasses below; the API
layer turns them into a JSON body and an HTTP status through
:func:`core.api.workflow_exception_handler`. Each kind has a default
user-facing message so callers only pass a message when they have a more
specific one.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = 'validation'
    NOT_FOUND = 'not_found'
    CONFLICT = 'conflict'
    UPSTREAM_FAILURE = 'upstream_failure'


USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: 'Please check the information you entered and try again.',
    ErrorKind.NOT_FOUND: 'We could not find what you were looking for.',
    ErrorKind.CONFLICT: 'Seats were just taken. Please review availability and try again.',
    ErrorKind.UPSTREAM_FAILURE: 'Something went wrong on our side. Please try again later.',
}

HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UPSTREAM_FAILURE: 500,
}


class WorkflowError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str | None = None, *, field: str | None = None, **details: Any) -> None:
        self.message = message or USER_MESSAGES[self.kind]
        self.field = field
        self.details = details
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {'error': self.message, 'kind': self.kind.value}
        if self.field:
            payload['field'] = self.field
        if self.details:
            payload['details'] = self.details
        return payload


class InvalidRequest(WorkflowError):
    """Raised when input or a business rule rejects the request before any write."""

    kind = ErrorKind.VALIDATION


class RecordNotFound(WorkflowError):
    kind = ErrorKind.NOT_FOUND


class AvailabilityError(WorkflowError):
    """Raised when requested seats or inventory cannot be secured."""

    kind = ErrorKind.CONFLICT


class UpstreamFailure(WorkflowError):
    """Raised when the payment or email provider fails."""

    kind = ErrorKind.UPSTREAM_FAILURE
