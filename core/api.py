"""REST framework glue shared by the API views."""

from __future__ import annotations

import logging
from typing import Any

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .exceptions import ErrorKind, WorkflowError

logger = logging.getLogger(__name__)


def workflow_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    if isinstance(exc, WorkflowError):
        view = context.get('view')
        logger.warning(
            '%s rejected with %s: %s',
            view.__class__.__name__ if view is not None else 'request',
            exc.kind.value,
            exc.message,
        )
        return Response(exc.as_dict(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None
    if isinstance(response.data, dict) and 'detail' in response.data:
        response.data = {'error': str(response.data['detail']), 'kind': _kind_for_status(response.status_code)}
    elif response.status_code == status.HTTP_400_BAD_REQUEST:
        response.data = {'error': 'Please check the information you entered and try again.',
                         'kind': ErrorKind.VALIDATION.value, 'fields': response.data}
    return response


def _kind_for_status(status_code: int) -> str:
    if status_code == status.HTTP_404_NOT_FOUND:
        return ErrorKind.NOT_FOUND.value
    if status_code == status.HTTP_409_CONFLICT:
        return ErrorKind.CONFLICT.value
    if status_code >= 500:
        return ErrorKind.UPSTREAM_FAILURE.value
    # 401 and 403 are rejected requests; the status code tells them apart
    return ErrorKind.VALIDATION.value
