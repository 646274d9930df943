"""Failure → HTTP response policy.

Classified failures map to fixed statuses.  Exceptions raised by the
operation itself are offered to a pluggable exception mapper first;
anything it declines becomes a 500.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from starlette.responses import JSONResponse

from bridge.errors import BridgeError, InvocationError, MethodNotAllowedError
from wire.messages import (
    AMBIGUOUS_OPERATION,
    CONVERSION_FAILED,
    INVOCATION_FAILED,
    MALFORMED_REQUEST,
    METHOD_NOT_ALLOWED,
    OPERATION_NOT_FOUND,
    SERIALIZATION_FAILED,
    STRUCTURAL_DECODE_FAILED,
    UNKNOWN_SERVICE,
    UNRECOVERABLE_STATE,
    ErrorMessage,
)

log = logging.getLogger(__name__)

STATUS_BY_CODE: dict[str, int] = {
    OPERATION_NOT_FOUND: 404,
    UNKNOWN_SERVICE: 404,
    AMBIGUOUS_OPERATION: 400,
    CONVERSION_FAILED: 400,
    STRUCTURAL_DECODE_FAILED: 400,
    MALFORMED_REQUEST: 400,
    METHOD_NOT_ALLOWED: 405,
    INVOCATION_FAILED: 500,
    UNRECOVERABLE_STATE: 500,
    SERIALIZATION_FAILED: 500,
}


@dataclass(slots=True)
class ErrorResponse:
    """What an exception mapper wants sent back for an application error."""

    status: int
    message: str
    code: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


ExceptionMapper = Callable[[BaseException], "ErrorResponse | None"]


def _render(response: ErrorResponse, data: object = None) -> JSONResponse:
    body = ErrorMessage(response.message, response.code, data)
    return JSONResponse(body.to_dict(), status_code=response.status, headers=response.headers)


def error_response(exc: BridgeError, exception_mapper: ExceptionMapper | None = None) -> JSONResponse:
    """Render a classified failure as an HTTP error response."""
    if isinstance(exc, InvocationError) and exception_mapper is not None:
        mapped = exception_mapper(exc.cause)
        if mapped is not None:
            log.info("mapped %s to %d", type(exc.cause).__name__, mapped.status)
            return _render(mapped)

    status = STATUS_BY_CODE.get(exc.code, 500)
    headers = {}
    if isinstance(exc, MethodNotAllowedError):
        headers["Allow"] = ", ".join(exc.allowed)
    return _render(ErrorResponse(status, exc.message, exc.code, headers), exc.data)
