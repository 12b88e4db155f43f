"""
api/errors.py -- Domain error kind -> HTTP status table.

This is the only place that knows how an ErrorKind looks on the wire. Every
SSOError raised by a service ends up in sso_error_handler(), which renders the
shared ErrorResponse envelope.

  INVALID_CREDENTIALS  -> 400 invalid_argument
  USER_EXISTS          -> 409 already_exists
  APP_EXISTS           -> 409 already_exists
  PERMISSION_DENIED    -> 403 permission_denied
  UNAUTHENTICATED      -> 401 unauthenticated
  DEADLINE_EXCEEDED    -> 504 deadline_exceeded
  INTERNAL             -> 500 internal_error (message withheld)
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse
from core.errors import ErrorKind, SSOError

logger = logging.getLogger("sso.api")

STATUS_BY_KIND: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.INVALID_CREDENTIALS: (400, "invalid_argument"),
    ErrorKind.USER_EXISTS: (409, "already_exists"),
    ErrorKind.APP_EXISTS: (409, "already_exists"),
    ErrorKind.PERMISSION_DENIED: (403, "permission_denied"),
    ErrorKind.UNAUTHENTICATED: (401, "unauthenticated"),
    ErrorKind.DEADLINE_EXCEEDED: (504, "deadline_exceeded"),
    ErrorKind.INTERNAL: (500, "internal_error"),
}

_INTERNAL_MESSAGE = "An unexpected error occurred."


def error_response(kind: ErrorKind, message: str) -> JSONResponse:
    status_code, code = STATUS_BY_KIND.get(kind, STATUS_BY_KIND[ErrorKind.INTERNAL])
    if status_code == 500:
        message = _INTERNAL_MESSAGE
    resp = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )
    if status_code == 401:
        resp.headers["WWW-Authenticate"] = "Bearer"
    return resp


async def sso_error_handler(request: Request, exc: SSOError) -> JSONResponse:
    """Render a domain error. INTERNAL details go to the log, never to the client."""
    if exc.kind is ErrorKind.INTERNAL:
        logger.error("Internal error on %s %s: %r", request.method, request.url.path, exc.__cause__ or exc)
    return error_response(exc.kind, exc.message)
