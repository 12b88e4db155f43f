"""
core/errors.py -- Domain error kinds shared by services and the transport layer.

One exception type (SSOError) carries one member of a closed enumeration
(ErrorKind). Services raise it; api/errors.py owns the table that turns each
kind into an HTTP status. Code never compares error messages or identities --
only the kind.

Storage-local failures (not found, unique violation, driver error) have their
own enumeration in storage/errors.py and are translated into these kinds at
the service boundary. They never reach the transport layer.

Layer rule: core/ is the kernel. No imports from api/, auth/, services/, or
storage/.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    # Bad password, unknown email, unknown app or unusable token. Deliberately
    # one kind so callers cannot tell which factor failed.
    INVALID_CREDENTIALS = "invalid_credentials"
    USER_EXISTS = "user_exists"
    APP_EXISTS = "app_exists"
    # Authenticated, but not the creator of the target app.
    PERMISSION_DENIED = "permission_denied"
    # Missing or malformed bearer credential.
    UNAUTHENTICATED = "unauthenticated"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    INTERNAL = "internal"


_DEFAULT_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.INVALID_CREDENTIALS: "invalid credentials",
    ErrorKind.USER_EXISTS: "user already exists",
    ErrorKind.APP_EXISTS: "an application with the same name exists",
    ErrorKind.PERMISSION_DENIED: "you are not the creator of this application",
    ErrorKind.UNAUTHENTICATED: "missing or malformed bearer token",
    ErrorKind.DEADLINE_EXCEEDED: "request deadline exceeded",
    ErrorKind.INTERNAL: "internal error",
}


class SSOError(Exception):
    """A failure with a domain-level kind.

    message is safe to show to clients for every kind except INTERNAL, whose
    message the transport layer always replaces with a generic one.
    """

    def __init__(self, kind: ErrorKind, message: str | None = None) -> None:
        self.kind = kind
        self.message = message or _DEFAULT_MESSAGES[kind]
        super().__init__(f"{kind.value}: {self.message}")
