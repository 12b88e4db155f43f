"""
storage/errors.py -- Storage-local failure kinds.

The store raises StorageError for every failure, including driver errors
(wrapped as BACKEND) so that no SQLAlchemy exception escapes storage/.
Callers translate these kinds into core.errors.ErrorKind with an explicit
per-call table passed to translate(). A kind missing from the table is an
INTERNAL error by definition.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from core.errors import ErrorKind, SSOError


class StorageKind(str, Enum):
    USER_NOT_FOUND = "user_not_found"
    APP_NOT_FOUND = "app_not_found"
    USER_EXISTS = "user_exists"
    APP_EXISTS = "app_exists"
    BACKEND = "backend"


class StorageError(Exception):
    def __init__(self, kind: StorageKind, op: str) -> None:
        self.kind = kind
        self.op = op
        super().__init__(f"{op}: {kind.value}")


def translate(exc: StorageError, mapping: Mapping[StorageKind, ErrorKind]) -> SSOError:
    """Map a storage failure onto a domain kind; unmapped kinds become INTERNAL."""
    return SSOError(mapping.get(exc.kind, ErrorKind.INTERNAL))
