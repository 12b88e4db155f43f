"""
auth/gate.py -- Bearer-token authorization for creator-restricted operations.

AuthorizationGate.authorize() answers one question for a privileged request:
"who is calling, and are they the creator of app X?". It is a pure
read-and-verify step and never mutates state.

  1. Pull the bearer token out of the request metadata.
     Anything other than exactly one well-formed "authorization: Bearer <t>"
     entry is UNAUTHENTICATED.
  2. Resolve the target app to get its secret. Unknown app ->
     INVALID_CREDENTIALS.
  3. Verify the token with that secret. A bad, expired or mistyped token, or
     one issued for a different app, is INVALID_CREDENTIALS.
  4. Look up the creator relation for (uid, app).

A caller that is not the creator still gets a Caller back (is_creator=False).
Turning that into PERMISSION_DENIED is the calling service's decision.

Metadata is transport-neutral: a mapping of lower-case key -> list of values.
api/dependencies.py builds it from HTTP headers.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Optional

from auth.tokens import InvalidToken, TokenIssuer
from core.errors import ErrorKind, SSOError
from core.models import AppRef, Caller
from core.ports import AppRegistry, PermissionLedger
from storage.errors import StorageError, StorageKind, translate

logger = logging.getLogger("sso.auth.gate")

BEARER_PREFIX = "Bearer "

Metadata = Mapping[str, Sequence[str]]


def extract_bearer_token(metadata: Optional[Metadata]) -> str:
    """Return the token from the single `authorization: Bearer <token>` entry.

    Raises SSOError(UNAUTHENTICATED) when there is no metadata, no
    authorization entry, more than one, no "Bearer " prefix, or no token
    after the prefix.
    """
    if metadata is None:
        raise SSOError(ErrorKind.UNAUTHENTICATED, "no metadata in request")
    values = metadata.get("authorization")
    if not values:
        raise SSOError(ErrorKind.UNAUTHENTICATED, "no authorization entry in request")
    if len(values) != 1:
        raise SSOError(ErrorKind.UNAUTHENTICATED, "more than one authorization entry in request")
    value = values[0]
    if not value.startswith(BEARER_PREFIX):
        raise SSOError(ErrorKind.UNAUTHENTICATED, 'missing "Bearer " prefix in authorization entry')
    token = value[len(BEARER_PREFIX) :]
    if not token:
        raise SSOError(ErrorKind.UNAUTHENTICATED, "missing token in authorization entry")
    return token


class AuthorizationGate:
    def __init__(self, apps: AppRegistry, ledger: PermissionLedger, issuer: TokenIssuer) -> None:
        self._apps = apps
        self._ledger = ledger
        self._issuer = issuer

    def authorize(self, metadata: Optional[Metadata], app_ref: AppRef) -> Caller:
        """Verify the caller's bearer token against `app_ref` and report their role."""
        token = extract_bearer_token(metadata)

        try:
            app = self._apps.get_app(app_ref)
        except StorageError as exc:
            logger.warning("gate.authorize: cannot resolve app %r: %s", app_ref, exc)
            raise translate(exc, {StorageKind.APP_NOT_FOUND: ErrorKind.INVALID_CREDENTIALS}) from exc

        try:
            claims = self._issuer.verify(token, app.secret)
        except InvalidToken as exc:
            logger.warning("gate.authorize: rejected token for app_id=%s: %s", app.id, exc)
            raise SSOError(ErrorKind.INVALID_CREDENTIALS) from exc

        if claims.app_id != app.id:
            # Two apps sharing a secret must not accept each other's tokens.
            logger.warning("gate.authorize: token for app_id=%s presented to app_id=%s", claims.app_id, app.id)
            raise SSOError(ErrorKind.INVALID_CREDENTIALS)

        try:
            is_creator = self._ledger.is_creator(claims.uid, app.id)
        except StorageError as exc:
            logger.error("gate.authorize: creator lookup failed: %s", exc)
            raise translate(exc, {}) from exc

        return Caller(user_id=claims.uid, email=claims.email, app_id=app.id, is_creator=is_creator)
