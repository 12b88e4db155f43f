"""
services/permissions.py -- Grant, revoke and query the per-app admin role.

Only the creator of an app may grant or revoke admin on it. Grants and
revokes are idempotent: granting an existing admin or revoking a missing one
succeeds without touching storage.

Order of checks in set_admin/del_admin: the caller is authorized first, the
target email is resolved second. An unauthenticated caller therefore learns
nothing about which emails are registered.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.gate import AuthorizationGate, Metadata
from core.errors import ErrorKind, SSOError
from core.models import AppRef, Caller
from core.ports import AppRegistry, CredentialStore, PermissionLedger
from storage.errors import StorageError, StorageKind, translate

logger = logging.getLogger("sso.services.permissions")

# Storage kinds that mean "the email or app you named does not exist".
_NOT_FOUND_AS_INVALID = {
    StorageKind.USER_NOT_FOUND: ErrorKind.INVALID_CREDENTIALS,
    StorageKind.APP_NOT_FOUND: ErrorKind.INVALID_CREDENTIALS,
}


class PermissionService:
    def __init__(
        self,
        users: CredentialStore,
        apps: AppRegistry,
        ledger: PermissionLedger,
        gate: AuthorizationGate,
    ) -> None:
        self._users = users
        self._apps = apps
        self._ledger = ledger
        self._gate = gate

    def set_admin(self, email: str, app_ref: AppRef, metadata: Optional[Metadata]) -> bool:
        """Make the user registered as `email` an admin of `app_ref`."""
        op = "permissions.set_admin"
        caller = self._require_creator(op, metadata, app_ref)
        logger.info("%s: creator user_id=%s granting admin on app_id=%s", op, caller.user_id, caller.app_id)
        try:
            target = self._users.get_user(email)
            granted = self._ledger.set_admin(target.id, caller.app_id)
        except StorageError as exc:
            logger.warning("%s: %s", op, exc)
            raise translate(exc, _NOT_FOUND_AS_INVALID) from exc
        if granted:
            logger.info("%s: user_id=%s is admin now", op, target.id)
        else:
            logger.info("%s: user_id=%s already admin", op, target.id)
        return True

    def del_admin(self, email: str, app_ref: AppRef, metadata: Optional[Metadata]) -> bool:
        """Remove admin from the user registered as `email` on `app_ref`."""
        op = "permissions.del_admin"
        caller = self._require_creator(op, metadata, app_ref)
        logger.info("%s: creator user_id=%s revoking admin on app_id=%s", op, caller.user_id, caller.app_id)
        try:
            target = self._users.get_user(email)
            revoked = self._ledger.del_admin(target.id, caller.app_id)
        except StorageError as exc:
            logger.warning("%s: %s", op, exc)
            raise translate(exc, _NOT_FOUND_AS_INVALID) from exc
        if revoked:
            logger.info("%s: user_id=%s is not admin now", op, target.id)
        else:
            logger.info("%s: user_id=%s already not admin", op, target.id)
        return True

    def is_admin(self, user_id: int, app_ref: AppRef) -> bool:
        op = "permissions.is_admin"
        try:
            app = self._apps.get_app(app_ref)
            result = self._ledger.is_admin(user_id, app.id)
        except StorageError as exc:
            logger.warning("%s: %s", op, exc)
            raise translate(exc, _NOT_FOUND_AS_INVALID) from exc
        logger.info("%s: user_id=%s app_id=%s is_admin=%s", op, user_id, app.id, result)
        return result

    def is_creator(self, user_id: int, app_ref: AppRef) -> bool:
        op = "permissions.is_creator"
        try:
            app = self._apps.get_app(app_ref)
            result = self._ledger.is_creator(user_id, app.id)
        except StorageError as exc:
            logger.warning("%s: %s", op, exc)
            raise translate(exc, _NOT_FOUND_AS_INVALID) from exc
        logger.info("%s: user_id=%s app_id=%s is_creator=%s", op, user_id, app.id, result)
        return result

    def _require_creator(self, op: str, metadata: Optional[Metadata], app_ref: AppRef) -> Caller:
        caller = self._gate.authorize(metadata, app_ref)
        if not caller.is_creator:
            logger.warning("%s: user_id=%s is not creator of app_id=%s", op, caller.user_id, caller.app_id)
            raise SSOError(ErrorKind.PERMISSION_DENIED)
        return caller
