"""
services/apps.py -- Application lifecycle: lookup, create, rename/rotate, delete.

set_app() writes three rows (app, creator relation, admin relation) inside one
UnitOfWork transaction: if any write fails the app does not exist afterwards.
upd_app() and del_app() are restricted to the app's creator.

Rotating the secret through upd_app() invalidates every token previously
issued for the app, including the creator's own.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.gate import AuthorizationGate, Metadata
from core.errors import ErrorKind, SSOError
from core.ports import AppRegistry, CredentialStore, PermissionLedger, UnitOfWork
from storage.errors import StorageError, StorageKind, translate

logger = logging.getLogger("sso.services.apps")


class AppService:
    def __init__(
        self,
        users: CredentialStore,
        apps: AppRegistry,
        ledger: PermissionLedger,
        gate: AuthorizationGate,
        uow: UnitOfWork,
    ) -> None:
        self._users = users
        self._apps = apps
        self._ledger = ledger
        self._gate = gate
        self._uow = uow

    def get_app_id(self, name: str) -> tuple[int, str]:
        """Return (id, name) of the app called `name`."""
        op = "apps.get_app_id"
        try:
            app = self._apps.get_app_by_name(name)
        except StorageError as exc:
            logger.warning("%s: %s", op, exc)
            raise translate(exc, {StorageKind.APP_NOT_FOUND: ErrorKind.INVALID_CREDENTIALS}) from exc
        return app.id, app.name

    def set_app(self, email: str, name: str, secret: str) -> int:
        """Register an app owned by `email`; the owner becomes creator and admin."""
        op = "apps.set_app"
        try:
            user = self._users.get_user(email)
        except StorageError as exc:
            logger.warning("%s: %s", op, exc)
            raise translate(exc, {StorageKind.USER_NOT_FOUND: ErrorKind.INVALID_CREDENTIALS}) from exc

        logger.info("%s: user_id=%s creating app", op, user.id)
        try:
            with self._uow.transaction():
                app_id = self._apps.create_app(name, secret)
                self._ledger.set_creator(user.id, app_id)
                self._ledger.set_admin(user.id, app_id)
        except StorageError as exc:
            if exc.kind is StorageKind.APP_EXISTS:
                logger.warning("%s: app name already taken", op)
            else:
                logger.error("%s: failed to create app, rolled back: %s", op, exc)
            raise translate(exc, {StorageKind.APP_EXISTS: ErrorKind.APP_EXISTS}) from exc

        logger.info("%s: app_id=%s added with creator user_id=%s", op, app_id, user.id)
        return app_id

    def upd_app(self, name: str, new_name: str, new_secret: str, metadata: Optional[Metadata]) -> bool:
        """Rename the app and replace its secret. Creator only."""
        op = "apps.upd_app"
        self._require_creator(op, metadata, name)
        try:
            self._apps.update_app(name, new_name, new_secret)
        except StorageError as exc:
            logger.warning("%s: %s", op, exc)
            raise translate(
                exc,
                {
                    StorageKind.APP_NOT_FOUND: ErrorKind.INVALID_CREDENTIALS,
                    StorageKind.APP_EXISTS: ErrorKind.APP_EXISTS,
                },
            ) from exc
        logger.info("%s: app updated", op)
        return True

    def del_app(self, name: str, metadata: Optional[Metadata]) -> bool:
        """Delete the app and all of its admin/creator relations. Creator only."""
        op = "apps.del_app"
        self._require_creator(op, metadata, name)
        try:
            self._apps.delete_app(name)
        except StorageError as exc:
            logger.warning("%s: %s", op, exc)
            raise translate(exc, {StorageKind.APP_NOT_FOUND: ErrorKind.INVALID_CREDENTIALS}) from exc
        logger.info("%s: app deleted", op)
        return True

    def _require_creator(self, op: str, metadata: Optional[Metadata], name: str) -> None:
        caller = self._gate.authorize(metadata, name)
        if not caller.is_creator:
            logger.warning("%s: user_id=%s is not creator of app_id=%s", op, caller.user_id, caller.app_id)
            raise SSOError(ErrorKind.PERMISSION_DENIED)
