"""
services/auth.py -- Login, registration and app-scoped admin lookup.

Anti-enumeration policy:
  login() fails with the same INVALID_CREDENTIALS kind whether the email is
  unknown, the password is wrong, or the app does not exist. An unknown email
  still spends one bcrypt comparison (against auth.tokens' dummy hash) so the
  response time does not give the answer away either.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from auth.tokens import TokenIssuer, burn_password_check, hash_password, verify_password
from core.errors import ErrorKind, SSOError
from core.models import AppRef
from core.ports import AppRegistry, CredentialStore, PermissionLedger
from storage.errors import StorageError, StorageKind, translate

logger = logging.getLogger("sso.services.auth")


class AuthService:
    def __init__(
        self,
        users: CredentialStore,
        apps: AppRegistry,
        ledger: PermissionLedger,
        issuer: TokenIssuer,
        token_ttl: timedelta,
    ) -> None:
        self._users = users
        self._apps = apps
        self._ledger = ledger
        self._issuer = issuer
        self._token_ttl = token_ttl

    def login(self, email: str, password: str, app_ref: AppRef) -> str:
        """Check credentials and return a token scoped to `app_ref`."""
        op = "auth.login"
        logger.info("%s: attempting to login user", op)

        try:
            user = self._users.get_user(email)
        except StorageError as exc:
            if exc.kind is StorageKind.USER_NOT_FOUND:
                burn_password_check(password)
                logger.warning("%s: user not found", op)
            else:
                logger.error("%s: failed to find user: %s", op, exc)
            raise translate(exc, {StorageKind.USER_NOT_FOUND: ErrorKind.INVALID_CREDENTIALS}) from exc

        if not verify_password(password, user.pass_hash):
            logger.warning("%s: password mismatch for user_id=%s", op, user.id)
            raise SSOError(ErrorKind.INVALID_CREDENTIALS)

        try:
            app = self._apps.get_app(app_ref)
        except StorageError as exc:
            logger.warning("%s: cannot resolve app %r: %s", op, app_ref, exc)
            raise translate(exc, {StorageKind.APP_NOT_FOUND: ErrorKind.INVALID_CREDENTIALS}) from exc

        token = self._issuer.mint(user, app, self._token_ttl)
        logger.info("%s: user_id=%s logged in to app_id=%s", op, user.id, app.id)
        return token

    def register(self, email: str, password: str) -> int:
        """Create a user with a bcrypt-hashed password and return the new id."""
        op = "auth.register"
        logger.info("%s: registering user", op)
        pass_hash = hash_password(password)
        try:
            user_id = self._users.save_user(email, pass_hash)
        except StorageError as exc:
            if exc.kind is StorageKind.USER_EXISTS:
                logger.warning("%s: user already exists", op)
            else:
                logger.error("%s: failed to save user: %s", op, exc)
            raise translate(exc, {StorageKind.USER_EXISTS: ErrorKind.USER_EXISTS}) from exc
        logger.info("%s: registered user_id=%s", op, user_id)
        return user_id

    def is_admin(self, user_id: int, app_ref: AppRef) -> bool:
        """Return True if `user_id` holds the admin role for `app_ref`."""
        op = "auth.is_admin"
        try:
            app = self._apps.get_app(app_ref)
            is_admin = self._ledger.is_admin(user_id, app.id)
        except StorageError as exc:
            logger.warning("%s: %s", op, exc)
            raise translate(exc, {StorageKind.APP_NOT_FOUND: ErrorKind.INVALID_CREDENTIALS}) from exc
        logger.info("%s: user_id=%s app_id=%s is_admin=%s", op, user_id, app.id, is_admin)
        return is_admin
