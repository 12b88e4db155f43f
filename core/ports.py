"""
core/ports.py -- Capability interfaces consumed by auth/ and services/.

Each protocol is deliberately narrow: a service declares only the capability
it uses and receives it through its constructor. storage.store.Storage
satisfies all of them; tests may pass the same Storage or any stand-in with
the same methods.

All methods raise storage.errors.StorageError on failure.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Protocol

from core.models import App, AppRef, User


class CredentialStore(Protocol):
    def save_user(self, email: str, pass_hash: bytes) -> int: ...

    def get_user(self, email: str) -> User: ...


class AppRegistry(Protocol):
    def get_app_by_name(self, name: str) -> App: ...

    def get_app_by_id(self, app_id: int) -> App: ...

    def get_app(self, ref: AppRef) -> App: ...

    def create_app(self, name: str, secret: str) -> int: ...

    def update_app(self, name: str, new_name: str, new_secret: str) -> None: ...

    def delete_app(self, name: str) -> None: ...


class PermissionLedger(Protocol):
    def set_admin(self, user_id: int, app_id: int) -> bool: ...

    def del_admin(self, user_id: int, app_id: int) -> bool: ...

    def is_admin(self, user_id: int, app_id: int) -> bool: ...

    def set_creator(self, user_id: int, app_id: int) -> bool: ...

    def is_creator(self, user_id: int, app_id: int) -> bool: ...


class UnitOfWork(Protocol):
    """Groups several capability calls into one atomic scope."""

    def transaction(self) -> AbstractContextManager[Any]: ...
