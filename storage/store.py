"""
storage/store.py -- SQLAlchemy Core persistence layer for users, apps and roles.

Pattern: Repository + Data Mapper. Storage is the single adapter behind three
narrow capabilities (see core/ports.py):

  CredentialStore  -- save_user / get_user
  AppRegistry      -- get_app_by_name / get_app_by_id / get_app /
                      create_app / update_app / delete_app
  PermissionLedger -- set_admin / del_admin / is_admin /
                      set_creator / is_creator

Services receive the same Storage instance once per capability through their
constructors and never touch SQL directly. _row_to_user / _row_to_app are the
mappers.

Transactions:
  Every method runs inside transaction(). A call made while another
  transaction() is open on the same context joins it instead of opening a new
  one, so a service can wrap several capability calls in one atomic scope
  (AppService.set_app) and delete_app's cascade commits or rolls back as one.

Errors:
  Unique violations and missing rows become StorageError with a specific
  kind. Any other SQLAlchemy error becomes StorageError(BACKEND). No driver
  exception leaves this module.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: imports only core/ plus third-party libraries.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

from sqlalchemy import (
    BigInteger,
    Column,
    ForeignKey,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    select,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.deadline import check_deadline
from core.models import App, AppRef, User
from storage.errors import StorageError, StorageKind

logger = logging.getLogger("sso.storage")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

# BIGINT everywhere except SQLite, where only INTEGER PRIMARY KEY aliases the
# rowid and gets autoincrement behaviour.
_Id = BigInteger().with_variant(Integer(), "sqlite")

_users = Table(
    "users",
    _metadata,
    Column("id", _Id, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("pass_hash", LargeBinary, nullable=False),
)

_apps = Table(
    "apps",
    _metadata,
    Column("id", _Id, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("secret", Text, nullable=False),
)

_admins = Table(
    "admins",
    _metadata,
    Column("user_id", _Id, ForeignKey("users.id"), nullable=False),
    Column("app_id", _Id, ForeignKey("apps.id"), nullable=False),
    UniqueConstraint("user_id", "app_id", name="uq_admins_user_app"),
)

_creators = Table(
    "creators",
    _metadata,
    Column("user_id", _Id, ForeignKey("users.id"), nullable=False),
    Column("app_id", _Id, ForeignKey("apps.id"), nullable=False),
    UniqueConstraint("user_id", "app_id", name="uq_creators_user_app"),
)


# ---------------------------------------------------------------------------
# Engine events
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _enforce_deadline(conn, cursor, statement, parameters, context, executemany) -> None:
    # Raises SSOError(DEADLINE_EXCEEDED); SQLAlchemy re-raises it unwrapped.
    check_deadline()


class _AlreadyPresent(Exception):
    """Internal signal: a concurrent grant inserted the same pair first."""


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class Storage:
    """Repository for User, App, and the admin/creator relations.

    Usage:
        storage = Storage("sqlite:///sso.db")
        uid = storage.save_user("a@test.com", hash_password("password1"))
        app_id = storage.create_app("app1", "secret1")
        storage.close()

    The engine (and its connection pool) lives as long as the Storage
    instance. close() is owned by the caller that created it.
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        event.listen(self.engine, "before_cursor_execute", _enforce_deadline)
        # One slot per Storage so two stores never share a connection.
        self._active: ContextVar[Connection | None] = ContextVar(f"sso_storage_tx_{id(self)}", default=None)
        self.create_schema()

    def create_schema(self) -> None:
        """Create any missing tables. Idempotent -- safe to call on every startup."""
        try:
            _metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(StorageKind.BACKEND, "storage.create_schema") from exc

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Open an atomic scope, or join the one already open on this context.

        The outermost scope commits on normal exit and rolls back on any
        exception. Inner scopes neither commit nor roll back themselves.
        """
        check_deadline()
        conn = self._active.get()
        if conn is not None:
            yield conn
            return
        try:
            with self.engine.begin() as conn:
                token = self._active.set(conn)
                try:
                    yield conn
                finally:
                    self._active.reset(token)
        except SQLAlchemyError as exc:
            logger.error("storage transaction failed: %s", exc)
            raise StorageError(StorageKind.BACKEND, "storage.transaction") from exc

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.transaction() as conn:
                conn.execute(text("SELECT 1"))
        except StorageError:
            return False
        return True

    # ------------------------------------------------------------------
    # CredentialStore
    # ------------------------------------------------------------------

    def save_user(self, email: str, pass_hash: bytes) -> int:
        """Insert a user and return its assigned id. USER_EXISTS on duplicate email."""
        with self.transaction() as conn:
            try:
                result = conn.execute(_users.insert().values(email=email, pass_hash=pass_hash))
            except IntegrityError as exc:
                raise StorageError(StorageKind.USER_EXISTS, "storage.save_user") from exc
            return result.inserted_primary_key[0]

    def get_user(self, email: str) -> User:
        """Look up a user by exact email (case-sensitive)."""
        with self.transaction() as conn:
            row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        if row is None:
            raise StorageError(StorageKind.USER_NOT_FOUND, "storage.get_user")
        return _row_to_user(row)

    # ------------------------------------------------------------------
    # AppRegistry
    # ------------------------------------------------------------------

    def get_app_by_name(self, name: str) -> App:
        with self.transaction() as conn:
            row = conn.execute(_apps.select().where(_apps.c.name == name)).fetchone()
        if row is None:
            raise StorageError(StorageKind.APP_NOT_FOUND, "storage.get_app_by_name")
        return _row_to_app(row)

    def get_app_by_id(self, app_id: int) -> App:
        with self.transaction() as conn:
            row = conn.execute(_apps.select().where(_apps.c.id == app_id)).fetchone()
        if row is None:
            raise StorageError(StorageKind.APP_NOT_FOUND, "storage.get_app_by_id")
        return _row_to_app(row)

    def get_app(self, ref: AppRef) -> App:
        """Resolve an app by numeric id (int) or by name (str)."""
        if isinstance(ref, bool) or not isinstance(ref, (int, str)):
            raise TypeError(f"app reference must be int or str, got {type(ref).__name__}")
        if isinstance(ref, int):
            return self.get_app_by_id(ref)
        return self.get_app_by_name(ref)

    def create_app(self, name: str, secret: str) -> int:
        """Insert an app and return its id. APP_EXISTS on name collision."""
        with self.transaction() as conn:
            try:
                result = conn.execute(_apps.insert().values(name=name, secret=secret))
            except IntegrityError as exc:
                raise StorageError(StorageKind.APP_EXISTS, "storage.create_app") from exc
            return result.inserted_primary_key[0]

    def update_app(self, name: str, new_name: str, new_secret: str) -> None:
        """Rename an app and replace its secret in one statement.

        APP_NOT_FOUND if `name` is absent, APP_EXISTS if `new_name` belongs to
        a different app.
        """
        op = "storage.update_app"
        with self.transaction() as conn:
            app_id = conn.execute(select(_apps.c.id).where(_apps.c.name == name)).scalar()
            if app_id is None:
                raise StorageError(StorageKind.APP_NOT_FOUND, op)
            try:
                conn.execute(_apps.update().where(_apps.c.id == app_id).values(name=new_name, secret=new_secret))
            except IntegrityError as exc:
                raise StorageError(StorageKind.APP_EXISTS, op) from exc

    def delete_app(self, name: str) -> None:
        """Delete an app and every admin/creator relation that references it.

        All three deletes share one transaction: either the app and its
        relations are all gone, or nothing changed.
        """
        with self.transaction() as conn:
            app_id = conn.execute(select(_apps.c.id).where(_apps.c.name == name)).scalar()
            if app_id is None:
                raise StorageError(StorageKind.APP_NOT_FOUND, "storage.delete_app")
            conn.execute(_creators.delete().where(_creators.c.app_id == app_id))
            conn.execute(_admins.delete().where(_admins.c.app_id == app_id))
            conn.execute(_apps.delete().where(_apps.c.id == app_id))

    # ------------------------------------------------------------------
    # PermissionLedger
    # ------------------------------------------------------------------

    def set_admin(self, user_id: int, app_id: int) -> bool:
        """Grant admin. Returns False (and changes nothing) if already granted."""
        return self._grant(_admins, user_id, app_id, "storage.set_admin")

    def del_admin(self, user_id: int, app_id: int) -> bool:
        """Revoke admin. Returns False (and changes nothing) if not granted."""
        with self.transaction() as conn:
            result = conn.execute(
                _admins.delete().where((_admins.c.user_id == user_id) & (_admins.c.app_id == app_id))
            )
        return result.rowcount > 0

    def is_admin(self, user_id: int, app_id: int) -> bool:
        with self.transaction() as conn:
            return _relation_exists(conn, _admins, user_id, app_id)

    def set_creator(self, user_id: int, app_id: int) -> bool:
        return self._grant(_creators, user_id, app_id, "storage.set_creator")

    def is_creator(self, user_id: int, app_id: int) -> bool:
        with self.transaction() as conn:
            return _relation_exists(conn, _creators, user_id, app_id)

    def _grant(self, table: Table, user_id: int, app_id: int, op: str) -> bool:
        try:
            with self.transaction() as conn:
                if conn.execute(select(_users.c.id).where(_users.c.id == user_id)).scalar() is None:
                    raise StorageError(StorageKind.USER_NOT_FOUND, op)
                if conn.execute(select(_apps.c.id).where(_apps.c.id == app_id)).scalar() is None:
                    raise StorageError(StorageKind.APP_NOT_FOUND, op)
                if _relation_exists(conn, table, user_id, app_id):
                    return False
                try:
                    conn.execute(table.insert().values(user_id=user_id, app_id=app_id))
                except IntegrityError as exc:
                    raise _AlreadyPresent() from exc
                return True
        except _AlreadyPresent:
            logger.debug("%s: relation inserted concurrently (user_id=%s app_id=%s)", op, user_id, app_id)
            return False

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Helpers and row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _relation_exists(conn: Connection, table: Table, user_id: int, app_id: int) -> bool:
    row = conn.execute(
        select(table.c.user_id).where((table.c.user_id == user_id) & (table.c.app_id == app_id))
    ).fetchone()
    return row is not None


def _row_to_user(row) -> User:
    # Some drivers hand back memoryview for binary columns.
    return User(id=row.id, email=row.email, pass_hash=bytes(row.pass_hash))


def _row_to_app(row) -> App:
    return App(id=row.id, name=row.name, secret=row.secret)
