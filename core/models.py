"""
core/models.py -- Domain dataclasses for the SSO core.

Pattern: Data class (pure data container, zero logic). Stores produce these,
services pass them around, route handlers map them to API response models.

Layer rule: no imports from api/, auth/, services/, or storage/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

# Identifiers are signed 64-bit integers (BIGINT) everywhere. Request models
# and token claims validate against this bound before anything reaches SQL.
MAX_ID = 2**63 - 1

# Callers may name an app by numeric id or by its unique name.
AppRef = Union[int, str]


@dataclass
class User:
    """A registered identity.

    pass_hash is the raw bcrypt output (bytes). It is never mutated after
    registration and never leaves the service layer.
    """

    id: int
    email: str
    pass_hash: bytes


@dataclass
class App:
    """A registered application.

    secret is the HMAC key for every token issued to this app. Rotating it
    (UpdApp) invalidates all outstanding tokens for the app.
    """

    id: int
    name: str
    secret: str


@dataclass(frozen=True)
class Caller:
    """The identity behind a verified bearer token, resolved for one app."""

    user_id: int
    email: str
    app_id: int
    is_creator: bool
