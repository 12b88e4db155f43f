"""
auth/tokens.py -- Session tokens and password hashing.

Security design decisions:
  JWT: python-jose with HS256. Each token is signed with the secret of the
       app it was issued for, never with a process-wide key. Claims are
       uid, email, app_id and exp. Rotating an app's secret therefore
       invalidates every token issued for that app.

       verify() decodes into TokenClaims, a strict pydantic model: a uid that
       is a string, a float, a bool or negative is rejected rather than
       coerced. Any failure raises InvalidToken; callers decide what that
       means for the user.

       Expiry is exclusive: a token is dead at exp, not one second after.
       python-jose only rejects exp < now, so verify() turns its check off
       and compares exp <= now against the issuer's own clock.

  Passwords: bcrypt directly (no passlib wrapper) at the library's default
       work factor. The _DUMMY_HASH constant enables timing equalization in
       AuthService.login() so response time does not reveal whether an email
       is registered.

Layer rule: imports only core/ plus third-party libraries.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from core.models import MAX_ID, App, User

logger = logging.getLogger("sso.auth.tokens")

_ALGORITHM = "HS256"


class InvalidToken(Exception):
    """Raised by TokenIssuer.verify() for any token that must not be trusted."""


class TokenClaims(BaseModel):
    """Verified token payload.

    Strict types: JSON numbers must arrive as integers, booleans are not
    accepted as integers, and extra claims are ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    uid: StrictInt = Field(ge=0, le=MAX_ID)
    email: StrictStr
    app_id: StrictInt = Field(ge=0, le=MAX_ID)
    exp: StrictInt


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> bytes:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes and recent releases refuse longer
    input outright. The API layer caps passwords at 72 bytes before they get
    here.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt())


def verify_password(plain: str, hashed: bytes) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed)
    except ValueError:
        # Malformed stored hash or over-long input.
        return False


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. Login checks the password against this hash
# when the email is unknown, so both failure paths cost one bcrypt round.
_DUMMY_HASH: bytes = hash_password("sso_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Spend one bcrypt comparison without a real hash to compare against."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# Token issuer
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Mints and verifies HS256 session tokens keyed by an app's secret.

    No I/O. The clock is injectable so tests can pin "now".
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock

    def mint(self, user: User, app: App, ttl: timedelta) -> str:
        """Encode a signed token for `user` scoped to `app`, valid for `ttl`.

        A zero ttl yields a token that is already expired.
        """
        if ttl < timedelta(0):
            raise ValueError("token ttl must not be negative")
        expire = self._clock() + ttl
        payload = {
            "uid": user.id,
            "email": user.email,
            "app_id": app.id,
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(payload, app.secret, algorithm=_ALGORITHM)

    def verify(self, token: str, secret: str) -> TokenClaims:
        """Check signature, structure, claim types and expiry.

        Raises InvalidToken on any failure.
        """
        try:
            # Expiry is checked below against the injected clock.
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM], options={"verify_exp": False})
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc
        try:
            claims = TokenClaims.model_validate(payload)
        except ValidationError as exc:
            raise InvalidToken("malformed token claims") from exc
        if claims.exp <= self._clock().timestamp():
            raise InvalidToken("token has expired")
        return claims
