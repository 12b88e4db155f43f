"""
API request and response models for the SSO REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py, which
own the internal domain representation. Route handlers map between the two.

Validation here is the first line of defence: malformed emails, empty
secrets, over-long passwords and out-of-range ids are rejected with 422
before any service code runs.
"""

from typing import Annotated, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator, model_validator

from core.models import MAX_ID

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", something on both sides, a dot in the domain.
# Emails are stored exactly as given (case-sensitive), so no normalization.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# bcrypt only hashes the first 72 bytes of a password.
MAX_PASSWORD_BYTES = 72

# App names travel as one URL path segment (/api/v1/apps/{name}).
APP_NAME_PATTERN = r"^[^/]+$"


def _not_a_dot_segment(value: str) -> str:
    # Clients collapse "." and ".." out of URLs before sending them.
    if value in (".", ".."):
        raise ValueError('app name must not be "." or ".."')
    return value


Email = Annotated[str, Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)]
AppName = Annotated[
    str,
    Field(min_length=1, max_length=255, pattern=APP_NAME_PATTERN),
    AfterValidator(_not_a_dot_segment),
]
AppSecret = Annotated[str, Field(min_length=1, max_length=1024)]
Identifier = Annotated[int, Field(ge=1, le=MAX_ID)]


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


class AppRefMixin(BaseModel):
    """Exactly one of app_id / app_name identifies the target application."""

    app_id: Optional[Identifier] = None
    app_name: Optional[AppName] = None

    @model_validator(mode="after")
    def exactly_one_app_ref(self):
        if (self.app_id is None) == (self.app_name is None):
            raise ValueError("provide exactly one of app_id or app_name")
        return self

    @property
    def app_ref(self) -> Union[int, str]:
        return self.app_id if self.app_id is not None else self.app_name


class PasswordMixin(BaseModel):
    password: str = Field(min_length=1)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return value


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(AppRefMixin, PasswordMixin):
    """Request body for POST /api/v1/auth/login."""

    email: Email


class LoginResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str


class RegisterRequest(PasswordMixin):
    """Request body for POST /api/v1/auth/register."""

    email: Email


class RegisterResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int


class RoleQuery(AppRefMixin):
    """Query parameters shared by the is-admin / is-creator lookups."""

    user_id: Identifier


class IsAdminResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_admin: bool


class IsCreatorResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_creator: bool


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------


class AdminChangeRequest(AppRefMixin):
    """Request body for POST /api/v1/permissions/set-admin and /del-admin."""

    email: Email


class SetAdminResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    set_admin: bool


class DelAdminResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    del_admin: bool


# ---------------------------------------------------------------------------
# Apps
# ---------------------------------------------------------------------------


class AppIdResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    app_id: int
    app_name: str


class SetAppRequest(BaseModel):
    """Request body for POST /api/v1/apps."""

    email: Email
    app_name: AppName
    app_secret: AppSecret


class SetAppResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    app_id: int


class UpdAppRequest(BaseModel):
    """Request body for PATCH /api/v1/apps/{name}. Both fields are required."""

    new_app_name: AppName
    new_app_secret: AppSecret


class UpdAppResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_upd_app: bool


class DelAppResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_del_app: bool


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
