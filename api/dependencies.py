"""
api/dependencies.py -- FastAPI Depends() helpers.

Services are built once in the lifespan and parked on app.state; the getters
below hand them to route handlers. request_metadata() converts HTTP headers
into the transport-neutral metadata mapping that auth.gate understands.

Layer rule: this module may import from fastapi, auth/, core/ and services/,
never from storage/.
"""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Query, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from api.models import RoleQuery
from auth.gate import Metadata
from core.models import MAX_ID
from services.apps import AppService
from services.auth import AuthService
from services.permissions import PermissionService


def request_metadata(request: Request) -> Metadata:
    """Collect every header as lower-case name -> list of values.

    Repeated headers stay separate entries, so a request carrying two
    Authorization headers is visible as such to the gate.
    """
    metadata: dict[str, list[str]] = {}
    for raw_name, raw_value in request.headers.raw:
        name = raw_name.decode("latin-1").lower()
        metadata.setdefault(name, []).append(raw_value.decode("latin-1"))
    return metadata


def role_query(
    user_id: Annotated[int, Query(ge=1, le=MAX_ID)],
    app_id: Annotated[Optional[int], Query(ge=1, le=MAX_ID)] = None,
    app_name: Annotated[Optional[str], Query(min_length=1, max_length=255)] = None,
) -> RoleQuery:
    """Validate the (user_id, app_id | app_name) query shared by role lookups."""
    try:
        return RoleQuery(user_id=user_id, app_id=app_id, app_name=app_name)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_permission_service(request: Request) -> PermissionService:
    return request.app.state.permission_service


def get_app_service(request: Request) -> AppService:
    return request.app.state.app_service
