"""
api/routes/v1/permissions.py -- Admin role management endpoints.

Routes:
  POST /api/v1/permissions/set-admin   -- grant admin (creator only, Bearer)
  POST /api/v1/permissions/del-admin   -- revoke admin (creator only, Bearer)
  GET  /api/v1/permissions/is-admin    -- public role lookup
  GET  /api/v1/permissions/is-creator  -- public role lookup

Auth policy:
  set-admin / del-admin require "Authorization: Bearer <token>" where the
  token was issued for the target app to that app's creator.
    no/malformed header   -> 401 unauthenticated
    bad or foreign token  -> 400 invalid_argument
    not the creator       -> 403 permission_denied
  Both are idempotent: repeating a grant or revoke returns 200 again.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from api.dependencies import get_permission_service, request_metadata, role_query
from api.models import (
    AdminChangeRequest,
    DelAdminResponse,
    IsAdminResponse,
    IsCreatorResponse,
    RoleQuery,
    SetAdminResponse,
)
from auth.gate import Metadata
from services.permissions import PermissionService

router = APIRouter()


@router.post("/permissions/set-admin", response_model=SetAdminResponse)
def set_admin(
    body: AdminChangeRequest,
    metadata: Annotated[Metadata, Depends(request_metadata)],
    perms: Annotated[PermissionService, Depends(get_permission_service)],
) -> SetAdminResponse:
    return SetAdminResponse(set_admin=perms.set_admin(body.email, body.app_ref, metadata))


@router.post("/permissions/del-admin", response_model=DelAdminResponse)
def del_admin(
    body: AdminChangeRequest,
    metadata: Annotated[Metadata, Depends(request_metadata)],
    perms: Annotated[PermissionService, Depends(get_permission_service)],
) -> DelAdminResponse:
    return DelAdminResponse(del_admin=perms.del_admin(body.email, body.app_ref, metadata))


@router.get("/permissions/is-admin", response_model=IsAdminResponse)
def is_admin(
    query: Annotated[RoleQuery, Depends(role_query)],
    perms: Annotated[PermissionService, Depends(get_permission_service)],
) -> IsAdminResponse:
    return IsAdminResponse(is_admin=perms.is_admin(query.user_id, query.app_ref))


@router.get("/permissions/is-creator", response_model=IsCreatorResponse)
def is_creator(
    query: Annotated[RoleQuery, Depends(role_query)],
    perms: Annotated[PermissionService, Depends(get_permission_service)],
) -> IsCreatorResponse:
    return IsCreatorResponse(is_creator=perms.is_creator(query.user_id, query.app_ref))
