"""
api/routes/v1/apps.py -- Application lifecycle endpoints.

Routes:
  GET    /api/v1/apps/{name}  -- public: resolve an app name to its id
  POST   /api/v1/apps         -- register an app; the named user becomes
                                 its creator and first admin
  PATCH  /api/v1/apps/{name}  -- rename + rotate secret (creator only, Bearer)
  DELETE /api/v1/apps/{name}  -- delete app and its roles (creator only, Bearer)

The app secret is write-only over this API: no endpoint ever returns it.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from api.dependencies import get_app_service, request_metadata
from api.models import AppIdResponse, DelAppResponse, SetAppRequest, SetAppResponse, UpdAppRequest, UpdAppResponse
from auth.gate import Metadata
from services.apps import AppService

router = APIRouter()

_AppNamePath = Annotated[str, Path(min_length=1, max_length=255)]


@router.get("/apps/{name}", response_model=AppIdResponse)
def get_app_id(
    name: _AppNamePath,
    apps: Annotated[AppService, Depends(get_app_service)],
) -> AppIdResponse:
    app_id, app_name = apps.get_app_id(name)
    return AppIdResponse(app_id=app_id, app_name=app_name)


@router.post("/apps", response_model=SetAppResponse, status_code=201)
def set_app(
    body: SetAppRequest,
    apps: Annotated[AppService, Depends(get_app_service)],
) -> SetAppResponse:
    return SetAppResponse(app_id=apps.set_app(body.email, body.app_name, body.app_secret))


@router.patch("/apps/{name}", response_model=UpdAppResponse)
def upd_app(
    name: _AppNamePath,
    body: UpdAppRequest,
    metadata: Annotated[Metadata, Depends(request_metadata)],
    apps: Annotated[AppService, Depends(get_app_service)],
) -> UpdAppResponse:
    """Rename the app and rotate its secret. Outstanding tokens stop verifying."""
    return UpdAppResponse(is_upd_app=apps.upd_app(name, body.new_app_name, body.new_app_secret, metadata))


@router.delete("/apps/{name}", response_model=DelAppResponse)
def del_app(
    name: _AppNamePath,
    metadata: Annotated[Metadata, Depends(request_metadata)],
    apps: Annotated[AppService, Depends(get_app_service)],
) -> DelAppResponse:
    return DelAppResponse(is_del_app=apps.del_app(name, metadata))
