"""
api/routes/v1/auth.py -- Login, registration and admin lookup endpoints.

Routes:
  POST /api/v1/auth/login      -- email + password + app -> session token
  POST /api/v1/auth/register   -- create a user; 201 with the new id
  GET  /api/v1/auth/is-admin   -- is user_id an admin of the given app?

All three are public: they are how a client obtains credentials in the first
place. Login failures for an unknown email, a wrong password and an unknown
app are indistinguishable (400 invalid_argument) [see services/auth.py].
Cache-Control: no-store on login responses so tokens are never cached.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response

from api.dependencies import get_auth_service, role_query
from api.models import IsAdminResponse, LoginRequest, LoginResponse, RegisterRequest, RegisterResponse, RoleQuery
from services.auth import AuthService

router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    response: Response,
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    """Authenticate with email and password; return a token for the chosen app."""
    token = auth.login(body.email, body.password, body.app_ref)
    response.headers["Cache-Control"] = "no-store"
    return LoginResponse(token=token)


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(
    body: RegisterRequest,
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> RegisterResponse:
    """Register a new user. 409 if the email is already taken."""
    user_id = auth.register(body.email, body.password)
    return RegisterResponse(user_id=user_id)


@router.get("/auth/is-admin", response_model=IsAdminResponse)
def is_admin(
    query: Annotated[RoleQuery, Depends(role_query)],
    auth: Annotated[AuthService, Depends(get_auth_service)],
) -> IsAdminResponse:
    return IsAdminResponse(is_admin=auth.is_admin(query.user_id, query.app_ref))
