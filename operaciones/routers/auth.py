"""
Authentication router, mounted under ``/api/auth``.

Endpoints:
    POST /login      — OAuth2 form login (Swagger "Authorize" button).
    POST /login/json — Same login with a JSON body.
    POST /refresh    — Exchange a valid token for a fresh one.
    GET  /me         — Profile of the authenticated user.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from operaciones.database import get_db
from operaciones.models.usuario import Usuario
from operaciones.schemas.auth import LoginRequest, TokenResponse, UserResponse
from operaciones.services.auth_service import authenticate_user, get_current_user
from operaciones.utils.security import create_access_token, user_claims

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


def _issue_token(db: Session, username: str, password: str) -> TokenResponse:
    user = authenticate_user(db, username, password)
    if user is None:
        logger.warning("Failed login attempt for username='%s'", username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciales incorrectas o cuenta inactiva",
            headers={"WWW-Authenticate": "Bearer"},
        )
    logger.info("Successful login for username='%s' rol='%s'", user.username, user.rol)
    return TokenResponse(access_token=create_access_token(user_claims(user)))


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Iniciar sesión",
    responses={401: {"description": "Credenciales incorrectas o cuenta inactiva."}},
)
def login(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    return _issue_token(db, form_data.username, form_data.password)


@router.post(
    "/login/json",
    response_model=TokenResponse,
    summary="Iniciar sesión (JSON)",
    responses={401: {"description": "Credenciales incorrectas o cuenta inactiva."}},
)
def login_json(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    return _issue_token(db, body.username, body.password)


@router.post("/refresh", response_model=TokenResponse, summary="Renovar token")
def refresh_token(
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> TokenResponse:
    logger.info("Token refreshed for username='%s'", current_user.username)
    return TokenResponse(access_token=create_access_token(user_claims(current_user)))


@router.get("/me", response_model=UserResponse, summary="Perfil del usuario autenticado")
def get_me(
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> UserResponse:
    return UserResponse.model_validate(current_user)
