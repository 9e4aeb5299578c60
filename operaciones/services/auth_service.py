"""
Authentication for the backoffice API.

- ``authenticate_user`` checks credentials and returns ``None`` on failure
  so the router decides the HTTP response.
- ``get_current_user`` resolves the Bearer JWT into an active ``Usuario``.
- ``require_role`` layers role checks on top of it.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from operaciones.config import get_settings
from operaciones.database import get_db
from operaciones.models.usuario import Usuario
from operaciones.utils.security import verify_password, verify_token

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{get_settings().API_PREFIX}/auth/login")


def authenticate_user(db: Session, username: str, password: str) -> Usuario | None:
    """Return the active user matching the credentials, or ``None``.

    Unknown users and wrong passwords take the same path so the response
    does not reveal which usernames exist. ``ultimo_acceso`` is updated on
    success; failing to store it does not fail the login.
    """
    user: Usuario | None = (
        db.query(Usuario)
        .filter(Usuario.username == username, Usuario.activo.is_(True))
        .first()
    )
    if user is None or not verify_password(password, user.password_hash):
        logger.debug("authenticate_user: rejected credentials for '%s'", username)
        return None

    try:
        user.ultimo_acceso = datetime.now(timezone.utc)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Could not update ultimo_acceso for user '%s'", username, exc_info=True)
    return user


def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[Session, Depends(get_db)],
) -> Usuario:
    """Resolve the ``Authorization: Bearer`` token into the calling user.

    Raises:
        HTTPException 401: Invalid/expired token, or the user no longer
            exists or was deactivated.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No se pudo validar las credenciales",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = verify_token(token)
        user_id = int(payload["sub"])
    except (ValueError, KeyError, TypeError):
        raise credentials_exception from None

    user = (
        db.query(Usuario)
        .filter(Usuario.id == user_id, Usuario.activo.is_(True))
        .first()
    )
    if user is None:
        raise credentials_exception
    return user


def require_role(*roles: str):
    """Dependency factory allowing only users whose ``rol`` is in *roles*.

    Example::

        @router.post("/planes")
        def crear_plan(user: Usuario = Depends(require_role("ADMIN"))): ...
    """
    allowed = frozenset(roles)

    def _check_role(
        current_user: Annotated[Usuario, Depends(get_current_user)],
    ) -> Usuario:
        if current_user.rol not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Acceso denegado. Se requiere uno de los roles: {sorted(allowed)}",
            )
        return current_user

    return _check_role
