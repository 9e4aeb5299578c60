"""
Password hashing and JWT helpers for backoffice authentication.

Passwords are hashed with bcrypt directly; tokens are HS256 JWTs signed
with ``JWT_SECRET`` via python-jose. Secrets come from settings only.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from operaciones.config import get_settings

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Check *plain* against a bcrypt hash; malformed hashes never match."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        logger.warning("verify_password: stored hash is not a valid bcrypt hash")
        return False


def user_claims(user: Any) -> dict[str, Any]:
    """Claims embedded in every token issued for *user*."""
    return {"sub": str(user.id), "username": user.username, "rol": user.rol}


def create_access_token(data: dict[str, Any], expires_minutes: int | None = None) -> str:
    """Sign a JWT carrying *data* plus ``iat`` and ``exp`` claims.

    Args:
        data: Claims to embed; ``sub`` should hold the user id as a string.
        expires_minutes: Lifetime override; defaults to
            ``JWT_EXPIRATION_MINUTES``.

    Returns:
        The compact JWT string.
    """
    settings = get_settings()
    issued = datetime.now(timezone.utc)
    lifetime = expires_minutes if expires_minutes is not None else settings.JWT_EXPIRATION_MINUTES
    payload = {**data, "iat": issued, "exp": issued + timedelta(minutes=lifetime)}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> dict[str, Any]:
    """Decode *token*, checking signature and expiry.

    Raises:
        ValueError: If the token is malformed, tampered with or expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        logger.debug("JWT verification failed: %s", exc)
        raise ValueError("Token inválido o expirado") from exc
