"""
Pydantic v2 schemas for the authentication endpoints.

Covers the login request payload, the JWT token response, and the
public user representation returned by ``GET /api/auth/me``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LoginRequest(BaseModel):
    """Payload accepted by ``POST /api/auth/login``.

    Attributes:
        username: The user's unique login name.
        password: Plain-text password (transmitted over HTTPS only).
    """

    username: str = Field(
        ...,
        min_length=3,
        max_length=50,
        description="Nombre de usuario único del sistema",
    )
    password: str = Field(
        ...,
        min_length=6,
        max_length=128,
        description="Contraseña en texto plano (solo sobre HTTPS)",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "username": "operador1",
                "password": "secret1234",
            }
        }
    )


class TokenResponse(BaseModel):
    """Response body returned after a successful authentication.

    Attributes:
        access_token: Signed JWT string to be sent in the
                      ``Authorization: Bearer <token>`` header.
        token_type: Always ``"bearer"`` per OAuth2 convention.
    """

    access_token: str = Field(..., description="JWT de acceso firmado con HS256")
    token_type: str = Field(default="bearer", description="Tipo de token OAuth2")


class UserResponse(BaseModel):
    """Public representation of an authenticated user.

    Sensitive fields (``password_hash``) are deliberately excluded.

    Attributes:
        id: Database primary key.
        username: Unique login name.
        email: Email address on record.
        nombre_completo: Full display name.
        telefono: Contact phone, if any.
        rol: Role code; one of ``constants.ROLES``.
        activo: Whether the account is currently active.
    """

    id: int
    username: str
    email: EmailStr
    nombre_completo: str | None
    telefono: str | None = None
    rol: str | None
    activo: bool

    model_config = ConfigDict(from_attributes=True)
