"""
Shared Pydantic v2 schemas reused across multiple modules.

Provides the uniform response envelope, skip/take pagination, and the
paged list wrapper so that each domain module can compose them without
duplicating field definitions.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorBody(BaseModel):
    """Error details carried by a failed envelope.

    Attributes:
        message: Human-readable description of the failure.
        code: Machine-readable error code (e.g. ``INVALID_TRANSITION``).
    """

    message: str = Field(..., description="Descripción del error.")
    code: str | None = Field(default=None, description="Código de error estable.")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform response envelope ``{success, data?, error?}``.

    Attributes:
        success: ``True`` when the operation succeeded.
        data: Operation payload (absent on failure).
        error: Failure details (absent on success).
    """

    success: bool
    data: T | None = None
    error: ErrorBody | None = None


class PaginationParams(BaseModel):
    """Offset pagination parameters for list endpoints.

    Attributes:
        skip: Number of rows to skip.
        take: Number of rows to return (capped at 200 to protect DB).
    """

    skip: int = Field(default=0, ge=0, description="Registros a omitir.")
    take: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Registros a devolver (máximo 200).",
    )


class Page(BaseModel, Generic[T]):
    """One page of a list endpoint.

    Attributes:
        items: Rows on this page.
        total: Total rows matching the filters.
        skip: Offset used.
        take: Page size used.
    """

    items: list[T]
    total: int
    skip: int
    take: int


class MessageResponse(BaseModel):
    """Generic message payload for operations that do not return a resource.

    Attributes:
        message: Short human-readable result summary.
        detail: Optional extended information.
    """

    message: str = Field(..., description="Resumen del resultado de la operación.")
    detail: str | None = Field(
        default=None,
        description="Información adicional (contexto, sugerencia, etc.).",
    )
