"""
Pydantic v2 schemas for crews.

Crew members are a tagged union: a member is either linked to a system
user (``kind="linked"``) or entered by hand with just a name
(``kind="manual"``). The tag is explicit in the stored JSON so a row is
never reinterpreted at read time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from operaciones.utils.constants import Disponibilidad, EstadoCuadrilla


class MiembroVinculado(BaseModel):
    """Crew member backed by a ``Usuario`` account."""

    kind: Literal["linked"] = "linked"
    user_id: int = Field(..., ge=1)


class MiembroManual(BaseModel):
    """Crew member known only by name."""

    kind: Literal["manual"] = "manual"
    name: str = Field(..., min_length=1, max_length=150)


Miembro = Annotated[Union[MiembroVinculado, MiembroManual], Field(discriminator="kind")]

miembros_adapter: TypeAdapter[list[Miembro]] = TypeAdapter(list[Miembro])


class CuadrillaCreate(BaseModel):
    """Payload for ``POST /api/cuadrillas``."""

    nombre: str = Field(..., min_length=1, max_length=150)
    zona: str | None = Field(default=None, max_length=100)
    miembros: list[Miembro] = Field(default_factory=list)
    notas: str | None = Field(default=None, max_length=1000)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "nombre": "Cuadrilla Norte",
                "zona": "Zona Norte",
                "miembros": [
                    {"kind": "linked", "user_id": 12},
                    {"kind": "manual", "name": "Juan Pérez"},
                ],
            }
        }
    )


class CuadrillaResponse(BaseModel):
    """Crew as returned by the API, with availability derived from ``estado``."""

    id: str
    nombre: str
    zona: str | None
    estado: EstadoCuadrilla
    disponibilidad: Disponibilidad
    miembros: list[Miembro]
    ordenes_activas: int
    progreso_actual: int | None
    notas: str | None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class DisponibilidadRequest(BaseModel):
    """Payload to take a crew offline or bring it back online."""

    online: bool
