"""
Pydantic v2 schemas for work orders and their timeline.

Write schemas (``OrdenTrabajoCreate``, ``TransicionRequest``,
``ProgresoRequest``) are separate from the read schemas so that state and
progress can only change through their dedicated endpoints.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from operaciones.utils.constants import (
    EstadoOrden,
    PeligroAccidente,
    Prioridad,
    TipoEvento,
)


class OrdenTrabajoCreate(BaseModel):
    """Payload for ``POST /api/ordenes-trabajo``.

    ``situacion`` and ``categoria_servicio`` are required non-blank strings;
    the service rejects whitespace-only values. When ``prioridad`` is
    omitted it is derived from ``peligro_accidente``.
    """

    cliente_id: int = Field(..., ge=1)
    propiedad_id: int | None = Field(default=None, ge=1)
    suscripcion_id: str | None = None
    categoria_servicio: str = Field(..., max_length=100)
    situacion: str = Field(..., max_length=1000)
    observaciones: str | None = Field(default=None, max_length=1000)
    prioridad: Prioridad | None = None
    canal: str | None = Field(default=None, max_length=20)
    peligro_accidente: PeligroAccidente | None = None
    direccion: str | None = Field(default=None, max_length=300)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lng: float | None = Field(default=None, ge=-180, le=180)
    programada_para: datetime | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "cliente_id": 7,
                "propiedad_id": 3,
                "categoria_servicio": "plomería",
                "situacion": "pérdida de agua",
                "prioridad": "ALTA",
                "canal": "WHATSAPP",
            }
        }
    )


class TransicionRequest(BaseModel):
    """Payload for ``PATCH /api/ordenes-trabajo/{id}/estado``."""

    estado: EstadoOrden
    nota: str | None = Field(default=None, max_length=1000)


class ProgresoRequest(BaseModel):
    """Payload for ``PATCH /api/ordenes-trabajo/{id}/progreso``.

    Bounds are checked by the service so the caller gets an ``OUT_OF_RANGE``
    error in the standard envelope rather than a 422.
    """

    progreso: int


class OrdenFilterParams(BaseModel):
    """Optional list filters; ``None`` means no restriction on that axis."""

    cliente_id: int | None = None
    cuadrilla_id: str | None = None
    estado: EstadoOrden | None = None
    categoria_servicio: str | None = None
    prioridad: Prioridad | None = None


class OrdenTrabajoResponse(BaseModel):
    """Work order as returned by the API."""

    id: str
    cliente_id: int
    propiedad_id: int | None
    suscripcion_id: str | None
    cuadrilla_id: str | None
    categoria_servicio: str
    situacion: str
    descripcion: str | None
    prioridad: Prioridad
    canal: str | None
    peligro_accidente: str | None
    estado: EstadoOrden
    direccion: str | None
    lat: float | None
    lng: float | None
    progreso: int
    created_at: datetime
    programada_para: datetime | None
    started_at: datetime | None
    completed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class EventoOrdenResponse(BaseModel):
    """One timeline entry."""

    id: int
    orden_id: str
    tipo: TipoEvento
    at: datetime
    nota: str | None
    actor_id: int | None
    estado_desde: EstadoOrden | None
    estado_hacia: EstadoOrden | None
    meta: dict[str, Any] | None

    model_config = ConfigDict(from_attributes=True)


class JornadaAnalisis(BaseModel):
    """Events of one local calendar day with productivity figures.

    Attributes:
        fecha: Local calendar date of the workday.
        inicio: First event timestamp of the day.
        fin: Last event timestamp of the day.
        duracion_segundos: Elapsed time between first and last event.
        en_progreso_segundos: Time spent in EN_PROGRESO within the day.
        productividad: ``en_progreso_segundos / duracion_segundos`` (0 when
            the day has no elapsed time).
        eventos: Events of the day, oldest first.
    """

    fecha: date
    inicio: datetime
    fin: datetime
    duracion_segundos: float
    en_progreso_segundos: float
    productividad: float
    eventos: list[EventoOrdenResponse]


class TimelineAnalisisResponse(BaseModel):
    """Timeline grouped into workdays, oldest day first."""

    orden_id: str
    zona_horaria: str
    jornadas: list[JornadaAnalisis]
    total_en_progreso_segundos: float


class AsignacionRequest(BaseModel):
    """Payload for ``PATCH /api/ordenes-trabajo/{id}/cuadrilla``."""

    cuadrilla_id: str = Field(..., min_length=1)
    nota: str | None = Field(default=None, max_length=1000)


class NotaRequest(BaseModel):
    nota: str = Field(..., max_length=1000)
