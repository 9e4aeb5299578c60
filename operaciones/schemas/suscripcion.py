"""
Pydantic v2 schemas for plans, subscriptions and payments.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from operaciones.utils.constants import EstadoPago, EstadoSuscripcion


class PlanCreate(BaseModel):
    """Payload for ``POST /api/planes`` (ADMIN only)."""

    nombre: str = Field(..., min_length=1, max_length=150)
    descripcion: str | None = Field(default=None, max_length=1000)
    precio: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    moneda: str | None = Field(default=None, min_length=3, max_length=3)
    periodo_dias: int | None = Field(default=None, ge=1, le=366)
    categoria_servicio: str | None = Field(default=None, max_length=100)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "nombre": "Hogar Plus",
                "precio": "5000.00",
                "moneda": "ARS",
                "periodo_dias": 30,
                "categoria_servicio": "mantenimiento preventivo",
            }
        }
    )


class PlanResponse(BaseModel):
    id: str
    nombre: str
    descripcion: str | None
    precio: Decimal
    moneda: str
    periodo_dias: int
    categoria_servicio: str | None
    activo: bool

    model_config = ConfigDict(from_attributes=True)


class SuscripcionCreate(BaseModel):
    """Payload for ``POST /api/suscripciones``."""

    usuario_id: int = Field(..., ge=1)
    plan_id: str = Field(..., min_length=1)
    propiedad_id: int | None = Field(default=None, ge=1)
    dia_facturacion: int | None = Field(default=None, ge=1, le=28)


class UpgradeRequest(BaseModel):
    plan_id: str = Field(..., min_length=1)


class PausaRequest(BaseModel):
    dias: int | None = Field(default=None, ge=1, le=90)


class CancelacionRequest(BaseModel):
    motivo: str | None = Field(default=None, max_length=500)


class PagoManualRequest(BaseModel):
    """Cash or transfer payment registered by an operator."""

    monto: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    moneda: str | None = Field(default=None, min_length=3, max_length=3)
    nota: str | None = Field(default=None, max_length=1000)


class PagoResponse(BaseModel):
    id: str
    suscripcion_id: str
    monto: Decimal
    moneda: str
    estado: EstadoPago
    proveedor: str | None
    referencia: str | None
    periodo_inicio: datetime | None
    periodo_fin: datetime | None
    paid_at: datetime | None
    nota: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SuscripcionResponse(BaseModel):
    id: str
    usuario_id: int
    plan_id: str
    propiedad_id: int | None
    estado: EstadoSuscripcion
    dia_facturacion: int | None
    periodo_inicio: datetime
    periodo_fin: datetime
    proximo_cobro: datetime | None
    gracia_hasta: datetime | None
    pausada_hasta: datetime | None
    canceled_at: datetime | None
    suspended_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CobroResponse(BaseModel):
    """Outcome of ``POST /api/suscripciones/{id}/cobro``.

    ``cobrado`` is ``False`` when the current period was already paid and
    no payment attempt was made; ``pago`` is then the payment that settled
    the period, if any. A FAILED ``pago`` is a valid outcome, not an error.
    """

    cobrado: bool
    pago: PagoResponse | None
    suscripcion: SuscripcionResponse
    orden_recurrente_id: str | None = None
