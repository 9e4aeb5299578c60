"""
Subscriptions router.

Mounts under ``/api/suscripciones`` (prefix set in ``main.py``).

Customers (CLIENTE) only see their own subscriptions; every mutation is
restricted to ADMIN/OPERADOR, and manual payments to ADMIN.

Endpoints
---------
GET   /                 — List (?usuario_id=&estado=).
POST  /                 — Create (201).
GET   /{id}             — One subscription.
PATCH /{id}/plan        — Upgrade/downgrade; applies from the next charge.
POST  /{id}/cancelar    — Cancel (idempotent).
POST  /{id}/pausa       — Pause charging for N days.
POST  /{id}/cobro       — Run one charge attempt if the period is due.
GET   /{id}/pagos       — Payments, oldest first.
POST  /{id}/pagos       — Register a manual (cash/transfer) payment.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Query, status
from fastapi.responses import JSONResponse

from operaciones.dependencies import get_billing_engine
from operaciones.models.usuario import Usuario
from operaciones.schemas.common import ApiResponse
from operaciones.schemas.suscripcion import (
    CancelacionRequest,
    CobroResponse,
    PagoManualRequest,
    PagoResponse,
    PausaRequest,
    SuscripcionCreate,
    SuscripcionResponse,
    UpgradeRequest,
)
from operaciones.services.auth_service import get_current_user, require_role
from operaciones.services.suscripcion_service import BillingEngine, CobroResultado
from operaciones.utils.constants import ROLES_BACKOFFICE, EstadoSuscripcion
from operaciones.utils.responses import envelope
from operaciones.utils.result import Err, ServiceError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Suscripciones"])

Engine = Annotated[BillingEngine, Depends(get_billing_engine)]
SuscripcionId = Annotated[str, Path(description="ID de la suscripción")]
Backoffice = Annotated[Usuario, Depends(require_role(*ROLES_BACKOFFICE))]


def _suscripcion(suscripcion) -> SuscripcionResponse:
    return SuscripcionResponse.model_validate(suscripcion)


def _cobro(resultado: CobroResultado) -> CobroResponse:
    return CobroResponse(
        cobrado=resultado.cobrado,
        pago=PagoResponse.model_validate(resultado.pago) if resultado.pago else None,
        suscripcion=_suscripcion(resultado.suscripcion),
        orden_recurrente_id=resultado.orden_recurrente_id,
    )


@router.get("/", response_model=ApiResponse[list[SuscripcionResponse]], summary="Listar suscripciones")
def listar_suscripciones(
    engine: Engine,
    current_user: Annotated[Usuario, Depends(get_current_user)],
    usuario_id: Annotated[int | None, Query(ge=1)] = None,
    estado: Annotated[EstadoSuscripcion | None, Query()] = None,
) -> JSONResponse:
    if current_user.rol == "CLIENTE":
        usuario_id = current_user.id
    result = engine.list_subscriptions(usuario_id=usuario_id, estado=estado)
    return envelope(result, lambda rows: [_suscripcion(r) for r in rows])


@router.post(
    "/",
    response_model=ApiResponse[SuscripcionResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Crear suscripción",
)
def crear_suscripcion(
    body: SuscripcionCreate,
    engine: Engine,
    _current_user: Backoffice,
) -> JSONResponse:
    return envelope(
        engine.create_subscription(body),
        _suscripcion,
        status_code=status.HTTP_201_CREATED,
    )


@router.get("/{suscripcion_id}", response_model=ApiResponse[SuscripcionResponse], summary="Detalle")
def obtener_suscripcion(
    suscripcion_id: SuscripcionId,
    engine: Engine,
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> JSONResponse:
    result = engine.get_subscription(suscripcion_id)
    if current_user.rol == "CLIENTE" and result.ok and result.value.usuario_id != current_user.id:
        # Other customers' subscriptions read as missing
        result = Err(ServiceError.not_found("Suscripción", suscripcion_id))
    return envelope(result, _suscripcion)


@router.patch("/{suscripcion_id}/plan", response_model=ApiResponse[SuscripcionResponse], summary="Cambiar plan")
def cambiar_plan(
    suscripcion_id: SuscripcionId,
    body: UpgradeRequest,
    engine: Engine,
    _current_user: Backoffice,
) -> JSONResponse:
    return envelope(engine.upgrade_subscription(suscripcion_id, body.plan_id), _suscripcion)


@router.post("/{suscripcion_id}/cancelar", response_model=ApiResponse[SuscripcionResponse], summary="Cancelar")
def cancelar_suscripcion(
    suscripcion_id: SuscripcionId,
    engine: Engine,
    _current_user: Backoffice,
    body: Annotated[CancelacionRequest | None, Body()] = None,
) -> JSONResponse:
    motivo = body.motivo if body else None
    return envelope(engine.cancel_subscription(suscripcion_id, motivo=motivo), _suscripcion)


@router.post("/{suscripcion_id}/pausa", response_model=ApiResponse[SuscripcionResponse], summary="Pausar")
def pausar_suscripcion(
    suscripcion_id: SuscripcionId,
    engine: Engine,
    _current_user: Backoffice,
    body: Annotated[PausaRequest | None, Body()] = None,
) -> JSONResponse:
    dias = body.dias if body else None
    return envelope(engine.pause_subscription(suscripcion_id, dias=dias), _suscripcion)


@router.post(
    "/{suscripcion_id}/cobro",
    response_model=ApiResponse[CobroResponse],
    summary="Procesar cobro",
    description=(
        "Intenta un único cobro si el período venció. Un pago rechazado "
        "(``pago.estado == FAILED``) es una respuesta exitosa."
    ),
)
def procesar_cobro(
    suscripcion_id: SuscripcionId,
    engine: Engine,
    current_user: Backoffice,
) -> JSONResponse:
    logger.info("POST /suscripciones/%s/cobro by '%s'", suscripcion_id, current_user.username)
    return envelope(engine.process_charge(suscripcion_id), _cobro)


@router.get("/{suscripcion_id}/pagos", response_model=ApiResponse[list[PagoResponse]], summary="Pagos")
def listar_pagos(
    suscripcion_id: SuscripcionId,
    engine: Engine,
    _current_user: Backoffice,
) -> JSONResponse:
    return envelope(
        engine.list_payments(suscripcion_id),
        lambda pagos: [PagoResponse.model_validate(p) for p in pagos],
    )


@router.post(
    "/{suscripcion_id}/pagos",
    response_model=ApiResponse[PagoResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Registrar pago manual",
)
def registrar_pago_manual(
    suscripcion_id: SuscripcionId,
    body: PagoManualRequest,
    engine: Engine,
    _current_user: Annotated[Usuario, Depends(require_role("ADMIN"))],
) -> JSONResponse:
    result = engine.record_manual_payment(
        suscripcion_id,
        body.monto,
        moneda=body.moneda,
        nota=body.nota,
    )
    return envelope(result, PagoResponse.model_validate, status_code=status.HTTP_201_CREATED)
