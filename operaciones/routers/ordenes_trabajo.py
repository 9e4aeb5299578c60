"""
Work orders router.

Mounts under ``/api/ordenes-trabajo`` (prefix set in ``main.py``).

Every endpoint requires a valid JWT and is limited to ADMIN and OPERADOR,
reads included. Crews may also report progress and add notes.
Responses use the ``{success, data, error}`` envelope; expected failures
come back as HTTP 400 with an error code.

Endpoints
---------
POST  /                    — Create a work order (201).
GET   /                    — Paged list (?estado=&cuadrilla_id=&skip=&take=).
GET   /{id}                — One work order.
PATCH /{id}/estado         — State transition.
PATCH /{id}/cuadrilla      — Assign or reassign a crew.
PATCH /{id}/progreso       — Progress percentage.
POST  /{id}/notas          — Append a note to the timeline.
GET   /{id}/timeline       — Timeline (?analizar=true for workday analysis).
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import JSONResponse

from operaciones.dependencies import get_work_order_service
from operaciones.models.usuario import Usuario
from operaciones.schemas.common import ApiResponse, Page
from operaciones.schemas.orden_trabajo import (
    AsignacionRequest,
    EventoOrdenResponse,
    NotaRequest,
    OrdenFilterParams,
    OrdenTrabajoCreate,
    OrdenTrabajoResponse,
    ProgresoRequest,
    TransicionRequest,
)
from operaciones.services.auth_service import require_role
from operaciones.services.orden_trabajo_service import WorkOrderService
from operaciones.utils.constants import ROLES_BACKOFFICE, EstadoOrden, Prioridad
from operaciones.utils.responses import envelope

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Órdenes de trabajo"])

Service = Annotated[WorkOrderService, Depends(get_work_order_service)]
OrdenId = Annotated[str, Path(description="ID de la orden de trabajo")]

_ERRORES = {400: {"description": "Operación rechazada; ver ``error.code``."}}


def _orden(orden) -> OrdenTrabajoResponse:
    return OrdenTrabajoResponse.model_validate(orden)


def _filter_params(
    cliente_id: Annotated[int | None, Query(ge=1)] = None,
    cuadrilla_id: Annotated[str | None, Query()] = None,
    estado: Annotated[EstadoOrden | None, Query()] = None,
    categoria_servicio: Annotated[str | None, Query(max_length=100)] = None,
    prioridad: Annotated[Prioridad | None, Query()] = None,
) -> OrdenFilterParams:
    return OrdenFilterParams(
        cliente_id=cliente_id,
        cuadrilla_id=cuadrilla_id,
        estado=estado,
        categoria_servicio=categoria_servicio,
        prioridad=prioridad,
    )


@router.post(
    "/",
    response_model=ApiResponse[OrdenTrabajoResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Crear orden de trabajo",
    responses=_ERRORES,
)
def crear_orden(
    body: OrdenTrabajoCreate,
    service: Service,
    current_user: Annotated[Usuario, Depends(require_role(*ROLES_BACKOFFICE))],
) -> JSONResponse:
    result = service.create(body, actor_id=current_user.id)
    return envelope(result, _orden, status_code=status.HTTP_201_CREATED)


@router.get(
    "/",
    response_model=ApiResponse[Page[OrdenTrabajoResponse]],
    summary="Listar órdenes de trabajo",
    responses=_ERRORES,
)
def listar_ordenes(
    filters: Annotated[OrdenFilterParams, Depends(_filter_params)],
    service: Service,
    _current_user: Annotated[Usuario, Depends(require_role(*ROLES_BACKOFFICE))],
    skip: Annotated[int, Query(ge=0)] = 0,
    take: Annotated[int, Query(ge=1, le=200)] = 20,
) -> JSONResponse:
    logger.debug("GET /ordenes-trabajo/ filters=%s skip=%d take=%d", filters, skip, take)
    return envelope(service.list_orders(filters, skip=skip, take=take))


@router.get(
    "/{orden_id}",
    response_model=ApiResponse[OrdenTrabajoResponse],
    summary="Detalle de orden de trabajo",
    responses=_ERRORES,
)
def obtener_orden(
    orden_id: OrdenId,
    service: Service,
    _current_user: Annotated[Usuario, Depends(require_role(*ROLES_BACKOFFICE))],
) -> JSONResponse:
    return envelope(service.get_order(orden_id), _orden)


@router.patch(
    "/{orden_id}/estado",
    response_model=ApiResponse[OrdenTrabajoResponse],
    summary="Cambiar estado",
    responses=_ERRORES,
)
def cambiar_estado(
    orden_id: OrdenId,
    body: TransicionRequest,
    service: Service,
    current_user: Annotated[Usuario, Depends(require_role(*ROLES_BACKOFFICE))],
) -> JSONResponse:
    result = service.transition(orden_id, body.estado, nota=body.nota, actor_id=current_user.id)
    return envelope(result, _orden)


@router.patch(
    "/{orden_id}/cuadrilla",
    response_model=ApiResponse[OrdenTrabajoResponse],
    summary="Asignar cuadrilla",
    responses=_ERRORES,
)
def asignar_cuadrilla(
    orden_id: OrdenId,
    body: AsignacionRequest,
    service: Service,
    current_user: Annotated[Usuario, Depends(require_role(*ROLES_BACKOFFICE))],
) -> JSONResponse:
    result = service.assign_crew(
        orden_id,
        body.cuadrilla_id,
        actor_id=current_user.id,
        nota=body.nota,
    )
    return envelope(result, _orden)


@router.patch(
    "/{orden_id}/progreso",
    response_model=ApiResponse[OrdenTrabajoResponse],
    summary="Actualizar progreso",
    responses=_ERRORES,
)
def actualizar_progreso(
    orden_id: OrdenId,
    body: ProgresoRequest,
    service: Service,
    current_user: Annotated[
        Usuario, Depends(require_role(*ROLES_BACKOFFICE, "CUADRILLA"))
    ],
) -> JSONResponse:
    result = service.update_progress(orden_id, body.progreso, actor_id=current_user.id)
    return envelope(result, _orden)


@router.post(
    "/{orden_id}/notas",
    response_model=ApiResponse[EventoOrdenResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Agregar nota",
    responses=_ERRORES,
)
def agregar_nota(
    orden_id: OrdenId,
    body: NotaRequest,
    service: Service,
    current_user: Annotated[
        Usuario, Depends(require_role(*ROLES_BACKOFFICE, "CUADRILLA"))
    ],
) -> JSONResponse:
    result = service.add_note(orden_id, body.nota, actor_id=current_user.id)
    return envelope(result, EventoOrdenResponse.model_validate, status_code=status.HTTP_201_CREATED)


@router.get(
    "/{orden_id}/timeline",
    summary="Historial de la orden",
    description=(
        "Sin ``analizar`` devuelve los eventos en orden cronológico. Con "
        "``analizar=true`` los agrupa por jornada (fecha local de la orden) "
        "con duración y productividad."
    ),
    responses=_ERRORES,
)
def obtener_timeline(
    orden_id: OrdenId,
    service: Service,
    _current_user: Annotated[Usuario, Depends(require_role(*ROLES_BACKOFFICE))],
    analizar: Annotated[bool, Query()] = False,
) -> JSONResponse:
    if analizar:
        return envelope(service.get_timeline_analysis(orden_id))
    return envelope(
        service.get_timeline(orden_id),
        lambda eventos: [EventoOrdenResponse.model_validate(e) for e in eventos],
    )
