"""
Crews router.

Mounts under ``/api/cuadrillas`` (prefix set in ``main.py``).

Endpoints
---------
POST  /                   — Create a crew (ADMIN/OPERADOR, 201).
GET   /                   — List crews (?disponibilidad=AVAILABLE&zona=...).
GET   /{id}               — One crew.
PATCH /{id}/disponibilidad — Take offline / bring back online.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import JSONResponse

from operaciones.dependencies import get_cuadrilla_service
from operaciones.models.usuario import Usuario
from operaciones.schemas.common import ApiResponse
from operaciones.schemas.cuadrilla import (
    CuadrillaCreate,
    CuadrillaResponse,
    DisponibilidadRequest,
)
from operaciones.services.auth_service import get_current_user, require_role
from operaciones.services.cuadrilla_service import CuadrillaService
from operaciones.utils.constants import ROLES_BACKOFFICE, Disponibilidad
from operaciones.utils.responses import envelope

router = APIRouter(tags=["Cuadrillas"])

Service = Annotated[CuadrillaService, Depends(get_cuadrilla_service)]
CuadrillaId = Annotated[str, Path(description="ID de la cuadrilla")]


def _cuadrilla(cuadrilla) -> CuadrillaResponse:
    return CuadrillaResponse.model_validate(cuadrilla)


@router.post(
    "/",
    response_model=ApiResponse[CuadrillaResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Crear cuadrilla",
)
def crear_cuadrilla(
    body: CuadrillaCreate,
    service: Service,
    _current_user: Annotated[Usuario, Depends(require_role(*ROLES_BACKOFFICE))],
) -> JSONResponse:
    return envelope(service.create(body), _cuadrilla, status_code=status.HTTP_201_CREATED)


@router.get("/", response_model=ApiResponse[list[CuadrillaResponse]], summary="Listar cuadrillas")
def listar_cuadrillas(
    service: Service,
    _current_user: Annotated[Usuario, Depends(get_current_user)],
    disponibilidad: Annotated[Disponibilidad | None, Query()] = None,
    zona: Annotated[str | None, Query(max_length=100)] = None,
) -> JSONResponse:
    result = service.list_crews(disponibilidad=disponibilidad, zona=zona)
    return envelope(result, lambda rows: [_cuadrilla(r) for r in rows])


@router.get("/{cuadrilla_id}", response_model=ApiResponse[CuadrillaResponse], summary="Detalle de cuadrilla")
def obtener_cuadrilla(
    cuadrilla_id: CuadrillaId,
    service: Service,
    _current_user: Annotated[Usuario, Depends(get_current_user)],
) -> JSONResponse:
    return envelope(service.get_crew(cuadrilla_id), _cuadrilla)


@router.patch(
    "/{cuadrilla_id}/disponibilidad",
    response_model=ApiResponse[CuadrillaResponse],
    summary="Poner cuadrilla fuera de servicio o en línea",
)
def cambiar_disponibilidad(
    cuadrilla_id: CuadrillaId,
    body: DisponibilidadRequest,
    service: Service,
    _current_user: Annotated[Usuario, Depends(require_role(*ROLES_BACKOFFICE))],
) -> JSONResponse:
    return envelope(service.set_online(cuadrilla_id, body.online), _cuadrilla)
