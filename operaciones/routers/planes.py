"""
Plans router, mounted under ``/api/planes``.

GET  /  — Active plans (any authenticated user).
POST /  — Create a plan (ADMIN only, 201).
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from operaciones.dependencies import get_plan_service
from operaciones.models.usuario import Usuario
from operaciones.schemas.common import ApiResponse
from operaciones.schemas.suscripcion import PlanCreate, PlanResponse
from operaciones.services.auth_service import get_current_user, require_role
from operaciones.services.plan_service import PlanService
from operaciones.utils.responses import envelope

router = APIRouter(tags=["Planes"])

Service = Annotated[PlanService, Depends(get_plan_service)]


@router.get("/", response_model=ApiResponse[list[PlanResponse]], summary="Listar planes")
def listar_planes(
    service: Service,
    _current_user: Annotated[Usuario, Depends(get_current_user)],
    incluir_inactivos: Annotated[bool, Query()] = False,
) -> JSONResponse:
    result = service.list_plans(solo_activos=not incluir_inactivos)
    return envelope(result, lambda planes: [PlanResponse.model_validate(p) for p in planes])


@router.post(
    "/",
    response_model=ApiResponse[PlanResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Crear plan",
)
def crear_plan(
    body: PlanCreate,
    service: Service,
    _current_user: Annotated[Usuario, Depends(require_role("ADMIN"))],
) -> JSONResponse:
    return envelope(
        service.create_plan(body),
        PlanResponse.model_validate,
        status_code=status.HTTP_201_CREATED,
    )
