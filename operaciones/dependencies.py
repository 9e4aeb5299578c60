"""
Request-scoped service factories.

The process-wide collaborators (clock, notifier, payment gateway) are
created once in ``main.py`` and stored on ``app.state``; each request
builds its services from them plus its own database session.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from operaciones.config import get_settings
from operaciones.database import get_db
from operaciones.services.cuadrilla_service import CuadrillaService
from operaciones.services.notifier import Notifier
from operaciones.services.orden_trabajo_service import WorkOrderService
from operaciones.services.payment_gateway import PaymentGateway
from operaciones.services.plan_service import PlanService
from operaciones.services.suscripcion_service import BillingEngine
from operaciones.utils.clock import Clock


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


def get_work_order_service(
    db: Annotated[Session, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> WorkOrderService:
    return WorkOrderService(db, clock, notifier, get_settings().DEFAULT_TIMEZONE)


def get_cuadrilla_service(
    db: Annotated[Session, Depends(get_db)],
) -> CuadrillaService:
    return CuadrillaService(db)


def get_billing_engine(
    db: Annotated[Session, Depends(get_db)],
    clock: Annotated[Clock, Depends(get_clock)],
    gateway: Annotated[PaymentGateway, Depends(get_gateway)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> BillingEngine:
    return BillingEngine(db, clock, gateway, notifier, get_settings())


def get_plan_service(db: Annotated[Session, Depends(get_db)]) -> PlanService:
    return PlanService(db, get_settings())
