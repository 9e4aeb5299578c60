"""Plan catalogue operations."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from operaciones.config import Settings, get_settings
from operaciones.models.plan import Plan
from operaciones.schemas.suscripcion import PlanCreate
from operaciones.services.base import transactional
from operaciones.utils.result import Err, Ok, Result, ServiceError

logger = logging.getLogger(__name__)


class PlanService:
    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    def list_plans(self, solo_activos: bool = True) -> Result[list[Plan]]:
        query = self.db.query(Plan)
        if solo_activos:
            query = query.filter(Plan.activo.is_(True))
        return Ok(query.order_by(Plan.precio.asc(), Plan.nombre.asc()).all())

    @transactional
    def create_plan(self, data: PlanCreate) -> Result[Plan]:
        """Create an active plan.

        Currency and period length fall back to ``DEFAULT_CURRENCY`` and
        ``BILLING_PERIOD_DAYS``. Plan names are unique among active plans.
        """
        nombre = data.nombre.strip()
        if not nombre:
            return Err(ServiceError.invalid_input("El nombre del plan es obligatorio"))
        existente = (
            self.db.query(Plan)
            .filter(Plan.nombre == nombre, Plan.activo.is_(True))
            .first()
        )
        if existente is not None:
            return Err(ServiceError.conflict(f"Ya existe un plan activo llamado '{nombre}'"))

        categoria = (data.categoria_servicio or "").strip() or None
        plan = Plan(
            nombre=nombre,
            descripcion=data.descripcion,
            precio=data.precio,
            moneda=(data.moneda or self.settings.DEFAULT_CURRENCY).upper(),
            periodo_dias=data.periodo_dias or self.settings.BILLING_PERIOD_DAYS,
            categoria_servicio=categoria,
            activo=True,
        )
        self.db.add(plan)
        self.db.flush()
        logger.info("Plan %s created (%s, %s %s)", plan.id, nombre, plan.precio, plan.moneda)
        return Ok(plan)
