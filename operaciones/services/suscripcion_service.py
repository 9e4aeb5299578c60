"""
Subscription billing engine.

Status machine (``operaciones.services.transiciones``)::

    ACTIVE ⇄ PAST_DUE → SUSPENDED → CANCELED (terminal)

GRACE and PAUSED are lenient variants of ACTIVE. A PAUSED subscription is
not charged until ``pausada_hasta`` has passed. ``scan_overdue`` moves a
subscription whose period ended unpaid to GRACE until ``gracia_hasta`` and
to SUSPENDED after it.

Billing period: ``[periodo_inicio, periodo_fin)``. ``process_charge`` makes
at most one gateway attempt per call and only while ``periodo_fin <= now``;
a POSTED payment moves the window forward by one plan period, so repeating
the call inside the new window is a no-op. A FAILED payment is an outcome
(``Ok`` with ``pago.estado == FAILED``), not an error, and never moves the
window. Retrying is the job of the external scheduler (``run_billing.py``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from operaciones.config import Settings, get_settings
from operaciones.models.pago import Pago
from operaciones.models.plan import Plan
from operaciones.models.propiedad import Propiedad
from operaciones.models.suscripcion import Suscripcion
from operaciones.models.usuario import Usuario
from operaciones.schemas.orden_trabajo import OrdenTrabajoCreate
from operaciones.schemas.suscripcion import SuscripcionCreate
from operaciones.services.base import after_commit, lock_by_id, transactional
from operaciones.services.notifier import LogNotifier, Notifier
from operaciones.services.orden_trabajo_service import WorkOrderService
from operaciones.services.payment_gateway import PaymentGateway
from operaciones.services.transiciones import (
    ESTADOS_SUSCRIPCION_MOROSOS,
    ESTADOS_SUSCRIPCION_VIGENTES,
    estado_por_vencimiento,
    estado_tras_cobro_exitoso,
    estado_tras_cobro_fallido,
)
from operaciones.utils.clock import Clock
from operaciones.utils.constants import (
    CANAL_SUSCRIPCION,
    EstadoPago,
    EstadoSuscripcion,
    PROVEEDOR_PAGO_ADMIN,
)
from operaciones.utils.result import Err, ErrorCode, Ok, Result, ServiceError, err

logger = logging.getLogger(__name__)


@dataclass
class CobroResultado:
    """Outcome of one ``process_charge`` call.

    Attributes:
        cobrado: ``False`` when the period was not due and nothing was
            attempted.
        pago: The payment created by this call (POSTED or FAILED), or the
            last POSTED payment when nothing was attempted.
        suscripcion: The subscription after the call.
        orden_recurrente_id: Work order spawned by a successful charge.
    """

    cobrado: bool
    pago: Pago | None
    suscripcion: Suscripcion
    orden_recurrente_id: str | None = None


class BillingEngine:
    """Subscription lifecycle and charging."""

    def __init__(
        self,
        db: Session,
        clock: Clock,
        gateway: PaymentGateway,
        notifier: Notifier | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.clock = clock
        self.gateway = gateway
        self.notifier = notifier or LogNotifier()
        self.settings = settings or get_settings()
        self.ordenes = WorkOrderService(
            db,
            clock,
            notifier=self.notifier,
            zona_por_defecto=self.settings.DEFAULT_TIMEZONE,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _periodo(self, plan: Plan) -> timedelta:
        return timedelta(days=plan.periodo_dias or self.settings.BILLING_PERIOD_DAYS)

    def _plan_vendible(self, plan_id: str) -> Plan | None:
        plan = self.db.get(Plan, plan_id)
        if plan is None or not plan.activo:
            return None
        return plan

    def _avanzar_periodo(self, suscripcion: Suscripcion, plan: Plan) -> None:
        inicio = suscripcion.periodo_fin
        fin = inicio + self._periodo(plan)
        suscripcion.periodo_inicio = inicio
        suscripcion.periodo_fin = fin
        suscripcion.proximo_cobro = fin
        suscripcion.gracia_hasta = fin + timedelta(days=self.settings.GRACE_DAYS)

    def _reactivar(self, suscripcion: Suscripcion) -> None:
        suscripcion.estado = estado_tras_cobro_exitoso(suscripcion.estado)
        suscripcion.suspended_at = None
        suscripcion.pausada_hasta = None

    def _en_pausa(self, suscripcion: Suscripcion, now: datetime) -> bool:
        return (
            suscripcion.estado == EstadoSuscripcion.PAUSED
            and suscripcion.pausada_hasta is not None
            and suscripcion.pausada_hasta > now
        )

    def _ultimo_pago_posteado(self, suscripcion_id: str) -> Pago | None:
        return (
            self.db.query(Pago)
            .filter(Pago.suscripcion_id == suscripcion_id, Pago.estado == EstadoPago.POSTED)
            .order_by(Pago.paid_at.desc(), Pago.created_at.desc())
            .first()
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_subscriptions(
        self,
        usuario_id: int | None = None,
        estado: EstadoSuscripcion | None = None,
    ) -> Result[list[Suscripcion]]:
        """Filter subscriptions; an empty list is a normal result."""
        query = self.db.query(Suscripcion)
        if usuario_id is not None:
            query = query.filter(Suscripcion.usuario_id == usuario_id)
        if estado is not None:
            query = query.filter(Suscripcion.estado == estado)
        rows = query.order_by(Suscripcion.created_at.desc()).all()
        logger.debug("list_subscriptions: %d rows", len(rows))
        return Ok(rows)

    def get_subscription(self, suscripcion_id: str) -> Result[Suscripcion]:
        suscripcion = self.db.get(Suscripcion, suscripcion_id)
        if suscripcion is None:
            return Err(ServiceError.not_found("Suscripción", suscripcion_id))
        return Ok(suscripcion)

    def list_payments(self, suscripcion_id: str) -> Result[list[Pago]]:
        if self.db.get(Suscripcion, suscripcion_id) is None:
            return Err(ServiceError.not_found("Suscripción", suscripcion_id))
        pagos = (
            self.db.query(Pago)
            .filter(Pago.suscripcion_id == suscripcion_id)
            .order_by(Pago.created_at.asc())
            .all()
        )
        return Ok(pagos)

    def due_subscriptions(self, now: datetime | None = None) -> list[Suscripcion]:
        """Non-canceled subscriptions whose period has ended, oldest first.

        Subscriptions paused beyond *now* are left out.
        """
        now = now or self.clock.now()
        candidatas = (
            self.db.query(Suscripcion)
            .filter(
                Suscripcion.estado != EstadoSuscripcion.CANCELED,
                Suscripcion.periodo_fin <= now,
            )
            .order_by(Suscripcion.periodo_fin.asc())
            .all()
        )
        return [s for s in candidatas if not self._en_pausa(s, now)]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @transactional
    def create_subscription(self, data: SuscripcionCreate) -> Result[Suscripcion]:
        """Open an ACTIVE subscription whose first period starts now.

        Returns:
            ``Ok(suscripcion)``; ``Err(NOT_FOUND)`` for an unknown user or
            property; ``Err(INVALID_PLAN)`` for an unknown or inactive plan;
            ``Err(INVALID_INPUT)`` when the property belongs to another
            user; ``Err(CONFLICT)`` when the user already has a live
            subscription for that property (or for that plan, when no
            property is given).
        """
        if self.db.get(Usuario, data.usuario_id) is None:
            return Err(ServiceError.not_found("Usuario", data.usuario_id))
        plan = self._plan_vendible(data.plan_id)
        if plan is None:
            return err(ErrorCode.INVALID_PLAN, f"Plan {data.plan_id} inexistente o inactivo")

        if data.propiedad_id is not None:
            propiedad = self.db.get(Propiedad, data.propiedad_id)
            if propiedad is None:
                return Err(ServiceError.not_found("Propiedad", data.propiedad_id))
            if propiedad.usuario_id != data.usuario_id:
                return Err(
                    ServiceError.invalid_input(
                        f"La propiedad {propiedad.id} no pertenece al usuario {data.usuario_id}"
                    )
                )

        vigentes = self.db.query(Suscripcion).filter(
            Suscripcion.usuario_id == data.usuario_id,
            Suscripcion.estado.in_(ESTADOS_SUSCRIPCION_VIGENTES),
        )
        if data.propiedad_id is not None:
            vigentes = vigentes.filter(Suscripcion.propiedad_id == data.propiedad_id)
        else:
            vigentes = vigentes.filter(Suscripcion.plan_id == plan.id)
        if vigentes.first() is not None:
            return Err(
                ServiceError.conflict("El usuario ya tiene una suscripción vigente equivalente")
            )

        now = self.clock.now()
        fin = now + self._periodo(plan)
        suscripcion = Suscripcion(
            usuario_id=data.usuario_id,
            plan_id=plan.id,
            propiedad_id=data.propiedad_id,
            estado=EstadoSuscripcion.ACTIVE,
            dia_facturacion=data.dia_facturacion,
            periodo_inicio=now,
            periodo_fin=fin,
            proximo_cobro=fin,
            gracia_hasta=fin + timedelta(days=self.settings.GRACE_DAYS),
            created_at=now,
            updated_at=now,
        )
        self.db.add(suscripcion)
        self.db.flush()
        logger.info(
            "Suscripcion %s created (usuario=%s, plan=%s, periodo_fin=%s)",
            suscripcion.id,
            suscripcion.usuario_id,
            plan.id,
            fin.isoformat(),
        )
        return Ok(suscripcion)

    @transactional
    def upgrade_subscription(self, suscripcion_id: str, plan_id: str) -> Result[Suscripcion]:
        """Swap the plan; the new price applies from the next charge.

        The current period is left untouched, so nothing is charged twice
        and nothing is pro-rated.
        """
        suscripcion = lock_by_id(self.db, Suscripcion, suscripcion_id)
        if suscripcion is None:
            return Err(ServiceError.not_found("Suscripción", suscripcion_id))
        if suscripcion.estado == EstadoSuscripcion.CANCELED:
            return err(ErrorCode.ALREADY_CANCELED, f"La suscripción {suscripcion.id} está cancelada")
        plan = self._plan_vendible(plan_id)
        if plan is None:
            return err(ErrorCode.INVALID_PLAN, f"Plan {plan_id} inexistente o inactivo")
        if suscripcion.plan_id == plan.id:
            return Ok(suscripcion)

        anterior = suscripcion.plan_id
        suscripcion.plan_id = plan.id
        suscripcion.plan = plan
        suscripcion.updated_at = self.clock.now()
        self.db.flush()
        logger.info("Suscripcion %s plan %s -> %s", suscripcion.id, anterior, plan.id)
        return Ok(suscripcion)

    @transactional
    def cancel_subscription(
        self,
        suscripcion_id: str,
        motivo: str | None = None,
    ) -> Result[Suscripcion]:
        """Cancel; cancelling an already canceled subscription is a no-op."""
        suscripcion = lock_by_id(self.db, Suscripcion, suscripcion_id)
        if suscripcion is None:
            return Err(ServiceError.not_found("Suscripción", suscripcion_id))
        if suscripcion.estado == EstadoSuscripcion.CANCELED:
            logger.debug("cancel_subscription: %s already canceled", suscripcion.id)
            return Ok(suscripcion)

        anterior = suscripcion.estado
        now = self.clock.now()
        suscripcion.estado = EstadoSuscripcion.CANCELED
        suscripcion.canceled_at = now
        suscripcion.motivo_cancelacion = motivo
        suscripcion.proximo_cobro = None
        suscripcion.updated_at = now
        self.db.flush()
        logger.info("Suscripcion %s: %s -> CANCELED", suscripcion.id, anterior.value)
        return Ok(suscripcion)

    @transactional
    def pause_subscription(
        self,
        suscripcion_id: str,
        dias: int | None = None,
    ) -> Result[Suscripcion]:
        """Postpone charging for *dias* days (default from settings).

        The grace window moves with the postponed charge.
        """
        dias = dias if dias is not None else self.settings.DEFAULT_PAUSE_DAYS
        if dias < 1:
            return Err(ServiceError.out_of_range("La pausa debe ser de al menos 1 día"))

        suscripcion = lock_by_id(self.db, Suscripcion, suscripcion_id)
        if suscripcion is None:
            return Err(ServiceError.not_found("Suscripción", suscripcion_id))
        if suscripcion.estado == EstadoSuscripcion.CANCELED:
            return err(ErrorCode.ALREADY_CANCELED, f"La suscripción {suscripcion.id} está cancelada")
        if suscripcion.estado not in (EstadoSuscripcion.ACTIVE, EstadoSuscripcion.GRACE):
            return err(
                ErrorCode.INVALID_TRANSITION,
                f"Transición inválida de {suscripcion.estado.value} a {EstadoSuscripcion.PAUSED.value}",
            )

        now = self.clock.now()
        hasta = now + timedelta(days=dias)
        anterior = suscripcion.estado
        suscripcion.estado = EstadoSuscripcion.PAUSED
        suscripcion.pausada_hasta = hasta
        suscripcion.proximo_cobro = max(suscripcion.periodo_fin, hasta)
        suscripcion.gracia_hasta = suscripcion.proximo_cobro + timedelta(days=self.settings.GRACE_DAYS)
        suscripcion.updated_at = now
        self.db.flush()
        logger.info(
            "Suscripcion %s: %s -> PAUSED until %s",
            suscripcion.id,
            anterior.value,
            hasta.isoformat(),
        )
        return Ok(suscripcion)

    # ------------------------------------------------------------------
    # Charging
    # ------------------------------------------------------------------

    @transactional
    def process_charge(self, suscripcion_id: str) -> Result[CobroResultado]:
        """Attempt the charge for the current period if it is due.

        Returns:
            ``Ok(CobroResultado)`` whether the gateway approved or declined;
            ``Err(NOT_FOUND)`` or ``Err(ALREADY_CANCELED)`` otherwise.
        """
        suscripcion = lock_by_id(self.db, Suscripcion, suscripcion_id)
        if suscripcion is None:
            return Err(ServiceError.not_found("Suscripción", suscripcion_id))
        if suscripcion.estado == EstadoSuscripcion.CANCELED:
            return err(ErrorCode.ALREADY_CANCELED, f"La suscripción {suscripcion.id} está cancelada")

        now = self.clock.now()
        if suscripcion.periodo_fin > now or self._en_pausa(suscripcion, now):
            logger.debug(
                "process_charge: suscripcion %s not due (periodo_fin=%s)",
                suscripcion.id,
                suscripcion.periodo_fin.isoformat(),
            )
            return Ok(
                CobroResultado(
                    cobrado=False,
                    pago=self._ultimo_pago_posteado(suscripcion.id),
                    suscripcion=suscripcion,
                )
            )

        plan = suscripcion.plan
        inicio = suscripcion.periodo_fin
        pago = Pago(
            suscripcion_id=suscripcion.id,
            monto=plan.precio,
            moneda=plan.moneda or self.settings.DEFAULT_CURRENCY,
            estado=EstadoPago.PENDING,
            proveedor=self.gateway.nombre,
            periodo_inicio=inicio,
            periodo_fin=inicio + self._periodo(plan),
            created_at=now,
        )
        self.db.add(pago)
        self.db.flush()

        outcome = self.gateway.charge(suscripcion.id, Decimal(pago.monto), pago.moneda, pago.id)
        pago.referencia = outcome.referencia
        anterior = EstadoSuscripcion(suscripcion.estado)
        orden_id: str | None = None

        if outcome.approved:
            pago.estado = EstadoPago.POSTED
            pago.paid_at = now
            self._avanzar_periodo(suscripcion, plan)
            self._reactivar(suscripcion)
            suscripcion.updated_at = now
            self.db.flush()
            logger.info(
                "Suscripcion %s charged %s %s (pago=%s, %s -> %s)",
                suscripcion.id,
                pago.monto,
                pago.moneda,
                pago.id,
                anterior.value,
                suscripcion.estado.value,
            )
            if plan.categoria_servicio:
                orden_id = self._crear_orden_recurrente(suscripcion, plan)
        else:
            pago.estado = EstadoPago.FAILED
            pago.nota = outcome.mensaje
            suscripcion.estado = estado_tras_cobro_fallido(anterior)
            if suscripcion.estado == EstadoSuscripcion.SUSPENDED and suscripcion.suspended_at is None:
                suscripcion.suspended_at = now
            suscripcion.updated_at = now
            self.db.flush()
            logger.info(
                "Suscripcion %s charge declined (pago=%s, %s -> %s): %s",
                suscripcion.id,
                pago.id,
                anterior.value,
                suscripcion.estado.value,
                outcome.mensaje,
            )
            self._notificar_cobro_fallido(suscripcion, pago)

        return Ok(
            CobroResultado(
                cobrado=True,
                pago=pago,
                suscripcion=suscripcion,
                orden_recurrente_id=orden_id,
            )
        )

    def _crear_orden_recurrente(self, suscripcion: Suscripcion, plan: Plan) -> str | None:
        resultado = self.ordenes.create(
            OrdenTrabajoCreate(
                cliente_id=suscripcion.usuario_id,
                propiedad_id=suscripcion.propiedad_id,
                suscripcion_id=suscripcion.id,
                categoria_servicio=plan.categoria_servicio,
                situacion=f"Servicio recurrente del plan {plan.nombre}",
                canal=CANAL_SUSCRIPCION,
                programada_para=suscripcion.periodo_inicio,
            )
        )
        if isinstance(resultado, Err):
            # The charge stands; the missing visit is left for an operator.
            logger.warning(
                "Suscripcion %s: recurring order not created: %s (%s)",
                suscripcion.id,
                resultado.error.message,
                resultado.error.code.value,
            )
            return None
        return resultado.value.id

    @transactional
    def scan_overdue(self, now: datetime | None = None) -> Result[list[Suscripcion]]:
        """Apply the grace window to live subscriptions whose period ended unpaid.

        ACTIVE (and PAUSED once the pause is over) moves to GRACE while
        ``gracia_hasta`` has not passed; any live subscription past
        ``gracia_hasta`` is SUSPENDED. Each row is locked before it changes.

        Returns:
            ``Ok(list)`` with the subscriptions whose status changed.
        """
        now = now or self.clock.now()
        candidatas = [
            row.id
            for row in self.db.query(Suscripcion.id)
            .filter(
                Suscripcion.estado.in_(ESTADOS_SUSCRIPCION_VIGENTES),
                Suscripcion.periodo_fin < now,
            )
            .order_by(Suscripcion.periodo_fin.asc())
            .all()
        ]

        cambiadas: list[Suscripcion] = []
        for suscripcion_id in candidatas:
            suscripcion = lock_by_id(self.db, Suscripcion, suscripcion_id)
            if suscripcion is None or self._en_pausa(suscripcion, now):
                continue
            anterior = EstadoSuscripcion(suscripcion.estado)
            nuevo = estado_por_vencimiento(anterior, suscripcion.gracia_hasta, now)
            if nuevo == anterior:
                continue
            suscripcion.estado = nuevo
            if nuevo == EstadoSuscripcion.SUSPENDED:
                suscripcion.suspended_at = now
            suscripcion.updated_at = now
            cambiadas.append(suscripcion)
            logger.info(
                "Suscripcion %s overdue: %s -> %s (gracia_hasta=%s)",
                suscripcion.id,
                anterior.value,
                nuevo.value,
                suscripcion.gracia_hasta.isoformat() if suscripcion.gracia_hasta else None,
            )

        self.db.flush()
        logger.info("scan_overdue: %d of %d overdue subscriptions changed", len(cambiadas), len(candidatas))
        return Ok(cambiadas)

    def _notificar_cobro_fallido(self, suscripcion: Suscripcion, pago: Pago) -> None:
        datos = {
            "suscripcion_id": suscripcion.id,
            "usuario_id": suscripcion.usuario_id,
            "pago_id": pago.id,
            "monto": str(pago.monto),
            "moneda": pago.moneda,
            "estado_suscripcion": suscripcion.estado.value,
            "motivo": pago.nota,
        }
        notifier = self.notifier
        after_commit(self.db, lambda: notifier.cobro_fallido(datos))

    @transactional
    def record_manual_payment(
        self,
        suscripcion_id: str,
        monto: Decimal,
        moneda: str | None = None,
        nota: str | None = None,
    ) -> Result[Pago]:
        """Register a cash/transfer payment taken by an operator.

        The payment is POSTED immediately. If the period is due it is
        advanced; a PAST_DUE or SUSPENDED subscription returns to ACTIVE.
        """
        if monto is None or Decimal(monto) <= 0:
            return Err(ServiceError.invalid_input("El monto debe ser mayor que cero"))

        suscripcion = lock_by_id(self.db, Suscripcion, suscripcion_id)
        if suscripcion is None:
            return Err(ServiceError.not_found("Suscripción", suscripcion_id))
        if suscripcion.estado == EstadoSuscripcion.CANCELED:
            return err(ErrorCode.ALREADY_CANCELED, f"La suscripción {suscripcion.id} está cancelada")

        now = self.clock.now()
        plan = suscripcion.plan
        vencida = suscripcion.periodo_fin <= now
        if vencida:
            periodo_inicio = suscripcion.periodo_fin
            periodo_fin = periodo_inicio + self._periodo(plan)
        else:
            periodo_inicio, periodo_fin = suscripcion.periodo_inicio, suscripcion.periodo_fin

        pago = Pago(
            suscripcion_id=suscripcion.id,
            monto=Decimal(monto),
            moneda=moneda or plan.moneda or self.settings.DEFAULT_CURRENCY,
            estado=EstadoPago.POSTED,
            proveedor=PROVEEDOR_PAGO_ADMIN,
            periodo_inicio=periodo_inicio,
            periodo_fin=periodo_fin,
            paid_at=now,
            nota=nota,
            created_at=now,
        )
        self.db.add(pago)

        anterior = EstadoSuscripcion(suscripcion.estado)
        if vencida:
            self._avanzar_periodo(suscripcion, plan)
        if vencida or anterior in ESTADOS_SUSCRIPCION_MOROSOS:
            self._reactivar(suscripcion)
        suscripcion.updated_at = now
        self.db.flush()
        logger.info(
            "Suscripcion %s manual payment %s %s (pago=%s, %s -> %s)",
            suscripcion.id,
            pago.monto,
            pago.moneda,
            pago.id,
            anterior.value,
            suscripcion.estado.value,
        )
        return Ok(pago)
