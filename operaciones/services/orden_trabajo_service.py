"""
Work order service layer.

``WorkOrderService`` is the single entry point that mutates
``OrdenTrabajo`` rows. Each public operation:

1. runs inside one transaction (``@transactional``);
2. locks the order row (``SELECT ... FOR UPDATE``) before validating its
   current state, so two concurrent callers cannot both act on the same
   stale precondition; the ``version`` column catches whatever slips past
   the lock (e.g. on SQLite) and is reported as ``CONFLICT``;
3. writes the new state, the crew counters and the timeline event in that
   same transaction;
4. returns ``Ok(orden)`` or ``Err(ServiceError)``; nothing is mutated on
   ``Err``.

Lifecycle rules (see ``operaciones.services.transiciones``):

- FINALIZADA requires a crew; it stamps ``completed_at``, sets progress to
  100 and releases the crew while keeping the reference for history.
- CANCELADA freezes progress, releases the crew and clears the reference.
- ASIGNADA → PENDIENTE revokes the assignment.
- EN_PROGRESO stamps ``started_at`` once and marks the crew ``en_trabajo``.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from operaciones.config import get_settings
from operaciones.models.cuadrilla import Cuadrilla
from operaciones.models.evento_orden import EventoOrden
from operaciones.models.orden_trabajo import OrdenTrabajo
from operaciones.models.propiedad import Propiedad
from operaciones.models.suscripcion import Suscripcion
from operaciones.models.usuario import Usuario
from operaciones.schemas.common import Page
from operaciones.schemas.orden_trabajo import (
    OrdenFilterParams,
    OrdenTrabajoCreate,
    OrdenTrabajoResponse,
    TimelineAnalisisResponse,
)
from operaciones.services.base import after_commit, lock_by_id, transactional
from operaciones.services.cuadrilla_service import CrewAssignmentResolver
from operaciones.services.notifier import LogNotifier, Notifier
from operaciones.services.timeline_service import (
    TimelineRecorder,
    analizar_timeline,
    resolver_zona,
)
from operaciones.services.transiciones import es_terminal, es_transicion_valida
from operaciones.utils.clock import Clock
from operaciones.utils.constants import (
    CANALES,
    EstadoOrden,
    PeligroAccidente,
    Prioridad,
    PROGRESO_MAX,
    PROGRESO_MIN,
    TipoEvento,
)
from operaciones.utils.result import Err, ErrorCode, Ok, Result, ServiceError, err

logger = logging.getLogger(__name__)

# States that need a crew to be entered
_REQUIEREN_CUADRILLA = frozenset(
    {EstadoOrden.EN_CAMINO, EstadoOrden.EN_PROGRESO, EstadoOrden.FINALIZADA}
)

_PRIORIDAD_POR_PELIGRO: dict[PeligroAccidente, Prioridad] = {
    PeligroAccidente.URGENTE: Prioridad.EMERGENCIA,
    PeligroAccidente.SI: Prioridad.ALTA,
    PeligroAccidente.NO: Prioridad.MEDIA,
}


def derivar_prioridad(
    prioridad: Prioridad | None,
    peligro: PeligroAccidente | None,
) -> Prioridad:
    """Explicit priority wins; otherwise derive it from the hazard flag."""
    if prioridad is not None:
        return Prioridad(prioridad)
    if peligro is not None:
        return _PRIORIDAD_POR_PELIGRO[PeligroAccidente(peligro)]
    return Prioridad.MEDIA


def _componer_descripcion(situacion: str, observaciones: str | None) -> str:
    if observaciones and observaciones.strip():
        return f"{situacion}\n{observaciones.strip()}"
    return situacion


class WorkOrderService:
    """Create, transition, assign and track work orders."""

    def __init__(
        self,
        db: Session,
        clock: Clock,
        notifier: Notifier | None = None,
        zona_por_defecto: str | None = None,
    ):
        self.db = db
        self.clock = clock
        self.notifier = notifier or LogNotifier()
        self.zona_por_defecto = zona_por_defecto or get_settings().DEFAULT_TIMEZONE
        self.timeline = TimelineRecorder(db, clock)
        self.resolver = CrewAssignmentResolver(db)

    # ------------------------------------------------------------------
    # Creation & queries
    # ------------------------------------------------------------------

    @transactional
    def create(
        self,
        data: OrdenTrabajoCreate,
        actor_id: int | None = None,
    ) -> Result[OrdenTrabajo]:
        """Create a PENDIENTE work order and its CREATED event.

        Address, coordinates and time zone are copied from the referenced
        property unless the payload provides them.

        Args:
            data: Validated creation payload.
            actor_id: User creating the order, if any.

        Returns:
            ``Ok(orden)``; ``Err(INVALID_INPUT)`` for blank category or
            situation, an unknown channel, or a property owned by someone
            else; ``Err(NOT_FOUND)`` for unknown customer, property or
            subscription.
        """
        categoria = (data.categoria_servicio or "").strip()
        situacion = (data.situacion or "").strip()
        if not categoria:
            return Err(ServiceError.invalid_input("La categoría de servicio es obligatoria"))
        if not situacion:
            return Err(ServiceError.invalid_input("La situación es obligatoria"))
        if data.canal is not None and data.canal not in CANALES:
            return Err(ServiceError.invalid_input(f"Canal desconocido: {data.canal}"))

        if self.db.get(Usuario, data.cliente_id) is None:
            return Err(ServiceError.not_found("Cliente", data.cliente_id))

        propiedad: Propiedad | None = None
        if data.propiedad_id is not None:
            propiedad = self.db.get(Propiedad, data.propiedad_id)
            if propiedad is None:
                return Err(ServiceError.not_found("Propiedad", data.propiedad_id))
            if propiedad.usuario_id != data.cliente_id:
                return Err(
                    ServiceError.invalid_input(
                        f"La propiedad {propiedad.id} no pertenece al cliente {data.cliente_id}"
                    )
                )

        if data.suscripcion_id is not None and self.db.get(Suscripcion, data.suscripcion_id) is None:
            return Err(ServiceError.not_found("Suscripción", data.suscripcion_id))

        now = self.clock.now()
        orden = OrdenTrabajo(
            cliente_id=data.cliente_id,
            propiedad_id=data.propiedad_id,
            suscripcion_id=data.suscripcion_id,
            categoria_servicio=categoria,
            situacion=situacion,
            descripcion=_componer_descripcion(situacion, data.observaciones),
            prioridad=derivar_prioridad(data.prioridad, data.peligro_accidente),
            canal=data.canal,
            peligro_accidente=data.peligro_accidente.value if data.peligro_accidente else None,
            estado=EstadoOrden.PENDIENTE,
            direccion=data.direccion or (propiedad.direccion if propiedad else None),
            lat=data.lat if data.lat is not None else (propiedad.lat if propiedad else None),
            lng=data.lng if data.lng is not None else (propiedad.lng if propiedad else None),
            zona_horaria=propiedad.zona_horaria if propiedad else None,
            progreso=PROGRESO_MIN,
            created_at=now,
            programada_para=data.programada_para,
            updated_at=now,
        )
        self.db.add(orden)
        self.db.flush()

        self.timeline.record(
            orden,
            TipoEvento.CREATED,
            actor_id=actor_id,
            estado_hacia=EstadoOrden.PENDIENTE,
            meta={"canal": data.canal} if data.canal else None,
        )
        logger.info(
            "Orden %s created (cliente=%s, categoria=%s, prioridad=%s)",
            orden.id,
            orden.cliente_id,
            categoria,
            orden.prioridad.value,
        )
        return Ok(orden)

    def list_orders(
        self,
        filters: OrdenFilterParams | None = None,
        skip: int = 0,
        take: int = 20,
    ) -> Result[Page[OrdenTrabajoResponse]]:
        """Return one page of orders, newest first."""
        if skip < 0:
            return Err(ServiceError.invalid_input("skip debe ser >= 0"))
        if not 1 <= take <= 200:
            return Err(ServiceError.out_of_range("take debe estar entre 1 y 200"))

        filters = filters or OrdenFilterParams()
        query = self.db.query(OrdenTrabajo)
        if filters.cliente_id is not None:
            query = query.filter(OrdenTrabajo.cliente_id == filters.cliente_id)
        if filters.cuadrilla_id is not None:
            query = query.filter(OrdenTrabajo.cuadrilla_id == filters.cuadrilla_id)
        if filters.estado is not None:
            query = query.filter(OrdenTrabajo.estado == filters.estado)
        if filters.categoria_servicio:
            query = query.filter(OrdenTrabajo.categoria_servicio == filters.categoria_servicio)
        if filters.prioridad is not None:
            query = query.filter(OrdenTrabajo.prioridad == filters.prioridad)

        total = query.count()
        rows = (
            query.order_by(OrdenTrabajo.created_at.desc(), OrdenTrabajo.id.asc())
            .offset(skip)
            .limit(take)
            .all()
        )
        logger.debug("list_orders: %d/%d rows (skip=%d, take=%d)", len(rows), total, skip, take)
        return Ok(
            Page[OrdenTrabajoResponse](
                items=[OrdenTrabajoResponse.model_validate(r) for r in rows],
                total=total,
                skip=skip,
                take=take,
            )
        )

    def get_order(self, orden_id: str) -> Result[OrdenTrabajo]:
        orden = self.db.get(OrdenTrabajo, orden_id)
        if orden is None:
            return Err(ServiceError.not_found("Orden", orden_id))
        return Ok(orden)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _aplicar_transicion(
        self,
        orden: OrdenTrabajo,
        hacia: EstadoOrden,
        nota: str | None,
        actor_id: int | None,
    ) -> None:
        """Apply an already validated transition and record it."""
        desde = EstadoOrden(orden.estado)
        now = self.clock.now()

        if hacia == EstadoOrden.EN_PROGRESO:
            if orden.started_at is None:
                orden.started_at = now
            self.resolver.mark_working(orden.cuadrilla_id)
        elif hacia == EstadoOrden.FINALIZADA:
            orden.completed_at = now
            orden.progreso = PROGRESO_MAX
            self.resolver.release(orden.cuadrilla_id, orden)
            self._notificar_finalizada(orden)
        elif hacia in (EstadoOrden.CANCELADA, EstadoOrden.PENDIENTE):
            if orden.cuadrilla_id is not None:
                self.resolver.release(orden.cuadrilla_id, orden)
                orden.cuadrilla_id = None

        orden.estado = hacia
        orden.updated_at = now
        self.db.flush()

        self.timeline.record(
            orden,
            TipoEvento.STATE_CHANGED,
            nota=nota or f"Estado cambiado de {desde.value} a {hacia.value}",
            actor_id=actor_id,
            estado_desde=desde,
            estado_hacia=hacia,
        )
        logger.info("Orden %s: %s -> %s", orden.id, desde.value, hacia.value)

    def _notificar_finalizada(self, orden: OrdenTrabajo) -> None:
        datos = {
            "orden_id": orden.id,
            "cliente_id": orden.cliente_id,
            "categoria_servicio": orden.categoria_servicio,
            "direccion": orden.direccion,
            "cuadrilla_id": orden.cuadrilla_id,
            "completed_at": orden.completed_at.isoformat() if orden.completed_at else None,
        }
        notifier = self.notifier
        after_commit(self.db, lambda: notifier.orden_finalizada(datos))

    @transactional
    def transition(
        self,
        orden_id: str,
        estado: EstadoOrden | str,
        nota: str | None = None,
        actor_id: int | None = None,
    ) -> Result[OrdenTrabajo]:
        """Move an order to *estado*.

        Returns:
            ``Ok(orden)``; ``Err(NOT_FOUND)`` for an unknown order;
            ``Err(INVALID_INPUT)`` for an unknown state name;
            ``Err(INVALID_TRANSITION)`` naming both states when the move
            is not allowed from the current state, or when the target
            state needs a crew and none is assigned.
        """
        try:
            hacia = EstadoOrden(estado)
        except ValueError:
            return Err(ServiceError.invalid_input(f"Estado desconocido: {estado}"))

        orden = lock_by_id(self.db, OrdenTrabajo, orden_id)
        if orden is None:
            return Err(ServiceError.not_found("Orden", orden_id))

        desde = EstadoOrden(orden.estado)
        if not es_transicion_valida(desde, hacia):
            logger.info("transition rejected for orden %s: %s -> %s", orden.id, desde.value, hacia.value)
            return err(
                ErrorCode.INVALID_TRANSITION,
                f"Transición inválida de {desde.value} a {hacia.value}",
            )
        if hacia in _REQUIEREN_CUADRILLA and orden.cuadrilla_id is None:
            return err(
                ErrorCode.INVALID_TRANSITION,
                f"Transición inválida de {desde.value} a {hacia.value}: "
                "la orden no tiene cuadrilla asignada",
            )

        self._aplicar_transicion(orden, hacia, nota, actor_id)
        return Ok(orden)

    @transactional
    def assign_crew(
        self,
        orden_id: str,
        cuadrilla_id: str,
        actor_id: int | None = None,
        nota: str | None = None,
    ) -> Result[OrdenTrabajo]:
        """Assign or reassign a crew.

        A PENDIENTE order moves to ASIGNADA. An order already past
        PENDIENTE keeps its state and only swaps the crew reference; the
        previous crew is released in the same transaction. Assigning the
        crew the order already has is a no-op.

        Returns:
            ``Ok(orden)``; ``Err(NOT_FOUND)``, ``Err(TERMINAL_STATE)``,
            ``Err(CREW_NOT_FOUND)`` or ``Err(CREW_UNAVAILABLE)``.
        """
        orden = lock_by_id(self.db, OrdenTrabajo, orden_id)
        if orden is None:
            return Err(ServiceError.not_found("Orden", orden_id))
        if es_terminal(orden.estado):
            return err(
                ErrorCode.TERMINAL_STATE,
                f"La orden {orden.id} está {orden.estado.value} y no admite cambios",
            )
        if orden.cuadrilla_id == cuadrilla_id:
            logger.debug("assign_crew: orden %s already has cuadrilla %s", orden.id, cuadrilla_id)
            return Ok(orden)

        asignacion = self.resolver.assign(cuadrilla_id)
        if isinstance(asignacion, Err):
            logger.info(
                "assign_crew rejected for orden %s: %s",
                orden.id,
                asignacion.error.code.value,
            )
            return asignacion
        cuadrilla = asignacion.value

        anterior = orden.cuadrilla_id
        if anterior is not None:
            self.resolver.release(anterior, orden)
        orden.cuadrilla_id = cuadrilla.id
        orden.updated_at = self.clock.now()

        if orden.estado == EstadoOrden.PENDIENTE:
            self._aplicar_transicion(orden, EstadoOrden.ASIGNADA, nota, actor_id)
        elif orden.estado == EstadoOrden.EN_PROGRESO:
            self.resolver.mark_working(cuadrilla.id)
        self.db.flush()

        meta: dict[str, Any] = {"cuadrilla_id": cuadrilla.id}
        if anterior is not None:
            meta["cuadrilla_anterior_id"] = anterior
        self.timeline.record(
            orden,
            TipoEvento.ASSIGNED,
            nota=nota,
            actor_id=actor_id,
            meta=meta,
        )
        logger.info(
            "Orden %s assigned to cuadrilla %s (previous=%s)",
            orden.id,
            cuadrilla.id,
            anterior,
        )
        return Ok(orden)

    @transactional
    def update_progress(
        self,
        orden_id: str,
        progreso: Any,
        actor_id: int | None = None,
    ) -> Result[OrdenTrabajo]:
        """Record a new progress percentage.

        100 is reserved for finalization: the only way to reach it is the
        FINALIZADA transition, so asking for it here is an
        ``INVALID_TRANSITION``. Repeating the current value is a no-op and
        records nothing.
        """
        if isinstance(progreso, bool) or not isinstance(progreso, int):
            return Err(ServiceError.invalid_input("El progreso debe ser un entero"))
        if not PROGRESO_MIN <= progreso <= PROGRESO_MAX:
            return Err(
                ServiceError.out_of_range(
                    f"El progreso debe estar entre {PROGRESO_MIN} y {PROGRESO_MAX}"
                )
            )

        orden = lock_by_id(self.db, OrdenTrabajo, orden_id)
        if orden is None:
            return Err(ServiceError.not_found("Orden", orden_id))
        if es_terminal(orden.estado):
            return err(
                ErrorCode.TERMINAL_STATE,
                f"La orden {orden.id} está {orden.estado.value}; el progreso es de solo lectura",
            )
        if progreso == PROGRESO_MAX:
            return err(
                ErrorCode.INVALID_TRANSITION,
                f"El progreso {PROGRESO_MAX} se registra con la transición a "
                f"{EstadoOrden.FINALIZADA.value}",
            )
        if orden.progreso == progreso:
            return Ok(orden)

        anterior = orden.progreso
        orden.progreso = progreso
        orden.updated_at = self.clock.now()
        if orden.cuadrilla_id is not None:
            cuadrilla = lock_by_id(self.db, Cuadrilla, orden.cuadrilla_id)
            if cuadrilla is not None:
                cuadrilla.progreso_actual = progreso
        self.db.flush()

        self.timeline.record(
            orden,
            TipoEvento.PROGRESS_UPDATED,
            actor_id=actor_id,
            meta={"desde": anterior, "hacia": progreso},
        )
        logger.info("Orden %s progress %s -> %s", orden.id, anterior, progreso)
        return Ok(orden)

    @transactional
    def add_note(
        self,
        orden_id: str,
        nota: str,
        actor_id: int | None = None,
    ) -> Result[EventoOrden]:
        """Append a free-text NOTE event; allowed in any state."""
        texto = (nota or "").strip()
        if not texto:
            return Err(ServiceError.invalid_input("La nota no puede estar vacía"))
        orden = lock_by_id(self.db, OrdenTrabajo, orden_id)
        if orden is None:
            return Err(ServiceError.not_found("Orden", orden_id))
        evento = self.timeline.record(orden, TipoEvento.NOTE, nota=texto, actor_id=actor_id)
        return Ok(evento)

    # ------------------------------------------------------------------
    # Timeline
    # ------------------------------------------------------------------

    def get_timeline(self, orden_id: str) -> Result[list[EventoOrden]]:
        if self.db.get(OrdenTrabajo, orden_id) is None:
            return Err(ServiceError.not_found("Orden", orden_id))
        return Ok(self.timeline.eventos_de(orden_id))

    def get_timeline_analysis(self, orden_id: str) -> Result[TimelineAnalisisResponse]:
        orden = self.db.get(OrdenTrabajo, orden_id)
        if orden is None:
            return Err(ServiceError.not_found("Orden", orden_id))
        zona = resolver_zona(orden.zona_horaria, self.zona_por_defecto)
        return Ok(analizar_timeline(orden.id, self.timeline.eventos_de(orden.id), zona))
