"""
Work order timeline: recording and analysis.

``TimelineRecorder`` is the only writer of ``EventoOrden`` rows. It never
opens or commits a transaction itself; events are flushed inside whatever
transaction the calling service holds, so an event exists iff the change
it describes was committed.

``analizar_timeline`` is a pure function over already-loaded events. It
groups them into workdays (contiguous events sharing a calendar date in
the order's local time zone) and measures, per workday, the elapsed time
between the first and last event and the share of it spent EN_PROGRESO.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from operaciones.models.evento_orden import EventoOrden
from operaciones.models.orden_trabajo import OrdenTrabajo
from operaciones.schemas.orden_trabajo import (
    EventoOrdenResponse,
    JornadaAnalisis,
    TimelineAnalisisResponse,
)
from operaciones.utils.clock import Clock
from operaciones.utils.constants import EstadoOrden, TipoEvento

logger = logging.getLogger(__name__)


class TimelineRecorder:
    """Append-only writer for a work order's event history."""

    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock

    def _ultimo_instante(self, orden_id: str) -> datetime | None:
        ultimo = (
            self.db.query(EventoOrden)
            .filter(EventoOrden.orden_id == orden_id)
            .order_by(EventoOrden.at.desc(), EventoOrden.id.desc())
            .first()
        )
        return ultimo.at if ultimo else None

    def record(
        self,
        orden: OrdenTrabajo,
        tipo: TipoEvento,
        *,
        nota: str | None = None,
        actor_id: int | None = None,
        estado_desde: EstadoOrden | None = None,
        estado_hacia: EstadoOrden | None = None,
        meta: dict[str, Any] | None = None,
    ) -> EventoOrden:
        """Append one event to *orden*'s timeline and flush it.

        The timestamp comes from the injected clock, clamped so it is never
        earlier than the order's previous event. This keeps the ``(at, id)``
        order equal to insertion order even if the wall clock steps back.

        Args:
            orden: The (already flushed) work order the event belongs to.
            tipo: Event type.
            nota: Optional free-text note.
            actor_id: Optional id of the user who triggered the event.
            estado_desde: Order state before the event, if it changed.
            estado_hacia: Order state after the event, if it changed.
            meta: Optional structured details.

        Returns:
            The flushed ``EventoOrden`` row.
        """
        at = self.clock.now()
        previo = self._ultimo_instante(orden.id)
        if previo is not None and previo > at:
            logger.debug(
                "record: clock behind last event of orden %s (%s < %s), clamping",
                orden.id,
                at.isoformat(),
                previo.isoformat(),
            )
            at = previo

        evento = EventoOrden(
            orden_id=orden.id,
            tipo=tipo,
            at=at,
            nota=nota,
            actor_id=actor_id,
            estado_desde=estado_desde,
            estado_hacia=estado_hacia,
            meta=meta,
        )
        self.db.add(evento)
        self.db.flush()
        logger.debug("record: %s event %s for orden %s", tipo.value, evento.id, orden.id)
        return evento

    def eventos_de(self, orden_id: str) -> list[EventoOrden]:
        """Return the events of one order, oldest first."""
        return (
            self.db.query(EventoOrden)
            .filter(EventoOrden.orden_id == orden_id)
            .order_by(EventoOrden.at.asc(), EventoOrden.id.asc())
            .all()
        )


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


def resolver_zona(nombre: str | None, por_defecto: str) -> ZoneInfo:
    """Return the IANA zone *nombre*, falling back to *por_defecto*."""
    if nombre:
        try:
            return ZoneInfo(nombre)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown time zone '%s', using %s", nombre, por_defecto)
    return ZoneInfo(por_defecto)


def _safe_ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator, 4)


def analizar_timeline(
    orden_id: str,
    eventos: Sequence[EventoOrden],
    zona: ZoneInfo,
) -> TimelineAnalisisResponse:
    """Group *eventos* into local workdays and compute productivity.

    The order's state between two events is the state reached by the first
    of them (``estado_hacia`` when the event changed state, otherwise the
    state carried over). Only intervals between two events of the same
    workday count; the overnight gap between days is not attributed to any
    of them.

    Args:
        orden_id: Id of the analysed order.
        eventos: Events sorted by ``(at, id)``.
        zona: Zone whose calendar dates define a workday.

    Returns:
        A ``TimelineAnalisisResponse`` with workdays oldest first.
    """
    jornadas: list[JornadaAnalisis] = []
    grupo: list[EventoOrden] = []
    estados: list[EstadoOrden | None] = []
    estado: EstadoOrden | None = None

    def cerrar_grupo() -> None:
        if not grupo:
            return
        inicio, fin = grupo[0].at, grupo[-1].at
        duracion = (fin - inicio).total_seconds()
        en_progreso = 0.0
        for actual, siguiente, estado_tras in zip(grupo, grupo[1:], estados):
            if estado_tras == EstadoOrden.EN_PROGRESO:
                en_progreso += (siguiente.at - actual.at).total_seconds()
        jornadas.append(
            JornadaAnalisis(
                fecha=inicio.astimezone(zona).date(),
                inicio=inicio,
                fin=fin,
                duracion_segundos=duracion,
                en_progreso_segundos=en_progreso,
                productividad=_safe_ratio(en_progreso, duracion),
                eventos=[EventoOrdenResponse.model_validate(e) for e in grupo],
            )
        )

    for evento in eventos:
        fecha = evento.at.astimezone(zona).date()
        if grupo and grupo[-1].at.astimezone(zona).date() != fecha:
            cerrar_grupo()
            grupo, estados = [], []
        if evento.estado_hacia is not None:
            estado = EstadoOrden(evento.estado_hacia)
        grupo.append(evento)
        estados.append(estado)
    cerrar_grupo()

    return TimelineAnalisisResponse(
        orden_id=orden_id,
        zona_horaria=zona.key,
        jornadas=jornadas,
        total_en_progreso_segundos=sum(j.en_progreso_segundos for j in jornadas),
    )
