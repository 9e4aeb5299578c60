"""
Legal state transitions for work orders and subscriptions.

Work orders::

    PENDIENTE → ASIGNADA → EN_CAMINO → EN_PROGRESO → FINALIZADA
                   │   ↘______________↗
                   ↘ PENDIENTE (assignment revoked)

    CANCELADA is reachable from every non-terminal state.
    FINALIZADA and CANCELADA have no outgoing transitions.

EN_CAMINO is optional: an assigned crew may start work directly.

Subscriptions::

    ACTIVE ⇄ PAST_DUE → SUSPENDED → CANCELED
    GRACE and PAUSED behave like ACTIVE for billing purposes.
    An unpaid period moves ACTIVE to GRACE until ``gracia_hasta`` and to
    SUSPENDED after it.
    CANCELED is terminal.
"""

from __future__ import annotations

from datetime import datetime
from typing import Final

from operaciones.utils.constants import (
    ESTADOS_TERMINALES,
    EstadoOrden,
    EstadoSuscripcion,
)

TRANSICIONES_ORDEN: Final[dict[EstadoOrden, frozenset[EstadoOrden]]] = {
    EstadoOrden.PENDIENTE: frozenset({EstadoOrden.ASIGNADA, EstadoOrden.CANCELADA}),
    EstadoOrden.ASIGNADA: frozenset(
        {
            EstadoOrden.PENDIENTE,
            EstadoOrden.EN_CAMINO,
            EstadoOrden.EN_PROGRESO,
            EstadoOrden.CANCELADA,
        }
    ),
    EstadoOrden.EN_CAMINO: frozenset({EstadoOrden.EN_PROGRESO, EstadoOrden.CANCELADA}),
    EstadoOrden.EN_PROGRESO: frozenset({EstadoOrden.FINALIZADA, EstadoOrden.CANCELADA}),
    EstadoOrden.FINALIZADA: frozenset(),
    EstadoOrden.CANCELADA: frozenset(),
}

# States that behave as "in good standing" when a charge fails
ESTADOS_SUSCRIPCION_AL_DIA: Final[frozenset[EstadoSuscripcion]] = frozenset(
    {EstadoSuscripcion.ACTIVE, EstadoSuscripcion.GRACE, EstadoSuscripcion.PAUSED}
)

# States a successful charge restores to ACTIVE
ESTADOS_SUSCRIPCION_MOROSOS: Final[frozenset[EstadoSuscripcion]] = frozenset(
    {EstadoSuscripcion.PAST_DUE, EstadoSuscripcion.SUSPENDED}
)

# States that still count as a live subscription for the one-per-property rule
ESTADOS_SUSCRIPCION_VIGENTES: Final[frozenset[EstadoSuscripcion]] = frozenset(
    {
        EstadoSuscripcion.ACTIVE,
        EstadoSuscripcion.GRACE,
        EstadoSuscripcion.PAUSED,
        EstadoSuscripcion.PAST_DUE,
    }
)


def es_terminal(estado: EstadoOrden) -> bool:
    return EstadoOrden(estado) in ESTADOS_TERMINALES


def transiciones_permitidas(estado: EstadoOrden) -> frozenset[EstadoOrden]:
    return TRANSICIONES_ORDEN[EstadoOrden(estado)]


def es_transicion_valida(desde: EstadoOrden, hacia: EstadoOrden) -> bool:
    """Return True when ``desde → hacia`` is a legal work-order transition.

    A same-state "transition" is never legal: it would record a
    STATE_CHANGED event for a change that did not happen.
    """
    return EstadoOrden(hacia) in transiciones_permitidas(desde)


def estado_tras_cobro_fallido(estado: EstadoSuscripcion) -> EstadoSuscripcion:
    """First failure moves to PAST_DUE, the next one to SUSPENDED."""
    estado = EstadoSuscripcion(estado)
    if estado in ESTADOS_SUSCRIPCION_AL_DIA:
        return EstadoSuscripcion.PAST_DUE
    if estado == EstadoSuscripcion.PAST_DUE:
        return EstadoSuscripcion.SUSPENDED
    return estado


def estado_tras_cobro_exitoso(estado: EstadoSuscripcion) -> EstadoSuscripcion:
    estado = EstadoSuscripcion(estado)
    if estado == EstadoSuscripcion.CANCELED:
        return estado
    return EstadoSuscripcion.ACTIVE


def estado_por_vencimiento(
    estado: EstadoSuscripcion,
    gracia_hasta: datetime | None,
    now: datetime,
) -> EstadoSuscripcion:
    """Standing of a live subscription whose period ended unpaid.

    Within the grace window ACTIVE and PAUSED move to GRACE; PAST_DUE
    keeps recording its failed charge. Past the window every live state
    is SUSPENDED.
    """
    estado = EstadoSuscripcion(estado)
    if estado not in ESTADOS_SUSCRIPCION_VIGENTES:
        return estado
    if gracia_hasta is None or gracia_hasta < now:
        return EstadoSuscripcion.SUSPENDED
    if estado == EstadoSuscripcion.PAST_DUE:
        return estado
    return EstadoSuscripcion.GRACE
