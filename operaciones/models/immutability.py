"""
ORM-level immutability for audit records.

- ``EventoOrden`` rows are append-only: any UPDATE or DELETE flushed through
  the ORM raises ``ImmutableRecordError``.
- ``Pago`` rows are frozen once POSTED: the transition PENDING→POSTED is
  allowed, every later change is rejected. Payments are never deleted.

These are programming-error guards, not expected failures, so they raise
instead of returning a result value.
"""

from __future__ import annotations

import logging

from sqlalchemy import event
from sqlalchemy.orm import attributes

from operaciones.models.evento_orden import EventoOrden
from operaciones.models.pago import Pago
from operaciones.utils.constants import EstadoPago

logger = logging.getLogger(__name__)


class ImmutableRecordError(RuntimeError):
    """Raised when code tries to modify a write-once record."""

    def __init__(self, entidad: str, entidad_id: object, accion: str):
        self.entidad = entidad
        self.entidad_id = entidad_id
        self.accion = accion
        super().__init__(f"{entidad} {entidad_id} es inmutable ({accion} rechazado)")


@event.listens_for(EventoOrden, "before_update")
def _evento_before_update(mapper, connection, target: EventoOrden) -> None:
    raise ImmutableRecordError("EventoOrden", target.id, "UPDATE")


@event.listens_for(EventoOrden, "before_delete")
def _evento_before_delete(mapper, connection, target: EventoOrden) -> None:
    raise ImmutableRecordError("EventoOrden", target.id, "DELETE")


@event.listens_for(Pago, "before_update")
def _pago_before_update(mapper, connection, target: Pago) -> None:
    history = attributes.get_history(target, "estado")
    estado_previo = history.deleted[0] if history.deleted else target.estado
    if EstadoPago(estado_previo) == EstadoPago.POSTED:
        raise ImmutableRecordError("Pago", target.id, "UPDATE")


@event.listens_for(Pago, "before_delete")
def _pago_before_delete(mapper, connection, target: Pago) -> None:
    raise ImmutableRecordError("Pago", target.id, "DELETE")
