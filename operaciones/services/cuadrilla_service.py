"""
Crew service layer.

Two pieces live here:

- ``CrewAssignmentResolver`` — reference-counted occupancy of a crew. It
  is called by ``WorkOrderService`` inside the work-order transaction, so
  the crew counter and the order state always commit (or roll back)
  together. It never commits on its own.
- ``CuadrillaService`` — CRUD-style operations for the ``/api/cuadrillas``
  endpoints (create, list, get, take offline / bring online).

Occupancy rule: a crew is ``ocupado`` (BUSY) while ``ordenes_activas > 0``
and ``desocupado`` (AVAILABLE) once the last active order is released.
OFFLINE crews cannot be assigned; BUSY ones can (double booking is allowed).
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from operaciones.models.cuadrilla import Cuadrilla
from operaciones.models.orden_trabajo import OrdenTrabajo
from operaciones.models.usuario import Usuario
from operaciones.schemas.cuadrilla import CuadrillaCreate, MiembroVinculado, miembros_adapter
from operaciones.services.base import lock_by_id, transactional
from operaciones.utils.constants import (
    Disponibilidad,
    EstadoCuadrilla,
    EstadoOrden,
    disponibilidad_de,
)
from operaciones.utils.result import Err, ErrorCode, Ok, Result, ServiceError, err

logger = logging.getLogger(__name__)


class CrewAssignmentResolver:
    """Acquire and release crews on behalf of work orders."""

    def __init__(self, db: Session):
        self.db = db

    def assign(self, cuadrilla_id: str) -> Result[Cuadrilla]:
        """Lock the crew and take one active-order reference on it.

        Returns:
            ``Ok(cuadrilla)`` on success, ``Err(CREW_NOT_FOUND)`` if the id
            does not resolve, ``Err(CREW_UNAVAILABLE)`` if it is OFFLINE.
        """
        cuadrilla = lock_by_id(self.db, Cuadrilla, cuadrilla_id)
        if cuadrilla is None:
            return err(ErrorCode.CREW_NOT_FOUND, f"Cuadrilla {cuadrilla_id} no encontrada")
        if cuadrilla.disponibilidad == Disponibilidad.OFFLINE:
            return err(
                ErrorCode.CREW_UNAVAILABLE,
                f"La cuadrilla {cuadrilla.nombre} está fuera de servicio (OFFLINE)",
            )

        cuadrilla.ordenes_activas = (cuadrilla.ordenes_activas or 0) + 1
        if cuadrilla.estado == EstadoCuadrilla.DESOCUPADO:
            cuadrilla.estado = EstadoCuadrilla.OCUPADO
        logger.debug(
            "assign: cuadrilla %s now holds %d active orders",
            cuadrilla.id,
            cuadrilla.ordenes_activas,
        )
        return Ok(cuadrilla)

    def release(self, cuadrilla_id: str, orden: OrdenTrabajo) -> Cuadrilla:
        """Drop *orden*'s reference on the crew.

        When the count reaches zero the crew goes back to ``desocupado``.
        Otherwise it stays busy, dropping from ``en_trabajo`` to ``ocupado``
        if none of its remaining orders is EN_PROGRESO.

        Raises:
            RuntimeError: If the crew holds no references; this means the
                counter drifted and must not be papered over.
        """
        cuadrilla = lock_by_id(self.db, Cuadrilla, cuadrilla_id)
        if cuadrilla is None:
            raise RuntimeError(f"Cuadrilla {cuadrilla_id} referenced by orden {orden.id} is missing")
        if (cuadrilla.ordenes_activas or 0) <= 0:
            raise RuntimeError(
                f"Cuadrilla {cuadrilla.id} released by orden {orden.id} with no active orders"
            )

        cuadrilla.ordenes_activas -= 1
        if cuadrilla.ordenes_activas == 0:
            cuadrilla.estado = EstadoCuadrilla.DESOCUPADO
            cuadrilla.progreso_actual = None
        elif cuadrilla.estado == EstadoCuadrilla.EN_TRABAJO:
            trabajando = (
                self.db.query(OrdenTrabajo.id)
                .filter(
                    OrdenTrabajo.cuadrilla_id == cuadrilla.id,
                    OrdenTrabajo.id != orden.id,
                    OrdenTrabajo.estado == EstadoOrden.EN_PROGRESO,
                )
                .first()
            )
            if trabajando is None:
                cuadrilla.estado = EstadoCuadrilla.OCUPADO
        logger.debug(
            "release: cuadrilla %s now holds %d active orders (%s)",
            cuadrilla.id,
            cuadrilla.ordenes_activas,
            cuadrilla.estado.value,
        )
        return cuadrilla

    def mark_working(self, cuadrilla_id: str) -> Cuadrilla | None:
        cuadrilla = lock_by_id(self.db, Cuadrilla, cuadrilla_id)
        if cuadrilla is not None and cuadrilla.estado != EstadoCuadrilla.OFFLINE:
            cuadrilla.estado = EstadoCuadrilla.EN_TRABAJO
        return cuadrilla


def _estados_para(disponibilidad: Disponibilidad) -> list[EstadoCuadrilla]:
    return [e for e in EstadoCuadrilla if disponibilidad_de(e) == disponibilidad]


class CuadrillaService:
    """Crew management operations."""

    def __init__(self, db: Session):
        self.db = db

    @transactional
    def create(self, data: CuadrillaCreate) -> Result[Cuadrilla]:
        """Create a crew in state ``desocupado``.

        Linked members must reference existing users; manual members are
        stored as given. Member order is preserved.
        """
        nombre = data.nombre.strip()
        if not nombre:
            return Err(ServiceError.invalid_input("El nombre de la cuadrilla es obligatorio"))

        vinculados = [m.user_id for m in data.miembros if isinstance(m, MiembroVinculado)]
        if vinculados:
            existentes = {
                row.id
                for row in self.db.query(Usuario.id).filter(Usuario.id.in_(vinculados)).all()
            }
            faltantes = [uid for uid in vinculados if uid not in existentes]
            if faltantes:
                return Err(ServiceError.not_found("Usuario", faltantes[0]))

        cuadrilla = Cuadrilla(
            nombre=nombre,
            zona=data.zona,
            estado=EstadoCuadrilla.DESOCUPADO,
            miembros=miembros_adapter.dump_python(data.miembros, mode="json"),
            ordenes_activas=0,
            notas=data.notas,
        )
        self.db.add(cuadrilla)
        self.db.flush()
        logger.info("Cuadrilla %s created (%s)", cuadrilla.id, nombre)
        return Ok(cuadrilla)

    def list_crews(
        self,
        disponibilidad: Disponibilidad | None = None,
        zona: str | None = None,
    ) -> Result[list[Cuadrilla]]:
        query = self.db.query(Cuadrilla)
        if disponibilidad is not None:
            query = query.filter(Cuadrilla.estado.in_(_estados_para(disponibilidad)))
        if zona:
            query = query.filter(Cuadrilla.zona == zona)
        cuadrillas = query.order_by(Cuadrilla.nombre.asc()).all()
        logger.debug("list_crews: %d rows", len(cuadrillas))
        return Ok(cuadrillas)

    def get_crew(self, cuadrilla_id: str) -> Result[Cuadrilla]:
        cuadrilla = self.db.get(Cuadrilla, cuadrilla_id)
        if cuadrilla is None:
            return Err(ServiceError.not_found("Cuadrilla", cuadrilla_id))
        return Ok(cuadrilla)

    @transactional
    def set_online(self, cuadrilla_id: str, online: bool) -> Result[Cuadrilla]:
        """Take a crew OFFLINE or bring it back to ``desocupado``.

        A crew still holding active orders cannot go offline. Repeating the
        current setting is a no-op.
        """
        cuadrilla = lock_by_id(self.db, Cuadrilla, cuadrilla_id)
        if cuadrilla is None:
            return Err(ServiceError.not_found("Cuadrilla", cuadrilla_id))

        offline = cuadrilla.estado == EstadoCuadrilla.OFFLINE
        if online and offline:
            cuadrilla.estado = EstadoCuadrilla.DESOCUPADO
        elif not online and not offline:
            if cuadrilla.ordenes_activas:
                return Err(
                    ServiceError.conflict(
                        f"La cuadrilla {cuadrilla.nombre} tiene "
                        f"{cuadrilla.ordenes_activas} órdenes activas"
                    )
                )
            cuadrilla.estado = EstadoCuadrilla.OFFLINE
        else:
            return Ok(cuadrilla)

        self.db.flush()
        logger.info("Cuadrilla %s is now %s", cuadrilla.id, cuadrilla.estado.value)
        return Ok(cuadrilla)
