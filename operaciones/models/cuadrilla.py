"""Cuadrilla model — field crew executing work orders."""

import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from operaciones.database import Base, enum_type
from operaciones.utils.constants import Disponibilidad, EstadoCuadrilla, disponibilidad_de


class Cuadrilla(Base):
    """A field team that can be assigned to work orders.

    Occupancy lives in a single column (``estado``); the API-facing
    availability (AVAILABLE/BUSY/OFFLINE) is derived from it, so the two
    vocabularies cannot disagree.

    ``ordenes_activas`` counts the non-terminal work orders currently
    holding this crew. It is changed only inside the same transaction that
    assigns or releases the crew.

    Attributes:
        id: Opaque identifier.
        nombre: Display name.
        zona: Operating zone.
        estado: Occupancy state (desocupado/ocupado/en_trabajo/offline).
        miembros: Ordered list of tagged member dicts (``kind`` = linked|manual).
        ordenes_activas: Reference count of active work orders.
        progreso_actual: Progress of the order the crew is working on.
        notas: Free-text notes.
        version: Optimistic-locking counter.
    """

    __tablename__ = "cuadrilla"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    nombre = Column(String(150), nullable=False)
    zona = Column(String(100), nullable=True)
    estado = Column(
        enum_type(EstadoCuadrilla),
        default=EstadoCuadrilla.DESOCUPADO,
        nullable=False,
    )
    miembros = Column(JSON, default=list, nullable=False)
    ordenes_activas = Column(Integer, default=0, nullable=False)
    progreso_actual = Column(Integer, nullable=True)
    notas = Column(String(1000), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    ordenes = relationship("OrdenTrabajo", back_populates="cuadrilla", lazy="select")

    @property
    def disponibilidad(self) -> Disponibilidad:
        return disponibilidad_de(self.estado)
