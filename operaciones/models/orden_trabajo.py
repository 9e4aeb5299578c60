"""OrdenTrabajo model — field-service work order."""

import uuid

from sqlalchemy import Column, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from operaciones.database import Base, UTCDateTime, enum_type
from operaciones.utils.constants import EstadoOrden, Prioridad


class OrdenTrabajo(Base):
    """A unit of field-service work tied to a customer property.

    Mutated only through ``WorkOrderService``; never deleted, only driven
    to a terminal state (FINALIZADA or CANCELADA).

    Invariants kept by the service layer:
        - ``progreso == 100`` only when ``estado == FINALIZADA``.
        - ``cuadrilla_id`` is set only in ASIGNADA, EN_CAMINO, EN_PROGRESO
          or FINALIZADA.
        - ``completed_at`` is set iff ``estado == FINALIZADA``.

    Attributes:
        id: Opaque identifier.
        cliente_id: FK to the customer (Usuario).
        propiedad_id: FK to Propiedad (nullable).
        suscripcion_id: FK to Suscripcion for recurring service (nullable).
        cuadrilla_id: FK to the assigned Cuadrilla (nullable).
        categoria_servicio: Service category, e.g. "plomería".
        situacion: Situation reported by the customer.
        descripcion: Situation plus observations, as shown to crews.
        prioridad: BAJA, MEDIA, ALTA or EMERGENCIA.
        canal: Intake channel (TELEFONO, WHATSAPP, APP, WEB, SUSCRIPCION).
        peligro_accidente: Hazard flag reported at intake (NO, SI, URGENTE).
        estado: Lifecycle state.
        direccion: Service address.
        lat: Latitude.
        lng: Longitude.
        zona_horaria: IANA zone for workday grouping (nullable → default).
        progreso: Progress percentage 0–100.
        created_at: Creation timestamp.
        programada_para: Scheduled visit timestamp.
        started_at: First time the order entered EN_PROGRESO.
        completed_at: Completion timestamp.
        version: Optimistic-locking counter.
    """

    __tablename__ = "orden_trabajo"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    cliente_id = Column(Integer, ForeignKey("usuario.id"), nullable=False, index=True)
    propiedad_id = Column(Integer, ForeignKey("propiedad.id"), nullable=True)
    suscripcion_id = Column(String(36), ForeignKey("suscripcion.id"), nullable=True)
    cuadrilla_id = Column(String(36), ForeignKey("cuadrilla.id"), nullable=True, index=True)
    categoria_servicio = Column(String(100), nullable=False)
    situacion = Column(String(1000), nullable=False)
    descripcion = Column(String(2000), nullable=True)
    prioridad = Column(enum_type(Prioridad), default=Prioridad.MEDIA, nullable=False)
    canal = Column(String(20), nullable=True)
    peligro_accidente = Column(String(10), nullable=True)
    estado = Column(
        enum_type(EstadoOrden),
        default=EstadoOrden.PENDIENTE,
        nullable=False,
        index=True,
    )
    direccion = Column(String(300), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    zona_horaria = Column(String(64), nullable=True)
    progreso = Column(Integer, default=0, nullable=False)
    created_at = Column(UTCDateTime, nullable=False)
    programada_para = Column(UTCDateTime, nullable=True)
    started_at = Column(UTCDateTime, nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
    updated_at = Column(UTCDateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    cliente = relationship("Usuario", lazy="select")
    propiedad = relationship("Propiedad", lazy="select")
    suscripcion = relationship("Suscripcion", back_populates="ordenes", lazy="select")
    cuadrilla = relationship("Cuadrilla", back_populates="ordenes", lazy="select")
    eventos = relationship(
        "EventoOrden",
        back_populates="orden",
        order_by="[EventoOrden.at, EventoOrden.id]",
        lazy="select",
    )
