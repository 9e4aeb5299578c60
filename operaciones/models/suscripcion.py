"""Suscripcion model — recurring billing agreement between a client and a plan."""

import uuid

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from operaciones.database import Base, UTCDateTime, enum_type
from operaciones.utils.constants import EstadoSuscripcion


class Suscripcion(Base):
    """A client's subscription to a plan.

    The billing period is ``[periodo_inicio, periodo_fin)``. A charge is
    due once ``periodo_fin`` is in the past; a successful charge moves the
    window forward by one plan period. CANCELED is terminal.

    Attributes:
        id: Opaque identifier.
        usuario_id: FK to the client (Usuario).
        plan_id: FK to Plan.
        propiedad_id: FK to the serviced Propiedad (nullable).
        estado: ACTIVE, GRACE, PAUSED, PAST_DUE, SUSPENDED or CANCELED.
        dia_facturacion: Preferred day of month for charging (informative).
        periodo_inicio: Current period start.
        periodo_fin: Current period end (exclusive).
        proximo_cobro: Next scheduled charge.
        gracia_hasta: End of the grace window after ``periodo_fin``.
        pausada_hasta: End of a pause requested by the client.
        canceled_at: Cancellation timestamp.
        suspended_at: Suspension timestamp.
        motivo_cancelacion: Free-text cancellation reason.
        version: Optimistic-locking counter.
    """

    __tablename__ = "suscripcion"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    usuario_id = Column(Integer, ForeignKey("usuario.id"), nullable=False, index=True)
    plan_id = Column(String(36), ForeignKey("plan.id"), nullable=False)
    propiedad_id = Column(Integer, ForeignKey("propiedad.id"), nullable=True)
    estado = Column(
        enum_type(EstadoSuscripcion),
        default=EstadoSuscripcion.ACTIVE,
        nullable=False,
        index=True,
    )
    dia_facturacion = Column(Integer, nullable=True)
    periodo_inicio = Column(UTCDateTime, nullable=False)
    periodo_fin = Column(UTCDateTime, nullable=False)
    proximo_cobro = Column(UTCDateTime, nullable=True)
    gracia_hasta = Column(UTCDateTime, nullable=True)
    pausada_hasta = Column(UTCDateTime, nullable=True)
    canceled_at = Column(UTCDateTime, nullable=True)
    suspended_at = Column(UTCDateTime, nullable=True)
    motivo_cancelacion = Column(String(500), nullable=True)
    created_at = Column(UTCDateTime, nullable=False)
    updated_at = Column(UTCDateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    usuario = relationship("Usuario", back_populates="suscripciones", lazy="select")
    plan = relationship("Plan", back_populates="suscripciones", lazy="select")
    propiedad = relationship("Propiedad", lazy="select")
    pagos = relationship(
        "Pago",
        back_populates="suscripcion",
        order_by="Pago.created_at",
        lazy="select",
    )
    ordenes = relationship("OrdenTrabajo", back_populates="suscripcion", lazy="select")
