"""Pago model — one charge attempt against a subscription."""

import uuid

from sqlalchemy import Column, ForeignKey, Numeric, String
from sqlalchemy.orm import relationship

from operaciones.database import Base, UTCDateTime, enum_type
from operaciones.utils.constants import EstadoPago


class Pago(Base):
    """A payment attempt for one billing period of a subscription.

    Created PENDING, then settled to POSTED or FAILED in the same
    transaction. A POSTED payment is immutable; a FAILED one never advances
    the subscription period.

    Attributes:
        id: Opaque identifier.
        suscripcion_id: FK to Suscripcion.
        monto: Amount charged.
        moneda: ISO currency code.
        estado: PENDING, POSTED or FAILED.
        proveedor: Who settled it ("manual" gateway, "admin" cash entry, ...).
        referencia: Gateway reference for the attempt.
        periodo_inicio: Start of the period this payment covers.
        periodo_fin: End of the period this payment covers.
        paid_at: Settlement timestamp (POSTED only).
        nota: Free-text note (failure reason, operator comment).
    """

    __tablename__ = "pago"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    suscripcion_id = Column(String(36), ForeignKey("suscripcion.id"), nullable=False, index=True)
    monto = Column(Numeric(12, 2), nullable=False)
    moneda = Column(String(3), nullable=False)
    estado = Column(enum_type(EstadoPago), default=EstadoPago.PENDING, nullable=False)
    proveedor = Column(String(50), nullable=True)
    referencia = Column(String(100), nullable=True)
    periodo_inicio = Column(UTCDateTime, nullable=True)
    periodo_fin = Column(UTCDateTime, nullable=True)
    paid_at = Column(UTCDateTime, nullable=True)
    nota = Column(String(1000), nullable=True)
    created_at = Column(UTCDateTime, nullable=False)

    # Relationships
    suscripcion = relationship("Suscripcion", back_populates="pagos", lazy="select")
