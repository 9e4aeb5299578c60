"""Plan model — priced subscription plan."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from operaciones.database import Base


class Plan(Base):
    """A subscription plan sold to customers.

    Attributes:
        id: Opaque identifier.
        nombre: Commercial name.
        descripcion: Free-text description.
        precio: Price charged per billing period.
        moneda: ISO currency code, e.g. "ARS".
        periodo_dias: Billing period length in days.
        categoria_servicio: When set, every successful charge spawns a
            recurring work order of this service category.
        activo: Whether the plan can be sold.
    """

    __tablename__ = "plan"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    nombre = Column(String(150), nullable=False)
    descripcion = Column(String(1000), nullable=True)
    precio = Column(Numeric(12, 2), nullable=False)
    moneda = Column(String(3), default="ARS", nullable=False)
    periodo_dias = Column(Integer, default=30, nullable=False)
    categoria_servicio = Column(String(100), nullable=True)
    activo = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    # Relationships
    suscripciones = relationship("Suscripcion", back_populates="plan", lazy="select")
