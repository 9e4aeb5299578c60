"""Propiedad model — customer property where field service is performed."""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from operaciones.database import Base


class Propiedad(Base):
    """A customer's home or building.

    Work orders copy the address and coordinates from the property at
    creation time so later edits to the property do not rewrite history.

    Attributes:
        id: Primary key.
        usuario_id: FK to the owning Usuario (role CLIENTE).
        alias: Short label, e.g. "Casa", "Local Palermo".
        direccion: Street address.
        ciudad: City.
        provincia: Province.
        lat: Latitude.
        lng: Longitude.
        zona_horaria: IANA zone used to group timeline workdays.
        activa: Whether the property is still serviced.
    """

    __tablename__ = "propiedad"

    id = Column(Integer, primary_key=True, autoincrement=True)
    usuario_id = Column(Integer, ForeignKey("usuario.id"), nullable=False)
    alias = Column(String(100), nullable=True)
    direccion = Column(String(300), nullable=False)
    ciudad = Column(String(100), nullable=True)
    provincia = Column(String(100), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    zona_horaria = Column(String(64), nullable=True)
    activa = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    # Relationships
    usuario = relationship("Usuario", back_populates="propiedades", lazy="select")
