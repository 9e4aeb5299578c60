"""Usuario model — backoffice operator, customer, or crew member account."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from operaciones.database import Base


class Usuario(Base):
    """System user with a role that controls which endpoints it may call.

    Roles:
        - ADMIN: Full system access including plans and crew administration.
        - OPERADOR: Backoffice operator; manages work orders and charges.
        - CLIENTE: Subscription holder; owns properties and requests service.
        - CUADRILLA: Field worker; may be linked as a crew member.

    Attributes:
        id: Primary key.
        username: Unique login username.
        email: Unique email address.
        password_hash: Bcrypt-hashed password (never store plain text).
        nombre_completo: Full display name.
        telefono: Contact phone number.
        rol: Role identifier controlling permissions.
        activo: Whether the account is active.
        ultimo_acceso: Timestamp of the last successful login.
        created_at: Record creation timestamp.
        updated_at: Last modification timestamp.
    """

    __tablename__ = "usuario"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(200), unique=True, nullable=False)
    password_hash = Column(String(200), nullable=False)
    nombre_completo = Column(String(300), nullable=True)
    telefono = Column(String(50), nullable=True)
    rol = Column(String(50), nullable=True)
    # "ADMIN", "OPERADOR", "CLIENTE", "CUADRILLA"
    activo = Column(Boolean, default=True, nullable=False)
    ultimo_acceso = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    propiedades = relationship("Propiedad", back_populates="usuario", lazy="select")
    suscripciones = relationship("Suscripcion", back_populates="usuario", lazy="select")
