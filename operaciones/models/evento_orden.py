"""EventoOrden model — append-only timeline entry of a work order."""

from sqlalchemy import JSON, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from operaciones.database import Base, UTCDateTime, enum_type
from operaciones.utils.constants import EstadoOrden, TipoEvento


class EventoOrden(Base):
    """One immutable entry in a work order's history.

    Rows are inserted by ``TimelineRecorder`` and never updated or deleted
    (enforced by ORM listeners in ``operaciones.models.immutability``).
    Ordering is ``(at, id)``; ``id`` breaks ties between events recorded
    in the same instant.

    Attributes:
        id: Autoincrement primary key.
        orden_id: FK to OrdenTrabajo.
        tipo: CREATED, ASSIGNED, STATE_CHANGED, PROGRESS_UPDATED or NOTE.
        at: Event timestamp (UTC).
        nota: Optional free-text note.
        actor_id: Optional FK to the Usuario who triggered the event.
        estado_desde: Order state before the event.
        estado_hacia: Order state after the event.
        meta: Structured details (crew id, progress value, ...).
    """

    __tablename__ = "evento_orden"

    id = Column(Integer, primary_key=True, autoincrement=True)
    orden_id = Column(String(36), ForeignKey("orden_trabajo.id"), nullable=False, index=True)
    tipo = Column(enum_type(TipoEvento), nullable=False)
    at = Column(UTCDateTime, nullable=False)
    nota = Column(String(1000), nullable=True)
    actor_id = Column(Integer, ForeignKey("usuario.id"), nullable=True)
    estado_desde = Column(enum_type(EstadoOrden), nullable=True)
    estado_hacia = Column(enum_type(EstadoOrden), nullable=True)
    meta = Column(JSON, nullable=True)

    # Relationships
    orden = relationship("OrdenTrabajo", back_populates="eventos", lazy="select")
