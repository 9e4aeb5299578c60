"""SQLAlchemy models package for Backoffice Operaciones.

Importing all models here ensures that SQLAlchemy's mapper registry is
populated before ``Base.metadata.create_all()`` or Alembic migrations run.
The import order follows the foreign-key dependency graph so that parent
tables are always registered before their children.

Usage from other modules:
    from operaciones.models import OrdenTrabajo, Cuadrilla
"""

# Accounts and customer properties
from operaciones.models.usuario import Usuario  # noqa: F401
from operaciones.models.propiedad import Propiedad  # noqa: F401

# Field operations
from operaciones.models.cuadrilla import Cuadrilla  # noqa: F401

# Billing
from operaciones.models.plan import Plan  # noqa: F401
from operaciones.models.suscripcion import Suscripcion  # noqa: F401
from operaciones.models.pago import Pago  # noqa: F401

# Work orders and their timeline
from operaciones.models.orden_trabajo import OrdenTrabajo  # noqa: F401
from operaciones.models.evento_orden import EventoOrden  # noqa: F401

# Write-once guards (registers ORM listeners on import)
from operaciones.models.immutability import ImmutableRecordError  # noqa: F401

__all__ = [
    "Usuario",
    "Propiedad",
    "Cuadrilla",
    "Plan",
    "Suscripcion",
    "Pago",
    "OrdenTrabajo",
    "EventoOrden",
    "ImmutableRecordError",
]
