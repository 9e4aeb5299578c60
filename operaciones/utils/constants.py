"""
Application-wide constants for the Backoffice Operaciones system.

Defines domain enumerations, business rule thresholds, and
lookup lists used across routers, services, and models.
"""

from enum import Enum
from typing import Final

# ---------------------------------------------------------------------------
# User roles
# ---------------------------------------------------------------------------

ROLES: Final[list[str]] = [
    "ADMIN",
    "OPERADOR",
    "CLIENTE",
    "CUADRILLA",
]

ROLES_BACKOFFICE: Final[tuple[str, ...]] = ("ADMIN", "OPERADOR")


# ---------------------------------------------------------------------------
# Work orders
# ---------------------------------------------------------------------------


class EstadoOrden(str, Enum):
    PENDIENTE = "PENDIENTE"
    ASIGNADA = "ASIGNADA"
    EN_CAMINO = "EN_CAMINO"
    EN_PROGRESO = "EN_PROGRESO"
    FINALIZADA = "FINALIZADA"
    CANCELADA = "CANCELADA"


ESTADOS_TERMINALES: Final[frozenset[EstadoOrden]] = frozenset(
    {EstadoOrden.FINALIZADA, EstadoOrden.CANCELADA}
)

# States in which an order may hold a crew reference
ESTADOS_CON_CUADRILLA: Final[frozenset[EstadoOrden]] = frozenset(
    {
        EstadoOrden.ASIGNADA,
        EstadoOrden.EN_CAMINO,
        EstadoOrden.EN_PROGRESO,
        EstadoOrden.FINALIZADA,
    }
)


class Prioridad(str, Enum):
    BAJA = "BAJA"
    MEDIA = "MEDIA"
    ALTA = "ALTA"
    EMERGENCIA = "EMERGENCIA"


class PeligroAccidente(str, Enum):
    NO = "NO"
    SI = "SI"
    URGENTE = "URGENTE"


class TipoEvento(str, Enum):
    CREATED = "CREATED"
    ASSIGNED = "ASSIGNED"
    STATE_CHANGED = "STATE_CHANGED"
    PROGRESS_UPDATED = "PROGRESS_UPDATED"
    NOTE = "NOTE"


CANALES: Final[list[str]] = [
    "TELEFONO",
    "WHATSAPP",
    "APP",
    "WEB",
    "SUSCRIPCION",
]

CANAL_SUSCRIPCION: Final[str] = "SUSCRIPCION"


# ---------------------------------------------------------------------------
# Crews
# ---------------------------------------------------------------------------


class EstadoCuadrilla(str, Enum):
    """Single source of truth for crew occupancy."""

    DESOCUPADO = "desocupado"
    OCUPADO = "ocupado"
    EN_TRABAJO = "en_trabajo"
    OFFLINE = "offline"


class Disponibilidad(str, Enum):
    AVAILABLE = "AVAILABLE"
    BUSY = "BUSY"
    OFFLINE = "OFFLINE"


_DISPONIBILIDAD_POR_ESTADO: Final[dict[EstadoCuadrilla, Disponibilidad]] = {
    EstadoCuadrilla.DESOCUPADO: Disponibilidad.AVAILABLE,
    EstadoCuadrilla.OCUPADO: Disponibilidad.BUSY,
    EstadoCuadrilla.EN_TRABAJO: Disponibilidad.BUSY,
    EstadoCuadrilla.OFFLINE: Disponibilidad.OFFLINE,
}


def disponibilidad_de(estado: EstadoCuadrilla) -> Disponibilidad:
    """Translate the crew state into the availability vocabulary used by the API."""
    return _DISPONIBILIDAD_POR_ESTADO[EstadoCuadrilla(estado)]


# ---------------------------------------------------------------------------
# Subscriptions & payments
# ---------------------------------------------------------------------------


class EstadoSuscripcion(str, Enum):
    ACTIVE = "ACTIVE"
    GRACE = "GRACE"
    PAUSED = "PAUSED"
    PAST_DUE = "PAST_DUE"
    SUSPENDED = "SUSPENDED"
    CANCELED = "CANCELED"


class EstadoPago(str, Enum):
    PENDING = "PENDING"
    POSTED = "POSTED"
    FAILED = "FAILED"


PROVEEDOR_PAGO_ADMIN: Final[str] = "admin"

# Progress is stored as an integer percentage
PROGRESO_MIN: Final[int] = 0
PROGRESO_MAX: Final[int] = 100
