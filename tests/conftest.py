"""Shared fixtures: in-memory database, fixed clock and fake collaborators."""

from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import operaciones.models  # noqa: E402,F401
from operaciones.database import Base  # noqa: E402
from operaciones.models import Cuadrilla, Plan, Propiedad, Usuario  # noqa: E402
from operaciones.services.notifier import Notifier  # noqa: E402
from operaciones.services.orden_trabajo_service import WorkOrderService  # noqa: E402
from operaciones.services.payment_gateway import ChargeOutcome, PaymentGateway  # noqa: E402
from operaciones.services.suscripcion_service import BillingEngine  # noqa: E402
from operaciones.utils.clock import FixedClock  # noqa: E402
from operaciones.utils.constants import EstadoCuadrilla  # noqa: E402

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
ZONA = "America/Argentina/Buenos_Aires"


class RecordingNotifier(Notifier):
    def __init__(self):
        self.calls: list[tuple[str, dict]] = []

    def orden_finalizada(self, datos):
        self.calls.append(("orden_finalizada", datos))

    def cobro_fallido(self, datos):
        self.calls.append(("cobro_fallido", datos))


class ScriptedGateway(PaymentGateway):
    """Returns queued outcomes in order, then approves."""

    nombre = "scripted"

    def __init__(self):
        self.outcomes: list[ChargeOutcome] = []
        self.charges: list[tuple[str, Decimal, str]] = []

    def decline_next(self, mensaje: str = "fondos insuficientes", veces: int = 1) -> None:
        self.outcomes.extend(ChargeOutcome(approved=False, mensaje=mensaje) for _ in range(veces))

    def charge(self, suscripcion_id, monto, moneda, pago_id):
        self.charges.append((suscripcion_id, monto, moneda))
        if self.outcomes:
            return self.outcomes.pop(0)
        return ChargeOutcome(approved=True, referencia=f"REF-{len(self.charges)}")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateway():
    return ScriptedGateway()


@pytest.fixture
def ordenes(db, clock, notifier):
    return WorkOrderService(db, clock, notifier, zona_por_defecto=ZONA)


@pytest.fixture
def billing(db, clock, gateway, notifier):
    return BillingEngine(db, clock, gateway, notifier)


# ---------------------------------------------------------------------------
# Data factories
# ---------------------------------------------------------------------------


def _usuario(db, username: str, rol: str) -> Usuario:
    usuario = Usuario(
        username=username,
        email=f"{username}@example.com",
        password_hash="x",
        nombre_completo=username.title(),
        rol=rol,
        activo=True,
    )
    db.add(usuario)
    db.commit()
    return usuario


@pytest.fixture
def admin(db):
    return _usuario(db, "admin", "ADMIN")


@pytest.fixture
def cliente(db):
    return _usuario(db, "cliente", "CLIENTE")


@pytest.fixture
def propiedad(db, cliente):
    propiedad = Propiedad(
        usuario_id=cliente.id,
        alias="Casa",
        direccion="Av. Cabildo 2040",
        ciudad="Buenos Aires",
        lat=-34.56,
        lng=-58.45,
        zona_horaria=ZONA,
    )
    db.add(propiedad)
    db.commit()
    return propiedad


@pytest.fixture
def make_cuadrilla(db):
    def _make(nombre: str = "Cuadrilla Norte", estado: EstadoCuadrilla = EstadoCuadrilla.DESOCUPADO):
        cuadrilla = Cuadrilla(nombre=nombre, zona="Norte", estado=estado, miembros=[])
        db.add(cuadrilla)
        db.commit()
        return cuadrilla

    return _make


@pytest.fixture
def cuadrilla(make_cuadrilla):
    return make_cuadrilla()


@pytest.fixture
def make_plan(db):
    def _make(
        nombre: str = "Hogar Plus",
        precio: str = "5000.00",
        categoria_servicio: str | None = None,
        activo: bool = True,
    ):
        plan = Plan(
            nombre=nombre,
            precio=Decimal(precio),
            moneda="ARS",
            periodo_dias=30,
            categoria_servicio=categoria_servicio,
            activo=activo,
        )
        db.add(plan)
        db.commit()
        return plan

    return _make


@pytest.fixture
def plan(make_plan):
    return make_plan()
