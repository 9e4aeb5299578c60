"""Seed data script for the Backoffice Operaciones database.

Creates the demo accounts, a customer with a property, the plan catalogue
and a few crews. Idempotent: each section is skipped when its table
already has rows.

Usage (from the project root, after ``alembic upgrade head``):
    python seed_data.py
"""

from __future__ import annotations

from decimal import Decimal

from operaciones.config import get_settings
from operaciones.database import SessionLocal
from operaciones.models import Cuadrilla, Plan, Propiedad, Usuario
from operaciones.schemas.cuadrilla import MiembroManual, MiembroVinculado, miembros_adapter
from operaciones.utils.constants import EstadoCuadrilla
from operaciones.utils.security import hash_password

settings = get_settings()


def seed_usuarios(session) -> dict[str, Usuario]:
    """Insert the admin, an operator, a crew member and a customer."""
    if session.query(Usuario).count() > 0:
        print("  [SKIP] Usuario — table already has data.")
        return {u.username: u for u in session.query(Usuario).all()}

    registros = [
        Usuario(
            username="admin",
            email="admin@operaciones.example.com",
            password_hash=hash_password(settings.SEED_ADMIN_PASSWORD),
            nombre_completo="Administrador",
            rol="ADMIN",
            activo=True,
        ),
        Usuario(
            username="operador",
            email="operador@operaciones.example.com",
            password_hash=hash_password("operador123"),
            nombre_completo="Lucía Fernández",
            rol="OPERADOR",
            activo=True,
        ),
        Usuario(
            username="tecnico1",
            email="tecnico1@operaciones.example.com",
            password_hash=hash_password("tecnico123"),
            nombre_completo="Martín Gómez",
            rol="CUADRILLA",
            activo=True,
        ),
        Usuario(
            username="cliente_demo",
            email="cliente@example.com",
            password_hash=hash_password("cliente123"),
            nombre_completo="Ana Rodríguez",
            telefono="+54 11 5555-0101",
            rol="CLIENTE",
            activo=True,
        ),
    ]
    session.add_all(registros)
    session.flush()
    print(f"  [OK] Usuario — {len(registros)} registros insertados.")
    return {u.username: u for u in registros}


def seed_propiedades(session, usuarios: dict[str, Usuario]) -> None:
    if session.query(Propiedad).count() > 0:
        print("  [SKIP] Propiedad — table already has data.")
        return
    cliente = usuarios.get("cliente_demo")
    if cliente is None:
        print("  [SKIP] Propiedad — no demo customer.")
        return
    session.add(
        Propiedad(
            usuario_id=cliente.id,
            alias="Casa",
            direccion="Av. Cabildo 2040, 3° B",
            ciudad="Buenos Aires",
            provincia="CABA",
            lat=-34.5627,
            lng=-58.4566,
            zona_horaria=settings.DEFAULT_TIMEZONE,
        )
    )
    session.flush()
    print("  [OK] Propiedad — 1 registro insertado.")


def seed_planes(session) -> None:
    if session.query(Plan).count() > 0:
        print("  [SKIP] Plan — table already has data.")
        return
    registros = [
        Plan(
            nombre="Hogar Básico",
            descripcion="Atención de urgencias sin visitas programadas.",
            precio=Decimal("3500.00"),
            moneda=settings.DEFAULT_CURRENCY,
            periodo_dias=settings.BILLING_PERIOD_DAYS,
        ),
        Plan(
            nombre="Hogar Plus",
            descripcion="Urgencias más una visita de mantenimiento por período.",
            precio=Decimal("5000.00"),
            moneda=settings.DEFAULT_CURRENCY,
            periodo_dias=settings.BILLING_PERIOD_DAYS,
            categoria_servicio="mantenimiento preventivo",
        ),
    ]
    session.add_all(registros)
    session.flush()
    print(f"  [OK] Plan — {len(registros)} registros insertados.")


def seed_cuadrillas(session, usuarios: dict[str, Usuario]) -> None:
    if session.query(Cuadrilla).count() > 0:
        print("  [SKIP] Cuadrilla — table already has data.")
        return
    tecnico = usuarios.get("tecnico1")
    miembros_norte = [MiembroManual(name="Jorge Benítez")]
    if tecnico is not None:
        miembros_norte.insert(0, MiembroVinculado(user_id=tecnico.id))

    registros = [
        Cuadrilla(
            nombre="Cuadrilla Norte",
            zona="Zona Norte",
            estado=EstadoCuadrilla.DESOCUPADO,
            miembros=miembros_adapter.dump_python(miembros_norte, mode="json"),
        ),
        Cuadrilla(
            nombre="Cuadrilla Sur",
            zona="Zona Sur",
            estado=EstadoCuadrilla.DESOCUPADO,
            miembros=miembros_adapter.dump_python(
                [MiembroManual(name="Pablo Sosa"), MiembroManual(name="Diego Ríos")],
                mode="json",
            ),
        ),
    ]
    session.add_all(registros)
    session.flush()
    print(f"  [OK] Cuadrilla — {len(registros)} registros insertados.")


def main() -> None:
    """Run the complete seed process within a single database transaction."""
    print("=" * 60)
    print(f"  {settings.APP_NAME} — Seed Data Script")
    print("=" * 60)

    session = SessionLocal()
    try:
        print("\n[1/4] Usuarios...")
        usuarios = seed_usuarios(session)

        print("\n[2/4] Propiedades...")
        seed_propiedades(session, usuarios)

        print("\n[3/4] Planes...")
        seed_planes(session)

        print("\n[4/4] Cuadrillas...")
        seed_cuadrillas(session, usuarios)

        session.commit()
        print("\n" + "=" * 60)
        print("  Seed completado exitosamente.")
        print("=" * 60)
    except Exception:
        session.rollback()
        print("\n[ERROR] Seed fallido — se hizo rollback.")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
