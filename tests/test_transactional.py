import logging
from decimal import Decimal

from sqlalchemy import text

from operaciones.models import OrdenTrabajo, Plan
from operaciones.schemas.orden_trabajo import OrdenTrabajoCreate
from operaciones.services.base import after_commit, transactional
from operaciones.utils.result import Err, ErrorCode, Ok, ServiceError


class _Servicio:
    def __init__(self, db):
        self.db = db

    @transactional
    def crear_y_fallar(self):
        self.db.add(Plan(nombre="Temporal", precio=Decimal("1.00"), moneda="ARS", periodo_dias=30))
        self.db.flush()
        return Err(ServiceError.invalid_input("no"))

    @transactional
    def con_hook(self, hook):
        after_commit(self.db, hook)
        return Ok(None)

    @transactional
    def fallar_con_hook(self, hook):
        after_commit(self.db, hook)
        return Err(ServiceError.invalid_input("no"))

    @transactional
    def anidado(self):
        return self.crear_y_fallar_anidado()

    @transactional
    def crear_y_fallar_anidado(self):
        self.db.add(Plan(nombre="Anidado", precio=Decimal("1.00"), moneda="ARS", periodo_dias=30))
        self.db.flush()
        return Ok(None)

    @transactional
    def escribir(self, orden, progreso):
        orden.progreso = progreso
        self.db.flush()
        return Ok(orden)


def test_err_rolls_back_everything(db):
    assert isinstance(_Servicio(db).crear_y_fallar(), Err)
    assert db.query(Plan).count() == 0


def test_nested_call_commits_once_with_outer(db):
    assert isinstance(_Servicio(db).anidado(), Ok)
    db.rollback()
    assert db.query(Plan).filter(Plan.nombre == "Anidado").count() == 1


def test_hooks_run_only_after_commit(db):
    llamadas = []
    servicio = _Servicio(db)

    servicio.fallar_con_hook(lambda: llamadas.append("fallo"))
    servicio.con_hook(lambda: llamadas.append("ok"))

    assert llamadas == ["ok"]


def test_failing_hook_is_logged_not_raised(db, caplog):
    def hook():
        raise RuntimeError("smtp caído")

    with caplog.at_level(logging.WARNING, logger="operaciones.services.base"):
        result = _Servicio(db).con_hook(hook)

    assert isinstance(result, Ok)
    assert "after_commit hook" in caplog.text


def test_stale_write_becomes_conflict(db, ordenes, cliente):
    orden = ordenes.create(
        OrdenTrabajoCreate(cliente_id=cliente.id, categoria_servicio="gas", situacion="olor a gas")
    ).value
    # Another writer bumps the row version behind the session's back
    db.execute(
        text("UPDATE orden_trabajo SET version = version + 1 WHERE id = :id"),
        {"id": orden.id},
    )

    result = _Servicio(db).escribir(orden, 10)

    assert isinstance(result, Err)
    assert result.error.code == ErrorCode.CONFLICT
    assert db.get(OrdenTrabajo, orden.id).progreso == 0
