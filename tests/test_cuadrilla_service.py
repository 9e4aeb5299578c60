import pytest

from operaciones.models import Cuadrilla
from operaciones.schemas.cuadrilla import CuadrillaCreate, MiembroManual, MiembroVinculado
from operaciones.schemas.orden_trabajo import OrdenTrabajoCreate
from operaciones.services.cuadrilla_service import CrewAssignmentResolver, CuadrillaService
from operaciones.utils.constants import Disponibilidad, EstadoCuadrilla, EstadoOrden
from operaciones.utils.result import Ok


@pytest.fixture
def cuadrillas(db):
    return CuadrillaService(db)


def _orden_en_progreso(ordenes, cliente, cuadrilla):
    orden = ordenes.create(
        OrdenTrabajoCreate(cliente_id=cliente.id, categoria_servicio="electricidad", situacion="corte")
    ).value
    ordenes.assign_crew(orden.id, cuadrilla.id)
    ordenes.transition(orden.id, EstadoOrden.EN_PROGRESO)
    return orden


class TestReferenceCounting:
    def test_crew_stays_busy_until_last_order_is_released(self, db, ordenes, cliente, cuadrilla):
        primera = _orden_en_progreso(ordenes, cliente, cuadrilla)
        segunda = _orden_en_progreso(ordenes, cliente, cuadrilla)
        assert db.get(Cuadrilla, cuadrilla.id).ordenes_activas == 2

        ordenes.transition(primera.id, EstadoOrden.FINALIZADA)
        crew = db.get(Cuadrilla, cuadrilla.id)
        assert crew.disponibilidad == Disponibilidad.BUSY
        assert crew.estado == EstadoCuadrilla.EN_TRABAJO
        assert crew.ordenes_activas == 1

        ordenes.transition(segunda.id, EstadoOrden.FINALIZADA)
        crew = db.get(Cuadrilla, cuadrilla.id)
        assert crew.disponibilidad == Disponibilidad.AVAILABLE
        assert crew.ordenes_activas == 0
        assert crew.progreso_actual is None

    def test_drops_to_ocupado_when_no_remaining_order_is_in_progress(
        self, db, ordenes, cliente, cuadrilla
    ):
        en_progreso = _orden_en_progreso(ordenes, cliente, cuadrilla)
        asignada = ordenes.create(
            OrdenTrabajoCreate(cliente_id=cliente.id, categoria_servicio="gas", situacion="revisión")
        ).value
        ordenes.assign_crew(asignada.id, cuadrilla.id)

        ordenes.transition(en_progreso.id, EstadoOrden.FINALIZADA)

        assert db.get(Cuadrilla, cuadrilla.id).estado == EstadoCuadrilla.OCUPADO

    def test_release_without_references_raises(self, db, cuadrilla, ordenes, cliente):
        orden = ordenes.create(
            OrdenTrabajoCreate(cliente_id=cliente.id, categoria_servicio="gas", situacion="revisión")
        ).value
        with pytest.raises(RuntimeError):
            CrewAssignmentResolver(db).release(cuadrilla.id, orden)
        db.rollback()


class TestCuadrillaService:
    def test_create_keeps_tagged_members_in_order(self, cuadrillas, admin):
        result = cuadrillas.create(
            CuadrillaCreate(
                nombre=" Cuadrilla Este ",
                zona="Este",
                miembros=[MiembroManual(name="Juan Pérez"), MiembroVinculado(user_id=admin.id)],
            )
        )
        crew = result.value
        assert crew.nombre == "Cuadrilla Este"
        assert crew.estado == EstadoCuadrilla.DESOCUPADO
        assert crew.miembros == [
            {"kind": "manual", "name": "Juan Pérez"},
            {"kind": "linked", "user_id": admin.id},
        ]

    def test_linked_member_must_exist(self, cuadrillas):
        result = cuadrillas.create(
            CuadrillaCreate(nombre="Cuadrilla X", miembros=[MiembroVinculado(user_id=404)])
        )
        assert result.error.code.value == "NOT_FOUND"

    def test_list_by_availability(self, cuadrillas, make_cuadrilla):
        make_cuadrilla("A")
        make_cuadrilla("B", EstadoCuadrilla.EN_TRABAJO)
        make_cuadrilla("C", EstadoCuadrilla.OFFLINE)

        ocupadas = cuadrillas.list_crews(Disponibilidad.BUSY).value
        assert [c.nombre for c in ocupadas] == ["B"]
        assert [c.nombre for c in cuadrillas.list_crews().value] == ["A", "B", "C"]

    def test_cannot_go_offline_with_active_orders(self, cuadrillas, ordenes, cliente, cuadrilla):
        _orden_en_progreso(ordenes, cliente, cuadrilla)
        result = cuadrillas.set_online(cuadrilla.id, False)
        assert result.error.code.value == "CONFLICT"

    def test_offline_and_back(self, cuadrillas, cuadrilla):
        assert cuadrillas.set_online(cuadrilla.id, False).value.disponibilidad == Disponibilidad.OFFLINE
        assert isinstance(cuadrillas.set_online(cuadrilla.id, False), Ok)
        assert cuadrillas.set_online(cuadrilla.id, True).value.estado == EstadoCuadrilla.DESOCUPADO
