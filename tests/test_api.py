"""HTTP layer: envelope, status codes, roles and authentication."""

import pytest
from fastapi.testclient import TestClient

from operaciones.database import get_db
from operaciones.main import app
from operaciones.models import Usuario
from operaciones.services.auth_service import get_current_user
from operaciones.utils.security import hash_password


@pytest.fixture
def client(db, clock, notifier, gateway):
    app.dependency_overrides[get_db] = lambda: db
    app.state.clock = clock
    app.state.notifier = notifier
    app.state.gateway = gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client):
    def _login(usuario: Usuario) -> TestClient:
        app.dependency_overrides[get_current_user] = lambda: usuario
        return client

    return _login


@pytest.fixture
def backoffice(login_as, admin):
    return login_as(admin)


def _crear_orden(api, cliente):
    response = api.post(
        "/api/ordenes-trabajo/",
        json={
            "cliente_id": cliente.id,
            "categoria_servicio": "plomería",
            "situacion": "pérdida de agua",
            "peligro_accidente": "SI",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestOrdenesTrabajo:
    def test_create_returns_201_envelope(self, backoffice, cliente):
        data = _crear_orden(backoffice, cliente)
        assert data["estado"] == "PENDIENTE"
        assert data["prioridad"] == "ALTA"
        assert data["progreso"] == 0

    def test_rejected_transition_is_400_with_code(self, backoffice, cliente):
        orden = _crear_orden(backoffice, cliente)
        response = backoffice.patch(
            f"/api/ordenes-trabajo/{orden['id']}/estado",
            json={"estado": "FINALIZADA"},
        )
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "INVALID_TRANSITION"

    def test_assign_progress_and_timeline(self, backoffice, cliente, cuadrilla):
        orden = _crear_orden(backoffice, cliente)
        url = f"/api/ordenes-trabajo/{orden['id']}"

        asignada = backoffice.patch(f"{url}/cuadrilla", json={"cuadrilla_id": cuadrilla.id})
        assert asignada.json()["data"]["estado"] == "ASIGNADA"
        assert backoffice.patch(f"{url}/estado", json={"estado": "EN_PROGRESO"}).status_code == 200

        fuera = backoffice.patch(f"{url}/progreso", json={"progreso": 150})
        assert fuera.status_code == 400
        assert fuera.json()["error"]["code"] == "OUT_OF_RANGE"
        assert backoffice.patch(f"{url}/progreso", json={"progreso": 45}).json()["data"]["progreso"] == 45

        nota = backoffice.post(f"{url}/notas", json={"nota": "falta repuesto"})
        assert nota.status_code == 201

        eventos = backoffice.get(f"{url}/timeline").json()["data"]
        assert [e["tipo"] for e in eventos][-1] == "NOTE"
        analisis = backoffice.get(f"{url}/timeline", params={"analizar": True}).json()["data"]
        assert len(analisis["jornadas"]) == 1

    def test_list_is_paged(self, backoffice, cliente):
        for _ in range(3):
            _crear_orden(backoffice, cliente)
        data = backoffice.get("/api/ordenes-trabajo/", params={"take": 2}).json()["data"]
        assert data["total"] == 3
        assert len(data["items"]) == 2

    def test_unknown_order_is_400_not_found(self, backoffice):
        response = backoffice.get("/api/ordenes-trabajo/no-existe")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.parametrize("rol", ["CLIENTE", "CUADRILLA"])
    def test_reads_are_backoffice_only(self, backoffice, login_as, cliente, db, rol):
        orden = _crear_orden(backoffice, cliente)
        otro = Usuario(
            username=f"otro_{rol.lower()}",
            email=f"otro_{rol.lower()}@example.com",
            password_hash="x",
            nombre_completo="Otro usuario",
            rol=rol,
            activo=True,
        )
        db.add(otro)
        db.commit()

        api = login_as(otro)
        assert api.get("/api/ordenes-trabajo/").status_code == 403
        assert api.get(f"/api/ordenes-trabajo/{orden['id']}").status_code == 403
        assert api.get(f"/api/ordenes-trabajo/{orden['id']}/timeline").status_code == 403

    def test_customer_cannot_create_orders(self, login_as, cliente):
        api = login_as(cliente)
        response = api.post(
            "/api/ordenes-trabajo/",
            json={"cliente_id": cliente.id, "categoria_servicio": "gas", "situacion": "olor"},
        )
        assert response.status_code == 403


class TestCuadrillas:
    def test_create_and_filter_by_availability(self, backoffice):
        creada = backoffice.post(
            "/api/cuadrillas/",
            json={"nombre": "Cuadrilla Este", "miembros": [{"kind": "manual", "name": "Juan"}]},
        )
        assert creada.status_code == 201
        assert creada.json()["data"]["disponibilidad"] == "AVAILABLE"

        libres = backoffice.get("/api/cuadrillas/", params={"disponibilidad": "AVAILABLE"})
        assert [c["nombre"] for c in libres.json()["data"]] == ["Cuadrilla Este"]


class TestPlanes:
    def test_admin_creates_plan_with_defaults(self, backoffice):
        creado = backoffice.post("/api/planes/", json={"nombre": "Hogar Premium", "precio": "8000.00"})
        assert creado.status_code == 201
        data = creado.json()["data"]
        assert data["moneda"] == "ARS"
        assert data["periodo_dias"] == 30

        duplicado = backoffice.post("/api/planes/", json={"nombre": "Hogar Premium", "precio": "9000"})
        assert duplicado.json()["error"]["code"] == "CONFLICT"

    def test_inactive_plans_are_hidden_by_default(self, backoffice, make_plan):
        make_plan("Vigente")
        make_plan("Discontinuado", activo=False)
        nombres = [p["nombre"] for p in backoffice.get("/api/planes/").json()["data"]]
        assert nombres == ["Vigente"]

    def test_operator_cannot_create_plans(self, login_as, db):
        operador = Usuario(
            username="operador2",
            email="operador2@example.com",
            password_hash="x",
            nombre_completo="Operador",
            rol="OPERADOR",
            activo=True,
        )
        db.add(operador)
        db.commit()
        response = login_as(operador).post("/api/planes/", json={"nombre": "X", "precio": "1"})
        assert response.status_code == 403


class TestSuscripciones:
    def test_charge_flow(self, backoffice, cliente, plan, clock, gateway):
        creada = backoffice.post(
            "/api/suscripciones/",
            json={"usuario_id": cliente.id, "plan_id": plan.id},
        )
        assert creada.status_code == 201
        sid = creada.json()["data"]["id"]

        clock.advance(days=31)
        gateway.decline_next()
        rechazado = backoffice.post(f"/api/suscripciones/{sid}/cobro").json()["data"]
        assert rechazado["pago"]["estado"] == "FAILED"
        assert rechazado["suscripcion"]["estado"] == "PAST_DUE"

        cobrado = backoffice.post(f"/api/suscripciones/{sid}/cobro").json()["data"]
        assert cobrado["cobrado"] is True
        assert float(cobrado["pago"]["monto"]) == 5000
        assert cobrado["suscripcion"]["estado"] == "ACTIVE"

        pagos = backoffice.get(f"/api/suscripciones/{sid}/pagos").json()["data"]
        assert [p["estado"] for p in pagos] == ["FAILED", "POSTED"]

    def test_cancel_twice_and_charge_rejected(self, backoffice, cliente, plan):
        sid = backoffice.post(
            "/api/suscripciones/", json={"usuario_id": cliente.id, "plan_id": plan.id}
        ).json()["data"]["id"]

        assert backoffice.post(f"/api/suscripciones/{sid}/cancelar").status_code == 200
        segunda = backoffice.post(f"/api/suscripciones/{sid}/cancelar", json={"motivo": "otra vez"})
        assert segunda.json()["data"]["estado"] == "CANCELED"

        cobro = backoffice.post(f"/api/suscripciones/{sid}/cobro")
        assert cobro.status_code == 400
        assert cobro.json()["error"]["code"] == "ALREADY_CANCELED"

    def test_customer_only_sees_own_subscriptions(self, login_as, backoffice, admin, cliente, plan):
        propia = backoffice.post(
            "/api/suscripciones/", json={"usuario_id": cliente.id, "plan_id": plan.id}
        ).json()["data"]
        ajena = backoffice.post(
            "/api/suscripciones/", json={"usuario_id": admin.id, "plan_id": plan.id}
        ).json()["data"]

        api = login_as(cliente)
        listado = api.get("/api/suscripciones/").json()["data"]
        assert [s["id"] for s in listado] == [propia["id"]]
        assert api.get(f"/api/suscripciones/{ajena['id']}").json()["error"]["code"] == "NOT_FOUND"


class TestAuth:
    def test_login_and_me(self, client, db):
        db.add(
            Usuario(
                username="operador",
                email="operador@example.com",
                password_hash=hash_password("operador123"),
                nombre_completo="Operador",
                rol="OPERADOR",
                activo=True,
            )
        )
        db.commit()

        token = client.post(
            "/api/auth/login/json",
            json={"username": "operador", "password": "operador123"},
        ).json()["access_token"]
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert me.status_code == 200
        assert me.json()["rol"] == "OPERADOR"

    def test_wrong_password(self, client, cliente):
        response = client.post(
            "/api/auth/login/json",
            json={"username": "cliente", "password": "incorrecta"},
        )
        assert response.status_code == 401

    def test_missing_token(self, client):
        assert client.get("/api/ordenes-trabajo/").status_code == 401
