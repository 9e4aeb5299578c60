from datetime import timedelta
from decimal import Decimal

import pytest

from operaciones.models import OrdenTrabajo, Pago
from operaciones.schemas.suscripcion import SuscripcionCreate
from operaciones.utils.constants import EstadoOrden, EstadoPago, EstadoSuscripcion
from operaciones.utils.result import Err, ErrorCode, Ok


@pytest.fixture
def suscripcion(billing, cliente, propiedad, plan):
    result = billing.create_subscription(
        SuscripcionCreate(usuario_id=cliente.id, plan_id=plan.id, propiedad_id=propiedad.id)
    )
    assert isinstance(result, Ok), result
    return result.value


def _pagos(db, suscripcion_id, estado=None):
    query = db.query(Pago).filter(Pago.suscripcion_id == suscripcion_id)
    if estado is not None:
        query = query.filter(Pago.estado == estado)
    return query.all()


class TestCreate:
    def test_first_period_starts_now(self, suscripcion, clock):
        assert suscripcion.estado == EstadoSuscripcion.ACTIVE
        assert suscripcion.periodo_inicio == clock.now()
        assert suscripcion.periodo_fin == clock.now() + timedelta(days=30)

    def test_inactive_plan(self, billing, cliente, make_plan):
        viejo = make_plan("Plan 2019", activo=False)
        result = billing.create_subscription(SuscripcionCreate(usuario_id=cliente.id, plan_id=viejo.id))
        assert result.error.code == ErrorCode.INVALID_PLAN

    def test_one_live_subscription_per_property(self, billing, suscripcion, cliente, propiedad, make_plan):
        otro = make_plan("Hogar Básico", "3500.00")
        result = billing.create_subscription(
            SuscripcionCreate(usuario_id=cliente.id, plan_id=otro.id, propiedad_id=propiedad.id)
        )
        assert result.error.code == ErrorCode.CONFLICT


class TestProcessCharge:
    def test_due_period_is_charged_and_advanced(self, db, billing, gateway, suscripcion, clock):
        fin_anterior = suscripcion.periodo_fin
        clock.advance(days=31)

        result = billing.process_charge(suscripcion.id)

        cobro = result.value
        assert cobro.cobrado
        assert cobro.pago.estado == EstadoPago.POSTED
        assert cobro.pago.monto == Decimal("5000")
        assert cobro.pago.moneda == "ARS"
        assert cobro.suscripcion.estado == EstadoSuscripcion.ACTIVE
        assert cobro.suscripcion.periodo_inicio == fin_anterior
        assert cobro.suscripcion.periodo_fin == fin_anterior + timedelta(days=30)
        assert gateway.charges == [(suscripcion.id, Decimal("5000.00"), "ARS")]

    def test_second_call_in_same_window_is_a_no_op(self, db, billing, gateway, suscripcion, clock):
        clock.advance(days=31)
        primero = billing.process_charge(suscripcion.id).value
        segundo = billing.process_charge(suscripcion.id).value

        assert not segundo.cobrado
        assert segundo.pago.id == primero.pago.id
        assert len(_pagos(db, suscripcion.id, EstadoPago.POSTED)) == 1
        assert len(gateway.charges) == 1

    def test_not_due_is_not_charged(self, db, billing, gateway, suscripcion):
        result = billing.process_charge(suscripcion.id)
        assert result.value.cobrado is False
        assert result.value.pago is None
        assert gateway.charges == []
        assert _pagos(db, suscripcion.id) == []

    def test_failures_escalate_and_success_recovers(self, db, billing, gateway, suscripcion, clock):
        clock.advance(days=31)
        fin = suscripcion.periodo_fin
        gateway.decline_next(veces=2)

        primero = billing.process_charge(suscripcion.id).value
        assert primero.pago.estado == EstadoPago.FAILED
        assert primero.pago.nota == "fondos insuficientes"
        assert primero.suscripcion.estado == EstadoSuscripcion.PAST_DUE
        assert primero.suscripcion.periodo_fin == fin

        clock.advance(days=1)
        segundo = billing.process_charge(suscripcion.id).value
        assert segundo.suscripcion.estado == EstadoSuscripcion.SUSPENDED
        assert segundo.suscripcion.suspended_at == clock.now()

        clock.advance(days=1)
        tercero = billing.process_charge(suscripcion.id).value
        assert tercero.pago.estado == EstadoPago.POSTED
        assert tercero.suscripcion.estado == EstadoSuscripcion.ACTIVE
        assert tercero.suscripcion.suspended_at is None
        assert len(_pagos(db, suscripcion.id, EstadoPago.FAILED)) == 2

    def test_single_failure_then_success_restores_active(self, billing, gateway, suscripcion, clock):
        clock.advance(days=31)
        gateway.decline_next()
        assert billing.process_charge(suscripcion.id).value.suscripcion.estado == EstadoSuscripcion.PAST_DUE
        assert billing.process_charge(suscripcion.id).value.suscripcion.estado == EstadoSuscripcion.ACTIVE

    def test_declined_charge_notifies(self, billing, gateway, notifier, suscripcion, clock):
        clock.advance(days=31)
        gateway.decline_next("tarjeta vencida")
        billing.process_charge(suscripcion.id)

        assert len(notifier.calls) == 1
        tipo, datos = notifier.calls[0]
        assert tipo == "cobro_fallido"
        assert datos["suscripcion_id"] == suscripcion.id
        assert datos["motivo"] == "tarjeta vencida"
        assert datos["estado_suscripcion"] == "PAST_DUE"

    def test_canceled_subscription_is_never_charged(self, billing, gateway, suscripcion, clock):
        billing.cancel_subscription(suscripcion.id)
        clock.advance(days=31)
        result = billing.process_charge(suscripcion.id)
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.ALREADY_CANCELED
        assert gateway.charges == []

    def test_plan_with_service_category_spawns_recurring_order(
        self, db, billing, cliente, propiedad, make_plan, clock
    ):
        plan = make_plan("Hogar Plus Mantenimiento", categoria_servicio="mantenimiento preventivo")
        suscripcion = billing.create_subscription(
            SuscripcionCreate(usuario_id=cliente.id, plan_id=plan.id, propiedad_id=propiedad.id)
        ).value
        clock.advance(days=31)

        cobro = billing.process_charge(suscripcion.id).value

        assert cobro.orden_recurrente_id is not None
        orden = db.get(OrdenTrabajo, cobro.orden_recurrente_id)
        assert orden.estado == EstadoOrden.PENDIENTE
        assert orden.suscripcion_id == suscripcion.id
        assert orden.canal == "SUSCRIPCION"
        assert orden.categoria_servicio == "mantenimiento preventivo"
        assert orden.direccion == propiedad.direccion


class TestLifecycle:
    def test_upgrade_keeps_current_period(self, billing, suscripcion, make_plan, gateway, clock):
        premium = make_plan("Hogar Premium", "8000.00")
        fin = suscripcion.periodo_fin

        result = billing.upgrade_subscription(suscripcion.id, premium.id)

        assert result.value.plan_id == premium.id
        assert result.value.periodo_fin == fin
        clock.advance(days=31)
        billing.process_charge(suscripcion.id)
        assert gateway.charges[-1][1] == Decimal("8000.00")

    def test_upgrade_to_unknown_plan(self, billing, suscripcion):
        assert billing.upgrade_subscription(suscripcion.id, "nope").error.code == ErrorCode.INVALID_PLAN

    def test_cancel_is_idempotent(self, billing, suscripcion, clock):
        primero = billing.cancel_subscription(suscripcion.id, motivo="mudanza").value
        cancelada_en = primero.canceled_at
        clock.advance(days=2)
        segundo = billing.cancel_subscription(suscripcion.id)

        assert segundo.value.estado == EstadoSuscripcion.CANCELED
        assert segundo.value.canceled_at == cancelada_en
        assert segundo.value.motivo_cancelacion == "mudanza"

    def test_canceled_cannot_be_upgraded_or_paused(self, billing, suscripcion, plan):
        billing.cancel_subscription(suscripcion.id)
        assert billing.upgrade_subscription(suscripcion.id, plan.id).error.code == ErrorCode.ALREADY_CANCELED
        assert billing.pause_subscription(suscripcion.id, 5).error.code == ErrorCode.ALREADY_CANCELED

    def test_pause_postpones_charging(self, billing, gateway, suscripcion, clock):
        clock.advance(days=25)
        pausada = billing.pause_subscription(suscripcion.id, 10).value
        assert pausada.estado == EstadoSuscripcion.PAUSED

        clock.advance(days=6)
        assert billing.due_subscriptions() == []
        assert billing.process_charge(suscripcion.id).value.cobrado is False

        clock.advance(days=5)
        assert [s.id for s in billing.due_subscriptions()] == [suscripcion.id]
        cobro = billing.process_charge(suscripcion.id).value
        assert cobro.cobrado
        assert cobro.suscripcion.estado == EstadoSuscripcion.ACTIVE
        assert len(gateway.charges) == 1

    def test_pause_requires_positive_days(self, billing, suscripcion):
        assert billing.pause_subscription(suscripcion.id, 0).error.code == ErrorCode.OUT_OF_RANGE

    def test_manual_payment_reactivates_past_due(self, db, billing, gateway, suscripcion, clock):
        clock.advance(days=31)
        gateway.decline_next()
        billing.process_charge(suscripcion.id)

        pago = billing.record_manual_payment(suscripcion.id, Decimal("5000"), nota="efectivo").value

        assert pago.estado == EstadoPago.POSTED
        assert pago.proveedor == "admin"
        actual = billing.get_subscription(suscripcion.id).value
        assert actual.estado == EstadoSuscripcion.ACTIVE
        assert actual.periodo_fin > clock.now()

    def test_manual_payment_must_be_positive(self, billing, suscripcion):
        result = billing.record_manual_payment(suscripcion.id, Decimal("0"))
        assert result.error.code == ErrorCode.INVALID_INPUT

    def test_list_payments_oldest_first(self, billing, gateway, suscripcion, clock):
        clock.advance(days=31)
        gateway.decline_next()
        billing.process_charge(suscripcion.id)
        clock.advance(hours=1)
        billing.process_charge(suscripcion.id)

        estados = [p.estado for p in billing.list_payments(suscripcion.id).value]
        assert estados == [EstadoPago.FAILED, EstadoPago.POSTED]


class TestScanOverdue:
    def test_not_overdue_is_left_alone(self, billing, suscripcion, clock):
        clock.advance(days=10)
        assert billing.scan_overdue().value == []
        assert billing.get_subscription(suscripcion.id).value.estado == EstadoSuscripcion.ACTIVE

    def test_grace_then_suspended(self, billing, suscripcion, clock):
        clock.advance(days=31)
        cambiadas = billing.scan_overdue().value
        assert [s.id for s in cambiadas] == [suscripcion.id]
        assert cambiadas[0].estado == EstadoSuscripcion.GRACE
        assert billing.scan_overdue().value == []

        clock.advance(days=3)
        suspendida = billing.scan_overdue().value[0]
        assert suspendida.estado == EstadoSuscripcion.SUSPENDED
        assert suspendida.suspended_at == clock.now()

    def test_charge_in_grace_reactivates(self, billing, suscripcion, clock):
        clock.advance(days=31)
        billing.scan_overdue()

        cobro = billing.process_charge(suscripcion.id).value

        assert cobro.suscripcion.estado == EstadoSuscripcion.ACTIVE
        assert billing.scan_overdue().value == []

    def test_past_due_waits_for_end_of_grace(self, billing, gateway, suscripcion, clock):
        clock.advance(days=31)
        gateway.decline_next()
        billing.process_charge(suscripcion.id)

        assert billing.scan_overdue().value == []
        assert billing.get_subscription(suscripcion.id).value.estado == EstadoSuscripcion.PAST_DUE

        clock.advance(days=3)
        assert billing.scan_overdue().value[0].estado == EstadoSuscripcion.SUSPENDED

    def test_pause_moves_the_grace_window(self, billing, suscripcion, clock):
        clock.advance(days=25)
        billing.pause_subscription(suscripcion.id, 10)

        clock.advance(days=6)
        assert billing.scan_overdue().value == []

        clock.advance(days=5)
        assert billing.scan_overdue().value[0].estado == EstadoSuscripcion.GRACE

    def test_canceled_is_never_touched(self, billing, suscripcion, clock):
        billing.cancel_subscription(suscripcion.id)
        clock.advance(days=60)
        assert billing.scan_overdue().value == []
        assert billing.get_subscription(suscripcion.id).value.estado == EstadoSuscripcion.CANCELED
