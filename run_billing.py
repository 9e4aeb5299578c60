"""Billing run: one charge attempt for every due subscription.

Meant to be triggered by cron (or any external scheduler) once or a few
times a day. Each subscription is charged in its own transaction, so one
failure never affects the others; a declined charge is reported, not
retried, and will be attempted again on the next run. After the charges
the overdue scan moves unpaid subscriptions to GRACE or SUSPENDED.

Exits with status 1 when any subscription raised an unexpected error.

Usage (from the project root):
    python run_billing.py
"""

from __future__ import annotations

import logging
import sys

from operaciones.config import get_settings
from operaciones.database import SessionLocal
from operaciones.services.notifier import build_notifier
from operaciones.services.payment_gateway import build_gateway
from operaciones.services.suscripcion_service import BillingEngine
from operaciones.utils.clock import SystemClock
from operaciones.utils.constants import EstadoPago
from operaciones.utils.result import Err

logger = logging.getLogger("run_billing")


def main() -> int:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    session = SessionLocal()
    engine = BillingEngine(
        session,
        SystemClock(),
        build_gateway(settings),
        build_notifier(settings),
        settings,
    )
    cobrados = rechazados = omitidas = errores = 0
    try:
        pendientes = [s.id for s in engine.due_subscriptions()]
        logger.info("Billing run: %d subscriptions due", len(pendientes))

        for suscripcion_id in pendientes:
            try:
                result = engine.process_charge(suscripcion_id)
            except Exception:
                errores += 1
                logger.exception("Suscripcion %s: charge aborted", suscripcion_id)
                continue
            if isinstance(result, Err):
                omitidas += 1
                logger.info(
                    "Suscripcion %s skipped: %s (%s)",
                    suscripcion_id,
                    result.error.message,
                    result.error.code.value,
                )
                continue
            cobro = result.value
            if cobro.cobrado and cobro.pago.estado == EstadoPago.FAILED:
                rechazados += 1
            elif cobro.cobrado:
                cobrados += 1

        try:
            vencidas = engine.scan_overdue()
        except Exception:
            errores += 1
            logger.exception("Overdue scan aborted")
        else:
            logger.info("Overdue scan: %d subscriptions changed status", len(vencidas.value))
    finally:
        session.close()

    logger.info(
        "Billing run finished: %d posted, %d declined, %d skipped, %d errors",
        cobrados,
        rechazados,
        omitidas,
        errores,
    )
    return 1 if errores else 0


if __name__ == "__main__":
    sys.exit(main())
