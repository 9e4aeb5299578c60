"""
Payment gateway abstraction used by the billing engine.

A gateway makes exactly one charge attempt per call and reports the
outcome; it never retries. Declines are outcomes, not exceptions. An
exception from ``charge`` means the gateway itself is broken and aborts
the billing transaction.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

from operaciones.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeOutcome:
    approved: bool
    referencia: str | None = None
    mensaje: str | None = None


class PaymentGateway(ABC):
    nombre: str = "gateway"

    @abstractmethod
    def charge(
        self,
        suscripcion_id: str,
        monto: Decimal,
        moneda: str,
        pago_id: str,
    ) -> ChargeOutcome:
        """Attempt to collect *monto* for one billing period."""


class ManualGateway(PaymentGateway):
    """Gateway for deployments where collection happens outside the system.

    Every charge is approved with a generated reference; operators reconcile
    declines by hand and register cash payments as manual payments.
    """

    nombre = "manual"

    def charge(
        self,
        suscripcion_id: str,
        monto: Decimal,
        moneda: str,
        pago_id: str,
    ) -> ChargeOutcome:
        referencia = f"MAN-{uuid.uuid4().hex[:12].upper()}"
        logger.debug(
            "ManualGateway: approved %s %s for suscripcion %s (%s)",
            monto,
            moneda,
            suscripcion_id,
            referencia,
        )
        return ChargeOutcome(approved=True, referencia=referencia)


_GATEWAYS: dict[str, type[PaymentGateway]] = {
    ManualGateway.nombre: ManualGateway,
}


def build_gateway(settings: Settings) -> PaymentGateway:
    try:
        return _GATEWAYS[settings.PAYMENT_GATEWAY]()
    except KeyError:
        raise ValueError(
            f"PAYMENT_GATEWAY desconocido: {settings.PAYMENT_GATEWAY!r} "
            f"(opciones: {', '.join(sorted(_GATEWAYS))})"
        ) from None
