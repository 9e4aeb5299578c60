"""
Outbound notifications (fire-and-forget).

Services never call a notifier directly inside a transaction; they queue
the call with ``after_commit`` so a notification is sent only for changes
that were actually committed, and a failing sender never rolls anything
back. Payloads are plain dicts captured before the commit so no ORM
instance is touched after the session moves on.

``ResendNotifier`` posts an HTML email rendered with Jinja2 to the Resend
HTTP API. ``LogNotifier`` only logs and is used when no API key is set.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import requests
from jinja2 import Template

from operaciones.config import Settings

logger = logging.getLogger(__name__)

ORDEN_FINALIZADA_TEMPLATE = """
<!doctype html>
<html>
  <body style="font-family: Arial, sans-serif;">
    <h2>Orden de trabajo finalizada</h2>
    <p><strong>Orden:</strong> {{ datos.orden_id }}</p>
    <p><strong>Servicio:</strong> {{ datos.categoria_servicio }}</p>
    <p><strong>Dirección:</strong> {{ datos.direccion or "N/A" }}</p>
    <p><strong>Cuadrilla:</strong> {{ datos.cuadrilla_id or "N/A" }}</p>
    <p>Finalizada: {{ datos.completed_at }}</p>
  </body>
</html>
"""

COBRO_FALLIDO_TEMPLATE = """
<!doctype html>
<html>
  <body style="font-family: Arial, sans-serif;">
    <h2>Cobro rechazado</h2>
    <p><strong>Suscripción:</strong> {{ datos.suscripcion_id }}</p>
    <p><strong>Monto:</strong> {{ datos.monto }} {{ datos.moneda }}</p>
    <p><strong>Estado de la suscripción:</strong> {{ datos.estado_suscripcion }}</p>
    <p>Motivo: {{ datos.motivo or "sin detalle" }}</p>
  </body>
</html>
"""


class Notifier(ABC):
    """Sink for business notifications."""

    @abstractmethod
    def orden_finalizada(self, datos: dict[str, Any]) -> None:
        """A work order reached FINALIZADA."""

    @abstractmethod
    def cobro_fallido(self, datos: dict[str, Any]) -> None:
        """A subscription charge was declined."""


class LogNotifier(Notifier):
    def orden_finalizada(self, datos: dict[str, Any]) -> None:
        logger.info("notify orden_finalizada: %s", datos)

    def cobro_fallido(self, datos: dict[str, Any]) -> None:
        logger.info("notify cobro_fallido: %s", datos)


class ResendNotifier(Notifier):
    """Send notification emails through the Resend HTTP API.

    Raises ``RuntimeError`` when Resend answers with an error status; the
    post-commit hook runner logs it at WARNING.
    """

    def __init__(
        self,
        api_key: str,
        from_email: str,
        destinatarios: list[str],
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.from_email = from_email
        self.destinatarios = destinatarios
        self.api_url = api_url
        self.timeout = timeout

    def _send(self, subject: str, template: str, datos: dict[str, Any]) -> None:
        if not self.destinatarios:
            logger.debug("ResendNotifier: no recipients configured, skipping '%s'", subject)
            return

        params = {
            "from": self.from_email,
            "to": self.destinatarios,
            "subject": subject,
            "html": Template(template).render(datos=datos),
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        resp = requests.post(self.api_url, json=params, headers=headers, timeout=self.timeout)
        if resp.status_code not in (200, 202):
            raise RuntimeError(f"Error enviando email vía Resend ({resp.status_code}): {resp.text}")
        logger.info("ResendNotifier: sent '%s' to %d recipients", subject, len(self.destinatarios))

    def orden_finalizada(self, datos: dict[str, Any]) -> None:
        self._send(
            f"Orden {datos.get('orden_id', '')} finalizada",
            ORDEN_FINALIZADA_TEMPLATE,
            datos,
        )

    def cobro_fallido(self, datos: dict[str, Any]) -> None:
        self._send(
            f"Cobro rechazado - suscripción {datos.get('suscripcion_id', '')}",
            COBRO_FALLIDO_TEMPLATE,
            datos,
        )


def build_notifier(settings: Settings) -> Notifier:
    """Pick the notifier for this process from configuration."""
    if settings.RESEND_API_KEY and settings.EMAIL_FROM:
        return ResendNotifier(
            api_key=settings.RESEND_API_KEY,
            from_email=settings.EMAIL_FROM,
            destinatarios=list(settings.NOTIFICATIONS_TO),
            api_url=settings.RESEND_API_URL,
        )
    logger.info("RESEND_API_KEY/EMAIL_FROM not set; notifications will only be logged")
    return LogNotifier()
