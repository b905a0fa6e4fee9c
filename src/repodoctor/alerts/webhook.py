"""Webhook transport — POST a JSON payload to the resolved endpoint."""
from __future__ import annotations

import logging
import urllib.error
import urllib.request

from ..errors import DeliveryError
from .formatting import Payload
from .targets import DeliveryTarget

logger = logging.getLogger(__name__)

ERROR_BODY_LIMIT = 220


class Transport:
    """Base class / Protocol for alert transports.

    ``send`` returns on success and raises DeliveryError otherwise.
    """

    def send(self, target: DeliveryTarget, payload: Payload) -> None:
        raise NotImplementedError


class WebhookTransport(Transport):
    """Deliver payloads to Slack, Discord or a generic JSON webhook.

    Unlike best-effort notifiers, a failed send raises: the dispatcher must
    not record a delivery that did not happen.

    Args:
        timeout: Socket timeout in seconds. A timeout is a failed delivery.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        self._timeout = timeout

    def send(self, target: DeliveryTarget, payload: Payload) -> None:
        self._post(target.url, payload.to_json())
        logger.debug("Delivered %s payload to %s webhook", payload.kind, target.kind)

    def _post(self, url: str, data: bytes) -> None:
        req = urllib.request.Request(
            url,
            data=data,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                status = resp.status
                if not 200 <= status < 300:
                    body = resp.read().decode("utf-8", errors="replace")
                    raise _delivery_failed(status, body)
        except urllib.error.HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace") if exc.fp is not None else ""
            raise _delivery_failed(exc.code, body) from exc
        except OSError as exc:
            raise DeliveryError(f"Webhook delivery failed: {exc}") from exc


def _delivery_failed(status: int, body: str) -> DeliveryError:
    excerpt = body[:ERROR_BODY_LIMIT]
    details = f": {excerpt}" if excerpt else ""
    return DeliveryError(f"Webhook delivery failed ({status}){details}", status=status, body=excerpt)
