"""Order confirmation relay (email/push gateway reached over HTTP)."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from ..common.services.logging import log_event


class OrderNotifier:
    """Posts confirmed orders to the configured notification relay.

    Callers treat delivery as best-effort: a failure here is logged and never
    undoes the payment transition that preceded it.
    """

    def __init__(self, endpoint: Optional[str] = None, timeout: int = 10, session: Optional[requests.Session] = None) -> None:
        self.endpoint = (endpoint or "").strip()
        self.timeout = timeout
        self._http = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def is_enabled(self) -> bool:
        return bool(self.endpoint)

    def send_order_confirmation(self, order: Dict) -> bool:
        if not self.is_enabled():
            log_event("info", "notify.skipped", order_id=order.get("order_id"), reason="no endpoint configured")
            return False
        payload = {
            "type": "order.confirmed",
            "order_id": order.get("order_id"),
            "order_number": order.get("order_number"),
            "total_amount": order.get("total_amount"),
            "currency": order.get("currency"),
            "items": [{"name": it.get("name"), "quantity": it.get("quantity")} for it in order.get("items") or []],
        }
        response = self._http.post(self.endpoint, json=payload, timeout=self.timeout)
        response.raise_for_status()
        self.logger.debug("confirmation relay answered %s for %s", response.status_code, order.get("order_id"))
        log_event("info", "notify.sent", order_id=order.get("order_id"), status_code=response.status_code)
        return True

    def notify_safely(self, order: Dict) -> bool:
        """Send and swallow transport errors; the caller's response must not depend on it."""
        try:
            return self.send_order_confirmation(order)
        except requests.exceptions.RequestException as exc:
            log_event("error", "notify.failed", order_id=order.get("order_id"), error=str(exc))
            return False
