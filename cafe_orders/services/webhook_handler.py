"""Payment-provider webhook processing."""

from __future__ import annotations

import ipaddress
from decimal import Decimal
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..common.errors import MalformedNotification
from ..common.services.logging import log_event
from ..common.services.transition_service import PaymentOutcome, PaymentTransitionService
from .notifications import PaymentNotification, parse_payfast, parse_yoco
from .notifier import OrderNotifier
from .signatures import PAYFAST, YOCO, parse_form_body, verify_payfast, verify_yoco


# Published PayFast notification source ranges.
PAYFAST_NETWORKS = tuple(
    ipaddress.ip_network(n)
    for n in (
        "197.97.145.144/28",
        "41.74.179.192/27",
        "102.216.36.0/28",
        "102.216.36.128/28",
        "144.126.193.139/32",
    )
)


def is_payfast_ip(addr: Optional[str]) -> bool:
    try:
        ip = ipaddress.ip_address((addr or "").strip())
    except ValueError:
        return False
    return any(ip in net for net in PAYFAST_NETWORKS)


@dataclass
class WebhookResult:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


class WebhookHandler:
    """Verify, parse and apply one provider callback.

    Responses: 4xx only for bad signatures or malformed payloads; every
    notification that was verified and understood gets 200 so the provider
    stops retrying, including unknown orders and already-settled ones.
    """

    def __init__(
        self,
        transitions: PaymentTransitionService,
        notifier: OrderNotifier,
        *,
        payfast_passphrase: str = "",
        payfast_merchant_id: str = "",
        yoco_secret: str = "",
    ) -> None:
        self._transitions = transitions
        self._notifier = notifier
        self._payfast_passphrase = payfast_passphrase
        self._payfast_merchant_id = payfast_merchant_id
        self._yoco_secret = yoco_secret

    def handle(self, provider: str, raw_body: bytes, headers: Mapping[str, str], remote_addr: Optional[str] = None) -> WebhookResult:
        if provider == PAYFAST:
            return self.handle_payfast(raw_body, remote_addr)
        if provider == YOCO:
            return self.handle_yoco(raw_body, headers)
        return WebhookResult(400, {"error": f"unknown provider: {provider}"})

    def handle_payfast(self, raw_body: bytes, remote_addr: Optional[str] = None) -> WebhookResult:
        log_event("info", "webhook.received", provider=PAYFAST, bytes=len(raw_body or b""))
        if not verify_payfast(raw_body, None, self._payfast_passphrase):
            log_event("error", "webhook.signature_invalid", provider=PAYFAST, remote_addr=remote_addr)
            return WebhookResult(400, {"error": "Invalid signature"})

        # advisory only: proxies and provider infrastructure changes make this unreliable
        if remote_addr and not is_payfast_ip(remote_addr):
            log_event("warning", "webhook.unverified_ip", provider=PAYFAST, remote_addr=remote_addr)

        try:
            notification = parse_payfast(parse_form_body(raw_body), self._payfast_merchant_id or None)
        except (MalformedNotification, ValueError) as exc:
            log_event("error", "webhook.malformed", provider=PAYFAST, error=str(exc))
            return WebhookResult(400, {"error": str(exc)})
        return self._apply(notification)

    def handle_yoco(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookResult:
        log_event("info", "webhook.received", provider=YOCO, bytes=len(raw_body or b""))
        if not verify_yoco(
            raw_body,
            headers.get("webhook-id"),
            headers.get("webhook-timestamp"),
            headers.get("webhook-signature"),
            self._yoco_secret,
        ):
            log_event("error", "webhook.signature_invalid", provider=YOCO, webhook_id=headers.get("webhook-id"))
            return WebhookResult(401, {"error": "Invalid signature"})

        try:
            notification = parse_yoco(raw_body)
        except MalformedNotification as exc:
            log_event("error", "webhook.malformed", provider=YOCO, error=str(exc))
            return WebhookResult(400, {"error": str(exc)})
        return self._apply(notification)

    def _apply(self, notification: PaymentNotification) -> WebhookResult:
        log_event("info", "webhook.parsed", **notification.to_log())
        order_id = notification.correlation_id
        if notification.outcome is None:
            return WebhookResult(200, {"received": True, "processed": False, "order_id": order_id, "message": "event acknowledged, nothing to settle"})

        result = self._transitions.apply(
            order_id,
            notification.outcome,
            source=f"webhook:{notification.provider}",
            provider=notification.provider,
            payment_reference=notification.provider_payment_id,
        )
        if not result.found:
            log_event("warning", "webhook.unknown_order", **notification.to_log())
            return WebhookResult(200, {"received": True, "processed": False, "order_id": order_id, "message": "order not found"})

        order = result.order
        if notification.amount is not None and result.applied:
            expected = order.get("total_amount")
            if expected is not None and notification.amount != Decimal(str(expected)):
                log_event("warning", "webhook.amount_mismatch", order_id=order_id, notified=str(notification.amount), expected=expected)

        notified = False
        if result.applied and notification.outcome == PaymentOutcome.PAID:
            notified = self._notifier.notify_safely(order)

        return WebhookResult(
            200,
            {
                "received": True,
                "processed": result.applied,
                "order_id": order_id,
                "status": order["status"],
                "payment_status": order["payment_status"],
                "notified": notified,
            },
        )
