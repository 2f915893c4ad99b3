"""Strict internal form of provider payment notifications.

Provider payloads are loosely typed; they are turned into a
``PaymentNotification`` here and nothing downstream sees the raw objects.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple

from ..common.errors import MalformedNotification
from ..common.services.transition_service import PaymentOutcome
from .signatures import PAYFAST, YOCO


PAYFAST_OUTCOMES = {
    "COMPLETE": PaymentOutcome.PAID,
    "FAILED": PaymentOutcome.FAILED,
    "CANCELLED": PaymentOutcome.FAILED,
}

YOCO_SUCCESS_EVENTS = {"payment.succeeded", "checkout.payment_received", "checkout.succeeded"}
YOCO_FAILURE_EVENTS = {"payment.failed", "checkout.failed", "checkout.cancelled", "checkout.expired"}

# m_payment_id built at checkout: LLL-<order uuid>-<epoch millis>
_M_PAYMENT_ID = re.compile(r"^LLL-(?P<order_id>.+)-\d+$")


@dataclass(frozen=True)
class PaymentNotification:
    provider: str
    correlation_id: str
    # None for states that settle nothing (PENDING, unknown event types)
    outcome: Optional[str]
    provider_payment_id: Optional[str]
    amount: Optional[Decimal]
    raw_status: str
    event_id: Optional[str] = None

    def to_log(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "order_id": self.correlation_id,
            "outcome": self.outcome,
            "raw_status": self.raw_status,
            "provider_payment_id": self.provider_payment_id,
            "amount": str(self.amount) if self.amount is not None else None,
            "event_id": self.event_id,
        }


def _decimal(value: Any, field: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise MalformedNotification(f"{field} is not a number: {value!r}")


def parse_payfast(fields: List[Tuple[str, str]], merchant_id: Optional[str] = None) -> PaymentNotification:
    data = dict(fields)
    status = (data.get("payment_status") or "").strip().upper()
    if not status:
        raise MalformedNotification("payment_status missing")
    if merchant_id and data.get("merchant_id") != merchant_id:
        raise MalformedNotification("merchant_id does not match this merchant")

    correlation_id = (data.get("custom_str1") or "").strip()
    if not correlation_id:
        match = _M_PAYMENT_ID.match(data.get("m_payment_id") or "")
        correlation_id = match.group("order_id") if match else ""
    if not correlation_id:
        raise MalformedNotification("no order id in custom_str1 or m_payment_id")

    return PaymentNotification(
        provider=PAYFAST,
        correlation_id=correlation_id,
        outcome=PAYFAST_OUTCOMES.get(status),
        provider_payment_id=data.get("pf_payment_id") or None,
        amount=_decimal(data.get("amount_gross"), "amount_gross"),
        raw_status=status,
    )


def parse_yoco(raw_body: bytes | str) -> PaymentNotification:
    try:
        event = json.loads(raw_body)
    except (UnicodeDecodeError, ValueError):
        raise MalformedNotification("body is not valid JSON")
    if not isinstance(event, dict):
        raise MalformedNotification("event must be a JSON object")

    event_id = event.get("id")
    event_type = event.get("type")
    payload = event.get("payload")
    if not isinstance(event_id, str) or not event_id:
        raise MalformedNotification("missing or invalid event.id")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedNotification("missing or invalid event.type")
    if not isinstance(payload, dict):
        raise MalformedNotification("missing or invalid event.payload")

    metadata = payload.get("metadata")
    if not isinstance(metadata, dict):
        raise MalformedNotification("missing or invalid payload.metadata")
    correlation_id = metadata.get("orderId") or metadata.get("order_id")
    if not isinstance(correlation_id, str) or not correlation_id:
        raise MalformedNotification("missing orderId in payload.metadata")

    amount = payload.get("amount")
    if amount is not None and (isinstance(amount, bool) or not isinstance(amount, (int, float))):
        raise MalformedNotification("payload.amount must be a number of cents")

    if event_type in YOCO_SUCCESS_EVENTS:
        outcome = PaymentOutcome.PAID
    elif event_type in YOCO_FAILURE_EVENTS:
        outcome = PaymentOutcome.FAILED
    else:
        outcome = None

    return PaymentNotification(
        provider=YOCO,
        correlation_id=correlation_id,
        outcome=outcome,
        provider_payment_id=payload.get("paymentId") or payload.get("id"),
        amount=(Decimal(str(amount)) / 100) if amount is not None else None,
        raw_status=event_type,
        event_id=event_id,
    )
