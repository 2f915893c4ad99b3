"""Yoco hosted checkout sessions for orders awaiting payment."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Optional

import requests

from ..common.errors import CheckoutError, PaymentProviderError
from ..common.models.order import PaymentStatus
from ..common.services.logging import log_event


DEFAULT_API_URL = "https://payments.yoco.com/api"


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


class YocoCheckout:
    """Creates a checkout through the Yoco API and returns where to send the customer.

    The order id travels in ``metadata.orderId``; Yoco echoes the metadata back
    in its webhook events, which is how a payment is matched to its order.
    """

    def __init__(
        self,
        secret_key: str,
        site_url: str = "",
        api_url: str = DEFAULT_API_URL,
        timeout: int = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.secret_key = (secret_key or "").strip()
        self.site_url = site_url.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._http = session or requests.Session()

    def is_enabled(self) -> bool:
        return bool(self.secret_key)

    def create_checkout(
        self,
        order: Dict,
        *,
        amount=None,
        email: Optional[str] = None,
        customer_name: Optional[str] = None,
    ) -> Dict:
        """``amount`` (in rands), when given, must match the order total to the cent."""
        order_id = order["order_id"]
        if order["payment_status"] != PaymentStatus.AWAITING:
            raise CheckoutError(f"order is {order['payment_status']}, cannot take payment")
        total = Decimal(str(order["total_amount"]))
        if total <= 0:
            raise CheckoutError("order total must be > 0")
        if amount is not None:
            try:
                requested = Decimal(str(amount))
            except ArithmeticError:
                raise CheckoutError("amount must be a number")
            if not requested.is_finite() or abs(requested - total) > Decimal("0.01"):
                raise CheckoutError("amount does not match the order total")

        cents = to_cents(total)
        metadata = {"orderId": order_id, "orderNumber": str(order["order_number"])}
        if email:
            metadata["customerEmail"] = email.strip()
        if customer_name and customer_name.strip():
            metadata["customerName"] = customer_name.strip()
        payload = {"amount": cents, "currency": order.get("currency") or "ZAR", "metadata": metadata}
        if self.site_url:
            payload["successUrl"] = f"{self.site_url}/checkout/success?order={order_id}"
            payload["cancelUrl"] = f"{self.site_url}/checkout/cancelled?order={order_id}"
            payload["failureUrl"] = f"{self.site_url}/checkout/failed?order={order_id}"

        try:
            response = self._http.post(
                f"{self.api_url}/checkouts",
                json=payload,
                headers={"Authorization": f"Bearer {self.secret_key}", "Idempotency-Key": order_id},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            log_event("error", "yoco.checkout_failed", order_id=order_id, error=str(exc))
            raise PaymentProviderError(f"Yoco checkout failed: {exc}") from exc

        log_event("info", "yoco.checkout_created", order_id=order_id, checkout_id=data.get("id"), amount=cents)
        return {
            "provider": "yoco",
            "checkout_id": data.get("id"),
            "redirect_url": data.get("redirectUrl"),
            "amount": cents,
            "currency": payload["currency"],
        }
