"""Signed PayFast checkout form for a freshly created order."""

from __future__ import annotations

import re
import time
from typing import Dict, Optional

from .signatures import payfast_signature


class PayFastCheckout:
    def __init__(
        self,
        merchant_id: str,
        merchant_key: str,
        passphrase: str = "",
        process_url: str = "https://sandbox.payfast.co.za/eng/process",
        site_url: str = "",
    ) -> None:
        self.merchant_id = merchant_id
        self.merchant_key = merchant_key
        self.passphrase = passphrase
        self.process_url = process_url
        self.site_url = site_url.rstrip("/")

    def is_enabled(self) -> bool:
        return bool(self.merchant_id and self.merchant_key)

    def build_payment_form(
        self,
        order: Dict,
        *,
        email: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Dict:
        """Form fields (signature included) the browser posts to PayFast.

        ``custom_str1`` carries the order id back in the ITN; ``m_payment_id``
        embeds it as a fallback.
        """
        amount = float(order["total_amount"])
        if amount <= 0 or amount > 999999.99:
            raise ValueError(f"amount out of range for PayFast: {amount}")
        order_id = order["order_id"]
        fields = {
            "merchant_id": self.merchant_id,
            "merchant_key": self.merchant_key,
            "amount": f"{amount:.2f}",
            "item_name": f"Order #{order['order_number']}",
            "m_payment_id": f"LLL-{order_id}-{int(time.time() * 1000)}",
            "custom_str1": order_id,
        }
        if self.site_url:
            fields["return_url"] = f"{self.site_url}/checkout/success?order={order_id}"
            fields["cancel_url"] = f"{self.site_url}/checkout/cancelled?order={order_id}"
            fields["notify_url"] = f"{self.site_url}/webhook/payfast"
        if email and "@" in email:
            fields["email_address"] = email.strip()
        if first_name and first_name.strip():
            fields["name_first"] = first_name.strip()
        if last_name and last_name.strip():
            fields["name_last"] = last_name.strip()
        if phone:
            cleaned = re.sub(r"[\s\-()]", "", phone)
            if len(cleaned) >= 10:
                fields["cell_number"] = cleaned
        fields["signature"] = payfast_signature(fields, self.passphrase)
        return {"action": self.process_url, "fields": fields}
