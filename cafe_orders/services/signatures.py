"""Signature checks for inbound payment-provider notifications.

Every function here is pure: it looks only at the raw payload, the received
signature and the shared secret, and answers yes or no.
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, quote_plus

from standardwebhooks.webhooks import Webhook, WebhookVerificationError

PAYFAST = "payfast"
YOCO = "yoco"

# Field order PayFast expects when signing the checkout form.
PAYFAST_FIELD_ORDER = (
    "merchant_id",
    "merchant_key",
    "return_url",
    "cancel_url",
    "notify_url",
    "name_first",
    "name_last",
    "email_address",
    "cell_number",
    "m_payment_id",
    "amount",
    "item_name",
    "item_description",
    "email_confirmation",
    "confirmation_address",
    "payment_method",
    "custom_int1",
    "custom_int2",
    "custom_int3",
    "custom_int4",
    "custom_int5",
    "custom_str1",
    "custom_str2",
    "custom_str3",
    "custom_str4",
    "custom_str5",
)


def php_urlencode(value: str) -> str:
    """PHP ``urlencode``: space becomes ``+``, hex escapes are uppercase.

    Only ``A-Za-z0-9-_.`` stay literal; unlike ``quote_plus`` the tilde is escaped.
    """
    return quote_plus(value, safe="").replace("~", "%7E")


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def _with_passphrase(param_string: str, passphrase: Optional[str]) -> str:
    if passphrase:
        return f"{param_string}&passphrase={php_urlencode(passphrase.strip())}"
    return param_string


def payfast_signature(fields: Mapping[str, str], passphrase: Optional[str] = None) -> str:
    """Signature for an outgoing checkout form (documented field order, blanks skipped)."""
    pairs = []
    for name in PAYFAST_FIELD_ORDER:
        value = fields.get(name)
        if value is None or str(value).strip() == "":
            continue
        pairs.append(f"{name}={php_urlencode(str(value).strip())}")
    return _md5(_with_passphrase("&".join(pairs), passphrase))


def parse_form_body(raw_body: bytes | str) -> List[Tuple[str, str]]:
    """Decode a form-encoded body exactly as sent, blanks included."""
    text = raw_body.decode("utf-8") if isinstance(raw_body, (bytes, bytearray)) else raw_body
    return parse_qsl(text, keep_blank_values=True, strict_parsing=bool(text))


def payfast_notification_candidates(fields: Iterable[Tuple[str, str]], passphrase: Optional[str] = None) -> List[str]:
    """Expected ITN signatures: one including empty fields, one skipping them.

    Provider variants disagree on whether blank fields take part in the string,
    so both are computed and either may match.
    """
    data = [(k, v) for k, v in fields if k != "signature"]
    data.sort(key=lambda kv: kv[0])
    with_empty = "&".join(f"{k}={php_urlencode(v)}" for k, v in data)
    without_empty = "&".join(f"{k}={php_urlencode(v)}" for k, v in data if v != "")
    candidates = [_md5(_with_passphrase(with_empty, passphrase))]
    if without_empty != with_empty:
        candidates.append(_md5(_with_passphrase(without_empty, passphrase)))
    return candidates


def verify_payfast(raw_body: bytes | str, signature: Optional[str], passphrase: Optional[str] = None) -> bool:
    """Check a form-encoded ITN.

    ``signature`` is the received value; when ``None`` it is taken from the
    body's own ``signature`` field. Comparison is case-sensitive.
    """
    try:
        fields = parse_form_body(raw_body)
    except (UnicodeDecodeError, ValueError):
        return False
    if signature is None:
        signature = dict(fields).get("signature")
    if not signature:
        return False
    received = signature.encode("utf-8")
    return any(hmac.compare_digest(c.encode("utf-8"), received) for c in payfast_notification_candidates(fields, passphrase))


def yoco_signature(webhook_id: str, webhook_timestamp: str, raw_body: bytes | str, secret: str) -> str:
    """Base64 HMAC-SHA256 over ``id.timestamp.body`` keyed by the decoded secret."""
    body = raw_body.decode("utf-8") if isinstance(raw_body, (bytes, bytearray)) else raw_body
    sent_at = datetime.fromtimestamp(int(webhook_timestamp), tz=timezone.utc)
    _, _, signature = Webhook(secret).sign(webhook_id, sent_at, body).partition(",")
    return signature


def verify_yoco(
    raw_body: bytes | str,
    webhook_id: Optional[str],
    webhook_timestamp: Optional[str],
    signature_header: Optional[str],
    secret: Optional[str],
) -> bool:
    """Standard Webhooks check: ``v1`` signature list plus a five minute replay window."""
    if not (webhook_id and webhook_timestamp and signature_header and secret):
        return False
    headers = {
        "webhook-id": webhook_id,
        "webhook-timestamp": webhook_timestamp,
        "webhook-signature": signature_header,
    }
    try:
        Webhook(secret).verify(raw_body, headers)
    except WebhookVerificationError:
        return False
    except json.JSONDecodeError:
        # raised only after a signature matched; the body is rejected later as malformed
        return True
    except (binascii.Error, ValueError):
        return False
    return True


def verify(raw_payload: bytes | str, signature: Optional[str], secret: Optional[str], provider_config: Dict) -> bool:
    """Provider-dispatching entry point.

    ``provider_config`` carries ``provider`` plus, for Yoco, ``webhook_id``
    and ``webhook_timestamp``.
    """
    provider = provider_config.get("provider")
    if provider == PAYFAST:
        return verify_payfast(raw_payload, signature, secret)
    if provider == YOCO:
        return verify_yoco(
            raw_payload,
            provider_config.get("webhook_id"),
            provider_config.get("webhook_timestamp"),
            signature,
            secret,
        )
    raise ValueError(f"unknown payment provider: {provider}")
