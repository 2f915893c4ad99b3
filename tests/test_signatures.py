import base64
import hashlib
import hmac
import time

import pytest

from cafe_orders.services import signatures
from cafe_orders.services.signatures import (
    payfast_notification_candidates,
    payfast_signature,
    php_urlencode,
    verify,
    verify_payfast,
    verify_yoco,
    yoco_signature,
)

from .conftest import PASSPHRASE, YOCO_SECRET, payfast_body, yoco_request


def test_php_urlencode_dialect():
    assert php_urlencode("Order #1 (large)") == "Order+%231+%28large%29"
    assert php_urlencode("http://x.co/a?b=c") == "http%3A%2F%2Fx.co%2Fa%3Fb%3Dc"
    assert php_urlencode("a~b-c_d.e") == "a%7Eb-c_d.e"


def test_payfast_checkout_signature_uses_documented_order():
    fields = {"amount": "37.00", "merchant_id": "10000100", "item_name": "Order #1", "merchant_key": "abc", "item_description": " "}
    expected = hashlib.md5(
        "merchant_id=10000100&merchant_key=abc&amount=37.00&item_name=Order+%231&passphrase=salt".encode()
    ).hexdigest()
    assert payfast_signature(fields, "salt") == expected


def test_valid_payfast_notification_verifies():
    body = payfast_body("order-1")
    assert verify_payfast(body, None, PASSPHRASE)


def test_payfast_accepts_signature_computed_without_empty_fields():
    fields = [("amount_gross", "37.00"), ("item_description", ""), ("payment_status", "COMPLETE")]
    with_empty, without_empty = payfast_notification_candidates(fields, PASSPHRASE)
    assert with_empty != without_empty
    raw = "amount_gross=37.00&item_description=&payment_status=COMPLETE"
    assert verify_payfast(raw, with_empty, PASSPHRASE)
    assert verify_payfast(raw, without_empty, PASSPHRASE)


def test_payfast_signature_is_case_sensitive():
    body = payfast_body("order-1")
    sig = dict(signatures.parse_form_body(body))["signature"]
    assert not verify_payfast(body, sig.upper(), PASSPHRASE)


def test_payfast_wrong_passphrase_rejected():
    assert not verify_payfast(payfast_body("order-1"), None, "other")


def test_payfast_missing_signature_rejected():
    assert not verify_payfast(b"payment_status=COMPLETE&custom_str1=o1", None, PASSPHRASE)


def test_any_single_byte_change_to_payfast_body_is_rejected():
    body = payfast_body("order-1")
    sig = dict(signatures.parse_form_body(body))["signature"]
    payload = body.split(b"&signature=")[0]
    for i in range(len(payload)):
        mutated = bytearray(payload)
        mutated[i] = ord("Z") if mutated[i] != ord("Z") else ord("Y")
        assert not verify_payfast(bytes(mutated), sig, PASSPHRASE), i


def test_valid_yoco_webhook_verifies():
    body, headers = yoco_request("order-1")
    assert verify_yoco(body, headers["webhook-id"], headers["webhook-timestamp"], headers["webhook-signature"], YOCO_SECRET)


def test_yoco_secret_prefix_is_optional():
    body, headers = yoco_request("order-1")
    bare = YOCO_SECRET[len("whsec_"):]
    assert verify_yoco(body, headers["webhook-id"], headers["webhook-timestamp"], headers["webhook-signature"], bare)


def test_yoco_header_with_several_signatures():
    body, headers = yoco_request("order-1")
    header = "v1,bm90LXRoZS1zaWc= " + headers["webhook-signature"]
    assert verify_yoco(body, headers["webhook-id"], headers["webhook-timestamp"], header, YOCO_SECRET)


def test_any_single_byte_change_to_yoco_body_or_signature_is_rejected():
    body, headers = yoco_request("order-1")
    for i in range(len(body)):
        mutated = bytearray(body)
        mutated[i] ^= 0x01
        assert not verify_yoco(bytes(mutated), headers["webhook-id"], headers["webhook-timestamp"], headers["webhook-signature"], YOCO_SECRET)
    sig = headers["webhook-signature"]
    tampered = sig[:-3] + ("A" if sig[-3] != "A" else "B") + sig[-2:]
    assert not verify_yoco(body, headers["webhook-id"], headers["webhook-timestamp"], tampered, YOCO_SECRET)


def test_yoco_signature_binds_id_and_timestamp():
    body, headers = yoco_request("order-1")
    assert not verify_yoco(body, "msg_other", headers["webhook-timestamp"], headers["webhook-signature"], YOCO_SECRET)
    later = str(int(headers["webhook-timestamp"]) + 1)
    assert not verify_yoco(body, headers["webhook-id"], later, headers["webhook-signature"], YOCO_SECRET)


@pytest.mark.parametrize("offset", [-600, 600])
def test_yoco_delivery_outside_replay_window_is_rejected(offset):
    body, headers = yoco_request("order-1", timestamp=str(int(time.time()) + offset))
    assert not verify_yoco(body, headers["webhook-id"], headers["webhook-timestamp"], headers["webhook-signature"], YOCO_SECRET)


def test_yoco_delivery_inside_replay_window_verifies():
    body, headers = yoco_request("order-1", timestamp=str(int(time.time()) - 60))
    assert verify_yoco(body, headers["webhook-id"], headers["webhook-timestamp"], headers["webhook-signature"], YOCO_SECRET)


def test_yoco_signature_matches_standard_webhooks_scheme():
    key = base64.b64decode(YOCO_SECRET[len("whsec_"):])
    expected = base64.b64encode(hmac.new(key, b"msg_1.1729240000.{}", hashlib.sha256).digest()).decode("ascii")
    assert yoco_signature("msg_1", "1729240000", b"{}", YOCO_SECRET) == expected


def test_signed_non_json_yoco_body_passes_signature_check():
    body = b"not json"
    ts = str(int(time.time()))
    header = "v1," + yoco_signature("msg_1", ts, body, YOCO_SECRET)
    assert verify_yoco(body, "msg_1", ts, header, YOCO_SECRET)
    assert not verify_yoco(body, "msg_1", ts, "garbage", YOCO_SECRET)


def test_yoco_bad_secret_encoding_is_a_rejection_not_an_error():
    body, headers = yoco_request("order-1")
    assert not verify_yoco(body, headers["webhook-id"], headers["webhook-timestamp"], headers["webhook-signature"], "whsec_***")


def test_verify_dispatches_by_provider():
    body, headers = yoco_request("order-1")
    cfg = {"provider": "yoco", "webhook_id": headers["webhook-id"], "webhook_timestamp": headers["webhook-timestamp"]}
    assert verify(body, headers["webhook-signature"], YOCO_SECRET, cfg)
    assert verify(payfast_body("order-1"), None, PASSPHRASE, {"provider": "payfast"})
    with pytest.raises(ValueError):
        verify(body, "x", "y", {"provider": "stripe"})


def test_yoco_signature_is_base64_hmac():
    sig = yoco_signature("id", "1", b"{}", YOCO_SECRET)
    assert len(sig) == 44 and sig.endswith("=")
