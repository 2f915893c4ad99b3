import json
from decimal import Decimal

import pytest

from cafe_orders.common.errors import MalformedNotification
from cafe_orders.common.services.transition_service import PaymentOutcome
from cafe_orders.services.notifications import parse_payfast, parse_yoco
from cafe_orders.services.signatures import parse_form_body

from .conftest import MERCHANT_ID, payfast_body, yoco_request


def test_payfast_complete_maps_to_paid():
    n = parse_payfast(parse_form_body(payfast_body("o-1")), MERCHANT_ID)
    assert n.correlation_id == "o-1"
    assert n.outcome == PaymentOutcome.PAID
    assert n.provider_payment_id == "243623825"
    assert n.amount == Decimal("37.00")


@pytest.mark.parametrize("status", ["FAILED", "CANCELLED"])
def test_payfast_failure_and_cancel_map_to_failed(status):
    n = parse_payfast(parse_form_body(payfast_body("o-1", status=status)))
    assert n.outcome == PaymentOutcome.FAILED


def test_payfast_pending_settles_nothing():
    assert parse_payfast([("payment_status", "PENDING"), ("custom_str1", "o-1")]).outcome is None


def test_payfast_falls_back_to_m_payment_id():
    fields = [("payment_status", "COMPLETE"), ("m_payment_id", "LLL-98edec77-3e54-4be5-8441-4c478755346e-1755677333531")]
    assert parse_payfast(fields).correlation_id == "98edec77-3e54-4be5-8441-4c478755346e"


def test_payfast_rejects_foreign_merchant_and_missing_ids():
    with pytest.raises(MalformedNotification):
        parse_payfast([("payment_status", "COMPLETE"), ("custom_str1", "o-1"), ("merchant_id", "999")], MERCHANT_ID)
    with pytest.raises(MalformedNotification):
        parse_payfast([("payment_status", "COMPLETE")])
    with pytest.raises(MalformedNotification):
        parse_payfast([("custom_str1", "o-1")])


def test_yoco_success_event():
    body, _ = yoco_request("o-2")
    n = parse_yoco(body)
    assert n.outcome == PaymentOutcome.PAID
    assert n.correlation_id == "o-2"
    assert n.amount == Decimal("37")
    assert n.event_id == "evt_9f2"


@pytest.mark.parametrize("event_type", ["payment.failed", "checkout.cancelled", "checkout.expired"])
def test_yoco_failure_events(event_type):
    body, _ = yoco_request("o-2", event_type=event_type)
    assert parse_yoco(body).outcome == PaymentOutcome.FAILED


def test_yoco_unknown_event_is_parsed_without_outcome():
    body, _ = yoco_request("o-2", event_type="refund.succeeded")
    assert parse_yoco(body).outcome is None


@pytest.mark.parametrize(
    "event",
    [
        [],
        {"type": "payment.succeeded", "payload": {"metadata": {"orderId": "o"}}},
        {"id": "e", "type": "payment.succeeded", "payload": {"metadata": {}}},
        {"id": "e", "type": "payment.succeeded", "payload": {"amount": "37.00", "metadata": {"orderId": "o"}}},
        {"id": "e", "type": "payment.succeeded"},
    ],
)
def test_yoco_rejects_shapes_it_does_not_expect(event):
    with pytest.raises(MalformedNotification):
        parse_yoco(json.dumps(event))


def test_yoco_rejects_invalid_json():
    with pytest.raises(MalformedNotification):
        parse_yoco(b"{not json")
