import base64
import json
import time
from datetime import timedelta
from decimal import Decimal
from urllib.parse import urlencode

import pytest
import requests

from cafe_orders.app import build_components, create_app
from cafe_orders.common.db.session import build_engine, init_schema, make_session_factory
from cafe_orders.common.models import MenuItem, Order, utcnow
from cafe_orders.config import CafeOrdersConfig
from cafe_orders.services.notifier import OrderNotifier
from cafe_orders.services.signatures import payfast_notification_candidates, yoco_signature


MERCHANT_ID = "10000100"
MERCHANT_KEY = "46f0cd694581a"
PASSPHRASE = "jt7NOE43FZPn"
YOCO_SECRET = "whsec_" + base64.b64encode(b"cafe-test-webhook-secret-0123456").decode("ascii")


class RecordingNotifier(OrderNotifier):
    def __init__(self, fail: bool = False):
        super().__init__(endpoint="http://relay.invalid/notify")
        self.sent = []
        self.fail = fail

    def send_order_confirmation(self, order):
        if self.fail:
            raise requests.exceptions.ConnectionError("relay down")
        self.sent.append(order["order_id"])
        return True


@pytest.fixture
def config(tmp_path):
    return CafeOrdersConfig(
        secret_key="test",
        database_url=f"sqlite:///{tmp_path / 'cafe.db'}",
        payfast_merchant_id=MERCHANT_ID,
        payfast_merchant_key=MERCHANT_KEY,
        payfast_passphrase=PASSPHRASE,
        yoco_webhook_secret=YOCO_SECRET,
        reconcile_policy="optimistic",
        site_url="https://cafe.example",
    )


@pytest.fixture
def session_factory(config):
    engine = build_engine(config.database_url)
    init_schema(engine)
    return make_session_factory(engine)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def components(config, session_factory, notifier):
    return build_components(config, session_factory, notifier)


@pytest.fixture
def app(config, notifier):
    application = create_app(config, notifier=notifier)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_client(client):
    resp = client.post("/admin/login", json={"username": "admin", "password": "latte"})
    assert resp.status_code == 200
    return client


def add_menu_item(session_factory, item_id, name="Flat White", price="37.00", stock=10):
    with session_factory() as session:
        session.add(MenuItem(id=item_id, name=name, price=Decimal(price), stock=stock, is_available=True))


def menu_stock(session_factory, item_id):
    with session_factory() as session:
        return session.get(MenuItem, item_id).stock


def load_order(session_factory, order_id):
    with session_factory() as session:
        return session.get(Order, order_id).to_dict()


def age_order(session_factory, order_id, minutes):
    with session_factory() as session:
        order = session.get(Order, order_id)
        order.created_at = utcnow() - timedelta(minutes=minutes)


@pytest.fixture
def menu(session_factory):
    add_menu_item(session_factory, "m-flat-white", "Flat White", "37.00", stock=10)
    add_menu_item(session_factory, "m-croissant", "Croissant", "25.50", stock=3)
    return session_factory


@pytest.fixture
def order(components, menu):
    return components["order_service"].create_order(items=[{"menu_item_id": "m-flat-white", "quantity": 1}])


def payfast_body(order_id, status="COMPLETE", passphrase=PASSPHRASE, **extra):
    fields = [
        ("m_payment_id", f"LLL-{order_id}-1755677333531"),
        ("pf_payment_id", "243623825"),
        ("payment_status", status),
        ("item_name", "Order #1"),
        ("item_description", ""),
        ("amount_gross", "37.00"),
        ("amount_fee", "-0.85"),
        ("amount_net", "36.15"),
        ("custom_str1", order_id),
        ("name_first", "Thandi"),
        ("email_address", "thandi@example.com"),
        ("merchant_id", MERCHANT_ID),
    ]
    fields.extend(extra.items())
    signature = payfast_notification_candidates(fields, passphrase)[0]
    return urlencode(fields + [("signature", signature)]).encode("utf-8")


def yoco_request(order_id, event_type="payment.succeeded", webhook_id="msg_2mN8", timestamp=None, secret=YOCO_SECRET):
    timestamp = timestamp or str(int(time.time()))
    body = json.dumps(
        {
            "id": "evt_9f2",
            "type": event_type,
            "createdDate": "2026-10-18T08:00:00Z",
            "payload": {
                "id": "p_7Qd",
                "amount": 3700,
                "currency": "ZAR",
                "status": "succeeded",
                "paymentId": "p_7Qd",
                "metadata": {"checkoutId": "ch_1", "orderId": order_id},
            },
        }
    ).encode("utf-8")
    headers = {
        "webhook-id": webhook_id,
        "webhook-timestamp": timestamp,
        "webhook-signature": "v1," + yoco_signature(webhook_id, timestamp, body, secret),
    }
    return body, headers
