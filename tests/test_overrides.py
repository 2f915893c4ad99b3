import pytest

from cafe_orders.common.errors import OrderNotFound, OverrideConflict
from cafe_orders.common.models import OrderAudit

from .conftest import load_order, menu_stock, payfast_body


def test_complete_override_confirms_and_is_audited(components, order, menu, notifier):
    tool = components["override_tool"]
    result = tool.override_order(order["order_id"], "complete", actor="admin", reason="customer showed bank proof")

    assert (result["status"], result["payment_status"]) == ("confirmed", "paid")
    assert menu_stock(menu, "m-flat-white") == 9
    assert notifier.sent == [order["order_id"]]
    with menu() as session:
        audit = session.query(OrderAudit).one()
        assert (audit.source, audit.actor, audit.reason, audit.applied) == (
            "override",
            "admin",
            "customer showed bank proof",
            True,
        )


def test_cancel_override(components, order, menu):
    result = components["override_tool"].override_order(order["order_id"], "cancel", actor="admin")
    assert (result["status"], result["payment_status"]) == ("cancelled", "cancelled")
    assert menu_stock(menu, "m-flat-white") == 10


def test_repeating_an_override_is_idempotent(components, order, menu, notifier):
    tool = components["override_tool"]
    first = tool.override_order(order["order_id"], "complete", actor="admin")
    second = tool.override_order(order["order_id"], "complete", actor="admin")

    assert first == second
    assert menu_stock(menu, "m-flat-white") == 9
    assert notifier.sent == [order["order_id"]]


def test_cancel_after_failed_webhook_is_treated_as_done(components, order):
    components["webhook_handler"].handle_payfast(payfast_body(order["order_id"], status="FAILED"))
    result = components["override_tool"].override_order(order["order_id"], "cancel", actor="admin")
    assert result["payment_status"] == "failed"


def test_override_cannot_flip_a_terminal_state(components, order, menu):
    components["webhook_handler"].handle_payfast(payfast_body(order["order_id"]))
    with pytest.raises(OverrideConflict):
        components["override_tool"].override_order(order["order_id"], "cancel", actor="admin")
    assert load_order(menu, order["order_id"])["payment_status"] == "paid"


def test_override_unknown_order(components, menu):
    with pytest.raises(OrderNotFound):
        components["override_tool"].override_order("missing", "complete", actor="admin")


def test_override_requires_valid_action_and_actor(components, order):
    with pytest.raises(ValueError):
        components["override_tool"].override_order(order["order_id"], "refund", actor="admin")
    with pytest.raises(ValueError):
        components["override_tool"].override_order(order["order_id"], "complete", actor="")
