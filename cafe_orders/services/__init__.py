"""Payment reconciliation services."""

from .notifier import OrderNotifier
from .overrides import ManualOverrideTool
from .payfast_checkout import PayFastCheckout
from .reconciliation import ReconciliationPolicy, ReconciliationSweeper, resolve_policy
from .webhook_handler import WebhookHandler, WebhookResult
from .yoco_checkout import YocoCheckout

__all__ = [
    "OrderNotifier",
    "ManualOverrideTool",
    "PayFastCheckout",
    "ReconciliationPolicy",
    "ReconciliationSweeper",
    "resolve_policy",
    "WebhookHandler",
    "WebhookResult",
    "YocoCheckout",
]
