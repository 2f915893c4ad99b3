"""Admin-forced payment resolution for orders automation could not settle."""

from __future__ import annotations

from typing import Dict, Optional

from ..common.errors import OrderNotFound, OverrideConflict
from ..common.models.order import PaymentStatus
from ..common.services.logging import log_event
from ..common.services.transition_service import PaymentOutcome, PaymentTransitionService
from .notifier import OrderNotifier


OVERRIDE_ACTIONS = {
    "complete": PaymentOutcome.PAID,
    "cancel": PaymentOutcome.CANCELLED,
}


class ManualOverrideTool:
    """Apply a terminal transition on an admin's word instead of a provider signature.

    The caller must already have verified the admin; this class only records
    who acted and why.
    """

    def __init__(self, transitions: PaymentTransitionService, notifier: OrderNotifier) -> None:
        self._transitions = transitions
        self._notifier = notifier

    def override_order(self, order_id: str, action: str, *, actor: str, reason: Optional[str] = None) -> Dict:
        outcome = OVERRIDE_ACTIONS.get((action or "").strip().lower())
        if outcome is None:
            raise ValueError("action must be 'complete' or 'cancel'")
        if not actor:
            raise ValueError("actor required for audit")

        log_event("info", "override.requested", order_id=order_id, action=action, actor=actor, reason=reason)
        result = self._transitions.apply(order_id, outcome, source="override", actor=actor, reason=reason)
        if not result.found:
            raise OrderNotFound(order_id)

        if result.applied:
            if outcome == PaymentOutcome.PAID:
                self._notifier.notify_safely(result.order)
            return result.order

        # same terminal state already reached: idempotent repeat
        target = PaymentStatus.PAID if outcome == PaymentOutcome.PAID else PaymentStatus.CANCELLED
        current = result.payment_status
        if current == target or (outcome == PaymentOutcome.CANCELLED and current == PaymentStatus.FAILED):
            return result.order
        raise OverrideConflict(f"order {order_id} is already {current}; cannot {action}")
