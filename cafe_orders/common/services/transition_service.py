from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import update

from ..models.base import utcnow
from ..models.order import Order, OrderStatus, PaymentStatus
from ..models.order_audit import OrderAudit
from .logging import log_event
from .stock_service import StockService


class PaymentOutcome:
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"

    ALL = (PAID, FAILED, CANCELLED)


# outcome -> (order status, payment status)
OUTCOME_TARGETS = {
    PaymentOutcome.PAID: (OrderStatus.CONFIRMED, PaymentStatus.PAID),
    PaymentOutcome.FAILED: (OrderStatus.CANCELLED, PaymentStatus.FAILED),
    PaymentOutcome.CANCELLED: (OrderStatus.CANCELLED, PaymentStatus.CANCELLED),
}


@dataclass
class TransitionResult:
    order_id: str
    outcome: str
    found: bool
    applied: bool = False
    order: Optional[Dict] = None
    stock_changes: List[Dict] = field(default_factory=list)

    @property
    def payment_status(self) -> Optional[str]:
        return (self.order or {}).get("payment_status")


class PaymentTransitionService:
    """The single place where an order leaves ``awaiting_payment``.

    The move is one conditional UPDATE guarded on the current payment status,
    so terminal states are sticky: duplicate, late or out-of-order inputs
    match no row and become no-ops. Only the caller whose update matched
    decrements stock and gets ``applied=True`` (and should notify).
    """

    def __init__(self, session_factory, stock_service: Optional[StockService] = None, clock=utcnow):
        self._session_factory = session_factory
        self._stock = stock_service or StockService()
        self._clock = clock

    def apply(
        self,
        order_id: str,
        outcome: str,
        *,
        source: str,
        actor: Optional[str] = None,
        reason: Optional[str] = None,
        provider: Optional[str] = None,
        payment_reference: Optional[str] = None,
    ) -> TransitionResult:
        if outcome not in OUTCOME_TARGETS:
            raise ValueError(f"unknown payment outcome: {outcome}")
        order_status, payment_status = OUTCOME_TARGETS[outcome]

        with self._session_factory() as session:
            before = session.query(Order.payment_status).filter(Order.id == order_id).scalar()
            if before is None:
                log_event("warning", "transition.order_missing", order_id=order_id, outcome=outcome, source=source)
                return TransitionResult(order_id=order_id, outcome=outcome, found=False)

            now = self._clock()
            values = {"status": order_status, "payment_status": payment_status, "updated_at": now}
            if outcome == PaymentOutcome.PAID:
                values["paid_at"] = now
            if provider:
                values["payment_provider"] = provider
            if payment_reference:
                values["payment_reference"] = payment_reference

            result = session.execute(
                update(Order)
                .where(Order.id == order_id, Order.payment_status == PaymentStatus.AWAITING)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            applied = result.rowcount == 1

            stock_changes = []
            if applied and outcome == PaymentOutcome.PAID:
                stock_changes = self._stock.decrement_for_order(session, order_id)

            order = session.get(Order, order_id, populate_existing=True)
            session.add(
                OrderAudit(
                    order_id=order_id,
                    source=source,
                    actor=actor,
                    action=outcome,
                    reason=reason,
                    applied=applied,
                    from_payment_status=PaymentStatus.AWAITING if applied else order.payment_status,
                    to_payment_status=order.payment_status,
                    created_at=now,
                )
            )
            data = order.to_dict()

        log_event(
            "info",
            "transition.applied" if applied else "transition.noop",
            order_id=order_id,
            outcome=outcome,
            source=source,
            actor=actor,
            payment_status=data["payment_status"],
            status=data["status"],
        )
        return TransitionResult(
            order_id=order_id,
            outcome=outcome,
            found=True,
            applied=applied,
            order=data,
            stock_changes=stock_changes,
        )
