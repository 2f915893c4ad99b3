from typing import Dict, List

from sqlalchemy import update

from ..errors import InvalidStatusChange, OrderNotFound
from ..models.base import utcnow
from ..models.order import Order, OrderStatus, PaymentStatus
from .logging import log_event


# staff workflow after payment: one step forward at a time
NEXT_STATUS = {
    OrderStatus.CONFIRMED: OrderStatus.PREPARING,
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.COMPLETED,
}


class KitchenService:
    """Kitchen/staff queue. Only paid, confirmed-or-later orders are visible."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def list_active_orders(self) -> List[Dict]:
        with self._session_factory() as session:
            rows = (
                session.query(Order)
                .filter(
                    Order.status.in_(OrderStatus.KITCHEN_VISIBLE),
                    Order.payment_status == PaymentStatus.PAID,
                )
                .order_by(Order.order_number.asc())
                .all()
            )
            return [o.to_dict() for o in rows]

    def advance(self, order_id: str, new_status: str) -> Dict:
        with self._session_factory() as session:
            order = session.get(Order, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            current = order.status
            if order.payment_status != PaymentStatus.PAID or NEXT_STATUS.get(current) != new_status:
                raise InvalidStatusChange(f"cannot move order from {current} to {new_status}")
            result = session.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == current)
                .values(status=new_status, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise InvalidStatusChange(f"order {order_id} changed concurrently")
            order = session.get(Order, order_id, populate_existing=True)
            data = order.to_dict()
        log_event("info", "kitchen.status_changed", order_id=order_id, from_status=current, to_status=new_status)
        return data
