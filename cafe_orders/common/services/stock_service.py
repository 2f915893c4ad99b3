from typing import Dict, List

from sqlalchemy import update

from ..models.menu_item import MenuItem
from ..models.order_item import OrderItem
from .logging import log_event


class StockService:
    """Stock bookkeeping for menu items.

    Decrements run inside the caller's session so they commit or roll back
    together with the payment transition that triggered them.
    """

    def decrement_for_order(self, session, order_id: str) -> List[Dict]:
        items = (
            session.query(OrderItem)
            .filter(OrderItem.order_id == order_id, OrderItem.menu_item_id.isnot(None))
            .all()
        )
        changes = []
        for it in items:
            session.execute(
                update(MenuItem)
                .where(MenuItem.id == it.menu_item_id)
                .values(stock=MenuItem.stock - it.quantity)
                .execution_options(synchronize_session=False)
            )
            remaining = session.query(MenuItem.stock).filter(MenuItem.id == it.menu_item_id).scalar()
            if remaining is not None and remaining < 0:
                log_event("warning", "stock.negative", menu_item_id=it.menu_item_id, stock=remaining, order_id=order_id)
            changes.append({"menu_item_id": it.menu_item_id, "quantity": it.quantity, "stock": remaining})
        return changes
