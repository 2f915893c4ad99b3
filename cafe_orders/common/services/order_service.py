from typing import Dict, List, Optional
from uuid import uuid4
from decimal import Decimal
from sqlalchemy import select, update
from ..errors import CheckoutError, OrderNotFound
from ..models.base import utcnow
from ..models.menu_item import MenuItem
from ..models.order import ORDER_COUNTER, Order, OrderCounter, OrderStatus, PaymentStatus
from ..models.order_item import OrderItem
from .logging import log_event


class OrderService:
    """Order creation and retrieval backed by DB."""

    def __init__(self, session_factory, currency: str = "ZAR"):
        self._session_factory = session_factory
        self._currency = currency

    @staticmethod
    def _next_order_number(session) -> int:
        # single UPDATE so concurrent checkouts serialise on the counter row
        bumped = session.execute(
            update(OrderCounter)
            .where(OrderCounter.name == ORDER_COUNTER)
            .values(value=OrderCounter.value + 1)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount == 0:
            session.add(OrderCounter(name=ORDER_COUNTER, value=1))
            session.flush()
            return 1
        return session.execute(select(OrderCounter.value).where(OrderCounter.name == ORDER_COUNTER)).scalar_one()

    @staticmethod
    def _quantity(raw: Dict) -> int:
        value = raw.get("quantity", 1)
        if isinstance(value, bool):
            raise CheckoutError("quantity must be an integer")
        try:
            qnty = Decimal(str(value).strip())
        except ArithmeticError:
            raise CheckoutError("quantity must be an integer")
        if not qnty.is_finite() or qnty != qnty.to_integral_value():
            raise CheckoutError("quantity must be a whole number")
        if qnty <= 0:
            raise CheckoutError("quantity must be > 0")
        return int(qnty)

    def create_order(
        self,
        *,
        items: List[Dict],
        user_id: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> Dict:
        """Create a draft order awaiting payment from checkout lines.

        Each line is ``{"menu_item_id", "quantity"}`` or, for customised items,
        ``{"name", "unit_price", "quantity"}``. Prices are copied from the menu
        at this point; later menu edits never change the order.
        """
        if not items:
            raise CheckoutError("cart is empty")
        with self._session_factory() as session:
            total = Decimal("0")
            lines = []
            for raw in items:
                qnty = self._quantity(raw)
                menu_item_id = raw.get("menu_item_id")
                if menu_item_id:
                    menu_item = session.get(MenuItem, str(menu_item_id))
                    if menu_item is None or not menu_item.is_available:
                        raise CheckoutError(f"menu item not found or unavailable: {menu_item_id}")
                    if menu_item.stock is not None and qnty > int(menu_item.stock):
                        raise CheckoutError(
                            f"insufficient stock for {menu_item.name}: available {menu_item.stock}, requested {qnty}"
                        )
                    name = menu_item.name
                    unit_price = Decimal(str(menu_item.price))
                else:
                    name = (raw.get("name") or "").strip()
                    if not name:
                        raise CheckoutError("custom item requires a name")
                    try:
                        unit_price = Decimal(str(raw.get("unit_price")))
                    except ArithmeticError:
                        raise CheckoutError("custom item requires a unit_price")
                    if not unit_price.is_finite() or unit_price < 0:
                        raise CheckoutError("unit_price must be >= 0")
                total += unit_price * qnty
                lines.append((menu_item_id or None, name, qnty, unit_price))

            oid = str(uuid4())
            now = utcnow()
            order = Order(
                id=oid,
                order_number=self._next_order_number(session),
                user_id=user_id,
                customer_email=customer_email,
                status=OrderStatus.DRAFT,
                payment_status=PaymentStatus.AWAITING,
                total_amount=total.quantize(Decimal("0.01")),
                currency=self._currency,
                created_at=now,
                updated_at=now,
            )
            for menu_item_id, name, qnty, unit_price in lines:
                order.items.append(
                    OrderItem(
                        id=str(uuid4()),
                        menu_item_id=menu_item_id,
                        name=name,
                        quantity=qnty,
                        unit_price=unit_price,
                    )
                )
            session.add(order)
            session.flush()
            data = order.to_dict()
        log_event("info", "order.created", order_id=oid, order_number=data["order_number"], items=len(lines), total=data["total_amount"])
        return data

    def get_order(self, order_id: str) -> Dict:
        if not order_id:
            raise OrderNotFound(order_id)
        with self._session_factory() as session:
            o = session.get(Order, order_id)
            if not o:
                raise OrderNotFound(order_id)
            return o.to_dict()

    def customer_view(self, order_id: str) -> Dict:
        """Order as shown to the customer; payment ambiguity reads as ``processing``."""
        data = self.get_order(order_id)
        if data["payment_status"] == PaymentStatus.AWAITING:
            display = "processing"
        elif data["payment_status"] == PaymentStatus.PAID:
            display = data["status"]
        else:
            display = "cancelled"
        return {
            "order_id": data["order_id"],
            "order_number": data["order_number"],
            "display_status": display,
            "total_amount": data["total_amount"],
            "currency": data["currency"],
        }
