from .base import Base, utcnow
from .menu_item import MenuItem
from .order import Order, OrderCounter, OrderStatus, PaymentStatus
from .order_audit import OrderAudit
from .order_item import OrderItem

__all__ = [
    "Base",
    "utcnow",
    "MenuItem",
    "Order",
    "OrderCounter",
    "OrderStatus",
    "PaymentStatus",
    "OrderAudit",
    "OrderItem",
]
