from sqlalchemy import Column, DateTime, Integer, Numeric, String
from sqlalchemy.orm import relationship
from .base import Base, utcnow


class OrderStatus:
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (DRAFT, CONFIRMED, PREPARING, READY, COMPLETED, CANCELLED)
    KITCHEN_VISIBLE = (CONFIRMED, PREPARING, READY)


class PaymentStatus:
    AWAITING = "awaiting_payment"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"

    TERMINAL = (PAID, FAILED, CANCELLED)


class Order(Base):
    __tablename__ = "order"

    id = Column(String(36), primary_key=True)
    order_number = Column(Integer, nullable=False, unique=True)
    user_id = Column(String(128), nullable=True)
    customer_email = Column(String(255), nullable=True)
    status = Column(String(32), nullable=False, default=OrderStatus.DRAFT)
    payment_status = Column(String(32), nullable=False, default=PaymentStatus.AWAITING, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    payment_provider = Column(String(32), nullable=True)
    payment_reference = Column(String(128), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    paid_at = Column(DateTime, nullable=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", lazy="selectin")

    def to_dict(self):
        return {
            "order_id": self.id,
            "order_number": self.order_number,
            "status": self.status,
            "payment_status": self.payment_status,
            "total_amount": float(self.total_amount or 0),
            "currency": self.currency,
            "payment_provider": self.payment_provider,
            "payment_reference": self.payment_reference,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "items": [it.to_dict() for it in self.items],
        }


ORDER_COUNTER = "order"


class OrderCounter(Base):
    """Monotonic source of human-readable order numbers."""

    __tablename__ = "order_counter"

    name = Column(String(32), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
