"""Audit trail of payment transition attempts."""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from .base import Base, utcnow


class OrderAudit(Base):
    """One row per attempt by a webhook, the sweeper or an admin override."""
    __tablename__ = "order_audit"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), nullable=False, index=True)
    source = Column(String(32), nullable=False, doc="webhook:<provider> / sweeper / override")
    actor = Column(String(128), nullable=True)
    action = Column(String(32), nullable=False)
    reason = Column(Text, nullable=True)
    applied = Column(Boolean, nullable=False, default=False)
    from_payment_status = Column(String(32), nullable=True)
    to_payment_status = Column(String(32), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "order_id": self.order_id,
            "source": self.source,
            "actor": self.actor,
            "action": self.action,
            "reason": self.reason,
            "applied": self.applied,
            "from_payment_status": self.from_payment_status,
            "to_payment_status": self.to_payment_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
