from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String
from .base import Base, utcnow


class MenuItem(Base):
    __tablename__ = "menu_item"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
