import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from shared.config.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number = Column(String(32), nullable=False, unique=True, index=True)
    user_id = Column(String(36), nullable=True)
    # pending -> processing -> shipped -> delivered | cancelled | returned
    status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(20), nullable=False, default="cod")
    payment_status = Column(String(20), nullable=False, default="pending")

    # total = subtotal + shipping_cost - discount, always computed server-side
    subtotal = Column(Float, nullable=False)
    shipping_cost = Column(Float, nullable=False, default=0)
    discount = Column(Float, nullable=False, default=0)
    total = Column(Float, nullable=False)

    shipping_name = Column(String(100), nullable=False)
    shipping_phone = Column(String(30), nullable=False, index=True)
    shipping_street = Column(String(300), nullable=False)
    shipping_city = Column(String(100), nullable=False, default="N/A")
    shipping_district = Column(String(100), nullable=False, default="N/A")
    shipping_postal_code = Column(String(20), nullable=True)

    tracking_number = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    order_source = Column(String(10), nullable=False, default="web")  # web, manual

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", lazy="selectin")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # Both null for custom (non-catalog) lines
    product_id = Column(String(36), nullable=True)
    variation_id = Column(String(36), nullable=True)
    product_name = Column(String(255), nullable=False)
    variation_name = Column(String(255), nullable=True)
    product_image = Column(Text, nullable=True)
    price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    order = relationship("Order", back_populates="items")


class OrderSequence(Base):
    """Counter rows backing human-readable order numbers."""
    __tablename__ = "order_sequences"

    name = Column(String(32), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
