from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from database import Base
from utils import now


class OrderDeliveryReceipt(Base):
    """Idempotency key of a delivery request already applied to an order."""
    __tablename__ = "order_delivery_receipts"
    __table_args__ = (UniqueConstraint('order_id', 'idempotency_key', name='_order_delivery_receipt_key_uc'),)

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    idempotency_key = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=now)
