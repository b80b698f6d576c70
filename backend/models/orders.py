from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from database import Base
import enum
from decimal import Decimal
from utils import now


class OrderStatus(enum.Enum):
    DRAFT = "draft"
    WAITING_FOR_ANSWER = "waiting_for_answer"
    TO_ORDER = "to_order"
    ORDERED = "ordered"
    PARTIAL = "partial"
    PARTIAL_DELIVERED = "partial_delivered"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String, unique=True, index=True, nullable=False)
    status = Column(Enum(OrderStatus), default=OrderStatus.WAITING_FOR_ANSWER, nullable=False)
    notes = Column(Text, nullable=True)  # Free-text running log, appended with timestamps
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now)
    updated_at = Column(DateTime(timezone=True), default=now, onupdate=now)

    # Relationships
    user = relationship("User")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id")
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.id",
    )

    @property
    def total_items(self):
        return len(self.items)

    @property
    def total_quantity(self):
        return sum(item.quantity_ordered for item in self.items)

    @property
    def total_amount(self):
        return sum((item.quantity_ordered * item.purchase_price_at_order for item in self.items), Decimal("0"))
