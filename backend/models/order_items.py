from sqlalchemy import Column, Integer, Numeric, ForeignKey, Text, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum


class OrderItemStatus(enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    BACKORDER = "backorder"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint('quantity_ordered > 0', name='ck_order_items_quantity_ordered_positive'),
        CheckConstraint('quantity_delivered >= 0', name='ck_order_items_quantity_delivered_non_negative'),
        CheckConstraint('quantity_backorder >= 0', name='ck_order_items_quantity_backorder_non_negative'),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    part_id = Column(Integer, ForeignKey("parts.id"), nullable=False)
    quantity_ordered = Column(Integer, nullable=False)  # Fixed at creation
    quantity_delivered = Column(Integer, default=0, nullable=False)  # Only ever grows
    quantity_backorder = Column(Integer, default=0, nullable=False)
    purchase_price_at_order = Column(Numeric(10, 2), default=0, nullable=False)  # Price snapshot
    item_status = Column(Enum(OrderItemStatus), default=OrderItemStatus.PENDING, nullable=False)
    notes = Column(Text, nullable=True)

    # Relationships
    order = relationship("Order", back_populates="items")
    part = relationship("Part")

    @property
    def part_name(self):
        return self.part.display_name if self.part is not None else None
