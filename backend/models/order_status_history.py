from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum
from sqlalchemy.orm import relationship
from database import Base
from models.orders import OrderStatus
from utils import now


class OrderStatusHistory(Base):
    __tablename__ = "order_status_history"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    old_status = Column(Enum(OrderStatus), nullable=True)  # None for the creation entry
    new_status = Column(Enum(OrderStatus), nullable=False)
    changed_by = Column(String, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now)

    order = relationship("Order", back_populates="status_history")

    def render(self) -> str:
        """Human-readable line for the order's notes display."""
        stamp = self.created_at.isoformat() if self.created_at else ""
        old = self.old_status.value if self.old_status else "new"
        line = f"[{stamp}] {old} -> {self.new_status.value}"
        if self.changed_by:
            line += f" by {self.changed_by}"
        if self.note:
            line += f": {self.note}"
        return line
