from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from utils import now


class MovementType(enum.Enum):
    IN = "in"
    OUT = "out"


class ReferenceType(enum.Enum):
    INITIAL = "initial"
    MANUAL = "manual"
    ADJUSTMENT = "adjustment"
    ORDER = "order"
    PRODUCTION = "production"
    EQUIPMENT = "equipment"


class StockMovement(Base):
    """Immutable ledger row explaining one change of a part's quantity."""
    __tablename__ = "stock_movements"
    __table_args__ = (CheckConstraint('quantity > 0', name='ck_stock_movements_quantity_positive'),)

    id = Column(Integer, primary_key=True, index=True)
    part_id = Column(Integer, ForeignKey("parts.id"), nullable=False, index=True)
    movement_type = Column(Enum(MovementType), nullable=False)
    quantity = Column(Integer, nullable=False)  # Always positive, direction is in movement_type
    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)
    reference_type = Column(Enum(ReferenceType), nullable=False)
    reference_id = Column(Integer, nullable=True)  # Order or equipment id
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now)

    part = relationship("Part", back_populates="movements")
    user = relationship("User")

    @property
    def signed_quantity(self):
        return self.quantity if self.movement_type == MovementType.IN else -self.quantity
