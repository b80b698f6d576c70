from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import AuditMixin


class PartStatus(enum.Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class Part(Base, AuditMixin):
    """A stock keeping unit: a part, optionally qualified by a color."""
    __tablename__ = "parts"
    __table_args__ = (CheckConstraint('quantity >= 0', name='ck_parts_quantity_non_negative'),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    sku_code = Column(String, unique=True, nullable=True)
    color_id = Column(Integer, ForeignKey("colors.id"), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=True)
    description = Column(Text, nullable=True)
    purchase_price = Column(Numeric(10, 2), default=0, nullable=False)
    selling_price = Column(Numeric(10, 2), default=0, nullable=False)
    quantity = Column(Integer, default=0, nullable=False)  # Only changed through the stock ledger
    min_stock_level = Column(Integer, default=0, nullable=False)
    status = Column(Enum(PartStatus), default=PartStatus.OUT_OF_STOCK, nullable=False)
    last_restocked_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    color = relationship("Color")
    category = relationship("Category")
    brand = relationship("Brand")
    movements = relationship("StockMovement", back_populates="part", order_by="StockMovement.id")

    @property
    def display_name(self):
        if self.color is not None:
            return f"{self.name} ({self.color.name})"
        return self.name
