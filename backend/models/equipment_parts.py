from sqlalchemy import Column, Integer, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base


class EquipmentPart(Base):
    """Consumption record: how many units of a part one piece of equipment needs."""
    __tablename__ = "equipment_parts"
    __table_args__ = (CheckConstraint('quantity_needed > 0', name='ck_equipment_parts_quantity_needed_positive'),)

    id = Column(Integer, primary_key=True, index=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=False, index=True)
    part_id = Column(Integer, ForeignKey("parts.id"), nullable=False)
    quantity_needed = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)

    equipment = relationship("Equipment", back_populates="parts")
    part = relationship("Part")

    @property
    def part_name(self):
        return self.part.display_name if self.part is not None else None

    @property
    def current_stock(self):
        return self.part.quantity if self.part is not None else None
