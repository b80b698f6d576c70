from sqlalchemy import Column, Integer, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base


class EquipmentTemplatePart(Base):
    """One bill-of-materials line of a template."""
    __tablename__ = "equipment_template_parts"
    __table_args__ = (CheckConstraint('quantity > 0', name='ck_equipment_template_parts_quantity_positive'),)

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("equipment_templates.id"), nullable=False, index=True)
    part_id = Column(Integer, ForeignKey("parts.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    template = relationship("EquipmentTemplate", back_populates="parts")
    part = relationship("Part")

    @property
    def part_name(self):
        return self.part.display_name if self.part is not None else None

    @property
    def current_stock(self):
        return self.part.quantity if self.part is not None else None
