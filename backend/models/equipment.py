from sqlalchemy import Column, Integer, String, Date, ForeignKey, Enum
from sqlalchemy.orm import relationship
from database import Base
import enum
from models.audit_mixin import AuditMixin


class EquipmentStatus(enum.Enum):
    ACTIVE = "active"
    IN_PRODUCTION = "in_production"
    COMPLETED = "completed"
    RETIRED = "retired"


class Equipment(Base, AuditMixin):
    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True, index=True)
    model = Column(String, nullable=False)
    serial_number = Column(String, unique=True, nullable=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    template_id = Column(Integer, ForeignKey("equipment_templates.id"), nullable=True)
    created_from_template = Column(String, nullable=True)  # Snapshot of the template name
    year_manufactured = Column(Integer, nullable=True)
    production_date = Column(Date, nullable=True)
    article_id = Column(String, nullable=True)
    status = Column(Enum(EquipmentStatus), default=EquipmentStatus.ACTIVE, nullable=False)

    # Relationships
    brand = relationship("Brand")
    category = relationship("Category")
    template = relationship("EquipmentTemplate")
    parts = relationship(
        "EquipmentPart",
        back_populates="equipment",
        cascade="all, delete-orphan",
        order_by="EquipmentPart.id",
    )
