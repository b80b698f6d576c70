from sqlalchemy import Column, Integer, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from models.audit_mixin import TimestampMixin


class EquipmentTemplate(Base, TimestampMixin):
    __tablename__ = "equipment_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    article_id = Column(String, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    brand = relationship("Brand")
    category = relationship("Category")
    parts = relationship(
        "EquipmentTemplatePart",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="EquipmentTemplatePart.id",
    )
