from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class TemplatePartLine(BaseModel):
    part_id: int
    quantity: int = Field(1, gt=0)

class EquipmentTemplateBase(BaseModel):
    description: Optional[str] = None
    brand_id: Optional[int] = None
    category_id: Optional[int] = None
    article_id: Optional[str] = None

class EquipmentTemplateCreate(EquipmentTemplateBase):
    name: str = Field(..., min_length=1)
    parts: List[TemplatePartLine] = []

class EquipmentTemplateUpdate(EquipmentTemplateBase):
    name: Optional[str] = Field(None, min_length=1)
    parts: Optional[List[TemplatePartLine]] = None  # None keeps the current bill-of-materials

class TemplateFromEquipment(BaseModel):
    equipment_id: int
    name: Optional[str] = None
    description: Optional[str] = None
    article_id: Optional[str] = None


class EquipmentTemplatePart(BaseModel):
    id: int
    part_id: int
    quantity: int
    part_name: Optional[str] = None
    current_stock: Optional[int] = None

    class Config:
        from_attributes = True

class EquipmentTemplate(EquipmentTemplateBase):
    id: int
    name: str
    user_id: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    parts: List[EquipmentTemplatePart] = []

    class Config:
        from_attributes = True
