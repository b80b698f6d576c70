from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from models.equipment import EquipmentStatus


class EquipmentPartLine(BaseModel):
    part_id: int
    quantity_needed: int = Field(1, gt=0)
    notes: Optional[str] = None

class EquipmentBase(BaseModel):
    serial_number: Optional[str] = None
    brand_id: Optional[int] = None
    category_id: Optional[int] = None
    year_manufactured: Optional[int] = None
    production_date: Optional[date] = None
    article_id: Optional[str] = None

class EquipmentCreate(EquipmentBase):
    model: Optional[str] = None  # May come from the template
    template_id: Optional[int] = None
    status: EquipmentStatus = EquipmentStatus.ACTIVE
    parts: List[EquipmentPartLine] = []
    reduce_stock: bool = True
    save_as_template: bool = False
    template_name: Optional[str] = None

class EquipmentUpdate(EquipmentBase):
    model: Optional[str] = Field(None, min_length=1)
    status: Optional[EquipmentStatus] = None

class ProduceRequest(BaseModel):
    units: int = Field(1, gt=0)


class EquipmentPart(BaseModel):
    id: int
    part_id: int
    part_name: Optional[str] = None
    quantity_needed: int
    current_stock: Optional[int] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class Equipment(EquipmentBase):
    id: int
    model: str
    template_id: Optional[int] = None
    created_from_template: Optional[str] = None
    status: EquipmentStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    parts: List[EquipmentPart] = []

    class Config:
        from_attributes = True


class EquipmentCreated(BaseModel):
    equipment: Equipment
    stock_reduced: bool
    created_from_template: Optional[str] = None
    new_template_id: Optional[int] = None


class PartConsumption(BaseModel):
    part_id: int
    part_name: str
    quantity_used: int
    remaining_stock: int

class ProductionReport(BaseModel):
    equipment_id: int
    units: int
    parts_used: List[PartConsumption]
