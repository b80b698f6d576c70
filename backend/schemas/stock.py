from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from models.parts import PartStatus
from models.stock_movements import MovementType, ReferenceType


class StockAddRequest(BaseModel):
    part_id: int
    quantity: int = Field(..., gt=0)
    notes: Optional[str] = None

class StockRemoveRequest(StockAddRequest):
    pass

class StockAdjustRequest(BaseModel):
    part_id: int
    quantity: int = Field(..., ge=0)  # The counted, authoritative quantity
    notes: Optional[str] = None


class StockMovement(BaseModel):
    id: int
    part_id: int
    movement_type: MovementType
    quantity: int
    quantity_before: int
    quantity_after: int
    reference_type: ReferenceType
    reference_id: Optional[int] = None
    user_id: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StockLevel(BaseModel):
    id: int
    display_name: str
    sku_code: Optional[str] = None
    quantity: int
    min_stock_level: int
    status: PartStatus

    class Config:
        from_attributes = True


class LedgerCheck(BaseModel):
    part_id: int
    quantity: int
    ledger_sum: int
    consistent: bool
