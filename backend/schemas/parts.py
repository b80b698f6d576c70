from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal
from datetime import datetime
from models.parts import PartStatus

class PartBase(BaseModel):
    name: str = Field(..., min_length=1)
    sku_code: Optional[str] = None
    color_id: Optional[int] = None
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    description: Optional[str] = None
    purchase_price: Decimal = Field(Decimal("0"), ge=0)
    selling_price: Decimal = Field(Decimal("0"), ge=0)
    min_stock_level: int = Field(0, ge=0)

class PartCreate(PartBase):
    # Opening stock, booked as an 'initial' ledger movement
    quantity: int = Field(0, ge=0)

class PartUpdate(BaseModel):
    # quantity is ledger-managed and deliberately absent here
    name: Optional[str] = Field(None, min_length=1)
    sku_code: Optional[str] = None
    color_id: Optional[int] = None
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    description: Optional[str] = None
    purchase_price: Optional[Decimal] = Field(None, ge=0)
    selling_price: Optional[Decimal] = Field(None, ge=0)
    min_stock_level: Optional[int] = Field(None, ge=0)

class Part(PartBase):
    id: int
    display_name: str
    quantity: int
    status: PartStatus
    last_restocked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
