from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class BrandCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None

class Brand(BrandCreate):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ColorCreate(BaseModel):
    name: str = Field(..., min_length=1)
    hex_code: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")

class Color(ColorCreate):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None

class Category(CategoryCreate):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
