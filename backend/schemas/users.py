from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from models.users import UserRole


class UserBase(BaseModel):
    email: Optional[str] = None
    full_name: Optional[str] = None

class CreateUserRequest(UserBase):
    """Self-registration body; the role is always ``user``."""
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)

class UserCreate(CreateUserRequest):
    role: UserRole = UserRole.USER
    is_active: bool = True

class UserUpdate(UserBase):
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

class User(UserBase):
    id: int
    username: str
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
