import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from models.users import UserRole
from schemas.users import User, UserCreate, UserUpdate
from schemas.common import ApiResponse, ok
from crud import users as crud_users
from utils.auth_utils import get_current_user, require_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"], dependencies=[Depends(get_current_user)])

user_admin = require_role(["admin"])


@router.get("/", response_model=ApiResponse[List[User]])
def read_users(
    skip: int = 0,
    limit: int = 100,
    role: Optional[UserRole] = None,
    db: Session = Depends(get_db),
):
    return ok(crud_users.get_users(db, skip=skip, limit=limit, role=role), with_count=True)


@router.get("/role/{role}", response_model=ApiResponse[List[User]])
def read_users_by_role(role: UserRole, db: Session = Depends(get_db)):
    """Users holding ``role``, ordered by name."""
    return ok(crud_users.get_users_by_role(db, role), with_count=True)


@router.get("/{user_id}", response_model=ApiResponse[User])
def read_user(user_id: int, db: Session = Depends(get_db)):
    return ok(crud_users.get_user(db, user_id))


@router.post("/", response_model=ApiResponse[User], status_code=status.HTTP_201_CREATED)
def create_user(user: UserCreate, db: Session = Depends(get_db), current_user: dict = Depends(user_admin)):
    return ok(crud_users.create_user(db, user, current_user), message="User created successfully")


@router.patch("/{user_id}", response_model=ApiResponse[User])
def update_user(
    user_id: int,
    user: UserUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(user_admin),
):
    return ok(crud_users.update_user(db, user_id, user, current_user), message="User updated successfully")


@router.delete("/{user_id}", response_model=ApiResponse[None])
def delete_user(user_id: int, db: Session = Depends(get_db), current_user: dict = Depends(user_admin)):
    crud_users.delete_user(db, user_id, current_user)
    return ok(message="User deleted successfully")
