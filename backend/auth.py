import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session
from starlette import status
from fastapi.security import OAuth2PasswordRequestForm

from database import get_db, transaction
from models.users import User, UserRole
from schemas.common import ApiResponse, ok
from schemas.users import CreateUserRequest, User as UserOut
from utils.auth_utils import create_access_token, get_current_user, hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class Token(BaseModel):
    access_token: str
    token_type: str

db_dependency = Annotated[Session, Depends(get_db)]


def token_for(user: User) -> Token:
    access_token = create_access_token(data={"sub": user.username, "id": user.id, "role": user.role.value})
    return Token(access_token=access_token, token_type="bearer")


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register_user(
    user: CreateUserRequest,
    db: db_dependency
):
    """Self-registration always yields a plain ``user``; admins come from scripts/create_admin.py."""
    query = db.query(User).filter(User.username == user.username)
    if user.email:
        query = db.query(User).filter((User.username == user.username) | (User.email == user.email))
    if query.first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username or email already registered")

    new_user = User(
        username=user.username,
        email=user.email,
        full_name=user.full_name or user.username,
        hashed_password=hash_password(user.password),
        role=UserRole.USER,
    )
    with transaction(db):
        db.add(new_user)
    db.refresh(new_user)
    logger.info(f"User '{new_user.username}' (ID: {new_user.id}) registered")
    return token_for(new_user)


@router.post("/login", response_model=Token)
def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: db_dependency
):
    user = db.query(User).filter(User.username == form_data.username).first()
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Failed login attempt for '{form_data.username}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is disabled")
    return token_for(user)


@router.get("/me", response_model=ApiResponse[UserOut])
def read_current_user(db: db_dependency, current_user: dict = Depends(get_current_user)):
    user = db.query(User).filter(User.username == current_user["username"]).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return ok(user)
