import logging
from typing import Optional

from sqlalchemy.orm import Session

from exceptions import NotFound, Conflict, ValidationError
from database import transaction
from models.users import User, UserRole
from schemas.audit_log import AuditLogCreate
from schemas.users import UserCreate, UserUpdate
from crud.audit_log import create_audit_log
from utils import sqlalchemy_to_dict
from utils.auth_utils import get_user_identifier, hash_password

logger = logging.getLogger(__name__)


def _public_values(user: User) -> dict:
    # Password hashes never go into the audit trail
    values = sqlalchemy_to_dict(user)
    values.pop("hashed_password", None)
    return values


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound("User not found")
    return user


def get_users(db: Session, skip: int = 0, limit: int = 100, role: Optional[UserRole] = None):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit).all()


def get_users_by_role(db: Session, role: UserRole):
    return db.query(User).filter(User.role == role).order_by(User.full_name, User.username).all()


def _check_unique(db: Session, username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None):
    if username:
        query = db.query(User).filter(User.username == username)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise Conflict(f"Username '{username}' already exists")
    if email:
        query = db.query(User).filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise Conflict(f"Email '{email}' already in use")


def create_user(db: Session, user: UserCreate, current_user: dict) -> User:
    _check_unique(db, user.username, user.email)
    db_user = User(
        username=user.username,
        email=user.email,
        full_name=user.full_name or user.username,
        hashed_password=hash_password(user.password),
        role=user.role,
        is_active=user.is_active,
    )
    with transaction(db):
        db.add(db_user)
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name='users',
            record_id=db_user.id,
            changed_by=get_user_identifier(current_user) or "system",
            action='CREATE',
            old_values={},
            new_values=_public_values(db_user),
        ))
    db.refresh(db_user)
    logger.info(f"User '{db_user.username}' (ID: {db_user.id}, role: {db_user.role.value}) created by user {get_user_identifier(current_user)}")
    return db_user


def update_user(db: Session, user_id: int, user: UserUpdate, current_user: dict) -> User:
    db_user = get_user(db, user_id)
    update_data = user.model_dump(exclude_unset=True)
    for key in ("role", "is_active", "password"):
        if update_data.get(key, "") is None:
            update_data.pop(key)
    if not update_data:
        raise ValidationError("No fields to update")
    _check_unique(db, None, update_data.get("email"), exclude_id=user_id)

    password = update_data.pop("password", None)
    old_values = _public_values(db_user)
    with transaction(db):
        for key, value in update_data.items():
            setattr(db_user, key, value)
        if password:
            db_user.hashed_password = hash_password(password)
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name='users',
            record_id=user_id,
            changed_by=get_user_identifier(current_user) or "system",
            action='UPDATE',
            old_values=old_values,
            new_values={**_public_values(db_user), "password_changed": bool(password)},
        ))
    db.refresh(db_user)
    logger.info(f"User (ID: {user_id}) updated by user {get_user_identifier(current_user)}")
    return db_user


def delete_user(db: Session, user_id: int, current_user: dict) -> bool:
    db_user = get_user(db, user_id)
    if current_user and current_user.get("id") == user_id:
        raise ValidationError("You cannot delete your own account")
    old_values = _public_values(db_user)
    with transaction(db):
        db.delete(db_user)
        create_audit_log(db, AuditLogCreate(
            table_name='users',
            record_id=user_id,
            changed_by=get_user_identifier(current_user) or "system",
            action='DELETE',
            old_values=old_values,
            new_values={},
        ))
    logger.info(f"User (ID: {user_id}) deleted by user {get_user_identifier(current_user)}")
    return True
