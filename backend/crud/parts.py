import logging
from typing import Optional

from sqlalchemy.orm import Session

from exceptions import NotFound, Conflict
from database import transaction
from models.parts import Part, PartStatus
from models.colors import Color
from models.categories import Category
from models.brands import Brand
from models.stock_movements import MovementType, ReferenceType
from schemas.parts import PartCreate, PartUpdate
from schemas.audit_log import AuditLogCreate
from crud.audit_log import create_audit_log
from crud.stock_movements import record_movement, derive_stock_status
from utils import now, sqlalchemy_to_dict
from utils.auth_utils import get_user_identifier

logger = logging.getLogger(__name__)


def get_part(db: Session, part_id: int) -> Part:
    part = db.query(Part).filter(Part.id == part_id).first()
    if part is None:
        raise NotFound(f"Part with ID {part_id} not found")
    return part


def get_parts(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    category_id: Optional[int] = None,
    brand_id: Optional[int] = None,
    color_id: Optional[int] = None,
    status: Optional[PartStatus] = None,
    search: Optional[str] = None,
):
    query = db.query(Part)
    if category_id:
        query = query.filter(Part.category_id == category_id)
    if brand_id:
        query = query.filter(Part.brand_id == brand_id)
    if color_id:
        query = query.filter(Part.color_id == color_id)
    if status:
        query = query.filter(Part.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(Part.name.ilike(pattern) | Part.sku_code.ilike(pattern))
    return query.order_by(Part.name, Part.id).offset(skip).limit(limit).all()


def get_low_stock_parts(db: Session):
    return (
        db.query(Part)
        .filter(Part.status.in_([PartStatus.LOW_STOCK, PartStatus.OUT_OF_STOCK]))
        .order_by(Part.quantity, Part.name)
        .all()
    )


def _check_references(db: Session, data: dict):
    for key, model in (("color_id", Color), ("category_id", Category), ("brand_id", Brand)):
        ref_id = data.get(key)
        if ref_id is not None and db.query(model).filter(model.id == ref_id).first() is None:
            raise NotFound(f"{model.__name__} with ID {ref_id} not found")


def _check_unique(db: Session, name: str, color_id: Optional[int], sku_code: Optional[str], exclude_id: Optional[int] = None):
    query = db.query(Part).filter(Part.name == name, Part.color_id.is_(None) if color_id is None else Part.color_id == color_id)
    if exclude_id is not None:
        query = query.filter(Part.id != exclude_id)
    if query.first():
        raise Conflict(f"Part '{name}' already exists in this color")
    if sku_code:
        query = db.query(Part).filter(Part.sku_code == sku_code).execution_options(include_deleted=True)
        if exclude_id is not None:
            query = query.filter(Part.id != exclude_id)
        if query.first():
            raise Conflict(f"SKU code '{sku_code}' is already in use")


def create_part(db: Session, part: PartCreate, user: dict) -> Part:
    data = part.model_dump()
    opening_quantity = data.pop("quantity")
    _check_references(db, data)
    _check_unique(db, data["name"], data.get("color_id"), data.get("sku_code"))

    user_identifier = get_user_identifier(user)
    with transaction(db):
        db_part = Part(
            **data,
            quantity=0,
            status=derive_stock_status(0, data["min_stock_level"]),
            created_by=user_identifier,
            updated_by=user_identifier,
        )
        db.add(db_part)
        db.flush()
        if opening_quantity > 0:
            record_movement(
                db,
                part_id=db_part.id,
                movement_type=MovementType.IN,
                quantity=opening_quantity,
                reference_type=ReferenceType.INITIAL,
                user=user,
                notes="Opening stock",
            )
            db_part.last_restocked_at = now()
        create_audit_log(db, AuditLogCreate(
            table_name='parts',
            record_id=db_part.id,
            changed_by=user_identifier or "system",
            action='CREATE',
            old_values={},
            new_values=sqlalchemy_to_dict(db_part),
        ))
    db.refresh(db_part)
    logger.info(f"Part '{db_part.display_name}' (ID: {db_part.id}) created by user {user_identifier}")
    return db_part


def update_part(db: Session, part_id: int, part: PartUpdate, user: dict) -> Part:
    db_part = get_part(db, part_id)
    update_data = part.model_dump(exclude_unset=True)
    _check_references(db, update_data)
    _check_unique(
        db,
        update_data.get("name", db_part.name),
        update_data.get("color_id", db_part.color_id),
        update_data.get("sku_code"),
        exclude_id=db_part.id,
    )

    old_values = sqlalchemy_to_dict(db_part)
    with transaction(db):
        for key, value in update_data.items():
            setattr(db_part, key, value)
        db_part.status = derive_stock_status(db_part.quantity, db_part.min_stock_level)
        db_part.updated_by = get_user_identifier(user)
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name='parts',
            record_id=db_part.id,
            changed_by=get_user_identifier(user) or "system",
            action='UPDATE',
            old_values=old_values,
            new_values=sqlalchemy_to_dict(db_part),
        ))
    db.refresh(db_part)
    logger.info(f"Part '{db_part.display_name}' (ID: {part_id}) updated by user {get_user_identifier(user)}")
    return db_part


def delete_part(db: Session, part_id: int, user: dict) -> bool:
    """Soft delete; ledger rows and order lines keep pointing at the part."""
    db_part = get_part(db, part_id)
    old_values = sqlalchemy_to_dict(db_part)
    with transaction(db):
        db_part.deleted_at = now()
        db_part.deleted_by = get_user_identifier(user)
        db.flush()
        create_audit_log(db, AuditLogCreate(
            table_name='parts',
            record_id=part_id,
            changed_by=get_user_identifier(user) or "system",
            action='DELETE',
            old_values=old_values,
            new_values=sqlalchemy_to_dict(db_part),
        ))
    logger.info(f"Part (ID: {part_id}) soft deleted by user {get_user_identifier(user)}")
    return True
