"""
Stock ledger: every change of a part's quantity goes through here.

Functions in this module stage their writes on the caller's session and never
commit; the caller owns the transaction (see ``database.transaction``).
"""
from typing import Optional
import logging

from sqlalchemy import func, case
from sqlalchemy.orm import Session

from exceptions import NotFound, ValidationError, InsufficientStock
from models.parts import Part, PartStatus
from models.stock_movements import StockMovement, MovementType, ReferenceType
from schemas.stock import StockAddRequest, StockRemoveRequest, StockAdjustRequest
from database import transaction
from utils import now
from utils.auth_utils import get_user_identifier

logger = logging.getLogger(__name__)


def derive_stock_status(quantity: int, min_stock_level: int) -> PartStatus:
    if quantity <= 0:
        return PartStatus.OUT_OF_STOCK
    if quantity <= (min_stock_level or 0):
        return PartStatus.LOW_STOCK
    return PartStatus.IN_STOCK


def get_part_for_update(db: Session, part_id: int) -> Part:
    """Load a live part with a row lock held until the transaction ends."""
    part = db.query(Part).filter(Part.id == part_id).with_for_update().first()
    if part is None:
        raise NotFound(f"Part with ID {part_id} not found")
    return part


def record_movement(
    db: Session,
    part_id: int,
    movement_type: MovementType,
    quantity: int,
    reference_type: ReferenceType,
    reference_id: Optional[int] = None,
    user: Optional[dict] = None,
    notes: Optional[str] = None,
) -> StockMovement:
    """Append one movement and apply it to the part's quantity and status."""
    if quantity is None or int(quantity) <= 0:
        raise ValidationError("Movement quantity must be a positive integer")
    quantity = int(quantity)

    part = get_part_for_update(db, part_id)
    old_quantity = part.quantity or 0

    if movement_type == MovementType.OUT:
        if old_quantity < quantity:
            raise InsufficientStock(
                f"Insufficient stock for '{part.display_name}'",
                shortfalls=[{
                    "part_id": part.id,
                    "name": part.display_name,
                    "needed": quantity,
                    "available": old_quantity,
                    "shortfall": quantity - old_quantity,
                }],
            )
        new_quantity = old_quantity - quantity
    else:
        new_quantity = old_quantity + quantity

    part.quantity = new_quantity
    part.status = derive_stock_status(new_quantity, part.min_stock_level)
    db.add(part)

    movement = StockMovement(
        part_id=part.id,
        movement_type=movement_type,
        quantity=quantity,
        quantity_before=old_quantity,
        quantity_after=new_quantity,
        reference_type=reference_type,
        reference_id=reference_id,
        user_id=user.get("id") if user else None,
        notes=notes,
    )
    db.add(movement)
    db.flush()
    logger.info(
        f"Stock {movement_type.value} {quantity} for part {part.id} ({reference_type.value}"
        f"{f' #{reference_id}' if reference_id else ''}): {old_quantity} -> {new_quantity}"
    )
    return movement


def adjust_to(
    db: Session,
    part_id: int,
    new_quantity: int,
    user: Optional[dict] = None,
    notes: Optional[str] = None,
) -> Optional[StockMovement]:
    """
    Set a part's quantity to a counted value.

    Books a single movement of ``|new - current|`` in the matching direction.
    Returns None when the count already matches and nothing was recorded.
    """
    if new_quantity is None or int(new_quantity) < 0:
        raise ValidationError("Adjusted quantity cannot be negative")
    new_quantity = int(new_quantity)

    part = get_part_for_update(db, part_id)
    difference = new_quantity - (part.quantity or 0)
    if difference == 0:
        part.status = derive_stock_status(part.quantity, part.min_stock_level)
        return None

    return record_movement(
        db,
        part_id=part.id,
        movement_type=MovementType.IN if difference > 0 else MovementType.OUT,
        quantity=abs(difference),
        reference_type=ReferenceType.ADJUSTMENT,
        user=user,
        notes=notes or "Stock adjustment",
    )


def get_movements(
    db: Session,
    part_id: Optional[int] = None,
    movement_type: Optional[MovementType] = None,
    reference_type: Optional[ReferenceType] = None,
    reference_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(StockMovement)
    if part_id is not None:
        query = query.filter(StockMovement.part_id == part_id)
    if movement_type is not None:
        query = query.filter(StockMovement.movement_type == movement_type)
    if reference_type is not None:
        query = query.filter(StockMovement.reference_type == reference_type)
    if reference_id is not None:
        query = query.filter(StockMovement.reference_id == reference_id)
    return query.order_by(StockMovement.id.desc()).offset(skip).limit(limit).all()


def ledger_sum(db: Session, part_id: int) -> int:
    """Signed sum of every movement booked against a part."""
    signed = case(
        (StockMovement.movement_type == MovementType.IN, StockMovement.quantity),
        else_=-StockMovement.quantity,
    )
    total = db.query(func.coalesce(func.sum(signed), 0)).filter(StockMovement.part_id == part_id).scalar()
    return int(total or 0)


def check_ledger(db: Session, part_id: int) -> dict:
    part = db.query(Part).filter(Part.id == part_id).first()
    if part is None:
        raise NotFound(f"Part with ID {part_id} not found")
    total = ledger_sum(db, part_id)
    return {
        "part_id": part.id,
        "quantity": part.quantity,
        "ledger_sum": total,
        "consistent": total == part.quantity,
    }


# --- Manual stock operations (one transaction each) ---

def add_stock(db: Session, request: StockAddRequest, user: dict) -> StockMovement:
    with transaction(db):
        movement = record_movement(
            db,
            part_id=request.part_id,
            movement_type=MovementType.IN,
            quantity=request.quantity,
            reference_type=ReferenceType.MANUAL,
            user=user,
            notes=request.notes or "Manual restock",
        )
        movement.part.last_restocked_at = now()
    db.refresh(movement)
    logger.info(f"Part {request.part_id} restocked by {request.quantity} by user {get_user_identifier(user)}")
    return movement


def remove_stock(db: Session, request: StockRemoveRequest, user: dict) -> StockMovement:
    with transaction(db):
        movement = record_movement(
            db,
            part_id=request.part_id,
            movement_type=MovementType.OUT,
            quantity=request.quantity,
            reference_type=ReferenceType.MANUAL,
            user=user,
            notes=request.notes or "Manual removal",
        )
    db.refresh(movement)
    logger.info(f"{request.quantity} removed from part {request.part_id} by user {get_user_identifier(user)}")
    return movement


def adjust_stock(db: Session, request: StockAdjustRequest, user: dict) -> Optional[StockMovement]:
    with transaction(db):
        movement = adjust_to(db, request.part_id, request.quantity, user=user, notes=request.notes)
    if movement is not None:
        db.refresh(movement)
    logger.info(f"Part {request.part_id} adjusted to {request.quantity} by user {get_user_identifier(user)}")
    return movement
