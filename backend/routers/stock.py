import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.stock_movements import MovementType, ReferenceType
from schemas.stock import (
    StockAddRequest,
    StockRemoveRequest,
    StockAdjustRequest,
    StockMovement,
    StockLevel,
    LedgerCheck,
)
from schemas.common import ApiResponse, ok
from crud import stock_movements as crud_stock
from crud import parts as crud_parts
from utils.auth_utils import get_current_user, require_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stock", tags=["Stock"], dependencies=[Depends(get_current_user)])

stock_writer = require_role(["admin", "manager"])


@router.post("/add", response_model=ApiResponse[StockMovement])
def add_stock(request: StockAddRequest, db: Session = Depends(get_db), user: dict = Depends(stock_writer)):
    movement = crud_stock.add_stock(db, request, user)
    return ok(movement, message=f"Added {request.quantity} units to stock")


@router.post("/remove", response_model=ApiResponse[StockMovement])
def remove_stock(request: StockRemoveRequest, db: Session = Depends(get_db), user: dict = Depends(stock_writer)):
    movement = crud_stock.remove_stock(db, request, user)
    return ok(movement, message=f"Removed {request.quantity} units from stock")


@router.post("/adjust", response_model=ApiResponse[Optional[StockMovement]])
def adjust_stock(request: StockAdjustRequest, db: Session = Depends(get_db), user: dict = Depends(stock_writer)):
    """Set a part to a counted quantity. ``data`` is null when nothing changed."""
    movement = crud_stock.adjust_stock(db, request, user)
    message = "Stock adjusted successfully" if movement else "Quantity already matches, nothing recorded"
    return ok(movement, message=message)


@router.get("/movements", response_model=ApiResponse[List[StockMovement]])
def read_movements(
    part_id: Optional[int] = None,
    movement_type: Optional[MovementType] = None,
    reference_type: Optional[ReferenceType] = None,
    reference_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    movements = crud_stock.get_movements(
        db,
        part_id=part_id,
        movement_type=movement_type,
        reference_type=reference_type,
        reference_id=reference_id,
        skip=skip,
        limit=limit,
    )
    return ok(movements, with_count=True)


@router.get("/movements/{part_id}", response_model=ApiResponse[List[StockMovement]])
def read_part_movements(part_id: int, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    crud_parts.get_part(db, part_id)
    return ok(crud_stock.get_movements(db, part_id=part_id, skip=skip, limit=limit), with_count=True)


@router.get("/levels", response_model=ApiResponse[List[StockLevel]])
def read_stock_levels(db: Session = Depends(get_db)):
    return ok(crud_parts.get_parts(db, limit=None), with_count=True)


@router.get("/alerts", response_model=ApiResponse[List[StockLevel]])
def read_stock_alerts(db: Session = Depends(get_db)):
    return ok(crud_parts.get_low_stock_parts(db), with_count=True)


@router.get("/reconcile/{part_id}", response_model=ApiResponse[LedgerCheck])
def reconcile_part(part_id: int, db: Session = Depends(get_db)):
    """Compare a part's on-hand quantity with the signed sum of its movements."""
    result = crud_stock.check_ledger(db, part_id)
    if not result["consistent"]:
        logger.warning(f"Ledger mismatch for part {part_id}: {result}")
    return ok(result)
