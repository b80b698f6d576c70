import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session

from database import get_db
from models.orders import OrderStatus
from schemas.orders import (
    Order,
    OrderCreate,
    OrderHistory,
    OrderNotesUpdate,
    OrderStats,
    OrderStatusUpdate,
    OrderSummary,
    ReconciliationResult,
)
from schemas.common import ApiResponse, ok
from crud import orders as crud_orders
from crud import order_reconciliation
from utils.auth_utils import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["Orders"], dependencies=[Depends(get_current_user)])


@router.get("/", response_model=ApiResponse[List[OrderSummary]])
def read_orders(
    status: Optional[OrderStatus] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    return ok(crud_orders.get_orders(db, status=status, skip=skip, limit=limit), with_count=True)


@router.get("/mine", response_model=ApiResponse[List[OrderSummary]])
def read_my_orders(
    status: Optional[OrderStatus] = None,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return ok(crud_orders.get_orders(db, status=status, user_id=user.get("id")), with_count=True)


@router.get("/stats", response_model=ApiResponse[OrderStats])
def read_order_stats(db: Session = Depends(get_db)):
    return ok(crud_orders.get_order_stats(db))


@router.get("/{order_id}", response_model=ApiResponse[Order])
def read_order(order_id: int, db: Session = Depends(get_db)):
    return ok(crud_orders.get_order(db, order_id))


@router.get("/{order_id}/history", response_model=ApiResponse[OrderHistory])
def read_order_history(order_id: int, db: Session = Depends(get_db)):
    return ok(crud_orders.get_order_history(db, order_id))


@router.post("/", response_model=ApiResponse[Order], status_code=status.HTTP_201_CREATED)
def create_order(
    order: OrderCreate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Create an order. Line prices are snapshotted from the parts' purchase price."""
    return ok(crud_orders.create_order(db, order, user), message="Order created successfully")


@router.put("/{order_id}", response_model=ApiResponse[Order])
def update_order_notes(
    order_id: int,
    update: OrderNotesUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    return ok(crud_orders.update_notes(db, order_id, update.notes, user), message="Notes added")


@router.put("/{order_id}/status", response_model=ApiResponse[ReconciliationResult])
def update_order_status(
    order_id: int,
    update: OrderStatusUpdate,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    """
    Change an order's status.

    Delivery statuses (``partial``, ``partial_delivered``, ``delivered``) receive
    goods into stock. A retried request carrying the same idempotency key is
    answered with the current order and ``replayed: true``.
    """
    if idempotency_key and not update.idempotency_key:
        update = update.model_copy(update={"idempotency_key": idempotency_key})
    result = order_reconciliation.change_order_status(db, order_id, update, user)
    message = "Request already applied" if result["replayed"] else f"Order status updated to {result['order'].status.value}"
    return ok(result, message=message)


@router.delete("/{order_id}", response_model=ApiResponse[Order])
def cancel_order(
    order_id: int,
    db: Session = Depends(get_db),
    user: dict = Depends(get_current_user),
):
    """Cancel an order that has not been delivered. Stock is not touched."""
    return ok(crud_orders.cancel_order(db, order_id, user), message="Order cancelled")
