import logging
import uuid
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from exceptions import NotFound, ValidationError, InvalidTransition
from database import transaction
from models.orders import Order, OrderStatus
from models.order_items import OrderItem, OrderItemStatus
from models.order_status_history import OrderStatusHistory
from models.parts import Part
from schemas.orders import OrderCreate
from utils import now
from utils.auth_utils import get_user_identifier

logger = logging.getLogger(__name__)

INITIAL_STATUSES = {OrderStatus.DRAFT, OrderStatus.WAITING_FOR_ANSWER}
DELIVERY_STATUSES = {OrderStatus.PARTIAL, OrderStatus.PARTIAL_DELIVERED, OrderStatus.DELIVERED}
TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

_RECEIVING = {OrderStatus.PARTIAL, OrderStatus.PARTIAL_DELIVERED, OrderStatus.DELIVERED, OrderStatus.CANCELLED}

ALLOWED_TRANSITIONS = {
    OrderStatus.DRAFT: {OrderStatus.WAITING_FOR_ANSWER, OrderStatus.TO_ORDER, OrderStatus.ORDERED, OrderStatus.CANCELLED},
    OrderStatus.WAITING_FOR_ANSWER: {OrderStatus.TO_ORDER, OrderStatus.ORDERED, OrderStatus.CANCELLED},
    OrderStatus.TO_ORDER: {OrderStatus.ORDERED} | _RECEIVING,
    OrderStatus.ORDERED: _RECEIVING,
    # Further partial deliveries keep the order in a partial state
    OrderStatus.PARTIAL: _RECEIVING,
    OrderStatus.PARTIAL_DELIVERED: _RECEIVING,
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def validate_transition(current: OrderStatus, target: OrderStatus):
    if current == OrderStatus.DELIVERED:
        raise InvalidTransition("Order already delivered")
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Cannot change order status from '{current.value}' to '{target.value}'",
            details={"current_status": current.value, "requested_status": target.value},
        )


def _order_query(db: Session):
    return db.query(Order).options(
        selectinload(Order.items).selectinload(OrderItem.part),
        selectinload(Order.status_history),
    )


def get_order(db: Session, order_id: int) -> Order:
    order = _order_query(db).filter(Order.id == order_id).first()
    if order is None:
        raise NotFound("Order not found")
    return order


def get_order_for_update(db: Session, order_id: int) -> Order:
    """Lock the order row and re-read it, serializing status changes on one order."""
    order = db.query(Order).filter(Order.id == order_id).with_for_update().populate_existing().first()
    if order is None:
        raise NotFound("Order not found")
    return order


def get_orders(
    db: Session,
    status: Optional[OrderStatus] = None,
    user_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
):
    query = db.query(Order).options(selectinload(Order.items))
    if status:
        query = query.filter(Order.status == status)
    if user_id is not None:
        query = query.filter(Order.user_id == user_id)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip).limit(limit).all()


def generate_order_number() -> str:
    return f"ORD-{now().strftime('%Y%m%d%H%M%S')}-{uuid.uuid4().hex[:6].upper()}"


def append_history(
    db: Session,
    order: Order,
    old_status: Optional[OrderStatus],
    new_status: OrderStatus,
    user: Optional[dict],
    note: Optional[str] = None,
) -> OrderStatusHistory:
    entry = OrderStatusHistory(
        order_id=order.id,
        old_status=old_status,
        new_status=new_status,
        changed_by=get_user_identifier(user),
        note=note,
    )
    db.add(entry)
    return entry


def append_note(order: Order, text: str):
    line = f"[{now().isoformat()}] {text}"
    order.notes = f"{order.notes}\n\n{line}" if order.notes else line


def create_order(db: Session, order: OrderCreate, user: dict) -> Order:
    """Create an order; each line snapshots the part's current purchase price."""
    if not order.items:
        raise ValidationError("Order must have at least one item")
    initial_status = order.status or OrderStatus.WAITING_FOR_ANSWER
    if initial_status not in INITIAL_STATUSES:
        raise ValidationError(
            f"New orders start as 'draft' or 'waiting_for_answer', not '{initial_status.value}'"
        )

    db_items = []
    for item_data in order.items:
        part = db.query(Part).filter(Part.id == item_data.part_id).first()
        if part is None:
            raise NotFound(f"Part with ID {item_data.part_id} not found")
        db_items.append(
            OrderItem(
                part_id=part.id,
                quantity_ordered=item_data.quantity_ordered,
                quantity_delivered=0,
                quantity_backorder=item_data.quantity_ordered,
                purchase_price_at_order=part.purchase_price or 0,
                item_status=OrderItemStatus.PENDING,
                notes=item_data.notes,
            )
        )

    with transaction(db):
        db_order = Order(
            order_number=generate_order_number(),
            status=initial_status,
            notes=order.notes,
            user_id=user.get("id") if user else None,
        )
        db_order.items = db_items
        db.add(db_order)
        db.flush()
        append_history(db, db_order, None, initial_status, user, note="Order created")

    logger.info(
        f"Order {db_order.order_number} (ID: {db_order.id}) created with {len(db_items)} item(s) "
        f"by user {get_user_identifier(user)}"
    )
    return get_order(db, db_order.id)


def update_notes(db: Session, order_id: int, notes: str, user: dict) -> Order:
    with transaction(db):
        order = get_order_for_update(db, order_id)
        append_note(order, notes)
    logger.info(f"Notes appended to order (ID: {order_id}) by user {get_user_identifier(user)}")
    return get_order(db, order_id)


def cancel_order(db: Session, order_id: int, user: dict, note: Optional[str] = None) -> Order:
    """
    Cancel an order that has not been delivered.

    Stock is never touched: it is only booked in when goods are received, and
    lines already received keep their delivered quantity.
    """
    with transaction(db):
        order = get_order_for_update(db, order_id)
        if order.status in TERMINAL_STATUSES:
            raise InvalidTransition(
                "Cannot cancel delivered orders - stock already received"
                if order.status == OrderStatus.DELIVERED
                else "Order is already cancelled"
            )
        old_status = order.status
        for item in order.items:
            if item.item_status != OrderItemStatus.DELIVERED:
                item.item_status = OrderItemStatus.CANCELLED
                item.quantity_backorder = 0
        order.status = OrderStatus.CANCELLED
        append_history(db, order, old_status, OrderStatus.CANCELLED, user, note=note or "Order cancelled")
    logger.info(f"Order (ID: {order_id}) cancelled by user {get_user_identifier(user)}")
    return get_order(db, order_id)


def transition_order(db: Session, order_id: int, target: OrderStatus, user: dict, note: Optional[str] = None) -> Order:
    """Status change that moves no goods, e.g. waiting_for_answer -> ordered."""
    with transaction(db):
        order = get_order_for_update(db, order_id)
        validate_transition(order.status, target)
        old_status = order.status
        order.status = target
        append_history(db, order, old_status, target, user, note=note)
    logger.info(f"Order (ID: {order_id}) moved from '{old_status.value}' to '{target.value}' by user {get_user_identifier(user)}")
    return get_order(db, order_id)


def get_order_history(db: Session, order_id: int) -> dict:
    order = get_order(db, order_id)
    entries = list(order.status_history)
    return {
        "order_id": order.id,
        "entries": entries,
        "rendered": "\n".join(entry.render() for entry in entries),
    }


def get_order_stats(db: Session) -> dict:
    rows = db.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    by_status = {status.value: 0 for status in OrderStatus}
    for status, count in rows:
        by_status[status.value] = count
    return {"total_orders": sum(by_status.values()), "by_status": by_status}
