"""
Delivery reconciliation for orders.

When an order moves to a delivery-bearing status, each delivery event is
applied to its order line (delivered and backorder quantities, line status),
received goods are booked into the stock ledger, and the order's overall
status is derived from its lines. The whole run is one transaction.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from exceptions import ValidationError, InvalidTransition
from database import transaction
from models.orders import Order, OrderStatus
from models.order_items import OrderItem, OrderItemStatus
from models.order_delivery_receipts import OrderDeliveryReceipt
from models.stock_movements import MovementType, ReferenceType
from schemas.orders import DeliveryItem, OrderStatusUpdate
from crud.orders import (
    DELIVERY_STATUSES,
    append_history,
    cancel_order,
    get_order,
    get_order_for_update,
    transition_order,
    validate_transition,
)
from crud.stock_movements import record_movement
from utils.auth_utils import get_user_identifier

logger = logging.getLogger(__name__)

PARTIAL_STATUSES = {OrderStatus.PARTIAL, OrderStatus.PARTIAL_DELIVERED}


def derive_item_status(
    receiving_qty: int,
    existing_delivered: int,
    new_total_delivered: int,
    final_backorder: int,
    manual_status: Optional[OrderItemStatus] = None,
) -> OrderItemStatus:
    if manual_status == OrderItemStatus.CANCELLED:
        return OrderItemStatus.CANCELLED
    if final_backorder > 0:
        return OrderItemStatus.PARTIAL if new_total_delivered > 0 else OrderItemStatus.BACKORDER
    if receiving_qty == 0 and existing_delivered == 0:
        return OrderItemStatus.CANCELLED
    return OrderItemStatus.DELIVERED


def derive_order_status(items: List[OrderItem], requested: OrderStatus) -> OrderStatus:
    """Overall status from the full set of lines; cancelled lines do not hold delivery back."""
    if not items:
        return requested
    if all(item.item_status == OrderItemStatus.CANCELLED for item in items):
        return OrderStatus.CANCELLED
    active = [item for item in items if item.item_status != OrderItemStatus.CANCELLED]
    if all(
        item.item_status == OrderItemStatus.DELIVERED or item.quantity_delivered >= item.quantity_ordered
        for item in active
    ):
        return OrderStatus.DELIVERED
    if any(
        item.quantity_delivered > 0 or item.item_status in (OrderItemStatus.PARTIAL, OrderItemStatus.BACKORDER)
        for item in active
    ):
        return requested if requested in PARTIAL_STATUSES else OrderStatus.PARTIAL
    return requested


def _apply_delivery_event(
    db: Session,
    order: Order,
    event: DeliveryItem,
    user: dict,
    note: Optional[str],
    warnings: List[str],
):
    # Re-read the latest persisted line under lock so concurrent deliveries
    # against the same line accumulate instead of overwriting each other.
    item = (
        db.query(OrderItem)
        .filter(OrderItem.id == event.id, OrderItem.order_id == order.id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if item is None:
        warnings.append(f"Order item {event.id} not found on this order; skipped")
        logger.warning(f"Delivery event for unknown item {event.id} on order {order.id} skipped")
        return
    if item.item_status == OrderItemStatus.CANCELLED:
        warnings.append(f"Order item {item.id} is cancelled; skipped")
        return

    receiving_qty = max(0, int(event.quantity_delivered or 0))
    existing_delivered = item.quantity_delivered or 0
    new_total_delivered = existing_delivered + receiving_qty
    calculated_backorder = max(0, item.quantity_ordered - new_total_delivered)

    override = event.quantity_backorder
    if override is not None and override > 0:
        final_backorder = min(override, calculated_backorder)
        if override > calculated_backorder:
            warnings.append(
                f"Backorder for item {item.id} clamped from {override} to {final_backorder}"
            )
    else:
        final_backorder = calculated_backorder

    item_status = derive_item_status(
        receiving_qty, existing_delivered, new_total_delivered, final_backorder, event.item_status
    )
    if item_status == OrderItemStatus.CANCELLED:
        final_backorder = 0

    if new_total_delivered > item.quantity_ordered:
        over = new_total_delivered - item.quantity_ordered
        message = (
            f"Over-delivery on item {item.id}: received {new_total_delivered} "
            f"against {item.quantity_ordered} ordered (+{over})"
        )
        item.notes = f"{item.notes}\n{message}" if item.notes else message
        warnings.append(message)

    item.quantity_delivered = new_total_delivered
    item.quantity_backorder = final_backorder
    item.item_status = item_status

    if receiving_qty > 0:
        record_movement(
            db,
            part_id=item.part_id,
            movement_type=MovementType.IN,
            quantity=receiving_qty,
            reference_type=ReferenceType.ORDER,
            reference_id=order.id,
            user=user,
            notes=f"Order {order.order_number} delivered: {note}" if note else f"Order {order.order_number} - stock received",
        )


def reconcile_delivery(
    db: Session,
    order_id: int,
    target_status: OrderStatus,
    items: Optional[List[DeliveryItem]],
    user: dict,
    note: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> dict:
    """
    Apply delivery events to an order atomically.

    Returns ``{"order", "warnings", "replayed"}``. A repeated ``idempotency_key``
    returns the current order untouched with ``replayed`` set.
    """
    if target_status not in DELIVERY_STATUSES:
        raise ValidationError(f"'{target_status.value}' is not a delivery status")

    warnings: List[str] = []
    with transaction(db):
        order = get_order_for_update(db, order_id)

        # A retried request is answered from its receipt even when it completed the order
        if idempotency_key:
            already_applied = db.query(OrderDeliveryReceipt).filter(
                OrderDeliveryReceipt.order_id == order.id,
                OrderDeliveryReceipt.idempotency_key == idempotency_key,
            ).first()
            if already_applied:
                logger.info(f"Delivery '{idempotency_key}' on order {order_id} already applied; replaying")
                return {"order": get_order(db, order_id), "warnings": [], "replayed": True}

        if order.status == OrderStatus.DELIVERED:
            raise InvalidTransition("Order already delivered")

        validate_transition(order.status, target_status)

        if not order.items:
            raise ValidationError("Order has no items to deliver")

        if not items:
            # No explicit events: receive everything still outstanding
            items = [
                DeliveryItem(id=item.id, quantity_delivered=max(0, item.quantity_ordered - item.quantity_delivered))
                for item in order.items
                if item.item_status != OrderItemStatus.CANCELLED
            ]

        for event in items:
            _apply_delivery_event(db, order, event, user, note, warnings)

        db.flush()
        db.refresh(order, attribute_names=["items"])
        old_status = order.status
        new_status = derive_order_status(order.items, target_status)
        order.status = new_status
        append_history(db, order, old_status, new_status, user, note=note)

        if idempotency_key:
            db.add(OrderDeliveryReceipt(order_id=order.id, idempotency_key=idempotency_key))

    logger.info(
        f"Order (ID: {order_id}) reconciled from '{old_status.value}' to '{new_status.value}' "
        f"({len(items)} delivery event(s)) by user {get_user_identifier(user)}"
    )
    return {"order": get_order(db, order_id), "warnings": warnings, "replayed": False}


def change_order_status(db: Session, order_id: int, update: OrderStatusUpdate, user: dict) -> dict:
    """Entry point for ``PUT /orders/{id}/status``."""
    if update.status in DELIVERY_STATUSES:
        return reconcile_delivery(
            db,
            order_id,
            update.status,
            update.items,
            user,
            note=update.notes,
            idempotency_key=update.idempotency_key,
        )
    if update.status == OrderStatus.CANCELLED:
        order = cancel_order(db, order_id, user, note=update.notes)
    else:
        order = transition_order(db, order_id, update.status, user, note=update.notes)
    return {"order": order, "warnings": [], "replayed": False}
