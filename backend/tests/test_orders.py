from decimal import Decimal

import pytest

from exceptions import InvalidTransition, NotFound, ValidationError
from models.orders import OrderStatus
from models.order_items import OrderItemStatus
from models.stock_movements import StockMovement, ReferenceType
from schemas.orders import OrderCreate, OrderItemCreateRequest
from crud import orders as crud_orders


def new_order(db, user, *lines, status=OrderStatus.WAITING_FOR_ANSWER):
    items = [OrderItemCreateRequest(part_id=part.id, quantity_ordered=qty) for part, qty in lines]
    return crud_orders.create_order(db, OrderCreate(items=items, status=status), user)


def test_create_order_snapshots_price_and_starts_history(db, admin, make_part):
    part = make_part(purchase_price="12.50")
    order = new_order(db, admin, (part, 4))

    assert order.order_number.startswith("ORD-")
    assert order.status == OrderStatus.WAITING_FOR_ANSWER
    item = order.items[0]
    assert item.purchase_price_at_order == Decimal("12.50")
    assert item.quantity_backorder == 4
    assert item.item_status == OrderItemStatus.PENDING
    assert order.total_amount == Decimal("50.00")
    assert [(h.old_status, h.new_status) for h in order.status_history] == [(None, OrderStatus.WAITING_FOR_ANSWER)]


def test_price_snapshot_survives_part_price_change(db, admin, make_part):
    from schemas.parts import PartUpdate
    from crud import parts as crud_parts

    part = make_part(purchase_price="5.00")
    order = new_order(db, admin, (part, 1))
    crud_parts.update_part(db, part.id, PartUpdate(purchase_price=Decimal("9.00")), admin)

    order = crud_orders.get_order(db, order.id)
    assert order.items[0].purchase_price_at_order == Decimal("5.00")


def test_create_order_requires_items(db, admin):
    with pytest.raises(ValidationError):
        crud_orders.create_order(db, OrderCreate(items=[]), admin)


def test_create_order_rejects_non_initial_status(db, admin, make_part):
    part = make_part()
    with pytest.raises(ValidationError):
        new_order(db, admin, (part, 1), status=OrderStatus.ORDERED)


def test_create_order_with_unknown_part(db, admin):
    with pytest.raises(NotFound):
        crud_orders.create_order(
            db, OrderCreate(items=[OrderItemCreateRequest(part_id=404, quantity_ordered=1)]), admin
        )


def test_update_notes_appends_with_timestamp(db, admin, make_part):
    order = new_order(db, admin, (make_part(), 1))

    crud_orders.update_notes(db, order.id, "Called supplier", admin)
    order = crud_orders.update_notes(db, order.id, "Supplier confirmed", admin)

    assert "Called supplier" in order.notes
    assert order.notes.index("Called supplier") < order.notes.index("Supplier confirmed")
    assert order.status == OrderStatus.WAITING_FOR_ANSWER


def test_cancel_ordered_order_touches_no_stock(db, admin, make_part):
    part = make_part(quantity=3)
    order = new_order(db, admin, (part, 10), (make_part(), 2))
    crud_orders.transition_order(db, order.id, OrderStatus.ORDERED, admin)

    order = crud_orders.cancel_order(db, order.id, admin)

    assert order.status == OrderStatus.CANCELLED
    assert all(item.item_status == OrderItemStatus.CANCELLED for item in order.items)
    assert db.query(StockMovement).filter(StockMovement.reference_type == ReferenceType.ORDER).count() == 0
    db.refresh(part)
    assert part.quantity == 3
    assert order.status_history[-1].new_status == OrderStatus.CANCELLED


def test_cancel_twice_fails(db, admin, make_part):
    order = new_order(db, admin, (make_part(), 1))
    crud_orders.cancel_order(db, order.id, admin)
    with pytest.raises(InvalidTransition):
        crud_orders.cancel_order(db, order.id, admin)


@pytest.mark.parametrize("current,target,allowed", [
    (OrderStatus.DRAFT, OrderStatus.WAITING_FOR_ANSWER, True),
    (OrderStatus.WAITING_FOR_ANSWER, OrderStatus.ORDERED, True),
    (OrderStatus.WAITING_FOR_ANSWER, OrderStatus.DELIVERED, False),
    (OrderStatus.ORDERED, OrderStatus.PARTIAL, True),
    (OrderStatus.ORDERED, OrderStatus.WAITING_FOR_ANSWER, False),
    (OrderStatus.PARTIAL, OrderStatus.DELIVERED, True),
    (OrderStatus.PARTIAL, OrderStatus.ORDERED, False),
    (OrderStatus.CANCELLED, OrderStatus.ORDERED, False),
    (OrderStatus.DELIVERED, OrderStatus.CANCELLED, False),
])
def test_state_machine(current, target, allowed):
    if allowed:
        crud_orders.validate_transition(current, target)
    else:
        with pytest.raises(InvalidTransition):
            crud_orders.validate_transition(current, target)


def test_transition_records_history(db, admin, make_part):
    order = new_order(db, admin, (make_part(), 1), status=OrderStatus.DRAFT)
    crud_orders.transition_order(db, order.id, OrderStatus.TO_ORDER, admin, note="Approved")

    history = crud_orders.get_order_history(db, order.id)
    assert [e.new_status for e in history["entries"]] == [OrderStatus.DRAFT, OrderStatus.TO_ORDER]
    assert "draft -> to_order by admin: Approved" in history["rendered"]


def test_order_stats_counts_every_status(db, admin, make_part):
    part = make_part()
    new_order(db, admin, (part, 1))
    cancelled = new_order(db, admin, (part, 1))
    crud_orders.cancel_order(db, cancelled.id, admin)

    stats = crud_orders.get_order_stats(db)
    assert stats["total_orders"] == 2
    assert stats["by_status"]["waiting_for_answer"] == 1
    assert stats["by_status"]["cancelled"] == 1
    assert stats["by_status"]["delivered"] == 0
