import pytest

from exceptions import InvalidTransition, NotFound, ValidationError
from models.orders import OrderStatus
from models.order_items import OrderItem, OrderItemStatus
from models.order_status_history import OrderStatusHistory
from models.stock_movements import StockMovement, MovementType, ReferenceType
from schemas.orders import DeliveryItem, OrderCreate, OrderItemCreateRequest, OrderStatusUpdate
from crud import orders as crud_orders
from crud import order_reconciliation as reconciliation
from crud.stock_movements import check_ledger


@pytest.fixture
def ordered(db, admin, make_part):
    """An order for the given (part, quantity) lines, already moved to 'ordered'."""
    def factory(*lines):
        items = [OrderItemCreateRequest(part_id=part.id, quantity_ordered=qty) for part, qty in lines]
        order = crud_orders.create_order(db, OrderCreate(items=items), admin)
        return crud_orders.transition_order(db, order.id, OrderStatus.ORDERED, admin)
    return factory


def deliver(db, admin, order, target, *events, key=None, note=None):
    items = [DeliveryItem(**event) for event in events] or None
    return reconciliation.reconcile_delivery(
        db, order.id, target, items, admin, note=note, idempotency_key=key
    )


def order_movements(db, order):
    return db.query(StockMovement).filter(
        StockMovement.reference_type == ReferenceType.ORDER,
        StockMovement.reference_id == order.id,
    ).all()


def test_partial_delivery(db, admin, make_part, ordered):
    part = make_part(quantity=0)
    order = ordered((part, 10))
    item_id = order.items[0].id

    result = deliver(db, admin, order, OrderStatus.PARTIAL, {"id": item_id, "quantity_delivered": 6})

    order = result["order"]
    item = order.items[0]
    assert item.item_status == OrderItemStatus.PARTIAL
    assert item.quantity_delivered == 6
    assert item.quantity_backorder == 4
    assert order.status == OrderStatus.PARTIAL
    db.refresh(part)
    assert part.quantity == 6
    movements = order_movements(db, order)
    assert [(m.movement_type, m.quantity) for m in movements] == [(MovementType.IN, 6)]


def test_completing_a_partial_delivery(db, admin, make_part, ordered):
    part = make_part(quantity=0)
    order = ordered((part, 10))
    item_id = order.items[0].id
    deliver(db, admin, order, OrderStatus.PARTIAL, {"id": item_id, "quantity_delivered": 6})

    result = deliver(db, admin, order, OrderStatus.DELIVERED, {"id": item_id, "quantity_delivered": 4})

    item = result["order"].items[0]
    assert item.item_status == OrderItemStatus.DELIVERED
    assert item.quantity_delivered == 10
    assert item.quantity_backorder == 0
    assert result["order"].status == OrderStatus.DELIVERED
    assert check_ledger(db, part.id)["consistent"] is True

    with pytest.raises(InvalidTransition):
        deliver(db, admin, order, OrderStatus.DELIVERED, {"id": item_id, "quantity_delivered": 1})
    with pytest.raises(InvalidTransition):
        crud_orders.cancel_order(db, order.id, admin)


def test_over_delivery_is_accepted_with_a_note(db, admin, make_part, ordered):
    part = make_part(quantity=0)
    order = ordered((part, 10))

    result = deliver(db, admin, order, OrderStatus.DELIVERED, {"id": order.items[0].id, "quantity_delivered": 12})

    item = result["order"].items[0]
    assert item.item_status == OrderItemStatus.DELIVERED
    assert item.quantity_delivered == 12
    assert item.quantity_backorder == 0
    assert "Over-delivery" in item.notes
    assert any("Over-delivery" in warning for warning in result["warnings"])
    db.refresh(part)
    assert part.quantity == 12


def test_delivered_without_events_receives_the_remainder(db, admin, make_part, ordered):
    first, second = make_part(quantity=0), make_part(quantity=1)
    order = ordered((first, 10), (second, 3))
    deliver(db, admin, order, OrderStatus.PARTIAL, {"id": order.items[0].id, "quantity_delivered": 6})

    result = deliver(db, admin, order, OrderStatus.DELIVERED)

    assert result["order"].status == OrderStatus.DELIVERED
    assert [item.quantity_delivered for item in result["order"].items] == [10, 3]
    db.refresh(first)
    db.refresh(second)
    assert (first.quantity, second.quantity) == (10, 4)


def test_delivered_quantity_never_decreases(db, admin, make_part, ordered):
    order = ordered((make_part(), 10))
    item_id = order.items[0].id

    seen = []
    for received in (3, 0, -5, 2):
        result = deliver(db, admin, order, OrderStatus.PARTIAL, {"id": item_id, "quantity_delivered": received})
        item = result["order"].items[0]
        seen.append(item.quantity_delivered)
        assert item.quantity_backorder == max(0, item.quantity_ordered - item.quantity_delivered)

    assert seen == sorted(seen) == [3, 3, 3, 5]


def test_manual_backorder_override_is_clamped(db, admin, make_part, ordered):
    order = ordered((make_part(), 10))
    item_id = order.items[0].id

    result = deliver(
        db, admin, order, OrderStatus.PARTIAL,
        {"id": item_id, "quantity_delivered": 3, "quantity_backorder": 50},
    )

    assert result["order"].items[0].quantity_backorder == 7
    assert any("clamped" in warning for warning in result["warnings"])


def test_manual_backorder_below_remaining_is_kept(db, admin, make_part, ordered):
    order = ordered((make_part(), 10))

    result = deliver(
        db, admin, order, OrderStatus.PARTIAL,
        {"id": order.items[0].id, "quantity_delivered": 3, "quantity_backorder": 2},
    )

    item = result["order"].items[0]
    assert item.quantity_backorder == 2
    assert item.item_status == OrderItemStatus.PARTIAL
    assert result["warnings"] == []


def test_manually_cancelled_line_does_not_hold_back_delivery(db, admin, make_part, ordered):
    order = ordered((make_part(), 5), (make_part(), 2))
    first, second = order.items

    result = deliver(
        db, admin, order, OrderStatus.DELIVERED,
        {"id": first.id, "quantity_delivered": 5},
        {"id": second.id, "quantity_delivered": 0, "item_status": "cancelled"},
    )

    statuses = [item.item_status for item in result["order"].items]
    assert statuses == [OrderItemStatus.DELIVERED, OrderItemStatus.CANCELLED]
    assert result["order"].status == OrderStatus.DELIVERED


def test_requested_partial_delivered_status_is_kept(db, admin, make_part, ordered):
    order = ordered((make_part(), 4))

    result = deliver(db, admin, order, OrderStatus.PARTIAL_DELIVERED, {"id": order.items[0].id, "quantity_delivered": 1})

    assert result["order"].status == OrderStatus.PARTIAL_DELIVERED


def test_unknown_item_is_skipped_with_warning(db, admin, make_part, ordered):
    order = ordered((make_part(), 4))

    result = deliver(
        db, admin, order, OrderStatus.PARTIAL,
        {"id": 9999, "quantity_delivered": 2},
        {"id": order.items[0].id, "quantity_delivered": 1},
    )

    assert any("9999" in warning for warning in result["warnings"])
    assert result["order"].items[0].quantity_delivered == 1


def test_missing_order_and_non_delivery_status(db, admin):
    with pytest.raises(NotFound):
        reconciliation.reconcile_delivery(db, 12345, OrderStatus.DELIVERED, None, admin)
    with pytest.raises(ValidationError):
        reconciliation.reconcile_delivery(db, 12345, OrderStatus.ORDERED, None, admin)


def test_delivery_from_waiting_is_rejected(db, admin, make_part):
    part = make_part()
    order = crud_orders.create_order(
        db, OrderCreate(items=[OrderItemCreateRequest(part_id=part.id, quantity_ordered=1)]), admin
    )
    with pytest.raises(InvalidTransition):
        deliver(db, admin, order, OrderStatus.DELIVERED)


def test_failure_mid_delivery_rolls_everything_back(db, admin, make_part, ordered, monkeypatch):
    first, second = make_part(quantity=0), make_part(quantity=0)
    order = ordered((first, 5), (second, 5))
    real_record_movement = reconciliation.record_movement
    calls = {"n": 0}

    def failing_record_movement(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 2:
            raise RuntimeError("connection lost")
        return real_record_movement(*args, **kwargs)

    monkeypatch.setattr(reconciliation, "record_movement", failing_record_movement)

    with pytest.raises(RuntimeError):
        deliver(db, admin, order, OrderStatus.DELIVERED)

    assert calls["n"] == 2
    order = crud_orders.get_order(db, order.id)
    assert order.status == OrderStatus.ORDERED
    assert [item.quantity_delivered for item in order.items] == [0, 0]
    assert order_movements(db, order) == []
    db.refresh(first)
    assert first.quantity == 0
    assert db.query(OrderStatusHistory).filter(OrderStatusHistory.order_id == order.id).count() == 2


def test_retry_with_same_idempotency_key_is_not_double_counted(db, admin, make_part, ordered):
    part = make_part(quantity=0)
    order = ordered((part, 10))
    event = {"id": order.items[0].id, "quantity_delivered": 6}

    first = deliver(db, admin, order, OrderStatus.PARTIAL, event, key="delivery-1")
    retry = deliver(db, admin, order, OrderStatus.PARTIAL, event, key="delivery-1")

    assert first["replayed"] is False
    assert retry["replayed"] is True
    assert retry["order"].items[0].quantity_delivered == 6
    assert len(order_movements(db, order)) == 1
    db.refresh(part)
    assert part.quantity == 6

    # A new key is a new delivery
    deliver(db, admin, order, OrderStatus.PARTIAL, {"id": order.items[0].id, "quantity_delivered": 1}, key="delivery-2")
    assert db.get(OrderItem, order.items[0].id).quantity_delivered == 7


def test_retry_of_the_completing_delivery_is_replayed(db, admin, make_part, ordered):
    part = make_part(quantity=0)
    order = ordered((part, 10))
    event = {"id": order.items[0].id, "quantity_delivered": 10}

    first = deliver(db, admin, order, OrderStatus.DELIVERED, event, key="final")
    assert first["order"].status == OrderStatus.DELIVERED

    retry = deliver(db, admin, order, OrderStatus.DELIVERED, event, key="final")

    assert retry["replayed"] is True
    assert retry["order"].status == OrderStatus.DELIVERED
    assert len(order_movements(db, order)) == 1
    db.refresh(part)
    assert part.quantity == 10

    # Without the key the order is still closed to further deliveries
    with pytest.raises(InvalidTransition):
        deliver(db, admin, order, OrderStatus.DELIVERED, event, key="other")


def test_change_order_status_dispatch(db, admin, make_part, ordered):
    order = ordered((make_part(), 2))

    result = reconciliation.change_order_status(db, order.id, OrderStatusUpdate(status="delivered"), admin)
    assert result["order"].status == OrderStatus.DELIVERED

    other = ordered((make_part(), 2))
    result = reconciliation.change_order_status(db, other.id, OrderStatusUpdate(status="cancelled", notes="Not needed"), admin)
    assert result["order"].status == OrderStatus.CANCELLED
    assert result["order"].status_history[-1].note == "Not needed"
