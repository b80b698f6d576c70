from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from models.orders import OrderStatus
from models.order_items import OrderItemStatus


class OrderItemCreateRequest(BaseModel):
    part_id: int
    quantity_ordered: int = Field(..., gt=0)
    notes: Optional[str] = None

class OrderCreate(BaseModel):
    items: List[OrderItemCreateRequest]
    notes: Optional[str] = None
    status: Optional[OrderStatus] = OrderStatus.WAITING_FOR_ANSWER

class OrderNotesUpdate(BaseModel):
    notes: str = Field(..., min_length=1)


class DeliveryItem(BaseModel):
    """One delivery event against an order line."""
    id: int
    quantity_delivered: int = 0  # Received now, not the running total
    quantity_backorder: Optional[int] = None  # Manual override
    item_status: Optional[OrderItemStatus] = None

class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None
    items: Optional[List[DeliveryItem]] = None
    idempotency_key: Optional[str] = Field(None, max_length=255)


class OrderItem(BaseModel):
    id: int
    part_id: int
    part_name: Optional[str] = None
    quantity_ordered: int
    quantity_delivered: int
    quantity_backorder: int
    purchase_price_at_order: Decimal
    item_status: OrderItemStatus
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class OrderStatusHistoryEntry(BaseModel):
    id: int
    old_status: Optional[OrderStatus] = None
    new_status: OrderStatus
    changed_by: Optional[str] = None
    note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OrderSummary(BaseModel):
    id: int
    order_number: str
    status: OrderStatus
    notes: Optional[str] = None
    user_id: Optional[int] = None
    total_items: int
    total_quantity: int
    total_amount: Decimal
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class Order(OrderSummary):
    items: List[OrderItem] = []


class OrderHistory(BaseModel):
    order_id: int
    entries: List[OrderStatusHistoryEntry]
    rendered: str


class ReconciliationResult(BaseModel):
    order: Order
    warnings: List[str] = []
    replayed: bool = False


class OrderStats(BaseModel):
    total_orders: int
    by_status: dict
