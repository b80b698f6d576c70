from models.users import User
from models.brands import Brand
from models.colors import Color
from models.categories import Category
from models.parts import Part
from models.stock_movements import StockMovement
from models.orders import Order
from models.order_items import OrderItem
from models.order_status_history import OrderStatusHistory
from models.order_delivery_receipts import OrderDeliveryReceipt
from models.equipment_templates import EquipmentTemplate
from models.equipment_template_parts import EquipmentTemplatePart
from models.equipment import Equipment
from models.equipment_parts import EquipmentPart
from models.audit_log import AuditLog

__all__ = ['AuditLog', 'Brand', 'Category', 'Color', 'Equipment', 'EquipmentPart', 'EquipmentTemplate', 'EquipmentTemplatePart', 'Order', 'OrderDeliveryReceipt', 'OrderItem', 'OrderStatusHistory', 'Part', 'StockMovement', 'User',]
