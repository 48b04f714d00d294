"""Domain models for the warehouse kernel."""

from wms_kernel.models.audit_event import AuditAction, AuditEvent
from wms_kernel.models.catalog import Item, Location
from wms_kernel.models.order import (
    VALID_TRANSITIONS,
    Order,
    OrderLine,
    OrderStatus,
    OrderType,
)
from wms_kernel.models.picking import (
    PICK_LIST_TRANSITIONS,
    PICK_TASK_TRANSITIONS,
    PickList,
    PickListStatus,
    PickTask,
    PickTaskStatus,
)
from wms_kernel.models.sequence import SequenceCounter
from wms_kernel.models.stock_movement import MovementType, StockMovement
from wms_kernel.models.topology import Bin, Zone, bin_items
from wms_kernel.models.tracking import OrderTracking

__all__ = [
    "AuditAction",
    "AuditEvent",
    "Bin",
    "Item",
    "Location",
    "MovementType",
    "Order",
    "OrderLine",
    "OrderStatus",
    "OrderTracking",
    "OrderType",
    "PICK_LIST_TRANSITIONS",
    "PICK_TASK_TRANSITIONS",
    "PickList",
    "PickListStatus",
    "PickTask",
    "PickTaskStatus",
    "SequenceCounter",
    "StockMovement",
    "VALID_TRANSITIONS",
    "Zone",
    "bin_items",
]
