"""Composition root and cross-capability services above the kernel."""

from wms_services.low_stock_monitor import (
    LoggingNotificationSink,
    LowStockAlert,
    LowStockMonitor,
    NotificationSink,
    RecordingNotificationSink,
)
from wms_services.warehouse_orchestrator import (
    WarehouseOrchestrator,
    build_warehouse_orchestrator,
)

__all__ = [
    "LoggingNotificationSink",
    "LowStockAlert",
    "LowStockMonitor",
    "NotificationSink",
    "RecordingNotificationSink",
    "WarehouseOrchestrator",
    "build_warehouse_orchestrator",
]
