"""Services for the warehouse kernel (write side)."""

from wms_kernel.services.auditor_service import AuditorService
from wms_kernel.services.catalog_service import CatalogService
from wms_kernel.services.order_service import OrderService
from wms_kernel.services.picking_service import PickingService
from wms_kernel.services.sequence_service import SequenceService
from wms_kernel.services.stock_ledger import StockLedgerService
from wms_kernel.services.topology_service import TopologyService
from wms_kernel.services.tracking_service import TrackingService

__all__ = [
    "AuditorService",
    "CatalogService",
    "OrderService",
    "PickingService",
    "SequenceService",
    "StockLedgerService",
    "TopologyService",
    "TrackingService",
]
