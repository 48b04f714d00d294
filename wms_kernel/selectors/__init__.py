"""Read-only query selectors."""

from wms_kernel.selectors.base import BaseSelector
from wms_kernel.selectors.order_selector import OrderSelector
from wms_kernel.selectors.picklist_selector import PickListSelector
from wms_kernel.selectors.stock_selector import StockSelector
from wms_kernel.selectors.topology_selector import TopologySelector

__all__ = [
    "BaseSelector",
    "OrderSelector",
    "PickListSelector",
    "StockSelector",
    "TopologySelector",
]
