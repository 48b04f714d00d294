"""
Module: wms_kernel.selectors.topology_selector
Responsibility: Bin lookups used by picking to suggest where a line's item
    is stored.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from wms_kernel.models.topology import Bin, bin_items
from wms_kernel.selectors.base import BaseSelector


class TopologySelector(BaseSelector[Bin]):
    """Read-only access to zones and bins."""

    def bins_holding_item(self, item_id: UUID, location_id: UUID) -> list[UUID]:
        """Ids of the bins at ``location_id`` that ``item_id`` is assigned to, by bin code."""
        rows = self.session.execute(
            select(Bin.id)
            .join(bin_items, bin_items.c.bin_id == Bin.id)
            .where(
                Bin.location_id == location_id,
                bin_items.c.item_id == item_id,
            )
            .order_by(Bin.code)
        ).scalars().all()
        return list(rows)
