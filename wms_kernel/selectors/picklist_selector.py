"""
Module: wms_kernel.selectors.picklist_selector
Responsibility: Read-only picklist projection with resolved labels (order
    number, SKU, item name, location code, bin code).
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Tasks are listed in order line order.
    - A task without a bin shows "-" as its bin code.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from wms_kernel.domain.dtos import PickListView, PickTaskView
from wms_kernel.exceptions import PickListNotFoundError
from wms_kernel.models.order import OrderLine
from wms_kernel.models.picking import PickList, PickTask
from wms_kernel.selectors.base import BaseSelector
from wms_kernel.services.base import parse_id

NO_BIN = "-"


class PickListSelector(BaseSelector[PickList]):
    """Read-only access to picklists."""

    def show_pick_list(self, pick_list_id: UUID | str) -> PickListView:
        key = parse_id(pick_list_id, lambda: PickListNotFoundError(str(pick_list_id)))

        pick_list = self.session.execute(
            select(PickList)
            .where(PickList.id == key)
            .options(
                selectinload(PickList.order),
                selectinload(PickList.tasks)
                .selectinload(PickTask.order_line)
                .selectinload(OrderLine.item),
                selectinload(PickList.tasks)
                .selectinload(PickTask.order_line)
                .selectinload(OrderLine.location),
                selectinload(PickList.tasks).selectinload(PickTask.bin),
            )
        ).scalar_one_or_none()
        if pick_list is None:
            raise PickListNotFoundError(str(key))

        tasks = sorted(pick_list.tasks, key=lambda t: t.order_line.line_no)
        return PickListView(
            id=pick_list.id,
            order_number=pick_list.order.order_number,
            status=pick_list.status,
            created_at=pick_list.created_at,
            started_at=pick_list.started_at,
            done_at=pick_list.done_at,
            tasks=tuple(
                PickTaskView(
                    id=task.id,
                    sku=task.order_line.item.sku,
                    item_name=task.order_line.item.name,
                    location_code=task.order_line.location.code,
                    bin_code=task.bin.code if task.bin is not None else NO_BIN,
                    quantity=task.quantity,
                    status=task.status,
                    picked_at=task.picked_at,
                )
                for task in tasks
            ),
        )
