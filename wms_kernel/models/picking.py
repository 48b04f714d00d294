"""
Module: wms_kernel.models.picking
Responsibility: ORM persistence for picklists and pick tasks, plus their
    state machine tables.
Architecture position: Kernel > Models.  May import from db/base.py,
    models/order.py and models/topology.py.

Invariants enforced:
    - At most one picklist per order (uq_pick_list_order).
    - At most one task per order line (uq_pick_task_order_line), and the
      pair (pick_list_id, order_line_id) is unique.
    - PickTask.quantity > 0.
    - PickList: CREATED -> IN_PROGRESS -> DONE.  PickTask: OPEN -> PICKED.

Failure modes:
    - IntegrityError on a second picklist for an order (PickListExistsError).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wms_kernel.db.base import TrackedBase, UUIDString
from wms_kernel.models.order import Order, OrderLine
from wms_kernel.models.topology import Bin


class PickListStatus(str, Enum):
    CREATED = "CREATED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class PickTaskStatus(str, Enum):
    OPEN = "OPEN"
    PICKED = "PICKED"


PICK_LIST_TRANSITIONS: dict[PickListStatus, frozenset[PickListStatus]] = {
    PickListStatus.CREATED: frozenset({PickListStatus.IN_PROGRESS}),
    PickListStatus.IN_PROGRESS: frozenset({PickListStatus.DONE}),
    PickListStatus.DONE: frozenset(),
}

PICK_TASK_TRANSITIONS: dict[PickTaskStatus, frozenset[PickTaskStatus]] = {
    PickTaskStatus.OPEN: frozenset({PickTaskStatus.PICKED}),
    PickTaskStatus.PICKED: frozenset(),
}


class PickList(TrackedBase):
    """
    Work order to retrieve the items of one posted order.

    Contract:
        Created with one OPEN task per order line.  Can only be finished
        once every task is PICKED.
    """

    __tablename__ = "pick_lists"

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_pick_list_order"),
        CheckConstraint(
            "status IN ('CREATED', 'IN_PROGRESS', 'DONE')", name="ck_pick_list_status"
        ),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("orders.id"), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(12), nullable=False, default=PickListStatus.CREATED.value
    )

    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    done_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    order: Mapped[Order] = relationship(Order)

    tasks: Mapped[list["PickTask"]] = relationship(
        back_populates="pick_list",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<PickList {self.id}: {self.status}>"

    def can_transition_to(self, target: PickListStatus) -> bool:
        return target in PICK_LIST_TRANSITIONS[PickListStatus(self.status)]


class PickTask(TrackedBase):
    """One unit of picking work, mirroring one order line."""

    __tablename__ = "pick_tasks"

    __table_args__ = (
        UniqueConstraint("order_line_id", name="uq_pick_task_order_line"),
        UniqueConstraint(
            "pick_list_id", "order_line_id", name="uq_pick_task_list_line"
        ),
        CheckConstraint("quantity > 0", name="ck_pick_task_quantity_positive"),
        CheckConstraint("status IN ('OPEN', 'PICKED')", name="ck_pick_task_status"),
    )

    pick_list_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("pick_lists.id"), nullable=False, index=True
    )

    order_line_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("order_lines.id"), nullable=False
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=PickTaskStatus.OPEN.value
    )

    picked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Suggested bin; advisory only
    bin_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("bins.id", ondelete="SET NULL"), nullable=True
    )

    pick_list: Mapped[PickList] = relationship(back_populates="tasks")

    order_line: Mapped[OrderLine] = relationship(OrderLine)

    bin: Mapped[Bin | None] = relationship(Bin, passive_deletes=True)

    def __repr__(self) -> str:
        return f"<PickTask {self.id}: {self.status}>"

    def can_transition_to(self, target: PickTaskStatus) -> bool:
        return target in PICK_TASK_TRANSITIONS[PickTaskStatus(self.status)]
