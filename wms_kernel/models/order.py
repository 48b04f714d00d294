"""
Module: wms_kernel.models.order
Responsibility: ORM persistence for orders and their lines, plus the order
    state machine table.
Architecture position: Kernel > Models.  May import from db/base.py and
    models/catalog.py.

Invariants enforced:
    - order_number unique (uq_order_number).
    - order_type fixed at creation (never assigned by any service after
      INSERT).
    - status follows VALID_TRANSITIONS: DRAFT -> POSTED | CANCELLED.
      POSTED and CANCELLED are terminal.
    - OrderLine.quantity > 0; (order_id, line_no) unique.

Failure modes:
    - IntegrityError on duplicate order number (OrderExistsError).
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
from wms_kernel.models.catalog import Item, Location


class OrderType(str, Enum):
    """Direction of an order; decides IN or OUT movements on posting."""

    INBOUND = "INBOUND"
    OUTBOUND = "OUTBOUND"


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    DRAFT = "DRAFT"
    POSTED = "POSTED"
    CANCELLED = "CANCELLED"


VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.DRAFT: frozenset({OrderStatus.POSTED, OrderStatus.CANCELLED}),
    OrderStatus.POSTED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class Order(TrackedBase):
    """
    An inbound or outbound order.

    Contract:
        Lines are only added while DRAFT.  Posting writes one ledger
        movement per line and flips the status in the same transaction.
    """

    __tablename__ = "orders"

    __table_args__ = (
        UniqueConstraint("order_number", name="uq_order_number"),
        CheckConstraint("length(order_number) > 0", name="ck_order_number_not_empty"),
        CheckConstraint(
            "order_type IN ('INBOUND', 'OUTBOUND')", name="ck_order_type"
        ),
        CheckConstraint(
            "status IN ('DRAFT', 'POSTED', 'CANCELLED')", name="ck_order_status"
        ),
    )

    order_number: Mapped[str] = mapped_column(String(64), nullable=False)

    order_type: Mapped[str] = mapped_column(String(10), nullable=False)

    status: Mapped[str] = mapped_column(
        String(12), nullable=False, default=OrderStatus.DRAFT.value, index=True
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    cancelled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    lines: Mapped[list["OrderLine"]] = relationship(
        back_populates="order",
        order_by="OrderLine.line_no",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Order {self.order_number}: {self.status}>"

    @property
    def is_draft(self) -> bool:
        return self.status == OrderStatus.DRAFT.value

    def can_transition_to(self, target: OrderStatus) -> bool:
        """Check the transition table for the current status."""
        return target in VALID_TRANSITIONS[OrderStatus(self.status)]


class OrderLine(TrackedBase):
    """One item/location/quantity line of an order."""

    __tablename__ = "order_lines"

    __table_args__ = (
        UniqueConstraint("order_id", "line_no", name="uq_order_line_no"),
        CheckConstraint("quantity > 0", name="ck_order_line_quantity_positive"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=False, index=True
    )

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped[Order] = relationship(back_populates="lines")

    item: Mapped[Item] = relationship(Item)

    location: Mapped[Location] = relationship(Location)

    def __repr__(self) -> str:
        return f"<OrderLine {self.line_no} qty={self.quantity}>"
