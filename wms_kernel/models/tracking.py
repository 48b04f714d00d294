"""
Module: wms_kernel.models.tracking
Responsibility: ORM persistence for the shipment tracking attached to an
    order.
Architecture position: Kernel > Models.  May import from db/base.py and
    models/order.py.

Invariants enforced:
    - At most one tracking record per order (uq_order_tracking_order).
    - tracking_id is never empty; url and carrier default to "".
"""

from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wms_kernel.db.base import TrackedBase, UUIDString
from wms_kernel.models.order import Order


class OrderTracking(TrackedBase):
    """Carrier tracking for one order; replaced in place on every set."""

    __tablename__ = "order_tracking"

    __table_args__ = (
        UniqueConstraint("order_id", name="uq_order_tracking_order"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("orders.id"), nullable=False
    )

    tracking_id: Mapped[str] = mapped_column(String(128), nullable=False)

    url: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    carrier: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    order: Mapped[Order] = relationship(Order)

    def __repr__(self) -> str:
        return f"<OrderTracking {self.tracking_id}>"
