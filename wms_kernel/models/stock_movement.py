"""
Module: wms_kernel.models.stock_movement
Responsibility: ORM persistence for the stock ledger.  One row per IN or
    OUT movement of an item at a location.
Architecture position: Kernel > Models.  May import from db/base.py and
    models/catalog.py.

Invariants enforced:
    - quantity > 0 (ck_stock_movement_quantity_positive).
    - type is exactly IN or OUT (ck_stock_movement_type).
    - item_seq numbers an item's movements 1, 2, 3, ... in write order
      (uq_stock_movement_item_seq); allocated under the item row lock.
    - Append-only: no UPDATE, no DELETE (ORM listeners in
      db/immutability.py and PostgreSQL triggers in db/sql/).

Failure modes:
    - IntegrityError on CHECK violation.
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.

Audit relevance:
    There is no stored quantity-on-hand.  Stock at (item, location) is
    sum(IN) - sum(OUT) over these rows, so every balance can be traced
    back to the movements that produced it.  ``reference`` links order
    postings back to their order ("ORDER-<number>").
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wms_kernel.db.base import TrackedBase, UUIDString
from wms_kernel.models.catalog import Item, Location


class MovementType(str, Enum):
    """Direction of a stock movement."""

    IN = "IN"
    OUT = "OUT"


class StockMovement(TrackedBase):
    """
    Immutable ledger fact.

    Guarantees:
        - Never updated or deleted after flush.
        - created_at comes from the injected clock; item_seq orders
          history, including movements written at the same instant.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movement_quantity_positive"),
        CheckConstraint("type IN ('IN', 'OUT')", name="ck_stock_movement_type"),
        Index("idx_stock_movement_item_location", "item_id", "location_id"),
        UniqueConstraint("item_id", "item_seq", name="uq_stock_movement_item_seq"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=False
    )

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False
    )

    item_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    movement_type: Mapped[str] = mapped_column("type", String(3), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    # Free text; "ORDER-<order_number>" for postings
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    item: Mapped[Item] = relationship(Item)

    location: Mapped[Location] = relationship(Location)

    def __repr__(self) -> str:
        return f"<StockMovement {self.movement_type} {self.quantity}>"

    @property
    def signed_quantity(self) -> int:
        """Quantity with OUT movements negated."""
        if self.movement_type == MovementType.OUT.value:
            return -self.quantity
        return self.quantity
