"""
Module: wms_kernel.models.catalog
Responsibility: ORM persistence for the catalog: items and locations.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Item.sku is unique and non-empty (uq_item_sku, ck_item_sku_not_empty).
    - Location.code is unique and non-empty.
    - Item.sku and Item.name are immutable once the item is referenced by a
      movement or order line (ORM listener in db/immutability.py).

Failure modes:
    - IntegrityError on duplicate SKU / code (mapped to ItemExistsError /
      LocationExistsError by CatalogService).
"""

from sqlalchemy import CheckConstraint, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from wms_kernel.db.base import TrackedBase


class Item(TrackedBase):
    """
    A stock-keeping unit.

    Contract:
        Identity is the SKU.  Only ``description`` may change after the
        item has been used by the ledger or an order.
    """

    __tablename__ = "items"

    __table_args__ = (
        UniqueConstraint("sku", name="uq_item_sku"),
        CheckConstraint("length(sku) > 0", name="ck_item_sku_not_empty"),
    )

    sku: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Item {self.sku}>"


class Location(TrackedBase):
    """A storage location (aisle, room, dock) identified by its code."""

    __tablename__ = "locations"

    __table_args__ = (
        UniqueConstraint("code", name="uq_location_code"),
        CheckConstraint("length(code) > 0", name="ck_location_code_not_empty"),
    )

    code: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Location {self.code}>"
