"""
Module: wms_kernel.models.topology
Responsibility: ORM persistence for zones and bins inside a location, and
    the many-to-many "items stored in this bin" association.
Architecture position: Kernel > Models.  May import from db/base.py and
    models/catalog.py.

Invariants enforced:
    - Zone code unique per location (uq_zone_location_code).
    - Bin code unique per location (uq_bin_location_code).
    - A bin belongs to exactly one zone and one location.
    - Deleting a bin with items, or a zone with bins, is refused by
      TopologyService before the DELETE is issued.
"""

from uuid import UUID

from sqlalchemy import Column, ForeignKey, String, Table, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wms_kernel.db.base import Base, TrackedBase, UUIDString
from wms_kernel.models.catalog import Item, Location

bin_items = Table(
    "bin_items",
    Base.metadata,
    Column("bin_id", UUIDString(), ForeignKey("bins.id"), primary_key=True),
    Column("item_id", UUIDString(), ForeignKey("items.id"), primary_key=True),
)


class Zone(TrackedBase):
    """A named area of a location that groups bins."""

    __tablename__ = "zones"

    __table_args__ = (
        UniqueConstraint("location_id", "code", name="uq_zone_location_code"),
    )

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False, index=True
    )

    code: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    location: Mapped[Location] = relationship(Location)

    def __repr__(self) -> str:
        return f"<Zone {self.code}>"


class Bin(TrackedBase):
    """
    A physical slot in a zone.

    Contract:
        ``items`` lists the items stored here.  Picking uses it to suggest
        a bin for each task; the suggestion is advisory.
    """

    __tablename__ = "bins"

    __table_args__ = (
        UniqueConstraint("location_id", "code", name="uq_bin_location_code"),
    )

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("locations.id"), nullable=False, index=True
    )

    zone_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("zones.id"), nullable=False, index=True
    )

    code: Mapped[str] = mapped_column(String(64), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    location: Mapped[Location] = relationship(Location)

    zone: Mapped[Zone] = relationship(Zone)

    items: Mapped[list[Item]] = relationship(Item, secondary=bin_items)

    def __repr__(self) -> str:
        return f"<Bin {self.code}>"
