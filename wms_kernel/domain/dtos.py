"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures returned by services and
    selectors: catalog and topology records, movement rows, orders and
    their lines, posting results, order tracking, picklist projections
    and audit rows.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.
    Services and selectors convert ORM entities into these at the
    boundary; callers never hold ORM objects, so results stay valid after
    the session closes.

Invariants enforced:
    - Every DTO is a frozen dataclass.
    - Collections are tuples.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

# ---------------------------------------------------------------------------
# Catalog / topology
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ItemInfo:
    id: UUID
    sku: str
    name: str
    description: str


@dataclass(frozen=True)
class LocationInfo:
    id: UUID
    code: str
    name: str


@dataclass(frozen=True)
class ZoneInfo:
    id: UUID
    location_code: str
    code: str
    name: str


@dataclass(frozen=True)
class BinInfo:
    id: UUID
    location_code: str
    zone_code: str
    code: str
    name: str


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MovementInfo:
    """One ledger row as shown in movement history (newest first)."""

    id: UUID
    movement_type: str
    sku: str
    location_code: str
    quantity: int
    reference: str | None
    created_at: datetime


@dataclass(frozen=True)
class StockLevel:
    """Derived balance of one item at one location."""

    sku: str
    location_code: str
    quantity: int


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderLineInfo:
    id: UUID
    line_no: int
    sku: str
    location_code: str
    quantity: int


@dataclass(frozen=True)
class OrderInfo:
    id: UUID
    order_number: str
    order_type: str
    status: str
    created_at: datetime
    posted_at: datetime | None = None
    cancelled_at: datetime | None = None
    lines: tuple[OrderLineInfo, ...] = field(default_factory=tuple)

    @property
    def line_count(self) -> int:
        return len(self.lines)


@dataclass(frozen=True)
class PostingResult:
    """
    Outcome of a successful posting.

    ``movement_ids`` holds exactly one id per order line, in line order.
    ``touched_skus`` lists the SKUs moved, for low-stock evaluation.
    """

    order_number: str
    order_type: str
    status: str
    reference: str
    movement_ids: tuple[UUID, ...]
    touched_skus: tuple[str, ...]


@dataclass(frozen=True)
class TrackingInfo:
    """Tracking of one order; ``tracking_id`` is "" when none is set."""

    order_number: str
    tracking_id: str = ""
    url: str = ""
    carrier: str = ""
    updated_at: datetime | None = None

    @property
    def is_set(self) -> bool:
        return bool(self.tracking_id)


# ---------------------------------------------------------------------------
# Picking
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PickListInfo:
    id: UUID
    order_number: str
    status: str
    task_ids: tuple[UUID, ...]
    created_at: datetime
    started_at: datetime | None = None
    done_at: datetime | None = None


@dataclass(frozen=True)
class PickTaskInfo:
    id: UUID
    pick_list_id: UUID
    status: str
    picked_at: datetime | None


@dataclass(frozen=True)
class PickTaskView:
    """A task row with labels resolved for display."""

    id: UUID
    sku: str
    item_name: str
    location_code: str
    bin_code: str
    quantity: int
    status: str
    picked_at: datetime | None = None


@dataclass(frozen=True)
class PickListView:
    """Read-only projection of a picklist with its order and tasks."""

    id: UUID
    order_number: str
    status: str
    created_at: datetime
    started_at: datetime | None
    done_at: datetime | None
    tasks: tuple[PickTaskView, ...]

    @property
    def open_task_count(self) -> int:
        return sum(1 for t in self.tasks if t.status == "OPEN")


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditEventInfo:
    seq: int
    action: str
    entity_type: str
    entity_ref: str
    actor: str
    occurred_at: datetime
    payload: dict | None
    hash: str
