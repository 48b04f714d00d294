"""
Module: wms_kernel.selectors.stock_selector
Responsibility: Derived stock levels and movement history.  Quantities are
    computed from stock_movements at query time; nothing else stores them.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - stock_at(item, location) = sum(IN) - sum(OUT) over that pair.
    - stock_total(item) = the same sum over every location.
    - movement_history is newest first; out-of-range limits fall back to
      the default instead of failing.

Failure modes:
    - InvalidIdentifierError for an empty SKU or location code.
    - ItemNotFoundError / LocationNotFoundError for unknown identifiers.
"""

from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from wms_kernel.domain.dtos import MovementInfo, StockLevel
from wms_kernel.exceptions import (
    InvalidIdentifierError,
    ItemNotFoundError,
    LocationNotFoundError,
)
from wms_kernel.models.catalog import Item, Location
from wms_kernel.models.stock_movement import MovementType, StockMovement
from wms_kernel.selectors.base import BaseSelector

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 200

# +quantity for IN, -quantity for OUT
_SIGNED_QUANTITY = case(
    (StockMovement.movement_type == MovementType.IN.value, StockMovement.quantity),
    else_=-StockMovement.quantity,
)


class StockSelector(BaseSelector[StockMovement]):
    """Read-only access to balances and the movement log."""

    def __init__(self, session: Session, default_history_limit: int = DEFAULT_HISTORY_LIMIT):
        super().__init__(session)
        self.default_history_limit = default_history_limit

    def _item(self, sku: str) -> Item:
        cleaned = (sku or "").strip()
        if not cleaned:
            raise InvalidIdentifierError("sku", sku)
        item = self.session.execute(
            select(Item).where(Item.sku == cleaned)
        ).scalar_one_or_none()
        if item is None:
            raise ItemNotFoundError(cleaned)
        return item

    def _location(self, code: str) -> Location:
        cleaned = (code or "").strip()
        if not cleaned:
            raise InvalidIdentifierError("location code", code)
        location = self.session.execute(
            select(Location).where(Location.code == cleaned)
        ).scalar_one_or_none()
        if location is None:
            raise LocationNotFoundError(cleaned)
        return location

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def stock_at_ids(self, item_id: UUID, location_id: UUID) -> int:
        """Current stock of an item at a location, by primary keys."""
        total = self.session.execute(
            select(func.coalesce(func.sum(_SIGNED_QUANTITY), 0)).where(
                StockMovement.item_id == item_id,
                StockMovement.location_id == location_id,
            )
        ).scalar_one()
        return int(total)

    def stock_total_id(self, item_id: UUID) -> int:
        total = self.session.execute(
            select(func.coalesce(func.sum(_SIGNED_QUANTITY), 0)).where(
                StockMovement.item_id == item_id,
            )
        ).scalar_one()
        return int(total)

    def stock_at(self, sku: str, location_code: str) -> int:
        item = self._item(sku)
        location = self._location(location_code)
        return self.stock_at_ids(item.id, location.id)

    def stock_total(self, sku: str) -> int:
        return self.stock_total_id(self._item(sku).id)

    def stock_levels(self, sku: str) -> list[StockLevel]:
        """Per-location balances of one item, ordered by location code."""
        item = self._item(sku)
        rows = self.session.execute(
            select(Location.code, func.sum(_SIGNED_QUANTITY))
            .join(Location, Location.id == StockMovement.location_id)
            .where(StockMovement.item_id == item.id)
            .group_by(Location.code)
            .order_by(Location.code)
        ).all()
        return [
            StockLevel(sku=item.sku, location_code=code, quantity=int(qty))
            for code, qty in rows
        ]

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def normalize_history_limit(self, limit: int | None) -> int:
        if limit is None or limit <= 0 or limit > MAX_HISTORY_LIMIT:
            return self.default_history_limit
        return limit

    def movement_history(self, sku: str, limit: int | None = None) -> list[MovementInfo]:
        """
        Movements of one item across all locations, newest first.

        A limit of zero, a negative limit or one above 200 falls back to
        the default.
        """
        item = self._item(sku)
        rows = self.session.execute(
            select(StockMovement, Location.code)
            .join(Location, Location.id == StockMovement.location_id)
            .where(StockMovement.item_id == item.id)
            .order_by(StockMovement.item_seq.desc())
            .limit(self.normalize_history_limit(limit))
        ).all()
        return [
            MovementInfo(
                id=movement.id,
                movement_type=movement.movement_type,
                sku=item.sku,
                location_code=location_code,
                quantity=movement.quantity,
                reference=movement.reference,
                created_at=movement.created_at,
            )
            for movement, location_code in rows
        ]
