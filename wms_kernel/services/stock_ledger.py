"""
StockLedgerService -- the append-only stock movement log.

Responsibility:
    Records IN and OUT movements of an item at a location.  Stock levels
    are never stored; they are summed from the log by StockSelector.

Architecture position:
    Kernel > Services -- imperative shell.
    Called directly for receipts and issues, and by OrderService when an
    order is posted.

Invariants enforced:
    - Every movement has quantity > 0 and type IN or OUT (also CHECK
      constraints on stock_movements).
    - Movements are never updated or deleted (ORM listeners, PostgreSQL
      triggers).
    - An OUT never exceeds current stock at (item, location): the item row
      is locked FOR UPDATE and the balance is read under that lock, so two
      concurrent issues of the same item are serialized.
    - Every movement, IN or OUT, is written under the item row lock and
      takes the next item_seq for that item.

Failure modes:
    - InvalidQuantityError, InvalidIdentifierError, ItemNotFoundError,
      LocationNotFoundError.
    - InsufficientStockError carrying sku, location, requested and
      available.

Audit relevance:
    Direct receipts and issues are recorded as stock_received and
    stock_issued audit events.  Movements written by posting are covered by
    the order_posted event instead.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wms_kernel.domain.clock import Clock
from wms_kernel.exceptions import InsufficientStockError
from wms_kernel.logging_config import get_logger
from wms_kernel.models.audit_event import AuditAction
from wms_kernel.models.catalog import Item, Location
from wms_kernel.models.stock_movement import MovementType, StockMovement
from wms_kernel.selectors.stock_selector import StockSelector
from wms_kernel.services.auditor_service import AuditorService
from wms_kernel.services.base import BaseService, require_positive
from wms_kernel.services.catalog_service import CatalogService

logger = get_logger("services.stock_ledger")


def clean_reference(reference: str | None) -> str | None:
    """Trim a movement reference; blank becomes None."""
    if reference is None:
        return None
    return reference.strip() or None


class StockLedgerService(BaseService[StockMovement]):
    """
    Service for writing stock movements.

    Contract:
        ``record_in`` / ``record_out`` take business identifiers and return
        the new movement id.  ``receive`` / ``issue`` take ORM entities
        already resolved by the caller; OrderService uses them so that
        posting does not resolve each line twice.

    Non-goals:
        - Does NOT commit.
        - Does NOT raise low-stock alerts (see wms_services.LowStockMonitor).
    """

    def __init__(
        self,
        session: Session,
        catalog: CatalogService | None = None,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
    ):
        super().__init__(session, clock, auditor)
        self._catalog = catalog or CatalogService(session, self._clock)
        self._stock = StockSelector(session)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock_item(self, item_id: UUID) -> Item:
        """SELECT ... FOR UPDATE on one item row."""
        return self.session.execute(
            select(Item)
            .where(Item.id == item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

    def lock_items(self, items: Iterable[Item]) -> list[Item]:
        """
        Lock several item rows in SKU order.

        A fixed lock order keeps two postings that share items from
        deadlocking each other.
        """
        unique = {item.id: item for item in items}
        ordered = sorted(unique.values(), key=lambda i: i.sku)
        return [self.lock_item(item.id) for item in ordered]

    # ------------------------------------------------------------------
    # Entity-level writes
    # ------------------------------------------------------------------

    def _next_item_seq(self, item_id: UUID) -> int:
        return self.session.execute(
            select(func.coalesce(func.max(StockMovement.item_seq), 0) + 1)
            .where(StockMovement.item_id == item_id)
        ).scalar_one()

    def _append(
        self,
        item: Item,
        location: Location,
        movement_type: MovementType,
        quantity: int,
        reference: str | None,
    ) -> StockMovement:
        """Write one movement.  The caller holds the item row lock."""
        movement = StockMovement(
            item_id=item.id,
            location_id=location.id,
            item_seq=self._next_item_seq(item.id),
            movement_type=movement_type.value,
            quantity=quantity,
            reference=clean_reference(reference),
            created_at=self._clock.now(),
        )
        self.session.add(movement)
        self.session.flush()
        logger.info(
            "movement_recorded",
            extra={
                "movement_id": str(movement.id),
                "movement_type": movement_type.value,
                "sku": item.sku,
                "location_code": location.code,
                "quantity": quantity,
                "reference": movement.reference,
            },
        )
        return movement

    def receive(
        self,
        item: Item,
        location: Location,
        quantity: int,
        reference: str | None = None,
    ) -> StockMovement:
        """Append an IN movement.  No stock check."""
        require_positive(quantity)
        self.lock_item(item.id)
        return self._append(item, location, MovementType.IN, quantity, reference)

    def issue(
        self,
        item: Item,
        location: Location,
        quantity: int,
        reference: str | None = None,
    ) -> StockMovement:
        """
        Append an OUT movement after checking stock under the item lock.

        Raises:
            InsufficientStockError: current stock at the location is below
                ``quantity``.  Nothing is written.
        """
        require_positive(quantity)
        self.lock_item(item.id)
        available = self._stock.stock_at_ids(item.id, location.id)
        if available < quantity:
            logger.warning(
                "insufficient_stock",
                extra={
                    "sku": item.sku,
                    "location_code": location.code,
                    "requested": quantity,
                    "available": available,
                },
            )
            raise InsufficientStockError(item.sku, location.code, quantity, available)
        return self._append(item, location, MovementType.OUT, quantity, reference)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def record_in(
        self,
        sku: str,
        location_code: str,
        quantity: int,
        reference: str | None = None,
    ) -> UUID:
        """
        Receive ``quantity`` of ``sku`` at ``location_code``.

        Raises:
            InvalidQuantityError, ItemNotFoundError, LocationNotFoundError.
        """
        require_positive(quantity)
        item = self._catalog.require_item(sku)
        location = self._catalog.require_location(location_code)
        movement = self.receive(item, location, quantity, reference)
        self._audit(
            AuditAction.STOCK_RECEIVED,
            "StockMovement",
            movement.id,
            entity_ref=item.sku,
            payload={
                "location_code": location.code,
                "quantity": quantity,
                "reference": movement.reference,
            },
        )
        return movement.id

    def record_out(
        self,
        sku: str,
        location_code: str,
        quantity: int,
        reference: str | None = None,
    ) -> UUID:
        """
        Issue ``quantity`` of ``sku`` from ``location_code``.

        Raises:
            InvalidQuantityError, ItemNotFoundError, LocationNotFoundError,
            InsufficientStockError.
        """
        require_positive(quantity)
        item = self._catalog.require_item(sku)
        location = self._catalog.require_location(location_code)
        movement = self.issue(item, location, quantity, reference)
        self._audit(
            AuditAction.STOCK_ISSUED,
            "StockMovement",
            movement.id,
            entity_ref=item.sku,
            payload={
                "location_code": location.code,
                "quantity": quantity,
                "reference": movement.reference,
            },
        )
        return movement.id

    def stock_at(self, sku: str, location_code: str) -> int:
        return self._stock.stock_at(sku, location_code)

    def stock_total(self, sku: str) -> int:
        return self._stock.stock_total(sku)
