"""
CatalogService -- items and locations.

Responsibility:
    Create, look up, list and delete items (SKUs) and locations.  Also the
    lookup collaborator for the ledger, order and picking services, which
    resolve SKUs and location codes through ``require_item`` and
    ``require_location``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - SKU and location code are trimmed and non-empty.
    - Duplicates surface as ItemExistsError / LocationExistsError from the
      UNIQUE constraint.
    - Referenced items and locations are never deleted (checked here and
      again by the before_flush listener in db/immutability.py).

Failure modes:
    - InvalidIdentifierError, ItemNotFoundError, LocationNotFoundError,
      ItemExistsError, LocationExistsError, ItemReferencedError,
      LocationReferencedError.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from wms_kernel.db.immutability import (
    item_reference_reason,
    location_reference_reason,
)
from wms_kernel.domain.clock import Clock
from wms_kernel.domain.dtos import ItemInfo, LocationInfo
from wms_kernel.exceptions import (
    ItemExistsError,
    ItemNotFoundError,
    ItemReferencedError,
    LocationExistsError,
    LocationNotFoundError,
    LocationReferencedError,
)
from wms_kernel.logging_config import get_logger
from wms_kernel.models.audit_event import AuditAction
from wms_kernel.models.catalog import Item, Location
from wms_kernel.services.auditor_service import AuditorService
from wms_kernel.services.base import BaseService, clean_identifier

logger = get_logger("services.catalog")

DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 500


def normalize_list_limit(limit: int | None) -> int:
    """Out-of-range list limits fall back to the default."""
    if limit is None or limit <= 0 or limit > MAX_LIST_LIMIT:
        return DEFAULT_LIST_LIMIT
    return limit


class CatalogService(BaseService[Item]):
    """
    Service for the item and location catalog.

    Contract:
        Public methods return frozen DTOs.  ``require_item`` and
        ``require_location`` return ORM entities for other kernel services.

    Non-goals:
        - Does NOT track quantities (see StockLedgerService).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
    ):
        super().__init__(session, clock, auditor)

    @staticmethod
    def _item_dto(item: Item) -> ItemInfo:
        return ItemInfo(
            id=item.id, sku=item.sku, name=item.name, description=item.description
        )

    @staticmethod
    def _location_dto(location: Location) -> LocationInfo:
        return LocationInfo(id=location.id, code=location.code, name=location.name)

    # ------------------------------------------------------------------
    # Lookups used by other services
    # ------------------------------------------------------------------

    def find_item(self, sku: str) -> Item | None:
        sku = clean_identifier(sku, "sku")
        return self.session.execute(
            select(Item).where(Item.sku == sku)
        ).scalar_one_or_none()

    def require_item(self, sku: str) -> Item:
        """Return the Item for ``sku`` or raise ItemNotFoundError."""
        item = self.find_item(sku)
        if item is None:
            raise ItemNotFoundError(sku.strip())
        return item

    def require_location(self, code: str) -> Location:
        """Return the Location for ``code`` or raise LocationNotFoundError."""
        code = clean_identifier(code, "location code")
        location = self.session.execute(
            select(Location).where(Location.code == code)
        ).scalar_one_or_none()
        if location is None:
            raise LocationNotFoundError(code)
        return location

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def create_item(self, sku: str, name: str, description: str = "") -> ItemInfo:
        """
        Create an item.

        Raises:
            InvalidIdentifierError: empty SKU.
            ItemExistsError: SKU already present.
        """
        sku = clean_identifier(sku, "sku")
        item = Item(
            sku=sku,
            name=(name or "").strip(),
            description=(description or "").strip(),
            created_at=self._clock.now(),
        )
        self._add_unique(item, lambda: ItemExistsError(sku))
        logger.info("item_created", extra={"sku": sku, "item_id": str(item.id)})
        self._audit(
            AuditAction.ITEM_CREATED, "Item", item.id, sku,
            {"name": item.name, "description": item.description},
        )
        return self._item_dto(item)

    def get_item(self, sku: str) -> ItemInfo:
        return self._item_dto(self.require_item(sku))

    def list_items(self, limit: int | None = DEFAULT_LIST_LIMIT) -> list[ItemInfo]:
        rows = self.session.execute(
            select(Item).order_by(Item.sku).limit(normalize_list_limit(limit))
        ).scalars().all()
        return [self._item_dto(i) for i in rows]

    def update_item_description(self, sku: str, description: str) -> ItemInfo:
        """Change the description; the only field editable after first use."""
        item = self.require_item(sku)
        item.description = (description or "").strip()
        self.session.flush()
        logger.info("item_updated", extra={"sku": item.sku})
        self._audit(
            AuditAction.ITEM_UPDATED, "Item", item.id, item.sku,
            {"description": item.description},
        )
        return self._item_dto(item)

    def rename_item(self, sku: str, name: str) -> ItemInfo:
        """
        Change the display name.

        Raises:
            ImmutabilityViolationError: the item already has movements or
                order lines.
        """
        item = self.require_item(sku)
        # The identity listener raises inside the flush; the savepoint
        # keeps the caller's transaction usable afterwards.
        with self.session.begin_nested():
            item.name = (name or "").strip()
            self.session.flush()
        logger.info("item_renamed", extra={"sku": item.sku})
        self._audit(AuditAction.ITEM_UPDATED, "Item", item.id, item.sku, {"name": item.name})
        return self._item_dto(item)

    def delete_item(self, sku: str) -> ItemInfo:
        """
        Delete an unreferenced item.

        Raises:
            ItemReferencedError: movements, order lines or bins use it.
        """
        item = self.require_item(sku)
        reason = item_reference_reason(self.session.connection(), item.id)
        if reason is not None:
            logger.warning("item_delete_refused", extra={"sku": item.sku, "reason": reason})
            raise ItemReferencedError(item.sku, reason)
        info = self._item_dto(item)
        self._audit(AuditAction.ITEM_DELETED, "Item", item.id, item.sku)
        self.session.delete(item)
        self.session.flush()
        logger.info("item_deleted", extra={"sku": info.sku})
        return info

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def create_location(self, code: str, name: str = "") -> LocationInfo:
        """
        Create a location.

        Raises:
            InvalidIdentifierError: empty code.
            LocationExistsError: code already present.
        """
        code = clean_identifier(code, "location code")
        location = Location(code=code, name=(name or "").strip(), created_at=self._clock.now())
        self._add_unique(location, lambda: LocationExistsError(code))
        logger.info(
            "location_created",
            extra={"location_code": code, "location_id": str(location.id)},
        )
        self._audit(
            AuditAction.LOCATION_CREATED, "Location", location.id, code,
            {"name": location.name},
        )
        return self._location_dto(location)

    def get_location(self, code: str) -> LocationInfo:
        return self._location_dto(self.require_location(code))

    def list_locations(self, limit: int | None = DEFAULT_LIST_LIMIT) -> list[LocationInfo]:
        rows = self.session.execute(
            select(Location).order_by(Location.code).limit(normalize_list_limit(limit))
        ).scalars().all()
        return [self._location_dto(loc) for loc in rows]

    def delete_location(self, code: str) -> LocationInfo:
        """
        Delete an unreferenced location.

        Raises:
            LocationReferencedError: movements, order lines, zones or bins
                use it.
        """
        location = self.require_location(code)
        reason = location_reference_reason(self.session.connection(), location.id)
        if reason is not None:
            logger.warning(
                "location_delete_refused",
                extra={"location_code": location.code, "reason": reason},
            )
            raise LocationReferencedError(location.code, reason)
        info = self._location_dto(location)
        self._audit(AuditAction.LOCATION_DELETED, "Location", location.id, location.code)
        self.session.delete(location)
        self.session.flush()
        logger.info("location_deleted", extra={"location_code": info.code})
        return info
