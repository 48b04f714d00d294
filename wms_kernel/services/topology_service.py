"""
TopologyService -- zones, bins and which items each bin stores.

Responsibility:
    Creates, lists and deletes zones and bins inside a location, and
    maintains the item-to-bin assignment that picking uses to suggest a
    bin for each task.

Architecture position:
    Kernel > Services -- imperative shell.  Available when the
    ``topology`` capability is enabled.

Invariants enforced:
    - Zone and bin codes are unique per location (UNIQUE constraints).
    - A bin is never deleted while items are assigned to it.
    - A zone is never deleted while it has bins.
    - Assigning an item that is already in the bin, or unassigning one
      that is not, changes nothing.

Failure modes:
    - InvalidIdentifierError, LocationNotFoundError, ZoneNotFoundError,
      BinNotFoundError, ItemNotFoundError.
    - ZoneExistsError, BinExistsError.
    - ZoneNotEmptyError, BinNotEmptyError carrying the blocking count.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wms_kernel.domain.clock import Clock
from wms_kernel.domain.dtos import BinInfo, ItemInfo, ZoneInfo
from wms_kernel.exceptions import (
    BinExistsError,
    BinNotEmptyError,
    BinNotFoundError,
    ZoneExistsError,
    ZoneNotEmptyError,
    ZoneNotFoundError,
)
from wms_kernel.logging_config import get_logger
from wms_kernel.models.audit_event import AuditAction
from wms_kernel.models.catalog import Item, Location
from wms_kernel.models.topology import Bin, Zone, bin_items
from wms_kernel.services.auditor_service import AuditorService
from wms_kernel.services.base import BaseService, clean_identifier
from wms_kernel.services.catalog_service import (
    DEFAULT_LIST_LIMIT,
    CatalogService,
    normalize_list_limit,
)

logger = get_logger("services.topology")


class TopologyService(BaseService[Bin]):
    """Service for zones and bins."""

    def __init__(
        self,
        session: Session,
        catalog: CatalogService | None = None,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
    ):
        super().__init__(session, clock, auditor)
        self._catalog = catalog or CatalogService(session, self._clock)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _zone(self, location: Location, zone_code: str) -> Zone:
        zone_code = clean_identifier(zone_code, "zone code")
        zone = self.session.execute(
            select(Zone).where(Zone.location_id == location.id, Zone.code == zone_code)
        ).scalar_one_or_none()
        if zone is None:
            raise ZoneNotFoundError(location.code, zone_code)
        return zone

    def _bin(self, location: Location, bin_code: str) -> Bin:
        bin_code = clean_identifier(bin_code, "bin code")
        found = self.session.execute(
            select(Bin).where(Bin.location_id == location.id, Bin.code == bin_code)
        ).scalar_one_or_none()
        if found is None:
            raise BinNotFoundError(location.code, bin_code)
        return found

    @staticmethod
    def _zone_dto(zone: Zone, location: Location) -> ZoneInfo:
        return ZoneInfo(id=zone.id, location_code=location.code, code=zone.code, name=zone.name)

    @staticmethod
    def _bin_dto(found: Bin, location: Location, zone: Zone) -> BinInfo:
        return BinInfo(
            id=found.id,
            location_code=location.code,
            zone_code=zone.code,
            code=found.code,
            name=found.name,
        )

    # ------------------------------------------------------------------
    # Zones
    # ------------------------------------------------------------------

    def create_zone(self, location_code: str, zone_code: str, name: str = "") -> ZoneInfo:
        zone_code = clean_identifier(zone_code, "zone code")
        location = self._catalog.require_location(location_code)
        zone = Zone(
            location_id=location.id,
            code=zone_code,
            name=(name or "").strip(),
            created_at=self._clock.now(),
        )
        self._add_unique(zone, lambda: ZoneExistsError(location.code, zone_code))
        logger.info(
            "zone_created",
            extra={"location_code": location.code, "zone_code": zone_code},
        )
        self._audit(
            AuditAction.ZONE_CREATED, "Zone", zone.id, f"{location.code}/{zone_code}",
            {"name": zone.name},
        )
        return self._zone_dto(zone, location)

    def list_zones(
        self, location_code: str, limit: int | None = DEFAULT_LIST_LIMIT
    ) -> list[ZoneInfo]:
        location = self._catalog.require_location(location_code)
        zones = self.session.execute(
            select(Zone)
            .where(Zone.location_id == location.id)
            .order_by(Zone.code)
            .limit(normalize_list_limit(limit))
        ).scalars().all()
        return [self._zone_dto(z, location) for z in zones]

    def delete_zone(self, location_code: str, zone_code: str) -> ZoneInfo:
        """
        Delete an empty zone.

        Raises:
            ZoneNotEmptyError: bins still belong to the zone.
        """
        location = self._catalog.require_location(location_code)
        zone = self._zone(location, zone_code)
        bin_count = self.session.execute(
            select(func.count()).select_from(Bin).where(Bin.zone_id == zone.id)
        ).scalar_one()
        if bin_count > 0:
            logger.warning(
                "zone_delete_refused",
                extra={"zone_code": zone.code, "bin_count": bin_count},
            )
            raise ZoneNotEmptyError(zone.code, bin_count)

        info = self._zone_dto(zone, location)
        self._audit(AuditAction.ZONE_DELETED, "Zone", zone.id, f"{location.code}/{zone.code}")
        self.session.delete(zone)
        self.session.flush()
        logger.info("zone_deleted", extra={"location_code": location.code, "zone_code": info.code})
        return info

    # ------------------------------------------------------------------
    # Bins
    # ------------------------------------------------------------------

    def create_bin(
        self,
        location_code: str,
        zone_code: str,
        bin_code: str,
        name: str = "",
    ) -> BinInfo:
        bin_code = clean_identifier(bin_code, "bin code")
        location = self._catalog.require_location(location_code)
        zone = self._zone(location, zone_code)
        new_bin = Bin(
            location_id=location.id,
            zone_id=zone.id,
            code=bin_code,
            name=(name or "").strip(),
            created_at=self._clock.now(),
        )
        self._add_unique(new_bin, lambda: BinExistsError(location.code, bin_code))
        logger.info(
            "bin_created",
            extra={
                "location_code": location.code,
                "zone_code": zone.code,
                "bin_code": bin_code,
            },
        )
        self._audit(
            AuditAction.BIN_CREATED, "Bin", new_bin.id, f"{location.code}/{bin_code}",
            {"zone_code": zone.code, "name": new_bin.name},
        )
        return self._bin_dto(new_bin, location, zone)

    def list_bins(
        self,
        location_code: str,
        zone_code: str | None = None,
        limit: int | None = DEFAULT_LIST_LIMIT,
    ) -> list[BinInfo]:
        """Bins of a location ordered by code, optionally only one zone's."""
        location = self._catalog.require_location(location_code)
        query = (
            select(Bin, Zone)
            .join(Zone, Zone.id == Bin.zone_id)
            .where(Bin.location_id == location.id)
        )
        if zone_code and zone_code.strip():
            query = query.where(Zone.code == zone_code.strip())
        rows = self.session.execute(
            query.order_by(Bin.code).limit(normalize_list_limit(limit))
        ).all()
        return [self._bin_dto(b, location, z) for b, z in rows]

    def assign_item(self, location_code: str, bin_code: str, sku: str) -> BinInfo:
        """Record that ``sku`` is stored in the bin."""
        location = self._catalog.require_location(location_code)
        found = self._bin(location, bin_code)
        item = self._catalog.require_item(sku)
        if item not in found.items:
            found.items.append(item)
            self.session.flush()
            logger.info(
                "bin_item_assigned",
                extra={"location_code": location.code, "bin_code": found.code, "sku": item.sku},
            )
            self._audit(
                AuditAction.BIN_ITEM_ASSIGNED, "Bin", found.id, f"{location.code}/{found.code}",
                {"sku": item.sku},
            )
        return self._bin_dto(found, location, found.zone)

    def unassign_item(self, location_code: str, bin_code: str, sku: str) -> BinInfo:
        location = self._catalog.require_location(location_code)
        found = self._bin(location, bin_code)
        item = self._catalog.require_item(sku)
        if item in found.items:
            found.items.remove(item)
            self.session.flush()
            logger.info(
                "bin_item_unassigned",
                extra={"location_code": location.code, "bin_code": found.code, "sku": item.sku},
            )
            self._audit(
                AuditAction.BIN_ITEM_UNASSIGNED, "Bin", found.id, f"{location.code}/{found.code}",
                {"sku": item.sku},
            )
        return self._bin_dto(found, location, found.zone)

    def items_in_bin(
        self,
        location_code: str,
        bin_code: str,
        limit: int | None = DEFAULT_LIST_LIMIT,
    ) -> list[ItemInfo]:
        """Items assigned to the bin, ordered by SKU."""
        location = self._catalog.require_location(location_code)
        found = self._bin(location, bin_code)
        items = self.session.execute(
            select(Item)
            .join(bin_items, bin_items.c.item_id == Item.id)
            .where(bin_items.c.bin_id == found.id)
            .order_by(Item.sku)
            .limit(normalize_list_limit(limit))
        ).scalars().all()
        return [
            ItemInfo(id=i.id, sku=i.sku, name=i.name, description=i.description)
            for i in items
        ]

    def delete_bin(self, location_code: str, bin_code: str) -> BinInfo:
        """
        Delete a bin with no items assigned.

        Pick tasks that pointed at the bin keep working; their bin is
        cleared by the foreign key's ON DELETE SET NULL.

        Raises:
            BinNotEmptyError: items are still assigned.
        """
        location = self._catalog.require_location(location_code)
        found = self._bin(location, bin_code)
        item_count = self.session.execute(
            select(func.count()).select_from(bin_items).where(bin_items.c.bin_id == found.id)
        ).scalar_one()
        if item_count > 0:
            logger.warning(
                "bin_delete_refused",
                extra={"bin_code": found.code, "item_count": item_count},
            )
            raise BinNotEmptyError(found.code, item_count)

        info = self._bin_dto(found, location, found.zone)
        self._audit(AuditAction.BIN_DELETED, "Bin", found.id, f"{location.code}/{found.code}")
        self.session.delete(found)
        self.session.flush()
        logger.info("bin_deleted", extra={"location_code": location.code, "bin_code": info.code})
        return info
