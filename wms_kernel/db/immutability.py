"""
ORM-Level Immutability Enforcement (Layer 1 of 2).

===============================================================================
WHY THIS EXISTS
===============================================================================

Stock quantities are never stored; they are summed from the movement log.
If a movement could be edited or deleted, every balance derived from it
would silently change and the link between an order and the stock it moved
would be lost.

  Layer 1: THIS FILE (ORM event listeners)
    - Catches modifications made through SQLAlchemy sessions
    - Fires BEFORE the SQL is sent to the database

  Layer 2: db/sql/*.sql (PostgreSQL triggers)
    - Catches raw SQL and bulk statements
    - Installed by db/triggers.py on PostgreSQL only

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable                          | Why
----------------|-----------------------------------------|------------------------------
StockMovement   | ALWAYS (from creation)                  | Balances are derived from it
AuditEvent      | ALWAYS (from creation)                  | Hash chain
Item            | sku/name once referenced by movements   | History would be relabelled
                | or order lines                          |
Item (delete)   | Once referenced by movements, lines     | Dangling ledger rows
                | or bin assignments                      |
Location        | Delete once referenced                  | Dangling ledger rows

updated_at is metadata and may always change.

===============================================================================
USAGE
===============================================================================

    from wms_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that need to bypass the listeners:

    unregister_immutability_listeners()
    ...
    register_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, exists, inspect, select
from sqlalchemy.orm import Session

from wms_kernel.exceptions import (
    ImmutabilityViolationError,
    ItemReferencedError,
    LocationReferencedError,
)
from wms_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

ITEM_IDENTITY_FIELDS = frozenset({"sku", "name"})


def _log_blocked(entity_type: str, entity_id, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )


# =============================================================================
# Always-immutable records
# =============================================================================


def _check_stock_movement_update(mapper, connection, target):
    """Stock movements are never updated."""
    _log_blocked("StockMovement", target.id, "UPDATE", "ledger_append_only")
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Stock movements are append-only and cannot be modified",
    )


def _check_stock_movement_delete(mapper, connection, target):
    """Stock movements are never deleted."""
    _log_blocked("StockMovement", target.id, "DELETE", "ledger_append_only")
    raise ImmutabilityViolationError(
        entity_type="StockMovement",
        entity_id=str(target.id),
        reason="Stock movements are append-only and cannot be deleted",
    )


def _check_audit_event_update(mapper, connection, target):
    _log_blocked("AuditEvent", target.id, "UPDATE", "audit_append_only")
    raise ImmutabilityViolationError(
        entity_type="AuditEvent",
        entity_id=str(target.id),
        reason="Audit events are immutable and cannot be modified",
    )


def _check_audit_event_delete(mapper, connection, target):
    _log_blocked("AuditEvent", target.id, "DELETE", "audit_append_only")
    raise ImmutabilityViolationError(
        entity_type="AuditEvent",
        entity_id=str(target.id),
        reason="Audit events cannot be deleted",
    )


# =============================================================================
# Catalog records
# =============================================================================
#
# Items carry identity fields (sku, name) that label every historical
# movement.  Before first use they can be edited freely; once a movement or
# order line points at the item only the description may change.
# =============================================================================


def item_reference_reason(connection, item_id) -> str | None:
    """Return why the item is in use, or None when it is not referenced."""
    from wms_kernel.models.order import OrderLine
    from wms_kernel.models.stock_movement import StockMovement
    from wms_kernel.models.topology import bin_items

    checks = (
        ("item has stock movements", StockMovement.item_id),
        ("item is used by order lines", OrderLine.item_id),
        ("item is assigned to bins", bin_items.c.item_id),
    )
    for reason, column in checks:
        if connection.execute(select(exists().where(column == item_id))).scalar():
            return reason
    return None


def location_reference_reason(connection, location_id) -> str | None:
    from wms_kernel.models.order import OrderLine
    from wms_kernel.models.stock_movement import StockMovement
    from wms_kernel.models.topology import Bin, Zone

    checks = (
        ("location has stock movements", StockMovement.location_id),
        ("location is used by order lines", OrderLine.location_id),
        ("location has zones", Zone.location_id),
        ("location has bins", Bin.location_id),
    )
    for reason, column in checks:
        if connection.execute(select(exists().where(column == location_id))).scalar():
            return reason
    return None


def _check_item_identity_immutability(mapper, connection, target):
    """Block sku/name changes on items that the ledger or orders refer to."""
    state = inspect(target)
    changed = {
        name
        for name in ITEM_IDENTITY_FIELDS
        if state.attrs[name].history.has_changes()
    }
    if not changed:
        return

    reason = item_reference_reason(connection, target.id)
    # Bin assignments alone do not freeze the label
    if reason is None or reason == "item is assigned to bins":
        return

    _log_blocked("Item", target.id, "UPDATE", f"identity_fields_frozen:{sorted(changed)}")
    raise ImmutabilityViolationError(
        entity_type="Item",
        entity_id=str(target.id),
        reason=f"Fields {sorted(changed)} are immutable once the item is referenced",
    )


def _check_catalog_deletion_before_flush(session, flush_context, instances):
    """
    Refuse deletion of referenced items and locations.

    Runs in before_flush, before the flush plan is fixed; mapper-level
    before_delete fires too late to stop cascades cleanly.
    """
    from wms_kernel.models.catalog import Item, Location

    for obj in list(session.deleted):
        if isinstance(obj, Item):
            with session.no_autoflush:
                reason = item_reference_reason(session.connection(), obj.id)
            if reason is not None:
                _log_blocked("Item", obj.id, "DELETE", reason)
                raise ItemReferencedError(sku=obj.sku, reason=reason)
        elif isinstance(obj, Location):
            with session.no_autoflush:
                reason = location_reference_reason(session.connection(), obj.id)
            if reason is not None:
                _log_blocked("Location", obj.id, "DELETE", reason)
                raise LocationReferencedError(location_code=obj.code, reason=reason)


# =============================================================================
# Registration
# =============================================================================


def _listener_table():
    from wms_kernel.models.audit_event import AuditEvent
    from wms_kernel.models.catalog import Item
    from wms_kernel.models.stock_movement import StockMovement

    return (
        (Session, "before_flush", _check_catalog_deletion_before_flush),
        (StockMovement, "before_update", _check_stock_movement_update),
        (StockMovement, "before_delete", _check_stock_movement_delete),
        (AuditEvent, "before_update", _check_audit_event_update),
        (AuditEvent, "before_delete", _check_audit_event_delete),
        (Item, "before_update", _check_item_identity_immutability),
    )


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that deliberately violate the rules.
    """
    for target, event_name, listener_fn in _listener_table():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
    logger.debug("immutability_listeners_unregistered")
