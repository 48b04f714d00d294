"""
Typed Exception Hierarchy for the Warehouse Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Warehouse operators act on failures: a short pick, a duplicate order number,
a bin that still holds stock. Generic exceptions like ValueError force
callers to parse message text, which is fragile and hard to test.

Every error in this module:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, CLI/API-safe)
  3. Carries structured DATA (sku, order number, quantities)

Example - WRONG way to handle errors:
    try:
        orders.post_order("O-1001")
    except Exception as e:
        if "insufficient" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        orders.post_order("O-1001")
    except InsufficientStockError as e:
        print(f"{e.sku} at {e.location_code}: need {e.requested}, have {e.available}")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WMSKernelError (base)
    |
    +-- NotFoundError
    |   +-- ItemNotFoundError
    |   +-- LocationNotFoundError
    |   +-- ZoneNotFoundError
    |   +-- BinNotFoundError
    |   +-- OrderNotFoundError
    |   +-- PickListNotFoundError
    |   +-- PickTaskNotFoundError
    |
    +-- ValidationError
    |   +-- InvalidIdentifierError
    |   +-- InvalidQuantityError
    |   +-- InvalidOrderTypeError
    |   +-- NoLinesError
    |
    +-- ConflictError
    |   +-- ItemExistsError
    |   +-- LocationExistsError
    |   +-- ZoneExistsError
    |   +-- BinExistsError
    |   +-- OrderExistsError
    |   +-- PickListExistsError
    |   +-- ItemReferencedError
    |   +-- LocationReferencedError
    |   +-- BinNotEmptyError
    |   +-- ZoneNotEmptyError
    |   +-- InvalidStatusTransitionError
    |   +-- PickTasksOpenError
    |
    +-- InsufficientStockError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- AuditError
    |   +-- AuditChainBrokenError
    |
    +-- CapabilityDisabledError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | ITEM_NOT_FOUND              | SKU doesn't exist
                | LOCATION_NOT_FOUND          | Location code doesn't exist
                | ZONE_NOT_FOUND              | Zone code doesn't exist at location
                | BIN_NOT_FOUND               | Bin code doesn't exist at location
                | ORDER_NOT_FOUND             | Order number doesn't exist
                | PICK_LIST_NOT_FOUND         | Picklist id doesn't exist
                | PICK_TASK_NOT_FOUND         | Pick task id doesn't exist
----------------|-----------------------------|-----------------------------------------
Validation      | INVALID_IDENTIFIER          | Empty SKU / code / order number
                | INVALID_QUANTITY            | Quantity <= 0
                | INVALID_ORDER_TYPE          | Not INBOUND / OUTBOUND
                | NO_LINES                    | Posting an order without lines
----------------|-----------------------------|-----------------------------------------
Conflict        | ITEM_EXISTS                 | Duplicate SKU
                | LOCATION_EXISTS             | Duplicate location code
                | ZONE_EXISTS                 | Duplicate zone code at location
                | BIN_EXISTS                  | Duplicate bin code at location
                | ORDER_EXISTS                | Duplicate order number
                | PICK_LIST_EXISTS            | Second picklist for one order
                | ITEM_REFERENCED             | Deleting an item in use
                | LOCATION_REFERENCED         | Deleting a location in use
                | BIN_NOT_EMPTY               | Deleting a bin with items assigned
                | ZONE_NOT_EMPTY              | Deleting a zone that has bins
                | INVALID_STATUS_TRANSITION   | Operation not allowed in current status
                | PICK_TASKS_OPEN             | Finishing a picklist with open tasks
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | OUT would drive the balance negative
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying a movement / audit record
----------------|-----------------------------|-----------------------------------------
Audit           | AUDIT_CHAIN_BROKEN          | Hash chain validation failed
----------------|-----------------------------|-----------------------------------------
Composition     | CAPABILITY_DISABLED         | Optional feature not enabled in config

===============================================================================
HANDLING PATTERNS
===============================================================================

1. CATCH SPECIFIC EXCEPTIONS, FALL BACK TO THE CATEGORY:

    try:
        picking.done_pick_list(pick_list_id)
    except PickTasksOpenError as e:
        print(f"{e.open_count} task(s) still open")
    except ConflictError as e:
        print(f"cannot finish: {e.code}")

2. USE STRUCTURED DATA (not message parsing):

    except InsufficientStockError as e:
        return {"error": e.code, "sku": e.sku, "available": e.available}

3. NOTHING IS RETRIED BY THE KERNEL. Retry policy (e.g. re-posting after a
   replenishment) belongs to the caller.

===============================================================================
"""


class WMSKernelError(Exception):
    """
    Base exception for all warehouse kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WMS_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(WMSKernelError):
    """Base exception for references to entities that do not exist."""

    code: str = "NOT_FOUND"


class ItemNotFoundError(NotFoundError):
    """Item with given SKU was not found."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Item not found: {sku}")


class LocationNotFoundError(NotFoundError):
    """Location with given code was not found."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_code: str):
        self.location_code = location_code
        super().__init__(f"Location not found: {location_code}")


class ZoneNotFoundError(NotFoundError):
    """Zone code does not exist at the location."""

    code: str = "ZONE_NOT_FOUND"

    def __init__(self, location_code: str, zone_code: str):
        self.location_code = location_code
        self.zone_code = zone_code
        super().__init__(f"Zone not found: {zone_code} at location {location_code}")


class BinNotFoundError(NotFoundError):
    """Bin code does not exist at the location."""

    code: str = "BIN_NOT_FOUND"

    def __init__(self, location_code: str, bin_code: str):
        self.location_code = location_code
        self.bin_code = bin_code
        super().__init__(f"Bin not found: {bin_code} at location {location_code}")


class OrderNotFoundError(NotFoundError):
    """Order with given number was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order not found: {order_number}")


class PickListNotFoundError(NotFoundError):
    """Picklist with given id was not found."""

    code: str = "PICK_LIST_NOT_FOUND"

    def __init__(self, pick_list_id: str):
        self.pick_list_id = pick_list_id
        super().__init__(f"Picklist not found: {pick_list_id}")


class PickTaskNotFoundError(NotFoundError):
    """Pick task with given id was not found."""

    code: str = "PICK_TASK_NOT_FOUND"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Pick task not found: {task_id}")


# Validation exceptions


class ValidationError(WMSKernelError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"


class InvalidIdentifierError(ValidationError):
    """An identifier (SKU, code, order number) is empty after trimming."""

    code: str = "INVALID_IDENTIFIER"

    def __init__(self, field: str, value: str | None = None):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}: {value!r} (must be non-empty)")


class InvalidQuantityError(ValidationError):
    """Quantity is not strictly positive."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(f"Invalid quantity: {quantity} (must be > 0)")


class InvalidOrderTypeError(ValidationError):
    """Order type is not INBOUND or OUTBOUND."""

    code: str = "INVALID_ORDER_TYPE"

    def __init__(self, order_type: str):
        self.order_type = order_type
        super().__init__(
            f"Invalid order type: {order_type!r} (expected INBOUND or OUTBOUND)"
        )


class NoLinesError(ValidationError):
    """Order has no lines to post."""

    code: str = "NO_LINES"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order {order_number} has no lines")


# Conflict exceptions


class ConflictError(WMSKernelError):
    """Base exception for operations that collide with existing state."""

    code: str = "CONFLICT"


class ItemExistsError(ConflictError):
    """An item with the SKU already exists."""

    code: str = "ITEM_EXISTS"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Item already exists: {sku}")


class LocationExistsError(ConflictError):
    """A location with the code already exists."""

    code: str = "LOCATION_EXISTS"

    def __init__(self, location_code: str):
        self.location_code = location_code
        super().__init__(f"Location already exists: {location_code}")


class ZoneExistsError(ConflictError):
    """Zone code already used at the location."""

    code: str = "ZONE_EXISTS"

    def __init__(self, location_code: str, zone_code: str):
        self.location_code = location_code
        self.zone_code = zone_code
        super().__init__(
            f"Zone already exists: {zone_code} at location {location_code}"
        )


class BinExistsError(ConflictError):
    """Bin code already used at the location."""

    code: str = "BIN_EXISTS"

    def __init__(self, location_code: str, bin_code: str):
        self.location_code = location_code
        self.bin_code = bin_code
        super().__init__(
            f"Bin already exists: {bin_code} at location {location_code}"
        )


class OrderExistsError(ConflictError):
    """An order with the number already exists."""

    code: str = "ORDER_EXISTS"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order already exists: {order_number}")


class PickListExistsError(ConflictError):
    """The order already has a picklist."""

    code: str = "PICK_LIST_EXISTS"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Picklist already exists for order {order_number}")


class ItemReferencedError(ConflictError):
    """Item is referenced by movements, order lines or bins."""

    code: str = "ITEM_REFERENCED"

    def __init__(self, sku: str, reason: str = "item is referenced"):
        self.sku = sku
        self.reason = reason
        super().__init__(f"Cannot delete item {sku}: {reason}")


class LocationReferencedError(ConflictError):
    """Location is referenced by movements, order lines, zones or bins."""

    code: str = "LOCATION_REFERENCED"

    def __init__(self, location_code: str, reason: str = "location is referenced"):
        self.location_code = location_code
        self.reason = reason
        super().__init__(f"Cannot delete location {location_code}: {reason}")


class BinNotEmptyError(ConflictError):
    """Bin still has items assigned."""

    code: str = "BIN_NOT_EMPTY"

    def __init__(self, bin_code: str, item_count: int):
        self.bin_code = bin_code
        self.item_count = item_count
        super().__init__(
            f"Cannot delete bin {bin_code}: {item_count} item(s) still assigned"
        )


class ZoneNotEmptyError(ConflictError):
    """Zone still has bins."""

    code: str = "ZONE_NOT_EMPTY"

    def __init__(self, zone_code: str, bin_count: int):
        self.zone_code = zone_code
        self.bin_count = bin_count
        super().__init__(
            f"Cannot delete zone {zone_code}: {bin_count} bin(s) still exist"
        )


class InvalidStatusTransitionError(ConflictError):
    """
    Operation attempted from a status that does not permit it.

    Covers double-post, post-after-cancel, adding lines to a posted order,
    starting a picklist twice and double-picking a task.
    """

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_status: str,
        attempted: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_status = current_status
        self.attempted = attempted
        super().__init__(
            f"Cannot {attempted} {entity_type} {entity_id}: "
            f"status is {current_status}"
        )


class PickTasksOpenError(ConflictError):
    """Picklist cannot be finished while tasks remain OPEN."""

    code: str = "PICK_TASKS_OPEN"

    def __init__(self, pick_list_id: str, open_count: int):
        self.pick_list_id = pick_list_id
        self.open_count = open_count
        super().__init__(
            f"Cannot finish picklist {pick_list_id}: "
            f"{open_count} task(s) still OPEN"
        )


# Stock exceptions


class InsufficientStockError(WMSKernelError):
    """An OUT movement would drive the balance below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, sku: str, location_code: str, requested: int, available: int):
        self.sku = sku
        self.location_code = location_code
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {sku} at {location_code}: "
            f"requested {requested}, available {available}"
        )


# Immutability exceptions


class ImmutabilityError(WMSKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Stock movements and audit events are immutable from creation. Item
    SKU and name are immutable once referenced.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Audit exceptions


class AuditError(WMSKernelError):
    """Base exception for audit trail errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, audit_event_id: str, expected_hash: str, actual_hash: str):
        self.audit_event_id = audit_event_id
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at {audit_event_id}: "
            f"expected {expected_hash}, found {actual_hash}"
        )


# Composition exceptions


class CapabilityDisabledError(WMSKernelError):
    """An optional capability was requested but is not enabled."""

    code: str = "CAPABILITY_DISABLED"

    def __init__(self, capability: str):
        self.capability = capability
        super().__init__(
            f"Capability '{capability}' is not enabled in the active configuration"
        )
