"""
OrderService -- the order state machine and posting.

Responsibility:
    Creates orders, adds lines while they are DRAFT, posts them to the
    stock ledger and cancels them.  Posting is the only order operation
    that writes stock movements.

Architecture position:
    Kernel > Services -- imperative shell.
    Uses CatalogService to resolve lines and StockLedgerService to write
    movements.

Invariants enforced:
    - DRAFT -> POSTED and DRAFT -> CANCELLED are the only transitions.
    - order_type is fixed at creation.
    - Lines are only added while DRAFT.
    - Posting is all-or-nothing: every line's movement and the POSTED
      status are written inside one savepoint.  Any failure rolls the
      savepoint back, leaving zero movements and a DRAFT order.
    - The order row is locked FOR UPDATE for add_line, post and cancel, so
      an order is never posted twice or posted and cancelled concurrently.
    - Posting locks the affected item rows in SKU order before the first
      write.

Failure modes:
    - InvalidOrderTypeError, InvalidIdentifierError, InvalidQuantityError.
    - OrderExistsError from the UNIQUE constraint on order_number.
    - OrderNotFoundError, ItemNotFoundError, LocationNotFoundError.
    - InvalidStatusTransitionError when the order is not DRAFT.
    - NoLinesError when posting an order without lines.
    - InsufficientStockError from an OUTBOUND line; the whole post is
      rolled back.
"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from wms_kernel.domain.clock import Clock
from wms_kernel.domain.dtos import OrderInfo, OrderLineInfo, PostingResult
from wms_kernel.exceptions import (
    InvalidOrderTypeError,
    InvalidStatusTransitionError,
    NoLinesError,
    OrderExistsError,
    OrderNotFoundError,
)
from wms_kernel.logging_config import LogContext, get_logger
from wms_kernel.models.audit_event import AuditAction
from wms_kernel.models.order import Order, OrderLine, OrderStatus, OrderType
from wms_kernel.selectors.order_selector import order_to_info
from wms_kernel.services.auditor_service import AuditorService
from wms_kernel.services.base import BaseService, clean_identifier, require_positive
from wms_kernel.services.catalog_service import CatalogService
from wms_kernel.services.stock_ledger import StockLedgerService

logger = get_logger("services.order")

REFERENCE_PREFIX = "ORDER-"


def parse_order_type(order_type: str | None) -> OrderType:
    """Case-insensitive INBOUND / OUTBOUND."""
    normalized = (order_type or "").strip().upper()
    try:
        return OrderType(normalized)
    except ValueError:
        raise InvalidOrderTypeError(order_type) from None


def posting_reference(order_number: str) -> str:
    return f"{REFERENCE_PREFIX}{order_number}"


class OrderService(BaseService[Order]):
    """
    Service for the order lifecycle.

    Contract:
        Every public method runs inside the caller's transaction and
        returns a frozen DTO.  ``post_order`` returns a PostingResult with
        one movement id per line.

    Non-goals:
        - Does NOT commit.
        - Does NOT create picklists (see PickingService).
    """

    def __init__(
        self,
        session: Session,
        catalog: CatalogService | None = None,
        ledger: StockLedgerService | None = None,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
    ):
        super().__init__(session, clock, auditor)
        self._catalog = catalog or CatalogService(session, self._clock)
        self._ledger = ledger or StockLedgerService(session, self._catalog, self._clock)

    def _lock_order(self, order_number: str) -> Order:
        order_number = clean_identifier(order_number, "order number")
        order = self.session.execute(
            select(Order)
            .where(Order.order_number == order_number)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_number)
        return order

    def _require_draft(
        self, order: Order, attempted: str, target: OrderStatus | None = None
    ) -> None:
        """Lines need a DRAFT order; status changes follow VALID_TRANSITIONS."""
        allowed = order.is_draft if target is None else order.can_transition_to(target)
        if not allowed:
            logger.warning(
                "order_transition_rejected",
                extra={
                    "order_number": order.order_number,
                    "status": order.status,
                    "attempted": attempted,
                },
            )
            raise InvalidStatusTransitionError(
                "order", order.order_number, order.status, attempted
            )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(self, order_number: str, order_type: str) -> OrderInfo:
        """
        Create a DRAFT order.

        Raises:
            InvalidIdentifierError: empty order number.
            InvalidOrderTypeError: type is not INBOUND or OUTBOUND.
            OrderExistsError: order number already used.
        """
        order_number = clean_identifier(order_number, "order number")
        kind = parse_order_type(order_type)
        order = Order(
            order_number=order_number,
            order_type=kind.value,
            status=OrderStatus.DRAFT.value,
            created_at=self._clock.now(),
        )
        self._add_unique(order, lambda: OrderExistsError(order_number))
        logger.info(
            "order_created",
            extra={"order_number": order_number, "order_type": kind.value},
        )
        self._audit(
            AuditAction.ORDER_CREATED, "Order", order.id, order_number,
            {"order_type": kind.value},
        )
        return order_to_info(order)

    def add_line(
        self,
        order_number: str,
        sku: str,
        location_code: str,
        quantity: int,
    ) -> OrderLineInfo:
        """
        Append a line to a DRAFT order.  No stock check.

        Raises:
            OrderNotFoundError, InvalidStatusTransitionError,
            InvalidQuantityError, ItemNotFoundError, LocationNotFoundError.
        """
        order = self._lock_order(order_number)
        self._require_draft(order, "add line to")
        require_positive(quantity)
        item = self._catalog.require_item(sku)
        location = self._catalog.require_location(location_code)

        last_line_no = self.session.execute(
            select(func.coalesce(func.max(OrderLine.line_no), 0)).where(
                OrderLine.order_id == order.id
            )
        ).scalar_one()

        line = OrderLine(
            line_no=last_line_no + 1,
            item=item,
            location=location,
            quantity=quantity,
            created_at=self._clock.now(),
        )
        order.lines.append(line)
        self.session.flush()

        logger.info(
            "order_line_added",
            extra={
                "order_number": order.order_number,
                "line_no": line.line_no,
                "sku": item.sku,
                "location_code": location.code,
                "quantity": quantity,
            },
        )
        self._audit(
            AuditAction.ORDER_LINE_ADDED, "Order", order.id, order.order_number,
            {
                "line_no": line.line_no,
                "sku": item.sku,
                "location_code": location.code,
                "quantity": quantity,
            },
        )
        return OrderLineInfo(
            id=line.id,
            line_no=line.line_no,
            sku=item.sku,
            location_code=location.code,
            quantity=quantity,
        )

    def post_order(self, order_number: str) -> PostingResult:
        """
        Post a DRAFT order to the stock ledger.

        INBOUND lines become IN movements, OUTBOUND lines OUT movements,
        all with reference ``ORDER-<order_number>``.

        Preconditions:
            - The order exists, is DRAFT and has at least one line.

        Postconditions:
            - On success: exactly one movement per line, status POSTED,
              posted_at set.
            - On failure: no movement, status DRAFT, the original error
              is re-raised.
        """
        order = self._lock_order(order_number)
        self._require_draft(order, "post", OrderStatus.POSTED)
        lines = list(order.lines)
        if not lines:
            logger.warning("order_has_no_lines", extra={"order_number": order.order_number})
            raise NoLinesError(order.order_number)

        reference = posting_reference(order.order_number)
        outbound = order.order_type == OrderType.OUTBOUND.value

        with LogContext.bind(order_number=order.order_number):
            try:
                with self.session.begin_nested():
                    self._ledger.lock_items(line.item for line in lines)

                    movement_ids = []
                    for line in lines:
                        if outbound:
                            movement = self._ledger.issue(
                                line.item, line.location, line.quantity, reference
                            )
                        else:
                            movement = self._ledger.receive(
                                line.item, line.location, line.quantity, reference
                            )
                        movement_ids.append(movement.id)

                    order.status = OrderStatus.POSTED.value
                    order.posted_at = self._clock.now()
                    self.session.flush()

                    self._audit(
                        AuditAction.ORDER_POSTED, "Order", order.id, order.order_number,
                        {
                            "order_type": order.order_type,
                            "reference": reference,
                            "line_count": len(lines),
                            "movement_ids": [str(m) for m in movement_ids],
                        },
                    )
            except Exception as exc:
                logger.warning(
                    "posting_rolled_back",
                    extra={"error_type": type(exc).__name__},
                )
                raise

            logger.info(
                "order_posted",
                extra={
                    "order_type": order.order_type,
                    "line_count": len(lines),
                    "reference": reference,
                },
            )

        touched = sorted({line.item.sku for line in lines})
        return PostingResult(
            order_number=order.order_number,
            order_type=order.order_type,
            status=order.status,
            reference=reference,
            movement_ids=tuple(movement_ids),
            touched_skus=tuple(touched),
        )

    def cancel_order(self, order_number: str) -> OrderInfo:
        """
        Cancel a DRAFT order.  No ledger effect.

        Raises:
            OrderNotFoundError, InvalidStatusTransitionError.
        """
        order = self._lock_order(order_number)
        self._require_draft(order, "cancel", OrderStatus.CANCELLED)
        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = self._clock.now()
        self.session.flush()
        logger.info("order_cancelled", extra={"order_number": order.order_number})
        self._audit(AuditAction.ORDER_CANCELLED, "Order", order.id, order.order_number)
        return order_to_info(order)
