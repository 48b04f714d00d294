"""
TrackingService -- carrier tracking attached to orders.

Responsibility:
    Sets, reads and clears the tracking id, URL and carrier of an order.
    Setting tracking on an order that already has some replaces it.

Architecture position:
    Kernel > Services -- imperative shell.  Available when the
    ``tracking`` capability is enabled.

Invariants enforced:
    - One tracking record per order (UNIQUE on order_id).
    - set and clear lock the order row, so concurrent updates of one
      order's tracking apply one after the other.
    - An update with an empty carrier keeps the stored carrier.
    - Tracking does not depend on the order's status.

Failure modes:
    - InvalidIdentifierError for an empty order number or tracking id.
    - OrderNotFoundError.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from wms_kernel.domain.clock import Clock
from wms_kernel.domain.dtos import TrackingInfo
from wms_kernel.exceptions import OrderNotFoundError
from wms_kernel.logging_config import get_logger
from wms_kernel.models.audit_event import AuditAction
from wms_kernel.models.order import Order
from wms_kernel.models.tracking import OrderTracking
from wms_kernel.services.auditor_service import AuditorService
from wms_kernel.services.base import BaseService, clean_identifier

logger = get_logger("services.tracking")


class TrackingService(BaseService[OrderTracking]):
    """Service for order tracking."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auditor: AuditorService | None = None,
    ):
        super().__init__(session, clock, auditor)

    def _order(self, order_number: str, lock: bool = False) -> Order:
        order_number = clean_identifier(order_number, "order number")
        query = select(Order).where(Order.order_number == order_number)
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        order = self.session.execute(query).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(order_number)
        return order

    def _tracking(self, order: Order) -> OrderTracking | None:
        return self.session.execute(
            select(OrderTracking).where(OrderTracking.order_id == order.id)
        ).scalar_one_or_none()

    @staticmethod
    def _dto(order: Order, tracking: OrderTracking | None) -> TrackingInfo:
        if tracking is None:
            return TrackingInfo(order_number=order.order_number)
        return TrackingInfo(
            order_number=order.order_number,
            tracking_id=tracking.tracking_id,
            url=tracking.url,
            carrier=tracking.carrier,
            updated_at=tracking.updated_at or tracking.created_at,
        )

    def set_tracking(
        self,
        order_number: str,
        tracking_id: str,
        url: str = "",
        carrier: str = "",
    ) -> TrackingInfo:
        """
        Attach tracking to an order, or replace what is there.

        Raises:
            InvalidIdentifierError: empty order number or tracking id.
            OrderNotFoundError: unknown order.
        """
        tracking_id = clean_identifier(tracking_id, "tracking id")
        url = (url or "").strip()
        carrier = (carrier or "").strip()
        order = self._order(order_number, lock=True)

        tracking = self._tracking(order)
        if tracking is None:
            tracking = OrderTracking(
                order_id=order.id,
                tracking_id=tracking_id,
                url=url,
                carrier=carrier,
                created_at=self._clock.now(),
            )
            self.session.add(tracking)
        else:
            tracking.tracking_id = tracking_id
            tracking.url = url
            if carrier:
                tracking.carrier = carrier
            tracking.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "tracking_set",
            extra={
                "order_number": order.order_number,
                "tracking_id": tracking_id,
                "carrier": tracking.carrier,
            },
        )
        self._audit(
            AuditAction.TRACKING_SET, "Order", order.id, order.order_number,
            {"tracking_id": tracking_id, "url": tracking.url, "carrier": tracking.carrier},
        )
        return self._dto(order, tracking)

    def get_tracking(self, order_number: str) -> TrackingInfo:
        """Tracking of an order; ``is_set`` is False when there is none."""
        order = self._order(order_number)
        return self._dto(order, self._tracking(order))

    def clear_tracking(self, order_number: str) -> bool:
        """
        Remove an order's tracking.

        Returns:
            True if a record was removed, False if the order had none.
        """
        order = self._order(order_number, lock=True)
        tracking = self._tracking(order)
        if tracking is None:
            logger.debug("tracking_clear_noop", extra={"order_number": order.order_number})
            return False

        self._audit(
            AuditAction.TRACKING_CLEARED, "Order", order.id, order.order_number,
            {"tracking_id": tracking.tracking_id},
        )
        self.session.delete(tracking)
        self.session.flush()
        logger.info("tracking_cleared", extra={"order_number": order.order_number})
        return True
