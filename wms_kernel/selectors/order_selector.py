"""
Module: wms_kernel.selectors.order_selector
Responsibility: Read-only order projections (order header plus lines).
Architecture position: Kernel > Selectors.

Failure modes:
    - OrderNotFoundError for an unknown order number.
    - ValueError from OrderStatus() for an unknown status filter.
"""

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from wms_kernel.domain.dtos import OrderInfo, OrderLineInfo
from wms_kernel.exceptions import InvalidIdentifierError, OrderNotFoundError
from wms_kernel.models.order import Order, OrderLine, OrderStatus
from wms_kernel.selectors.base import BaseSelector

DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 500


def order_to_info(order: Order) -> OrderInfo:
    """Convert an Order with its lines loaded into an OrderInfo."""
    return OrderInfo(
        id=order.id,
        order_number=order.order_number,
        order_type=order.order_type,
        status=order.status,
        created_at=order.created_at,
        posted_at=order.posted_at,
        cancelled_at=order.cancelled_at,
        lines=tuple(
            OrderLineInfo(
                id=line.id,
                line_no=line.line_no,
                sku=line.item.sku,
                location_code=line.location.code,
                quantity=line.quantity,
            )
            for line in order.lines
        ),
    )


class OrderSelector(BaseSelector[Order]):
    """Read-only access to orders."""

    def _query(self):
        return select(Order).options(
            selectinload(Order.lines).selectinload(OrderLine.item),
            selectinload(Order.lines).selectinload(OrderLine.location),
        )

    def get_order(self, order_number: str) -> OrderInfo:
        cleaned = (order_number or "").strip()
        if not cleaned:
            raise InvalidIdentifierError("order number", order_number)
        order = self.session.execute(
            self._query().where(Order.order_number == cleaned)
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(cleaned)
        return order_to_info(order)

    def list_orders(
        self,
        status: str | None = None,
        limit: int | None = DEFAULT_LIST_LIMIT,
    ) -> list[OrderInfo]:
        """Orders by order number, optionally filtered by status."""
        if limit is None or limit <= 0 or limit > MAX_LIST_LIMIT:
            limit = DEFAULT_LIST_LIMIT
        query = self._query().order_by(Order.order_number).limit(limit)
        if status:
            query = query.where(Order.status == OrderStatus(status.strip().upper()).value)
        orders = self.session.execute(query).scalars().all()
        return [order_to_info(o) for o in orders]
