"""
Read-side tests: stock levels, movement history and order listing.
"""

import pytest
from sqlalchemy import select

from wms_kernel.exceptions import ItemNotFoundError, OrderNotFoundError
from wms_kernel.models.catalog import Item
from wms_kernel.models.stock_movement import StockMovement
from wms_kernel.selectors.stock_selector import (
    DEFAULT_HISTORY_LIMIT,
    MAX_HISTORY_LIMIT,
    StockSelector,
)


class TestStockLevels:
    def test_per_location(self, warehouse, ledger, stock):
        ledger.record_in("SKU1", "L2", 4)
        ledger.record_in("SKU1", "L1", 6)
        ledger.record_out("SKU1", "L1", 6)

        levels = stock.stock_levels("SKU1")

        assert [(lv.location_code, lv.quantity) for lv in levels] == [("L1", 0), ("L2", 4)]

    def test_no_movements(self, warehouse, stock):
        assert stock.stock_levels("SKU2") == []

    def test_unknown_item(self, warehouse, stock):
        with pytest.raises(ItemNotFoundError):
            stock.stock_total("NOPE")


class TestMovementHistory:
    def test_newest_first(self, warehouse, ledger, stock, clock):
        ledger.record_in("SKU1", "L1", 10, "first")
        clock.advance()
        ledger.record_out("SKU1", "L1", 3, "second")
        clock.advance()
        ledger.record_in("SKU1", "L2", 1, "third")

        history = stock.movement_history("SKU1")

        assert [m.reference for m in history] == ["third", "second", "first"]
        assert [m.movement_type for m in history] == ["IN", "OUT", "IN"]
        assert history[0].location_code == "L2"

    def test_same_instant_keeps_write_order(self, warehouse, ledger, orders, stock):
        ledger.record_in("SKU1", "L1", 100, "receipt")
        orders.create_order("O1", "OUTBOUND")
        for quantity in (6, 5, 1, 7):
            orders.add_line("O1", "SKU1", "L1", quantity)
        orders.post_order("O1")

        history = stock.movement_history("SKU1")

        assert [m.quantity for m in history] == [7, 1, 5, 6, 100]
        assert history[-1].reference == "receipt"

    def test_item_seq_counts_per_item(self, session, stocked, ledger):
        ledger.record_out("SKU1", "L1", 1)
        rows = session.execute(
            select(StockMovement.item_seq)
            .join(Item, Item.id == StockMovement.item_id)
            .where(Item.sku == "SKU1")
            .order_by(StockMovement.item_seq)
        ).scalars().all()
        assert rows == [1, 2]

    def test_only_the_requested_item(self, stocked, stock):
        assert {m.sku for m in stock.movement_history("SKU2")} == {"SKU2"}

    def test_limit(self, warehouse, ledger, stock, clock):
        for n in range(5):
            ledger.record_in("SKU1", "L1", 1, f"r{n}")
            clock.advance()

        assert [m.reference for m in stock.movement_history("SKU1", 2)] == ["r4", "r3"]

    @pytest.mark.parametrize("limit", [None, 0, -1, MAX_HISTORY_LIMIT + 1])
    def test_out_of_range_limit_uses_default(self, session, limit):
        assert StockSelector(session).normalize_history_limit(limit) == DEFAULT_HISTORY_LIMIT

    def test_configured_default(self, session):
        assert StockSelector(session, default_history_limit=7).normalize_history_limit(None) == 7

    def test_max_limit_accepted(self, session):
        selector = StockSelector(session)
        assert selector.normalize_history_limit(MAX_HISTORY_LIMIT) == MAX_HISTORY_LIMIT


class TestOrderSelector:
    def test_get_unknown(self, order_selector):
        with pytest.raises(OrderNotFoundError):
            order_selector.get_order("NOPE")

    def test_filter_by_status(self, warehouse, orders, order_selector):
        orders.create_order("O1", "INBOUND")
        orders.create_order("O2", "INBOUND")
        orders.add_line("O2", "SKU1", "L1", 1)
        orders.post_order("O2")
        orders.create_order("O3", "OUTBOUND")
        orders.cancel_order("O3")

        assert [o.order_number for o in order_selector.list_orders("posted")] == ["O2"]
        assert [o.order_number for o in order_selector.list_orders("DRAFT")] == ["O1"]
        assert len(order_selector.list_orders()) == 3

    def test_unknown_status(self, order_selector):
        with pytest.raises(ValueError):
            order_selector.list_orders("shipped")
