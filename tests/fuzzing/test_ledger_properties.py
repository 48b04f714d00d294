"""
Property-based tests for the stock ledger using Hypothesis.

Random sequences of receipts and issues are applied to a fresh item.
After every step the derived balance must equal the sum of IN movements
minus the sum of OUT movements and must never be negative.

Each example uses its own SKU so examples sharing the test session do
not see each other's movements.
"""

from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from wms_kernel.exceptions import InsufficientStockError, InvalidQuantityError

operation = st.tuples(
    st.sampled_from(["IN", "OUT"]),
    st.integers(min_value=1, max_value=50),
)

FIXTURE_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


def _fresh_sku(catalog) -> str:
    sku = f"P-{uuid4().hex[:12]}"
    catalog.create_item(sku, "Fuzz item")
    return sku


@pytest.fixture
def fuzz_location(catalog):
    catalog.create_location("FUZZ")
    return "FUZZ"


@pytest.fixture
def fuzz_locations(catalog):
    for code in ("A", "B", "C"):
        catalog.create_location(code)
    return ("A", "B", "C")


class TestBalanceProperties:
    @FIXTURE_SETTINGS
    @given(ops=st.lists(operation, min_size=1, max_size=25))
    def test_balance_matches_movements(self, catalog, ledger, stock, fuzz_location, ops):
        sku = _fresh_sku(catalog)
        expected = 0

        for kind, quantity in ops:
            if kind == "IN":
                ledger.record_in(sku, fuzz_location, quantity)
                expected += quantity
            elif quantity > expected:
                with pytest.raises(InsufficientStockError) as exc_info:
                    ledger.record_out(sku, fuzz_location, quantity)
                assert exc_info.value.available == expected
            else:
                ledger.record_out(sku, fuzz_location, quantity)
                expected -= quantity

            balance = stock.stock_at(sku, fuzz_location)
            assert balance == expected
            assert balance >= 0

        history = stock.movement_history(sku, limit=200)
        ins = sum(m.quantity for m in history if m.movement_type == "IN")
        outs = sum(m.quantity for m in history if m.movement_type == "OUT")
        assert ins - outs == expected
        assert stock.stock_total(sku) == expected

    @FIXTURE_SETTINGS
    @given(quantity=st.integers(max_value=0))
    def test_non_positive_quantities_rejected(self, catalog, ledger, stock, fuzz_location, quantity):
        sku = _fresh_sku(catalog)

        with pytest.raises(InvalidQuantityError):
            ledger.record_in(sku, fuzz_location, quantity)
        with pytest.raises(InvalidQuantityError):
            ledger.record_out(sku, fuzz_location, quantity)

        assert stock.movement_history(sku) == []


class TestLevelProperties:
    @FIXTURE_SETTINGS
    @given(receipts=st.lists(
        st.tuples(st.sampled_from(["A", "B", "C"]), st.integers(min_value=1, max_value=20)),
        min_size=1,
        max_size=15,
    ))
    def test_levels_sum_to_total(self, catalog, ledger, stock, fuzz_locations, receipts):
        sku = _fresh_sku(catalog)

        for code, quantity in receipts:
            ledger.record_in(sku, code, quantity)

        levels = stock.stock_levels(sku)
        assert [level.location_code for level in levels] == sorted(level.location_code for level in levels)
        assert sum(level.quantity for level in levels) == stock.stock_total(sku)
        assert stock.stock_total(sku) == sum(q for _, q in receipts)
