"""
Order tracking tests.

Verifies:
- Setting tracking twice updates the one record in place
- An empty carrier on update keeps the stored carrier
- Reading an order without tracking returns an empty record, not an error
- Clearing is idempotent
- Tracking works on orders in any status and is audited
"""

import pytest
from sqlalchemy import func, select

from wms_kernel.exceptions import InvalidIdentifierError, OrderNotFoundError
from wms_kernel.models.tracking import OrderTracking


@pytest.fixture
def draft(orders):
    orders.create_order("O1", "INBOUND")
    return orders


def _row_count(session) -> int:
    return session.execute(select(func.count()).select_from(OrderTracking)).scalar_one()


class TestSetTracking:
    def test_set_and_get(self, draft, tracking, clock):
        info = tracking.set_tracking("O1", " 1Z999 ", "https://track.example/1Z999", "UPS")

        assert info.tracking_id == "1Z999"
        assert info.updated_at == clock.now()
        got = tracking.get_tracking("O1")
        assert got.is_set
        assert (got.tracking_id, got.url, got.carrier) == (
            "1Z999", "https://track.example/1Z999", "UPS",
        )

    def test_second_set_updates_in_place(self, draft, tracking, session, clock):
        tracking.set_tracking("O1", "T1", "https://a", "DHL")
        clock.tick()
        info = tracking.set_tracking("O1", "T2")

        assert _row_count(session) == 1
        assert info.tracking_id == "T2"
        assert info.url == ""
        assert info.carrier == "DHL"
        assert info.updated_at == clock.now()

    def test_carrier_replaced_when_given(self, draft, tracking):
        tracking.set_tracking("O1", "T1", carrier="DHL")
        assert tracking.set_tracking("O1", "T1", carrier="GLS").carrier == "GLS"

    def test_empty_tracking_id(self, draft, tracking, session):
        with pytest.raises(InvalidIdentifierError):
            tracking.set_tracking("O1", "  ")
        assert _row_count(session) == 0

    def test_unknown_order(self, warehouse, tracking):
        with pytest.raises(OrderNotFoundError):
            tracking.set_tracking("NOPE", "T1")

    def test_posted_order_can_be_tracked(self, posted_outbound, tracking):
        assert tracking.set_tracking("O1", "T1").is_set


class TestGetAndClear:
    def test_get_without_tracking(self, draft, tracking):
        info = tracking.get_tracking("O1")
        assert info.order_number == "O1"
        assert not info.is_set
        assert info.updated_at is None

    def test_get_unknown_order(self, warehouse, tracking):
        with pytest.raises(OrderNotFoundError):
            tracking.get_tracking("NOPE")

    def test_clear(self, draft, tracking, session):
        tracking.set_tracking("O1", "T1")
        assert tracking.clear_tracking("O1") is True
        assert _row_count(session) == 0
        assert not tracking.get_tracking("O1").is_set

    def test_clear_without_tracking(self, draft, tracking):
        assert tracking.clear_tracking("O1") is False

    def test_tracking_is_per_order(self, orders, tracking):
        orders.create_order("O1", "INBOUND")
        orders.create_order("O2", "INBOUND")
        tracking.set_tracking("O1", "T1")
        tracking.set_tracking("O2", "T2")
        tracking.clear_tracking("O1")

        assert tracking.get_tracking("O2").tracking_id == "T2"


class TestTrackingAudit:
    def test_set_and_clear_are_audited(self, draft, tracking, auditor):
        tracking.set_tracking("O1", "T1", carrier="UPS")
        tracking.clear_tracking("O1")
        tracking.clear_tracking("O1")

        actions = [e.action for e in auditor.recent_events(10)]
        assert actions[:2] == ["tracking_cleared", "tracking_set"]
        assert actions.count("tracking_cleared") == 1
        assert auditor.validate_chain() is True
