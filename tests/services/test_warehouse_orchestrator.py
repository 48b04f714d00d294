"""
Orchestrator wiring and low-stock notification tests.

Verifies:
- Core services always exist; optional ones only when enabled
- Audit is shared by every service when enabled, absent otherwise
- Low-stock alerts are queued by OUT movements and sent on dispatch only
- Nothing is sent, not even a test notification, when notifications are
  switched off in the settings
"""

from dataclasses import replace

import pytest
from sqlalchemy import func, select

from wms_config.schema import CORE_CAPABILITIES, NotificationSettings, WarehouseConfig
from wms_kernel.exceptions import CapabilityDisabledError, InsufficientStockError
from wms_kernel.models.audit_event import AuditEvent
from wms_services.low_stock_monitor import (
    LOW_STOCK_SUBJECT,
    LoggingNotificationSink,
    LowStockAlert,
    LowStockMonitor,
)
from wms_services.warehouse_orchestrator import TEST_SUBJECT, build_warehouse_orchestrator


@pytest.fixture
def core_only(session, clock, sink):
    return build_warehouse_orchestrator(
        session, WarehouseConfig(capabilities=CORE_CAPABILITIES), clock=clock, sink=sink
    )


def _seed(orch, quantity=10):
    orch.catalog.create_item("SKU1", "Blue widget")
    orch.catalog.create_location("L1")
    orch.ledger.record_in("SKU1", "L1", quantity)


class TestCapabilities:
    def test_full_config_exposes_everything(self, orchestrator):
        for name in ("picking", "topology", "audit", "notifications", "tracking"):
            assert orchestrator.has_capability(name)
        assert orchestrator.picking is not None
        assert orchestrator.pick_lists is not None
        assert orchestrator.topology is not None
        assert orchestrator.tracking is not None
        assert orchestrator.auditor.actor == "tester"
        assert orchestrator.low_stock.settings.low_stock_threshold == 5

    @pytest.mark.parametrize("attribute, capability", [
        ("picking", "picking"),
        ("pick_lists", "picking"),
        ("topology", "topology"),
        ("auditor", "audit"),
        ("low_stock", "notifications"),
        ("tracking", "tracking"),
    ])
    def test_disabled_capability_raises(self, core_only, attribute, capability):
        with pytest.raises(CapabilityDisabledError) as exc_info:
            getattr(core_only, attribute)
        assert exc_info.value.capability == capability

    def test_core_services_always_available(self, session, core_only):
        _seed(core_only)
        core_only.orders.create_order("O1", "OUTBOUND")
        core_only.orders.add_line("O1", "SKU1", "L1", 2)
        core_only.post_order("O1")

        assert core_only.stock.stock_at("SKU1", "L1") == 8

    def test_no_audit_events_without_audit(self, session, core_only):
        _seed(core_only)
        count = session.execute(select(func.count()).select_from(AuditEvent)).scalar_one()
        assert count == 0

    def test_audit_events_with_audit(self, session, orchestrator):
        _seed(orchestrator)
        assert orchestrator.auditor.validate_chain() is True
        actions = [e.action for e in orchestrator.auditor.recent_events(10)]
        assert actions == ["stock_received", "location_created", "item_created"]

    def test_picking_without_topology_has_no_bins(self, session, clock, sink):
        config = WarehouseConfig(capabilities=CORE_CAPABILITIES | {"picking"})
        orch = build_warehouse_orchestrator(session, config, clock=clock, sink=sink)
        _seed(orch)
        orch.orders.create_order("O1", "OUTBOUND")
        orch.orders.add_line("O1", "SKU1", "L1", 1)
        orch.post_order("O1")

        info = orch.picking.create_pick_list("O1")
        assert [t.bin_code for t in orch.pick_lists.show_pick_list(info.id).tasks] == ["-"]


class TestLowStockAlerts:
    def test_issue_below_threshold_queues_alert(self, orchestrator, sink):
        _seed(orchestrator)
        orchestrator.issue_stock("SKU1", "L1", 6)

        assert sink.sent == []
        assert [a.stock_total for a in orchestrator.pending_alerts] == [4]

        assert orchestrator.dispatch_alerts() == 1
        subject, message, recipients = sink.sent[0]
        assert subject == LOW_STOCK_SUBJECT
        assert message == "SKU SKU1 stock=4 is below threshold=5"
        assert recipients == ("ops@example.com",)
        assert orchestrator.pending_alerts == ()

    def test_at_threshold_no_alert(self, orchestrator):
        _seed(orchestrator)
        orchestrator.issue_stock("SKU1", "L1", 5)
        assert orchestrator.pending_alerts == ()

    def test_outbound_posting_queues_alerts(self, orchestrator):
        _seed(orchestrator)
        orchestrator.orders.create_order("O1", "OUTBOUND")
        orchestrator.orders.add_line("O1", "SKU1", "L1", 3)
        orchestrator.orders.add_line("O1", "SKU1", "L1", 4)
        orchestrator.post_order("O1")

        assert [(a.sku, a.stock_total) for a in orchestrator.pending_alerts] == [("SKU1", 3)]

    def test_inbound_posting_never_alerts(self, orchestrator):
        _seed(orchestrator, quantity=1)
        orchestrator.orders.create_order("I1", "INBOUND")
        orchestrator.orders.add_line("I1", "SKU1", "L1", 1)
        orchestrator.post_order("I1")
        assert orchestrator.pending_alerts == ()

    def test_failed_issue_queues_nothing(self, orchestrator):
        _seed(orchestrator)
        with pytest.raises(InsufficientStockError):
            orchestrator.issue_stock("SKU1", "L1", 11)
        assert orchestrator.pending_alerts == ()

    def test_disabled_notifications(self, session, clock, sink, full_config):
        config = replace(
            full_config,
            notifications=replace(full_config.notifications, enabled=False),
        )
        orch = build_warehouse_orchestrator(session, config, clock=clock, sink=sink)
        _seed(orch)
        orch.issue_stock("SKU1", "L1", 9)

        assert orch.dispatch_alerts() == 0
        assert sink.sent == []

    def test_discard(self, orchestrator, sink):
        _seed(orchestrator)
        orchestrator.issue_stock("SKU1", "L1", 9)
        orchestrator.discard_alerts()
        assert orchestrator.dispatch_alerts() == 0

    def test_test_notification(self, orchestrator, sink):
        recipients = orchestrator.send_test_notification("hello")
        assert recipients == ("ops@example.com",)
        assert sink.sent == [(TEST_SUBJECT, "hello", ("ops@example.com",))]

    def test_test_notification_when_disabled(
        self, session, clock, sink, full_config, captured_logs
    ):
        config = replace(
            full_config,
            notifications=replace(full_config.notifications, enabled=False),
        )
        orch = build_warehouse_orchestrator(session, config, clock=clock, sink=sink)

        assert orch.send_test_notification("hello") == ()
        assert sink.sent == []
        assert "notification_skipped" in [r["message"] for r in captured_logs()]


class TestLowStockMonitor:
    def test_threshold_override(self, stocked, stock):
        monitor = LowStockMonitor(stock, NotificationSettings(low_stock_threshold=1))
        assert monitor.check("SKU1") is None
        alert = monitor.check("SKU1", threshold=11)
        assert alert == LowStockAlert("SKU1", 10, 11, ("warehouse@local",))

    def test_negative_threshold(self, stocked, stock):
        with pytest.raises(ValueError):
            LowStockMonitor(stock, NotificationSettings()).check("SKU1", -1)

    def test_evaluate_deduplicates(self, stocked, stock):
        monitor = LowStockMonitor(stock, NotificationSettings(low_stock_threshold=50))
        alerts = monitor.evaluate(["SKU2", "SKU1", "SKU2"])
        assert [a.sku for a in alerts] == ["SKU2", "SKU1"]

    def test_logging_sink(self, captured_logs):
        LoggingNotificationSink().send_alert(LowStockAlert("SKU1", 1, 5, ("a@x",)))
        records = [r for r in captured_logs() if r["message"] == "notification_sent"]
        assert records[0]["subject"] == "LOW_STOCK"
        assert records[0]["recipients"] == ["a@x"]
        assert records[0]["notification"] == "SKU SKU1 stock=1 is below threshold=5"
