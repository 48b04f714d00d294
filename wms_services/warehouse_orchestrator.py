"""
wms_services.warehouse_orchestrator -- Central DI container for kernel services.

Responsibility:
    Creates every kernel service exactly once per session and wires them
    together according to the configuration's capabilities.  No kernel
    service creates a peer when the orchestrator supplies it.

Architecture position:
    Services -- composition root.  The CLI and tests obtain services from
    here; only this module decides which optional capabilities exist.

Invariants enforced:
    - Single-instance lifecycle: one CatalogService, StockLedgerService,
      AuditorService, ... per orchestrator, all sharing one Session and
      one Clock.
    - Core capabilities (catalog, ledger, orders) are always assembled.
      Optional ones are registered explicitly from ``config.capabilities``;
      asking for a missing one raises CapabilityDisabledError.
    - Low-stock alerts are only queued during the transaction;
      ``dispatch_alerts()`` is called by the owner of the transaction after
      it commits.

Usage:
    with session_scope(factory) as session:
        orchestrator = build_warehouse_orchestrator(session, config)
        orchestrator.post_order("O-1")
    orchestrator.dispatch_alerts()
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from wms_config.schema import WarehouseConfig
from wms_kernel.domain.clock import Clock, SystemClock
from wms_kernel.domain.dtos import PostingResult
from wms_kernel.exceptions import CapabilityDisabledError
from wms_kernel.logging_config import get_logger
from wms_kernel.models.order import OrderType
from wms_kernel.selectors.order_selector import OrderSelector
from wms_kernel.selectors.picklist_selector import PickListSelector
from wms_kernel.selectors.stock_selector import StockSelector
from wms_kernel.selectors.topology_selector import TopologySelector
from wms_kernel.services.auditor_service import AuditorService
from wms_kernel.services.catalog_service import CatalogService
from wms_kernel.services.order_service import OrderService
from wms_kernel.services.picking_service import PickingService
from wms_kernel.services.stock_ledger import StockLedgerService
from wms_kernel.services.topology_service import TopologyService
from wms_kernel.services.tracking_service import TrackingService
from wms_services.low_stock_monitor import (
    LoggingNotificationSink,
    LowStockAlert,
    LowStockMonitor,
    NotificationSink,
)

logger = get_logger("services.orchestrator")

TEST_SUBJECT = "TEST"
TEST_MESSAGE = "Test notification from the warehouse system"


class WarehouseOrchestrator:
    """Central factory for kernel services.

    Contract:
        Receives a Session and a WarehouseConfig.  Constructs the core
        services unconditionally and each optional capability the config
        enables, in dependency order.

    Non-goals:
        - Does NOT manage transaction boundaries.
        - Does NOT own the Session lifecycle.
    """

    def __init__(
        self,
        session: Session,
        config: WarehouseConfig,
        clock: Clock | None = None,
        sink: NotificationSink | None = None,
    ) -> None:
        self._session = session
        self._config = config
        self._clock = clock or SystemClock()
        self._sink = sink or LoggingNotificationSink()
        self._capabilities: dict[str, Any] = {}
        self._pending_alerts: list[LowStockAlert] = []

        # Audit first: every other service takes it
        auditor: AuditorService | None = None
        if config.is_enabled("audit"):
            auditor = AuditorService(session, self._clock, actor=config.actor)
            self._capabilities["audit"] = auditor

        # Core
        self.stock = StockSelector(
            session, default_history_limit=config.reporting.history_default_limit
        )
        self.order_selector = OrderSelector(session)
        self.catalog = CatalogService(session, self._clock, auditor)
        self.ledger = StockLedgerService(session, self.catalog, self._clock, auditor)
        self.orders = OrderService(session, self.catalog, self.ledger, self._clock, auditor)

        # Optional
        topology_selector: TopologySelector | None = None
        if config.is_enabled("topology"):
            topology_selector = TopologySelector(session)
            self._capabilities["topology"] = TopologyService(
                session, self.catalog, self._clock, auditor
            )

        if config.is_enabled("picking"):
            self._capabilities["picking"] = PickingService(
                session, topology_selector, self._clock, auditor
            )
            self._capabilities["pick_list_selector"] = PickListSelector(session)

        if config.is_enabled("tracking"):
            self._capabilities["tracking"] = TrackingService(session, self._clock, auditor)

        if config.is_enabled("notifications"):
            self._capabilities["notifications"] = LowStockMonitor(
                self.stock, config.notifications
            )

        logger.debug(
            "orchestrator_assembled",
            extra={"capabilities": sorted(config.capabilities)},
        )

    # ------------------------------------------------------------------
    # Capability access
    # ------------------------------------------------------------------

    def _require(self, capability: str, key: str | None = None) -> Any:
        service = self._capabilities.get(key or capability)
        if service is None:
            logger.warning("capability_disabled", extra={"capability": capability})
            raise CapabilityDisabledError(capability)
        return service

    def has_capability(self, capability: str) -> bool:
        return self._config.is_enabled(capability)

    @property
    def auditor(self) -> AuditorService:
        return self._require("audit")

    @property
    def topology(self) -> TopologyService:
        return self._require("topology")

    @property
    def picking(self) -> PickingService:
        return self._require("picking")

    @property
    def pick_lists(self) -> PickListSelector:
        return self._require("picking", "pick_list_selector")

    @property
    def tracking(self) -> TrackingService:
        return self._require("tracking")

    @property
    def low_stock(self) -> LowStockMonitor:
        return self._require("notifications")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def config(self) -> WarehouseConfig:
        return self._config

    # ------------------------------------------------------------------
    # Operations with cross-capability side effects
    # ------------------------------------------------------------------

    def _queue_low_stock(self, skus) -> None:
        monitor = self._capabilities.get("notifications")
        if monitor is None:
            return
        self._pending_alerts.extend(monitor.evaluate(skus))

    def issue_stock(
        self,
        sku: str,
        location_code: str,
        quantity: int,
        reference: str | None = None,
    ) -> UUID:
        """record_out, then queue a low-stock alert for the SKU if needed."""
        movement_id = self.ledger.record_out(sku, location_code, quantity, reference)
        self._queue_low_stock([sku.strip()])
        return movement_id

    def post_order(self, order_number: str) -> PostingResult:
        """post_order, then queue low-stock alerts for OUTBOUND SKUs."""
        result = self.orders.post_order(order_number)
        if result.order_type == OrderType.OUTBOUND.value:
            self._queue_low_stock(result.touched_skus)
        return result

    def queue_alert(self, alert: LowStockAlert) -> None:
        self._pending_alerts.append(alert)

    def send_test_notification(self, message: str = TEST_MESSAGE) -> tuple[str, ...]:
        """
        Send one notification straight to the configured recipients.

        Returns the recipients, or an empty tuple when notifications are
        switched off in the settings and nothing was sent.
        """
        settings = self.low_stock.settings
        if not settings.enabled:
            logger.info("notification_skipped", extra={"subject": TEST_SUBJECT})
            return ()
        recipients = settings.recipients
        self._sink.send(TEST_SUBJECT, message, recipients)
        return recipients

    @property
    def pending_alerts(self) -> tuple[LowStockAlert, ...]:
        return tuple(self._pending_alerts)

    def dispatch_alerts(self) -> int:
        """
        Send queued alerts through the sink and clear the queue.

        Call only after the transaction that produced them has committed.
        """
        alerts, self._pending_alerts = self._pending_alerts, []
        for alert in alerts:
            self._sink.send_alert(alert)
        if alerts:
            logger.info("low_stock_alerts_dispatched", extra={"count": len(alerts)})
        return len(alerts)

    def discard_alerts(self) -> None:
        """Drop queued alerts; used when the transaction rolled back."""
        self._pending_alerts.clear()


def build_warehouse_orchestrator(
    session: Session,
    config: WarehouseConfig,
    clock: Clock | None = None,
    sink: NotificationSink | None = None,
) -> WarehouseOrchestrator:
    """Assemble an orchestrator for one unit of work."""
    return WarehouseOrchestrator(session=session, config=config, clock=clock, sink=sink)
