"""
wms_services.low_stock_monitor -- low-stock alerts after stock leaves.

Responsibility:
    Compares an item's total stock with the configured threshold and
    produces LowStockAlert values.  Alerts are delivered through a
    NotificationSink, after the transaction that caused them has
    committed.

Architecture position:
    Services -- above the kernel.  The kernel never notifies; the
    orchestrator calls ``evaluate`` after OUT movements.

Invariants enforced:
    - An alert is produced only when notifications are enabled and
      stock_total < threshold.
    - Evaluation is read-only.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

from wms_config.schema import NotificationSettings
from wms_kernel.logging_config import get_logger
from wms_kernel.selectors.stock_selector import StockSelector

logger = get_logger("services.notifications")

LOW_STOCK_SUBJECT = "LOW_STOCK"


@dataclass(frozen=True)
class LowStockAlert:
    sku: str
    stock_total: int
    threshold: int
    recipients: tuple[str, ...]

    @property
    def subject(self) -> str:
        return LOW_STOCK_SUBJECT

    @property
    def message(self) -> str:
        return (
            f"SKU {self.sku} stock={self.stock_total} "
            f"is below threshold={self.threshold}"
        )


class NotificationSink(ABC):
    """Delivers notifications."""

    @abstractmethod
    def send(self, subject: str, message: str, recipients: tuple[str, ...]) -> None:
        ...

    def send_alert(self, alert: LowStockAlert) -> None:
        self.send(alert.subject, alert.message, alert.recipients)


class LoggingNotificationSink(NotificationSink):
    """Default sink: one ``notification_sent`` log record per notification."""

    def send(self, subject: str, message: str, recipients: tuple[str, ...]) -> None:
        logger.info(
            "notification_sent",
            extra={
                "subject": subject,
                "recipients": list(recipients),
                "notification": message,
            },
        )


class RecordingNotificationSink(NotificationSink):
    """Keeps sent notifications in memory; for tests and dry runs."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, tuple[str, ...]]] = []

    def send(self, subject: str, message: str, recipients: tuple[str, ...]) -> None:
        self.sent.append((subject, message, recipients))


class LowStockMonitor:
    """
    Evaluates items against the low-stock threshold.

    Contract:
        ``evaluate`` returns one alert per SKU below the threshold, in the
        order given, each SKU at most once.  ``check`` evaluates a single
        SKU with an optional threshold override.
    """

    def __init__(self, stock: StockSelector, settings: NotificationSettings):
        self._stock = stock
        self._settings = settings

    @property
    def settings(self) -> NotificationSettings:
        return self._settings

    def check(self, sku: str, threshold: int | None = None) -> LowStockAlert | None:
        """
        Alert for ``sku`` if its total stock is below the threshold.

        Raises:
            ValueError: ``threshold`` is negative.
            ItemNotFoundError: unknown SKU.
        """
        if threshold is None:
            threshold = self._settings.low_stock_threshold
        if threshold < 0:
            raise ValueError(f"threshold must be >= 0, got {threshold}")
        total = self._stock.stock_total(sku)
        if total >= threshold:
            logger.debug(
                "stock_above_threshold",
                extra={"sku": sku, "stock_total": total, "threshold": threshold},
            )
            return None
        logger.info(
            "low_stock_detected",
            extra={"sku": sku, "stock_total": total, "threshold": threshold},
        )
        return LowStockAlert(
            sku=sku.strip(),
            stock_total=total,
            threshold=threshold,
            recipients=self._settings.recipients,
        )

    def evaluate(self, skus: Iterable[str]) -> list[LowStockAlert]:
        if not self._settings.enabled:
            return []
        alerts: list[LowStockAlert] = []
        seen: set[str] = set()
        for sku in skus:
            if sku in seen:
                continue
            seen.add(sku)
            alert = self.check(sku)
            if alert is not None:
                alerts.append(alert)
        return alerts
