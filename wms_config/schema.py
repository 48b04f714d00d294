"""
Warehouse configuration schema.

The YAML file is parsed by the loader into these frozen dataclasses.  They
carry no behaviour beyond small derived properties; the orchestrator reads
them to decide which capabilities to assemble.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Always assembled; listing them in the YAML is allowed but changes nothing.
CORE_CAPABILITIES: frozenset[str] = frozenset({"catalog", "ledger", "orders"})

OPTIONAL_CAPABILITIES: frozenset[str] = frozenset(
    {"picking", "topology", "audit", "notifications", "tracking"}
)

KNOWN_CAPABILITIES: frozenset[str] = CORE_CAPABILITIES | OPTIONAL_CAPABILITIES


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to create_engine_from_url()."""

    url: str = "sqlite:///wms.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10


@dataclass(frozen=True)
class NotificationSettings:
    enabled: bool = True
    recipients: tuple[str, ...] = ("warehouse@local",)
    low_stock_threshold: int = 10


@dataclass(frozen=True)
class ReportingSettings:
    history_default_limit: int = 50
    list_default_limit: int = 100


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WarehouseConfig:
    """
    The whole runtime configuration.

    ``capabilities`` always contains the core capabilities plus whatever
    optional ones the file enables.  ``checksum`` identifies the source
    document and is logged with every load.
    """

    name: str = "default"
    version: int = 1
    actor: str = "system"
    capabilities: frozenset[str] = CORE_CAPABILITIES
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    reporting: ReportingSettings = field(default_factory=ReportingSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""

    def is_enabled(self, capability: str) -> bool:
        return capability in self.capabilities

    @property
    def optional_capabilities(self) -> frozenset[str]:
        return self.capabilities - CORE_CAPABILITIES
