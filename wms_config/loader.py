"""
Configuration Loader (``wms_config.loader``).

Responsibility
--------------
Reads the YAML configuration file, parses it into the frozen dataclasses
of ``wms_config.schema`` and applies ``WMS_*`` environment overrides.  The
single runtime entry point is ``wms_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown capability names and malformed sections raise ``ValueError``;
  a typo in the file never silently disables a feature.
* Environment overrides never raise.  A value that cannot be parsed is
  ignored and logged as a warning, and the file value stays in effect.
* ``compute_checksum`` is deterministic for the same document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values in the file  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from wms_config.schema import (
    CORE_CAPABILITIES,
    KNOWN_CAPABILITIES,
    DatabaseSettings,
    LoggingSettings,
    NotificationSettings,
    ReportingSettings,
    WarehouseConfig,
)

_logger = logging.getLogger("wms_kernel.config")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE_WORDS = frozenset({"1", "true", "yes", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "off"})

ENV_DATABASE_URL = "WMS_DATABASE_URL"
ENV_LOG_LEVEL = "WMS_LOG_LEVEL"
ENV_NOTIFICATIONS_ENABLED = "WMS_NOTIFICATIONS_ENABLED"
ENV_NOTIFICATIONS_RECIPIENTS = "WMS_NOTIFICATIONS_RECIPIENTS"
ENV_LOW_STOCK_THRESHOLD = "WMS_LOW_STOCK_THRESHOLD"
ENV_ACTOR = "WMS_ACTOR"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of the parsed document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Value parsing
# ---------------------------------------------------------------------------


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"Cannot parse boolean from {value!r}")


def parse_non_negative_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Expected an integer, got {value!r}")
    number = int(str(value).strip())
    if number < 0:
        raise ValueError(f"Expected an integer >= 0, got {number}")
    return number


def parse_recipients(value: Any) -> tuple[str, ...]:
    """A list, or a comma separated string; blank entries are dropped."""
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, (list, tuple)):
        parts = [str(v) for v in value]
    else:
        raise ValueError(f"Cannot parse recipients from {value!r}")
    return tuple(p.strip() for p in parts if p and p.strip())


def parse_log_level(value: Any) -> str:
    level = str(value).strip().upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {value!r}")
    return level


def parse_capabilities(values: Any) -> frozenset[str]:
    """
    Optional capability names, plus the core ones.

    Raises:
        ValueError: a name is not a known capability.
    """
    if values is None:
        return CORE_CAPABILITIES
    if not isinstance(values, (list, tuple)):
        raise ValueError(f"capabilities must be a list, got {values!r}")
    names = {str(v).strip().lower() for v in values}
    unknown = sorted(names - KNOWN_CAPABILITIES)
    if unknown:
        raise ValueError(
            f"Unknown capabilities: {unknown}; known: {sorted(KNOWN_CAPABILITIES)}"
        )
    return frozenset(names) | CORE_CAPABILITIES


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Section {key!r} must be a mapping")
    return section


# ---------------------------------------------------------------------------
# Document parsing
# ---------------------------------------------------------------------------


def parse_config(data: dict[str, Any]) -> WarehouseConfig:
    """
    Parse a configuration document into a WarehouseConfig.

    Missing keys take the dataclass defaults.

    Raises:
        ValueError: unknown capability or a value of the wrong type.
    """
    db = _section(data, "database")
    notif = _section(data, "notifications")
    reporting = _section(data, "reporting")
    log = _section(data, "logging")

    database = DatabaseSettings(
        url=str(db.get("url", DatabaseSettings.url)),
        echo=parse_bool(db.get("echo", DatabaseSettings.echo)),
        pool_size=parse_non_negative_int(db.get("pool_size", DatabaseSettings.pool_size)),
        max_overflow=parse_non_negative_int(
            db.get("max_overflow", DatabaseSettings.max_overflow)
        ),
    )

    notifications = NotificationSettings(
        enabled=parse_bool(notif.get("enabled", NotificationSettings.enabled)),
        recipients=parse_recipients(
            notif.get("recipients", list(NotificationSettings.recipients))
        ),
        low_stock_threshold=parse_non_negative_int(
            notif.get("low_stock_threshold", NotificationSettings.low_stock_threshold)
        ),
    )

    reporting_settings = ReportingSettings(
        history_default_limit=parse_non_negative_int(
            reporting.get("history_default_limit", ReportingSettings.history_default_limit)
        )
        or ReportingSettings.history_default_limit,
        list_default_limit=parse_non_negative_int(
            reporting.get("list_default_limit", ReportingSettings.list_default_limit)
        )
        or ReportingSettings.list_default_limit,
    )

    logging_settings = LoggingSettings(
        level=parse_log_level(log.get("level", LoggingSettings.level)),
    )

    return WarehouseConfig(
        name=str(data.get("name", "default")),
        version=int(data.get("version", 1)),
        actor=str(data.get("actor") or "system").strip() or "system",
        capabilities=parse_capabilities(data.get("capabilities")),
        database=database,
        notifications=notifications,
        reporting=reporting_settings,
        logging=logging_settings,
        checksum=compute_checksum(data),
    )


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


def _ignored(variable: str, value: str, exc: Exception) -> None:
    _logger.warning(
        "config_override_ignored",
        extra={"variable": variable, "value": value, "error": str(exc)},
    )


def apply_env_overrides(
    config: WarehouseConfig,
    environ: Mapping[str, str],
) -> WarehouseConfig:
    """
    Return ``config`` with the WMS_* variables in ``environ`` applied.

    An unparseable value is logged and skipped; the other overrides still
    apply.
    """
    database = config.database
    notifications = config.notifications
    logging_settings = config.logging
    actor = config.actor
    applied: list[str] = []

    url = environ.get(ENV_DATABASE_URL, "").strip()
    if url:
        database = replace(database, url=url)
        applied.append(ENV_DATABASE_URL)

    raw = environ.get(ENV_LOG_LEVEL)
    if raw is not None and raw.strip():
        try:
            logging_settings = replace(logging_settings, level=parse_log_level(raw))
            applied.append(ENV_LOG_LEVEL)
        except ValueError as exc:
            _ignored(ENV_LOG_LEVEL, raw, exc)

    raw = environ.get(ENV_NOTIFICATIONS_ENABLED)
    if raw is not None and raw.strip():
        try:
            notifications = replace(notifications, enabled=parse_bool(raw))
            applied.append(ENV_NOTIFICATIONS_ENABLED)
        except ValueError as exc:
            _ignored(ENV_NOTIFICATIONS_ENABLED, raw, exc)

    raw = environ.get(ENV_NOTIFICATIONS_RECIPIENTS)
    if raw is not None and raw.strip():
        recipients = parse_recipients(raw)
        if recipients:
            notifications = replace(notifications, recipients=recipients)
            applied.append(ENV_NOTIFICATIONS_RECIPIENTS)
        else:
            _ignored(ENV_NOTIFICATIONS_RECIPIENTS, raw, ValueError("no recipients"))

    raw = environ.get(ENV_LOW_STOCK_THRESHOLD)
    if raw is not None and raw.strip():
        try:
            notifications = replace(
                notifications, low_stock_threshold=parse_non_negative_int(raw)
            )
            applied.append(ENV_LOW_STOCK_THRESHOLD)
        except ValueError as exc:
            _ignored(ENV_LOW_STOCK_THRESHOLD, raw, exc)

    raw = environ.get(ENV_ACTOR)
    if raw is not None and raw.strip():
        actor = raw.strip()
        applied.append(ENV_ACTOR)

    if applied:
        _logger.debug("config_overrides_applied", extra={"variables": applied})

    return replace(
        config,
        actor=actor,
        database=database,
        notifications=notifications,
        logging=logging_settings,
    )
