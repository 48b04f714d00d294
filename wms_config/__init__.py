"""
wms_config -- single public entrypoint for warehouse configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads the YAML file or
    the ``WMS_*`` environment variables directly.

Architecture position:
    Configuration layer.  Sits above ``wms_kernel`` and below
    ``wms_services`` and the CLI.  The kernel never imports from here;
    the orchestrator translates the config into service wiring.

Invariants enforced:
    - Single entrypoint: runtime config flows through ``get_active_config()``.
    - Core capabilities (catalog, ledger, orders) are always enabled.
    - Unknown capability names fail the load.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- unknown capability or malformed value in the file.

Audit relevance:
    Every successful call emits a ``wms_config_loaded`` log entry with the
    config name, version, checksum and enabled capabilities.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from wms_config.loader import apply_env_overrides, load_yaml_file, parse_config
from wms_config.schema import (
    CORE_CAPABILITIES,
    OPTIONAL_CAPABILITIES,
    DatabaseSettings,
    LoggingSettings,
    NotificationSettings,
    ReportingSettings,
    WarehouseConfig,
)

_logger = logging.getLogger("wms_kernel.config")

DEFAULT_CONFIG_FILE = Path(__file__).parent / "sets" / "default.yaml"

ENV_CONFIG_FILE = "WMS_CONFIG_FILE"


def get_active_config(
    config_path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> WarehouseConfig:
    """The ONLY public configuration entrypoint.

    Resolution order for the file: ``config_path``, then
    ``WMS_CONFIG_FILE``, then ``wms_config/sets/default.yaml``.  The
    ``WMS_*`` overrides from ``environ`` (default ``os.environ``) are
    applied on top.

    Raises:
        FileNotFoundError: the configuration file does not exist.
        ValueError: the file fails validation.
    """
    env = os.environ if environ is None else environ
    path = Path(config_path or env.get(ENV_CONFIG_FILE) or DEFAULT_CONFIG_FILE)

    config = apply_env_overrides(parse_config(load_yaml_file(path)), env)

    _logger.info(
        "wms_config_loaded",
        extra={
            "config_name": config.name,
            "config_version": config.version,
            "config_path": str(path),
            "checksum": config.checksum,
            "capabilities": sorted(config.capabilities),
        },
    )
    return config


__all__ = [
    "CORE_CAPABILITIES",
    "OPTIONAL_CAPABILITIES",
    "DatabaseSettings",
    "LoggingSettings",
    "NotificationSettings",
    "ReportingSettings",
    "WarehouseConfig",
    "get_active_config",
]
