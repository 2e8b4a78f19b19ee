"""
inventory_config -- single public entrypoint for inventory configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component may read configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``inventory_kernel``.  The kernel MUST NEVER
    import from ``inventory_config``; ``bridges.build_kernel_settings``
    translates a loaded config into the kernel's KernelSettings.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``INVENTORY_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying runtime behavior to an exact configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path

from inventory_config.loader import load_config
from inventory_config.schema import InventoryConfig

_logger = logging.getLogger("inventory_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> InventoryConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to inventory_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If configuration validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    config = load_config(path)

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
        },
    )
    return config


__all__ = ["InventoryConfig", "get_active_config"]
