"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``inventory_config.schema`` dataclasses.  The single public entry point for
runtime config is ``inventory_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown top-level sections and unknown keys raise ``ValueError``; a typo
  never silently falls back to a default.
* Integer settings must be YAML integers (booleans rejected).
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    ConcurrencySettings,
    InventoryConfig,
    LedgerSettings,
    NumberingSettings,
    QuerySettings,
)

_SECTIONS = ("config_id", "version", "ledger", "numbering", "concurrency", "queries")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], name: str, allowed: tuple[str, ...]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{name} must be a mapping")
    unknown = sorted(set(section) - set(allowed))
    if unknown:
        raise ValueError(f"{name}: unknown keys {unknown}")
    return section


def _int(section: dict[str, Any], name: str, key: str, default: int) -> int:
    value = section.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name}.{key} must be an integer, got {value!r}")
    return value


def parse_config(data: dict[str, Any]) -> InventoryConfig:
    """Parse a configuration mapping.  Missing sections take defaults."""
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"unknown configuration sections: {unknown}")

    ledger = _section(data, "ledger", ("default_rack_location",))
    numbering = _section(data, "numbering", ("prefixes", "padding"))
    concurrency = _section(
        data, "concurrency",
        ("lock_timeout_ms", "max_retries", "backoff_base_ms", "backoff_max_ms"),
    )
    queries = _section(data, "queries", ("default_limit", "max_limit", "recent_activity_limit"))

    defaults = NumberingSettings()
    prefixes = numbering.get("prefixes", dict(defaults.prefixes))
    if not isinstance(prefixes, dict):
        raise ValueError("numbering.prefixes must be a mapping of kind -> prefix")

    version = data.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool):
        raise ValueError(f"version must be an integer, got {version!r}")

    return InventoryConfig(
        config_id=str(data.get("config_id", "default")),
        version=version,
        ledger=LedgerSettings(
            default_rack_location=ledger.get("default_rack_location", "DEFAULT"),
        ),
        numbering=NumberingSettings(
            prefixes=tuple(sorted((str(k), v) for k, v in prefixes.items())),
            padding=_int(numbering, "numbering", "padding", defaults.padding),
        ),
        concurrency=ConcurrencySettings(
            lock_timeout_ms=_int(concurrency, "concurrency", "lock_timeout_ms", 5000),
            max_retries=_int(concurrency, "concurrency", "max_retries", 3),
            backoff_base_ms=_int(concurrency, "concurrency", "backoff_base_ms", 50),
            backoff_max_ms=_int(concurrency, "concurrency", "backoff_max_ms", 1000),
        ),
        queries=QuerySettings(
            default_limit=_int(queries, "queries", "default_limit", 100),
            max_limit=_int(queries, "queries", "max_limit", 1000),
            recent_activity_limit=_int(queries, "queries", "recent_activity_limit", 10),
        ),
        checksum=compute_checksum(data),
    )


def load_config(path: Path) -> InventoryConfig:
    return parse_config(load_yaml_file(path))
