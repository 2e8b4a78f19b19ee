"""
InventoryConfig schema.

Frozen dataclasses for the YAML configuration set.  The loader parses YAML
into these types; bridges.py turns an InventoryConfig into the kernel's
KernelSettings.  Every class validates itself in __post_init__ and raises
ValueError on a bad value.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DOCUMENT_KINDS = ("receipt", "delivery", "transfer", "adjustment")


@dataclass(frozen=True)
class LedgerSettings:
    default_rack_location: str = "DEFAULT"

    def __post_init__(self) -> None:
        if not isinstance(self.default_rack_location, str) or not self.default_rack_location.strip():
            raise ValueError("ledger.default_rack_location must be a non-empty string")
        if len(self.default_rack_location) > 64:
            raise ValueError("ledger.default_rack_location exceeds 64 characters")


@dataclass(frozen=True)
class NumberingSettings:
    """Document number format: ``{prefix}-{counter zero-padded to padding}``."""

    prefixes: tuple[tuple[str, str], ...] = (
        ("receipt", "REC"),
        ("delivery", "DEL"),
        ("transfer", "INT"),
        ("adjustment", "ADJ"),
    )
    padding: int = 5

    def __post_init__(self) -> None:
        mapping = dict(self.prefixes)
        missing = [kind for kind in DOCUMENT_KINDS if kind not in mapping]
        if missing:
            raise ValueError(f"numbering.prefixes missing kinds: {missing}")
        unknown = sorted(set(mapping) - set(DOCUMENT_KINDS))
        if unknown:
            raise ValueError(f"numbering.prefixes has unknown kinds: {unknown}")
        for kind, prefix in self.prefixes:
            if not isinstance(prefix, str) or not prefix.strip():
                raise ValueError(f"numbering.prefixes.{kind} must be a non-empty string")
        if len(set(mapping.values())) != len(mapping):
            raise ValueError("numbering.prefixes must be distinct per kind")
        if not isinstance(self.padding, int) or not 1 <= self.padding <= 12:
            raise ValueError("numbering.padding must be between 1 and 12")

    def prefix_map(self) -> dict[str, str]:
        return dict(self.prefixes)


@dataclass(frozen=True)
class ConcurrencySettings:
    lock_timeout_ms: int = 5000
    max_retries: int = 3
    backoff_base_ms: int = 50
    backoff_max_ms: int = 1000

    def __post_init__(self) -> None:
        if self.lock_timeout_ms <= 0:
            raise ValueError("concurrency.lock_timeout_ms must be > 0")
        if self.max_retries < 0:
            raise ValueError("concurrency.max_retries must be >= 0")
        if self.backoff_base_ms < 0 or self.backoff_max_ms < self.backoff_base_ms:
            raise ValueError("concurrency backoff must satisfy 0 <= base <= max")


@dataclass(frozen=True)
class QuerySettings:
    default_limit: int = 100
    max_limit: int = 1000
    recent_activity_limit: int = 10

    def __post_init__(self) -> None:
        if self.default_limit < 1 or self.max_limit < self.default_limit:
            raise ValueError("queries limits must satisfy 1 <= default_limit <= max_limit")
        if self.recent_activity_limit < 1:
            raise ValueError("queries.recent_activity_limit must be >= 1")


@dataclass(frozen=True)
class InventoryConfig:
    """One loaded configuration set.  ``checksum`` identifies its content."""

    config_id: str
    version: int
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    numbering: NumberingSettings = field(default_factory=NumberingSettings)
    concurrency: ConcurrencySettings = field(default_factory=ConcurrencySettings)
    queries: QuerySettings = field(default_factory=QuerySettings)
    checksum: str = ""
