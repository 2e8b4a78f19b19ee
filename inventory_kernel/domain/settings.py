"""
KernelSettings -- runtime knobs the kernel consumes.

Responsibility:
    One frozen value object carrying everything configurable about the
    kernel: default rack, document numbering, lock and retry policy, query
    limits.  The kernel never reads configuration files; the
    ``inventory_config`` package builds a KernelSettings and hands it in.

Architecture position:
    Kernel > Domain -- pure value object, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from inventory_kernel.exceptions import ValidationInputError

DEFAULT_RACK_LOCATION = "DEFAULT"

DEFAULT_DOCUMENT_PREFIXES: Mapping[str, str] = MappingProxyType({
    "receipt": "REC",
    "delivery": "DEL",
    "transfer": "INT",
    "adjustment": "ADJ",
})


@dataclass(frozen=True)
class KernelSettings:
    """Frozen kernel configuration with production defaults."""

    default_rack_location: str = DEFAULT_RACK_LOCATION
    document_prefixes: Mapping[str, str] = field(
        default_factory=lambda: DEFAULT_DOCUMENT_PREFIXES
    )
    number_padding: int = 5

    lock_timeout_ms: int = 5000
    max_retries: int = 3
    backoff_base_ms: int = 50
    backoff_max_ms: int = 1000

    default_query_limit: int = 100
    max_query_limit: int = 1000
    recent_activity_limit: int = 10

    def __post_init__(self) -> None:
        if not self.default_rack_location.strip():
            raise ValueError("default_rack_location must be non-empty")
        missing = set(DEFAULT_DOCUMENT_PREFIXES) - set(self.document_prefixes)
        if missing:
            raise ValueError(f"document_prefixes missing kinds: {sorted(missing)}")
        if self.number_padding < 1:
            raise ValueError("number_padding must be >= 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.default_query_limit < 1 or self.max_query_limit < self.default_query_limit:
            raise ValueError("query limits must satisfy 1 <= default <= max")
        object.__setattr__(
            self, "document_prefixes", MappingProxyType(dict(self.document_prefixes))
        )

    def prefix_for(self, kind: str) -> str:
        """Number prefix for a document kind value, e.g. 'receipt' -> 'REC'."""
        return self.document_prefixes[kind]

    def clamp_limit(self, limit: int | None) -> int:
        """Page size for a listing: the default when unset, capped at the maximum."""
        if limit is None:
            return self.default_query_limit
        if limit < 1:
            raise ValidationInputError("limit", "must be >= 1")
        return min(int(limit), self.max_query_limit)
