"""
Config -> Kernel Bridges.

Convert an InventoryConfig into kernel inputs.  These live in
inventory_config (the producer) because the kernel must NEVER import
inventory_config.

Usage:
    from inventory_config import get_active_config
    from inventory_config.bridges import build_kernel_settings

    config = get_active_config()
    settings = build_kernel_settings(config)
    init_engine_from_url(url, lock_timeout_ms=settings.lock_timeout_ms)
    orchestrator = InventoryOrchestrator(session, settings=settings)
"""

from __future__ import annotations

from inventory_config.schema import InventoryConfig
from inventory_kernel.domain.settings import KernelSettings


def build_kernel_settings(config: InventoryConfig) -> KernelSettings:
    return KernelSettings(
        default_rack_location=config.ledger.default_rack_location,
        document_prefixes=config.numbering.prefix_map(),
        number_padding=config.numbering.padding,
        lock_timeout_ms=config.concurrency.lock_timeout_ms,
        max_retries=config.concurrency.max_retries,
        backoff_base_ms=config.concurrency.backoff_base_ms,
        backoff_max_ms=config.concurrency.backoff_max_ms,
        default_query_limit=config.queries.default_limit,
        max_query_limit=config.queries.max_limit,
        recent_activity_limit=config.queries.recent_activity_limit,
    )
