"""
Kernel Invariants Contract.

These invariants are structural law for the stock ledger. No configuration
value may switch them off.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across MovementLedger, StockLocationStore,
DocumentService, SequenceService and the immutability listeners.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    RECONCILIATION = "reconciliation"
    """For every (product, warehouse, rack) the sum of quantity_change over
    its movements equals the current StockLocation quantity. Checked by
    ReconciliationSelector."""

    CHAINING = "chaining"
    """Each movement's quantity_before equals the previous movement's
    quantity_after for the same key (0 for the first). Enforced by
    MovementLedger.append."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """No StockLocation quantity is ever below zero. Enforced by
    StockLocationStore and a CHECK constraint."""

    IMMUTABILITY = "immutability"
    """Movements are append-only; SKUs never change once assigned.
    Enforced by ORM listeners in inventory_kernel.db.immutability."""

    ATOMIC_VALIDATION = "atomic_validation"
    """Stock mutations, ledger appends and the status transition of a
    document commit together or not at all. Enforced by
    InventoryOrchestrator savepoints."""

    SEQUENCE_MONOTONICITY = "sequence_monotonicity"
    """Document numbers and movement ordinals come from locked counter
    rows and never repeat. Enforced by SequenceService."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_config",
)
