"""
Inventory Kernel

An append-only stock ledger for warehouse rack locations with:
- Atomic document validation (receipts, deliveries, transfers, adjustments)
- Greedy largest-first rack allocation for outbound stock
- Locked-counter document numbering
- Reconcilable, chained movement history
"""

__version__ = "0.1.0"
