"""
Allocation -- greedy largest-first rack selection for outbound stock.

Responsibility:
    Decide which rack locations an outbound request (delivery line,
    transfer line) is deducted from, and plan a whole document against a
    snapshot of availability before anything is mutated.

Architecture position:
    Kernel > Domain -- pure functions over plain values, zero I/O.  The
    caller supplies the (locked) availability snapshot and applies the
    resulting plan.

Invariants enforced:
    - Only racks with quantity > 0 are candidates.
    - Candidates are consumed in descending quantity order; ties are broken
      by rack label so the same snapshot always yields the same plan.
    - A plan is produced only when aggregate demand per product is fully
      covered; otherwise InsufficientStockError and no plan at all.

Failure modes:
    - InsufficientStockError when a product's total demand across the
      document exceeds its total availability in the warehouse.
    - ValueError on negative requested quantities.

Example:
    >>> allocate({"A": 30, "B": 10, "C": 5}, 35)
    (RackTake(rack_location='A', quantity=30), RackTake(rack_location='B', quantity=5))
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Hashable, Iterable, Mapping
from uuid import UUID

from inventory_kernel.exceptions import InsufficientStockError


@dataclass(frozen=True)
class RackTake:
    """Quantity taken from one rack location."""
    rack_location: str
    quantity: int


@dataclass(frozen=True)
class OutboundRequest:
    """One outbound line to plan.  ``line_key`` identifies it in the plan."""
    line_key: Hashable
    product_id: UUID
    quantity: int


def allocation_order(available: Mapping[str, int]) -> list[tuple[str, int]]:
    """Candidates with quantity > 0, largest first, ties by rack label."""
    return sorted(
        ((rack, qty) for rack, qty in available.items() if qty > 0),
        key=lambda item: (-item[1], item[0]),
    )


def allocate(available: Mapping[str, int], requested: int) -> tuple[RackTake, ...]:
    """
    Take ``requested`` units greedily from ``available`` (rack -> quantity).

    Raises:
        ValueError: requested is negative, or availability does not cover it.
    """
    if requested < 0:
        raise ValueError(f"requested quantity must be >= 0, got {requested}")

    remaining = requested
    takes: list[RackTake] = []
    for rack, qty in allocation_order(available):
        if remaining == 0:
            break
        take = min(remaining, qty)
        takes.append(RackTake(rack, take))
        remaining -= take

    if remaining > 0:
        raise ValueError(
            f"availability {sum(max(q, 0) for q in available.values())} "
            f"does not cover {requested}"
        )
    return tuple(takes)


def plan_outbound(
    requests: Iterable[OutboundRequest],
    snapshot: Mapping[UUID, Mapping[str, int]],
    *,
    warehouse_id: UUID,
    document_number: str | None = None,
) -> dict[Hashable, tuple[RackTake, ...]]:
    """
    Plan every outbound line of one document against one snapshot.

    Demand is aggregated per product first, so two lines for the same
    product cannot each be satisfied by the same units.  Lines are then
    allocated in order against a running copy of the snapshot.

    Args:
        requests: The document's outbound lines, in line order.
        snapshot: product_id -> {rack_location: quantity} for one warehouse.
        warehouse_id: Warehouse the snapshot belongs to (error reporting).
        document_number: Document being planned (error reporting).

    Returns:
        line_key -> racks to deduct from.  Lines with quantity 0 map to ().

    Raises:
        InsufficientStockError: Aggregate demand exceeds availability.
    """
    requests = list(requests)

    demand: dict[UUID, int] = defaultdict(int)
    for req in requests:
        if req.quantity < 0:
            raise ValueError(f"requested quantity must be >= 0, got {req.quantity}")
        demand[req.product_id] += req.quantity

    for product_id, total in demand.items():
        available = sum(q for q in snapshot.get(product_id, {}).values() if q > 0)
        if total > available:
            raise InsufficientStockError(
                product_id=product_id,
                warehouse_id=warehouse_id,
                requested=total,
                available=available,
                document_number=document_number,
            )

    running: dict[UUID, dict[str, int]] = {
        product_id: dict(racks) for product_id, racks in snapshot.items()
    }
    plan: dict[Hashable, tuple[RackTake, ...]] = {}
    for req in requests:
        racks = running.setdefault(req.product_id, {})
        takes = allocate(racks, req.quantity)
        for take in takes:
            racks[take.rack_location] -= take.quantity
        plan[req.line_key] = takes
    return plan
