"""Pure domain layer: clock, settings, workflow, allocation and DTOs."""

from inventory_kernel.domain.allocation import (
    OutboundRequest,
    RackTake,
    allocate,
    plan_outbound,
)
from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.settings import KernelSettings
from inventory_kernel.domain.workflow import DOCUMENT_WORKFLOW, Transition, Workflow

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "KernelSettings",
    "DOCUMENT_WORKFLOW",
    "Transition",
    "Workflow",
    "OutboundRequest",
    "RackTake",
    "allocate",
    "plan_outbound",
]
