"""
Module: inventory_kernel.models.sequence
Responsibility: ORM persistence for named sequence counters.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One row per sequence name (UNIQUE constraint).
    - current_value only ever increases, and only under a row lock held by
      SequenceService.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base
from inventory_kernel.db.types import Sequence


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint("name", name="uq_sequence_counter_name"),
    )

    # Sequence name (e.g., "document.receipt", "stock_movement")
    name: Mapped[str] = mapped_column(String(50), nullable=False)

    current_value: Mapped[Sequence] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
