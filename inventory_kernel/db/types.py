"""
Module: inventory_kernel.db.types
Responsibility: Annotated type aliases for ledger columns, plus the small
    validation helpers that keep every model and service on identical
    definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Quantities are whole units (int).  No fractional stock.
    - Rack labels are trimmed, non-empty and at most RACK_LABEL_MAX_LENGTH.
"""

from typing import Annotated

from sqlalchemy import BigInteger, String


# Whole-unit stock quantity
Quantity = Annotated[int, BigInteger]

# Monotonic ordinal for ordering
Sequence = Annotated[int, BigInteger]

# Rack location label, e.g. "A-01-03"
RackLabel = Annotated[str, String(64)]

# Human-readable document number, e.g. "REC-00001"
DocumentNumber = Annotated[str, String(32)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for descriptions and notes
LongText = Annotated[str, String(4000)]


RACK_LABEL_MAX_LENGTH = 64


def normalize_rack_label(label: str | None, default: str) -> str:
    """
    Normalize a rack location label.

    Empty or missing labels fall back to ``default``; surrounding
    whitespace is removed.

    Raises:
        ValueError: If the label exceeds RACK_LABEL_MAX_LENGTH.
    """
    value = (label or "").strip() or default
    if len(value) > RACK_LABEL_MAX_LENGTH:
        raise ValueError(
            f"Rack label exceeds {RACK_LABEL_MAX_LENGTH} characters: {value!r}"
        )
    return value


def enum_values(enum_cls) -> list[str]:
    """values_callable for SQLAlchemy Enum columns: persist member values."""
    return [member.value for member in enum_cls]
