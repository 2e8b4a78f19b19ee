"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    form the "Q" side of the kernel, providing structured read access to stock,
    movements and documents without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/dtos.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: Selectors accept a Session from the caller but MUST NOT
      call session.add(), session.delete(), session.commit(), or session.flush().
    - DTO return convention: Selectors return frozen DTOs from domain/dtos.py,
      NOT raw ORM model instances.
    - Session ownership: Selectors do NOT create or manage their own sessions;
      the caller owns the session and its transaction scope.

Failure modes:
    - Returns None or empty collections on absence of data (never raises on
      "not found" -- the orchestrator decides what absence means).
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
