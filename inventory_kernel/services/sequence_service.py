"""
Module: inventory_kernel.services.sequence_service
Responsibility: Monotonic, collision-free sequence numbers via locked counter
    rows, and human-readable document numbers built on them.
Architecture position: Kernel > Services -- imperative shell, owns
    sequence_counters table writes.

Invariants enforced:
    - Strictly monotonic sequences via locked counter row
      (SELECT ... FOR UPDATE).  Count-plus-one and MAX-plus-one are NEVER
      used: two concurrent allocations for the same name never return the
      same value.
    - Increments are transactional: a rolled back transaction returns its
      value, so numbers stay gap-free under normal operation.

Failure modes:
    - OperationalError / ContentionError if the counter row lock cannot be
      obtained within lock_timeout; the caller's whole operation fails and
      rolls back, leaving no partially numbered document.
    - KeyError if a document kind has no configured prefix.

Audit relevance:
    Document numbers (REC-00001, DEL-00001, ...) are the identifiers that
    appear on every movement's reference_number.  The global
    ``stock_movement`` sequence orders the ledger.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.domain.settings import KernelSettings
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.document import DocumentKind
from inventory_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is only committed when the caller's
        transaction commits.

    Guarantees:
        - Concurrency safety: ``SELECT ... FOR UPDATE`` serializes
          concurrent allocations for the same sequence.
        - Pending changes in the caller's session are flushed, never
          discarded, before the counter is read.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        with session.begin():
            seq = sequence_service.next_value(SequenceService.STOCK_MOVEMENT)
    """

    # Well-known sequence names
    STOCK_MOVEMENT = "stock_movement"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        1. Locks the sequence row (or creates it if it does not exist)
        2. Increments the counter
        3. Returns the new value

        Preconditions:
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0 strictly greater than any previously
              returned value for this sequence name.
            - The counter row is locked until the transaction completes.
        """
        if not sequence_name:
            raise ValueError("sequence_name must be non-empty")

        self._session.flush()

        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  A concurrent creator may win the insert; the
            # savepoint keeps the rest of the caller's work intact.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None


class DocumentNumberGenerator:
    """
    Formats per-kind document numbers: ``<PREFIX>-<zero-padded ordinal>``.

    One counter per document kind (``document.receipt``, ...), so each kind
    numbers independently from 1.  Prefixes and padding come from
    KernelSettings.
    """

    def __init__(self, session: Session, settings: KernelSettings | None = None):
        self._sequences = SequenceService(session)
        self._settings = settings or KernelSettings()

    def format(self, kind: DocumentKind, value: int) -> str:
        prefix = self._settings.prefix_for(kind.value)
        return f"{prefix}-{value:0{self._settings.number_padding}d}"

    def next(self, kind: DocumentKind | str) -> str:
        """Allocate the next number for ``kind`` inside the caller's transaction."""
        kind = DocumentKind(kind)
        value = self._sequences.next_value(kind.sequence_name)
        number = self.format(kind, value)
        logger.info(
            "document_number_allocated",
            extra={"document_kind": kind.value, "document_number": number},
        )
        return number
