"""
Module: inventory_kernel.db.contention
Responsibility: Classify database driver errors as transient lock contention
    and translate them into the kernel's ContentionError.
Architecture position: Kernel > DB.  May import from exceptions only.

Recognized as contention:
    PostgreSQL  55P03 lock_not_available (lock_timeout expired)
                40P01 deadlock_detected
                40001 serialization_failure
    SQLite      "database is locked" / "database table is locked"
                (busy timeout expired while waiting for the write lock)
"""

from sqlalchemy.exc import DBAPIError

from inventory_kernel.exceptions import ContentionError

CONTENTION_SQLSTATES = frozenset({"55P03", "40P01", "40001"})

_CONTENTION_MESSAGES = (
    "database is locked",
    "database table is locked",
    "deadlock detected",
    "could not obtain lock",
    "canceling statement due to lock timeout",
    "could not serialize access",
)


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    if orig is None:
        return None
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_contention_error(exc: BaseException) -> bool:
    """True when ``exc`` is a transient lock conflict safe to retry."""
    if isinstance(exc, ContentionError):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    if _sqlstate(exc) in CONTENTION_SQLSTATES:
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    return any(fragment in message for fragment in _CONTENTION_MESSAGES)


def to_contention_error(
    exc: BaseException,
    operation: str,
    attempts: int = 1,
) -> ContentionError:
    """Wrap a driver-level contention error in a ContentionError."""
    if isinstance(exc, ContentionError):
        return ContentionError(operation, attempts=attempts, detail=exc.detail)
    lines = str(getattr(exc, "orig", exc)).strip().splitlines()
    return ContentionError(
        operation,
        attempts=attempts,
        detail=lines[0][:200] if lines else None,
    )
