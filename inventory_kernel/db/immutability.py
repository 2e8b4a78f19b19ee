"""
ORM-Level Immutability Enforcement.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check our invariants:

    session.flush()
         |
         v
    [before_flush]        --> _check_product_deletion_before_flush()
         |
         v
    [before_update event] --> _check_*_immutability() --> ImmutabilityViolationError
         |                                                        ^
         v                                                        |
    [before_delete event] --> _check_*_delete() -----------------+
         |
         v
    SQL sent to database (only if checks pass)

If a check fails, we raise ImmutabilityViolationError and the flush is
aborted. The database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable                         | Allowed changes
----------------|----------------------------------------|------------------------------
StockMovement   | ALWAYS (from creation)                 | none
Product         | sku once assigned; row once referenced | everything except sku
Document        | status done or cancelled               | updated_at, updated_by_id
DocumentLine    | parent document no longer draft        | fulfilled_quantity,
                |                                        | system_quantity

updated_at/updated_by_id are audit metadata, not document content, so they
may change on frozen documents.

Document status is checked with attribute history: the transition INTO done
or cancelled is the validation / cancellation itself and is allowed; any
change AFTER the status was already terminal is blocked.

===============================================================================
USAGE
===============================================================================

Called once during application startup:

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    from inventory_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
    # ... do forbidden operation ...
    register_immutability_listeners()
"""

from sqlalchemy import event, exists, inspect, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = ("updated_at", "updated_by_id")

_VALIDATION_OWNED_LINE_FIELDS = ("fulfilled_quantity", "system_quantity")


def _blocked(entity_type: str, entity_id, operation: str, reason: str, **extra):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **extra,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _has_column_changes(target) -> bool:
    insp = inspect(target)
    return any(
        insp.attrs[attr.key].history.has_changes() for attr in insp.mapper.column_attrs
    )


def _check_stock_movement_immutability(mapper, connection, target):
    """Stock movements are append-only; no UPDATE is ever allowed."""
    if not _has_column_changes(target):
        return
    _blocked(
        "StockMovement",
        target.id,
        "UPDATE",
        "Stock movements are immutable",
    )


def _check_stock_movement_delete(mapper, connection, target):
    """Stock movements are append-only; no DELETE is ever allowed."""
    _blocked(
        "StockMovement",
        target.id,
        "DELETE",
        "Stock movements cannot be deleted",
    )


def _check_product_sku_immutability(mapper, connection, target):
    """Prevent changing a product's SKU once it has been assigned."""
    history = get_history(target, "sku")
    if history.deleted and history.deleted[0] is not None:
        _blocked(
            "Product",
            target.id,
            "UPDATE",
            "SKU cannot be changed once assigned",
            field="sku",
            old_value=history.deleted[0],
        )


def _product_is_referenced(session: Session, product_id) -> bool:
    from inventory_kernel.models.movement import StockMovement
    from inventory_kernel.models.stock import StockLocation

    stmt = select(
        or_(
            exists().where(StockMovement.product_id == product_id),
            exists().where(StockLocation.product_id == product_id),
        )
    )
    return bool(session.execute(stmt).scalar())


def _check_product_deletion_before_flush(session, flush_context, instances):
    """
    Prevent deletion of products referenced by stock or ledger history.

    This runs in SessionEvents.before_flush, before the flush plan is
    finalized; mapper-level before_delete fires too late to stop it.
    """
    from inventory_kernel.models.catalog import Product

    for obj in list(session.deleted):
        if not isinstance(obj, Product):
            continue

        with session.no_autoflush:
            referenced = _product_is_referenced(session, obj.id)

        if referenced:
            _blocked(
                "Product",
                obj.id,
                "DELETE",
                f"Product {obj.sku} is referenced by stock history; deactivate it instead",
            )


def _was_terminal(target) -> bool:
    """True when the document was already done/cancelled before this flush."""
    from inventory_kernel.models.document import DocumentStatus

    status_history = get_history(target, "status")
    if status_history.deleted:
        old_status = status_history.deleted[0]
        return old_status is not None and DocumentStatus(old_status).is_terminal
    if not status_history.added:
        return DocumentStatus(target.status).is_terminal
    return False


def _check_document_immutability(mapper, connection, target):
    """Block any content change to a document that was already terminal."""
    if not _was_terminal(target):
        return

    insp = inspect(target)
    for attr in insp.mapper.column_attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if insp.attrs[attr.key].history.has_changes():
            _blocked(
                "Document",
                target.id,
                "UPDATE",
                f"Cannot modify field '{attr.key}' on {target.status.value} document "
                f"{target.document_number}",
                field=attr.key,
            )


def _check_document_delete(mapper, connection, target):
    """Terminal documents cannot be deleted."""
    if target.is_terminal or _was_terminal(target):
        _blocked(
            "Document",
            target.id,
            "DELETE",
            f"{target.status.value} documents cannot be deleted",
        )


def _parent_status(connection, document_id):
    from inventory_kernel.models.document import Document, DocumentStatus

    table = Document.__table__
    value = connection.execute(
        select(table.c.status).where(table.c.id == document_id)
    ).scalar()
    return DocumentStatus(value) if value is not None else None


def _check_document_line_immutability(mapper, connection, target):
    """
    Lines are editable only while the parent document is draft.

    The parent status is read through the flushing connection: the parent's
    own UPDATE to done is flushed before its lines, so validation sees the
    new status and may write only the validation-owned fields.
    """
    from inventory_kernel.models.document import DocumentStatus

    status = _parent_status(connection, target.document_id)
    if status is None or status == DocumentStatus.DRAFT:
        return

    insp = inspect(target)
    for attr in insp.mapper.column_attrs:
        if attr.key in _VALIDATION_OWNED_LINE_FIELDS:
            continue
        if insp.attrs[attr.key].history.has_changes():
            _blocked(
                "DocumentLine",
                target.id,
                "UPDATE",
                f"Cannot modify line field '{attr.key}' on {status.value} document",
                field=attr.key,
            )


def _check_document_line_delete(mapper, connection, target):
    """Lines can be removed only while the parent document is draft."""
    from inventory_kernel.models.document import DocumentStatus

    status = _parent_status(connection, target.document_id)
    if status is not None and status != DocumentStatus.DRAFT:
        _blocked(
            "DocumentLine",
            target.id,
            "DELETE",
            f"Cannot delete lines of {status.value} document",
        )


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Safe to call more than once.
    """
    from inventory_kernel.models.catalog import Product
    from inventory_kernel.models.document import Document, DocumentLine
    from inventory_kernel.models.movement import StockMovement

    _safe_add_listener(Session, "before_flush", _check_product_deletion_before_flush)

    _safe_add_listener(StockMovement, "before_update", _check_stock_movement_immutability)
    _safe_add_listener(StockMovement, "before_delete", _check_stock_movement_delete)

    _safe_add_listener(Product, "before_update", _check_product_sku_immutability)

    _safe_add_listener(Document, "before_update", _check_document_immutability)
    _safe_add_listener(Document, "before_delete", _check_document_delete)

    _safe_add_listener(DocumentLine, "before_update", _check_document_line_immutability)
    _safe_add_listener(DocumentLine, "before_delete", _check_document_line_delete)


def _safe_add_listener(target, event_name, listener_fn):
    if not event.contains(target, event_name, listener_fn):
        event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """
    Safely remove an event listener, ignoring if not registered.

    This prevents errors when unregistering listeners that may not have been
    registered (e.g., in test scenarios with custom setup/teardown).
    """
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    from inventory_kernel.models.catalog import Product
    from inventory_kernel.models.document import Document, DocumentLine
    from inventory_kernel.models.movement import StockMovement

    _safe_remove_listener(Session, "before_flush", _check_product_deletion_before_flush)

    _safe_remove_listener(StockMovement, "before_update", _check_stock_movement_immutability)
    _safe_remove_listener(StockMovement, "before_delete", _check_stock_movement_delete)

    _safe_remove_listener(Product, "before_update", _check_product_sku_immutability)

    _safe_remove_listener(Document, "before_update", _check_document_immutability)
    _safe_remove_listener(Document, "before_delete", _check_document_delete)

    _safe_remove_listener(DocumentLine, "before_update", _check_document_line_immutability)
    _safe_remove_listener(DocumentLine, "before_delete", _check_document_line_delete)
