"""
Module: inventory_kernel.selectors.document_selector
Responsibility: Read-only access to documents and their lines.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import DocumentDTO
from inventory_kernel.domain.settings import KernelSettings
from inventory_kernel.models.document import Document, DocumentKind, DocumentStatus
from inventory_kernel.selectors.base import BaseSelector


class DocumentSelector(BaseSelector[Document]):
    """Document lookups and listings."""

    def __init__(self, session: Session, settings: KernelSettings | None = None):
        super().__init__(session)
        self._settings = settings or KernelSettings()

    def get(self, document_id: UUID) -> DocumentDTO | None:
        doc = self.session.get(Document, document_id)
        return DocumentDTO.from_model(doc) if doc is not None else None

    def get_by_number(self, document_number: str) -> DocumentDTO | None:
        doc = self.session.execute(
            select(Document).where(Document.document_number == document_number)
        ).scalar_one_or_none()
        return DocumentDTO.from_model(doc) if doc is not None else None

    def list_documents(
        self,
        kind: DocumentKind | str | None = None,
        status: DocumentStatus | str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[DocumentDTO]:
        """Newest first; ties broken by document number."""
        stmt = select(Document).order_by(
            Document.created_at.desc(), Document.document_number.desc()
        )
        if kind is not None:
            stmt = stmt.where(Document.kind == DocumentKind(kind))
        if status is not None:
            stmt = stmt.where(Document.status == DocumentStatus(status))
        stmt = stmt.limit(self._settings.clamp_limit(limit)).offset(max(0, offset))
        return [DocumentDTO.from_model(doc) for doc in self.session.execute(stmt).scalars()]

    def pending_by_kind(self) -> dict[str, int]:
        """Count of draft + ready documents per kind; every kind is present."""
        counts = {kind.value: 0 for kind in DocumentKind}
        stmt = (
            select(Document.kind, func.count())
            .where(Document.status.in_([DocumentStatus.DRAFT, DocumentStatus.READY]))
            .group_by(Document.kind)
        )
        for kind, total in self.session.execute(stmt).all():
            counts[DocumentKind(kind).value] = int(total)
        return counts
