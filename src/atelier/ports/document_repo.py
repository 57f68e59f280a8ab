"""Invoice/quotation repository interface."""

from typing import Protocol

from atelier.core.money import DocumentKind, FinancialDocument


class DocumentRepository(Protocol):
    """Interface for storing invoices and quotations."""

    def fetch_documents(self, kind: DocumentKind) -> list[FinancialDocument]:
        """Fetch all documents of one kind."""
        ...

    def fetch_document(self, kind: DocumentKind, document_id: str) -> FinancialDocument:
        """Fetch a single document."""
        ...

    def save_document(self, document: FinancialDocument) -> FinancialDocument:
        """Insert (no id) or update (id set) a document. Totals are stored as computed."""
        ...

    def update_document_fields(
        self, kind: DocumentKind, document_id: str, fields: dict
    ) -> FinancialDocument:
        """Patch selected columns, e.g. status."""
        ...
