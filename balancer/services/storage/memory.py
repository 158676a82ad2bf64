"""
In-Memory Storage Implementation

Used by tests and local runs where no real backend is configured.
Behaves like a backend would at the interface level: duplicate
documents are refused, missing documents raise NotFoundError.
"""

from decimal import Decimal
from uuid import UUID

from balancer.models.ledger import CommitReceipt, DocumentHeader, LedgerLine
from balancer.models.audit import AuditEvent
from balancer.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Keeps batches in a dict keyed by document id."""

    def __init__(self):
        self.headers: dict[UUID, DocumentHeader] = {}
        self.batches: dict[UUID, list[LedgerLine]] = {}

    async def save_batch(
        self,
        header: DocumentHeader,
        lines: list[LedgerLine],
        replace: bool = False,
    ) -> CommitReceipt:
        if header.document_id in self.batches and not replace:
            raise DuplicateError(
                f"Document {header.document_id} already has stored lines"
            )

        self.headers[header.document_id] = header
        self.batches[header.document_id] = list(lines)

        return CommitReceipt(
            document_id=header.document_id,
            line_count=len(lines),
            debit_total=sum((line.debit_amount for line in lines), Decimal("0")),
            credit_total=sum((line.credit_amount for line in lines), Decimal("0")),
            currency=header.currency,
        )

    async def get_lines(self, document_id: UUID) -> list[LedgerLine]:
        if document_id not in self.batches:
            raise NotFoundError(f"No lines stored for document {document_id}")
        return list(self.batches[document_id])

    async def delete_batch(self, document_id: UUID) -> bool:
        self.headers.pop(document_id, None)
        return self.batches.pop(document_id, None) is not None


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        matching = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(matching, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self.events, key=lambda e: e.timestamp, reverse=True)[:limit]
