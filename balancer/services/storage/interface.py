"""
Abstract Storage Interface

DESIGN DECISION: The balancer never talks to a database. Persistence is a
collaborator behind this interface, which allows us to:
1. Plug in whatever backend the host application uses
2. Use in-memory storage for testing
3. Keep balancing logic decoupled from storage mechanics

The interface is intentionally small: store a validated batch for a
document, read it back, drop it.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from balancer.models.ledger import CommitReceipt, DocumentHeader, LedgerLine
from balancer.models.audit import AuditEvent


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Implementations receive only batches the commit gate accepted.
    """

    @abstractmethod
    async def save_batch(
        self,
        header: DocumentHeader,
        lines: list[LedgerLine],
        replace: bool = False,
    ) -> CommitReceipt:
        """
        Persist all lines of a document in one operation.

        Args:
            header: Document the lines belong to (id, date, currency)
            lines: The validated lines
            replace: Replace lines already stored for this document

        Returns:
            Receipt describing what was stored

        Raises:
            DuplicateError: Document already has lines and replace is False
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_lines(self, document_id: UUID) -> list[LedgerLine]:
        """
        Get the stored lines of a document.

        Raises:
            NotFoundError: No batch stored for this document
        """
        pass

    @abstractmethod
    async def delete_batch(self, document_id: UUID) -> bool:
        """
        Delete the stored lines of a document.

        Returns:
            True if something was deleted
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the log."""
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events of one editing session, oldest first.
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events, newest first.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass
