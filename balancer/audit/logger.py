"""
Audit Logger

DESIGN DECISION: Every significant balancing action is logged.
This provides:
1. Traceability of generated lines back to the edit that caused them
2. Debugging capability for surprising auto-balancing
3. A record of refused commits and persistence failures

The audit logger:
- Is async so it can sit next to the async persistence calls
- Never breaks the balancing flow when audit storage fails
- Supports correlation IDs to trace one editing session
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from balancer.config import get_settings
from balancer.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from balancer.services.storage import AuditStorageInterface


def configure_logging() -> None:
    """Configure structlog from application settings."""
    app_settings = get_settings().app
    level = logging.DEBUG if app_settings.debug_mode else getattr(logging, app_settings.log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if app_settings.log_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("balancer.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity is AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity is AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity is AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Audit storage problems must not block bookkeeping
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_corrective_line(
        self,
        document_id: UUID,
        original_line_id: UUID,
        corrective_line_id: UUID,
        side: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        """Log generation of a corrective line."""
        await self.log(AuditEventBuilder.corrective_line_generated(
            document_id=document_id,
            original_line_id=original_line_id,
            corrective_line_id=corrective_line_id,
            side=side,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_line_added(
        self,
        document_id: UUID,
        line_id: UUID,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.draft_line_added(
            document_id=document_id,
            line_id=line_id,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_line_edited(
        self,
        document_id: UUID,
        line_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.line_edited(
            document_id=document_id,
            line_id=line_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_line_removed(
        self,
        document_id: UUID,
        line_id: UUID,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.line_removed(
            document_id=document_id,
            line_id=line_id,
            correlation_id=correlation_id,
        ))

    async def log_line_split(
        self,
        document_id: UUID,
        line_id: UUID,
        side: str,
        part_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.line_split(
            document_id=document_id,
            line_id=line_id,
            side=side,
            part_count=part_count,
            correlation_id=correlation_id,
        ))

    async def log_draft_discarded(
        self,
        document_id: UUID,
        line_count: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.draft_discarded(
            document_id=document_id,
            line_count=line_count,
            correlation_id=correlation_id,
        ))

    async def log_commit_rejected(
        self,
        document_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log a batch the commit gate refused."""
        await self.log(AuditEventBuilder.commit_rejected(
            document_id=document_id,
            issues=issues,
            correlation_id=correlation_id,
        ))

    async def log_batch_committed(
        self,
        document_id: UUID,
        line_count: int,
        currency: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.batch_committed(
            document_id=document_id,
            line_count=line_count,
            currency=currency,
            correlation_id=correlation_id,
        ))

    async def log_persistence_failed(
        self,
        document_id: UUID,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.persistence_failed(
            document_id=document_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use one per editing session and pass it to every audit call.
    """
    return uuid4()
