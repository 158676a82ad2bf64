"""
Audit Models for the Double-Entry Balancer

Every significant balancing action is logged for audit purposes:
generated corrective lines, batch edits, refused commits and
persistence failures. This makes it possible to reconstruct why a
document ended up with the lines it has.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Draft editing
    CORRECTIVE_LINE_GENERATED = "corrective_line_generated"
    DRAFT_LINE_ADDED = "draft_line_added"
    DRAFT_DISCARDED = "draft_discarded"

    # Batch editing
    LINE_EDITED = "line_edited"
    LINE_REMOVED = "line_removed"
    LINE_SPLIT = "line_split"

    # Commit
    COMMIT_REJECTED = "commit_rejected"
    BATCH_COMMITTED = "batch_committed"
    PERSISTENCE_FAILED = "persistence_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context
    document_id: Optional[UUID] = Field(
        default=None,
        description="Document whose batch the event concerns"
    )
    line_id: Optional[UUID] = None
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together the events of one editing session"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "document_id": str(self.document_id) if self.document_id else None,
            "line_id": str(self.line_id) if self.line_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> list[str]:
        """
        Flatten to a row for tabular audit storage.

        Columns: [event_id, timestamp, event_type, severity, document_id,
        line_id, correlation_id, description, details_json, error_message,
        is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            str(self.document_id) if self.document_id else "",
            str(self.line_id) if self.line_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.line_removed(document_id, line_id, cid)
        event = AuditEventBuilder.batch_committed(document_id, 3, "PLN", cid)
    """

    @staticmethod
    def corrective_line_generated(
        document_id: UUID,
        original_line_id: UUID,
        corrective_line_id: UUID,
        side: str,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CORRECTIVE_LINE_GENERATED,
            document_id=document_id,
            line_id=corrective_line_id,
            correlation_id=correlation_id,
            description=f"Corrective {side} line of {amount} generated",
            details={
                "original_line_id": str(original_line_id),
                "side": side,
                "amount": amount,
            },
        )

    @staticmethod
    def draft_line_added(
        document_id: UUID,
        line_id: UUID,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAFT_LINE_ADDED,
            document_id=document_id,
            line_id=line_id,
            correlation_id=correlation_id,
            description=f"Line added to batch: {amount}",
            details={"amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def draft_discarded(
        document_id: UUID,
        line_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DRAFT_DISCARDED,
            document_id=document_id,
            correlation_id=correlation_id,
            description=f"Unsaved batch discarded ({line_count} lines)",
            details={"line_count": line_count},
            is_user_action=True,
        )

    @staticmethod
    def line_edited(
        document_id: UUID,
        line_id: UUID,
        changed_fields: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LINE_EDITED,
            document_id=document_id,
            line_id=line_id,
            correlation_id=correlation_id,
            description=f"Line edited: {', '.join(changed_fields)}",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def line_removed(
        document_id: UUID,
        line_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LINE_REMOVED,
            document_id=document_id,
            line_id=line_id,
            correlation_id=correlation_id,
            description="Line removed from batch",
            is_user_action=True,
        )

    @staticmethod
    def line_split(
        document_id: UUID,
        line_id: UUID,
        side: str,
        part_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LINE_SPLIT,
            document_id=document_id,
            line_id=line_id,
            correlation_id=correlation_id,
            description=f"Line split into {part_count} {side} parts",
            details={"side": side, "part_count": part_count},
            is_user_action=True,
        )

    @staticmethod
    def commit_rejected(
        document_id: UUID,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_REJECTED,
            severity=AuditSeverity.WARNING,
            document_id=document_id,
            correlation_id=correlation_id,
            description=f"Commit rejected with {len(issues)} issues",
            details={"issues": issues},
        )

    @staticmethod
    def batch_committed(
        document_id: UUID,
        line_count: int,
        currency: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_COMMITTED,
            document_id=document_id,
            correlation_id=correlation_id,
            description=f"Batch committed: {line_count} lines in {currency}",
            details={
                "line_count": line_count,
                "currency": currency,
            },
        )

    @staticmethod
    def persistence_failed(
        document_id: UUID,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PERSISTENCE_FAILED,
            severity=AuditSeverity.ERROR,
            document_id=document_id,
            correlation_id=correlation_id,
            description="Persistence collaborator failed",
            error_message=error_message,
        )

