"""
Data Models Package

This package contains all Pydantic models used by the balancer.
All data flowing through the balancing functions conforms to these schemas.
"""

from balancer.models.ledger import (
    AccountRef,
    BalanceTotals,
    BlurOutcome,
    CommitDecision,
    CommitReceipt,
    DocumentHeader,
    DraftField,
    DraftLine,
    DraftPhase,
    EditingCapabilities,
    IssueCode,
    LedgerLine,
    SettlementType,
    Side,
    SplitPart,
    ValidationIssue,
)
from balancer.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AccountRef",
    "BalanceTotals",
    "BlurOutcome",
    "CommitDecision",
    "CommitReceipt",
    "DocumentHeader",
    "DraftField",
    "DraftLine",
    "DraftPhase",
    "EditingCapabilities",
    "IssueCode",
    "LedgerLine",
    "SettlementType",
    "Side",
    "SplitPart",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
