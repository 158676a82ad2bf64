"""Services package."""

from balancer.services.accounts import (
    ChartOfAccountsInterface,
    InMemoryChartOfAccounts,
)
from balancer.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    # Account lookup
    "ChartOfAccountsInterface",
    "InMemoryChartOfAccounts",
    # Storage services
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
