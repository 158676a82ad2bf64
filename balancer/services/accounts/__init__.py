"""Chart-of-accounts services package."""

from balancer.services.accounts.chart import (
    ChartOfAccountsInterface,
    InMemoryChartOfAccounts,
    is_account_allowed_for_side,
)

__all__ = [
    "ChartOfAccountsInterface",
    "InMemoryChartOfAccounts",
    "is_account_allowed_for_side",
]
