"""
Chart-of-Accounts Lookup

The balancer treats account references as opaque ids. This collaborator
turns what the user types into candidate accounts for one side of a line.

Lookup rules:
- queries shorter than the configured minimum return nothing
- the query matches the account number or name, case-insensitively
- results are ordered by account number and capped
- inactive accounts and accounts with analytic sub-accounts are hidden
- the debit side cannot use accounts numbered 7xx (revenue),
  the credit side cannot use accounts numbered 4xx (costs by type)
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from balancer.config import get_settings
from balancer.models.ledger import AccountRef, Side


SIDE_FORBIDDEN_PREFIXES = {
    Side.DEBIT: "7",
    Side.CREDIT: "4",
}


def is_account_allowed_for_side(account_number: str, side: Optional[Side]) -> bool:
    """Check the side restriction for an account number."""
    if side is None:
        return True
    return not account_number.startswith(SIDE_FORBIDDEN_PREFIXES[side])


class ChartOfAccountsInterface(ABC):
    """Abstract interface for account lookup."""

    @abstractmethod
    async def search(
        self,
        query: str,
        side: Optional[Side] = None,
        limit: Optional[int] = None,
    ) -> list[AccountRef]:
        """
        Find accounts matching free text.

        Args:
            query: Fragment of an account number or name
            side: Side the account is being picked for
            limit: Maximum number of results

        Returns:
            Matching accounts ordered by number
        """
        pass

    @abstractmethod
    async def get(self, account_id: str) -> Optional[AccountRef]:
        """Get an account by id, None if unknown."""
        pass


class InMemoryChartOfAccounts(ChartOfAccountsInterface):
    """Chart of accounts held in memory."""

    def __init__(self, accounts: Optional[Iterable[AccountRef]] = None):
        self._accounts: dict[str, AccountRef] = {}
        self._settings = get_settings().balancing
        for account in accounts or []:
            self.add(account)

    def add(self, account: AccountRef) -> None:
        self._accounts[account.id] = account

    async def search(
        self,
        query: str,
        side: Optional[Side] = None,
        limit: Optional[int] = None,
    ) -> list[AccountRef]:
        term = (query or "").strip().lower()
        if len(term) < self._settings.account_search_min_length:
            return []

        limit = limit or self._settings.account_search_limit

        matches = [
            account
            for account in self._accounts.values()
            if account.is_active
            and not account.has_analytics
            and (term in account.number.lower() or term in account.name.lower())
            and is_account_allowed_for_side(account.number, side)
        ]
        matches.sort(key=lambda a: a.number)
        return matches[:limit]

    async def get(self, account_id: str) -> Optional[AccountRef]:
        return self._accounts.get(account_id)
