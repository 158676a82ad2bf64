"""
Balance Tracker

Running debit and credit totals of a draft batch. Everything here is a
pure read of the lines passed in.
"""

from decimal import Decimal
from typing import Iterable, Optional, Union
from uuid import UUID

from balancer.config import get_settings
from balancer.models.ledger import BalanceTotals, DraftLine, LedgerLine


def resolve_tolerance(tolerance: Optional[Decimal] = None) -> Decimal:
    """Explicit tolerance, or the configured one."""
    if tolerance is None:
        return get_settings().balancing.tolerance
    return Decimal(tolerance)


def is_balanced(
    debit: Decimal,
    credit: Decimal,
    tolerance: Optional[Decimal] = None,
) -> bool:
    """Debit and credit agree within tolerance."""
    return abs(debit - credit) <= resolve_tolerance(tolerance)


def compute_totals(
    lines: Iterable[Union[LedgerLine, DraftLine]],
    draft: Optional[DraftLine] = None,
    tolerance: Optional[Decimal] = None,
) -> BalanceTotals:
    """
    Sum debit and credit amounts.

    Args:
        lines: Finalized lines of the batch
        draft: The in-progress line, included when given

    Returns:
        Totals at full precision (rounded accessors are for display)
    """
    debit_total = Decimal("0")
    credit_total = Decimal("0")

    for line in lines:
        debit_total += line.debit_amount
        credit_total += line.credit_amount

    if draft is not None:
        debit_total += draft.debit_amount
        credit_total += draft.credit_amount

    return BalanceTotals(
        debit_total=debit_total,
        credit_total=credit_total,
        tolerance=resolve_tolerance(tolerance),
    )


def group_totals(
    lines: Iterable[LedgerLine],
    tolerance: Optional[Decimal] = None,
) -> dict[UUID, BalanceTotals]:
    """Totals per balancing group. Ungrouped lines are skipped."""
    grouped: dict[UUID, list[LedgerLine]] = {}
    for line in lines:
        if line.balancing_group is not None:
            grouped.setdefault(line.balancing_group, []).append(line)

    return {
        group: compute_totals(members, tolerance=tolerance)
        for group, members in grouped.items()
    }


def account_prefix(account_ref: str, prefix_len: Optional[int] = None) -> str:
    """
    Synthetic account of an account number.

    Without `prefix_len` the prefix is the part before the first dash
    ("402-01" -> "402"), otherwise the first `prefix_len` characters.
    """
    if prefix_len is None:
        return account_ref.split("-", 1)[0]
    return account_ref[:prefix_len]


def group_totals_by_prefix(
    lines: Iterable[LedgerLine],
    prefix_len: Optional[int] = None,
    tolerance: Optional[Decimal] = None,
) -> dict[str, BalanceTotals]:
    """
    Debit and credit turnover per account-number prefix.

    Each side is booked under the prefix of its own account; sides
    without an account or amount are skipped. Keys are sorted.
    """
    debits: dict[str, Decimal] = {}
    credits: dict[str, Decimal] = {}

    for line in lines:
        if line.debit_account_ref and line.debit_amount:
            key = account_prefix(line.debit_account_ref, prefix_len)
            debits[key] = debits.get(key, Decimal("0")) + line.debit_amount
        if line.credit_account_ref and line.credit_amount:
            key = account_prefix(line.credit_account_ref, prefix_len)
            credits[key] = credits.get(key, Decimal("0")) + line.credit_amount

    tolerance = resolve_tolerance(tolerance)
    return {
        key: BalanceTotals(
            debit_total=debits.get(key, Decimal("0")),
            credit_total=credits.get(key, Decimal("0")),
            tolerance=tolerance,
        )
        for key in sorted(set(debits) | set(credits))
    }
