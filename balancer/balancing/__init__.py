"""Balancing package: totals, auto-balancing and splits."""

from balancer.balancing.auto_balancer import (
    apply_amount_change,
    coerce_amount,
    evaluate_blur,
    finalize_draft,
    focus_field,
    is_ready,
    new_draft,
    plan_corrective_line,
    set_account,
    set_description,
    set_settlement_type,
    smaller_side,
)
from balancer.balancing.split import split_line
from balancer.balancing.tracker import (
    account_prefix,
    compute_totals,
    group_totals,
    group_totals_by_prefix,
    is_balanced,
    resolve_tolerance,
)

__all__ = [
    "account_prefix",
    "apply_amount_change",
    "coerce_amount",
    "compute_totals",
    "evaluate_blur",
    "finalize_draft",
    "focus_field",
    "group_totals",
    "group_totals_by_prefix",
    "is_balanced",
    "is_ready",
    "new_draft",
    "plan_corrective_line",
    "resolve_tolerance",
    "set_account",
    "set_description",
    "set_settlement_type",
    "smaller_side",
    "split_line",
]
