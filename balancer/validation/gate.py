"""
Commit Gate - Two-Stage Batch Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - LINE VALIDATION:
- Batch is not empty
- Every line has a description
- Every line names at least one account, and every side carrying an
  amount names its account
- Every line carries a positive amount on at least one side
- Every line uses the document currency

STAGE 2 - BALANCE VALIDATION:
- Ungrouped lines balance on their own
- Lines of a balancing group (an original and its corrective line, or
  the pieces of a split) balance together
- Debit total equals credit total for the whole batch

WHY TWO STAGES:
1. Better messages: a missing account is reported as such, not as an
   imbalance it happens to cause
2. Balance checks are only meaningful on structurally sound lines

IMPORTANT: The gate NEVER fixes anything. It reports every failed
invariant and the batch is committed all-or-nothing.
"""

from decimal import Decimal
from typing import Optional, Sequence

from balancer.balancing.tracker import (
    compute_totals,
    group_totals,
    is_balanced,
    resolve_tolerance,
)
from balancer.formatting import quantize_money
from balancer.models.ledger import (
    CommitDecision,
    IssueCode,
    LedgerLine,
    Side,
    ValidationIssue,
)


class CommitGate:
    """
    Decides whether a batch of lines may be handed to persistence.

    Evaluation is a pure function of the lines passed in: evaluating the
    same batch twice gives the same decision.
    """

    def __init__(self, tolerance: Optional[Decimal] = None):
        self._tolerance = resolve_tolerance(tolerance)

    @property
    def tolerance(self) -> Decimal:
        return self._tolerance

    def _validate_lines(
        self,
        lines: Sequence[LedgerLine],
        currency: Optional[str],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: per-line structure.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not lines:
            issues.append(ValidationIssue(
                code=IssueCode.EMPTY_BATCH,
                field="lines",
                message="The document has no lines",
                suggested_fix="Add at least one line before saving",
            ))
            return False, issues

        for index, line in enumerate(lines):
            if not line.description.strip():
                issues.append(ValidationIssue(
                    code=IssueCode.EMPTY_DESCRIPTION,
                    field="description",
                    line_index=index,
                    message=f"Line {index + 1}: description is required",
                ))

            if not line.debit_account_ref and not line.credit_account_ref:
                issues.append(ValidationIssue(
                    code=IssueCode.MISSING_ACCOUNT,
                    field="accounts",
                    line_index=index,
                    message=f"Line {index + 1}: no account selected",
                    suggested_fix="Select the debit and credit accounts",
                ))
            else:
                for side in Side:
                    if line.amount_for(side) > 0 and not line.account_for(side):
                        issues.append(ValidationIssue(
                            code=IssueCode.MISSING_ACCOUNT,
                            field=f"{side.value}_account_ref",
                            line_index=index,
                            message=(
                                f"Line {index + 1}: {side.value} account is required "
                                f"for an amount of {quantize_money(line.amount_for(side))}"
                            ),
                            suggested_fix=f"Select the {side.value} account",
                        ))

            if line.debit_amount <= 0 and line.credit_amount <= 0:
                issues.append(ValidationIssue(
                    code=IssueCode.ZERO_AMOUNT,
                    field="amount",
                    line_index=index,
                    message=f"Line {index + 1}: amount must be greater than zero",
                ))

            if currency and line.currency != currency:
                issues.append(ValidationIssue(
                    code=IssueCode.CURRENCY_MISMATCH,
                    field="currency",
                    line_index=index,
                    message=(
                        f"Line {index + 1}: currency {line.currency} differs "
                        f"from document currency {currency}"
                    ),
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_balance(
        self,
        lines: Sequence[LedgerLine],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: balance of lines, groups and the whole batch.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        for index, line in enumerate(lines):
            if line.balancing_group is not None:
                continue
            if not is_balanced(line.debit_amount, line.credit_amount, self._tolerance):
                issues.append(ValidationIssue(
                    code=IssueCode.UNBALANCED_LINE,
                    field="amount",
                    line_index=index,
                    message=(
                        f"Line {index + 1}: debit {quantize_money(line.debit_amount)} "
                        f"does not equal credit {quantize_money(line.credit_amount)}"
                    ),
                ))

        first_index = {}
        for index, line in enumerate(lines):
            if line.balancing_group is not None:
                first_index.setdefault(line.balancing_group, index)

        for group, totals in group_totals(lines, self._tolerance).items():
            if not totals.is_balanced:
                index = first_index[group]
                issues.append(ValidationIssue(
                    code=IssueCode.UNBALANCED_GROUP,
                    field="amount",
                    line_index=index,
                    message=(
                        f"Lines generated from line {index + 1} are off by "
                        f"{totals.display_difference}"
                    ),
                    suggested_fix="Adjust the corrective or split amounts",
                ))

        totals = compute_totals(lines, tolerance=self._tolerance)
        if not totals.is_balanced:
            issues.append(ValidationIssue(
                code=IssueCode.UNBALANCED_BATCH,
                field="totals",
                message=(
                    f"Debit total {totals.display_debit_total} does not equal "
                    f"credit total {totals.display_credit_total}"
                ),
                suggested_fix=f"Difference to post: {totals.display_difference}",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def evaluate(
        self,
        lines: Sequence[LedgerLine],
        currency: Optional[str] = None,
    ) -> CommitDecision:
        """
        Run both stages.

        Args:
            lines: The full batch, corrective lines included
            currency: Document currency every line must use

        Returns:
            CommitDecision listing every failed invariant
        """
        lines_valid, line_issues = self._validate_lines(lines, currency)

        # Balance is only checked on structurally sound batches
        balance_valid = False
        balance_issues = []
        if lines_valid:
            balance_valid, balance_issues = self._validate_balance(lines)

        return CommitDecision(
            eligible=lines_valid and balance_valid,
            lines_valid=lines_valid,
            balance_valid=balance_valid,
            issues=line_issues + balance_issues,
            totals=compute_totals(lines, tolerance=self._tolerance),
        )

    def get_user_friendly_summary(self, decision: CommitDecision) -> str:
        """Summary of a decision for an inline message."""
        if decision.eligible:
            return "All checks passed. The document can be saved."

        lines = ["The document cannot be saved yet:"]
        for issue in decision.issues:
            if issue.severity == "error":
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     {issue.suggested_fix}")

        return "\n".join(lines)
