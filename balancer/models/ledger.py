"""
Core Data Models for the Double-Entry Balancer

These models define the strict schemas for every value the balancing
functions consume and produce. They are designed to:
1. Keep amounts as Decimal at full precision (rounding is for display only)
2. Be immutable, so each balancing step returns a new value
3. Be serializable for persistence and the audit trail

DESIGN DECISION: LedgerLine and DraftLine are deliberately lenient
(empty descriptions and missing accounts are representable). Rejecting
them is the commit gate's job, so the user gets a report of everything
that is wrong instead of the first exception.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from balancer.config import get_settings
from balancer.formatting import quantize_money


def _default_currency() -> str:
    return get_settings().balancing.default_currency


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Side(str, Enum):
    """Side of a double-entry line ("Winien" / "Ma")."""
    DEBIT = "debit"
    CREDIT = "credit"

    @property
    def opposite(self) -> "Side":
        return Side.CREDIT if self is Side.DEBIT else Side.DEBIT


class DraftField(str, Enum):
    """Input fields of a draft line that can hold focus."""
    DESCRIPTION = "description"
    DEBIT_ACCOUNT = "debit_account"
    DEBIT_AMOUNT = "debit_amount"
    CREDIT_ACCOUNT = "credit_account"
    CREDIT_AMOUNT = "credit_amount"

    @classmethod
    def amount_field(cls, side: Side) -> "DraftField":
        return cls.DEBIT_AMOUNT if side is Side.DEBIT else cls.CREDIT_AMOUNT

    @property
    def amount_side(self) -> Optional[Side]:
        """The side of an amount field, None for other fields."""
        if self is DraftField.DEBIT_AMOUNT:
            return Side.DEBIT
        if self is DraftField.CREDIT_AMOUNT:
            return Side.CREDIT
        return None


class DraftPhase(str, Enum):
    """
    Lifecycle of a draft line.

    EMPTY --(edit)--> DRAFTING --(balanced blur)--> READY
    DRAFTING --(imbalance on smaller side)--> SPLIT, then a fresh EMPTY
    READY --(edit)--> DRAFTING
    """
    EMPTY = "empty"
    DRAFTING = "drafting"
    READY = "ready"
    SPLIT = "split"


class SettlementType(str, Enum):
    """Settlement form of a transaction (Gotówka / Bank / Rozrachunek)."""
    CASH = "cash"
    BANK = "bank"
    CLEARING = "clearing"


# =============================================================================
# LEDGER LINES
# =============================================================================

class LedgerLine(BaseModel):
    """
    A finalized line of a document batch.

    Once built, a line is never mutated; edits go through the session,
    which builds a replacement line.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique line ID"
    )
    description: str = Field(
        default="",
        max_length=500,
        description="Operation description, shared by lines of one input"
    )
    debit_account_ref: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Opaque chart-of-accounts reference on the debit side"
    )
    credit_account_ref: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Opaque chart-of-accounts reference on the credit side"
    )
    debit_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Amount posted on the debit side"
    )
    credit_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Amount posted on the credit side"
    )
    currency: str = Field(
        default_factory=_default_currency,
        pattern="^[A-Z]{3}$",
        description="Currency code, shared by the whole batch"
    )
    settlement_type: SettlementType = Field(
        default=SettlementType.BANK,
        description="Settlement form"
    )

    # Pairing of generated lines
    balancing_group: Optional[UUID] = Field(
        default=None,
        description="Lines sharing a group must balance together"
    )
    is_corrective: bool = Field(
        default=False,
        description="Generated to absorb the difference of another line"
    )
    corrective_side: Optional[Side] = Field(
        default=None,
        description="Side carrying the corrective amount"
    )

    @field_validator("debit_account_ref", "credit_account_ref", mode="before")
    @classmethod
    def empty_ref_is_none(cls, v):
        """An empty selection means no account."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("currency", mode="before")
    @classmethod
    def upper_currency(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    def amount_for(self, side: Side) -> Decimal:
        return self.debit_amount if side is Side.DEBIT else self.credit_amount

    def account_for(self, side: Side) -> Optional[str]:
        return self.debit_account_ref if side is Side.DEBIT else self.credit_account_ref

    @property
    def amount(self) -> Decimal:
        """Single-amount view kept for older consumers: the larger side."""
        return max(self.debit_amount, self.credit_amount)

    @property
    def difference(self) -> Decimal:
        return abs(self.debit_amount - self.credit_amount)


class DraftLine(BaseModel):
    """
    The line currently being typed in.

    Besides the line fields it tracks which amount fields the user has
    focused. A touched field is never overwritten by mirroring.
    """
    model_config = ConfigDict(frozen=True)

    description: str = ""
    debit_account_ref: Optional[str] = None
    credit_account_ref: Optional[str] = None
    debit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    credit_amount: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = Field(default_factory=_default_currency, pattern="^[A-Z]{3}$")
    settlement_type: SettlementType = SettlementType.BANK

    # Interaction state
    debit_touched: bool = False
    credit_touched: bool = False
    focused: Optional[DraftField] = None
    phase: DraftPhase = DraftPhase.EMPTY

    def amount_for(self, side: Side) -> Decimal:
        return self.debit_amount if side is Side.DEBIT else self.credit_amount

    def account_for(self, side: Side) -> Optional[str]:
        return self.debit_account_ref if side is Side.DEBIT else self.credit_account_ref

    def is_touched(self, side: Side) -> bool:
        return self.debit_touched if side is Side.DEBIT else self.credit_touched

    @property
    def difference(self) -> Decimal:
        return abs(self.debit_amount - self.credit_amount)

    @property
    def has_description(self) -> bool:
        return bool(self.description.strip())

    @property
    def has_both_accounts(self) -> bool:
        return bool(self.debit_account_ref) and bool(self.credit_account_ref)


# =============================================================================
# DOCUMENT
# =============================================================================

class DocumentHeader(BaseModel):
    """
    The accounting document a batch of lines belongs to.

    Every line of the batch is persisted under this document's id,
    date and currency.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    document_id: UUID = Field(
        default_factory=uuid4,
        description="Shared identifier of the batch"
    )
    document_number: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Document number, e.g. DOK/001/2024"
    )
    document_name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Descriptive document name"
    )
    document_date: date = Field(
        default_factory=date.today,
        description="Date all lines are booked on"
    )
    currency: str = Field(
        default_factory=_default_currency,
        pattern="^[A-Z]{3}$"
    )
    exchange_rate: Decimal = Field(
        default=Decimal("1"),
        gt=0,
        description="Rate to the base currency (1 for the base currency)"
    )

    @field_validator("currency", mode="before")
    @classmethod
    def upper_currency(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


# =============================================================================
# BALANCING RESULTS
# =============================================================================

class BalanceTotals(BaseModel):
    """Debit and credit totals of a set of lines."""
    model_config = ConfigDict(frozen=True)

    debit_total: Decimal = Decimal("0")
    credit_total: Decimal = Decimal("0")
    tolerance: Decimal = Decimal("0.01")

    @property
    def difference(self) -> Decimal:
        return abs(self.debit_total - self.credit_total)

    @property
    def is_balanced(self) -> bool:
        return self.difference <= self.tolerance

    @property
    def display_debit_total(self) -> Decimal:
        return quantize_money(self.debit_total)

    @property
    def display_credit_total(self) -> Decimal:
        return quantize_money(self.credit_total)

    @property
    def display_difference(self) -> Decimal:
        return quantize_money(self.difference)


class BlurOutcome(BaseModel):
    """
    Result of leaving an amount field.

    After a split, `state` is the fresh draft for the next entry and
    `phase` is SPLIT; otherwise `phase` equals `state.phase`.
    """
    model_config = ConfigDict(frozen=True)

    state: DraftLine
    phase: DraftPhase
    emitted_lines: list[LedgerLine] = Field(default_factory=list)

    @property
    def split(self) -> bool:
        return self.phase is DraftPhase.SPLIT


class SplitPart(BaseModel):
    """One row of the split dialog."""
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = ""
    account_ref: Optional[str] = None
    amount: Decimal = Field(default=Decimal("0"), ge=0)

    @property
    def is_complete(self) -> bool:
        return bool(self.description) and bool(self.account_ref) and self.amount > 0


class CommitReceipt(BaseModel):
    """What the persistence collaborator returns for a stored batch."""

    document_id: UUID
    line_count: int = Field(ge=0)
    debit_total: Decimal
    credit_total: Decimal
    currency: str
    committed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EditingCapabilities(BaseModel):
    """
    What the current user may do in an editing session.

    Passed into the session explicitly instead of being looked up from
    an ambient user object.
    """
    model_config = ConfigDict(frozen=True)

    can_edit: bool = True
    can_commit: bool = True
    editing_blocked: bool = Field(
        default=False,
        description="Document is locked, e.g. its report period is closed"
    )

    @property
    def may_edit(self) -> bool:
        return self.can_edit and not self.editing_blocked

    @property
    def may_commit(self) -> bool:
        return self.may_edit and self.can_commit

    @classmethod
    def read_only(cls) -> "EditingCapabilities":
        return cls(can_edit=False, can_commit=False)


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

class AccountRef(BaseModel):
    """An account as returned by the chart-of-accounts lookup."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    number: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., max_length=200)
    is_active: bool = True
    has_analytics: bool = Field(
        default=False,
        description="Has analytic sub-accounts and cannot be posted to directly"
    )

    @property
    def label(self) -> str:
        return f"{self.number} - {self.name}"


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class IssueCode(str, Enum):
    """Which invariant a batch failed."""
    EMPTY_BATCH = "empty_batch"
    EMPTY_DESCRIPTION = "empty_description"
    MISSING_ACCOUNT = "missing_account"
    ZERO_AMOUNT = "zero_amount"
    CURRENCY_MISMATCH = "currency_mismatch"
    UNBALANCED_LINE = "unbalanced_line"
    UNBALANCED_GROUP = "unbalanced_group"
    UNBALANCED_BATCH = "unbalanced_batch"


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    code: IssueCode = Field(
        ...,
        description="Invariant that failed"
    )
    field: str = Field(
        ...,
        description="Field with the issue"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    line_index: Optional[int] = Field(
        default=None,
        ge=0,
        description="Position of the offending line in the batch"
    )
    suggested_fix: Optional[str] = None


class CommitDecision(BaseModel):
    """
    Result of the commit gate.

    Stage 1: line checks (descriptions, accounts, amounts)
    Stage 2: balance checks (lines, groups, batch)
    """

    eligible: bool = Field(
        ...,
        description="May the batch be handed to persistence?"
    )
    lines_valid: bool
    balance_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    totals: BalanceTotals = Field(default_factory=BalanceTotals)

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def failed_codes(self) -> set[IssueCode]:
        return {issue.code for issue in self.issues if issue.severity == "error"}
