"""
Auto-Balancer

Pure state transitions for a draft line. Every editing surface (inline
row entry, full form entry, edit dialogs) calls these functions, so they
all mirror amounts and generate corrective lines the same way.

Two rules drive the behavior:

MIRRORING: while the user has not focused the opposite amount field,
typing an amount on one side copies it to the other side. Once the
opposite field was focused it is never overwritten.

CORRECTIVE LINES: when the user leaves the smaller amount field of an
unbalanced line whose description and opposite account are filled in,
the line is emitted as-is together with a corrective line carrying the
difference on the smaller side. The user then picks the account for the
corrective line.

Which side gets the corrective line, and for how much, depends only on
the final amounts. Field blur order decides when a split is offered,
never what it produces.
"""

from decimal import Decimal
from typing import Optional, Union
from uuid import uuid4

from balancer.balancing.tracker import is_balanced, resolve_tolerance
from balancer.errors import EntryValidationError
from balancer.formatting import parse_amount, to_decimal
from balancer.models.ledger import (
    BlurOutcome,
    DraftField,
    DraftLine,
    DraftPhase,
    LedgerLine,
    SettlementType,
    Side,
)


AmountInput = Union[Decimal, int, float, str, None]


def new_draft(
    currency: Optional[str] = None,
    settlement_type: SettlementType = SettlementType.BANK,
    focused: Optional[DraftField] = None,
) -> DraftLine:
    """Create an EMPTY draft line."""
    values = {"settlement_type": settlement_type, "focused": focused}
    if currency is not None:
        values["currency"] = currency.strip().upper()
    return DraftLine(**values)


def _edited(state: DraftLine, **changes) -> DraftLine:
    # Any edit leaves EMPTY and READY
    changes["phase"] = DraftPhase.DRAFTING
    return state.model_copy(update=changes)


def coerce_amount(value: AmountInput) -> Decimal:
    """Amount field input as a Decimal. Empty input means zero."""
    if value is None:
        return Decimal("0")
    if isinstance(value, str):
        return parse_amount(value)
    amount = to_decimal(value)
    if amount < 0:
        raise EntryValidationError("Amount cannot be negative")
    return amount


def set_description(state: DraftLine, text: str) -> DraftLine:
    return _edited(state, description=text or "")


def set_account(state: DraftLine, side: Side, account_ref: Optional[str]) -> DraftLine:
    """Select (or clear, with None) the account of one side."""
    ref = account_ref.strip() if account_ref else None
    return _edited(state, **{f"{side.value}_account_ref": ref or None})


def set_settlement_type(state: DraftLine, settlement_type: SettlementType) -> DraftLine:
    return _edited(state, settlement_type=SettlementType(settlement_type))


def focus_field(state: DraftLine, field: DraftField) -> DraftLine:
    """
    Record that a field received focus.

    Focusing an amount field marks that side as touched for the rest of
    this draft. Focus alone is not an edit and keeps the phase.
    """
    changes = {"focused": field}
    side = field.amount_side
    if side is not None:
        changes[f"{side.value}_touched"] = True
    return state.model_copy(update=changes)


def apply_amount_change(
    state: DraftLine,
    side: Side,
    value: AmountInput,
) -> DraftLine:
    """
    Set the amount of one side, mirroring it to an untouched opposite side.

    Args:
        state: Current draft
        side: Side whose amount field changed
        value: New value, raw field text or a number

    Raises:
        EntryValidationError: value is negative or not a number
    """
    amount = coerce_amount(value)
    changes = {f"{side.value}_amount": amount}

    opposite = side.opposite
    if not state.is_touched(opposite) and amount != 0:
        changes[f"{opposite.value}_amount"] = amount

    return _edited(state, **changes)


def smaller_side(state: Union[DraftLine, LedgerLine]) -> Optional[Side]:
    """Side with the smaller amount, None when both are equal."""
    if state.debit_amount < state.credit_amount:
        return Side.DEBIT
    if state.credit_amount < state.debit_amount:
        return Side.CREDIT
    return None


def is_ready(state: DraftLine, tolerance: Optional[Decimal] = None) -> bool:
    """
    A draft can be added to the batch on its own.

    Requires a description, both accounts, a positive amount and
    balanced sides.
    """
    return (
        state.has_description
        and state.has_both_accounts
        and max(state.debit_amount, state.credit_amount) > 0
        and is_balanced(state.debit_amount, state.credit_amount, tolerance)
    )


def _line_from_draft(state: DraftLine, **extra) -> LedgerLine:
    return LedgerLine(
        description=state.description,
        debit_account_ref=state.debit_account_ref,
        credit_account_ref=state.credit_account_ref,
        debit_amount=state.debit_amount,
        credit_amount=state.credit_amount,
        currency=state.currency,
        settlement_type=state.settlement_type,
        **extra,
    )


def plan_corrective_line(
    state: DraftLine,
    tolerance: Optional[Decimal] = None,
) -> Optional[tuple[LedgerLine, LedgerLine]]:
    """
    Compute the (original, corrective) pair for an unbalanced draft.

    Pure function of the final amounts. The corrective line carries the
    difference on the smaller side and leaves both accounts empty; the
    pair shares a balancing group.

    Returns:
        None when the draft is balanced within tolerance
    """
    if is_balanced(state.debit_amount, state.credit_amount, tolerance):
        return None

    side = smaller_side(state)
    group = uuid4()

    original = _line_from_draft(state, balancing_group=group)
    corrective = LedgerLine(
        description=state.description,
        currency=state.currency,
        settlement_type=state.settlement_type,
        balancing_group=group,
        is_corrective=True,
        corrective_side=side,
        **{f"{side.value}_amount": state.difference},
    )
    return original, corrective


def evaluate_blur(
    state: DraftLine,
    side: Side,
    tolerance: Optional[Decimal] = None,
) -> BlurOutcome:
    """
    Decide what happens when an amount field loses focus.

    - balanced line: READY if complete, otherwise unchanged
    - unbalanced, description and opposite account set, and the blurred
      side is the smaller one: SPLIT, emitting the line and its
      corrective line, and returning a fresh draft focused on the
      description for the next entry
    - anything else: wait for more input
    """
    tolerance = resolve_tolerance(tolerance)

    if state.focused is DraftField.amount_field(side):
        state = state.model_copy(update={"focused": None})

    if is_balanced(state.debit_amount, state.credit_amount, tolerance):
        if is_ready(state, tolerance):
            state = state.model_copy(update={"phase": DraftPhase.READY})
        return BlurOutcome(state=state, phase=state.phase)

    can_split = (
        state.has_description
        and state.account_for(side.opposite)
        and smaller_side(state) is side
    )
    if not can_split:
        return BlurOutcome(state=state, phase=state.phase)

    original, corrective = plan_corrective_line(state, tolerance)
    fresh = new_draft(
        currency=state.currency,
        settlement_type=state.settlement_type,
        focused=DraftField.DESCRIPTION,
    )
    return BlurOutcome(
        state=fresh,
        phase=DraftPhase.SPLIT,
        emitted_lines=[original, corrective],
    )


def finalize_draft(state: DraftLine, tolerance: Optional[Decimal] = None) -> LedgerLine:
    """
    Turn a ready draft into a ledger line.

    Raises:
        EntryValidationError: the draft is not ready
    """
    if not is_ready(state, tolerance):
        missing = []
        if not state.has_description:
            missing.append("description")
        if not state.has_both_accounts:
            missing.append("accounts")
        if max(state.debit_amount, state.credit_amount) <= 0:
            missing.append("amount")
        elif not is_balanced(state.debit_amount, state.credit_amount, tolerance):
            missing.append("balanced amounts")
        raise EntryValidationError(f"Line is not ready: missing {', '.join(missing)}")
    return _line_from_draft(state)
