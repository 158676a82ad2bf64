"""
Transaction Split

Divides one side of a line across several accounts. The other side is
kept on the first resulting line, and all resulting lines share a
balancing group so the document still balances.
"""

from decimal import Decimal
from typing import Optional
from uuid import uuid4

from balancer.balancing.tracker import is_balanced
from balancer.errors import EntryValidationError
from balancer.models.ledger import LedgerLine, Side, SplitPart


MIN_SPLIT_PARTS = 2


def split_line(
    line: LedgerLine,
    side: Side,
    parts: list[SplitPart],
    tolerance: Optional[Decimal] = None,
) -> list[LedgerLine]:
    """
    Split the amount of `side` into the given parts.

    Incomplete parts (no description, no account or a zero amount) are
    ignored, as empty rows of the split dialog are.

    Raises:
        EntryValidationError: fewer than two complete parts, or the parts
            do not add up to the amount being split
    """
    complete = [part for part in parts if part.is_complete]
    if len(complete) < MIN_SPLIT_PARTS:
        raise EntryValidationError(
            f"A split needs at least {MIN_SPLIT_PARTS} complete parts"
        )

    target = line.amount_for(side)
    total = sum((part.amount for part in complete), Decimal("0"))
    if not is_balanced(total, target, tolerance):
        raise EntryValidationError(
            f"Split parts add up to {total}, expected {target}"
        )

    # Keep an existing pairing so the group keeps balancing
    group = line.balancing_group or uuid4()
    opposite = side.opposite
    common = {
        "currency": line.currency,
        "settlement_type": line.settlement_type,
        "balancing_group": group,
    }

    first, rest = complete[0], complete[1:]
    result = [
        LedgerLine(
            description=first.description,
            is_corrective=line.is_corrective,
            corrective_side=line.corrective_side,
            **{
                f"{opposite.value}_account_ref": line.account_for(opposite),
                f"{opposite.value}_amount": line.amount_for(opposite),
                f"{side.value}_account_ref": first.account_ref,
                f"{side.value}_amount": first.amount,
            },
            **common,
        )
    ]
    for part in rest:
        result.append(
            LedgerLine(
                description=part.description,
                **{
                    f"{side.value}_account_ref": part.account_ref,
                    f"{side.value}_amount": part.amount,
                },
                **common,
            )
        )
    return result
