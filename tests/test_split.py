"""Tests for splitting a line across several accounts."""

import pytest
from decimal import Decimal
from uuid import uuid4

from balancer.balancing import split_line
from balancer.errors import EntryValidationError
from balancer.models.ledger import LedgerLine, Side, SplitPart
from balancer.validation import CommitGate


def _invoice_line(**overrides):
    values = {
        "description": "Faktura za media",
        "debit_account_ref": "402",
        "credit_account_ref": "202",
        "debit_amount": Decimal("300.00"),
        "credit_amount": Decimal("300.00"),
    }
    values.update(overrides)
    return LedgerLine(**values)


class TestSplitLine:
    """Tests for split_line."""

    def test_split_debit_side(self):
        parts = [
            SplitPart(description="Prąd", account_ref="402-01", amount=Decimal("200.00")),
            SplitPart(description="Woda", account_ref="402-02", amount=Decimal("100.00")),
        ]
        lines = split_line(_invoice_line(), Side.DEBIT, parts)

        assert len(lines) == 2
        first, second = lines

        # The first line keeps the other side whole
        assert first.credit_account_ref == "202"
        assert first.credit_amount == Decimal("300.00")
        assert first.debit_account_ref == "402-01"
        assert first.debit_amount == Decimal("200.00")

        assert second.debit_account_ref == "402-02"
        assert second.debit_amount == Decimal("100.00")
        assert second.credit_amount == Decimal("0")

        assert first.balancing_group == second.balancing_group is not None

    def test_split_result_passes_gate(self):
        parts = [
            SplitPart(description="A", account_ref="202-01", amount=Decimal("150")),
            SplitPart(description="B", account_ref="202-02", amount=Decimal("100")),
            SplitPart(description="C", account_ref="202-03", amount=Decimal("50")),
        ]
        lines = split_line(_invoice_line(), Side.CREDIT, parts)
        assert CommitGate().evaluate(lines).eligible is True

    def test_incomplete_parts_ignored(self):
        """Test that empty dialog rows are skipped."""
        parts = [
            SplitPart(description="A", account_ref="402-01", amount=Decimal("100")),
            SplitPart(),
            SplitPart(description="B", account_ref="402-02", amount=Decimal("200")),
        ]
        assert len(split_line(_invoice_line(), Side.DEBIT, parts)) == 2

    def test_needs_two_parts(self):
        parts = [
            SplitPart(description="A", account_ref="402-01", amount=Decimal("300")),
            SplitPart(description="B", amount=Decimal("0")),
        ]
        with pytest.raises(EntryValidationError, match="at least 2"):
            split_line(_invoice_line(), Side.DEBIT, parts)

    def test_parts_must_add_up(self):
        parts = [
            SplitPart(description="A", account_ref="402-01", amount=Decimal("100")),
            SplitPart(description="B", account_ref="402-02", amount=Decimal("100")),
        ]
        with pytest.raises(EntryValidationError, match="add up"):
            split_line(_invoice_line(), Side.DEBIT, parts)

    def test_keeps_existing_group(self):
        """Test that splitting one line of a pair keeps the pairing."""
        group = uuid4()
        line = _invoice_line(
            debit_amount=Decimal("300"),
            credit_amount=Decimal("250"),
            balancing_group=group,
        )
        parts = [
            SplitPart(description="A", account_ref="402-01", amount=Decimal("150")),
            SplitPart(description="B", account_ref="402-02", amount=Decimal("150")),
        ]
        lines = split_line(line, Side.DEBIT, parts)
        assert {l.balancing_group for l in lines} == {group}
