"""Tests for the chart-of-accounts lookup."""

import asyncio

from balancer.models.ledger import AccountRef, Side
from balancer.services.accounts import (
    InMemoryChartOfAccounts,
    is_account_allowed_for_side,
)


def _chart():
    return InMemoryChartOfAccounts([
        AccountRef(id="1", number="201-05", name="Rozrachunki z dostawcami"),
        AccountRef(id="2", number="402-01", name="Paliwo"),
        AccountRef(id="3", number="701", name="Przychody ze sprzedaży"),
        AccountRef(id="4", number="100", name="Kasa"),
        AccountRef(id="5", number="130", name="Rachunek bankowy", has_analytics=True),
        AccountRef(id="6", number="131", name="Rachunek bankowy EUR", is_active=False),
        AccountRef(id="7", number="020", name="Wartości niematerialne"),
    ])


class TestAccountSearch:
    """Tests for InMemoryChartOfAccounts.search."""

    def test_short_query_returns_nothing(self):
        assert asyncio.run(_chart().search("4")) == []

    def test_match_by_number(self):
        result = asyncio.run(_chart().search("402"))
        assert [a.number for a in result] == ["402-01"]

    def test_match_by_name_case_insensitive(self):
        result = asyncio.run(_chart().search("PALIWO"))
        assert [a.id for a in result] == ["2"]

    def test_ordered_by_number(self):
        result = asyncio.run(_chart().search("01"))
        assert [a.number for a in result] == ["201-05", "402-01", "701"]

    def test_inactive_and_analytic_hidden(self):
        """Test that accounts which cannot be posted to are hidden."""
        result = asyncio.run(_chart().search("rachunek"))
        assert result == []

    def test_debit_side_excludes_revenue(self):
        result = asyncio.run(_chart().search("70", side=Side.DEBIT))
        assert result == []

    def test_credit_side_excludes_costs(self):
        result = asyncio.run(_chart().search("paliwo", side=Side.CREDIT))
        assert result == []
        result = asyncio.run(_chart().search("paliwo", side=Side.DEBIT))
        assert len(result) == 1

    def test_limit(self):
        """Test that the lowest numbers are kept when results are capped."""
        result = asyncio.run(_chart().search("01", limit=2))
        assert [a.number for a in result] == ["201-05", "402-01"]

    def test_configured_limit(self, monkeypatch):
        monkeypatch.setenv("BALANCER_ACCOUNT_SEARCH_LIMIT", "1")
        result = asyncio.run(_chart().search("01"))
        assert [a.number for a in result] == ["201-05"]

    def test_get(self):
        chart = _chart()
        assert asyncio.run(chart.get("4")).name == "Kasa"
        assert asyncio.run(chart.get("missing")) is None


class TestSideRestrictions:
    def test_rules(self):
        assert is_account_allowed_for_side("701", Side.DEBIT) is False
        assert is_account_allowed_for_side("701", Side.CREDIT) is True
        assert is_account_allowed_for_side("402", Side.CREDIT) is False
        assert is_account_allowed_for_side("402", None) is True
