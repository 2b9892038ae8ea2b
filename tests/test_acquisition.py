"""Tests for acquisition efficiency metrics."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from marketing_finance_audit.analyses.acquisition import (
    calculate_acquisition_metrics,
    summarize_acquisition_by_channel,
)
from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.errors import ValidationError
from marketing_finance_audit.foundation.calendar import CalendarMonth
from marketing_finance_audit.foundation.records import (
    NO_CAMPAIGN,
    Customer,
    MarketingSpend,
)


@pytest.fixture
def config():
    return MetricsConfig(evaluation_instant=datetime(2024, 6, 30))


def _customers(n, *, month=5, channel="search", campaign="spring", amount="200"):
    return [
        Customer(
            f"{channel}-{campaign}-{month}-{i}",
            datetime(2024, month, 1 + i % 28),
            channel,
            campaign,
            Decimal(amount),
        )
        for i in range(n)
    ]


class TestCalculateAcquisitionMetrics:
    """CAC, ROAS and cost per revenue dollar per (month, channel, campaign)."""

    def test_worked_example(self, config):
        """spend=1000 over 20 customers with 4000 revenue gives cac 50, roas 4."""
        customers = _customers(20)
        spend = [
            MarketingSpend("K1", "search", "spring", datetime(2024, 5, 2), Decimal("600")),
            MarketingSpend("K1", "search", "spring", datetime(2024, 5, 20), Decimal("400")),
        ]

        rows = calculate_acquisition_metrics(customers, spend, config)

        assert len(rows) == 1
        row = rows[0]
        assert row.month == CalendarMonth(2024, 5)
        assert row.customers_acquired == 20
        assert row.total_spend == Decimal("1000")
        assert row.first_purchase_revenue == Decimal("4000")
        assert row.cac == Decimal("50")
        assert row.roas == Decimal("4.0")
        assert row.cost_per_revenue_dollar == Decimal("0.25")

    def test_missing_spend_defaults_to_zero(self, config):
        rows = calculate_acquisition_metrics(_customers(3), [], config)
        row = rows[0]
        assert row.total_spend == Decimal("0")
        assert row.cac == Decimal("0")
        assert row.roas is None
        assert row.cost_per_revenue_dollar == Decimal("0")

    def test_spend_without_customers_still_reported(self, config):
        spend = [MarketingSpend("K2", "social", "launch", datetime(2024, 4, 3), Decimal("300"))]
        rows = calculate_acquisition_metrics([], spend, config)
        assert len(rows) == 1
        assert rows[0].customers_acquired == 0
        assert rows[0].cac == Decimal("0")
        assert rows[0].roas == Decimal("0")
        assert rows[0].cost_per_revenue_dollar is None

    def test_zero_revenue_gives_undefined_cost_per_revenue(self, config):
        customers = _customers(2, amount="0")
        spend = [MarketingSpend("K1", "search", "spring", datetime(2024, 5, 2), Decimal("100"))]
        row = calculate_acquisition_metrics(customers, spend, config)[0]
        assert row.cost_per_revenue_dollar is None
        assert row.roas == Decimal("0")

    def test_spend_joined_on_month_not_date(self, config):
        customers = _customers(1, month=5)
        spend = [MarketingSpend("K1", "search", "spring", datetime(2024, 5, 31), Decimal("80"))]
        rows = calculate_acquisition_metrics(customers, spend, config)
        assert len(rows) == 1
        assert rows[0].cac == Decimal("80")

    def test_customers_without_campaign_grouped_together(self, config):
        customers = [
            Customer("A", datetime(2024, 5, 1), "organic"),
            Customer("B", datetime(2024, 5, 2), "organic"),
        ]
        rows = calculate_acquisition_metrics(customers, [], config)
        assert rows[0].campaign == NO_CAMPAIGN
        assert rows[0].customers_acquired == 2

    def test_lookback_window_applied(self):
        config = MetricsConfig(
            evaluation_instant=datetime(2024, 6, 30), lookback_window=timedelta(days=30)
        )
        customers = _customers(2, month=5) + _customers(2, month=6)
        rows = calculate_acquisition_metrics(customers, [], config)
        assert [r.month for r in rows] == [CalendarMonth(2024, 6)]

    def test_ordering_month_desc_then_channel_campaign(self, config):
        customers = (
            _customers(1, month=4, channel="search")
            + _customers(1, month=5, channel="social")
            + _customers(1, month=5, channel="email", campaign="b")
            + _customers(1, month=5, channel="email", campaign="a")
        )
        rows = calculate_acquisition_metrics(customers, [], config)
        assert [(str(r.month), r.channel, r.campaign) for r in rows] == [
            ("2024-05", "email", "a"),
            ("2024-05", "email", "b"),
            ("2024-05", "social", "spring"),
            ("2024-04", "search", "spring"),
        ]

    def test_duplicate_customers_rejected(self, config):
        customers = _customers(1) + _customers(1)
        with pytest.raises(ValidationError):
            calculate_acquisition_metrics(customers, [], config)


class TestSummarizeByChannel:
    def test_ratios_recomputed_from_totals(self, config):
        customers = _customers(10, month=4) + _customers(10, month=5)
        spend = [
            MarketingSpend("K1", "search", "spring", datetime(2024, 4, 1), Decimal("100")),
            MarketingSpend("K1", "search", "spring", datetime(2024, 5, 1), Decimal("900")),
        ]
        rows = calculate_acquisition_metrics(customers, spend, config)
        summary = summarize_acquisition_by_channel(rows)
        assert len(summary) == 1
        assert summary[0].customers_acquired == 20
        assert summary[0].total_spend == Decimal("1000")
        assert summary[0].cac == Decimal("50")
        assert summary[0].roas == Decimal("4")
