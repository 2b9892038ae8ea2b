"""Tests for cohort revenue curves and CAC payback."""

from datetime import datetime
from decimal import Decimal

import pytest

from marketing_finance_audit.analyses.cohorts import (
    PAYBACK_ACHIEVED,
    PAYBACK_NOT_YET,
    CohortRow,
    analyze_cohorts,
    find_payback_months,
)
from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.foundation.calendar import CalendarMonth
from marketing_finance_audit.foundation.records import Customer, Order


@pytest.fixture
def config():
    return MetricsConfig(evaluation_instant=datetime(2024, 12, 31))


@pytest.fixture
def january_cohort():
    """100 customers: all buy for 50 in month 0, 60 of them spend 2000 in month 1."""
    customers = [Customer(f"J{i}", datetime(2024, 1, 1 + i % 28), "search") for i in range(100)]
    orders = [
        Order(f"J{i}-0", f"J{i}", Decimal("50"), datetime(2024, 1, 28)) for i in range(100)
    ]
    orders += [
        Order(f"J{i}-1", f"J{i}", Decimal("25"), datetime(2024, 2, 10)) for i in range(40)
    ]
    orders += [
        Order(f"J{i}-1", f"J{i}", Decimal("50"), datetime(2024, 2, 11)) for i in range(40, 60)
    ]
    return customers, orders


class TestAnalyzeCohorts:
    """Per (cohort, offset) revenue, retention and running totals."""

    def test_worked_example(self, january_cohort, config):
        customers, orders = january_cohort

        rows = analyze_cohorts(customers, orders, config)

        assert len(rows) == 2
        month0, month1 = rows
        assert month0.cohort_month == CalendarMonth(2024, 1)
        assert month0.months_since_acquisition == 0
        assert month0.cohort_size == 100
        assert month0.cohort_monthly_revenue == Decimal("5000")
        assert month0.revenue_per_customer == Decimal("50")
        assert month0.retention_rate == Decimal("100")
        assert month0.payback_status == PAYBACK_ACHIEVED

        assert month1.months_since_acquisition == 1
        assert month1.active_customers == 60
        assert month1.retention_rate == Decimal("60")
        assert month1.cumulative_revenue == Decimal("7000")
        assert month1.cumulative_revenue_per_customer == Decimal("70")

    def test_offset_zero_cumulative_equals_revenue_per_customer(self, january_cohort, config):
        customers, orders = january_cohort
        for row in analyze_cohorts(customers, orders, config):
            if row.months_since_acquisition == 0:
                assert row.cumulative_revenue_per_customer == row.revenue_per_customer

    def test_running_totals_reset_per_cohort(self, january_cohort, config):
        customers, orders = january_cohort
        customers = customers + [
            Customer("F1", datetime(2024, 2, 3), "search"),
            Customer("F2", datetime(2024, 2, 4), "search"),
            Customer("S1", datetime(2024, 1, 5), "social"),
        ]
        orders = orders + [
            Order("F1-1", "F1", Decimal("20"), datetime(2024, 3, 1)),
            Order("F2-1", "F2", Decimal("20"), datetime(2024, 3, 2)),
            Order("S1-0", "S1", Decimal("10"), datetime(2024, 1, 6)),
        ]

        rows = analyze_cohorts(customers, orders, config)

        assert [(str(r.cohort_month), r.channel, r.months_since_acquisition) for r in rows] == [
            ("2024-02", "search", 1),
            ("2024-01", "search", 0),
            ("2024-01", "search", 1),
            ("2024-01", "social", 0),
        ]
        february = rows[0]
        assert february.cohort_size == 2
        assert february.cumulative_revenue == Decimal("40")
        assert february.cumulative_revenue_per_customer == Decimal("20")
        assert february.payback_status == PAYBACK_NOT_YET
        assert rows[3].cumulative_revenue == Decimal("10")

    def test_cohort_size_fixed_across_offsets(self, january_cohort, config):
        customers, orders = january_cohort
        sizes = {
            (r.cohort_month, r.channel): set() for r in analyze_cohorts(customers, orders, config)
        }
        for row in analyze_cohorts(customers, orders, config):
            sizes[(row.cohort_month, row.channel)].add(row.cohort_size)
        assert all(len(s) == 1 for s in sizes.values())

    def test_horizon_limits_offsets(self, config):
        customers = [Customer("C1", datetime(2023, 1, 15), "email")]
        orders = [
            Order("O1", "C1", Decimal("10"), datetime(2023, 1, 20)),
            Order("O2", "C1", Decimal("10"), datetime(2024, 1, 20)),
            Order("O3", "C1", Decimal("10"), datetime(2024, 2, 20)),
        ]
        rows = analyze_cohorts(customers, orders, config)
        assert [r.months_since_acquisition for r in rows] == [0, 12]

        short = MetricsConfig(evaluation_instant=datetime(2024, 12, 31), cohort_horizon_months=0)
        assert [r.months_since_acquisition for r in analyze_cohorts(customers, orders, short)] == [0]

    def test_customers_outside_lookback_form_no_cohort(self, config):
        customers = [Customer("C1", datetime(2022, 6, 1), "email")]
        orders = [Order("O1", "C1", Decimal("10"), datetime(2023, 6, 1))]
        assert analyze_cohorts(customers, orders, config) == []

    def test_non_completed_orders_ignored(self, config):
        customers = [Customer("C1", datetime(2024, 5, 1), "email")]
        orders = [Order("O1", "C1", Decimal("10"), datetime(2024, 5, 2), "Cancelled")]
        assert analyze_cohorts(customers, orders, config) == []

    def test_orders_after_evaluation_instant_ignored(self):
        customers = [Customer("C1", datetime(2024, 5, 1), "email")]
        orders = [
            Order("O1", "C1", Decimal("10"), datetime(2024, 5, 2)),
            Order("O2", "C1", Decimal("90"), datetime(2024, 7, 2)),
        ]
        config = MetricsConfig(evaluation_instant=datetime(2024, 6, 30))
        rows = analyze_cohorts(customers, orders, config)
        assert [r.months_since_acquisition for r in rows] == [0]
        assert rows[0].cumulative_revenue == Decimal("10")


class TestCohortRowValidation:
    def test_active_customers_bounded_by_size(self):
        with pytest.raises(ValueError, match="active_customers"):
            CohortRow(
                CalendarMonth(2024, 1),
                "email",
                0,
                1,
                2,
                Decimal("1"),
                Decimal("1"),
                Decimal("100"),
                Decimal("1"),
                Decimal("1"),
                PAYBACK_NOT_YET,
            )


class TestFindPaybackMonths:
    """First offset at which cumulative revenue per customer reaches the CAC."""

    def test_payback_at_month_zero(self, january_cohort, config):
        customers, orders = january_cohort
        paybacks = find_payback_months(analyze_cohorts(customers, orders, config), config)
        assert len(paybacks) == 1
        assert paybacks[0].payback_month == 0
        assert paybacks[0].achieved
        assert paybacks[0].cumulative_revenue_per_customer == Decimal("70")

    def test_higher_cac_delays_payback(self, january_cohort):
        customers, orders = january_cohort
        config = MetricsConfig(evaluation_instant=datetime(2024, 12, 31), assumed_cac=60)
        rows = analyze_cohorts(customers, orders, config)
        assert [r.payback_status for r in rows] == [PAYBACK_NOT_YET, PAYBACK_ACHIEVED]
        assert find_payback_months(rows, config)[0].payback_month == 1

    def test_never_paid_back(self, january_cohort):
        customers, orders = january_cohort
        config = MetricsConfig(evaluation_instant=datetime(2024, 12, 31), assumed_cac=500)
        payback = find_payback_months(analyze_cohorts(customers, orders, config), config)[0]
        assert payback.payback_month is None
        assert not payback.achieved

    def test_empty_rows(self, config):
        assert find_payback_months([], config) == []

    def test_payback_uses_unrounded_revenue_per_customer(self, config):
        # 149.99 / 3 = 49.9966..., which rounds to 50.00 but is below the CAC
        customers = [Customer(f"C{i}", datetime(2024, 3, 1), "email") for i in range(3)]
        orders = [
            Order("O0", "C0", Decimal("50.00"), datetime(2024, 3, 2)),
            Order("O1", "C1", Decimal("50.00"), datetime(2024, 3, 3)),
            Order("O2", "C2", Decimal("49.99"), datetime(2024, 3, 4)),
            Order("O3", "C2", Decimal("0.01"), datetime(2024, 4, 4)),
        ]

        rows = analyze_cohorts(customers, orders, config)

        month0, month1 = rows
        assert month0.cumulative_revenue_per_customer == Decimal("50.00")
        assert month0.payback_status == PAYBACK_NOT_YET
        assert month1.payback_status == PAYBACK_ACHIEVED
        assert find_payback_months(rows, config)[0].payback_month == 1

        rows_to_march = [r for r in rows if r.months_since_acquisition == 0]
        assert find_payback_months(rows_to_march, config)[0].payback_month is None
