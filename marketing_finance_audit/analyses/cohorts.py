"""Acquisition cohort revenue curves, retention and CAC payback.

Customers acquired inside the lookback window are grouped into cohorts keyed
by (acquisition month, acquisition channel). A cohort's size is fixed when it
is formed and never changes while later months are processed.

For every month in which cohort members have completed orders, the offset
from the cohort month (``months_since_acquisition``) is computed in whole
calendar months and kept when it falls in ``[0, cohort_horizon_months]``.
Rows of a cohort are then folded in ascending offset order carrying running
totals, which restart at every new cohort. Months without revenue produce no
row; the running totals simply carry over them.

Quick Start
-----------
>>> from datetime import datetime
>>> from marketing_finance_audit.config import MetricsConfig
>>> from marketing_finance_audit.analyses.cohorts import analyze_cohorts, find_payback_months
>>> config = MetricsConfig(evaluation_instant=datetime(2024, 12, 31))
>>> rows = analyze_cohorts(customers, orders, config)  # doctest: +SKIP
>>> for payback in find_payback_months(rows, config):  # doctest: +SKIP
...     print(payback.cohort_month, payback.channel, payback.payback_month)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from marketing_finance_audit.analyses._rounding import (
    HUNDRED,
    ZERO,
    currency,
    percentage,
)
from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.foundation.calendar import (
    CalendarMonth,
    month_bucket,
    months_between,
)
from marketing_finance_audit.foundation.records import (
    Customer,
    Order,
    completed_orders,
    index_customers,
    validate_orders,
)

logger = logging.getLogger(__name__)

PAYBACK_ACHIEVED = "Payback Achieved"
PAYBACK_NOT_YET = "Not Yet"


@dataclass(frozen=True)
class CohortRow:
    """Revenue and retention of one cohort at one month offset.

    Attributes
    ----------
    cohort_month:
        Acquisition month of the cohort.
    channel:
        Acquisition channel of the cohort.
    months_since_acquisition:
        Whole calendar months between the cohort month and the revenue month.
    cohort_size:
        Customers in the cohort, fixed at formation.
    active_customers:
        Distinct cohort members with completed orders in the month.
    cohort_monthly_revenue:
        Completed order revenue of the cohort in the month.
    revenue_per_customer:
        ``cohort_monthly_revenue / cohort_size``.
    retention_rate:
        ``active_customers / cohort_size * 100``.
    cumulative_revenue:
        Running total of monthly revenue up to and including this offset.
    cumulative_revenue_per_customer:
        ``cumulative_revenue / cohort_size``.
    payback_status:
        ``"Payback Achieved"`` once cumulative revenue per customer reaches
        the assumed CAC, otherwise ``"Not Yet"``.
    """

    cohort_month: CalendarMonth
    channel: str
    months_since_acquisition: int
    cohort_size: int
    active_customers: int
    cohort_monthly_revenue: Decimal
    revenue_per_customer: Decimal
    retention_rate: Decimal
    cumulative_revenue: Decimal
    cumulative_revenue_per_customer: Decimal
    payback_status: str

    def __post_init__(self) -> None:
        if self.months_since_acquisition < 0:
            raise ValueError(
                f"months_since_acquisition must be >= 0, got {self.months_since_acquisition}"
            )
        if self.cohort_size <= 0:
            raise ValueError(f"cohort_size must be positive, got {self.cohort_size}")
        if not 0 <= self.active_customers <= self.cohort_size:
            raise ValueError(
                f"active_customers must be between 0 and cohort_size ({self.cohort_size}), "
                f"got {self.active_customers}"
            )
        if not 0 <= self.retention_rate <= 100:
            raise ValueError(f"retention_rate must be 0-100, got {self.retention_rate}")
        if self.payback_status not in (PAYBACK_ACHIEVED, PAYBACK_NOT_YET):
            raise ValueError(f"Unknown payback_status: {self.payback_status!r}")


@dataclass(frozen=True)
class CohortPayback:
    """When (if ever) a cohort recovered the assumed acquisition cost.

    Attributes
    ----------
    cohort_month, channel:
        Cohort key.
    cohort_size:
        Customers in the cohort.
    payback_month:
        First ``months_since_acquisition`` at which cumulative revenue per
        customer reached the assumed CAC; ``None`` if it never did.
    cumulative_revenue_per_customer:
        Value at the cohort's latest tracked offset.
    """

    cohort_month: CalendarMonth
    channel: str
    cohort_size: int
    payback_month: int | None
    cumulative_revenue_per_customer: Decimal

    @property
    def achieved(self) -> bool:
        return self.payback_month is not None


def analyze_cohorts(
    customers: Sequence[Customer],
    orders: Sequence[Order],
    config: MetricsConfig,
) -> list[CohortRow]:
    """Build cohort revenue curves with retention and payback status.

    Parameters
    ----------
    customers:
        Customers; those acquired inside the lookback window form cohorts.
    orders:
        Orders of any status; only ``Completed`` orders placed on or before
        the evaluation instant contribute.
    config:
        Supplies the lookback window, cohort horizon and assumed CAC.

    Returns
    -------
    list[CohortRow]
        Ordered by cohort month descending, channel ascending and
        ``months_since_acquisition`` ascending.

    Raises
    ------
    ValidationError
        On duplicate customer or order ids, or orders for unknown customers.
    """
    customers_by_id = index_customers(customers)
    validate_orders(orders, customers_by_id)

    cohort_of: dict[str, tuple[CalendarMonth, str]] = {}
    cohort_sizes: dict[tuple[CalendarMonth, str], int] = defaultdict(int)
    for customer in customers:
        if not config.in_lookback_window(customer.acquisition_date):
            continue
        key = (month_bucket(customer.acquisition_date), customer.acquisition_channel)
        cohort_of[customer.customer_id] = key
        cohort_sizes[key] += 1

    revenue: dict[tuple[CalendarMonth, str], dict[int, Decimal]] = defaultdict(dict)
    active: dict[tuple[CalendarMonth, str], dict[int, set[str]]] = defaultdict(dict)
    outside_horizon = 0
    for order in completed_orders(orders):
        key = cohort_of.get(order.customer_id)
        if key is None or order.order_date > config.evaluation_instant:
            continue
        offset = months_between(key[0], order.order_date)
        if not 0 <= offset <= config.cohort_horizon_months:
            outside_horizon += 1
            continue
        revenue[key][offset] = revenue[key].get(offset, ZERO) + order.order_total
        active[key].setdefault(offset, set()).add(order.customer_id)

    if outside_horizon:
        logger.debug(
            f"Ignored {outside_horizon} orders outside the "
            f"0-{config.cohort_horizon_months} month cohort horizon"
        )

    rows: list[CohortRow] = []
    for key in sorted(revenue, key=lambda k: (-k[0].ordinal, k[1])):
        cohort_month, channel = key
        size = cohort_sizes[key]
        cumulative = ZERO
        for offset in sorted(revenue[key]):
            monthly = revenue[key][offset]
            cumulative += monthly
            # payback is judged on the unrounded value
            cumulative_per_customer = cumulative / size
            rows.append(
                CohortRow(
                    cohort_month=cohort_month,
                    channel=channel,
                    months_since_acquisition=offset,
                    cohort_size=size,
                    active_customers=len(active[key][offset]),
                    cohort_monthly_revenue=currency(monthly),
                    revenue_per_customer=currency(monthly / size),
                    retention_rate=percentage(
                        Decimal(len(active[key][offset])) / size * HUNDRED
                    ),
                    cumulative_revenue=currency(cumulative),
                    cumulative_revenue_per_customer=currency(cumulative_per_customer),
                    payback_status=(
                        PAYBACK_ACHIEVED
                        if cumulative_per_customer >= config.assumed_cac
                        else PAYBACK_NOT_YET
                    ),
                )
            )

    logger.debug(
        f"Built {len(rows)} cohort rows for {len(revenue)} of {len(cohort_sizes)} cohorts"
    )
    return rows


def find_payback_months(
    rows: Sequence[CohortRow],
    config: MetricsConfig,
) -> list[CohortPayback]:
    """Report the first offset at which each cohort reached payback.

    Cumulative revenue never decreases, so once a cohort crosses the assumed
    CAC it stays paid back; the first crossing is the payback month.

    Returns
    -------
    list[CohortPayback]
        One entry per cohort, ordered like :func:`analyze_cohorts`.
    """
    by_cohort: dict[tuple[CalendarMonth, str], list[CohortRow]] = defaultdict(list)
    for row in rows:
        by_cohort[(row.cohort_month, row.channel)].append(row)

    paybacks: list[CohortPayback] = []
    for key in sorted(by_cohort, key=lambda k: (-k[0].ordinal, k[1])):
        cohort_rows = sorted(by_cohort[key], key=lambda r: r.months_since_acquisition)
        payback_month = next(
            (
                r.months_since_acquisition
                for r in cohort_rows
                if r.cumulative_revenue / r.cohort_size >= config.assumed_cac
            ),
            None,
        )
        paybacks.append(
            CohortPayback(
                cohort_month=key[0],
                channel=key[1],
                cohort_size=cohort_rows[0].cohort_size,
                payback_month=payback_month,
                cumulative_revenue_per_customer=cohort_rows[-1].cumulative_revenue_per_customer,
            )
        )
    return paybacks
