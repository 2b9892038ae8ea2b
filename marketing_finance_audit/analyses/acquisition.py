"""Acquisition efficiency: CAC, ROAS and cost per revenue dollar.

Customers acquired inside the trailing lookback window are grouped by
(acquisition month, channel, campaign) and joined to marketing spend
aggregated over the same key. Spend and acquisitions are matched on the
calendar month, not the exact date, and on the campaign *name* recorded
against the customer.

The join is a full outer join:

- a group with acquisitions but no recorded spend reports ``total_spend=0``
  (missing spend is zero, not absence), so ``roas`` is ``None``;
- a group with spend but no acquisitions still reports, with ``cac=0``.

Quick Start
-----------
>>> from datetime import datetime
>>> from decimal import Decimal
>>> from marketing_finance_audit.config import MetricsConfig
>>> from marketing_finance_audit.foundation.records import Customer, MarketingSpend
>>> config = MetricsConfig(evaluation_instant=datetime(2024, 6, 30))
>>> customers = [
...     Customer("C1", datetime(2024, 5, 3), "search", "spring", Decimal("80")),
...     Customer("C2", datetime(2024, 5, 9), "search", "spring", Decimal("120")),
... ]
>>> spend = [MarketingSpend("K1", "search", "spring", datetime(2024, 5, 1), Decimal("100"))]
>>> row = calculate_acquisition_metrics(customers, spend, config)[0]
>>> row.cac, row.roas
(Decimal('50.00'), Decimal('2.0000'))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from marketing_finance_audit.analyses._rounding import (
    ZERO,
    currency,
    divide_or_none,
    divide_or_zero,
    ratio,
)
from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.foundation.calendar import CalendarMonth, month_bucket
from marketing_finance_audit.foundation.records import (
    Customer,
    MarketingSpend,
    index_customers,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonthlyMetricRow:
    """Acquisition metrics for one (month, channel, campaign) group.

    Attributes
    ----------
    month:
        Calendar month of acquisition / spend.
    channel:
        Marketing channel.
    campaign:
        Campaign name.
    customers_acquired:
        Distinct customers acquired in the group.
    total_spend:
        Marketing spend in the group (0 when none was recorded).
    first_purchase_revenue:
        Sum of the acquired customers' first purchase amounts.
    cac:
        ``total_spend / customers_acquired``; 0 when no customers.
    roas:
        ``first_purchase_revenue / total_spend``; ``None`` when spend is 0.
    cost_per_revenue_dollar:
        ``total_spend / first_purchase_revenue``; ``None`` when revenue is 0.
    """

    month: CalendarMonth
    channel: str
    campaign: str
    customers_acquired: int
    total_spend: Decimal
    first_purchase_revenue: Decimal
    cac: Decimal
    roas: Decimal | None
    cost_per_revenue_dollar: Decimal | None

    def __post_init__(self) -> None:
        if self.customers_acquired < 0:
            raise ValueError(
                f"customers_acquired cannot be negative: {self.customers_acquired}"
            )
        if self.total_spend < 0:
            raise ValueError(f"total_spend cannot be negative: {self.total_spend}")
        if self.first_purchase_revenue < 0:
            raise ValueError(
                f"first_purchase_revenue cannot be negative: {self.first_purchase_revenue}"
            )


@dataclass(frozen=True)
class ChannelAcquisitionSummary:
    """Acquisition metrics rolled up over every month and campaign of a channel."""

    channel: str
    customers_acquired: int
    total_spend: Decimal
    first_purchase_revenue: Decimal
    cac: Decimal
    roas: Decimal | None
    cost_per_revenue_dollar: Decimal | None


def _build_row(
    month: CalendarMonth,
    channel: str,
    campaign: str,
    customers_acquired: int,
    total_spend: Decimal,
    revenue: Decimal,
) -> MonthlyMetricRow:
    roas = divide_or_none(revenue, total_spend)
    cost_per_revenue = divide_or_none(total_spend, revenue)
    return MonthlyMetricRow(
        month=month,
        channel=channel,
        campaign=campaign,
        customers_acquired=customers_acquired,
        total_spend=currency(total_spend),
        first_purchase_revenue=currency(revenue),
        cac=currency(divide_or_zero(total_spend, customers_acquired)),
        roas=ratio(roas) if roas is not None else None,
        cost_per_revenue_dollar=(
            ratio(cost_per_revenue) if cost_per_revenue is not None else None
        ),
    )


def calculate_acquisition_metrics(
    customers: Sequence[Customer],
    spend: Sequence[MarketingSpend],
    config: MetricsConfig,
) -> list[MonthlyMetricRow]:
    """Compute CAC, ROAS and cost per revenue dollar per acquisition group.

    Parameters
    ----------
    customers:
        Customers; only those acquired inside the lookback window count.
    spend:
        Marketing spend rows; only those dated inside the lookback window count.
    config:
        Supplies the evaluation instant and lookback window.

    Returns
    -------
    list[MonthlyMetricRow]
        One row per group, ordered by month descending then channel and
        campaign ascending.

    Raises
    ------
    ValidationError
        If customer identifiers are duplicated.
    """
    index_customers(customers)

    key_type = tuple[CalendarMonth, str, str]
    acquired: dict[key_type, set[str]] = {}
    revenue: dict[key_type, Decimal] = {}
    for customer in customers:
        if not config.in_lookback_window(customer.acquisition_date):
            continue
        key = (
            month_bucket(customer.acquisition_date),
            customer.acquisition_channel,
            customer.campaign_key,
        )
        acquired.setdefault(key, set()).add(customer.customer_id)
        revenue[key] = revenue.get(key, ZERO) + (customer.first_purchase_amount or ZERO)

    spend_by_key: dict[key_type, Decimal] = {}
    for row in spend:
        if not config.in_lookback_window(row.campaign_date):
            continue
        key = (month_bucket(row.campaign_date), row.channel, row.campaign_name)
        spend_by_key[key] = spend_by_key.get(key, ZERO) + row.spend_amount

    keys = set(acquired) | set(spend_by_key)
    rows = [
        _build_row(
            month,
            channel,
            campaign,
            customers_acquired=len(acquired.get((month, channel, campaign), ())),
            total_spend=spend_by_key.get((month, channel, campaign), ZERO),
            revenue=revenue.get((month, channel, campaign), ZERO),
        )
        for month, channel, campaign in keys
    ]

    # month descending, then channel/campaign ascending
    rows.sort(key=lambda r: (r.channel, r.campaign))
    rows.sort(key=lambda r: r.month, reverse=True)

    unfunded = sum(1 for key in acquired if key not in spend_by_key)
    if unfunded:
        logger.debug(f"{unfunded} acquisition groups have no recorded spend")
    logger.debug(f"Computed acquisition metrics for {len(rows)} groups")
    return rows


def summarize_acquisition_by_channel(
    rows: Sequence[MonthlyMetricRow],
) -> list[ChannelAcquisitionSummary]:
    """Roll monthly acquisition rows up to one summary per channel.

    Ratios are recomputed from the summed totals (not averaged), using the
    same zero-denominator rules as the monthly rows. Ordered by channel.
    """
    totals: dict[str, list] = {}
    for row in rows:
        bucket = totals.setdefault(row.channel, [0, ZERO, ZERO])
        bucket[0] += row.customers_acquired
        bucket[1] += row.total_spend
        bucket[2] += row.first_purchase_revenue

    summaries: list[ChannelAcquisitionSummary] = []
    for channel in sorted(totals):
        customers_acquired, total_spend, revenue = totals[channel]
        roas = divide_or_none(revenue, total_spend)
        cost_per_revenue = divide_or_none(total_spend, revenue)
        summaries.append(
            ChannelAcquisitionSummary(
                channel=channel,
                customers_acquired=customers_acquired,
                total_spend=currency(total_spend),
                first_purchase_revenue=currency(revenue),
                cac=currency(divide_or_zero(total_spend, customers_acquired)),
                roas=ratio(roas) if roas is not None else None,
                cost_per_revenue_dollar=(
                    ratio(cost_per_revenue) if cost_per_revenue is not None else None
                ),
            )
        )
    return summaries
