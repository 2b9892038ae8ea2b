"""Monthly and annual recurring revenue with month-over-month movement.

A subscription contributes to every calendar month between the month of its
start date and the month of its end date (or of the evaluation instant when
it is still active, or ended after it). Contributions are aggregated per
(month, plan_type) into :class:`MrrSnapshot` rows; :func:`calculate_mrr_trend`
then walks each plan's months in order carrying the previous row forward.

Absent previous values are treated differently per field:

- growth rates need a denominator, so without a previous row (or with a
  previous value of zero) they are ``None``;
- ``net_new_mrr`` counts an absent previous row as zero, because recurring
  revenue appearing from nothing is legitimately all new.

Missing months are not filled in: the "previous" row of a plan is the one
immediately before it in that plan's ordered sequence.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from marketing_finance_audit.analyses._rounding import (
    ZERO,
    currency,
    percent_change,
)
from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.foundation.calendar import CalendarMonth, month_range
from marketing_finance_audit.foundation.records import (
    Subscription,
    validate_subscriptions,
)

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


@dataclass(frozen=True)
class MrrSnapshot:
    """Recurring revenue of one plan type in one month.

    Attributes
    ----------
    month:
        Calendar month.
    plan_type:
        Subscription plan.
    active_subscribers:
        Distinct customers with an active subscription on the plan.
    subscription_count:
        Active subscriptions (a customer may hold several).
    total_mrr:
        Sum of ``monthly_price`` over active subscriptions.
    arpu:
        Average ``monthly_price`` over active subscriptions.
    """

    month: CalendarMonth
    plan_type: str
    active_subscribers: int
    subscription_count: int
    total_mrr: Decimal
    arpu: Decimal

    def __post_init__(self) -> None:
        if self.active_subscribers < 0:
            raise ValueError(
                f"active_subscribers cannot be negative: {self.active_subscribers}"
            )
        if self.subscription_count < self.active_subscribers:
            raise ValueError(
                f"subscription_count ({self.subscription_count}) cannot be lower than "
                f"active_subscribers ({self.active_subscribers})"
            )
        if self.total_mrr < 0:
            raise ValueError(f"total_mrr cannot be negative: {self.total_mrr}")


@dataclass(frozen=True)
class MrrTrendRow:
    """A snapshot enriched with previous-month comparisons.

    Attributes
    ----------
    prev_month_mrr, prev_month_subscribers:
        Values of the preceding row for the same plan; ``None`` for the first.
    mrr_growth_rate, subscriber_growth_rate:
        Percent change from the previous row; ``None`` when it is absent or 0.
    arr:
        ``total_mrr * 12``.
    net_new_mrr:
        ``total_mrr - prev_month_mrr``, with an absent previous counted as 0.
    """

    month: CalendarMonth
    plan_type: str
    active_subscribers: int
    total_mrr: Decimal
    arpu: Decimal
    prev_month_mrr: Decimal | None
    prev_month_subscribers: int | None
    mrr_growth_rate: Decimal | None
    subscriber_growth_rate: Decimal | None
    arr: Decimal
    net_new_mrr: Decimal


def _active_months(subscription: Subscription, config: MetricsConfig):
    last = subscription.end_date
    if last is None or last > config.evaluation_instant:
        last = config.evaluation_instant
    return month_range(subscription.start_date, last)


def calculate_mrr_snapshots(
    subscriptions: Sequence[Subscription],
    config: MetricsConfig,
) -> list[MrrSnapshot]:
    """Aggregate recurring revenue per (month, plan_type).

    Subscriptions starting before ``config.mrr_epoch`` or after the
    evaluation instant are ignored.

    Returns
    -------
    list[MrrSnapshot]
        Ordered by month descending, then plan_type ascending. Months in
        which a plan has no active subscription produce no row.

    Raises
    ------
    ValidationError
        If subscription identifiers are duplicated.
    """
    validate_subscriptions(subscriptions)

    customers: dict[tuple[CalendarMonth, str], set[str]] = defaultdict(set)
    prices: dict[tuple[CalendarMonth, str], list[Decimal]] = defaultdict(list)
    skipped = 0
    for subscription in subscriptions:
        if config.mrr_epoch is not None and subscription.start_date < config.mrr_epoch:
            skipped += 1
            continue
        if subscription.start_date > config.evaluation_instant:
            skipped += 1
            continue
        for month in _active_months(subscription, config):
            key = (month, subscription.plan_type)
            customers[key].add(subscription.customer_id)
            prices[key].append(subscription.monthly_price)

    if skipped:
        logger.debug(f"Ignored {skipped} subscriptions outside the MRR reporting range")

    snapshots = [
        MrrSnapshot(
            month=month,
            plan_type=plan_type,
            active_subscribers=len(customers[(month, plan_type)]),
            subscription_count=len(plan_prices),
            total_mrr=currency(sum(plan_prices, ZERO)),
            arpu=currency(sum(plan_prices, ZERO) / len(plan_prices)),
        )
        for (month, plan_type), plan_prices in prices.items()
    ]
    snapshots.sort(key=lambda s: s.plan_type)
    snapshots.sort(key=lambda s: s.month, reverse=True)
    return snapshots


def calculate_mrr_trend(snapshots: Sequence[MrrSnapshot]) -> list[MrrTrendRow]:
    """Add previous-month comparisons, ARR and net new MRR to each snapshot.

    Each plan's snapshots are walked in ascending month order carrying the
    previous row; plans are independent of one another.

    Returns
    -------
    list[MrrTrendRow]
        Ordered by month descending, then plan_type ascending.

    Examples
    --------
    >>> from decimal import Decimal
    >>> rows = calculate_mrr_trend([
    ...     MrrSnapshot(CalendarMonth(2024, 1), "pro", 8, 8, Decimal("800"), Decimal("100")),
    ...     MrrSnapshot(CalendarMonth(2024, 2), "pro", 10, 10, Decimal("1000"), Decimal("100")),
    ... ])
    >>> rows[0].mrr_growth_rate, rows[0].net_new_mrr
    (Decimal('25.00'), Decimal('200.00'))
    >>> rows[1].mrr_growth_rate is None, rows[1].net_new_mrr
    (True, Decimal('800.00'))
    """
    by_plan: dict[str, list[MrrSnapshot]] = defaultdict(list)
    for snapshot in snapshots:
        by_plan[snapshot.plan_type].append(snapshot)

    rows: list[MrrTrendRow] = []
    for plan_type, plan_snapshots in by_plan.items():
        previous: MrrSnapshot | None = None
        for snapshot in sorted(plan_snapshots, key=lambda s: s.month):
            if previous is not None and previous.month == snapshot.month:
                raise ValueError(
                    f"duplicate snapshot for plan {plan_type!r} in {snapshot.month}"
                )
            prev_mrr = previous.total_mrr if previous is not None else None
            prev_subscribers = previous.active_subscribers if previous is not None else None
            rows.append(
                MrrTrendRow(
                    month=snapshot.month,
                    plan_type=plan_type,
                    active_subscribers=snapshot.active_subscribers,
                    total_mrr=snapshot.total_mrr,
                    arpu=snapshot.arpu,
                    prev_month_mrr=prev_mrr,
                    prev_month_subscribers=prev_subscribers,
                    mrr_growth_rate=percent_change(snapshot.total_mrr, prev_mrr),
                    subscriber_growth_rate=percent_change(
                        Decimal(snapshot.active_subscribers),
                        Decimal(prev_subscribers) if prev_subscribers is not None else None,
                    ),
                    arr=currency(snapshot.total_mrr * MONTHS_PER_YEAR),
                    net_new_mrr=currency(snapshot.total_mrr - (prev_mrr or ZERO)),
                )
            )
            previous = snapshot

    rows.sort(key=lambda r: r.plan_type)
    rows.sort(key=lambda r: r.month, reverse=True)
    return rows
