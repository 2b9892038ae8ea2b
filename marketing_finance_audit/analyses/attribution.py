"""Campaign revenue attribution: first touch, last touch and weighted multi-touch.

Touchpoints inside the trailing lookback window are ranked per customer. The
earliest touchpoint is the customer's first touch and the latest their last
touch; when timestamps tie, the record supplied earlier wins first touch and
the record supplied later wins last touch, so the ranking depends only on the
input order and never on hash or sort instability.

A customer's attributable revenue is the sum of their completed orders placed
within ``[touchpoint_date, touchpoint_date + attribution_window_days]`` of
*any* of their touchpoints. Each order counts once per customer no matter how
many touchpoint windows it falls into.

Per campaign:

- first/last touch revenue credits the whole customer revenue to the
  campaign owning the customer's first/last touchpoint;
- multi-touch revenue is ``sum(customer_revenue * attribution_weight)`` over
  the campaign's touchpoints.

Weights are used exactly as supplied. The engine does not normalise them, so
weights that do not sum to 1 per customer over- or under-count multi-touch
revenue; such customers are counted and logged at warning level.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Sequence

from marketing_finance_audit.analyses._rounding import (
    HUNDRED,
    ZERO,
    currency,
    divide_or_none,
    percentage,
)
from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.foundation.records import (
    Campaign,
    Customer,
    Order,
    Touchpoint,
    completed_orders,
    index_customers,
    validate_campaigns,
    validate_orders,
)

logger = logging.getLogger(__name__)

WEIGHT_SUM_TARGET = Decimal("1")


@dataclass(frozen=True)
class TouchpointRanking:
    """First and last touchpoint of one customer.

    Attributes
    ----------
    customer_id:
        Customer identifier.
    first_touch:
        Touchpoint ranked 1 in ascending time order.
    last_touch:
        Touchpoint ranked 1 in descending time order.
    touchpoints:
        All of the customer's touchpoints in ascending rank order.
    """

    customer_id: str
    first_touch: Touchpoint
    last_touch: Touchpoint
    touchpoints: tuple[Touchpoint, ...]


@dataclass(frozen=True)
class AttributionResult:
    """Attributed revenue and funnel ratios for one campaign.

    Attributes
    ----------
    campaign_id, campaign_name, channel:
        Campaign identity; name and channel come from its touchpoints.
    touchpoints:
        Touchpoints of the campaign inside the lookback window.
    first_touch_customers, last_touch_customers:
        Customers whose first/last touchpoint belongs to the campaign.
    first_touch_revenue, last_touch_revenue:
        Revenue of those customers.
    multi_touch_revenue:
        ``sum(customer_revenue * attribution_weight)`` over the campaign's
        touchpoints.
    cost, impressions, clicks, conversions:
        Campaign counters (0 when the campaign record is missing).
    ctr:
        ``clicks / impressions * 100``; ``None`` without impressions.
    conversion_rate:
        ``conversions / clicks * 100``; ``None`` without clicks.
    first_touch_roi, last_touch_roi, multi_touch_roi:
        ``(attributed_revenue - cost) / cost * 100``; ``None`` when cost is 0.
    """

    campaign_id: str
    campaign_name: str
    channel: str
    touchpoints: int
    first_touch_customers: int
    first_touch_revenue: Decimal
    last_touch_customers: int
    last_touch_revenue: Decimal
    multi_touch_revenue: Decimal
    cost: Decimal
    impressions: int
    clicks: int
    conversions: int
    ctr: Decimal | None
    conversion_rate: Decimal | None
    first_touch_roi: Decimal | None
    last_touch_roi: Decimal | None
    multi_touch_roi: Decimal | None

    def __post_init__(self) -> None:
        if self.first_touch_customers < 0 or self.last_touch_customers < 0:
            raise ValueError(
                f"touch customer counts cannot be negative (campaign_id={self.campaign_id})"
            )
        if self.first_touch_revenue < 0 or self.last_touch_revenue < 0:
            raise ValueError(
                f"attributed revenue cannot be negative (campaign_id={self.campaign_id})"
            )


def rank_touchpoints(touchpoints: Sequence[Touchpoint]) -> dict[str, TouchpointRanking]:
    """Rank each customer's touchpoints by time, breaking ties by input order.

    Returns
    -------
    dict[str, TouchpointRanking]
        Keyed by customer id.
    """
    by_customer: dict[str, list[tuple[int, Touchpoint]]] = defaultdict(list)
    for position, touchpoint in enumerate(touchpoints):
        by_customer[touchpoint.customer_id].append((position, touchpoint))

    rankings: dict[str, TouchpointRanking] = {}
    for customer_id, entries in by_customer.items():
        ascending = sorted(entries, key=lambda e: (e[1].touchpoint_date, e[0]))
        last = max(entries, key=lambda e: (e[1].touchpoint_date, e[0]))
        rankings[customer_id] = TouchpointRanking(
            customer_id=customer_id,
            first_touch=ascending[0][1],
            last_touch=last[1],
            touchpoints=tuple(t for _, t in ascending),
        )
    return rankings


def _customer_revenue(
    ranking: TouchpointRanking,
    orders: Sequence[Order],
    window: timedelta,
) -> Decimal:
    revenue = ZERO
    for order in orders:
        if any(
            t.touchpoint_date <= order.order_date <= t.touchpoint_date + window
            for t in ranking.touchpoints
        ):
            revenue += order.order_total
    return revenue


def _roi(attributed: Decimal, cost: Decimal) -> Decimal | None:
    value = divide_or_none(attributed - cost, cost)
    return percentage(value * HUNDRED) if value is not None else None


def _rate(numerator: int, denominator: int) -> Decimal | None:
    value = divide_or_none(Decimal(numerator), denominator)
    return percentage(value * HUNDRED) if value is not None else None


def attribute_revenue(
    touchpoints: Sequence[Touchpoint],
    orders: Sequence[Order],
    campaigns: Sequence[Campaign],
    config: MetricsConfig,
    customers: Sequence[Customer] | None = None,
) -> list[AttributionResult]:
    """Attribute customer revenue to campaigns under three models.

    Parameters
    ----------
    touchpoints:
        Marketing touchpoints in a stable order; those outside the lookback
        window are ignored.
    orders:
        Orders of any status; only ``Completed`` orders are attributed.
    campaigns:
        Campaign cost and funnel counters. Campaigns without touchpoints are
        still reported with zero attributed revenue.
    config:
        Supplies the evaluation instant, lookback window and attribution
        window.
    customers:
        Optional. When given, orders referencing unknown customers raise.

    Returns
    -------
    list[AttributionResult]
        Ordered by ``multi_touch_revenue`` descending, then ``campaign_id``.

    Raises
    ------
    ValidationError
        On duplicate order or campaign ids, or (with ``customers``) orders
        for unknown customers.
    """
    customers_by_id = index_customers(customers) if customers is not None else None
    validate_orders(orders, customers_by_id)
    validate_campaigns(campaigns)

    in_window = [t for t in touchpoints if config.in_lookback_window(t.touchpoint_date)]
    if len(in_window) < len(touchpoints):
        logger.debug(
            f"Ignored {len(touchpoints) - len(in_window)} touchpoints outside the lookback window"
        )

    rankings = rank_touchpoints(in_window)

    orders_by_customer: dict[str, list[Order]] = defaultdict(list)
    for order in completed_orders(orders):
        orders_by_customer[order.customer_id].append(order)

    window = timedelta(days=config.attribution_window_days)
    revenue_by_customer = {
        customer_id: _customer_revenue(ranking, orders_by_customer.get(customer_id, ()), window)
        for customer_id, ranking in rankings.items()
    }

    unnormalised = sum(
        1
        for ranking in rankings.values()
        if sum((t.attribution_weight for t in ranking.touchpoints), ZERO) != WEIGHT_SUM_TARGET
    )
    if unnormalised:
        logger.warning(
            f"{unnormalised} of {len(rankings)} customers have attribution weights that do "
            f"not sum to {WEIGHT_SUM_TARGET}; multi-touch revenue uses the weights as supplied"
        )

    first_customers: dict[str, int] = defaultdict(int)
    first_revenue: dict[str, Decimal] = defaultdict(lambda: ZERO)
    last_customers: dict[str, int] = defaultdict(int)
    last_revenue: dict[str, Decimal] = defaultdict(lambda: ZERO)
    multi_revenue: dict[str, Decimal] = defaultdict(lambda: ZERO)
    touch_counts: dict[str, int] = defaultdict(int)
    identity: dict[str, tuple[str, str]] = {}

    for customer_id, ranking in rankings.items():
        revenue = revenue_by_customer[customer_id]
        first_id = ranking.first_touch.campaign_id
        last_id = ranking.last_touch.campaign_id
        first_customers[first_id] += 1
        first_revenue[first_id] += revenue
        last_customers[last_id] += 1
        last_revenue[last_id] += revenue
        for touchpoint in ranking.touchpoints:
            multi_revenue[touchpoint.campaign_id] += revenue * touchpoint.attribution_weight
            touch_counts[touchpoint.campaign_id] += 1
            identity.setdefault(
                touchpoint.campaign_id, (touchpoint.campaign_name, touchpoint.channel)
            )

    campaigns_by_id = {c.campaign_id: c for c in campaigns}
    campaign_ids = set(campaigns_by_id) | set(touch_counts)

    results: list[AttributionResult] = []
    for campaign_id in campaign_ids:
        campaign = campaigns_by_id.get(campaign_id)
        cost = campaign.cost if campaign is not None else ZERO
        impressions = campaign.impressions if campaign is not None else 0
        clicks = campaign.clicks if campaign is not None else 0
        conversions = campaign.conversions if campaign is not None else 0
        name, channel = identity.get(campaign_id, ("", ""))
        results.append(
            AttributionResult(
                campaign_id=campaign_id,
                campaign_name=name,
                channel=channel,
                touchpoints=touch_counts[campaign_id],
                first_touch_customers=first_customers[campaign_id],
                first_touch_revenue=currency(first_revenue[campaign_id]),
                last_touch_customers=last_customers[campaign_id],
                last_touch_revenue=currency(last_revenue[campaign_id]),
                multi_touch_revenue=currency(multi_revenue[campaign_id]),
                cost=currency(cost),
                impressions=impressions,
                clicks=clicks,
                conversions=conversions,
                ctr=_rate(clicks, impressions),
                conversion_rate=_rate(conversions, clicks),
                first_touch_roi=_roi(first_revenue[campaign_id], cost),
                last_touch_roi=_roi(last_revenue[campaign_id], cost),
                multi_touch_roi=_roi(multi_revenue[campaign_id], cost),
            )
        )

    missing = [cid for cid in touch_counts if cid not in campaigns_by_id]
    if missing:
        logger.debug(f"{len(missing)} touched campaigns have no campaign record: {missing[:5]}")

    results.sort(key=lambda r: r.campaign_id)
    results.sort(key=lambda r: r.multi_touch_revenue, reverse=True)
    logger.debug(
        f"Attributed revenue for {len(rankings)} customers across {len(results)} campaigns"
    )
    return results
