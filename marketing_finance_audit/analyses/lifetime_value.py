"""Purchase-frequency based customer lifetime value projection.

Each customer's completed orders give an observed purchase rhythm
(average days between orders) and an average order value. The projection
extends that rhythm over whatever remains of a fixed horizon (three years by
default) measured from the customer's acquisition date:

    predicted_clv = (365 / avg_days_between_orders)
                    * avg_order_value
                    * (remaining_days / 365)

where ``remaining_days = horizon_years * 365 - customer_age_days`` and the
customer's age is measured at the configured evaluation instant.

Edge Cases
----------
- One-time buyers have no frequency estimate (``avg_days_between_orders`` is
  ``None``); their predicted CLV is their observed ``total_revenue``.
- Repeat buyers whose orders all share one timestamp have a zero interval;
  they are treated like one-time buyers (no projection beyond observed).
- Customers older than the horizon get a negative remaining horizon and so a
  negative projection. This is reported as-is; callers decide whether to
  clamp it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from marketing_finance_audit.analyses._rounding import (
    ZERO,
    currency,
    divide_or_zero,
    ratio,
)
from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.foundation.records import (
    Customer,
    Order,
    completed_orders,
    index_customers,
    validate_orders,
)

logger = logging.getLogger(__name__)

DAYS_PER_YEAR = Decimal("365")
DAY_PRECISION = Decimal("0.01")


@dataclass(frozen=True)
class ClvEstimate:
    """Lifetime value estimate for a single customer.

    Attributes
    ----------
    customer_id:
        Customer identifier.
    acquisition_channel:
        Channel the customer was acquired through.
    total_orders:
        Number of completed orders.
    total_revenue:
        Sum of completed order totals.
    avg_order_value:
        ``total_revenue / total_orders``.
    first_order_date, last_order_date:
        Timestamps of the earliest and latest completed orders.
    lifespan_days:
        Whole days between first and last order.
    avg_days_between_orders:
        ``lifespan_days / (total_orders - 1)``; ``None`` for one-time buyers.
    customer_age_days:
        Whole days from acquisition to the evaluation instant.
    remaining_horizon_days:
        Days left in the projection horizon; negative once it has elapsed.
    predicted_clv:
        Projected value over the horizon, or ``total_revenue`` when there is
        no frequency estimate.
    """

    customer_id: str
    acquisition_channel: str
    total_orders: int
    total_revenue: Decimal
    avg_order_value: Decimal
    first_order_date: datetime
    last_order_date: datetime
    lifespan_days: int
    avg_days_between_orders: Decimal | None
    customer_age_days: int
    remaining_horizon_days: int
    predicted_clv: Decimal

    def __post_init__(self) -> None:
        if self.total_orders < 1:
            raise ValueError(
                f"total_orders must be >= 1, got {self.total_orders} "
                f"(customer_id={self.customer_id})"
            )
        if self.total_revenue < 0:
            raise ValueError(
                f"total_revenue cannot be negative: {self.total_revenue} "
                f"(customer_id={self.customer_id})"
            )
        if self.total_orders == 1 and self.avg_days_between_orders is not None:
            raise ValueError(
                "avg_days_between_orders must be None for one-time buyers "
                f"(customer_id={self.customer_id})"
            )

    @property
    def has_frequency_estimate(self) -> bool:
        return self.avg_days_between_orders is not None and self.avg_days_between_orders > 0


@dataclass(frozen=True)
class ChannelClvSummary:
    """Lifetime value aggregated over the customers of one acquisition channel."""

    channel: str
    customer_count: int
    total_revenue: Decimal
    avg_total_orders: Decimal
    avg_order_value: Decimal
    avg_customer_revenue: Decimal
    avg_predicted_clv: Decimal
    clv_to_cac_ratio: Decimal


def _project(
    avg_days_between_orders: Decimal | None,
    avg_order_value: Decimal,
    remaining_days: int,
    total_revenue: Decimal,
) -> Decimal:
    if avg_days_between_orders is None or avg_days_between_orders <= 0:
        return total_revenue
    purchases_per_year = DAYS_PER_YEAR / avg_days_between_orders
    return purchases_per_year * avg_order_value * (Decimal(remaining_days) / DAYS_PER_YEAR)


def estimate_customer_lifetime_value(
    customers: Sequence[Customer],
    orders: Sequence[Order],
    config: MetricsConfig,
) -> list[ClvEstimate]:
    """Estimate lifetime value for every customer with a completed order.

    Parameters
    ----------
    customers:
        All customers referenced by ``orders``; supplies acquisition dates and
        channels.
    orders:
        Orders of any status; only ``Completed`` orders placed on or before
        the evaluation instant contribute.
    config:
        Supplies the evaluation instant and projection horizon.

    Returns
    -------
    list[ClvEstimate]
        Ordered by ``predicted_clv`` descending, then ``customer_id``.

    Raises
    ------
    ValidationError
        On duplicate customer or order ids, or orders for unknown customers.

    Examples
    --------
    >>> from datetime import datetime
    >>> from decimal import Decimal
    >>> from marketing_finance_audit.config import MetricsConfig
    >>> from marketing_finance_audit.foundation.records import Customer, Order
    >>> config = MetricsConfig(evaluation_instant=datetime(2024, 1, 1))
    >>> customers = [Customer("C1", datetime(2023, 1, 1), "email")]
    >>> orders = [
    ...     Order("O1", "C1", Decimal("100"), datetime(2023, 1, 1)),
    ...     Order("O2", "C1", Decimal("100"), datetime(2023, 7, 1)),
    ... ]
    >>> estimate = estimate_customer_lifetime_value(customers, orders, config)[0]
    >>> estimate.avg_days_between_orders
    Decimal('181.00')
    """
    customers_by_id = index_customers(customers)
    validate_orders(orders, customers_by_id)

    orders_by_customer: dict[str, list[Order]] = defaultdict(list)
    for order in completed_orders(orders):
        if order.order_date <= config.evaluation_instant:
            orders_by_customer[order.customer_id].append(order)

    horizon_days = config.clv_horizon_years * int(DAYS_PER_YEAR)
    estimates: list[ClvEstimate] = []
    for customer_id, customer_orders in orders_by_customer.items():
        customer = customers_by_id[customer_id]
        total_orders = len(customer_orders)
        total_revenue = sum((o.order_total for o in customer_orders), ZERO)
        avg_order_value = total_revenue / total_orders
        first_order = min(o.order_date for o in customer_orders)
        last_order = max(o.order_date for o in customer_orders)
        lifespan_days = (last_order - first_order).days

        avg_days_between: Decimal | None = None
        if total_orders > 1:
            avg_days_between = Decimal(lifespan_days) / Decimal(total_orders - 1)

        customer_age_days = (config.evaluation_instant - customer.acquisition_date).days
        remaining_days = horizon_days - customer_age_days

        predicted = _project(avg_days_between, avg_order_value, remaining_days, total_revenue)

        estimates.append(
            ClvEstimate(
                customer_id=customer_id,
                acquisition_channel=customer.acquisition_channel,
                total_orders=total_orders,
                total_revenue=currency(total_revenue),
                avg_order_value=currency(avg_order_value),
                first_order_date=first_order,
                last_order_date=last_order,
                lifespan_days=lifespan_days,
                avg_days_between_orders=(
                    avg_days_between.quantize(DAY_PRECISION)
                    if avg_days_between is not None
                    else None
                ),
                customer_age_days=customer_age_days,
                remaining_horizon_days=remaining_days,
                predicted_clv=currency(predicted),
            )
        )

    estimates.sort(key=lambda e: e.customer_id)
    estimates.sort(key=lambda e: e.predicted_clv, reverse=True)

    expired = sum(1 for e in estimates if e.remaining_horizon_days < 0)
    if expired:
        logger.debug(
            f"{expired} customers are past the {config.clv_horizon_years}-year horizon; "
            "their projections are negative"
        )
    logger.debug(f"Estimated lifetime value for {len(estimates)} customers")
    return estimates


def summarize_clv_by_channel(
    estimates: Sequence[ClvEstimate],
    config: MetricsConfig,
) -> list[ChannelClvSummary]:
    """Aggregate lifetime value estimates per acquisition channel.

    ``clv_to_cac_ratio`` divides the channel's average predicted CLV by the
    configured ``assumed_cac``. Ordered by ``avg_predicted_clv`` descending,
    then channel.
    """
    by_channel: dict[str, list[ClvEstimate]] = defaultdict(list)
    for estimate in estimates:
        by_channel[estimate.acquisition_channel].append(estimate)

    summaries: list[ChannelClvSummary] = []
    for channel, members in by_channel.items():
        count = len(members)
        total_revenue = sum((e.total_revenue for e in members), ZERO)
        avg_predicted = divide_or_zero(sum((e.predicted_clv for e in members), ZERO), count)
        summaries.append(
            ChannelClvSummary(
                channel=channel,
                customer_count=count,
                total_revenue=currency(total_revenue),
                avg_total_orders=ratio(
                    divide_or_zero(Decimal(sum(e.total_orders for e in members)), count)
                ),
                avg_order_value=currency(
                    divide_or_zero(sum((e.avg_order_value for e in members), ZERO), count)
                ),
                avg_customer_revenue=currency(divide_or_zero(total_revenue, count)),
                avg_predicted_clv=currency(avg_predicted),
                clv_to_cac_ratio=ratio(avg_predicted / config.assumed_cac),
            )
        )

    summaries.sort(key=lambda s: s.channel)
    summaries.sort(key=lambda s: s.avg_predicted_clv, reverse=True)
    return summaries
