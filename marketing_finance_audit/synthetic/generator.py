from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
import math
import random
from typing import Any, Dict, List, Optional, Sequence

from marketing_finance_audit.foundation.calendar import as_datetime, month_range
from marketing_finance_audit.foundation.data_access import InMemoryDataAccess
from marketing_finance_audit.foundation.records import (
    Campaign,
    Customer,
    MarketingSpend,
    Order,
    Subscription,
    Touchpoint,
)

DEFAULT_CHANNELS = ("paid_search", "social", "email", "affiliate")
DEFAULT_PLANS = {"basic": Decimal("19.00"), "pro": Decimal("49.00"), "team": Decimal("99.00")}


@dataclass(frozen=True)
class MarketingScenario:
    """Configuration for the synthetic marketing dataset.

    Attributes
    ----------
    channels: Acquisition channels; each gets one campaign per month.
    plans: Subscription plan names mapped to monthly prices.
    monthly_spend_mean: Average spend per campaign per month.
    base_orders_per_month: Average completed orders per active customer per month.
    mean_order_value: Average order total.
    churn_hazard: Monthly probability that a customer stops ordering.
    subscription_rate: Share of customers who start a subscription.
    touchpoints_per_customer: Average touchpoints recorded per customer.
    cancelled_order_rate: Share of orders given a non-completed status.
    """

    channels: Sequence[str] = DEFAULT_CHANNELS
    plans: Dict[str, Decimal] = field(default_factory=lambda: dict(DEFAULT_PLANS))
    monthly_spend_mean: float = 1500.0
    base_orders_per_month: float = 0.6
    mean_order_value: float = 60.0
    churn_hazard: float = 0.08
    subscription_rate: float = 0.3
    touchpoints_per_customer: float = 2.5
    cancelled_order_rate: float = 0.05


@dataclass
class MarketingDataset:
    """All six record streams of a generated dataset."""

    customers: List[Customer]
    orders: List[Order]
    spend: List[MarketingSpend]
    subscriptions: List[Subscription]
    touchpoints: List[Touchpoint]
    campaigns: List[Campaign]

    def to_adapter(self) -> InMemoryDataAccess:
        return InMemoryDataAccess(
            customers=self.customers,
            orders=self.orders,
            touchpoints=self.touchpoints,
            spend=self.spend,
            subscriptions=self.subscriptions,
            campaigns=self.campaigns,
        )

    def to_payload(self) -> Dict[str, List[Dict[str, Any]]]:
        """JSON-serialisable payload accepted by ``InMemoryDataAccess.from_payload``."""

        def _row(record: object) -> Dict[str, Any]:
            out: Dict[str, Any] = {}
            for key, value in vars(record).items():
                if isinstance(value, datetime):
                    out[key] = value.isoformat()
                elif isinstance(value, Decimal):
                    out[key] = str(value)
                else:
                    out[key] = value
            return out

        return {
            "customers": [_row(c) for c in self.customers],
            "orders": [_row(o) for o in self.orders],
            "spend": [_row(s) for s in self.spend],
            "subscriptions": [_row(s) for s in self.subscriptions],
            "touchpoints": [_row(t) for t in self.touchpoints],
            "campaigns": [_row(c) for c in self.campaigns],
        }


def _campaign_name(channel: str, month_start: datetime) -> str:
    return f"{channel}-{month_start:%Y-%m}"


def _poisson(rng: random.Random, lam: float) -> int:
    # Knuth's algorithm; lambdas here are small
    if lam <= 0:
        return 0
    limit = math.exp(-lam)
    k = 0
    p = 1.0
    while p > limit:
        k += 1
        p *= rng.random()
    return k - 1


def _money(value: float) -> Decimal:
    return Decimal(str(round(max(value, 0.01), 2)))


def _sample_amount(rng: random.Random, mean: float, sigma: float = 0.4) -> Decimal:
    # Log-normal draw keeps amounts positive with a realistic right tail
    mu = math.log(max(mean, 0.01)) - 0.5 * sigma * sigma
    return _money(math.exp(rng.normalvariate(mu, sigma)))


def _random_instant(rng: random.Random, start: datetime, end: datetime) -> datetime:
    span = int((end - start).total_seconds())
    return start + timedelta(seconds=rng.randint(0, max(span, 0)))


def generate_marketing_dataset(
    n_customers: int,
    start: date,
    end: date,
    *,
    scenario: Optional[MarketingScenario] = None,
    seed: Optional[int] = None,
) -> MarketingDataset:
    """Generate an internally consistent marketing dataset.

    Every order, touchpoint and subscription references a generated
    customer, every customer's campaign has spend in its acquisition month,
    and no event precedes the customer's acquisition or follows ``end``.
    The same ``seed`` always produces the same dataset.
    """
    if n_customers < 0:
        raise ValueError("n_customers must be >= 0")
    if start > end:
        raise ValueError("start date must be <= end date")

    scenario = scenario or MarketingScenario()
    if not scenario.channels:
        raise ValueError("scenario.channels must not be empty")
    rng = random.Random(seed)
    start_dt = as_datetime(start)
    end_dt = as_datetime(end)

    spend: List[MarketingSpend] = []
    campaigns: List[Campaign] = []
    for month in month_range(start_dt, end_dt):
        for channel in scenario.channels:
            name = _campaign_name(channel, month.start)
            campaign_id = f"CMP-{channel}-{month}"
            amount = _sample_amount(rng, scenario.monthly_spend_mean)
            spend_date = max(month.start, start_dt)
            spend.append(MarketingSpend(campaign_id, channel, name, spend_date, amount))
            impressions = rng.randint(5_000, 50_000)
            clicks = int(impressions * rng.uniform(0.005, 0.05))
            conversions = int(clicks * rng.uniform(0.02, 0.15))
            campaigns.append(
                Campaign(campaign_id, amount, impressions, clicks, conversions, spend_date)
            )

    customers: List[Customer] = []
    orders: List[Order] = []
    subscriptions: List[Subscription] = []
    touchpoints: List[Touchpoint] = []
    plan_names = sorted(scenario.plans)

    for i in range(n_customers):
        customer_id = f"C-{i + 1}"
        acquired = _random_instant(rng, start_dt, end_dt)
        channel = rng.choice(list(scenario.channels))
        campaign_name = _campaign_name(channel, datetime(acquired.year, acquired.month, 1))

        first_amount = _sample_amount(rng, scenario.mean_order_value)
        first_order_id = f"O-{customer_id}-1"
        orders.append(Order(first_order_id, customer_id, first_amount, acquired))
        customers.append(
            Customer(
                customer_id=customer_id,
                acquisition_date=acquired,
                acquisition_channel=channel,
                acquisition_campaign=campaign_name,
                first_purchase_amount=first_amount,
                first_purchase_date=acquired,
                segment=rng.choice(["consumer", "smb", "enterprise"]),
                region=rng.choice(["north", "south", "east", "west"]),
            )
        )

        # acquisition touchpoint shortly before the first purchase
        touch_count = max(1, _poisson(rng, scenario.touchpoints_per_customer))
        customer_touches: List[Touchpoint] = []
        for _ in range(touch_count):
            touch_date = max(start_dt, acquired - timedelta(days=rng.randint(0, 30)))
            touch_channel = rng.choice(list(scenario.channels))
            customer_touches.append(
                Touchpoint(
                    customer_id=customer_id,
                    campaign_id=f"CMP-{touch_channel}-{touch_date:%Y-%m}",
                    touchpoint_date=touch_date,
                    channel=touch_channel,
                    campaign_name=_campaign_name(
                        touch_channel, datetime(touch_date.year, touch_date.month, 1)
                    ),
                )
            )
        # equal weights; the last one absorbs rounding so they sum to exactly 1
        weight = (Decimal(1) / Decimal(len(customer_touches))).quantize(Decimal("0.0001"))
        weights = [weight] * (len(customer_touches) - 1)
        weights.append(Decimal(1) - sum(weights, Decimal(0)))
        touchpoints.extend(
            Touchpoint(
                t.customer_id,
                t.campaign_id,
                t.touchpoint_date,
                t.channel,
                t.campaign_name,
                w,
            )
            for t, w in zip(customer_touches, weights)
        )

        order_seq = 1
        for month in month_range(acquired, end_dt):
            if month.contains(acquired):
                continue
            if rng.random() < scenario.churn_hazard:
                break
            for _ in range(_poisson(rng, scenario.base_orders_per_month)):
                order_seq += 1
                last_instant = min(month.end - timedelta(seconds=1), end_dt)
                order_date = _random_instant(rng, month.start, last_instant)
                status = (
                    "Cancelled" if rng.random() < scenario.cancelled_order_rate else "Completed"
                )
                orders.append(
                    Order(
                        f"O-{customer_id}-{order_seq}",
                        customer_id,
                        _sample_amount(rng, scenario.mean_order_value),
                        order_date,
                        status,
                    )
                )

        if plan_names and rng.random() < scenario.subscription_rate:
            plan = rng.choice(plan_names)
            sub_start = min(acquired + timedelta(days=rng.randint(0, 14)), end_dt)
            sub_end: Optional[datetime] = None
            if rng.random() < 0.4:
                sub_end = sub_start + timedelta(days=rng.randint(30, 365))
                if sub_end > end_dt:
                    # cancellation not yet observed
                    sub_end = None
            subscriptions.append(
                Subscription(
                    subscription_id=f"S-{customer_id}",
                    customer_id=customer_id,
                    plan_type=plan,
                    monthly_price=scenario.plans[plan],
                    start_date=sub_start,
                    end_date=sub_end,
                    status="active" if sub_end is None else "cancelled",
                )
            )

    orders.sort(key=lambda o: (o.order_date, o.order_id))
    return MarketingDataset(
        customers=customers,
        orders=orders,
        spend=spend,
        subscriptions=subscriptions,
        touchpoints=touchpoints,
        campaigns=campaigns,
    )
