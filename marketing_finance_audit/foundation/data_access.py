"""Read-only data access interface between the warehouse and the engine.

The metric calculators never talk to a database. They receive materialised
record collections, which an adapter implementing :class:`DataAccessAdapter`
fetches for a :class:`ReportingWindow`. :class:`InMemoryDataAccess` is the
reference implementation used by the CLI, the tests and anyone who already
holds the records in memory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Protocol, Sequence, TypeVar

from marketing_finance_audit.errors import ValidationError
from marketing_finance_audit.foundation.calendar import as_datetime, naive
from marketing_finance_audit.foundation.records import (
    Campaign,
    Customer,
    MarketingSpend,
    Order,
    Subscription,
    Touchpoint,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ReportingWindow:
    """Closed time interval used to scope fetches.

    Attributes
    ----------
    start:
        Inclusive lower bound, or ``None`` for no lower bound.
    end:
        Inclusive upper bound, or ``None`` for no upper bound.
    """

    start: datetime | None = None
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.start is not None:
            object.__setattr__(self, "start", naive(as_datetime(self.start)))
        if self.end is not None:
            object.__setattr__(self, "end", naive(as_datetime(self.end)))
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(
                f"start must not be after end: start={self.start.isoformat()}, "
                f"end={self.end.isoformat()}"
            )

    def contains(self, timestamp: datetime) -> bool:
        if self.start is not None and timestamp < self.start:
            return False
        if self.end is not None and timestamp > self.end:
            return False
        return True

    def overlaps(self, start: datetime, end: datetime | None) -> bool:
        """Whether the interval ``[start, end]`` (open-ended if ``end`` is None) intersects."""
        if self.end is not None and start > self.end:
            return False
        if self.start is not None and end is not None and end < self.start:
            return False
        return True


class DataAccessAdapter(Protocol):
    """Read-only source of the six record streams.

    Implementations return records in a stable order; the attribution engine
    breaks touchpoint timestamp ties by that order.
    """

    def fetch_customers(self, window: ReportingWindow) -> Sequence[Customer]: ...

    def fetch_orders(self, window: ReportingWindow) -> Sequence[Order]: ...

    def fetch_touchpoints(self, window: ReportingWindow) -> Sequence[Touchpoint]: ...

    def fetch_spend(self, window: ReportingWindow) -> Sequence[MarketingSpend]: ...

    def fetch_subscriptions(self, window: ReportingWindow) -> Sequence[Subscription]: ...

    def fetch_campaigns(self, window: ReportingWindow) -> Sequence[Campaign]: ...


def _parse_records(
    raw: Iterable[Mapping[str, Any]] | None,
    factory: Callable[..., T],
    name: str,
) -> list[T]:
    if raw is None:
        return []
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        raise ValidationError(f"{name} must be a list of records", details={"key": name})
    records: list[T] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise ValidationError(
                f"{name}[{idx}] must be a mapping, got {type(item).__name__}",
                details={"key": name, "record_index": idx},
            )
        records.append(factory(item, index=idx))
    return records


class InMemoryDataAccess:
    """Adapter over record collections already held in memory.

    Each fetch filters on the entity's primary date: acquisition date for
    customers, order date, touchpoint date, campaign (spend) date and campaign
    start date. Subscriptions are returned when their active interval overlaps
    the window. Campaigns without a start date are always returned.
    """

    def __init__(
        self,
        *,
        customers: Iterable[Customer] = (),
        orders: Iterable[Order] = (),
        touchpoints: Iterable[Touchpoint] = (),
        spend: Iterable[MarketingSpend] = (),
        subscriptions: Iterable[Subscription] = (),
        campaigns: Iterable[Campaign] = (),
    ) -> None:
        self.customers = tuple(customers)
        self.orders = tuple(orders)
        self.touchpoints = tuple(touchpoints)
        self.spend = tuple(spend)
        self.subscriptions = tuple(subscriptions)
        self.campaigns = tuple(campaigns)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "InMemoryDataAccess":
        """Build an adapter from raw JSON-like lists keyed by stream name.

        Recognised keys are ``customers``, ``orders``, ``touchpoints``,
        ``spend``, ``subscriptions`` and ``campaigns``; missing keys give
        empty streams.
        """
        adapter = cls(
            customers=_parse_records(payload.get("customers"), Customer.from_mapping, "customers"),
            orders=_parse_records(payload.get("orders"), Order.from_mapping, "orders"),
            touchpoints=_parse_records(
                payload.get("touchpoints"), Touchpoint.from_mapping, "touchpoints"
            ),
            spend=_parse_records(payload.get("spend"), MarketingSpend.from_mapping, "spend"),
            subscriptions=_parse_records(
                payload.get("subscriptions"), Subscription.from_mapping, "subscriptions"
            ),
            campaigns=_parse_records(payload.get("campaigns"), Campaign.from_mapping, "campaigns"),
        )
        logger.debug(
            f"Loaded {len(adapter.customers)} customers, {len(adapter.orders)} orders, "
            f"{len(adapter.touchpoints)} touchpoints, {len(adapter.spend)} spend rows, "
            f"{len(adapter.subscriptions)} subscriptions, {len(adapter.campaigns)} campaigns"
        )
        return adapter

    def fetch_customers(self, window: ReportingWindow) -> list[Customer]:
        return [c for c in self.customers if window.contains(c.acquisition_date)]

    def fetch_orders(self, window: ReportingWindow) -> list[Order]:
        return [o for o in self.orders if window.contains(o.order_date)]

    def fetch_touchpoints(self, window: ReportingWindow) -> list[Touchpoint]:
        return [t for t in self.touchpoints if window.contains(t.touchpoint_date)]

    def fetch_spend(self, window: ReportingWindow) -> list[MarketingSpend]:
        return [s for s in self.spend if window.contains(s.campaign_date)]

    def fetch_subscriptions(self, window: ReportingWindow) -> list[Subscription]:
        return [s for s in self.subscriptions if window.overlaps(s.start_date, s.end_date)]

    def fetch_campaigns(self, window: ReportingWindow) -> list[Campaign]:
        return [
            c for c in self.campaigns if c.start_date is None or window.contains(c.start_date)
        ]
