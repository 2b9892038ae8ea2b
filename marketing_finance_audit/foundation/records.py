"""Entity records consumed by the metrics engine and their validation.

The records mirror the six logical streams supplied by the data access
adapter (customers, orders, marketing spend, subscriptions, touchpoints and
campaigns). They are immutable facts: the engine never mutates them.

Construction validates each record on its own (non-negative amounts, date
ordering). Cross-record checks such as duplicate identifiers or orders that
reference unknown customers live in the ``validate_*`` helpers at the bottom
of this module. Both raise :class:`~marketing_finance_audit.errors.ValidationError`
naming the offending record instead of letting bad rows turn into NaN or
garbage metrics downstream.

Timestamps are stored as naive ``datetime`` objects: ``date`` values are
promoted to midnight and timezone-aware values keep their wall-clock fields.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Sequence

from marketing_finance_audit.errors import ValidationError
from marketing_finance_audit.foundation.calendar import as_datetime, naive

logger = logging.getLogger(__name__)

#: Only orders in this status count toward revenue metrics.
COMPLETED_STATUS = "Completed"

#: Grouping label used when a customer carries no acquisition campaign.
NO_CAMPAIGN = "(none)"


def _coerce_decimal(value: Any, *, entity: str, record_id: str | None, field: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(
            f"{field} must be numeric, got bool",
            entity=entity,
            record_id=record_id,
            details={"field": field, "value": value},
        )
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise ValidationError(
                f"{field} must be numeric, got {value!r}",
                entity=entity,
                record_id=record_id,
                details={"field": field, "value": value},
            ) from exc
    if not amount.is_finite():
        raise ValidationError(
            f"{field} must be a finite number, got {value!r}",
            entity=entity,
            record_id=record_id,
            details={"field": field, "value": value},
        )
    return amount


def _coerce_timestamp(
    value: Any, *, entity: str, record_id: str | None, field: str
) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(
                f"{field} is not an ISO-8601 timestamp: {value!r}",
                entity=entity,
                record_id=record_id,
                details={"field": field, "value": value},
            ) from exc
    if not isinstance(value, (date, datetime)):
        raise ValidationError(
            f"{field} must be a date or datetime, got {type(value).__name__}",
            entity=entity,
            record_id=record_id,
            details={"field": field, "value": value},
        )
    return naive(as_datetime(value))


def _optional_timestamp(
    value: Any, *, entity: str, record_id: str | None, field: str
) -> datetime | None:
    if value is None or value == "":
        return None
    return _coerce_timestamp(value, entity=entity, record_id=record_id, field=field)


def _require_non_negative(
    value: Decimal | int, *, entity: str, record_id: str | None, field: str
) -> None:
    if value < 0:
        raise ValidationError(
            f"{field} cannot be negative: {value}",
            entity=entity,
            record_id=record_id,
            details={"field": field, "value": value},
        )


def _set(instance: object, name: str, value: Any) -> None:
    # frozen dataclasses normalise their own fields in __post_init__
    object.__setattr__(instance, name, value)


def _field(record: Mapping[str, Any], name: str, *, entity: str, index: int) -> Any:
    try:
        return record[name]
    except KeyError as exc:
        raise ValidationError(
            f"record at index {index} missing required field {name!r}",
            entity=entity,
            details={"record_index": index, "field": name},
        ) from exc


@dataclass(frozen=True)
class Customer:
    """A customer and the facts of their acquisition.

    Attributes
    ----------
    customer_id:
        Unique customer identifier.
    acquisition_date:
        When the customer was acquired.
    acquisition_channel:
        Marketing channel credited with the acquisition (e.g. ``"paid_search"``).
    acquisition_campaign:
        Campaign name credited with the acquisition, if any.
    first_purchase_amount:
        Value of the customer's first purchase, if known.
    first_purchase_date:
        Date of the first purchase; never earlier than ``acquisition_date``.
    segment:
        Optional business segment label.
    region:
        Optional geographic region label.
    """

    customer_id: str
    acquisition_date: datetime
    acquisition_channel: str
    acquisition_campaign: str | None = None
    first_purchase_amount: Decimal | None = None
    first_purchase_date: datetime | None = None
    segment: str | None = None
    region: str | None = None

    def __post_init__(self) -> None:
        entity, rid = "Customer", self.customer_id
        _set(
            self,
            "acquisition_date",
            _coerce_timestamp(
                self.acquisition_date, entity=entity, record_id=rid, field="acquisition_date"
            ),
        )
        _set(
            self,
            "first_purchase_date",
            _optional_timestamp(
                self.first_purchase_date,
                entity=entity,
                record_id=rid,
                field="first_purchase_date",
            ),
        )
        if self.first_purchase_amount is not None:
            amount = _coerce_decimal(
                self.first_purchase_amount,
                entity=entity,
                record_id=rid,
                field="first_purchase_amount",
            )
            _require_non_negative(
                amount, entity=entity, record_id=rid, field="first_purchase_amount"
            )
            _set(self, "first_purchase_amount", amount)
        if (
            self.first_purchase_date is not None
            and self.first_purchase_date < self.acquisition_date
        ):
            raise ValidationError(
                "first_purchase_date precedes acquisition_date "
                f"({self.first_purchase_date.isoformat()} < "
                f"{self.acquisition_date.isoformat()})",
                entity=entity,
                record_id=rid,
            )

    @property
    def campaign_key(self) -> str:
        return self.acquisition_campaign or NO_CAMPAIGN

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any], *, index: int = 0) -> "Customer":
        entity = cls.__name__
        return cls(
            customer_id=str(_field(record, "customer_id", entity=entity, index=index)),
            acquisition_date=_field(record, "acquisition_date", entity=entity, index=index),
            acquisition_channel=str(
                _field(record, "acquisition_channel", entity=entity, index=index)
            ),
            acquisition_campaign=record.get("acquisition_campaign") or None,
            first_purchase_amount=record.get("first_purchase_amount"),
            first_purchase_date=record.get("first_purchase_date") or None,
            segment=record.get("segment"),
            region=record.get("region"),
        )


@dataclass(frozen=True)
class Order:
    """A customer order. Only ``Completed`` orders count toward revenue."""

    order_id: str
    customer_id: str
    order_total: Decimal
    order_date: datetime
    status: str = COMPLETED_STATUS

    def __post_init__(self) -> None:
        entity, rid = "Order", self.order_id
        total = _coerce_decimal(
            self.order_total, entity=entity, record_id=rid, field="order_total"
        )
        _require_non_negative(total, entity=entity, record_id=rid, field="order_total")
        _set(self, "order_total", total)
        _set(
            self,
            "order_date",
            _coerce_timestamp(self.order_date, entity=entity, record_id=rid, field="order_date"),
        )

    @property
    def is_completed(self) -> bool:
        return self.status.strip().lower() == COMPLETED_STATUS.lower()

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any], *, index: int = 0) -> "Order":
        entity = cls.__name__
        return cls(
            order_id=str(_field(record, "order_id", entity=entity, index=index)),
            customer_id=str(_field(record, "customer_id", entity=entity, index=index)),
            order_total=_field(record, "order_total", entity=entity, index=index),
            order_date=_field(record, "order_date", entity=entity, index=index),
            status=str(record.get("status") or COMPLETED_STATUS),
        )


@dataclass(frozen=True)
class MarketingSpend:
    """Spend recorded against a campaign on a given date."""

    campaign_id: str
    channel: str
    campaign_name: str
    campaign_date: datetime
    spend_amount: Decimal

    def __post_init__(self) -> None:
        entity, rid = "MarketingSpend", self.campaign_id
        amount = _coerce_decimal(
            self.spend_amount, entity=entity, record_id=rid, field="spend_amount"
        )
        _require_non_negative(amount, entity=entity, record_id=rid, field="spend_amount")
        _set(self, "spend_amount", amount)
        _set(
            self,
            "campaign_date",
            _coerce_timestamp(
                self.campaign_date, entity=entity, record_id=rid, field="campaign_date"
            ),
        )

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any], *, index: int = 0) -> "MarketingSpend":
        entity = cls.__name__
        return cls(
            campaign_id=str(_field(record, "campaign_id", entity=entity, index=index)),
            channel=str(_field(record, "channel", entity=entity, index=index)),
            campaign_name=str(_field(record, "campaign_name", entity=entity, index=index)),
            campaign_date=_field(record, "campaign_date", entity=entity, index=index),
            spend_amount=_field(record, "spend_amount", entity=entity, index=index),
        )


@dataclass(frozen=True)
class Subscription:
    """A recurring-revenue subscription; ``end_date=None`` means still active."""

    subscription_id: str
    customer_id: str
    plan_type: str
    monthly_price: Decimal
    start_date: datetime
    end_date: datetime | None = None
    status: str = "active"

    def __post_init__(self) -> None:
        entity, rid = "Subscription", self.subscription_id
        price = _coerce_decimal(
            self.monthly_price, entity=entity, record_id=rid, field="monthly_price"
        )
        _require_non_negative(price, entity=entity, record_id=rid, field="monthly_price")
        _set(self, "monthly_price", price)
        _set(
            self,
            "start_date",
            _coerce_timestamp(self.start_date, entity=entity, record_id=rid, field="start_date"),
        )
        _set(
            self,
            "end_date",
            _optional_timestamp(self.end_date, entity=entity, record_id=rid, field="end_date"),
        )
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValidationError(
                f"end_date precedes start_date ({self.end_date.isoformat()} < "
                f"{self.start_date.isoformat()})",
                entity=entity,
                record_id=rid,
            )

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any], *, index: int = 0) -> "Subscription":
        entity = cls.__name__
        return cls(
            subscription_id=str(
                _field(record, "subscription_id", entity=entity, index=index)
            ),
            customer_id=str(_field(record, "customer_id", entity=entity, index=index)),
            plan_type=str(_field(record, "plan_type", entity=entity, index=index)),
            monthly_price=_field(record, "monthly_price", entity=entity, index=index),
            start_date=_field(record, "start_date", entity=entity, index=index),
            end_date=record.get("end_date") or None,
            status=str(record.get("status") or "active"),
        )


@dataclass(frozen=True)
class Touchpoint:
    """A marketing interaction between a customer and a campaign.

    ``attribution_weight`` is supplied by the caller and is used as-is by the
    multi-touch model; weights are not required to sum to 1 per customer.
    """

    customer_id: str
    campaign_id: str
    touchpoint_date: datetime
    channel: str
    campaign_name: str
    attribution_weight: Decimal = Decimal("1")

    def __post_init__(self) -> None:
        entity, rid = "Touchpoint", f"{self.customer_id}/{self.campaign_id}"
        weight = _coerce_decimal(
            self.attribution_weight,
            entity=entity,
            record_id=rid,
            field="attribution_weight",
        )
        _require_non_negative(
            weight, entity=entity, record_id=rid, field="attribution_weight"
        )
        _set(self, "attribution_weight", weight)
        _set(
            self,
            "touchpoint_date",
            _coerce_timestamp(
                self.touchpoint_date, entity=entity, record_id=rid, field="touchpoint_date"
            ),
        )

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any], *, index: int = 0) -> "Touchpoint":
        entity = cls.__name__
        weight = record.get("attribution_weight")
        return cls(
            customer_id=str(_field(record, "customer_id", entity=entity, index=index)),
            campaign_id=str(_field(record, "campaign_id", entity=entity, index=index)),
            touchpoint_date=_field(record, "touchpoint_date", entity=entity, index=index),
            channel=str(_field(record, "channel", entity=entity, index=index)),
            campaign_name=str(record.get("campaign_name") or ""),
            attribution_weight=Decimal("1") if weight is None else weight,
        )


@dataclass(frozen=True)
class Campaign:
    """Campaign-level cost and funnel counters."""

    campaign_id: str
    cost: Decimal
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    start_date: datetime | None = None

    def __post_init__(self) -> None:
        entity, rid = "Campaign", self.campaign_id
        cost = _coerce_decimal(self.cost, entity=entity, record_id=rid, field="cost")
        _require_non_negative(cost, entity=entity, record_id=rid, field="cost")
        _set(self, "cost", cost)
        for name in ("impressions", "clicks", "conversions"):
            raw = getattr(self, name)
            try:
                count = int(raw)
            except (TypeError, ValueError, OverflowError) as exc:
                raise ValidationError(
                    f"{name} must be an integer, got {raw!r}",
                    entity=entity,
                    record_id=rid,
                    details={"field": name, "value": raw},
                ) from exc
            _require_non_negative(count, entity=entity, record_id=rid, field=name)
            _set(self, name, count)
        _set(
            self,
            "start_date",
            _optional_timestamp(self.start_date, entity=entity, record_id=rid, field="start_date"),
        )

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any], *, index: int = 0) -> "Campaign":
        entity = cls.__name__
        return cls(
            campaign_id=str(_field(record, "campaign_id", entity=entity, index=index)),
            cost=_field(record, "cost", entity=entity, index=index),
            impressions=record.get("impressions", 0) or 0,
            clicks=record.get("clicks", 0) or 0,
            conversions=record.get("conversions", 0) or 0,
            start_date=record.get("start_date") or None,
        )


def _reject_duplicates(ids: Sequence[str], entity: str, id_field: str) -> None:
    duplicates = [key for key, count in Counter(ids).items() if count > 1]
    if duplicates:
        raise ValidationError(
            f"duplicate {id_field} values detected: {duplicates[:5]}. "
            f"Each {entity.lower()} must appear exactly once.",
            entity=entity,
            record_id=duplicates[0],
            details={"duplicates": duplicates},
        )


def index_customers(customers: Iterable[Customer]) -> dict[str, Customer]:
    """Map customers by id, rejecting duplicate identifiers."""
    customer_list = list(customers)
    _reject_duplicates([c.customer_id for c in customer_list], "Customer", "customer_id")
    return {c.customer_id: c for c in customer_list}


def validate_orders(
    orders: Sequence[Order], customers_by_id: Mapping[str, Customer] | None = None
) -> None:
    """Reject duplicate order ids and, when customers are given, unknown customers."""
    _reject_duplicates([o.order_id for o in orders], "Order", "order_id")
    if customers_by_id is None:
        return
    for order in orders:
        if order.customer_id not in customers_by_id:
            raise ValidationError(
                f"references unknown customer {order.customer_id!r}",
                entity="Order",
                record_id=order.order_id,
                details={"customer_id": order.customer_id},
            )


def validate_subscriptions(subscriptions: Sequence[Subscription]) -> None:
    _reject_duplicates(
        [s.subscription_id for s in subscriptions], "Subscription", "subscription_id"
    )


def validate_campaigns(campaigns: Sequence[Campaign]) -> None:
    _reject_duplicates([c.campaign_id for c in campaigns], "Campaign", "campaign_id")


def completed_orders(orders: Iterable[Order]) -> list[Order]:
    """Return the orders that count toward revenue, logging how many were skipped."""
    kept: list[Order] = []
    skipped = 0
    for order in orders:
        if order.is_completed:
            kept.append(order)
        else:
            skipped += 1
    if skipped:
        logger.debug(f"Skipped {skipped} orders that are not {COMPLETED_STATUS!r}")
    return kept
