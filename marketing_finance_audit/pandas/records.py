"""Pandas DataFrame adapters for the input entity records."""

from __future__ import annotations

from typing import Any, Callable, List, Sequence, TypeVar

import pandas as pd  # type: ignore

from marketing_finance_audit.foundation.records import (
    Campaign,
    Customer,
    MarketingSpend,
    Order,
    Subscription,
    Touchpoint,
)
from ._utils import from_cell

T = TypeVar("T")


def _convert(
    df: pd.DataFrame,
    required_cols: Sequence[str],
    factory: Callable[..., T],
) -> List[T]:
    missing_cols = set(required_cols) - set(df.columns)
    if missing_cols:
        raise ValueError(f"DataFrame missing required columns: {sorted(missing_cols)}")

    if df.empty:
        return []

    null_cols = df[list(required_cols)].isnull().any()
    if null_cols.any():
        null_col_names = null_cols[null_cols].index.tolist()
        raise ValueError(f"Null/NaN values found in required columns: {null_col_names}")

    records: List[T] = []
    for idx, row in enumerate(df.to_dict("records")):
        clean: dict[str, Any] = {key: from_cell(value) for key, value in row.items()}
        records.append(factory(clean, index=idx))
    return records


def dataframe_to_customers(df: pd.DataFrame) -> List[Customer]:
    """Convert a customers DataFrame to :class:`Customer` records.

    Required columns: customer_id, acquisition_date, acquisition_channel.
    Optional: acquisition_campaign, first_purchase_amount,
    first_purchase_date, segment, region.
    """
    return _convert(
        df,
        ["customer_id", "acquisition_date", "acquisition_channel"],
        Customer.from_mapping,
    )


def dataframe_to_orders(df: pd.DataFrame) -> List[Order]:
    """Convert an orders DataFrame to :class:`Order` records.

    Required columns: order_id, customer_id, order_total, order_date.
    Optional: status (defaults to ``Completed``).
    """
    return _convert(
        df, ["order_id", "customer_id", "order_total", "order_date"], Order.from_mapping
    )


def dataframe_to_spend(df: pd.DataFrame) -> List[MarketingSpend]:
    return _convert(
        df,
        ["campaign_id", "channel", "campaign_name", "campaign_date", "spend_amount"],
        MarketingSpend.from_mapping,
    )


def dataframe_to_subscriptions(df: pd.DataFrame) -> List[Subscription]:
    """Convert a subscriptions DataFrame; a missing ``end_date`` means still active."""
    return _convert(
        df,
        ["subscription_id", "customer_id", "plan_type", "monthly_price", "start_date"],
        Subscription.from_mapping,
    )


def dataframe_to_touchpoints(df: pd.DataFrame) -> List[Touchpoint]:
    """Convert a touchpoints DataFrame, preserving row order.

    Row order is significant: it breaks ties between touchpoints that share a
    timestamp when ranking first and last touch.
    """
    return _convert(
        df,
        ["customer_id", "campaign_id", "touchpoint_date", "channel"],
        Touchpoint.from_mapping,
    )


def dataframe_to_campaigns(df: pd.DataFrame) -> List[Campaign]:
    return _convert(df, ["campaign_id", "cost"], Campaign.from_mapping)
