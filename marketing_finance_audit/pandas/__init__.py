"""Pandas DataFrame adapters for marketing-finance records and results."""

from .records import (
    dataframe_to_campaigns,
    dataframe_to_customers,
    dataframe_to_orders,
    dataframe_to_spend,
    dataframe_to_subscriptions,
    dataframe_to_touchpoints,
)
from .results import (
    acquisition_to_dataframe,
    attribution_to_dataframe,
    clv_to_dataframe,
    cohorts_to_dataframe,
    mrr_trend_to_dataframe,
    report_to_dataframes,
    results_to_dataframe,
)

__all__ = [
    # Input records
    "dataframe_to_campaigns",
    "dataframe_to_customers",
    "dataframe_to_orders",
    "dataframe_to_spend",
    "dataframe_to_subscriptions",
    "dataframe_to_touchpoints",
    # Results
    "acquisition_to_dataframe",
    "attribution_to_dataframe",
    "clv_to_dataframe",
    "cohorts_to_dataframe",
    "mrr_trend_to_dataframe",
    "report_to_dataframes",
    "results_to_dataframe",
]
