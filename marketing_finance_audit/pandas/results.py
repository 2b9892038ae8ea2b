"""Pandas DataFrame adapters for metric result rows."""

from __future__ import annotations

from dataclasses import fields
from typing import Dict, Sequence

import pandas as pd  # type: ignore

from marketing_finance_audit.analyses.acquisition import (
    ChannelAcquisitionSummary,
    MonthlyMetricRow,
)
from marketing_finance_audit.analyses.attribution import AttributionResult
from marketing_finance_audit.analyses.cohorts import CohortPayback, CohortRow
from marketing_finance_audit.analyses.lifetime_value import ChannelClvSummary, ClvEstimate
from marketing_finance_audit.analyses.recurring_revenue import MrrSnapshot, MrrTrendRow
from marketing_finance_audit.report import MarketingReport
from ._utils import to_cell


def results_to_dataframe(rows: Sequence[object], result_type: type) -> pd.DataFrame:
    """Convert result dataclasses to a DataFrame, one row per result.

    Column order follows the dataclass field order, and row order is kept
    as produced by the calculator. Empty input gives an empty DataFrame with
    the expected columns.

    Example:
        >>> rows = calculate_acquisition_metrics(customers, spend, config)
        >>> df = results_to_dataframe(rows, MonthlyMetricRow)
        >>> df.to_csv('acquisition.csv', index=False)
    """
    columns = [f.name for f in fields(result_type)]
    if not rows:
        return pd.DataFrame(columns=columns)
    for row in rows:
        if not isinstance(row, result_type):
            raise TypeError(
                f"Expected {result_type.__name__} rows, got {type(row).__name__}"
            )
    records = [{name: to_cell(getattr(row, name)) for name in columns} for row in rows]
    return pd.DataFrame(records, columns=columns)


def acquisition_to_dataframe(rows: Sequence[MonthlyMetricRow]) -> pd.DataFrame:
    return results_to_dataframe(rows, MonthlyMetricRow)


def clv_to_dataframe(rows: Sequence[ClvEstimate]) -> pd.DataFrame:
    return results_to_dataframe(rows, ClvEstimate)


def mrr_trend_to_dataframe(rows: Sequence[MrrTrendRow]) -> pd.DataFrame:
    return results_to_dataframe(rows, MrrTrendRow)


def attribution_to_dataframe(rows: Sequence[AttributionResult]) -> pd.DataFrame:
    return results_to_dataframe(rows, AttributionResult)


def cohorts_to_dataframe(rows: Sequence[CohortRow]) -> pd.DataFrame:
    return results_to_dataframe(rows, CohortRow)


def report_to_dataframes(report: MarketingReport) -> Dict[str, pd.DataFrame]:
    """Convert every family of a report to DataFrames.

    Returns:
        Dictionary keyed by table name: ``acquisition``,
        ``acquisition_by_channel``, ``clv``, ``clv_by_channel``,
        ``mrr_snapshots``, ``mrr_trend``, ``attribution``, ``cohorts`` and
        ``cohort_payback``.
    """
    return {
        "acquisition": acquisition_to_dataframe(report.acquisition),
        "acquisition_by_channel": results_to_dataframe(
            report.acquisition_by_channel, ChannelAcquisitionSummary
        ),
        "clv": clv_to_dataframe(report.clv),
        "clv_by_channel": results_to_dataframe(report.clv_by_channel, ChannelClvSummary),
        "mrr_snapshots": results_to_dataframe(report.mrr_snapshots, MrrSnapshot),
        "mrr_trend": mrr_trend_to_dataframe(report.mrr_trend),
        "attribution": attribution_to_dataframe(report.attribution),
        "cohorts": cohorts_to_dataframe(report.cohorts),
        "cohort_payback": results_to_dataframe(report.cohort_payback, CohortPayback),
    }
