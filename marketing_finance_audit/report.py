"""Run every metric family against a data access adapter.

:func:`build_marketing_report` fetches the record streams each family needs
from a :class:`~marketing_finance_audit.foundation.data_access.DataAccessAdapter`
and returns all result rows in a :class:`MarketingReport`. Everything after
the fetches is a pure computation, so the same adapter and configuration
always give the same report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from marketing_finance_audit.analyses.acquisition import (
    ChannelAcquisitionSummary,
    MonthlyMetricRow,
    calculate_acquisition_metrics,
    summarize_acquisition_by_channel,
)
from marketing_finance_audit.analyses.attribution import AttributionResult, attribute_revenue
from marketing_finance_audit.analyses.cohorts import (
    CohortPayback,
    CohortRow,
    analyze_cohorts,
    find_payback_months,
)
from marketing_finance_audit.analyses.lifetime_value import (
    ChannelClvSummary,
    ClvEstimate,
    estimate_customer_lifetime_value,
    summarize_clv_by_channel,
)
from marketing_finance_audit.analyses.recurring_revenue import (
    MrrSnapshot,
    MrrTrendRow,
    calculate_mrr_snapshots,
    calculate_mrr_trend,
)
from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.foundation.data_access import (
    DataAccessAdapter,
    ReportingWindow,
)

logger = logging.getLogger(__name__)


class MetricFamily(str, Enum):
    """Metric families a report can include."""

    ACQUISITION = "acquisition"
    CLV = "clv"
    MRR = "mrr"
    ATTRIBUTION = "attribution"
    COHORTS = "cohorts"


@dataclass
class MarketingReport:
    """Result rows of every computed metric family.

    Families that were not requested are left empty.
    """

    config: MetricsConfig
    acquisition: list[MonthlyMetricRow] = field(default_factory=list)
    acquisition_by_channel: list[ChannelAcquisitionSummary] = field(default_factory=list)
    clv: list[ClvEstimate] = field(default_factory=list)
    clv_by_channel: list[ChannelClvSummary] = field(default_factory=list)
    mrr_snapshots: list[MrrSnapshot] = field(default_factory=list)
    mrr_trend: list[MrrTrendRow] = field(default_factory=list)
    attribution: list[AttributionResult] = field(default_factory=list)
    cohorts: list[CohortRow] = field(default_factory=list)
    cohort_payback: list[CohortPayback] = field(default_factory=list)


def build_marketing_report(
    adapter: DataAccessAdapter,
    config: MetricsConfig,
    families: Iterable[MetricFamily | str] | None = None,
) -> MarketingReport:
    """Fetch records through ``adapter`` and compute the requested families.

    Parameters
    ----------
    adapter:
        Read-only source of the record streams.
    config:
        Evaluation instant, windows and thresholds shared by every family.
    families:
        Families to compute; all of them when ``None``.

    Returns
    -------
    MarketingReport
        Rows of each computed family, ordered as the individual calculators
        order them.
    """
    selected = (
        set(MetricFamily) if families is None else {MetricFamily(f) for f in families}
    )
    trailing = ReportingWindow(start=config.window_start, end=config.evaluation_instant)
    history = ReportingWindow(end=config.evaluation_instant)

    report = MarketingReport(config=config)

    needs_customers = selected & {
        MetricFamily.ACQUISITION,
        MetricFamily.CLV,
        MetricFamily.ATTRIBUTION,
        MetricFamily.COHORTS,
    }
    needs_orders = selected & {
        MetricFamily.CLV,
        MetricFamily.ATTRIBUTION,
        MetricFamily.COHORTS,
    }
    customers = list(adapter.fetch_customers(history)) if needs_customers else []
    orders = list(adapter.fetch_orders(history)) if needs_orders else []

    if MetricFamily.ACQUISITION in selected:
        logger.info("Computing acquisition metrics")
        spend = adapter.fetch_spend(trailing)
        report.acquisition = calculate_acquisition_metrics(customers, spend, config)
        report.acquisition_by_channel = summarize_acquisition_by_channel(report.acquisition)

    if MetricFamily.CLV in selected:
        logger.info("Computing lifetime value estimates")
        report.clv = estimate_customer_lifetime_value(customers, orders, config)
        report.clv_by_channel = summarize_clv_by_channel(report.clv, config)

    if MetricFamily.MRR in selected:
        logger.info("Computing recurring revenue")
        subscriptions = adapter.fetch_subscriptions(
            ReportingWindow(start=config.mrr_epoch, end=config.evaluation_instant)
        )
        report.mrr_snapshots = calculate_mrr_snapshots(subscriptions, config)
        report.mrr_trend = calculate_mrr_trend(report.mrr_snapshots)

    if MetricFamily.ATTRIBUTION in selected:
        logger.info("Computing campaign attribution")
        touchpoints = adapter.fetch_touchpoints(trailing)
        campaigns = adapter.fetch_campaigns(history)
        report.attribution = attribute_revenue(
            touchpoints, orders, campaigns, config, customers=customers
        )

    if MetricFamily.COHORTS in selected:
        logger.info("Computing cohort revenue curves")
        report.cohorts = analyze_cohorts(customers, orders, config)
        report.cohort_payback = find_payback_months(report.cohorts, config)

    logger.info(
        f"Report complete for {config.evaluation_instant.isoformat()}: "
        f"{', '.join(sorted(f.value for f in selected))}"
    )
    return report
