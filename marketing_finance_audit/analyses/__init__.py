"""Marketing-finance metric families.

1. Acquisition efficiency - CAC, ROAS, cost per revenue dollar
2. Lifetime value - purchase-frequency CLV projection and channel rollups
3. Recurring revenue - MRR/ARR snapshots with month-over-month movement
4. Attribution - first-touch, last-touch and weighted multi-touch revenue
5. Cohorts - revenue curves, retention and CAC payback
"""

from .acquisition import (
    ChannelAcquisitionSummary,
    MonthlyMetricRow,
    calculate_acquisition_metrics,
    summarize_acquisition_by_channel,
)
from .attribution import (
    AttributionResult,
    TouchpointRanking,
    attribute_revenue,
    rank_touchpoints,
)
from .cohorts import (
    PAYBACK_ACHIEVED,
    PAYBACK_NOT_YET,
    CohortPayback,
    CohortRow,
    analyze_cohorts,
    find_payback_months,
)
from .lifetime_value import (
    ChannelClvSummary,
    ClvEstimate,
    estimate_customer_lifetime_value,
    summarize_clv_by_channel,
)
from .recurring_revenue import (
    MrrSnapshot,
    MrrTrendRow,
    calculate_mrr_snapshots,
    calculate_mrr_trend,
)

__all__ = [
    # Acquisition
    "ChannelAcquisitionSummary",
    "MonthlyMetricRow",
    "calculate_acquisition_metrics",
    "summarize_acquisition_by_channel",
    # Lifetime value
    "ChannelClvSummary",
    "ClvEstimate",
    "estimate_customer_lifetime_value",
    "summarize_clv_by_channel",
    # Recurring revenue
    "MrrSnapshot",
    "MrrTrendRow",
    "calculate_mrr_snapshots",
    "calculate_mrr_trend",
    # Attribution
    "AttributionResult",
    "TouchpointRanking",
    "attribute_revenue",
    "rank_touchpoints",
    # Cohorts
    "PAYBACK_ACHIEVED",
    "PAYBACK_NOT_YET",
    "CohortPayback",
    "CohortRow",
    "analyze_cohorts",
    "find_payback_months",
]
