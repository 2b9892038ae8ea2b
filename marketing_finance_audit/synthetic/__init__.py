"""Synthetic marketing-finance datasets.

This package produces realistic-but-fake customers, orders, spend,
subscriptions, touchpoints and campaigns to exercise the metric calculators
without accessing production data.
"""

from .generator import (
    MarketingDataset,
    MarketingScenario,
    generate_marketing_dataset,
)

__all__ = [
    "MarketingDataset",
    "MarketingScenario",
    "generate_marketing_dataset",
]
