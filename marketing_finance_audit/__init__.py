"""Marketing-finance analytics: CAC, CLV, MRR, attribution and cohorts.

The engine computes each metric family as a pure, deterministic
transformation over in-memory records supplied by a data access adapter.
See :mod:`marketing_finance_audit.analyses` for the calculators and
:mod:`marketing_finance_audit.report` for running all of them at once.
"""

from .config import MetricsConfig
from .errors import InvalidConfiguration, MarketingMetricsError, ValidationError

__version__ = "0.1.0"

__all__ = [
    "InvalidConfiguration",
    "MarketingMetricsError",
    "MetricsConfig",
    "ValidationError",
    "__version__",
]
