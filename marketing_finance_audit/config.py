"""Configuration shared by every metric family."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from marketing_finance_audit.errors import InvalidConfiguration
from marketing_finance_audit.foundation.calendar import as_datetime, naive

DEFAULT_LOOKBACK_WINDOW = timedelta(days=730)
DEFAULT_ATTRIBUTION_WINDOW_DAYS = 90
DEFAULT_ASSUMED_CAC = Decimal("50")
DEFAULT_COHORT_HORIZON_MONTHS = 12
DEFAULT_CLV_HORIZON_YEARS = 3


@dataclass(frozen=True)
class MetricsConfig:
    """Options recognised by the metric calculators.

    Attributes
    ----------
    evaluation_instant:
        The "now" every calculation is evaluated against. Always explicit so
        results are reproducible; the engine never reads the system clock.
    lookback_window:
        Length of the trailing window (ending at ``evaluation_instant``) used
        to select acquisitions, spend, touchpoints and cohorts. Default two
        years.
    attribution_window_days:
        Days after a touchpoint during which orders are credited to it.
    assumed_cac:
        Assumed acquisition cost per customer, used for the CLV:CAC ratio and
        the cohort payback threshold.
    cohort_horizon_months:
        Last month offset tracked for each cohort (offsets 0..horizon).
    clv_horizon_years:
        Projection horizon of the lifetime value estimate, measured from
        acquisition.
    mrr_epoch:
        Subscriptions starting before this instant are excluded from MRR.
        ``None`` applies no lower bound.
    """

    evaluation_instant: datetime
    lookback_window: timedelta = DEFAULT_LOOKBACK_WINDOW
    attribution_window_days: int = DEFAULT_ATTRIBUTION_WINDOW_DAYS
    assumed_cac: Decimal = DEFAULT_ASSUMED_CAC
    cohort_horizon_months: int = DEFAULT_COHORT_HORIZON_MONTHS
    clv_horizon_years: int = DEFAULT_CLV_HORIZON_YEARS
    mrr_epoch: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.evaluation_instant, (date, datetime)):
            raise InvalidConfiguration(
                "evaluation_instant must be a datetime, got "
                f"{type(self.evaluation_instant).__name__}"
            )
        object.__setattr__(
            self, "evaluation_instant", naive(as_datetime(self.evaluation_instant))
        )
        if self.mrr_epoch is not None:
            if not isinstance(self.mrr_epoch, (date, datetime)):
                raise InvalidConfiguration(
                    f"mrr_epoch must be a datetime, got {type(self.mrr_epoch).__name__}"
                )
            object.__setattr__(self, "mrr_epoch", naive(as_datetime(self.mrr_epoch)))

        if not isinstance(self.lookback_window, timedelta):
            raise InvalidConfiguration(
                "lookback_window must be a timedelta, got "
                f"{type(self.lookback_window).__name__}"
            )
        if self.lookback_window < timedelta(0):
            raise InvalidConfiguration(
                f"lookback_window cannot be negative, got {self.lookback_window}"
            )
        if self.attribution_window_days < 0:
            raise InvalidConfiguration(
                "attribution_window_days cannot be negative, got "
                f"{self.attribution_window_days}"
            )

        try:
            assumed_cac = Decimal(str(self.assumed_cac))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidConfiguration(
                f"assumed_cac must be numeric, got {self.assumed_cac!r}"
            ) from exc
        if not assumed_cac.is_finite() or assumed_cac <= 0:
            raise InvalidConfiguration(
                f"assumed_cac must be positive, got {self.assumed_cac}"
            )
        object.__setattr__(self, "assumed_cac", assumed_cac)

        if self.cohort_horizon_months < 0:
            raise InvalidConfiguration(
                f"cohort_horizon_months cannot be negative, got {self.cohort_horizon_months}"
            )
        if self.clv_horizon_years <= 0:
            raise InvalidConfiguration(
                f"clv_horizon_years must be positive, got {self.clv_horizon_years}"
            )

    @property
    def window_start(self) -> datetime:
        """Inclusive start of the trailing lookback window."""
        return self.evaluation_instant - self.lookback_window

    def in_lookback_window(self, timestamp: datetime) -> bool:
        return self.window_start <= timestamp <= self.evaluation_instant

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "MetricsConfig":
        """Build a config from raw options (ISO strings, day counts, numbers).

        Recognised keys: ``evaluation_instant``, ``lookback_days``,
        ``attribution_window_days``, ``assumed_cac``, ``cohort_horizon_months``,
        ``clv_horizon_years`` and ``mrr_epoch``.
        """
        if "evaluation_instant" not in options:
            raise InvalidConfiguration("evaluation_instant is required")

        def _instant(value: Any, name: str) -> datetime:
            if isinstance(value, str):
                try:
                    return datetime.fromisoformat(value.replace("Z", "+00:00"))
                except ValueError as exc:
                    raise InvalidConfiguration(
                        f"{name} is not an ISO-8601 timestamp: {value!r}"
                    ) from exc
            return value

        kwargs: dict[str, Any] = {
            "evaluation_instant": _instant(options["evaluation_instant"], "evaluation_instant")
        }
        if options.get("lookback_days") is not None:
            kwargs["lookback_window"] = timedelta(days=int(options["lookback_days"]))
        if options.get("attribution_window_days") is not None:
            kwargs["attribution_window_days"] = int(options["attribution_window_days"])
        if options.get("assumed_cac") is not None:
            kwargs["assumed_cac"] = options["assumed_cac"]
        if options.get("cohort_horizon_months") is not None:
            kwargs["cohort_horizon_months"] = int(options["cohort_horizon_months"])
        if options.get("clv_horizon_years") is not None:
            kwargs["clv_horizon_years"] = int(options["clv_horizon_years"])
        if options.get("mrr_epoch") is not None:
            kwargs["mrr_epoch"] = _instant(options["mrr_epoch"], "mrr_epoch")
        return cls(**kwargs)
