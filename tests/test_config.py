"""Tests for MetricsConfig validation and parsing."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.errors import InvalidConfiguration


class TestMetricsConfig:
    """Defaults and validation."""

    def test_defaults(self):
        config = MetricsConfig(evaluation_instant=datetime(2024, 12, 31))
        assert config.lookback_window == timedelta(days=730)
        assert config.attribution_window_days == 90
        assert config.assumed_cac == Decimal("50")
        assert config.cohort_horizon_months == 12
        assert config.clv_horizon_years == 3
        assert config.mrr_epoch is None

    def test_date_promoted_to_datetime(self):
        config = MetricsConfig(evaluation_instant=date(2024, 12, 31))
        assert config.evaluation_instant == datetime(2024, 12, 31)

    def test_window_start_and_membership(self):
        config = MetricsConfig(
            evaluation_instant=datetime(2024, 12, 31), lookback_window=timedelta(days=30)
        )
        assert config.window_start == datetime(2024, 12, 1)
        assert config.in_lookback_window(datetime(2024, 12, 1))
        assert config.in_lookback_window(datetime(2024, 12, 31))
        assert not config.in_lookback_window(datetime(2024, 11, 30))
        assert not config.in_lookback_window(datetime(2025, 1, 1))

    def test_assumed_cac_coerced_to_decimal(self):
        config = MetricsConfig(evaluation_instant=datetime(2024, 1, 1), assumed_cac=75.5)
        assert config.assumed_cac == Decimal("75.5")

    @pytest.mark.parametrize(
        "overrides",
        [
            {"lookback_window": timedelta(days=-1)},
            {"lookback_window": 30},
            {"attribution_window_days": -1},
            {"assumed_cac": 0},
            {"assumed_cac": Decimal("-10")},
            {"assumed_cac": "abc"},
            {"assumed_cac": float("inf")},
            {"cohort_horizon_months": -1},
            {"clv_horizon_years": 0},
            {"mrr_epoch": "2024-01-01"},
        ],
    )
    def test_invalid_options_rejected(self, overrides):
        with pytest.raises(InvalidConfiguration):
            MetricsConfig(evaluation_instant=datetime(2024, 1, 1), **overrides)

    def test_missing_instant_type_rejected(self):
        with pytest.raises(InvalidConfiguration, match="evaluation_instant must be a datetime"):
            MetricsConfig(evaluation_instant="2024-01-01")


class TestFromMapping:
    """Building a config from raw options."""

    def test_parses_iso_and_counts(self):
        config = MetricsConfig.from_mapping(
            {
                "evaluation_instant": "2024-12-31T23:59:59Z",
                "lookback_days": "365",
                "attribution_window_days": 30,
                "assumed_cac": "40",
                "cohort_horizon_months": 6,
                "clv_horizon_years": 2,
                "mrr_epoch": "2023-01-01",
            }
        )
        assert config.evaluation_instant == datetime(2024, 12, 31, 23, 59, 59)
        assert config.lookback_window == timedelta(days=365)
        assert config.attribution_window_days == 30
        assert config.assumed_cac == Decimal("40")
        assert config.cohort_horizon_months == 6
        assert config.clv_horizon_years == 2
        assert config.mrr_epoch == datetime(2023, 1, 1)

    def test_none_values_keep_defaults(self):
        config = MetricsConfig.from_mapping(
            {"evaluation_instant": "2024-12-31", "lookback_days": None, "assumed_cac": None}
        )
        assert config.lookback_window == timedelta(days=730)
        assert config.assumed_cac == Decimal("50")

    def test_evaluation_instant_required(self):
        with pytest.raises(InvalidConfiguration, match="evaluation_instant is required"):
            MetricsConfig.from_mapping({})

    def test_bad_timestamp_rejected(self):
        with pytest.raises(InvalidConfiguration, match="not an ISO-8601"):
            MetricsConfig.from_mapping({"evaluation_instant": "yesterday"})
