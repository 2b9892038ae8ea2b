"""Shared utilities for pandas conversion operations."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import pandas as pd  # type: ignore

from marketing_finance_audit.foundation.calendar import CalendarMonth


def decimal_to_float(value: Decimal) -> float:
    """Convert Decimal to float for pandas compatibility."""
    return float(value)


def to_cell(value: Any) -> Any:
    """Convert a result field into a DataFrame-friendly scalar.

    Decimals become floats, calendar months become ``YYYY-MM`` strings and
    ``None`` is preserved so undefined ratios stay missing rather than zero.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return decimal_to_float(value)
    if isinstance(value, CalendarMonth):
        return str(value)
    return value


def from_cell(value: Any) -> Any:
    """Convert a DataFrame cell back into a plain Python value.

    Missing values (``NaN``, ``NaT``, ``None``) become ``None`` and pandas
    timestamps become ``datetime`` objects.
    """
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, float) and pd.isna(value):
        return None
    return value
