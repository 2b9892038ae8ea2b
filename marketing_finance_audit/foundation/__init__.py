"""Foundational building blocks for the marketing-finance metrics engine.

This package exposes the entity records consumed by the analyses, the
calendar-month bucketing helpers every metric family aligns on, and the
read-only data access interface to the warehouse.
"""

from .calendar import CalendarMonth, MonthRange, month_bucket, month_range, months_between
from .data_access import DataAccessAdapter, InMemoryDataAccess, ReportingWindow
from .records import (
    COMPLETED_STATUS,
    Campaign,
    Customer,
    MarketingSpend,
    Order,
    Subscription,
    Touchpoint,
)

__all__ = [
    "CalendarMonth",
    "MonthRange",
    "month_bucket",
    "month_range",
    "months_between",
    "DataAccessAdapter",
    "InMemoryDataAccess",
    "ReportingWindow",
    "COMPLETED_STATUS",
    "Campaign",
    "Customer",
    "MarketingSpend",
    "Order",
    "Subscription",
    "Touchpoint",
]
