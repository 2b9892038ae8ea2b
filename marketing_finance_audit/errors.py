"""Exception types raised by the marketing-finance metrics engine.

Both concrete errors derive from :class:`ValueError` so callers that already
guard analytics code with ``except ValueError`` keep working.
"""

from __future__ import annotations

from typing import Any, Mapping


class MarketingMetricsError(ValueError):
    """Base class for all errors raised by this package."""


class ValidationError(MarketingMetricsError):
    """An input record is malformed or inconsistent with other records.

    Attributes
    ----------
    entity:
        Entity type of the offending record (e.g. ``"Order"``).
    record_id:
        Identifier of the offending record, when it has one.
    details:
        Additional context such as the field name, value or record index.
    """

    def __init__(
        self,
        message: str,
        *,
        entity: str | None = None,
        record_id: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        self.entity = entity
        self.record_id = record_id
        self.details = dict(details or {})
        prefix = ""
        if entity is not None:
            prefix = f"{entity}"
            if record_id is not None:
                prefix += f" {record_id!r}"
            prefix += ": "
        super().__init__(f"{prefix}{message}")


class InvalidConfiguration(MarketingMetricsError):
    """A configuration option is out of range; raised before any computation."""
