"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the foundational value types for every billing computation:
    exact Decimal coercion for amounts and the calendar-month
    ``BillingPeriod`` that all bucketing and invoice grouping keys on.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module and every engine.

Invariants enforced:
    - Amounts are Decimal, never float. Floats are converted through
      ``str`` so 0.1 stays 0.1 and does not become 0.1000000000000000055.
    - A BillingPeriod always has 1 <= month <= 12.

Failure modes:
    - ValueError on construction with non-numeric amounts or invalid
      months.
    - TypeError when a BillingPeriod is built from something that is not
      a date.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")


def to_decimal(value: Any, field_name: str = "amount") -> Decimal:
    """
    Coerce a numeric value to Decimal without passing through binary float.

    Raises:
        ValueError: If the value is None, a bool, or not numeric.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name} must be numeric, got {value!r}")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"{field_name} must be numeric, got {value!r}") from exc
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise ValueError(f"{field_name} must be numeric, got {type(value).__name__}")

    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return result


def optional_decimal(value: Any, field_name: str = "amount") -> Decimal | None:
    """Like ``to_decimal`` but keeps ``None`` ("not set") distinct from zero."""
    if value is None:
        return None
    return to_decimal(value, field_name)


def as_date(value: date | datetime) -> date:
    """Drop the time component of a datetime; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


@dataclass(frozen=True, slots=True, order=True)
class BillingPeriod:
    """
    A calendar month: the bucket key for aggregation and invoicing.

    Guarantees:
        - Immutable, hashable and totally ordered by (year, month).
        - ``month`` is always within 1..12.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")
        if self.year < 1:
            raise ValueError(f"year must be positive, got {self.year}")

    @classmethod
    def of(cls, value: date | datetime) -> BillingPeriod:
        """Period containing the given date or datetime."""
        d = as_date(value)
        return cls(d.year, d.month)

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def __str__(self) -> str:
        return self.label
