"""
Month-level calendar helpers used to bucket observations and step forecasts.
"""

from __future__ import annotations

from typing import Iterable, List, Union

import pandas as pd

MONTH_FREQ = "MS"

DateLike = Union[str, pd.Timestamp]


def month_start(values):
    """
    Truncate a date (or a Series of dates) to the first day of its month.
    """
    if isinstance(values, pd.Series):
        return values.dt.to_period("M").dt.to_timestamp()
    return pd.Timestamp(values).to_period("M").to_timestamp()


def month_range(start: DateLike, end: DateLike) -> pd.DatetimeIndex:
    """Every month start from ``start`` to ``end`` inclusive."""
    return pd.date_range(month_start(start), month_start(end), freq=MONTH_FREQ)


def advance_months(start: DateLike, steps: int) -> List[pd.Timestamp]:
    """Return the ``steps`` month starts following ``start`` (exclusive)."""
    if steps < 0:
        raise ValueError("steps must be non-negative.")
    cursor = month_start(start)
    result: List[pd.Timestamp] = []
    for _ in range(steps):
        cursor = cursor + pd.offsets.MonthBegin(1)
        result.append(cursor)
    return result


def missing_months(months: Iterable[DateLike]) -> List[pd.Timestamp]:
    """
    List the month starts inside the observed span that have no entry in ``months``.
    """
    observed = pd.DatetimeIndex([month_start(m) for m in months])
    if observed.empty:
        return []
    expected = month_range(observed.min(), observed.max())
    return list(expected.difference(observed))
