"""
Date-only calendar arithmetic.

Scheduling moves things by calendar days, weeks and months, never by
elapsed seconds: "in 3 days" keeps the same wall-clock time even when a
DST change falls inside the span. All helpers keep the tzinfo of their
input and recompute the UTC offset for the target date.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta

from dateutil.relativedelta import relativedelta


def _on_date(moment: datetime, day: date) -> datetime:
    # Re-attach the original wall time; tzinfo resolves the offset for `day`
    return datetime.combine(day, moment.timetz()).replace(fold=0)


def add_days(moment: datetime, days: int) -> datetime:
    """Shift a moment by whole calendar days."""
    return _on_date(moment, moment.date() + timedelta(days=days))


def add_weeks(moment: datetime, weeks: int) -> datetime:
    """Shift a moment by whole calendar weeks."""
    return add_days(moment, weeks * 7)


def add_months(moment: datetime, months: int) -> datetime:
    """
    Shift a moment by calendar months.

    Day-of-month overflow clamps to the last valid day of the target
    month (Jan 31 + 1 month -> Feb 28/29), never rolling into the month
    after.
    """
    return _on_date(moment, moment.date() + relativedelta(months=months))


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3, not 2)."""
    return int(math.floor(value + 0.5))


def whole_seconds_between(start: datetime, end: datetime) -> int:
    """Elapsed whole seconds from start to end, never negative."""
    return max(0, int((end - start).total_seconds()))
