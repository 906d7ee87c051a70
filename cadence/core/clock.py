"""
Clock and identity seams.

The engines never read the wall clock or generate random identifiers on
their own; both are injected so tests can freeze time and pin identities.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Protocol
from uuid import NAMESPACE_URL, uuid4, uuid5

from dateutil import tz as dateutil_tz

# Namespace for identifiers derived from their inputs
CADENCE_NAMESPACE = uuid5(NAMESPACE_URL, "https://cadence.local/ids")


class Clock(Protocol):
    """Supplies the current instant as an aware datetime."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in a fixed timezone (UTC unless configured)."""

    def __init__(self, zone: tzinfo | str | None = None):
        if isinstance(zone, str):
            resolved = dateutil_tz.gettz(zone)
            if resolved is None:
                raise ValueError(f"Unknown timezone: {zone}")
            zone = resolved
        self.zone = zone or timezone.utc

    def now(self) -> datetime:
        return datetime.now(self.zone)


class FrozenClock:
    """Clock pinned to one instant; advance() moves it forward explicitly."""

    def __init__(self, moment: datetime):
        if moment.tzinfo is None:
            raise ValueError("FrozenClock requires an aware datetime")
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, **delta: float) -> datetime:
        """Move the clock forward, e.g. advance(seconds=90) or advance(days=1)."""
        self.moment = self.moment + timedelta(**delta)
        return self.moment


def new_id() -> str:
    """Fresh random identifier for entities created by user action."""
    return uuid4().hex


def derived_id(*parts: str) -> str:
    """Identifier that is a pure function of its parts."""
    return uuid5(CADENCE_NAMESPACE, "|".join(parts)).hex
