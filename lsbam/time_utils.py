# -*- coding: utf-8 -*-
"""Time helpers for LSBAM (tick clock, diurnal scaling, run stamps)."""

# Import datetime helpers.
from datetime import date, datetime, timezone

# One tick is five simulated minutes; a run covers one day.
MINUTES_PER_TICK = 5
TICKS_PER_DAY = (24 * 60) // MINUTES_PER_TICK

# Diurnal activity bands (tick index -> scalar).
DAY_START_TICK = 80
DAY_END_TICK = 220
MORNING_START_TICK = 60
EVENING_END_TICK = 260

NIGHT_SCALAR = 0.1
MORNING_SCALAR = 0.5
DAY_SCALAR = 1.0
EVENING_SCALAR = 0.4


def time_of_day_scalar(tick_index: int) -> float:
    """Return the activity multiplier applied to every agent's base outdoor probability.

    Notes
    -----
    - 80..220 inclusive: core daytime.
    - 61..79: morning ramp.
    - 221..259: evening taper.
    - Everything else is deep night.
    """
    if DAY_START_TICK <= tick_index <= DAY_END_TICK:
        return DAY_SCALAR
    if MORNING_START_TICK < tick_index < DAY_START_TICK:
        return MORNING_SCALAR
    if DAY_END_TICK < tick_index < EVENING_END_TICK:
        return EVENING_SCALAR
    return NIGHT_SCALAR


def tick_timestamp_minutes(tick: int) -> int:
    """Return minutes since midnight at the end of `tick` (1-based)."""
    return int(tick) * MINUTES_PER_TICK


def utc_now_iso() -> str:
    """Return current UTC time as an ISO-8601 string with 'Z'."""
    # Get current time in UTC.
    now = datetime.now(timezone.utc)
    # Convert to ISO string and force 'Z' suffix.
    return now.isoformat().replace("+00:00", "Z")


def daily_seed(today: date | None = None) -> int:
    """Return the default seed for a calendar day as YYYYMMDD."""
    d = today or datetime.now(timezone.utc).date()
    return d.year * 10000 + d.month * 100 + d.day


def run_day(date_run: str | None = None) -> date:
    """Return the UTC calendar day of an ISO timestamp (today if missing or unparseable)."""
    if date_run:
        try:
            return date.fromisoformat(str(date_run)[:10])
        except ValueError:
            pass
    return datetime.now(timezone.utc).date()
