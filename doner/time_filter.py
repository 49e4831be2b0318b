"""
Parse `--since` expressions into an absolute UTC cutoff.

Accepted forms (case-insensitive):
  - <n>m / <n>h / <n>d / <n>w   n minutes/hours/days/weeks before now
  - today                       00:00 UTC of the current day
  - yesterday                   00:00 UTC of the previous day
  - this-week                   00:00 UTC of the Monday on or before today
  - this-month                  00:00 UTC of the first of the month

`now` is always passed in; nothing here reads the clock.
"""
from __future__ import annotations

import dataclasses as dc
import re
from datetime import UTC, datetime, timedelta
from typing import Literal, Union

Unit = Literal["m", "h", "d", "w"]
KeywordKind = Literal["today", "yesterday", "this-week", "this-month"]

UNITS: dict[str, timedelta] = {
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}
KEYWORDS: tuple[str, ...] = ("today", "yesterday", "this-week", "this-month")

_DURATION_RE = re.compile(r"^([0-9]+)([mhdw])$")
# Looks like a duration but the count is signed or fractional, e.g. "-3d", "1.5h".
_BAD_COUNT_RE = re.compile(r"^[+-]?[0-9.]*[0-9][0-9.]*([mhdw])$")

HELP = "Use formats like: 7d, 24h, 30m, 2w, yesterday, today, this-week, this-month"


class TimeFilterError(ValueError):
    def __init__(self, raw: str, message: str):
        super().__init__(message)
        self.raw = raw


class InvalidFormat(TimeFilterError):
    def __init__(self, raw: str):
        super().__init__(raw, f"Invalid time filter: {raw!r}. {HELP}")


class InvalidCount(TimeFilterError):
    def __init__(self, raw: str):
        super().__init__(raw, f"Invalid duration count in {raw!r}: expected a whole number like 7d")


@dc.dataclass(frozen=True)
class Duration:
    count: int
    unit: Unit


@dc.dataclass(frozen=True)
class Keyword:
    kind: KeywordKind


Expression = Union[Duration, Keyword]

# ---------- calendar boundaries ----------

def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)

def start_of_day(now: datetime) -> datetime:
    return as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)

def start_of_week(now: datetime) -> datetime:
    day = start_of_day(now)
    return day - timedelta(days=day.weekday())

def start_of_month(now: datetime) -> datetime:
    return start_of_day(now).replace(day=1)

# ---------- parsing ----------

def parse_expression(raw: str) -> Expression:
    s = raw.strip().lower()
    if m := _DURATION_RE.match(s):
        return Duration(count=int(m.group(1)), unit=m.group(2))  # type: ignore[arg-type]
    if _BAD_COUNT_RE.match(s):
        raise InvalidCount(raw)
    if s in KEYWORDS:
        return Keyword(kind=s)  # type: ignore[arg-type]
    raise InvalidFormat(raw)

def resolve(expr: Expression, now: datetime) -> datetime:
    now = as_utc(now)
    match expr:
        case Duration(count=count, unit=unit):
            return now - count * UNITS[unit]
        case Keyword(kind="today"):
            return start_of_day(now)
        case Keyword(kind="yesterday"):
            return start_of_day(now) - timedelta(days=1)
        case Keyword(kind="this-week"):
            return start_of_week(now)
        case Keyword(kind="this-month"):
            return start_of_month(now)
    raise AssertionError(f"unhandled expression: {expr!r}")

def parse_time_filter(raw: str, now: datetime) -> datetime:
    """Return the cutoff instant for `raw` relative to `now` (UTC)."""
    expr = parse_expression(raw)
    try:
        return resolve(expr, now)
    except OverflowError:
        # Count is too large to step back from now.
        raise InvalidCount(raw) from None
