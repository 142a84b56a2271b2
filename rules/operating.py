"""
Calendar / operating-rules evaluation.

A zone operates on a day when the day is inside a quarter, no closure
exception covers it, and at least one active operating-day rule maps one of
the zone's sessions to that weekday. Missing data means "not operating".
"""
from datetime import date, timedelta
from typing import Iterable, Optional

from rules.snapshot import ClosureRule, OperatingRule, QuarterWindow, ZoneCalendar


def weekday_index(day: date) -> int:
    """0 = Sunday ... 6 = Saturday (Python's weekday() starts at Monday)."""
    return (day.weekday() + 1) % 7


def in_any_quarter(quarters: Iterable[QuarterWindow], day: date) -> bool:
    return any(q.contains(day) for q in quarters)


def closure_on(exceptions: Iterable[ClosureRule], day: date) -> Optional[ClosureRule]:
    for exc in exceptions:
        if exc.exception_date == day and exc.is_closed:
            return exc
    return None


def sessions_on_weekday(rules: Iterable[OperatingRule], day: date, session_ids=None) -> frozenset:
    dow = weekday_index(day)
    return frozenset(
        r.session_id
        for r in rules
        if r.is_active
        and r.day_of_week == dow
        and (session_ids is None or r.session_id in session_ids)
    )


def closure_for(calendar: ZoneCalendar, day: date) -> Optional[ClosureRule]:
    return closure_on(calendar.exceptions, day)


def active_sessions(calendar: ZoneCalendar, day: date) -> frozenset:
    """Session ids with an active rule for the day's weekday."""
    session_ids = calendar.session_ids or None
    return sessions_on_weekday(calendar.operating_rules, day, session_ids)


def is_operating(calendar: ZoneCalendar, day: date) -> bool:
    if not in_any_quarter(calendar.quarters, day):
        return False
    if closure_for(calendar, day) is not None:
        return False
    return bool(active_sessions(calendar, day))


def operating_days(calendar: ZoneCalendar, first: date, last: date) -> list:
    out = []
    day = first
    while day <= last:
        if is_operating(calendar, day):
            out.append(day)
        day += timedelta(days=1)
    return out
