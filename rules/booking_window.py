"""
Booking-window policy: is a calendar day still open for booking?

Two independent gates must pass before the operating checks:
  - minimum notice: day >= today + notice_days
  - quarter lead time: the day's quarter opens lead_days before it starts
The same check gates edits and cancellations of existing bookings.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional

from rules.operating import closure_on, sessions_on_weekday
from rules.snapshot import QuarterWindow

DEFAULT_NOTICE_DAYS = 2
DEFAULT_LEAD_DAYS = 7


class WindowReason(str, Enum):
    OK = "OK"
    MISSING_DATE = "MISSING_DATE"
    TOO_SOON = "TOO_SOON"
    NO_QUARTER = "NO_QUARTER"
    QUARTER_NOT_OPEN = "QUARTER_NOT_OPEN"
    CLOSED = "CLOSED"
    NO_SESSIONS = "NO_SESSIONS"


@dataclass(frozen=True)
class WindowVerdict:
    ok: bool
    reason: WindowReason
    message: str = ""


def quarter_for(quarters: Iterable[QuarterWindow], day: date) -> Optional[QuarterWindow]:
    """First quarter (by start date) that contains the day."""
    for q in sorted(quarters, key=lambda q: q.start_date):
        if q.contains(day):
            return q
    return None


def check_term_window(
    day,
    quarters,
    today: date,
    notice_days: int = DEFAULT_NOTICE_DAYS,
    lead_days: int = DEFAULT_LEAD_DAYS,
) -> WindowVerdict:
    """The two zone-independent gates: minimum notice and quarter lead time."""
    if day is None:
        return WindowVerdict(False, WindowReason.MISSING_DATE, "A date is required")

    if day < today + timedelta(days=notice_days):
        return WindowVerdict(
            False,
            WindowReason.TOO_SOON,
            f"Bookings close {notice_days} day(s) before the date",
        )

    quarter = quarter_for(quarters, day)
    if quarter is None:
        return WindowVerdict(False, WindowReason.NO_QUARTER, "Date is outside every operating quarter")

    opens_on = quarter.start_date - timedelta(days=lead_days)
    if today < opens_on:
        return WindowVerdict(
            False,
            WindowReason.QUARTER_NOT_OPEN,
            f"Booking for this quarter opens on {opens_on.isoformat()}",
        )

    return WindowVerdict(True, WindowReason.OK)


def check_date_bookable(
    day,
    quarters,
    exceptions,
    operating_rules,
    today: date,
    notice_days: int = DEFAULT_NOTICE_DAYS,
    lead_days: int = DEFAULT_LEAD_DAYS,
) -> WindowVerdict:
    verdict = check_term_window(day, quarters, today, notice_days, lead_days)
    if not verdict.ok:
        return verdict

    closure = closure_on(exceptions, day)
    if closure is not None:
        msg = f"Closed: {closure.reason}" if closure.reason else "Closed on this date"
        return WindowVerdict(False, WindowReason.CLOSED, msg)

    if not sessions_on_weekday(operating_rules, day):
        return WindowVerdict(False, WindowReason.NO_SESSIONS, "No sessions run on this weekday")

    return WindowVerdict(True, WindowReason.OK)


def is_date_bookable(day, quarters, exceptions, operating_rules, today: date, **kwargs) -> bool:
    return check_date_bookable(day, quarters, exceptions, operating_rules, today, **kwargs).ok


def check_calendar_bookable(calendar, day, today: date, **kwargs) -> WindowVerdict:
    """Convenience wrapper taking a ZoneCalendar snapshot."""
    return check_date_bookable(
        day,
        calendar.quarters,
        calendar.exceptions,
        calendar.operating_rules,
        today,
        **kwargs,
    )
