from datetime import date
from typing import Iterable, Optional

from rules.snapshot import BookingActivity

PRESENT = "present"
LATE = "late"
ABSENT = "absent"
RESERVED = "reserved"


def booking_status(activity: BookingActivity, today: date) -> Optional[str]:
    att = activity.attendance_status
    if activity.date < today:
        if att in (PRESENT, LATE):
            return att
        return ABSENT
    if activity.date == today:
        # same-day bookings stay unresolved until attendance is recorded
        if att in (PRESENT, LATE):
            return att
        return None
    return RESERVED


def _should_replace(previous: Optional[str], status: str) -> bool:
    if previous is None:
        return True
    if status == PRESENT and previous != PRESENT:
        return True
    if status == LATE and previous == ABSENT:
        return True
    return False


def aggregate_activity(bookings: Iterable[BookingActivity], today: date) -> dict:
    """Fold a user's bookings into one display status per calendar day."""
    out = {}
    for activity in bookings:
        status = booking_status(activity, today)
        if status is None:
            continue
        if _should_replace(out.get(activity.date), status):
            out[activity.date] = status
    return out
