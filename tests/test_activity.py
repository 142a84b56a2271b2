from datetime import date, timedelta

from rules.activity import ABSENT, LATE, PRESENT, RESERVED, aggregate_activity
from rules.snapshot import BookingActivity

TODAY = date(2024, 3, 20)
YESTERDAY = TODAY - timedelta(days=1)
TOMORROW = TODAY + timedelta(days=1)


def test_past_without_attendance_is_absent():
    assert aggregate_activity([BookingActivity(YESTERDAY)], TODAY) == {YESTERDAY: ABSENT}


def test_past_with_attendance_keeps_status():
    assert aggregate_activity([BookingActivity(YESTERDAY, LATE)], TODAY) == {YESTERDAY: LATE}


def test_present_wins_over_inferred_absent():
    rows = [BookingActivity(YESTERDAY), BookingActivity(YESTERDAY, PRESENT)]
    assert aggregate_activity(rows, TODAY)[YESTERDAY] == PRESENT
    assert aggregate_activity(list(reversed(rows)), TODAY)[YESTERDAY] == PRESENT


def test_late_overrides_absent_but_not_present():
    assert aggregate_activity(
        [BookingActivity(YESTERDAY), BookingActivity(YESTERDAY, LATE)], TODAY
    )[YESTERDAY] == LATE
    assert aggregate_activity(
        [BookingActivity(YESTERDAY, PRESENT), BookingActivity(YESTERDAY, LATE)], TODAY
    )[YESTERDAY] == PRESENT


def test_today_only_reports_checked_in():
    assert aggregate_activity([BookingActivity(TODAY)], TODAY) == {}
    assert aggregate_activity([BookingActivity(TODAY, PRESENT)], TODAY) == {TODAY: PRESENT}


def test_future_is_reserved():
    assert aggregate_activity([BookingActivity(TOMORROW)], TODAY) == {TOMORROW: RESERVED}
