from datetime import date

import pytest

from rules.booking_window import (
    WindowReason,
    check_date_bookable,
    check_term_window,
    is_date_bookable,
    quarter_for,
)
from rules.snapshot import ClosureRule, OperatingRule, QuarterWindow

EVERY_DAY = tuple(OperatingRule(1, dow) for dow in range(7))
WINTER = QuarterWindow(date(2024, 1, 1), date(2024, 1, 31))
SPRING = QuarterWindow(date(2024, 2, 1), date(2024, 4, 30))


def bookable(day, today, quarters=(WINTER, SPRING), exceptions=(), rules=EVERY_DAY, **kwargs):
    return is_date_bookable(day, quarters, exceptions, rules, today, **kwargs)


def test_minimum_notice_two_days():
    today = date(2024, 1, 10)
    assert not bookable(date(2024, 1, 10), today)
    assert not bookable(date(2024, 1, 11), today)
    assert bookable(date(2024, 1, 12), today)


def test_too_soon_reason():
    verdict = check_date_bookable(date(2024, 1, 11), (WINTER,), (), EVERY_DAY, date(2024, 1, 10))
    assert not verdict.ok
    assert verdict.reason == WindowReason.TOO_SOON


def test_staff_notice_override_allows_today():
    assert bookable(date(2024, 1, 10), date(2024, 1, 10), notice_days=0)


@pytest.mark.parametrize(
    "today, expected",
    [
        (date(2024, 1, 20), False),
        (date(2024, 1, 24), False),
        (date(2024, 1, 25), True),
        (date(2024, 1, 30), True),
    ],
)
def test_quarter_opens_seven_days_ahead(today, expected):
    assert bookable(date(2024, 2, 14), today) is expected


def test_quarter_not_open_reason_names_the_opening_day():
    verdict = check_term_window(date(2024, 2, 14), (SPRING,), date(2024, 1, 20))
    assert verdict.reason == WindowReason.QUARTER_NOT_OPEN
    assert "2024-01-25" in verdict.message


def test_missing_date_and_no_quarter():
    assert check_term_window(None, (WINTER,), date(2024, 1, 1)).reason == WindowReason.MISSING_DATE
    verdict = check_term_window(date(2024, 6, 1), (WINTER, SPRING), date(2024, 5, 1))
    assert verdict.reason == WindowReason.NO_QUARTER


def test_closure_blocks_regardless_of_other_rules():
    exceptions = (ClosureRule(date(2024, 1, 15), True, "Sports day"),)
    verdict = check_date_bookable(date(2024, 1, 15), (WINTER,), exceptions, EVERY_DAY, date(2024, 1, 2))
    assert verdict.reason == WindowReason.CLOSED
    assert "Sports day" in verdict.message


def test_weekday_without_sessions():
    mondays_only = (OperatingRule(1, 1),)
    # 2024-01-16 is a Tuesday
    verdict = check_date_bookable(date(2024, 1, 16), (WINTER,), (), mondays_only, date(2024, 1, 2))
    assert verdict.reason == WindowReason.NO_SESSIONS
    assert bookable(date(2024, 1, 15), date(2024, 1, 2), rules=mondays_only)


def test_first_quarter_by_start_date_is_used():
    overlapping = QuarterWindow(date(2024, 1, 20), date(2024, 2, 20))
    assert quarter_for((overlapping, WINTER), date(2024, 1, 25)) == WINTER
