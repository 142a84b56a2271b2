from rules.access import (
    AccessReason,
    check_access,
    grade_from_student_number,
    permitted_sub_zones,
)
from rules.snapshot import RestrictionConfig

CONFIG = RestrictionConfig.from_settings(True, {7: {"A": [1, 2], "B": []}})


def test_grade_is_leading_digit():
    assert grade_from_student_number("20314") == 2
    assert grade_from_student_number(10101) == 1
    assert grade_from_student_number("") == 0
    assert grade_from_student_number(None) == 0
    assert grade_from_student_number("T-100") == 0


def test_denied_grade_names_the_sub_zone():
    decision = check_access(7, "A", 3, CONFIG)
    assert not decision.allowed
    assert decision.reason == AccessReason.GRADE_NOT_PERMITTED
    assert "A" in decision.message


def test_permitted_grade():
    decision = check_access(7, "A", 1, CONFIG)
    assert decision.allowed
    assert decision.reason == AccessReason.GRADE_PERMITTED


def test_zone_keys_match_as_strings():
    assert not check_access("7", "A", 3, CONFIG).allowed


def test_missing_configuration_fails_open():
    assert check_access(7, "A", 3, RestrictionConfig()).reason == AccessReason.RESTRICTIONS_DISABLED
    assert check_access(7, "A", 3, None).allowed
    assert check_access(7, "C", 3, CONFIG).reason == AccessReason.UNRESTRICTED
    assert check_access(8, "A", 3, CONFIG).allowed
    # empty grade list means nobody is restricted
    assert check_access(7, "B", 3, CONFIG).reason == AccessReason.UNRESTRICTED


def test_disabled_flag_ignores_table():
    cfg = RestrictionConfig.from_settings(False, {7: {"A": [1]}})
    assert check_access(7, "A", 3, cfg).allowed


def test_permitted_sub_zones_split():
    allowed, denied = permitted_sub_zones(7, ["B", "A", "C", "A"], 3, CONFIG)
    assert allowed == ["B", "C"]
    assert denied == ["A"]
