"""
Sub-zone grade restrictions.

Missing configuration never blocks anyone: restrictions disabled, no entry
for the sub-zone, or an empty grade list all mean "unrestricted".
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rules.snapshot import RestrictionConfig


class AccessReason(str, Enum):
    RESTRICTIONS_DISABLED = "RESTRICTIONS_DISABLED"
    UNRESTRICTED = "UNRESTRICTED"
    GRADE_PERMITTED = "GRADE_PERMITTED"
    GRADE_NOT_PERMITTED = "GRADE_NOT_PERMITTED"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: AccessReason
    sub_zone: Optional[str] = None

    @property
    def message(self) -> str:
        if self.allowed:
            return ""
        return f"Sub-zone {self.sub_zone} is not available for your grade"


def grade_from_student_number(value) -> int:
    """Grade is the leading digit of the student number; 0 when unknown."""
    text = str(value or "").strip()
    if not text or not text[0].isdigit():
        return 0
    return int(text[0])


def check_access(zone_id, sub_zone, grade: int, config: RestrictionConfig) -> AccessDecision:
    if config is None or not config.enabled:
        return AccessDecision(True, AccessReason.RESTRICTIONS_DISABLED, sub_zone)

    permitted = config.permitted_grades(zone_id, sub_zone)
    if not permitted:
        return AccessDecision(True, AccessReason.UNRESTRICTED, sub_zone)

    if grade in permitted:
        return AccessDecision(True, AccessReason.GRADE_PERMITTED, sub_zone)
    return AccessDecision(False, AccessReason.GRADE_NOT_PERMITTED, sub_zone)


def permitted_sub_zones(zone_id, sub_zones, grade: int, config: RestrictionConfig):
    """Split a zone's sub-zones into (allowed, denied) for the seat picker."""
    allowed, denied = [], []
    for name in sorted(set(sub_zones)):
        if check_access(zone_id, name, grade, config).allowed:
            allowed.append(name)
        else:
            denied.append(name)
    return allowed, denied
