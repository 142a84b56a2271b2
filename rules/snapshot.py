"""
Frozen views of the slow-changing configuration the rule evaluators read.

Everything here is built once per request from database rows
(see services/calendar_loader.py) and never mutated afterwards.
"""
from dataclasses import dataclass, field
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class QuarterWindow:
    start_date: date
    end_date: date
    name: Optional[str] = None

    def contains(self, day: date) -> bool:
        # both endpoints inclusive
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class ClosureRule:
    exception_date: date
    is_closed: bool = True
    reason: Optional[str] = None


@dataclass(frozen=True)
class OperatingRule:
    session_id: int
    day_of_week: int  # 0 = Sunday ... 6 = Saturday
    is_active: bool = True


@dataclass(frozen=True)
class ZoneCalendar:
    """Everything needed to decide whether a zone runs on a given day."""
    zone_id: int
    session_ids: frozenset = field(default_factory=frozenset)
    quarters: tuple = ()
    exceptions: tuple = ()
    operating_rules: tuple = ()


@dataclass(frozen=True)
class RestrictionConfig:
    enabled: bool = False
    # {zone_id (str): {sub_zone: frozenset of grades}}
    restrictions: dict = field(default_factory=dict)

    @classmethod
    def from_settings(cls, enabled, restrictions):
        """Build from the raw JSON setting values; keys are normalised to str."""
        table = {}
        for zone_key, sub_zones in (restrictions or {}).items():
            if not isinstance(sub_zones, dict):
                continue
            table[str(zone_key)] = {
                str(name): frozenset(int(g) for g in (grades or []))
                for name, grades in sub_zones.items()
            }
        return cls(enabled=bool(enabled), restrictions=table)

    def permitted_grades(self, zone_id, sub_zone):
        return self.restrictions.get(str(zone_id), {}).get(sub_zone)


@dataclass(frozen=True)
class SeatRecord:
    id: int
    zone_id: int
    seat_number: str
    section: Optional[str] = None
    seat_type: str = "normal"

    @property
    def is_bookable(self) -> bool:
        return self.seat_type != "placeholder"


@dataclass(frozen=True)
class BookingActivity:
    """One booking of a user, joined to its attendance row (if any)."""
    date: date
    attendance_status: Optional[str] = None
