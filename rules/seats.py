import re

from rules.snapshot import SeatRecord

DEFAULT_SECTION = "General"

_DIGITS = re.compile(r"\D")


def section_of(seat: SeatRecord, default: str = DEFAULT_SECTION) -> str:
    return seat.section or default


def clean_seat_number(seat: SeatRecord) -> str:
    """Strip the section prefix from a raw seat number ("A-24" / "A24" -> "24")."""
    raw = str(seat.seat_number).strip()
    section = seat.section or ""
    if section and raw.startswith(f"{section}-"):
        return raw[len(section) + 1:]
    if section and raw.startswith(section):
        return raw[len(section):]
    return raw


def _numeric_key(seat: SeatRecord) -> int:
    digits = _DIGITS.sub("", str(seat.seat_number))
    return int(digits) if digits else 0


def sections(seats, default: str = DEFAULT_SECTION) -> list:
    return sorted({section_of(s, default) for s in seats if s.is_bookable})


def seats_in_section(seats, section: str, default: str = DEFAULT_SECTION) -> list:
    rows = [s for s in seats if s.is_bookable and section_of(s, default) == section]
    return sorted(rows, key=_numeric_key)


def resolve_seat(seats, section: str, seat_number, default: str = DEFAULT_SECTION):
    """
    Match a user-entered (section, number) pair against a zone's seat list.
    Returns the SeatRecord or None; structural placeholders never match.
    """
    wanted = str(seat_number or "").strip()
    if not wanted:
        return None
    for seat in seats:
        if not seat.is_bookable:
            continue
        if section_of(seat, default) == section and clean_seat_number(seat) == wanted:
            return seat
    return None
