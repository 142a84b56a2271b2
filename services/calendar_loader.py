"""
Read helpers that turn database rows into the frozen snapshots in rules/.

Route handlers call these once per request and hand the result to the pure
evaluators; nothing in rules/ touches the database.
"""
import logging
from functools import wraps

from sqlalchemy.exc import OperationalError

from models import (
    db,
    AppSetting,
    Attendance,
    Booking,
    ClosureException,
    OperatingDay,
    Quarter,
    Seat,
    StudySession,
)
from rules.snapshot import (
    BookingActivity,
    ClosureRule,
    OperatingRule,
    QuarterWindow,
    RestrictionConfig,
    SeatRecord,
    ZoneCalendar,
)
from services.errors import TransportFailure

RESTRICTION_ENABLED_KEY = "grade_restriction_enabled"
RESTRICTIONS_KEY = "sub_zone_grade_restrictions"

log = logging.getLogger(__name__)


def guard_storage(fn):
    """Report an unreachable database as TransportFailure instead of a raw driver error."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except OperationalError as exc:
            db.session.rollback()
            log.error("%s failed to reach storage: %s", fn.__name__, exc)
            raise TransportFailure("Storage is unavailable, please try again") from exc
    return wrapper


@guard_storage
def load_quarters():
    rows = Quarter.query.order_by(Quarter.start_date.asc()).all()
    return tuple(QuarterWindow(q.start_date, q.end_date, q.name) for q in rows)


@guard_storage
def load_zone_calendar(zone_id: int) -> ZoneCalendar:
    sessions = StudySession.query.filter_by(zone_id=zone_id).all()
    session_ids = frozenset(s.id for s in sessions)

    rules = ()
    if session_ids:
        rows = (
            OperatingDay.query
            .filter(OperatingDay.session_id.in_(session_ids), OperatingDay.is_active.is_(True))
            .all()
        )
        rules = tuple(OperatingRule(r.session_id, r.day_of_week, r.is_active) for r in rows)

    exceptions = tuple(
        ClosureRule(e.exception_date, e.is_closed, e.reason)
        for e in ClosureException.query.filter_by(zone_id=zone_id).all()
    )

    return ZoneCalendar(
        zone_id=zone_id,
        session_ids=session_ids,
        quarters=load_quarters(),
        exceptions=exceptions,
        operating_rules=rules,
    )


@guard_storage
def load_zone_sessions(zone_id: int):
    return StudySession.query.filter_by(zone_id=zone_id).order_by(StudySession.start_time.asc()).all()


def seat_record(seat: Seat) -> SeatRecord:
    return SeatRecord(
        id=seat.id,
        zone_id=seat.zone_id,
        seat_number=seat.seat_number,
        section=seat.section,
        seat_type=seat.seat_type,
    )


@guard_storage
def load_zone_seats(zone_id: int):
    rows = Seat.query.filter_by(zone_id=zone_id).order_by(Seat.global_number.asc(), Seat.id.asc()).all()
    return tuple(seat_record(s) for s in rows)


@guard_storage
def load_restriction_config() -> RestrictionConfig:
    return RestrictionConfig.from_settings(
        AppSetting.get_value(RESTRICTION_ENABLED_KEY, False),
        AppSetting.get_value(RESTRICTIONS_KEY, {}),
    )


@guard_storage
def load_student_activity(student_id: int):
    rows = (
        Booking.query
        .outerjoin(Attendance, Attendance.booking_id == Booking.id)
        .with_entities(Booking.date, Attendance.status)
        .filter(Booking.student_id == student_id)
        .order_by(Booking.date.asc(), Booking.id.asc())
        .all()
    )
    return [BookingActivity(d, status) for d, status in rows]
