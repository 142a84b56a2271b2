"""
Booking transaction coordinator.

submit_booking() runs the policy gates and then hands a fully resolved
request to manage_booking(), which replaces/creates every session booking and
its study plan inside one database transaction. Double booking is caught by
the unique constraints on commit, never by reading first.
"""
import logging
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError

from models import db
from models.booking import Booking, StudyPlan
from models.seat import Seat
from models.student import Student
from rules.access import check_access, grade_from_student_number
from rules.booking_window import check_calendar_bookable
from rules.operating import active_sessions
from rules.seats import DEFAULT_SECTION, section_of
from services.calendar_loader import guard_storage, load_restriction_config, load_zone_calendar, seat_record
from services.errors import (
    BookingError,
    Conflict,
    SeatNotFound,
    TransportFailure,
    ValidationFailure,
)
from utils.clock import local_today

log = logging.getLogger(__name__)


class BookingNotFound(ValidationFailure):
    status_code = 404
    code = "BOOKING_NOT_FOUND"


@dataclass
class BookingResult:
    student_id: int
    seat_id: int
    date: object
    booking_ids: list = field(default_factory=list)
    created_ids: list = field(default_factory=list)
    replaced_ids: list = field(default_factory=list)


def notice_days_for(actor) -> int:
    cfg = current_app.config
    if actor is not None and actor.is_staff:
        return cfg.get("STAFF_MIN_NOTICE_DAYS", 0)
    return cfg.get("BOOKING_MIN_NOTICE_DAYS", 2)


def _lead_days() -> int:
    return current_app.config.get("QUARTER_OPEN_LEAD_DAYS", 7)


def default_section() -> str:
    """Sub-zone name given to seats stored without a section."""
    return current_app.config.get("DEFAULT_SECTION", DEFAULT_SECTION)


def _dedup_ids(values, label):
    try:
        return sorted({int(v) for v in (values or [])})
    except (TypeError, ValueError):
        raise ValidationFailure(f"{label} must be integers")


def _student_id(value):
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailure("student_id must be an integer")


@guard_storage
def resolve_subject(actor, subject_student_id=None) -> Student:
    """Students book for themselves; staff must name the student explicitly."""
    if actor is None:
        raise ValidationFailure("Authentication required")
    subject_student_id = _student_id(subject_student_id)

    if not actor.is_staff:
        student = Student.query.filter_by(user_id=actor.id).first()
        if student is None:
            raise ValidationFailure("No student record is linked to this account")
        if subject_student_id is not None and subject_student_id != student.id:
            raise ValidationFailure("Students can only book for themselves")
        return student

    if subject_student_id is None:
        raise ValidationFailure("Staff cannot book in their own name; choose a student first")
    student = db.session.get(Student, subject_student_id)
    if student is None:
        raise ValidationFailure("Student not found")
    return student


def _conflict_from(exc: IntegrityError) -> Conflict:
    text = str(getattr(exc, "orig", exc))
    if "student_id" in text or "uq_booking_student_session_day" in text:
        return Conflict("This student already has a booking for one of these sessions", kind="student")
    return Conflict("Another booking already holds this seat for one of these sessions", kind="seat")


def manage_booking(
    *,
    actor_id,
    student_id,
    user_id,
    day,
    session_ids,
    seat_id,
    study_contents=None,
    old_booking_ids=(),
) -> BookingResult:
    """
    Atomic storage primitive: delete old_booking_ids, then make sure one
    booking per session exists for (day, seat, student) with its study plan.
    Either everything commits or the session is rolled back untouched.
    """
    study_contents = study_contents or {}
    result = BookingResult(student_id=student_id, seat_id=seat_id, date=day)

    try:
        if old_booking_ids:
            ids = list(old_booking_ids)
            # "fetch" also evicts the deleted rows from the identity map
            StudyPlan.query.filter(StudyPlan.booking_id.in_(ids)).delete(synchronize_session="fetch")
            Booking.query.filter(Booking.id.in_(ids)).delete(synchronize_session="fetch")
            # deletes must reach the database before the re-inserts
            db.session.flush()
            result.replaced_ids = sorted(ids)

        # rows left over from an earlier identical attempt are reused
        existing = {
            b.session_id: b
            for b in Booking.query.filter(
                Booking.date == day,
                Booking.seat_id == seat_id,
                Booking.student_id == student_id,
                Booking.session_id.in_(session_ids),
            ).all()
        }

        for session_id in session_ids:
            booking = existing.get(session_id)
            if booking is None:
                booking = Booking(
                    date=day,
                    seat_id=seat_id,
                    session_id=session_id,
                    user_id=user_id,
                    student_id=student_id,
                    created_by=actor_id,
                )
                db.session.add(booking)
                db.session.flush()
                result.created_ids.append(booking.id)

            content = study_contents.get(session_id)
            if content is None:
                content = study_contents.get(str(session_id), "")
            plan = StudyPlan.query.filter_by(booking_id=booking.id).first()
            if plan is None:
                db.session.add(StudyPlan(booking_id=booking.id, session_id=session_id, content=content or ""))
            else:
                plan.content = content or ""
            result.booking_ids.append(booking.id)

        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise _conflict_from(exc) from exc
    except OperationalError as exc:
        db.session.rollback()
        log.error("manage_booking failed to reach storage: %s", exc)
        raise TransportFailure("Storage is unavailable, please try again") from exc

    return result


def _check_window(calendar, day, today, notice_days, what="Booking"):
    verdict = check_calendar_bookable(calendar, day, today, notice_days=notice_days, lead_days=_lead_days())
    if not verdict.ok:
        raise ValidationFailure(f"{what} not allowed: {verdict.message}", reason=verdict.reason.value)


def _already_applied(day, seat_id, student_id, session_ids) -> bool:
    """True when every requested (day, seat, student, session) row is already stored."""
    stored = Booking.query.filter(
        Booking.date == day,
        Booking.seat_id == seat_id,
        Booking.student_id == student_id,
        Booking.session_id.in_(session_ids),
    ).count()
    return stored == len(session_ids)


@guard_storage
def submit_booking(
    actor,
    day,
    seat_id,
    session_ids,
    study_contents=None,
    replacing_booking_ids=(),
    subject_student_id=None,
    today=None,
) -> BookingResult:
    if day is None:
        raise ValidationFailure("A date is required")

    session_ids = _dedup_ids(session_ids, "session_ids")
    if not session_ids:
        raise ValidationFailure("Select at least one session")
    replacing = _dedup_ids(replacing_booking_ids, "replacing_booking_ids")
    editing = bool(replacing)
    if study_contents is not None and not isinstance(study_contents, dict):
        raise ValidationFailure("study_contents must map session ids to text")

    try:
        seat = db.session.get(Seat, int(seat_id)) if seat_id is not None else None
    except (TypeError, ValueError):
        seat = None
    if seat is None or seat.seat_type == "placeholder":
        raise SeatNotFound("Seat not found; check the section and seat number")

    student = resolve_subject(actor, subject_student_id)
    today = today or local_today()
    notice_days = notice_days_for(actor)

    if editing:
        old = Booking.query.filter(Booking.id.in_(replacing)).all()
        if len(old) != len(replacing):
            # a retry of an edit that already committed finds the new rows in place
            if not _already_applied(day, seat.id, student.id, session_ids):
                raise BookingNotFound("Some of the bookings being changed no longer exist")
            log.info("edit of bookings %s already applied; reusing stored rows", replacing)
        for b in old:
            if b.student_id != student.id:
                raise ValidationFailure("Only the student's own bookings can be changed")
            if b.seat_id != seat.id or b.date != day:
                raise ValidationFailure("Seat and date cannot change while editing a booking")
        replacing = [b.id for b in old]

    if not editing:
        # edits keep the seat chosen at booking time
        decision = check_access(
            seat.zone_id,
            section_of(seat_record(seat), default_section()),
            grade_from_student_number(student.student_number),
            load_restriction_config(),
        )
        if not decision.allowed:
            raise ValidationFailure(decision.message, reason=decision.reason.value, sub_zone=decision.sub_zone)

    calendar = load_zone_calendar(seat.zone_id)
    _check_window(calendar, day, today, notice_days, "Modification" if editing else "Booking")

    inactive = set(session_ids) - active_sessions(calendar, day)
    if inactive:
        raise ValidationFailure(
            "Some sessions do not run on this date",
            session_ids=sorted(inactive),
        )

    # one seat per student per day
    q = Booking.query.filter(
        Booking.date == day,
        Booking.student_id == student.id,
        Booking.seat_id != seat.id,
    )
    if replacing:
        q = q.filter(~Booking.id.in_(replacing))
    other_seat = q.first()
    if other_seat is not None:
        held = db.session.get(Seat, other_seat.seat_id)
        raise ValidationFailure(
            f"Already booked seat {held.seat_number if held else other_seat.seat_id} on this date",
            seat_id=other_seat.seat_id,
        )

    return manage_booking(
        actor_id=actor.id,
        student_id=student.id,
        user_id=student.user_id,
        day=day,
        session_ids=session_ids,
        seat_id=seat.id,
        study_contents=study_contents,
        old_booking_ids=replacing,
    )


@guard_storage
def cancel_bookings(actor, booking_ids, today=None) -> int:
    """Delete bookings (and their plans) once each date passes the window check."""
    ids = _dedup_ids(booking_ids, "booking_ids")
    if not ids:
        raise ValidationFailure("No bookings selected")

    rows = Booking.query.filter(Booking.id.in_(ids)).all()
    if len(rows) != len(ids):
        raise BookingNotFound("Booking not found")

    if not actor.is_staff:
        own = Student.query.filter_by(user_id=actor.id).first()
        if own is None or any(b.student_id != own.id for b in rows):
            raise BookingNotFound("Booking not found")

    today = today or local_today()
    notice_days = notice_days_for(actor)
    calendars = {}
    for b in rows:
        seat = db.session.get(Seat, b.seat_id)
        zone_id = seat.zone_id if seat else None
        if zone_id not in calendars:
            calendars[zone_id] = load_zone_calendar(zone_id)
        _check_window(calendars[zone_id], b.date, today, notice_days, "Cancellation")

    try:
        StudyPlan.query.filter(StudyPlan.booking_id.in_(ids)).delete(synchronize_session="fetch")
        count = Booking.query.filter(Booking.id.in_(ids)).delete(synchronize_session="fetch")
        db.session.commit()
    except OperationalError as exc:
        db.session.rollback()
        log.error("cancel_bookings failed to reach storage: %s", exc)
        raise TransportFailure("Storage is unavailable, please try again") from exc
    return count


__all__ = [
    "BookingError",
    "BookingNotFound",
    "BookingResult",
    "cancel_bookings",
    "default_section",
    "manage_booking",
    "notice_days_for",
    "resolve_subject",
    "submit_booking",
]
