from flask import Blueprint, request, jsonify, g

from models import db
from models.booking import Attendance, Booking, StudyPlan
from models.seat import Seat
from models.study_session import StudySession
from rules.activity import aggregate_activity
from rules.seats import clean_seat_number, section_of
from services.booking_tx import cancel_bookings, default_section, resolve_subject, submit_booking
from services.calendar_loader import load_student_activity, seat_record
from services.errors import BookingError, Conflict, ValidationFailure
from utils.audit import log_event
from utils.auth_context import login_required
from utils.clock import local_today, parse_day

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def _fail(e: BookingError, action: str):
    if isinstance(e, Conflict):
        log_event(
            "BOOKING_FAIL_CONFLICT",
            user_id=g.user.id,
            entity="booking",
            metadata={"action": action, **e.details},
        )
    return jsonify(**e.to_dict()), e.status_code


def _read_request(data):
    try:
        day = parse_day(data.get("date"))
    except ValueError:
        raise ValidationFailure("Invalid date. Use YYYY-MM-DD")
    return dict(
        day=day,
        seat_id=data.get("seat_id"),
        session_ids=data.get("session_ids") or [],
        study_contents=data.get("study_contents") or {},
        subject_student_id=data.get("student_id"),
    )


def _result_payload(result):
    return {
        "student_id": result.student_id,
        "seat_id": result.seat_id,
        "date": result.date.isoformat(),
        "booking_ids": result.booking_ids,
        "created_ids": result.created_ids,
        "replaced_ids": result.replaced_ids,
    }


def _subject_for_listing():
    """Students read their own bookings; staff pass ?student_id=."""
    student_id = request.args.get("student_id", type=int)
    if g.user.is_staff and student_id is None:
        raise ValidationFailure("student_id is required")
    return resolve_subject(g.user, student_id)


# ---------- create (double-booking safe) ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    try:
        req = _read_request(data)
        result = submit_booking(g.user, **req)
    except BookingError as e:
        return _fail(e, "create")

    log_event(
        "BOOKING_CREATE",
        user_id=g.user.id,
        entity="booking",
        entity_id=",".join(str(i) for i in result.booking_ids),
        metadata={"student_id": result.student_id, "seat_id": result.seat_id, "date": result.date},
    )
    return jsonify(_result_payload(result)), 201


# ---------- edit sessions / study plans of an existing booking ----------
@booking_bp.put("")
@login_required
def update_booking():
    data = request.get_json(silent=True) or {}
    try:
        req = _read_request(data)
        if not data.get("booking_ids"):
            raise ValidationFailure("booking_ids are required to change a booking")
        result = submit_booking(g.user, replacing_booking_ids=data.get("booking_ids"), **req)
    except BookingError as e:
        return _fail(e, "update")

    log_event(
        "BOOKING_UPDATE",
        user_id=g.user.id,
        entity="booking",
        entity_id=",".join(str(i) for i in result.booking_ids),
        metadata={"replaced": result.replaced_ids, "student_id": result.student_id},
    )
    return jsonify(_result_payload(result)), 200


@booking_bp.post("/cancel")
@login_required
def cancel():
    data = request.get_json(silent=True) or {}
    booking_ids = data.get("booking_ids") or []
    try:
        count = cancel_bookings(g.user, booking_ids)
    except BookingError as e:
        return _fail(e, "cancel")

    log_event(
        "BOOKING_CANCEL",
        user_id=g.user.id,
        entity="booking",
        entity_id=",".join(str(i) for i in booking_ids),
        metadata={"deleted": count},
    )
    return jsonify(message="Booking cancelled", deleted=count), 200


@booking_bp.get("/me")
@login_required
def my_bookings():
    try:
        student = _subject_for_listing()
        day = parse_day(request.args.get("date"))
    except BookingError as e:
        return jsonify(**e.to_dict()), e.status_code
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    q = (
        db.session.query(Booking, Seat, StudySession, StudyPlan, Attendance)
        .join(Seat, Seat.id == Booking.seat_id)
        .join(StudySession, StudySession.id == Booking.session_id)
        .outerjoin(StudyPlan, StudyPlan.booking_id == Booking.id)
        .outerjoin(Attendance, Attendance.booking_id == Booking.id)
        .filter(Booking.student_id == student.id)
    )
    if day is not None:
        q = q.filter(Booking.date == day)
    rows = q.order_by(Booking.date.asc(), StudySession.start_time.asc()).all()

    out = []
    for b, seat, sess, plan, att in rows:
        record = seat_record(seat)
        out.append({
            "id": b.id,
            "date": b.date.isoformat(),
            "zone_id": seat.zone_id,
            "seat_id": seat.id,
            "section": section_of(record, default_section()),
            "seat_number": clean_seat_number(record),
            "session_id": sess.id,
            "session_name": sess.name,
            "study_content": plan.content if plan else "",
            "attendance": att.status if att else None,
        })
    return jsonify(out), 200


@booking_bp.get("/activity")
@login_required
def activity():
    try:
        student = _subject_for_listing()
        statuses = aggregate_activity(load_student_activity(student.id), local_today())
    except BookingError as e:
        return jsonify(**e.to_dict()), e.status_code

    return jsonify(
        student_id=student.id,
        days={d.isoformat(): status for d, status in sorted(statuses.items())},
    ), 200
