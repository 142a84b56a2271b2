import calendar as month_calendar
from datetime import date

from flask import Blueprint, request, jsonify, current_app, g

from models import Booking, Zone, db
from rules.access import check_access, grade_from_student_number, permitted_sub_zones
from rules.booking_window import check_calendar_bookable
from rules.operating import active_sessions, is_operating
from rules.seats import clean_seat_number, section_of, sections
from services.booking_tx import default_section, notice_days_for
from services.calendar_loader import (
    load_restriction_config,
    load_zone_calendar,
    load_zone_seats,
    load_zone_sessions,
)
from services.errors import BookingError
from utils.auth_context import current_student, login_required
from utils.clock import local_today, parse_day

zones_bp = Blueprint("zones", __name__, url_prefix="/zones")


def _viewer_grade():
    """Staff see every sub-zone; students are judged by their own grade."""
    if g.user.is_staff:
        return None
    student = current_student()
    return grade_from_student_number(student.student_number if student else None)


def _zone_or_404(zone_id):
    zone = db.session.get(Zone, zone_id)
    if zone is None or not zone.is_active:
        return None
    return zone


@zones_bp.errorhandler(BookingError)
def _booking_error(e):
    return jsonify(**e.to_dict()), e.status_code


@zones_bp.get("")
@login_required
def list_zones():
    zones = Zone.query.filter_by(is_active=True).order_by(Zone.name.asc()).all()
    return jsonify([{"id": z.id, "name": z.name} for z in zones]), 200


@zones_bp.get("/<int:zone_id>/seats")
@login_required
def list_seats(zone_id):
    if _zone_or_404(zone_id) is None:
        return jsonify(error="Zone not found"), 404

    try:
        day = parse_day(request.args.get("date"))
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    seats = load_zone_seats(zone_id)
    default = default_section()

    taken = {}
    if day is not None:
        seat_ids = [s.id for s in seats]
        rows = Booking.query.filter(Booking.date == day, Booking.seat_id.in_(seat_ids)).all()
        for b in rows:
            taken.setdefault(b.seat_id, []).append(b.session_id)

    names = sections(seats, default)
    grade = _viewer_grade()
    if grade is None:
        allowed, denied = names, []
    else:
        allowed, denied = permitted_sub_zones(zone_id, names, grade, load_restriction_config())

    return jsonify(
        zone_id=zone_id,
        sections=allowed,
        restricted_sections=denied,
        seats=[
            {
                "id": s.id,
                "section": section_of(s, default),
                "seat_number": clean_seat_number(s),
                "seat_type": s.seat_type,
                "booked_session_ids": sorted(taken.get(s.id, [])),
            }
            for s in seats
        ],
    ), 200


@zones_bp.get("/<int:zone_id>/sessions")
@login_required
def list_sessions(zone_id):
    if _zone_or_404(zone_id) is None:
        return jsonify(error="Zone not found"), 404

    try:
        day = parse_day(request.args.get("date"))
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    running = None
    if day is not None:
        running = active_sessions(load_zone_calendar(zone_id), day)

    return jsonify([
        {
            "id": s.id,
            "name": s.name,
            "start_time": s.start_time.strftime("%H:%M"),
            "end_time": s.end_time.strftime("%H:%M"),
            "active": None if running is None else s.id in running,
        }
        for s in load_zone_sessions(zone_id)
    ]), 200


@zones_bp.get("/<int:zone_id>/calendar")
@login_required
def zone_calendar(zone_id):
    if _zone_or_404(zone_id) is None:
        return jsonify(error="Zone not found"), 404

    today = local_today()
    month = request.args.get("month") or today.strftime("%Y-%m")
    try:
        year, mon = (int(p) for p in month.split("-"))
        first = date(year, mon, 1)
    except ValueError:
        return jsonify(error="Invalid month. Use YYYY-MM"), 400

    cal = load_zone_calendar(zone_id)
    notice_days = notice_days_for(g.user)
    lead_days = current_app.config.get("QUARTER_OPEN_LEAD_DAYS", 7)

    days = []
    for n in range(1, month_calendar.monthrange(year, mon)[1] + 1):
        day = first.replace(day=n)
        verdict = check_calendar_bookable(cal, day, today, notice_days=notice_days, lead_days=lead_days)
        days.append({
            "date": day.isoformat(),
            "operating": is_operating(cal, day),
            "bookable": verdict.ok,
            "reason": verdict.reason.value,
            "message": verdict.message,
        })

    return jsonify(zone_id=zone_id, month=first.strftime("%Y-%m"), days=days), 200


@zones_bp.get("/<int:zone_id>/access")
@login_required
def sub_zone_access(zone_id):
    sub_zone = (request.args.get("sub_zone") or "").strip() or default_section()
    grade = _viewer_grade()
    if grade is None:
        return jsonify(allowed=True, reason="STAFF", sub_zone=sub_zone, message=""), 200

    decision = check_access(zone_id, sub_zone, grade, load_restriction_config())
    return jsonify(
        allowed=decision.allowed,
        reason=decision.reason.value,
        sub_zone=decision.sub_zone,
        message=decision.message,
    ), 200
