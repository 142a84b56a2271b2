from datetime import datetime
from flask import Blueprint, jsonify, g, request
from sqlalchemy.exc import IntegrityError

from models import db
from models.app_setting import AppSetting
from models.booking import Attendance, Booking
from models.operation import ClosureException, Quarter
from models.study_session import OperatingDay, StudySession
from models.zone import Zone
from security.rbac import require_roles
from services.calendar_loader import (
    RESTRICTION_ENABLED_KEY,
    RESTRICTIONS_KEY,
    load_restriction_config,
)
from rules.activity import LATE, PRESENT
from utils.audit import log_event
from utils.clock import parse_day

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _quarter_json(q):
    return {
        "id": q.id,
        "academic_year": q.academic_year,
        "quarter": q.quarter,
        "name": q.name,
        "start_date": q.start_date.isoformat(),
        "end_date": q.end_date.isoformat(),
    }


def _exception_json(e):
    return {
        "id": e.id,
        "zone_id": e.zone_id,
        "date": e.exception_date.isoformat(),
        "reason": e.reason,
        "is_closed": e.is_closed,
    }


# ---------- operating quarters ----------
@admin_bp.get("/quarters")
@require_roles("ADMIN")
def list_quarters():
    rows = Quarter.query.order_by(Quarter.start_date.asc()).all()
    return jsonify([_quarter_json(q) for q in rows]), 200


@admin_bp.post("/quarters")
@require_roles("ADMIN")
def create_quarter():
    data = request.get_json(silent=True) or {}
    try:
        year = int(data.get("academic_year"))
        number = int(data.get("quarter"))
        start = parse_day(data.get("start_date"))
        end = parse_day(data.get("end_date"))
    except (TypeError, ValueError):
        return jsonify(error="academic_year, quarter, start_date, end_date are required"), 400

    if start is None or end is None:
        return jsonify(error="start_date and end_date are required"), 400
    if end < start:
        return jsonify(error="end_date must not be before start_date"), 400

    q = Quarter(
        academic_year=year,
        quarter=number,
        name=(data.get("name") or "").strip() or f"{year} Q{number}",
        start_date=start,
        end_date=end,
    )
    db.session.add(q)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="That quarter already exists"), 409

    log_event("QUARTER_CREATE", user_id=g.user.id, entity="quarter", entity_id=q.id)
    return jsonify(_quarter_json(q)), 201


@admin_bp.delete("/quarters/<int:quarter_id>")
@require_roles("ADMIN")
def delete_quarter(quarter_id):
    q = db.session.get(Quarter, quarter_id)
    if q is None:
        return jsonify(error="Quarter not found"), 404
    db.session.delete(q)
    db.session.commit()
    log_event("QUARTER_DELETE", user_id=g.user.id, entity="quarter", entity_id=quarter_id)
    return jsonify(message="Quarter deleted"), 200


# ---------- closure exceptions ----------
@admin_bp.get("/zones/<int:zone_id>/exceptions")
@require_roles("ADMIN")
def list_exceptions(zone_id):
    rows = (
        ClosureException.query
        .filter_by(zone_id=zone_id)
        .order_by(ClosureException.exception_date.asc())
        .all()
    )
    return jsonify([_exception_json(e) for e in rows]), 200


@admin_bp.post("/zones/<int:zone_id>/exceptions")
@require_roles("ADMIN")
def create_exception(zone_id):
    if db.session.get(Zone, zone_id) is None:
        return jsonify(error="Zone not found"), 404

    data = request.get_json(silent=True) or {}
    try:
        day = parse_day(data.get("date"))
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
    if day is None:
        return jsonify(error="date is required"), 400

    e = ClosureException(
        zone_id=zone_id,
        exception_date=day,
        reason=(data.get("reason") or "").strip() or None,
        is_closed=bool(data.get("is_closed", True)),
    )
    db.session.add(e)
    db.session.commit()

    log_event("EXCEPTION_CREATE", user_id=g.user.id, entity="exception", entity_id=e.id,
              metadata={"zone_id": zone_id, "date": day})
    return jsonify(_exception_json(e)), 201


@admin_bp.delete("/exceptions/<int:exception_id>")
@require_roles("ADMIN")
def delete_exception(exception_id):
    e = db.session.get(ClosureException, exception_id)
    if e is None:
        return jsonify(error="Exception not found"), 404
    db.session.delete(e)
    db.session.commit()
    log_event("EXCEPTION_DELETE", user_id=g.user.id, entity="exception", entity_id=exception_id)
    return jsonify(message="Exception deleted"), 200


# ---------- weekly operating days ----------
@admin_bp.put("/sessions/<int:session_id>/operating-days")
@require_roles("ADMIN")
def set_operating_days(session_id):
    """Replace the set of weekdays (0 = Sunday) a session runs on."""
    if db.session.get(StudySession, session_id) is None:
        return jsonify(error="Session not found"), 404

    data = request.get_json(silent=True) or {}
    try:
        wanted = {int(d) for d in data.get("days") or []}
    except (TypeError, ValueError):
        return jsonify(error="days must be integers 0-6"), 400
    if any(d < 0 or d > 6 for d in wanted):
        return jsonify(error="days must be integers 0-6"), 400

    rows = {r.day_of_week: r for r in OperatingDay.query.filter_by(session_id=session_id).all()}
    for dow in range(7):
        row = rows.get(dow)
        if dow in wanted and row is None:
            db.session.add(OperatingDay(session_id=session_id, day_of_week=dow, is_active=True))
        elif row is not None:
            row.is_active = dow in wanted
    db.session.commit()

    log_event("OPERATING_DAYS_UPDATE", user_id=g.user.id, entity="session", entity_id=session_id,
              metadata={"days": sorted(wanted)})
    return jsonify(session_id=session_id, days=sorted(wanted)), 200


# ---------- sub-zone grade restrictions ----------
@admin_bp.get("/restrictions")
@require_roles("ADMIN")
def get_restrictions():
    cfg = load_restriction_config()
    return jsonify(
        enabled=cfg.enabled,
        restrictions={
            zone: {name: sorted(grades) for name, grades in subs.items()}
            for zone, subs in cfg.restrictions.items()
        },
    ), 200


@admin_bp.put("/restrictions")
@require_roles("ADMIN")
def update_restrictions():
    data = request.get_json(silent=True) or {}
    restrictions = data.get("restrictions")
    if restrictions is not None and not isinstance(restrictions, dict):
        return jsonify(error="restrictions must be an object"), 400

    if "enabled" in data:
        AppSetting.set_value(RESTRICTION_ENABLED_KEY, bool(data.get("enabled")))
    if restrictions is not None:
        try:
            cleaned = {
                str(zone): {str(name): sorted({int(grade) for grade in grades or []}) for name, grades in subs.items()}
                for zone, subs in restrictions.items()
            }
        except (AttributeError, TypeError, ValueError):
            db.session.rollback()
            return jsonify(error="restrictions must map zone -> sub-zone -> grades"), 400
        AppSetting.set_value(RESTRICTIONS_KEY, cleaned)
    db.session.commit()

    log_event("RESTRICTIONS_UPDATE", user_id=g.user.id, entity="setting", entity_id=RESTRICTIONS_KEY)
    return get_restrictions()


# ---------- attendance (teachers and admins) ----------
@admin_bp.put("/attendance/<int:booking_id>")
@require_roles("TEACHER", "ADMIN")
def record_attendance(booking_id):
    if db.session.get(Booking, booking_id) is None:
        return jsonify(error="Booking not found"), 404

    data = request.get_json(silent=True) or {}
    status = (data.get("status") or "").strip().lower()
    if status not in (PRESENT, LATE, ""):
        return jsonify(error="status must be present or late"), 400

    row = Attendance.query.filter_by(booking_id=booking_id).first()
    if not status:
        # clearing the check-in
        if row is not None:
            db.session.delete(row)
    elif row is None:
        db.session.add(Attendance(booking_id=booking_id, status=status, timestamp_in=datetime.utcnow()))
    else:
        row.status = status
    db.session.commit()

    log_event("ATTENDANCE_RECORD", user_id=g.user.id, entity="booking", entity_id=booking_id,
              metadata={"status": status or None})
    return jsonify(booking_id=booking_id, status=status or None), 200
