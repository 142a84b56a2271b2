from datetime import time

from flask import Blueprint, jsonify, g, request
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking
from models.operation import ClosureException
from models.seat import SEAT_TYPES, Seat
from models.student import Student
from models.study_session import OperatingDay, StudySession
from models.zone import Zone
from security.rbac import require_roles
from utils.accounts import AccountError, UsernameTaken, create_account, normalize_student_number
from utils.audit import log_event

manage_bp = Blueprint("manage", __name__, url_prefix="/admin")

SEAT_FIELDS = ("section", "seat_number", "global_number", "pos_x", "pos_y", "width", "height", "rotation", "seat_type")


def _zone_json(z):
    return {"id": z.id, "name": z.name, "is_active": z.is_active}


def _seat_json(s):
    return {field: getattr(s, field) for field in ("id", "zone_id") + SEAT_FIELDS}


def _session_json(s):
    return {
        "id": s.id,
        "zone_id": s.zone_id,
        "name": s.name,
        "start_time": s.start_time.strftime("%H:%M"),
        "end_time": s.end_time.strftime("%H:%M"),
    }


def _student_json(s):
    return {
        "id": s.id,
        "student_number": s.student_number,
        "full_name": s.full_name,
        "user_id": s.user_id,
    }


def _parse_time(text):
    if not text:
        return None
    return time.fromisoformat(str(text).strip())


# ---------- zones ----------
@manage_bp.get("/zones")
@require_roles("ADMIN")
def list_all_zones():
    rows = Zone.query.order_by(Zone.name.asc()).all()
    return jsonify([_zone_json(z) for z in rows]), 200


@manage_bp.post("/zones")
@require_roles("ADMIN")
def create_zone():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify(error="name is required"), 400

    zone = Zone(name=name)
    db.session.add(zone)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="A zone with that name already exists"), 409

    log_event("ZONE_CREATE", user_id=g.user.id, entity="zone", entity_id=zone.id)
    return jsonify(_zone_json(zone)), 201


@manage_bp.put("/zones/<int:zone_id>")
@require_roles("ADMIN")
def update_zone(zone_id):
    zone = db.session.get(Zone, zone_id)
    if zone is None:
        return jsonify(error="Zone not found"), 404

    data = request.get_json(silent=True) or {}
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify(error="name must not be empty"), 400
        zone.name = name
    if "is_active" in data:
        zone.is_active = bool(data.get("is_active"))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="A zone with that name already exists"), 409

    log_event("ZONE_UPDATE", user_id=g.user.id, entity="zone", entity_id=zone_id)
    return jsonify(_zone_json(zone)), 200


@manage_bp.delete("/zones/<int:zone_id>")
@require_roles("ADMIN")
def delete_zone(zone_id):
    """Remove a zone with its seats, sessions and closures. Zones with bookings must be deactivated instead."""
    zone = db.session.get(Zone, zone_id)
    if zone is None:
        return jsonify(error="Zone not found"), 404

    booked = Booking.query.join(Seat, Seat.id == Booking.seat_id).filter(Seat.zone_id == zone_id).first()
    if booked is not None:
        return jsonify(error="Zone has bookings; deactivate it instead"), 409

    session_ids = [s.id for s in StudySession.query.filter_by(zone_id=zone_id).all()]
    if session_ids:
        OperatingDay.query.filter(OperatingDay.session_id.in_(session_ids)).delete(synchronize_session="fetch")
    StudySession.query.filter_by(zone_id=zone_id).delete(synchronize_session="fetch")
    Seat.query.filter_by(zone_id=zone_id).delete(synchronize_session="fetch")
    ClosureException.query.filter_by(zone_id=zone_id).delete(synchronize_session="fetch")
    db.session.delete(zone)
    db.session.commit()

    log_event("ZONE_DELETE", user_id=g.user.id, entity="zone", entity_id=zone_id)
    return jsonify(message="Zone deleted"), 200


# ---------- seats (floor plan) ----------
@manage_bp.get("/zones/<int:zone_id>/seats")
@require_roles("ADMIN")
def list_zone_seats(zone_id):
    rows = Seat.query.filter_by(zone_id=zone_id).order_by(Seat.global_number.asc(), Seat.id.asc()).all()
    return jsonify([_seat_json(s) for s in rows]), 200


@manage_bp.put("/zones/<int:zone_id>/seats")
@require_roles("ADMIN")
def save_floor_plan(zone_id):
    """
    Save a zone's floor plan in one go.
    Body: {"seats": [{"id"?: int, "seat_number": str, ...}], "deleted_ids": [int]}
    Deletions run first, then seats with an id are updated and the rest created.
    """
    if db.session.get(Zone, zone_id) is None:
        return jsonify(error="Zone not found"), 404

    data = request.get_json(silent=True) or {}
    items = data.get("seats") or []
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        return jsonify(error="seats must be a list of objects"), 400
    try:
        deleted_ids = {int(i) for i in data.get("deleted_ids") or []}
    except (TypeError, ValueError):
        return jsonify(error="deleted_ids must be integers"), 400

    if deleted_ids:
        if Booking.query.filter(Booking.seat_id.in_(deleted_ids)).first() is not None:
            return jsonify(error="Seats with bookings cannot be deleted"), 409
        Seat.query.filter(Seat.zone_id == zone_id, Seat.id.in_(deleted_ids)).delete(synchronize_session="fetch")
        db.session.flush()

    for item in items:
        seat_number = str(item.get("seat_number") or "").strip()
        if not seat_number:
            db.session.rollback()
            return jsonify(error="seat_number is required"), 400

        seat = None
        if item.get("id") is not None:
            try:
                seat = db.session.get(Seat, int(item.get("id")))
            except (TypeError, ValueError):
                seat = None
            if seat is None or seat.zone_id != zone_id:
                db.session.rollback()
                return jsonify(error="Seat not found", seat_id=item.get("id")), 404
        else:
            seat = Seat(zone_id=zone_id)
            db.session.add(seat)

        seat_type = item.get("seat_type") or seat.seat_type or "normal"
        if seat_type not in SEAT_TYPES:
            db.session.rollback()
            return jsonify(error=f"seat_type must be one of {', '.join(SEAT_TYPES)}"), 400

        for name in SEAT_FIELDS:
            if name in item:
                setattr(seat, name, item.get(name))
        seat.seat_number = seat_number
        seat.seat_type = seat_type
        if "section" in item:
            seat.section = (str(item.get("section") or "")).strip() or None

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Seat numbers must be unique within a section"), 409

    log_event("FLOOR_PLAN_SAVE", user_id=g.user.id, entity="zone", entity_id=zone_id,
              metadata={"saved": len(items), "deleted": sorted(deleted_ids)})
    return list_zone_seats(zone_id)


# ---------- study sessions ----------
@manage_bp.get("/zones/<int:zone_id>/sessions")
@require_roles("ADMIN")
def list_zone_sessions(zone_id):
    rows = StudySession.query.filter_by(zone_id=zone_id).order_by(StudySession.start_time.asc()).all()
    return jsonify([_session_json(s) for s in rows]), 200


@manage_bp.post("/zones/<int:zone_id>/sessions")
@require_roles("ADMIN")
def create_session(zone_id):
    if db.session.get(Zone, zone_id) is None:
        return jsonify(error="Zone not found"), 404

    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    try:
        start = _parse_time(data.get("start_time"))
        end = _parse_time(data.get("end_time"))
    except ValueError:
        return jsonify(error="Invalid time. Use HH:MM"), 400
    if not name or start is None or end is None:
        return jsonify(error="name, start_time and end_time are required"), 400
    if end <= start:
        return jsonify(error="end_time must be after start_time"), 400

    sess = StudySession(zone_id=zone_id, name=name, start_time=start, end_time=end)
    db.session.add(sess)
    db.session.commit()

    log_event("SESSION_CREATE", user_id=g.user.id, entity="session", entity_id=sess.id)
    return jsonify(_session_json(sess)), 201


@manage_bp.put("/sessions/<int:session_id>")
@require_roles("ADMIN")
def update_session(session_id):
    sess = db.session.get(StudySession, session_id)
    if sess is None:
        return jsonify(error="Session not found"), 404

    data = request.get_json(silent=True) or {}
    try:
        start = _parse_time(data.get("start_time")) or sess.start_time
        end = _parse_time(data.get("end_time")) or sess.end_time
    except ValueError:
        return jsonify(error="Invalid time. Use HH:MM"), 400
    if end <= start:
        return jsonify(error="end_time must be after start_time"), 400

    name = (data.get("name") or "").strip()
    if name:
        sess.name = name
    sess.start_time = start
    sess.end_time = end
    db.session.commit()

    log_event("SESSION_UPDATE", user_id=g.user.id, entity="session", entity_id=session_id)
    return jsonify(_session_json(sess)), 200


@manage_bp.delete("/sessions/<int:session_id>")
@require_roles("ADMIN")
def delete_session(session_id):
    sess = db.session.get(StudySession, session_id)
    if sess is None:
        return jsonify(error="Session not found"), 404
    if Booking.query.filter_by(session_id=session_id).first() is not None:
        return jsonify(error="Session has bookings and cannot be deleted"), 409

    OperatingDay.query.filter_by(session_id=session_id).delete(synchronize_session="fetch")
    db.session.delete(sess)
    db.session.commit()

    log_event("SESSION_DELETE", user_id=g.user.id, entity="session", entity_id=session_id)
    return jsonify(message="Session deleted"), 200


# ---------- students ----------
@manage_bp.get("/students")
@require_roles("TEACHER", "ADMIN")
def list_students():
    q = Student.query
    term = (request.args.get("q") or "").strip()
    if term:
        like = f"%{term}%"
        q = q.filter(or_(Student.student_number.ilike(like), Student.full_name.ilike(like)))
    rows = q.order_by(Student.student_number.asc()).limit(500).all()
    return jsonify([_student_json(s) for s in rows]), 200


@manage_bp.post("/students")
@require_roles("ADMIN")
def create_student():
    """Register a student; with a password, also open their login account."""
    data = request.get_json(silent=True) or {}
    number = normalize_student_number(data.get("student_number"))
    full_name = (data.get("full_name") or "").strip()
    if not number or not full_name:
        return jsonify(error="student_number and full_name are required"), 400
    if Student.query.filter_by(student_number=number).first():
        return jsonify(error="Student number already registered"), 409

    student = Student(student_number=number, full_name=full_name)
    db.session.add(student)
    db.session.flush()

    password = data.get("password")
    if password:
        try:
            create_account(number, password, role="STUDENT", full_name=full_name)
        except UsernameTaken as e:
            db.session.rollback()
            return jsonify(error=str(e)), 409
        except AccountError as e:
            db.session.rollback()
            return jsonify(error=str(e)), 400
    db.session.commit()

    log_event("STUDENT_CREATE", user_id=g.user.id, entity="student", entity_id=student.id)
    return jsonify(_student_json(student)), 201


@manage_bp.post("/students/import")
@require_roles("ADMIN")
def import_students():
    """Bulk upsert by student number: {"students": [{"student_number", "full_name"}]}"""
    data = request.get_json(silent=True) or {}
    rows = data.get("students")
    if not isinstance(rows, list):
        return jsonify(error="students must be a list"), 400

    created = updated = skipped = 0
    for row in rows:
        if not isinstance(row, dict):
            skipped += 1
            continue
        number = normalize_student_number(row.get("student_number"))
        full_name = (row.get("full_name") or "").strip()
        if not number or not full_name:
            skipped += 1
            continue
        student = Student.query.filter_by(student_number=number).first()
        if student is None:
            db.session.add(Student(student_number=number, full_name=full_name))
            db.session.flush()
            created += 1
        elif student.full_name != full_name:
            student.full_name = full_name
            updated += 1
    db.session.commit()

    log_event("STUDENT_IMPORT", user_id=g.user.id, entity="student",
              metadata={"created": created, "updated": updated, "skipped": skipped})
    return jsonify(created=created, updated=updated, skipped=skipped), 200


@manage_bp.put("/students/<int:student_id>")
@require_roles("ADMIN")
def update_student(student_id):
    student = db.session.get(Student, student_id)
    if student is None:
        return jsonify(error="Student not found"), 404

    data = request.get_json(silent=True) or {}
    full_name = (data.get("full_name") or "").strip()
    if not full_name:
        return jsonify(error="full_name is required"), 400
    student.full_name = full_name
    db.session.commit()

    log_event("STUDENT_UPDATE", user_id=g.user.id, entity="student", entity_id=student_id)
    return jsonify(_student_json(student)), 200
