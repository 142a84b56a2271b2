from flask import Blueprint, request, jsonify, g

from models import db
from models.booking import Booking, StudyPlan
from models.seat import Seat
from rules.seats import clean_seat_number, section_of
from services.booking_tx import default_section, resolve_subject
from services.calendar_loader import seat_record
from services.errors import BookingError, Conflict, ValidationFailure
from services.wizard import BookingWizard
from services.wizard_context import DatabaseWizardContext
from utils.audit import log_event
from utils.auth_context import login_required
from utils.clock import parse_day

wizard_bp = Blueprint("wizard", __name__)


def _context_for(subject_student_id):
    student = None
    if not g.user.is_staff or subject_student_id is not None:
        student = resolve_subject(g.user, subject_student_id)
    return DatabaseWizardContext(g.user, student)


def _start_edit(payload):
    booking_ids = payload.get("booking_ids") or []
    rows = Booking.query.filter(Booking.id.in_(booking_ids)).all() if booking_ids else []
    if not rows or len(rows) != len(set(booking_ids)):
        raise ValidationFailure("Booking not found")

    first = rows[0]
    ctx = _context_for(first.student_id if g.user.is_staff else None)
    if any(b.student_id != ctx.student.id for b in rows):
        raise ValidationFailure("Only the student's own bookings can be changed")
    if any(b.seat_id != first.seat_id or b.date != first.date for b in rows):
        raise ValidationFailure("Bookings being changed must share one seat and date")

    seat = db.session.get(Seat, first.seat_id)
    record = seat_record(seat)
    plans = StudyPlan.query.filter(StudyPlan.booking_id.in_([b.id for b in rows])).all()
    return BookingWizard.start_edit(
        ctx,
        day=first.date,
        zone_id=seat.zone_id,
        seat_id=seat.id,
        section=section_of(record, default_section()),
        seat_number=clean_seat_number(record),
        booking_ids=[b.id for b in rows],
        session_ids=[b.session_id for b in rows],
        study_contents={p.session_id: p.content for p in plans},
        subject_student_id=ctx.student.id,
    )


def _apply(wizard, action, payload):
    if action == "select_date":
        wizard.select_date(parse_day(payload.get("date")))
    elif action == "select_zone":
        wizard.select_zone(payload.get("zone_id"))
    elif action == "select_seat":
        wizard.select_seat(payload.get("section"), payload.get("seat_number"))
    elif action == "toggle_session":
        wizard.toggle_session(payload.get("session_id"))
    elif action == "set_sessions":
        wizard.set_sessions(payload.get("session_ids"))
    elif action == "set_content":
        wizard.set_content(payload.get("content"), payload.get("session_id"))
    elif action == "advance":
        wizard.advance()
    elif action == "back":
        wizard.back()
    elif action == "submit":
        wizard.submit()
    else:
        raise ValidationFailure(f"Unknown wizard action: {action}")


@wizard_bp.post("/wizard")
@login_required
def wizard_step():
    """
    Apply one action to a client-held wizard state.
    Body: {"state": {...} | null, "action": "...", "payload": {...}}
    """
    data = request.get_json(silent=True) or {}
    action = data.get("action") or "start"
    payload = data.get("payload") or {}
    state = data.get("state") or {}

    try:
        if action == "start_edit":
            wizard = _start_edit(payload)
        else:
            subject = (state.get("draft") or {}).get("subject_student_id")
            if action == "start":
                subject = payload.get("student_id")
            wizard = BookingWizard.from_dict(_context_for(subject), {} if action == "start" else state)
            wizard.draft.subject_student_id = wizard.context.student.id if wizard.context.student else None
            if action != "start":
                _apply(wizard, action, payload)
    except (TypeError, ValueError):
        # bad date text, session id or step name
        return jsonify(state=state, error="Invalid wizard input"), 400
    except BookingError as e:
        if isinstance(e, Conflict):
            log_event("BOOKING_FAIL_CONFLICT", user_id=g.user.id, entity="booking",
                      metadata={"action": "wizard", **e.details})
        return jsonify(state=state, **e.to_dict()), e.status_code

    out = {"state": wizard.to_dict(), "step": wizard.step.value, "cancelled": wizard.cancelled}
    if wizard.result is not None:
        out["booking_ids"] = wizard.result.booking_ids
        log_event(
            "BOOKING_UPDATE" if wizard.edit_mode else "BOOKING_CREATE",
            user_id=g.user.id,
            entity="booking",
            entity_id=",".join(str(i) for i in wizard.result.booking_ids),
            metadata={"via": "wizard", "student_id": wizard.result.student_id},
        )
    return jsonify(out), 200
