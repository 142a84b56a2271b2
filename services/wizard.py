"""
Booking wizard as an explicit state machine.

    DATE -> ZONE -> SEAT -> SESSION -> CONTENT -> REVIEW -> SUBMITTED

Each step has a guard that must pass before advance() moves on. Edit mode
starts at SESSION with date, zone and seat fixed; going back from SESSION
lands on DATE and advancing from DATE jumps straight to SESSION again.

The wizard never talks to the database itself. All reads and the final
submit go through a context object, so the HTTP layer decides when I/O
happens and tests can drive the machine with plain snapshots.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional

from rules.access import check_access
from rules.booking_window import check_calendar_bookable, check_term_window
from rules.operating import active_sessions
from rules.seats import resolve_seat, section_of
from services.errors import SeatNotFound, ValidationFailure


class Step(str, Enum):
    DATE = "DATE"
    ZONE = "ZONE"
    SEAT = "SEAT"
    SESSION = "SESSION"
    CONTENT = "CONTENT"
    REVIEW = "REVIEW"
    SUBMITTED = "SUBMITTED"


FORWARD = {
    Step.DATE: Step.ZONE,
    Step.ZONE: Step.SEAT,
    Step.SEAT: Step.SESSION,
    Step.SESSION: Step.CONTENT,
    Step.CONTENT: Step.REVIEW,
}
BACKWARD = {v: k for k, v in FORWARD.items()}


@dataclass
class BookingDraft:
    date: Optional[date] = None
    zone_id: Optional[int] = None
    section: Optional[str] = None
    seat_number: Optional[str] = None
    seat_id: Optional[int] = None
    session_ids: list = field(default_factory=list)
    study_contents: dict = field(default_factory=dict)
    replacing_booking_ids: list = field(default_factory=list)
    subject_student_id: Optional[int] = None

    def to_dict(self):
        return {
            "date": self.date.isoformat() if self.date else None,
            "zone_id": self.zone_id,
            "section": self.section,
            "seat_number": self.seat_number,
            "seat_id": self.seat_id,
            "session_ids": list(self.session_ids),
            "study_contents": {str(k): v for k, v in self.study_contents.items()},
            "replacing_booking_ids": list(self.replacing_booking_ids),
            "subject_student_id": self.subject_student_id,
        }

    @classmethod
    def from_dict(cls, data):
        data = data or {}
        raw_date = data.get("date")
        return cls(
            date=date.fromisoformat(raw_date) if raw_date else None,
            zone_id=data.get("zone_id"),
            section=data.get("section"),
            seat_number=data.get("seat_number"),
            seat_id=data.get("seat_id"),
            session_ids=[int(s) for s in data.get("session_ids") or []],
            study_contents={int(k): v for k, v in (data.get("study_contents") or {}).items()},
            replacing_booking_ids=[int(b) for b in data.get("replacing_booking_ids") or []],
            subject_student_id=data.get("subject_student_id"),
        )


class BookingWizard:
    def __init__(self, context, step=Step.DATE, draft=None, edit_mode=False):
        self.context = context
        self.step = Step(step)
        self.draft = draft or BookingDraft()
        self.edit_mode = edit_mode
        self.cancelled = False
        self.result = None

    # ---------- construction ----------
    @classmethod
    def start_edit(cls, context, *, day, zone_id, seat_id, section, seat_number,
                   booking_ids, session_ids, study_contents=None, subject_student_id=None):
        draft = BookingDraft(
            date=day,
            zone_id=zone_id,
            section=section,
            seat_number=seat_number,
            seat_id=seat_id,
            session_ids=sorted(set(session_ids)),
            study_contents=dict(study_contents or {}),
            replacing_booking_ids=sorted(set(booking_ids)),
            subject_student_id=subject_student_id,
        )
        return cls(context, step=Step.SESSION, draft=draft, edit_mode=True)

    def to_dict(self):
        return {
            "step": self.step.value,
            "edit_mode": self.edit_mode,
            "draft": self.draft.to_dict(),
        }

    @classmethod
    def from_dict(cls, context, data):
        data = data or {}
        return cls(
            context,
            step=data.get("step") or Step.DATE,
            draft=BookingDraft.from_dict(data.get("draft")),
            edit_mode=bool(data.get("edit_mode")),
        )

    # ---------- selections ----------
    def _require_step(self, *steps):
        if self.step not in steps:
            raise ValidationFailure(f"Not allowed in step {self.step.value}")

    def select_date(self, day):
        self._require_step(Step.DATE)
        if self.edit_mode and day != self.draft.date:
            raise ValidationFailure("The date cannot change while editing a booking")
        if day != self.draft.date:
            self.draft.date = day
            self.draft.session_ids = []

    def select_zone(self, zone_id):
        self._require_step(Step.ZONE)
        if zone_id != self.draft.zone_id:
            # seats and sessions belong to a zone
            self.draft.zone_id = zone_id
            self.draft.section = None
            self.draft.seat_number = None
            self.draft.seat_id = None
            self.draft.session_ids = []

    def select_seat(self, section, seat_number):
        self._require_step(Step.SEAT)
        self.draft.section = section or self.context.default_section
        self.draft.seat_number = str(seat_number).strip() if seat_number is not None else None
        self.draft.seat_id = None

    def toggle_session(self, session_id):
        self._require_step(Step.SESSION)
        ids = set(self.draft.session_ids)
        ids.symmetric_difference_update({int(session_id)})
        self.draft.session_ids = sorted(ids)

    def set_sessions(self, session_ids):
        self._require_step(Step.SESSION)
        self.draft.session_ids = sorted({int(s) for s in session_ids or []})

    def set_content(self, text, session_id=None):
        """One plan for every selected session, or for a single session."""
        self._require_step(Step.CONTENT)
        targets = [int(session_id)] if session_id is not None else self.draft.session_ids
        for sid in targets:
            self.draft.study_contents[sid] = text or ""

    # ---------- guards ----------
    def _guard_date(self):
        d = self.draft
        ctx = self.context
        if d.date is None:
            raise ValidationFailure("Choose a date")
        if d.zone_id is not None:
            verdict = check_calendar_bookable(
                ctx.calendar(d.zone_id), d.date, ctx.today,
                notice_days=ctx.notice_days, lead_days=ctx.lead_days,
            )
        else:
            verdict = check_term_window(d.date, ctx.quarters(), ctx.today, ctx.notice_days, ctx.lead_days)
        if not verdict.ok:
            raise ValidationFailure(verdict.message, reason=verdict.reason.value)

    def _guard_zone(self):
        d = self.draft
        ctx = self.context
        if d.zone_id is None:
            raise ValidationFailure("Choose a zone")
        verdict = check_calendar_bookable(
            ctx.calendar(d.zone_id), d.date, ctx.today,
            notice_days=ctx.notice_days, lead_days=ctx.lead_days,
        )
        if not verdict.ok:
            raise ValidationFailure(verdict.message, reason=verdict.reason.value)

    def _guard_seat(self):
        d = self.draft
        if not d.seat_number:
            raise ValidationFailure("Enter a seat number")
        default = self.context.default_section
        seat = resolve_seat(self.context.seats(d.zone_id), d.section or default, d.seat_number, default)
        if seat is None:
            raise SeatNotFound("Seat not found; check the section and seat number")
        decision = check_access(d.zone_id, section_of(seat, default), self.context.grade, self.context.restrictions())
        if not decision.allowed:
            raise ValidationFailure(decision.message, reason=decision.reason.value, sub_zone=decision.sub_zone)
        d.seat_id = seat.id

    def _guard_session(self):
        d = self.draft
        if not d.session_ids:
            raise ValidationFailure("Select at least one session")
        running = active_sessions(self.context.calendar(d.zone_id), d.date)
        inactive = sorted(set(d.session_ids) - running)
        if inactive:
            raise ValidationFailure("Some sessions do not run on this date", session_ids=inactive)

    def _guard_content(self):
        d = self.draft
        missing = [sid for sid in d.session_ids if not (d.study_contents.get(sid) or "").strip()]
        if missing:
            raise ValidationFailure("Write a study plan for every session", session_ids=missing)

    GUARDS = {
        Step.DATE: _guard_date,
        Step.ZONE: _guard_zone,
        Step.SEAT: _guard_seat,
        Step.SESSION: _guard_session,
        Step.CONTENT: _guard_content,
    }

    # ---------- transitions ----------
    def advance(self):
        if self.step in (Step.REVIEW, Step.SUBMITTED):
            raise ValidationFailure("Use submit on the review step")
        self.GUARDS[self.step](self)
        if self.edit_mode and self.step == Step.DATE:
            self.step = Step.SESSION
        else:
            self.step = FORWARD[self.step]
        return self.step

    def back(self):
        if self.step == Step.SUBMITTED:
            raise ValidationFailure("Booking already submitted")
        if self.step == Step.DATE:
            self.cancelled = True
        elif self.edit_mode and self.step == Step.SESSION:
            self.step = Step.DATE
        else:
            self.step = BACKWARD[self.step]
        return self.step

    def submit(self):
        self._require_step(Step.REVIEW)
        # re-run every guard; the data may have changed since each step passed
        for step in (Step.DATE, Step.SESSION, Step.CONTENT):
            self.GUARDS[step](self)
        if not self.edit_mode:
            self.GUARDS[Step.ZONE](self)
            self.GUARDS[Step.SEAT](self)
        self.result = self.context.submit(self.draft)
        self.step = Step.SUBMITTED
        return self.result
