"""Database-backed context for BookingWizard, built once per request."""
from flask import current_app

from rules.access import grade_from_student_number
from services.booking_tx import default_section, notice_days_for, submit_booking
from services.calendar_loader import (
    load_quarters,
    load_restriction_config,
    load_zone_calendar,
    load_zone_seats,
)
from utils.clock import local_today


class DatabaseWizardContext:
    def __init__(self, actor, student=None, today=None):
        self.actor = actor
        self.student = student
        self.today = today or local_today()
        self.notice_days = notice_days_for(actor)
        self.lead_days = current_app.config.get("QUARTER_OPEN_LEAD_DAYS", 7)
        self.default_section = default_section()
        self._calendars = {}
        self._seats = {}
        self._quarters = None
        self._restrictions = None

    @property
    def grade(self):
        if self.student is None:
            return 0
        return grade_from_student_number(self.student.student_number)

    def quarters(self):
        if self._quarters is None:
            self._quarters = load_quarters()
        return self._quarters

    def calendar(self, zone_id):
        if zone_id not in self._calendars:
            self._calendars[zone_id] = load_zone_calendar(zone_id)
        return self._calendars[zone_id]

    def seats(self, zone_id):
        if zone_id not in self._seats:
            self._seats[zone_id] = load_zone_seats(zone_id)
        return self._seats[zone_id]

    def restrictions(self):
        if self._restrictions is None:
            self._restrictions = load_restriction_config()
        return self._restrictions

    def submit(self, draft):
        return submit_booking(
            self.actor,
            draft.date,
            draft.seat_id,
            draft.session_ids,
            study_contents=draft.study_contents,
            replacing_booking_ids=draft.replacing_booking_ids,
            subject_student_id=self.student.id if self.student is not None else draft.subject_student_id,
            today=self.today,
        )
