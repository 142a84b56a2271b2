from datetime import datetime
from models.db import db

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    date = db.Column(db.Date, nullable=False, index=True)
    seat_id = db.Column(db.Integer, db.ForeignKey("seats.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False, index=True)

    # subject's login account (may be absent) and student record
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("students.id"), nullable=True, index=True)
    # account that made the booking (the student or a staff member)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        # Hard business-rule: one holder per seat, session and day (prevents double booking)
        db.UniqueConstraint("date", "seat_id", "session_id", name="uq_booking_seat_session_day"),
        # and a student sits in one place per session
        db.UniqueConstraint("date", "student_id", "session_id", name="uq_booking_student_session_day"),
    )


class StudyPlan(db.Model):
    __tablename__ = "study_plans"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(
        db.Integer, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False)
    content = db.Column(db.Text, nullable=False, default="")

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Attendance(db.Model):
    __tablename__ = "attendance"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(
        db.Integer, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    status = db.Column(db.String(20), nullable=False)  # present, late
    timestamp_in = db.Column(db.DateTime, nullable=True)
