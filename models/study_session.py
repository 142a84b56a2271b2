from models.db import db

class StudySession(db.Model):
    __tablename__ = "sessions"

    id = db.Column(db.Integer, primary_key=True)
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=False, index=True)
    name = db.Column(db.String(80), nullable=False)

    # time-of-day, half-open [start, end), no overnight sessions
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)


class OperatingDay(db.Model):
    __tablename__ = "session_operating_days"

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False, index=True)
    day_of_week = db.Column(db.Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("session_id", "day_of_week", name="uq_session_weekday"),
        db.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_day_of_week_range"),
    )
