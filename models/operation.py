from datetime import datetime
from models.db import db

class Quarter(db.Model):
    __tablename__ = "operation_quarters"

    id = db.Column(db.Integer, primary_key=True)
    academic_year = db.Column(db.Integer, nullable=False)
    quarter = db.Column(db.Integer, nullable=False)  # 1-4, extra terms use 5+
    name = db.Column(db.String(60), nullable=True)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("academic_year", "quarter", name="uq_quarter_year_number"),
    )


class ClosureException(db.Model):
    __tablename__ = "operation_exceptions"

    id = db.Column(db.Integer, primary_key=True)
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=False, index=True)
    exception_date = db.Column(db.Date, nullable=False, index=True)
    reason = db.Column(db.String(160), nullable=True)
    is_closed = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
