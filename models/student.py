from datetime import datetime
from models.db import db

class Student(db.Model):
    __tablename__ = "students"

    id = db.Column(db.Integer, primary_key=True)

    # e.g. "20314" -> grade 2; the leading digit is the grade
    student_number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(120), nullable=False)

    # linked login account; a student can exist before they ever sign in
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, unique=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
