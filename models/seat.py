from models.db import db

SEAT_TYPES = ("normal", "placeholder")

class Seat(db.Model):
    __tablename__ = "seats"

    id = db.Column(db.Integer, primary_key=True)
    zone_id = db.Column(db.Integer, db.ForeignKey("zones.id"), nullable=False, index=True)

    # sub-zone label, e.g. "A"; used for numbering and grade restrictions
    section = db.Column(db.String(40), nullable=True)
    # raw number as drawn on the floor plan, may embed the section ("A-24")
    seat_number = db.Column(db.String(40), nullable=False)
    global_number = db.Column(db.Integer, nullable=True)

    # floor-plan geometry; stored for the map, not used by booking rules
    pos_x = db.Column(db.Float, nullable=True)
    pos_y = db.Column(db.Float, nullable=True)
    width = db.Column(db.Float, nullable=True)
    height = db.Column(db.Float, nullable=True)
    rotation = db.Column(db.Float, nullable=True)

    seat_type = db.Column(db.String(20), nullable=False, default="normal")

    __table_args__ = (
        db.UniqueConstraint("zone_id", "section", "seat_number", name="uq_seat_zone_number"),
    )
