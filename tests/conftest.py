from datetime import time, timedelta
from types import SimpleNamespace

import pytest

from app import create_app
from config import TestConfig
from models import (
    ClosureException,
    OperatingDay,
    Quarter,
    Seat,
    Student,
    StudySession,
    User,
    Zone,
    db,
)
from security.password import hash_password
from utils.clock import local_today
from utils.seed import get_role

PASSWORD = "correct horse battery"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _user(username, role, full_name=None):
    user = User(username=username, password_hash=hash_password(PASSWORD, rounds=4), full_name=full_name)
    user.roles.append(get_role(role))
    db.session.add(user)
    db.session.flush()
    return user


@pytest.fixture
def world(app):
    """
    One zone with sections A and B, a placeholder, and three sessions.
    Sessions 1 and 2 run every day; the evening session never runs.
    The quarter spans today so dates a few days out are bookable.
    """
    today = local_today()

    zone = Zone(name="Main Hall")
    db.session.add(zone)
    db.session.flush()

    seats = {
        "A1": Seat(zone_id=zone.id, section="A", seat_number="A-1", global_number=1),
        "A2": Seat(zone_id=zone.id, section="A", seat_number="A-2", global_number=2),
        "B1": Seat(zone_id=zone.id, section="B", seat_number="B-1", global_number=3),
        "post": Seat(zone_id=zone.id, section="A", seat_number="post", seat_type="placeholder"),
    }
    db.session.add_all(seats.values())

    morning = StudySession(zone_id=zone.id, name="Period 1", start_time=time(8, 0), end_time=time(9, 40))
    noon = StudySession(zone_id=zone.id, name="Period 2", start_time=time(10, 0), end_time=time(11, 40))
    evening = StudySession(zone_id=zone.id, name="Evening", start_time=time(19, 0), end_time=time(21, 0))
    db.session.add_all([morning, noon, evening])
    db.session.flush()

    for sess in (morning, noon):
        for dow in range(7):
            db.session.add(OperatingDay(session_id=sess.id, day_of_week=dow))

    db.session.add(Quarter(
        academic_year=today.year,
        quarter=1,
        name="Current",
        start_date=today - timedelta(days=30),
        end_date=today + timedelta(days=120),
    ))
    closed_day = today + timedelta(days=10)
    db.session.add(ClosureException(zone_id=zone.id, exception_date=closed_day, reason="Exam week"))

    student_user = _user("20101", "STUDENT", "Kim Minji")
    other_user = _user("30202", "STUDENT", "Lee Jisoo")
    teacher = _user("teacher1", "TEACHER", "Park Teacher")
    admin = _user("admin1", "ADMIN", "Admin")

    student = Student(student_number="20101", full_name="Kim Minji", user_id=student_user.id)
    other = Student(student_number="30202", full_name="Lee Jisoo", user_id=other_user.id)
    unlinked = Student(student_number="10303", full_name="Choi Yuna")
    db.session.add_all([student, other, unlinked])
    db.session.commit()

    return SimpleNamespace(
        today=today,
        day=today + timedelta(days=3),
        closed_day=closed_day,
        zone=zone,
        seats=seats,
        morning=morning,
        noon=noon,
        evening=evening,
        student_user=student_user,
        other_user=other_user,
        teacher=teacher,
        admin=admin,
        student=student,
        other=other,
        unlinked=unlinked,
    )


@pytest.fixture
def login(client):
    """Log in and return the CSRF header for later state-changing calls."""
    def _login(username, password=PASSWORD):
        resp = client.post("/auth/login", json={"username": username, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return {"X-CSRF-Token": client.get_cookie("csrf_token").value}
    return _login
