from datetime import timedelta

from sqlalchemy import text

from models import AuditLog, Booking, db


def _payload(world, seat="A1", sessions=None, **extra):
    body = {
        "date": world.day.isoformat(),
        "seat_id": world.seats[seat].id,
        "session_ids": sessions or [world.morning.id],
        "study_contents": {str(world.morning.id): "Biology notes"},
    }
    body.update(extra)
    return body


def test_create_list_and_cancel(client, world, login):
    headers = login("20101")

    resp = client.post("/bookings", json=_payload(world), headers=headers)
    assert resp.status_code == 201
    booking_ids = resp.get_json()["booking_ids"]
    assert len(booking_ids) == 1

    mine = client.get(f"/bookings/me?date={world.day.isoformat()}").get_json()
    assert mine[0]["section"] == "A"
    assert mine[0]["seat_number"] == "1"
    assert mine[0]["study_content"] == "Biology notes"

    resp = client.post("/bookings/cancel", json={"booking_ids": booking_ids}, headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()["deleted"] == 1
    assert AuditLog.query.filter_by(action="BOOKING_CANCEL").count() == 1


def test_conflict_returns_409_and_is_audited(client, world, login):
    headers = login("20101")
    assert client.post("/bookings", json=_payload(world), headers=headers).status_code == 201

    headers = login("30202")
    resp = client.post("/bookings", json=_payload(world), headers=headers)
    assert resp.status_code == 409
    assert resp.get_json()["code"] == "CONFLICT"
    assert AuditLog.query.filter_by(action="BOOKING_FAIL_CONFLICT").count() == 1


def test_validation_errors(client, world, login):
    headers = login("20101")

    resp = client.post("/bookings", json=_payload(world, date="not-a-date"), headers=headers)
    assert resp.status_code == 400

    too_soon = (world.today + timedelta(days=1)).isoformat()
    resp = client.post("/bookings", json=_payload(world, date=too_soon), headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["details"]["reason"] == "TOO_SOON"

    resp = client.post("/bookings", json=_payload(world, seat="post"), headers=headers)
    assert resp.status_code == 404


def test_edit_booking(client, world, login):
    headers = login("20101")
    created = client.post("/bookings", json=_payload(world), headers=headers).get_json()

    body = _payload(
        world,
        sessions=[world.morning.id, world.noon.id],
        booking_ids=created["booking_ids"],
        study_contents={str(world.morning.id): "Biology", str(world.noon.id): "History"},
    )
    resp = client.put("/bookings", json=body, headers=headers)
    assert resp.status_code == 200
    assert len(resp.get_json()["booking_ids"]) == 2
    assert Booking.query.filter_by(student_id=world.student.id).count() == 2


def test_edit_requires_booking_ids(client, world, login):
    headers = login("20101")
    assert client.put("/bookings", json=_payload(world), headers=headers).status_code == 400


def test_teacher_books_for_student(client, world, login):
    headers = login("teacher1")

    resp = client.post("/bookings", json=_payload(world), headers=headers)
    assert resp.status_code == 400

    body = _payload(world, date=world.today.isoformat(), student_id=world.student.id)
    resp = client.post("/bookings", json=body, headers=headers)
    assert resp.status_code == 201

    listing = client.get(f"/bookings/me?student_id={world.student.id}").get_json()
    assert len(listing) == 1
    assert client.get("/bookings/me").status_code == 400


def test_activity_after_attendance(client, world, login):
    headers = login("teacher1")
    body = _payload(world, date=world.today.isoformat(), student_id=world.student.id)
    booking_id = client.post("/bookings", json=body, headers=headers).get_json()["booking_ids"][0]

    resp = client.put(f"/admin/attendance/{booking_id}", json={"status": "late"}, headers=headers)
    assert resp.status_code == 200

    days = client.get(f"/bookings/activity?student_id={world.student.id}").get_json()["days"]
    assert days == {world.today.isoformat(): "late"}

    resp = client.put(f"/admin/attendance/{booking_id}", json={"status": "asleep"}, headers=headers)
    assert resp.status_code == 400


def test_student_activity_lists_future_as_reserved(client, world, login):
    headers = login("20101")
    client.post("/bookings", json=_payload(world), headers=headers)
    days = client.get("/bookings/activity").get_json()["days"]
    assert days == {world.day.isoformat(): "reserved"}


def test_malformed_student_id_and_study_contents(client, world, login):
    headers = login("teacher1")
    resp = client.post("/bookings", json=_payload(world, student_id="abc"), headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "VALIDATION_FAILURE"

    body = _payload(world, student_id=world.student.id, study_contents="Biology")
    resp = client.post("/bookings", json=body, headers=headers)
    assert resp.status_code == 400
    assert Booking.query.count() == 0


def test_retried_edit_returns_the_applied_booking(client, world, login):
    headers = login("20101")
    created = client.post("/bookings", json=_payload(world), headers=headers).get_json()
    client.post("/bookings", json=_payload(world, seat="B1"), headers=login("30202"))

    headers = login("20101")
    body = _payload(world, sessions=[world.noon.id], booking_ids=created["booking_ids"])
    first = client.put("/bookings", json=body, headers=headers)
    again = client.put("/bookings", json=body, headers=headers)
    assert first.status_code == again.status_code == 200
    assert again.get_json()["booking_ids"] == first.get_json()["booking_ids"]


def test_storage_outage_is_503(client, world, login):
    headers = login("20101")
    db.session.execute(text("DROP TABLE study_plans"))
    db.session.commit()

    resp = client.get("/bookings/me")
    assert resp.status_code == 503
    assert resp.get_json()["code"] == "TRANSPORT_FAILURE"

    resp = client.post("/bookings", json=_payload(world), headers=headers)
    assert resp.status_code == 503
