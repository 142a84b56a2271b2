from datetime import timedelta

from models import OperatingDay


def test_quarter_crud(client, world, login):
    headers = login("admin1")
    body = {
        "academic_year": world.today.year + 1,
        "quarter": 2,
        "start_date": (world.today + timedelta(days=200)).isoformat(),
        "end_date": (world.today + timedelta(days=280)).isoformat(),
    }
    resp = client.post("/admin/quarters", json=body, headers=headers)
    assert resp.status_code == 201
    quarter_id = resp.get_json()["id"]

    assert client.post("/admin/quarters", json=body, headers=headers).status_code == 409
    assert len(client.get("/admin/quarters").get_json()) == 2

    assert client.delete(f"/admin/quarters/{quarter_id}", headers=headers).status_code == 200
    assert len(client.get("/admin/quarters").get_json()) == 1


def test_quarter_dates_must_be_ordered(client, world, login):
    headers = login("admin1")
    body = {"academic_year": 2030, "quarter": 1, "start_date": "2030-03-10", "end_date": "2030-03-01"}
    assert client.post("/admin/quarters", json=body, headers=headers).status_code == 400


def test_exception_closes_a_day(client, world, login):
    headers = login("admin1")
    resp = client.post(
        f"/admin/zones/{world.zone.id}/exceptions",
        json={"date": world.day.isoformat(), "reason": "Fire drill"},
        headers=headers,
    )
    assert resp.status_code == 201
    exception_id = resp.get_json()["id"]

    headers = login("20101")
    resp = client.post("/bookings", json={
        "date": world.day.isoformat(),
        "seat_id": world.seats["A1"].id,
        "session_ids": [world.morning.id],
    }, headers=headers)
    assert resp.status_code == 400
    assert "Fire drill" in resp.get_json()["error"]

    headers = login("admin1")
    assert client.delete(f"/admin/exceptions/{exception_id}", headers=headers).status_code == 200


def test_operating_days_replace(client, world, login):
    headers = login("admin1")
    resp = client.put(
        f"/admin/sessions/{world.evening.id}/operating-days",
        json={"days": [0, 6]},
        headers=headers,
    )
    assert resp.status_code == 200
    active = {r.day_of_week for r in OperatingDay.query.filter_by(session_id=world.evening.id, is_active=True)}
    assert active == {0, 6}

    client.put(f"/admin/sessions/{world.evening.id}/operating-days", json={"days": [6]}, headers=headers)
    active = {r.day_of_week for r in OperatingDay.query.filter_by(session_id=world.evening.id, is_active=True)}
    assert active == {6}

    resp = client.put(f"/admin/sessions/{world.evening.id}/operating-days", json={"days": [7]}, headers=headers)
    assert resp.status_code == 400


def test_restrictions_round_trip(client, world, login):
    headers = login("admin1")
    resp = client.put(
        "/admin/restrictions",
        json={"enabled": True, "restrictions": {str(world.zone.id): {"A": ["1", 2, 2]}}},
        headers=headers,
    )
    assert resp.status_code == 200
    body = client.get("/admin/restrictions").get_json()
    assert body == {"enabled": True, "restrictions": {str(world.zone.id): {"A": [1, 2]}}}

    resp = client.put("/admin/restrictions", json={"restrictions": ["A"]}, headers=headers)
    assert resp.status_code == 400
