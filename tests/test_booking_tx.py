from datetime import timedelta

import pytest
from sqlalchemy import text

from models import AppSetting, Booking, Seat, StudyPlan, db
from services.booking_tx import (
    BookingNotFound,
    cancel_bookings,
    manage_booking,
    submit_booking,
)
from services.calendar_loader import RESTRICTION_ENABLED_KEY, RESTRICTIONS_KEY
from services.errors import Conflict, SeatNotFound, TransportFailure, ValidationFailure


def _book(world, actor, seat="A1", sessions=None, day=None, **kwargs):
    return submit_booking(
        actor,
        day or world.day,
        world.seats[seat].id,
        sessions or [world.morning.id],
        today=world.today,
        **kwargs,
    )


def test_duplicate_session_ids_create_one_row_each(world):
    m, n = world.morning.id, world.noon.id
    result = _book(world, world.student_user, sessions=[m, m, n],
                   study_contents={m: "Physics", str(n): "Chemistry"})

    assert len(result.booking_ids) == 2
    rows = Booking.query.filter_by(student_id=world.student.id).all()
    assert sorted(b.session_id for b in rows) == sorted([m, n])

    plans = {p.session_id: p.content for p in StudyPlan.query.all()}
    assert plans == {m: "Physics", n: "Chemistry"}


def test_second_actor_gets_conflict_on_same_seat_and_session(world):
    _book(world, world.student_user)
    with pytest.raises(Conflict) as exc:
        _book(world, world.other_user)
    assert exc.value.details["kind"] == "seat"
    assert Booking.query.count() == 1


def test_student_cannot_hold_two_seats_in_one_session(world):
    _book(world, world.student_user)
    with pytest.raises(Conflict) as exc:
        manage_booking(
            actor_id=world.student_user.id,
            student_id=world.student.id,
            user_id=world.student_user.id,
            day=world.day,
            session_ids=[world.morning.id],
            seat_id=world.seats["B1"].id,
        )
    assert exc.value.details["kind"] == "student"


def test_retrying_the_same_request_is_idempotent(world):
    first = _book(world, world.student_user, sessions=[world.morning.id, world.noon.id])
    again = _book(world, world.student_user, sessions=[world.morning.id, world.noon.id])

    assert again.booking_ids == first.booking_ids
    assert again.created_ids == []
    assert Booking.query.count() == 2


def test_failed_edit_leaves_original_bookings(world):
    original = _book(world, world.student_user, study_contents={world.morning.id: "Keep me"})
    # someone else takes the noon slot on the same seat
    _book(world, world.other_user, sessions=[world.noon.id], seat="A1")

    with pytest.raises(Conflict):
        _book(
            world,
            world.student_user,
            sessions=[world.morning.id, world.noon.id],
            replacing_booking_ids=original.booking_ids,
        )

    db.session.expire_all()
    kept = Booking.query.filter_by(student_id=world.student.id).all()
    assert [b.id for b in kept] == original.booking_ids
    assert StudyPlan.query.filter_by(booking_id=kept[0].id).one().content == "Keep me"


@pytest.mark.filterwarnings("error::sqlalchemy.exc.SAWarning")
def test_edit_replaces_sessions_and_plans(world):
    original = _book(world, world.student_user, sessions=[world.morning.id, world.noon.id])
    result = _book(
        world,
        world.student_user,
        sessions=[world.noon.id],
        study_contents={world.noon.id: "Revised"},
        replacing_booking_ids=original.booking_ids,
    )

    assert sorted(result.replaced_ids) == sorted(original.booking_ids)
    rows = Booking.query.filter_by(student_id=world.student.id).all()
    assert [b.session_id for b in rows] == [world.noon.id]
    assert StudyPlan.query.filter_by(booking_id=rows[0].id).one().content == "Revised"


def test_edit_cannot_move_seat(world):
    original = _book(world, world.student_user)
    with pytest.raises(ValidationFailure):
        _book(world, world.student_user, seat="A2", replacing_booking_ids=original.booking_ids)


def test_edit_of_missing_booking(world):
    with pytest.raises(BookingNotFound):
        _book(world, world.student_user, replacing_booking_ids=[9999])


def test_one_seat_per_student_per_day(world):
    _book(world, world.student_user, seat="A1")
    with pytest.raises(ValidationFailure):
        _book(world, world.student_user, seat="A2", sessions=[world.noon.id])


def test_student_notice_is_two_days(world):
    with pytest.raises(ValidationFailure) as exc:
        _book(world, world.student_user, day=world.today + timedelta(days=1))
    assert exc.value.details["reason"] == "TOO_SOON"


def test_closed_day_is_refused(world):
    with pytest.raises(ValidationFailure) as exc:
        _book(world, world.student_user, day=world.closed_day)
    assert exc.value.details["reason"] == "CLOSED"


def test_session_not_running_that_day(world):
    with pytest.raises(ValidationFailure):
        _book(world, world.student_user, sessions=[world.evening.id])


def test_unknown_and_placeholder_seats(world):
    with pytest.raises(SeatNotFound):
        submit_booking(world.student_user, world.day, 9999, [world.morning.id], today=world.today)
    with pytest.raises(SeatNotFound):
        _book(world, world.student_user, seat="post")


def test_empty_session_list(world):
    with pytest.raises(ValidationFailure):
        submit_booking(world.student_user, world.day, world.seats["A1"].id, [], today=world.today)


def test_staff_must_choose_a_student(world):
    with pytest.raises(ValidationFailure):
        _book(world, world.teacher)


def test_staff_books_for_unlinked_student_same_day(world):
    result = _book(world, world.teacher, day=world.today, subject_student_id=world.unlinked.id)
    row = db.session.get(Booking, result.booking_ids[0])
    assert row.student_id == world.unlinked.id
    assert row.user_id is None
    assert row.created_by == world.teacher.id


def test_student_cannot_book_for_someone_else(world):
    with pytest.raises(ValidationFailure):
        _book(world, world.student_user, subject_student_id=world.other.id)


def test_cancel_own_booking(world):
    result = _book(world, world.student_user, sessions=[world.morning.id, world.noon.id])
    assert cancel_bookings(world.student_user, result.booking_ids, today=world.today) == 2
    assert Booking.query.count() == 0
    assert StudyPlan.query.count() == 0


def test_cancel_someone_elses_booking(world):
    result = _book(world, world.student_user)
    with pytest.raises(BookingNotFound):
        cancel_bookings(world.other_user, result.booking_ids, today=world.today)
    assert Booking.query.count() == 1


def test_cancel_inside_notice_window(world):
    tomorrow = world.today + timedelta(days=1)
    result = _book(world, world.teacher, day=tomorrow, subject_student_id=world.student.id)

    with pytest.raises(ValidationFailure):
        cancel_bookings(world.student_user, result.booking_ids, today=world.today)
    # staff are not held to the two-day notice
    assert cancel_bookings(world.teacher, result.booking_ids, today=world.today) == 1


def test_restricted_sub_zone_is_refused(world):
    AppSetting.set_value(RESTRICTION_ENABLED_KEY, True)
    AppSetting.set_value(RESTRICTIONS_KEY, {str(world.zone.id): {"A": [1]}})
    db.session.commit()

    # student 20101 is in grade 2
    with pytest.raises(ValidationFailure) as exc:
        _book(world, world.student_user, seat="A1")
    assert exc.value.details["sub_zone"] == "A"

    assert _book(world, world.student_user, seat="B1").booking_ids


def test_retrying_a_committed_edit_is_idempotent(world):
    first = _book(world, world.student_user)
    # a later booking keeps the replaced id from being handed out again
    _book(world, world.other_user, seat="B1")

    edit = dict(
        sessions=[world.noon.id],
        study_contents={world.noon.id: "Essay outline"},
        replacing_booking_ids=first.booking_ids,
    )
    applied = _book(world, world.student_user, **edit)
    assert applied.booking_ids != first.booking_ids

    again = _book(world, world.student_user, **edit)
    assert again.booking_ids == applied.booking_ids
    assert again.created_ids == []

    rows = Booking.query.filter_by(student_id=world.student.id).all()
    assert [b.session_id for b in rows] == [world.noon.id]
    assert StudyPlan.query.filter_by(booking_id=rows[0].id).one().content == "Essay outline"


def test_edit_of_vanished_bookings_that_was_never_applied(world):
    first = _book(world, world.student_user)
    cancel_bookings(world.teacher, first.booking_ids, today=world.today)

    with pytest.raises(BookingNotFound):
        _book(world, world.student_user, sessions=[world.noon.id], replacing_booking_ids=first.booking_ids)


@pytest.mark.filterwarnings("error::sqlalchemy.exc.SAWarning")
def test_cancel_then_rebook_same_session(world):
    first = _book(world, world.student_user)
    cancel_bookings(world.student_user, first.booking_ids, today=world.today)
    again = _book(world, world.student_user)
    assert Booking.query.count() == 1
    assert again.created_ids == again.booking_ids


def test_unreachable_storage_is_a_transport_failure(world):
    result = _book(world, world.student_user)
    db.session.execute(text("DROP TABLE students"))
    db.session.commit()

    with pytest.raises(TransportFailure):
        _book(world, world.student_user, seat="A2", sessions=[world.noon.id])
    with pytest.raises(TransportFailure):
        cancel_bookings(world.student_user, result.booking_ids, today=world.today)


def test_student_id_must_be_an_integer(world):
    with pytest.raises(ValidationFailure) as exc:
        _book(world, world.teacher, subject_student_id="abc")
    assert "student_id" in exc.value.message


def test_study_contents_must_be_a_mapping(world):
    with pytest.raises(ValidationFailure):
        _book(world, world.student_user, study_contents=["Physics"])
    assert Booking.query.count() == 0


def test_unsectioned_seat_is_judged_under_the_configured_default(app, world):
    app.config["DEFAULT_SECTION"] = "Main"
    seat = Seat(zone_id=world.zone.id, seat_number="7", global_number=9)
    db.session.add(seat)
    AppSetting.set_value(RESTRICTION_ENABLED_KEY, True)
    AppSetting.set_value(RESTRICTIONS_KEY, {str(world.zone.id): {"Main": [1]}})
    db.session.commit()

    with pytest.raises(ValidationFailure) as exc:
        submit_booking(world.student_user, world.day, seat.id, [world.morning.id], today=world.today)
    assert exc.value.details["sub_zone"] == "Main"
