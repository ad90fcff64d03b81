from datetime import date, datetime, time

import pytest

from core.errors import ValidationError
from models import Appointment
from services.appointment_service import (
    book_appointment,
    cancel_appointment,
    list_for_day,
    mark_no_shows,
    reschedule,
)

DAY = date(2026, 3, 5)


def _book(db, at=time(10, 0), day=DAY):
    return book_appointment(db, "Mariam Saleh", "+971 50 123 4567", day, at, "Botox")


def test_book_and_list(db):
    late = _book(db, time(15, 0))
    early = _book(db, time(9, 0))

    assert [a.id for a in list_for_day(db, DAY)] == [early.id, late.id]
    assert early.phone == "+971501234567"
    assert early.status == "upcoming"


def test_book_requires_service(db):
    with pytest.raises(ValidationError):
        book_appointment(db, "Mariam", "0501234567", DAY, time(10, 0), " ")


def test_mark_no_shows_after_grace_period(db):
    overdue = _book(db, time(9, 0))
    recent = _book(db, time(11, 0))

    marked = mark_no_shows(db, now=datetime(2026, 3, 5, 12, 0))

    assert [a.id for a in marked] == [overdue.id]
    assert overdue.status == "no_show"
    assert overdue.no_show_count == 1
    assert recent.status == "upcoming"


def test_mark_no_shows_just_after_midnight_does_nothing(db):
    _book(db, time(0, 30))

    assert mark_no_shows(db, now=datetime(2026, 3, 5, 1, 0)) == []


def test_reschedule_links_new_appointment(db):
    old = _book(db)
    old.no_show_count = 1
    db.commit()

    new = reschedule(db, old.id, date(2026, 3, 9), time(14, 0))

    db.refresh(old)
    assert old.status == "rescheduled"
    assert new.rescheduled_from == old.id
    assert new.no_show_count == 1
    assert db.query(Appointment).count() == 2


def test_cancelled_appointment_cannot_be_rescheduled(db):
    appt = _book(db)
    cancel_appointment(db, appt.id)

    with pytest.raises(ValidationError):
        reschedule(db, appt.id, date(2026, 3, 9), time(14, 0))
