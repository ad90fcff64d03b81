import logging
from datetime import date, datetime, time, timedelta

from sqlalchemy.orm import Session

from core.errors import NotFoundError, ValidationError
from core.time_utils import now_local
from models.appointment import Appointment
from services.patient_service import normalize_phone

logger = logging.getLogger(__name__)

NO_SHOW_GRACE = timedelta(hours=2)


def book_appointment(
    db: Session,
    patient_name: str,
    phone: str,
    appointment_date: date,
    appointment_time: time,
    service: str,
    *,
    booked_by: str | None = None,
    is_new_patient: bool = False,
    rescheduled_from: int | None = None,
) -> Appointment:
    if not (patient_name or "").strip():
        raise ValidationError("Patient name is required.")
    if not normalize_phone(phone):
        raise ValidationError("Phone number is required.")
    if appointment_date is None or appointment_time is None:
        raise ValidationError("Appointment date and time are required.")
    if not (service or "").strip():
        raise ValidationError("Service is required.")

    appointment = Appointment(
        patient_name=patient_name.strip(),
        phone=normalize_phone(phone),
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        service=service.strip(),
        booked_by=booked_by,
        is_new_patient=is_new_patient,
        rescheduled_from=rescheduled_from,
        status="upcoming",
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    logger.info("Booked appointment %s for %s on %s %s", appointment.id, appointment.patient_name,
                appointment_date, appointment_time)
    return appointment


def list_for_day(db: Session, day: date, status: str | None = None):
    query = db.query(Appointment).filter(Appointment.appointment_date == day)
    if status:
        query = query.filter(Appointment.status == status)
    return query.order_by(Appointment.appointment_time).all()


def _get(db: Session, appointment_id: int) -> Appointment:
    appointment = db.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFoundError(f"Appointment {appointment_id} not found.")
    return appointment


def reschedule(db: Session, appointment_id: int, new_date: date, new_time: time,
               booked_by: str | None = None) -> Appointment:
    if new_date is None or new_time is None:
        raise ValidationError("Appointment date and time are required.")
    old = _get(db, appointment_id)
    if old.status not in {"upcoming", "no_show"}:
        raise ValidationError(f"A {old.status} appointment cannot be rescheduled.")

    old.status = "rescheduled"
    db.flush()
    new = book_appointment(
        db,
        old.patient_name,
        old.phone,
        new_date,
        new_time,
        old.service,
        booked_by=booked_by or old.booked_by,
        is_new_patient=old.is_new_patient,
        rescheduled_from=old.id,
    )
    new.no_show_count = old.no_show_count
    db.commit()
    db.refresh(new)
    return new


def complete_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = _get(db, appointment_id)
    appointment.status = "completed"
    db.commit()
    db.refresh(appointment)
    return appointment


def cancel_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = _get(db, appointment_id)
    appointment.status = "cancelled"
    db.commit()
    db.refresh(appointment)
    return appointment


def mark_no_shows(db: Session, now: datetime | None = None, grace: timedelta = NO_SHOW_GRACE):
    """Flag today's upcoming appointments whose time passed more than ``grace`` ago.

    Appointment times are clinic-local, so ``now`` is a naive clinic-time
    datetime and defaults to the current time in CLINIC_TIMEZONE.
    """
    now = now or now_local().replace(tzinfo=None)
    cutoff_at = now - grace
    if cutoff_at.date() < now.date():
        return []
    cutoff = cutoff_at.time()

    overdue = (
        db.query(Appointment)
        .filter(
            Appointment.appointment_date == now.date(),
            Appointment.status == "upcoming",
            Appointment.appointment_time < cutoff,
        )
        .all()
    )
    for appointment in overdue:
        appointment.status = "no_show"
        appointment.no_show_count = (appointment.no_show_count or 0) + 1

    db.commit()
    if overdue:
        logger.info("Marked %d appointment(s) as no-show", len(overdue))
    return overdue
