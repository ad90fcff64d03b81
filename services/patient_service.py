import logging
import re
from datetime import date

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.errors import NotFoundError, ValidationError
from models.patient import Patient

logger = logging.getLogger(__name__)

CONSULTATION_STATUSES = ("awaiting_consultation", "consulted", "converted", "declined")

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# ------------------------------------------
# Generate file numbers like CF0001, CF0002
# ------------------------------------------
def generate_file_number(db: Session) -> str:
    latest = db.query(Patient).order_by(Patient.id.desc()).first()
    if not latest:
        return "CF0001"
    return f"CF{latest.id + 1:04d}"


def normalize_phone(phone: str) -> str:
    """Strip spaces and dashes, keep a leading +."""
    phone = (phone or "").strip()
    digits = re.sub(r"[^\d]", "", phone)
    return f"+{digits}" if phone.startswith("+") else digits


# ------------------------------------------
# Register a new patient
# ------------------------------------------
def register_patient(
    db: Session,
    full_name: str,
    phone_number: str,
    email: str,
    date_of_birth: date,
    *,
    emirates_id: str | None = None,
    address: str | None = None,
    consultation_status: str | None = None,
    registration_signature_url: str | None = None,
) -> Patient:
    full_name = (full_name or "").strip()
    phone = normalize_phone(phone_number)
    email = (email or "").strip()

    if not full_name:
        raise ValidationError("Full name is required.")
    if len(phone.lstrip("+")) < 7:
        raise ValidationError("A valid phone number is required.")
    if not _EMAIL_PATTERN.match(email):
        raise ValidationError("A valid email address is required.")
    if date_of_birth is None:
        raise ValidationError("Date of birth is required.")
    if date_of_birth > date.today():
        raise ValidationError("Date of birth cannot be in the future.")
    if consultation_status is not None and consultation_status not in CONSULTATION_STATUSES:
        raise ValidationError(f"Unknown consultation status '{consultation_status}'.")

    if db.query(Patient).filter(Patient.phone_number == phone).first():
        raise ValidationError("A patient with this phone number is already registered.")

    patient = Patient(
        file_number=generate_file_number(db),
        full_name=full_name,
        phone_number=phone,
        email=email,
        date_of_birth=date_of_birth,
        emirates_id=(emirates_id or "").strip() or None,
        address=(address or "").strip() or None,
        consultation_status=consultation_status,
        registration_signature_url=registration_signature_url,
        status="active",
    )
    db.add(patient)
    db.commit()
    db.refresh(patient)
    logger.info("Registered patient %s", patient.file_number)
    return patient


# ------------------------------------------
# Lookups
# ------------------------------------------
def get_patient(db: Session, patient_id: int) -> Patient:
    patient = db.get(Patient, patient_id)
    if patient is None:
        raise NotFoundError(f"Patient {patient_id} not found.")
    return patient


def search_patients(db: Session, term: str, limit: int = 20):
    term = (term or "").strip()
    if not term:
        return []
    like = f"%{term}%"
    return (
        db.query(Patient)
        .filter(
            Patient.status == "active",
            or_(
                Patient.full_name.ilike(like),
                Patient.phone_number.ilike(like),
                Patient.file_number.ilike(like),
            ),
        )
        .order_by(Patient.full_name)
        .limit(limit)
        .all()
    )


# ------------------------------------------
# Status changes (patients are never deleted)
# ------------------------------------------
def set_consultation_status(db: Session, patient_id: int, status: str) -> Patient:
    if status not in CONSULTATION_STATUSES:
        raise ValidationError(f"Unknown consultation status '{status}'.")
    patient = get_patient(db, patient_id)
    patient.consultation_status = status
    db.commit()
    db.refresh(patient)
    return patient


def deactivate_patient(db: Session, patient_id: int) -> Patient:
    patient = get_patient(db, patient_id)
    patient.status = "inactive"
    db.commit()
    db.refresh(patient)
    logger.info("Deactivated patient %s", patient.file_number)
    return patient
