import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import ClinicError, NotFoundError, ValidationError, VisitCompletionError, VisitLockedError
from core.time_utils import day_bounds, now_utc
from models.package import Package
from models.patient import Patient
from models.visit import Visit, VisitTreatment
from services.package_service import consume_session, list_administrable_packages
from services.stock_service import add_usage_rows

logger = logging.getLogger(__name__)

VITAL_FIELDS = (
    "weight_kg",
    "blood_pressure_systolic",
    "blood_pressure_diastolic",
    "heart_rate",
    "temperature",
    "spo2",
)


@dataclass
class TreatmentEntry:
    """One row of the administration form."""

    treatment_id: int
    package_id: int | None
    dose_administered: str
    dose_unit: str
    treatment_name: str = ""
    administration_details: str | None = None
    sessions_remaining: int | None = None


@dataclass
class CompletionResult:
    visit: Visit
    treatments_recorded: list = field(default_factory=list)
    consumables_recorded: list = field(default_factory=list)


# -----------------------------
# Lookups
# -----------------------------
def get_visit_by_id(db: Session, visit_id: int) -> Visit:
    visit = db.get(Visit, visit_id)
    if visit is None:
        raise NotFoundError(f"Visit {visit_id} not found.")
    return visit


def get_visits_for_patient(db: Session, patient_id: int):
    return (
        db.query(Visit)
        .filter(Visit.patient_id == patient_id)
        .order_by(Visit.visit_number.desc())
        .all()
    )


def list_waiting(db: Session):
    """Visits not yet completed, oldest first."""
    return (
        db.query(Visit)
        .filter(Visit.current_status.in_(["waiting", "in_progress"]))
        .order_by(Visit.visit_date.asc(), Visit.id.asc())
        .all()
    )


def list_completed_on(db: Session, day: date):
    start, end = day_bounds(day)
    return (
        db.query(Visit)
        .filter(
            Visit.current_status == "completed",
            Visit.completed_date >= start,
            Visit.completed_date < end,
        )
        .order_by(Visit.completed_date.desc())
        .all()
    )


def _editable_visit(db: Session, visit_id: int) -> Visit:
    visit = get_visit_by_id(db, visit_id)
    if visit.is_locked:
        raise VisitLockedError(visit_id)
    return visit


# -----------------------------
# Check-in and vitals
# -----------------------------
def check_in(db: Session, patient_id: int, reception_staff_id: int | None = None) -> Visit:
    """Open a new visit in the waiting area."""
    patient = db.get(Patient, patient_id)
    if patient is None:
        raise NotFoundError(f"Patient {patient_id} not found.")
    if patient.status != "active":
        raise ValidationError(f"{patient.full_name} is inactive.")

    # Per-patient sequential visit number
    existing_count = db.query(Visit).filter(Visit.patient_id == patient_id).count()

    visit = Visit(
        patient_id=patient_id,
        visit_number=existing_count + 1,
        current_status="waiting",
        reception_staff_id=reception_staff_id,
    )
    db.add(visit)
    db.commit()
    db.refresh(visit)
    logger.info("Checked in patient %s as visit #%s", patient.file_number, visit.visit_number)
    return visit


def start_visit(db: Session, visit_id: int) -> Visit:
    visit = _editable_visit(db, visit_id)
    if visit.current_status == "waiting":
        visit.current_status = "in_progress"
        db.commit()
        db.refresh(visit)
    return visit


def record_vitals(db: Session, visit_id: int, nurse_staff_id: int | None, **vitals) -> Visit:
    if not nurse_staff_id:
        raise ValidationError("Please select who is recording vitals.")

    unknown = set(vitals) - set(VITAL_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown vital(s): {', '.join(sorted(unknown))}")
    for name, value in vitals.items():
        if value is not None and value < 0:
            raise ValidationError(f"{name} cannot be negative.")

    visit = _editable_visit(db, visit_id)
    for name, value in vitals.items():
        if value is not None:
            setattr(visit, name, value)
    visit.nurse_staff_id = nurse_staff_id
    visit.vitals_completed = True
    if visit.current_status == "waiting":
        visit.current_status = "in_progress"

    db.commit()
    db.refresh(visit)
    logger.info("Vitals recorded for visit %s", visit_id)
    return visit


# -----------------------------
# Administration form
# -----------------------------
def administration_plan(db: Session, visit_id: int) -> list[TreatmentEntry]:
    """Pre-fill one entry per consented treatment, matched to a package with sessions left."""
    visit = get_visit_by_id(db, visit_id)

    treatments = []
    seen = set()
    for consent in visit.consent_forms:
        if consent.treatment_id not in seen:
            seen.add(consent.treatment_id)
            treatments.append(consent.treatment)

    packages = list_administrable_packages(db, visit.patient_id, seen)
    entries = []
    for treatment in treatments:
        package = next((p for p in packages if p.treatment_id == treatment.id), None)
        entries.append(
            TreatmentEntry(
                treatment_id=treatment.id,
                package_id=package.id if package else None,
                dose_administered=treatment.default_dose or "",
                dose_unit=treatment.dosage_unit or "Session",
                treatment_name=treatment.treatment_name,
                sessions_remaining=package.sessions_remaining if package else None,
            )
        )
    return entries


# -----------------------------
# Completion
# -----------------------------
def _validate_entries(db: Session, visit: Visit, entries):
    for entry in entries:
        label = entry.treatment_name or f"treatment {entry.treatment_id}"
        if not entry.package_id:
            raise ValidationError(f"No active package found for {label}.")
        package = db.get(Package, entry.package_id)
        if (
            package is None
            or package.patient_id != visit.patient_id
            or package.treatment_id != entry.treatment_id
        ):
            raise ValidationError(f"No active package found for {label}.")
        if package.status != "active" or package.sessions_remaining <= 0:
            raise ValidationError(f"The package for {label} has no sessions remaining.")
        if not (entry.dose_unit or "").strip():
            raise ValidationError(f"Dose unit is missing for {label}.")


def complete_visit(
    db: Session,
    visit_id: int,
    treatments,
    consumables=(),
    doctor_notes: str | None = None,
    staff_id: int | None = None,
) -> CompletionResult:
    """Complete and lock a visit.

    Steps: update the visit, record each dosed treatment and take its
    session, lock the visit, record consumables. All of it is one
    transaction: on any failure nothing is kept and VisitCompletionError
    names the step that failed.
    """
    visit = _editable_visit(db, visit_id)

    entries = [t for t in treatments if (t.dose_administered or "").strip()]
    _validate_entries(db, visit, entries)

    step = "visit"
    try:
        # Re-read the row under lock; another session may have completed it meanwhile
        visit = (
            db.query(Visit)
            .filter(Visit.id == visit_id)
            .with_for_update()
            .populate_existing()
            .one()
        )
        if visit.is_locked:
            raise VisitLockedError(visit_id)

        visit.current_status = "completed"
        visit.treatment_completed = True
        visit.doctor_notes = (doctor_notes or "").strip() or None
        visit.doctor_staff_id = staff_id
        visit.completed_date = now_utc()
        db.flush()

        step = "treatments"
        recorded = []
        for entry in entries:
            row = VisitTreatment(
                visit_id=visit_id,
                treatment_id=entry.treatment_id,
                package_id=entry.package_id,
                dose_administered=entry.dose_administered.strip(),
                dose_unit=entry.dose_unit,
                administration_details=(entry.administration_details or "").strip() or None,
                performed_by=staff_id,
                sessions_deducted=1,
            )
            db.add(row)
            consume_session(db, entry.package_id)
            recorded.append(row)

        step = "lock"
        visit.is_locked = True
        db.flush()

        step = "consumables"
        consumable_rows = add_usage_rows(db, visit_id, consumables, recorded_by=staff_id)

        db.commit()
    except VisitLockedError:
        db.rollback()
        raise
    except (SQLAlchemyError, ClinicError) as exc:
        db.rollback()
        logger.exception("Completing visit %s failed at step %s", visit_id, step)
        raise VisitCompletionError(visit_id, step, exc) from exc
    except Exception:
        db.rollback()
        raise

    db.refresh(visit)
    logger.info(
        "Visit %s completed: %d treatment(s), %d consumable(s)",
        visit_id, len(recorded), len(consumable_rows),
    )
    return CompletionResult(visit=visit, treatments_recorded=recorded, consumables_recorded=consumable_rows)
