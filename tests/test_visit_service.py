from datetime import date
from unittest.mock import patch

import pytest

from core.errors import PackageDepletedError, ValidationError, VisitCompletionError, VisitLockedError
from models import ConsentForm, ConsentTemplate, Patient, VisitConsumable, VisitTreatment
from services.stock_service import ConsumableUse
from services.visit_service import (
    TreatmentEntry,
    administration_plan,
    check_in,
    complete_visit,
    list_waiting,
    record_vitals,
)


def _entry(treatment, package, dose="5", unit="mg"):
    return TreatmentEntry(
        treatment_id=treatment.id,
        package_id=package.id,
        dose_administered=dose,
        dose_unit=unit,
        treatment_name=treatment.treatment_name,
    )


def test_check_in_numbers_visits_per_patient(db, patient):
    first = check_in(db, patient.id)
    second = check_in(db, patient.id)

    assert (first.visit_number, second.visit_number) == (1, 2)
    assert [v.id for v in list_waiting(db)] == [first.id, second.id]


def test_record_vitals_requires_nurse(db, visit):
    with pytest.raises(ValidationError):
        record_vitals(db, visit.id, None, heart_rate=70)


def test_record_vitals(db, visit, staff):
    record_vitals(db, visit.id, staff.id, heart_rate=72, weight_kg=61.5)

    assert visit.vitals_completed
    assert visit.heart_rate == 72
    assert visit.nurse_staff_id == staff.id


def test_administration_plan_matches_consented_packages(db, visit, make_treatment, make_package, patient):
    botox = make_treatment("Botox")
    drip = make_treatment("IV Drip", unit="Session", default_dose=None)
    pkg = make_package(patient, botox, remaining=2)
    template = ConsentTemplate(form_name="General", consent_text="I consent.")
    db.add(template)
    db.flush()
    db.add_all([
        ConsentForm(visit_id=visit.id, treatment_id=t.id, consent_template_id=template.id, signature_url="sig.png")
        for t in (botox, drip)
    ])
    db.commit()

    plan = administration_plan(db, visit.id)

    by_name = {e.treatment_name: e for e in plan}
    assert by_name["Botox"].package_id == pkg.id
    assert by_name["Botox"].dose_administered == "20"
    assert by_name["Botox"].sessions_remaining == 2
    assert by_name["IV Drip"].package_id is None


def test_complete_visit_records_and_locks(db, visit, staff, patient, make_treatment, make_package, make_stock_item):
    botox = make_treatment()
    pkg = make_package(patient, botox, remaining=1, purchased=6)
    syringe = make_stock_item(current_stock=10)

    result = complete_visit(
        db, visit.id, [_entry(botox, pkg)], [ConsumableUse(syringe.id, 2)],
        doctor_notes="  Tolerated well ", staff_id=staff.id,
    )

    assert result.visit.is_locked
    assert result.visit.current_status == "completed"
    assert result.visit.doctor_notes == "Tolerated well"
    assert len(result.treatments_recorded) == 1
    assert len(result.consumables_recorded) == 1
    db.refresh(pkg)
    assert (pkg.sessions_remaining, pkg.status) == (0, "depleted")


def test_recorded_dose_is_unchanged_after_lock(db, visit, patient, make_treatment, make_package):
    botox = make_treatment()
    pkg = make_package(patient, botox, remaining=3)

    complete_visit(db, visit.id, [_entry(botox, pkg, dose="5", unit="mg")])
    db.expire_all()

    row = db.query(VisitTreatment).one()
    assert (row.dose_administered, row.dose_unit) == ("5", "mg")
    with pytest.raises(VisitLockedError):
        complete_visit(db, visit.id, [_entry(botox, pkg, dose="10")])
    db.expire_all()
    assert db.query(VisitTreatment).one().dose_administered == "5"


def test_empty_dose_entries_are_skipped(db, visit, patient, make_treatment, make_package):
    botox = make_treatment()
    pkg = make_package(patient, botox, remaining=3)

    result = complete_visit(db, visit.id, [_entry(botox, pkg, dose="  ")])

    assert result.treatments_recorded == []
    db.refresh(pkg)
    assert pkg.sessions_remaining == 3


def test_depleted_package_rejected_before_any_write(db, visit, patient, make_treatment, make_package):
    botox = make_treatment()
    pkg = make_package(patient, botox, remaining=0, purchased=6, status="depleted")

    with pytest.raises(ValidationError):
        complete_visit(db, visit.id, [_entry(botox, pkg)])

    db.refresh(visit)
    assert not visit.is_locked
    assert db.query(VisitTreatment).count() == 0


def test_package_of_other_patient_rejected(db, visit, make_treatment, make_package):
    other = Patient(file_number="CF0002", full_name="Other", phone_number="+971500000002",
                    email="o@example.com", date_of_birth=date(1985, 1, 1))
    db.add(other)
    db.commit()
    botox = make_treatment()
    pkg = make_package(other, botox)

    with pytest.raises(ValidationError):
        complete_visit(db, visit.id, [_entry(botox, pkg)])


def test_failure_in_consumables_rolls_back_everything(db, visit, patient, make_treatment, make_package):
    botox = make_treatment()
    pkg = make_package(patient, botox, remaining=2)

    with pytest.raises(VisitCompletionError) as info:
        complete_visit(db, visit.id, [_entry(botox, pkg)], [ConsumableUse(stock_item_id=999, quantity=1)])

    assert info.value.step == "consumables"
    db.expire_all()
    assert db.query(VisitTreatment).count() == 0
    assert db.query(VisitConsumable).count() == 0
    assert pkg.sessions_remaining == 2
    assert not visit.is_locked
    assert visit.current_status == "in_progress"


def test_failure_in_treatments_names_step(db, visit, patient, make_treatment, make_package):
    botox = make_treatment()
    pkg = make_package(patient, botox, remaining=2)

    with patch("services.visit_service.consume_session", side_effect=PackageDepletedError(pkg.id)):
        with pytest.raises(VisitCompletionError) as info:
            complete_visit(db, visit.id, [_entry(botox, pkg)])

    assert info.value.step == "treatments"
    db.expire_all()
    assert not visit.is_locked
    assert db.query(VisitTreatment).count() == 0


def test_unexpected_error_still_rolls_back(db, visit, patient, make_treatment, make_package):
    botox = make_treatment()
    pkg = make_package(patient, botox, remaining=2)

    with patch("services.visit_service.add_usage_rows", side_effect=RuntimeError("boom")):
        with pytest.raises(RuntimeError):
            complete_visit(db, visit.id, [_entry(botox, pkg)])

    db.expire_all()
    assert pkg.sessions_remaining == 2
    assert visit.current_status == "in_progress"
