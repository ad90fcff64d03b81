from datetime import date, datetime, timedelta, timezone
from io import BytesIO

from openpyxl import load_workbook

from core.config import get_settings
from core.time_utils import now_utc
from models import Visit, VisitConsumable
from services.report_service import (
    consumables_summary,
    daily_report_rows,
    export_daily_report,
    report_filename,
    staff_activity,
)
from services.stock_service import ConsumableUse
from services.visit_service import TreatmentEntry, complete_visit


def _complete(db, visit, treatment, package, staff, uses=()):
    entry = TreatmentEntry(
        treatment_id=treatment.id,
        package_id=package.id,
        dose_administered="20",
        dose_unit="Units",
        treatment_name=treatment.treatment_name,
    )
    return complete_visit(db, visit.id, [entry], uses, staff_id=staff.id)


def test_daily_rows_cover_patients_treatments_and_consumables(
    db, visit, patient, staff, make_treatment, make_package, make_stock_item
):
    botox = make_treatment()
    pkg = make_package(patient, botox)
    syringe = make_stock_item()
    _complete(db, visit, botox, pkg, staff, [ConsumableUse(syringe.id, 2)])

    rows = daily_report_rows(db, now_utc().date())

    assert [r["File Number"] for r in rows["patients"]] == ["CF0001"]
    (treatment_row,) = rows["treatments"]
    assert treatment_row["Treatment"] == "Botox"
    assert treatment_row["Dose"] == "20 Units"
    assert treatment_row["Doctor"] == "Dr Test"
    (consumable_row,) = rows["consumables"]
    assert consumable_row["Item Name"] == "Syringe 3ml"
    assert consumable_row["Quantity Used"] == 2
    assert consumable_row["Patient"] == "Mariam Saleh"


def test_visit_without_treatments_gets_placeholder_row(db, visit):
    complete_visit(db, visit.id, [])

    rows = daily_report_rows(db, now_utc().date())

    assert rows["treatments"][0]["Treatment"] == "No treatments recorded"


def test_other_days_are_excluded(db, visit, patient, staff, make_treatment, make_package):
    botox = make_treatment()
    _complete(db, visit, botox, make_package(patient, botox), staff)

    rows = daily_report_rows(db, now_utc().date() - timedelta(days=1))

    assert rows["treatments"] == []
    assert rows["consumables"] == []


def test_export_workbook_sheets(db, patient):
    data = export_daily_report(db, now_utc().date())

    wb = load_workbook(BytesIO(data))
    assert wb.sheetnames == ["Registered Patients", "Treatments Today", "Consumables Used"]
    assert wb["Treatments Today"]["A1"].value == "No Data"
    assert wb["Treatments Today"]["A2"].value == "No treatments completed today"
    assert wb["Registered Patients"]["A2"].value == "CF0001"
    assert 10 <= wb["Registered Patients"].column_dimensions["A"].width <= 40


def test_consumables_summary_and_staff_activity(
    db, patient, staff, make_treatment, make_package, make_stock_item
):
    botox = make_treatment()
    pkg = make_package(patient, botox, remaining=5)
    syringe = make_stock_item()
    swab = make_stock_item("Alcohol Swab")
    for number in (1, 2):
        v = Visit(patient_id=patient.id, visit_number=number, nurse_staff_id=staff.id)
        db.add(v)
        db.commit()
        _complete(db, v, botox, pkg, staff, [ConsumableUse(syringe.id, 1), ConsumableUse(swab.id, 2)])

    today = now_utc().date()
    summary = consumables_summary(db, today)
    activity = staff_activity(db, today)

    assert [(s["item_name"], s["total"]) for s in summary] == [("Alcohol Swab", 4.0), ("Syringe 3ml", 2.0)]
    assert activity == [{"staff_id": staff.id, "as_doctor": 2, "as_nurse": 2, "full_name": "Dr Test"}]


def test_report_filename():
    today = now_utc().date()
    assert report_filename(today) == f"Clinic_Daily_Report_{today:%Y-%m-%d}.xlsx"
    assert "_to_" in report_filename(today, today + timedelta(days=1))


def test_report_days_and_times_follow_clinic_timezone(db, settings_env, visit, make_stock_item):
    settings_env.setenv("CLINIC_TIMEZONE", "Asia/Dubai")
    get_settings.cache_clear()
    # 01:30 on 5 March in Dubai (UTC+4)
    done_at = datetime(2026, 3, 4, 21, 30, tzinfo=timezone.utc)
    syringe = make_stock_item()
    visit.current_status = "completed"
    visit.completed_date = done_at
    db.add(VisitConsumable(visit_id=visit.id, stock_item_id=syringe.id, quantity_used=1, created_date=done_at))
    db.commit()

    local_day = daily_report_rows(db, date(2026, 3, 5))
    previous_day = daily_report_rows(db, date(2026, 3, 4))

    assert local_day["treatments"][0]["Time"] == "01:30"
    assert local_day["consumables"][0]["Time"] == "01:30"
    assert previous_day["treatments"] == []
    assert previous_day["consumables"] == []
    assert consumables_summary(db, date(2026, 3, 5)) == [{"item_name": "Syringe 3ml", "unit": "pcs", "total": 1.0}]
