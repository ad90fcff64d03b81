"""
Daily clinic report and staff/consumable summaries.

``export_daily_report`` builds the Excel workbook handed to the admin at the
end of the day: registered patients, treatments done in the range and
consumables used in the range, one sheet each.
"""

import logging
from datetime import date
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from sqlalchemy import func
from sqlalchemy.orm import Session

from core.time_utils import day_bounds, to_local
from models.patient import Patient
from models.staff import Staff
from models.stock import StockItem, VisitConsumable
from models.visit import Visit

logger = logging.getLogger(__name__)

MAX_COLUMN_WIDTH = 40

SHEETS = (
    ("patients", "Registered Patients", "No patients registered"),
    ("treatments", "Treatments Today", "No treatments completed today"),
    ("consumables", "Consumables Used", "No consumables used today"),
)


def _range_bounds(start: date, end: date | None):
    range_start, _ = day_bounds(start)
    _, range_end = day_bounds(end or start)
    return range_start, range_end


def _fmt(dt, pattern: str) -> str:
    return to_local(dt).strftime(pattern) if dt else "-"


def report_filename(start: date, end: date | None = None) -> str:
    if end and end != start:
        return f"Clinic_Daily_Report_{start:%Y-%m-%d}_to_{end:%Y-%m-%d}.xlsx"
    return f"Clinic_Daily_Report_{start:%Y-%m-%d}.xlsx"


# ---------------------------------------------------------
# Rows
# ---------------------------------------------------------
def _patient_rows(db: Session):
    rows = []
    for p in db.query(Patient).order_by(Patient.registration_date.desc()).all():
        rows.append({
            "File Number": p.file_number,
            "Full Name": p.full_name,
            "Phone Number": p.phone_number,
            "Email": p.email,
            "Date of Birth": p.date_of_birth.strftime("%d/%m/%Y") if p.date_of_birth else "",
            "Emirates ID": p.emirates_id or "",
            "Address": p.address or "",
            "Status": p.status,
            "Registration Date": _fmt(p.registration_date, "%d/%m/%Y %H:%M"),
        })
    return rows


def _treatment_rows(db: Session, range_start, range_end):
    visits = (
        db.query(Visit)
        .filter(
            Visit.current_status == "completed",
            Visit.completed_date >= range_start,
            Visit.completed_date < range_end,
        )
        .order_by(Visit.completed_date.desc())
        .all()
    )

    rows = []
    for visit in visits:
        patient_name = visit.patient.full_name if visit.patient else "Unknown"
        doctor = visit.doctor.full_name if visit.doctor else "-"
        nurse = visit.nurse.full_name if visit.nurse else "-"
        bp = (
            f"{visit.blood_pressure_systolic}/{visit.blood_pressure_diastolic}"
            if visit.blood_pressure_systolic and visit.blood_pressure_diastolic
            else "-"
        )
        base = {
            "Patient Name": patient_name,
            "Doctor": doctor,
            "Nurse": nurse,
            "Doctor Notes": visit.doctor_notes or "",
            "Vitals - BP": bp,
            "Vitals - HR": visit.heart_rate or "-",
            "Vitals - Weight (kg)": visit.weight_kg or "-",
        }
        if visit.visit_treatments:
            for vt in visit.visit_treatments:
                rows.append({
                    "Patient Name": patient_name,
                    "Treatment": vt.treatment.treatment_name if vt.treatment else "-",
                    "Category": vt.treatment.category if vt.treatment else "-",
                    "Dose": f"{vt.dose_administered} {vt.dose_unit}",
                    "Time": _fmt(vt.timestamp, "%H:%M"),
                    **{k: v for k, v in base.items() if k != "Patient Name"},
                })
        else:
            rows.append({
                "Patient Name": patient_name,
                "Treatment": "No treatments recorded",
                "Category": "-",
                "Dose": "-",
                "Time": _fmt(visit.completed_date, "%H:%M"),
                **{k: v for k, v in base.items() if k != "Patient Name"},
                "Vitals - BP": "-",
                "Vitals - HR": "-",
                "Vitals - Weight (kg)": "-",
            })
    return rows


def _consumable_rows(db: Session, range_start, range_end):
    used = (
        db.query(VisitConsumable)
        .filter(
            VisitConsumable.created_date >= range_start,
            VisitConsumable.created_date < range_end,
        )
        .order_by(VisitConsumable.created_date)
        .all()
    )
    rows = []
    for c in used:
        item = c.stock_item
        rows.append({
            "Item Name": item.item_name if item else "-",
            "Brand": (item.brand if item else None) or "-",
            "Variant": (item.variant if item else None) or "-",
            "Category": item.category if item else "-",
            "Quantity Used": c.quantity_used,
            "Unit": item.unit if item else "-",
            "Patient": c.visit.patient.full_name if c.visit and c.visit.patient else "-",
            "Notes": c.notes or "",
            "Time": _fmt(c.created_date, "%H:%M"),
        })
    return rows


def daily_report_rows(db: Session, start: date, end: date | None = None) -> dict:
    range_start, range_end = _range_bounds(start, end)
    return {
        "patients": _patient_rows(db),
        "treatments": _treatment_rows(db, range_start, range_end),
        "consumables": _consumable_rows(db, range_start, range_end),
    }


# ---------------------------------------------------------
# Workbook
# ---------------------------------------------------------
def _write_sheet(ws, rows, empty_message: str):
    if not rows:
        rows = [{"No Data": empty_message}]

    headers = list(rows[0].keys())
    ws.append(headers)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append([row.get(h, "") for h in headers])

    # Auto-width, capped
    for idx, header in enumerate(headers, start=1):
        longest = max([10] + [len(str(r.get(header, ""))) for r in rows] + [len(header)])
        ws.column_dimensions[get_column_letter(idx)].width = min(longest + 2, MAX_COLUMN_WIDTH)


def export_daily_report(db: Session, start: date, end: date | None = None) -> bytes:
    """Return the daily report workbook as .xlsx bytes."""
    data = daily_report_rows(db, start, end)

    wb = Workbook()
    wb.remove(wb.active)
    for key, title, empty_message in SHEETS:
        _write_sheet(wb.create_sheet(title), data[key], empty_message)

    buf = BytesIO()
    wb.save(buf)
    logger.info(
        "Daily report %s: %d patients, %d treatment rows, %d consumable rows",
        report_filename(start, end), len(data["patients"]), len(data["treatments"]), len(data["consumables"]),
    )
    return buf.getvalue()


# ---------------------------------------------------------
# Summaries
# ---------------------------------------------------------
def consumables_summary(db: Session, day: date):
    """Total quantity used per stock item on ``day``, largest first."""
    start, end = day_bounds(day)
    total = func.sum(VisitConsumable.quantity_used)
    rows = (
        db.query(StockItem.item_name, StockItem.unit, total.label("total"))
        .join(VisitConsumable, VisitConsumable.stock_item_id == StockItem.id)
        .filter(VisitConsumable.created_date >= start, VisitConsumable.created_date < end)
        .group_by(StockItem.id, StockItem.item_name, StockItem.unit)
        .order_by(total.desc(), StockItem.item_name)
        .all()
    )
    return [{"item_name": name, "unit": unit, "total": float(qty)} for name, unit, qty in rows]


def staff_activity(db: Session, start: date, end: date | None = None):
    """Completed visits per staff member in the date range, by role on the visit."""
    range_start, range_end = _range_bounds(start, end)
    completed = (
        db.query(Visit)
        .filter(
            Visit.current_status == "completed",
            Visit.completed_date >= range_start,
            Visit.completed_date < range_end,
        )
        .all()
    )

    counts: dict[int, dict] = {}
    for visit in completed:
        for staff_id, column in ((visit.doctor_staff_id, "as_doctor"), (visit.nurse_staff_id, "as_nurse")):
            if staff_id is None:
                continue
            entry = counts.setdefault(staff_id, {"staff_id": staff_id, "as_doctor": 0, "as_nurse": 0})
            entry[column] += 1

    names = {
        s.id: s.full_name
        for s in db.query(Staff).filter(Staff.id.in_(list(counts))).all()
    } if counts else {}
    result = []
    for staff_id, entry in counts.items():
        result.append({**entry, "full_name": names.get(staff_id, "-")})
    return sorted(result, key=lambda e: (-(e["as_doctor"] + e["as_nurse"]), e["full_name"]))
