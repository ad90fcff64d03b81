import logging

from sqlalchemy.orm import Session

from core.errors import NotFoundError, ValidationError
from models.stock import StockItem, TreatmentConsumable
from models.treatment import DOSAGE_UNITS, Treatment
from services.stock_service import ConsumableUse

logger = logging.getLogger(__name__)


# ------------------------------------------
# Catalog
# ------------------------------------------
def _check_treatment_fields(treatment_name, category, dosage_unit):
    if not (treatment_name or "").strip():
        raise ValidationError("Treatment name is required.")
    if not (category or "").strip():
        raise ValidationError("Category is required.")
    if dosage_unit not in DOSAGE_UNITS:
        raise ValidationError(f"Dosage unit must be one of {', '.join(DOSAGE_UNITS)}.")


def create_treatment(
    db: Session,
    treatment_name: str,
    category: str,
    dosage_unit: str = "Session",
    *,
    common_doses=None,
    default_dose: str | None = None,
    administration_method: str | None = None,
) -> Treatment:
    _check_treatment_fields(treatment_name, category, dosage_unit)

    treatment = Treatment(
        treatment_name=treatment_name.strip(),
        category=category.strip(),
        dosage_unit=dosage_unit,
        common_doses=[str(d).strip() for d in (common_doses or []) if str(d).strip()] or None,
        default_dose=(default_dose or "").strip() or None,
        administration_method=administration_method,
        status="active",
    )
    db.add(treatment)
    db.commit()
    db.refresh(treatment)
    logger.info("Created treatment %s", treatment.treatment_name)
    return treatment


def update_treatment(db: Session, treatment_id: int, **fields) -> Treatment:
    treatment = db.get(Treatment, treatment_id)
    if treatment is None:
        raise NotFoundError(f"Treatment {treatment_id} not found.")

    _check_treatment_fields(
        fields.get("treatment_name", treatment.treatment_name),
        fields.get("category", treatment.category),
        fields.get("dosage_unit", treatment.dosage_unit),
    )

    for key, value in fields.items():
        if hasattr(treatment, key) and key != "id":
            setattr(treatment, key, value)

    db.commit()
    db.refresh(treatment)
    return treatment


def deactivate_treatment(db: Session, treatment_id: int) -> Treatment:
    return update_treatment(db, treatment_id, status="inactive")


def list_active_treatments(db: Session):
    return (
        db.query(Treatment)
        .filter(Treatment.status == "active")
        .order_by(Treatment.treatment_name)
        .all()
    )


# ------------------------------------------
# Default consumables per treatment
# ------------------------------------------
def set_default_consumables(db: Session, treatment_id: int, defaults):
    """Replace the treatment's default consumables with ``[(stock_item_id, qty), ...]``."""
    if db.get(Treatment, treatment_id) is None:
        raise NotFoundError(f"Treatment {treatment_id} not found.")

    rows = []
    for stock_item_id, quantity in defaults:
        if quantity is None or quantity <= 0:
            raise ValidationError("Default quantity must be greater than zero.")
        if db.get(StockItem, stock_item_id) is None:
            raise NotFoundError(f"Stock item {stock_item_id} not found.")
        rows.append(
            TreatmentConsumable(
                treatment_id=treatment_id,
                stock_item_id=stock_item_id,
                default_quantity=quantity,
            )
        )

    db.query(TreatmentConsumable).filter(TreatmentConsumable.treatment_id == treatment_id).delete()
    db.add_all(rows)
    db.commit()
    logger.info("Treatment %s now has %d default consumable(s)", treatment_id, len(rows))
    return rows


def get_default_consumables(db: Session, treatment_id: int) -> dict[int, float]:
    rows = db.query(TreatmentConsumable).filter(TreatmentConsumable.treatment_id == treatment_id).all()
    return {row.stock_item_id: row.default_quantity for row in rows}


def merge_default_consumables(db: Session, treatment_ids) -> list[ConsumableUse]:
    """Sum default quantities per stock item across several treatments."""
    treatment_ids = list(treatment_ids)
    if not treatment_ids:
        return []

    defaults = (
        db.query(TreatmentConsumable)
        .filter(TreatmentConsumable.treatment_id.in_(treatment_ids))
        .order_by(TreatmentConsumable.id)
        .all()
    )

    merged: dict[int, float] = {}
    for row in defaults:
        if row.stock_item is None or row.stock_item.status != "active":
            continue
        merged[row.stock_item_id] = merged.get(row.stock_item_id, 0) + row.default_quantity

    return [ConsumableUse(stock_item_id=sid, quantity=qty) for sid, qty in merged.items()]
