"""Seed a demo treatment catalog, consent templates and stock items.

Skips anything already present (matched by name), so it is safe to re-run.
"""
import logging

from core.database import get_db_context, init_db
from core.logging_config import configure_logging
from models.stock import StockItem
from models.treatment import Treatment
from services.consent_service import create_template
from services.stock_service import create_stock_item
from services.treatment_service import create_treatment, set_default_consumables

logger = logging.getLogger(__name__)

CONSENT_TEXT = (
    "I, [PATIENT_NAME], consent to receive [TREATMENT_NAME] on [DATE]. "
    "The procedure, its expected results and possible side effects have been explained to me."
)

STOCK = [
    ("Syringe 3ml", "Syringes", "pcs"),
    ("Needle 30G", "Needles & Infusion", "pcs"),
    ("Normal Saline 100ml", "Solutions", "ml"),
    ("Alcohol Swab", "Other Items", "pcs"),
]

TREATMENTS = [
    # name, category, unit, doses, default consumables
    ("Botox", "Injectables", "Units", ["20", "40", "50"], [("Syringe 3ml", 1), ("Needle 30G", 2), ("Alcohol Swab", 2)]),
    ("Vitamin C IV Drip", "IV Therapy", "Session", [], [("Normal Saline 100ml", 100), ("Alcohol Swab", 1)]),
    ("Skin Booster", "Injectables", "ml", ["1", "2"], [("Syringe 3ml", 1), ("Needle 30G", 1)]),
]


def main():
    configure_logging()
    init_db()

    with get_db_context() as db:
        stock = {i.item_name: i for i in db.query(StockItem).all()}
        for name, category, unit in STOCK:
            if name not in stock:
                stock[name] = create_stock_item(db, name, category, unit)

        existing = {t.treatment_name for t in db.query(Treatment).all()}
        for name, category, unit, doses, defaults in TREATMENTS:
            if name in existing:
                logger.info("Skipping existing treatment %s", name)
                continue
            treatment = create_treatment(db, name, category, unit, common_doses=doses,
                                         default_dose=doses[0] if doses else None)
            set_default_consumables(db, treatment.id, [(stock[item].id, qty) for item, qty in defaults])
            create_template(db, f"{name} Consent", CONSENT_TEXT, treatment_id=treatment.id)

    logger.info("Catalog seeded.")


if __name__ == "__main__":
    main()
