"""
Consumable stock: catalog, restocking with packaging conversion, and usage.

Packaging
---------
A stock item is counted in a base unit (``pcs``, ``ml``...). Optionally it
has a packaging unit (``Box``) worth ``units_per_package`` base units. An item
starts *unconfigured*; the first restock may configure packaging, after which
restocking can be entered in packages. ``packaging_of`` turns the nullable
columns into one of two explicit states.

Restock wizard
--------------
``reduce_wizard`` is a pure reducer over ``StockWizardState`` so the page only
renders whatever step the state is in:

    packaging -> base_unit -> quantity     (unconfigured item)
    quantity                               (configured item)
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.errors import NotFoundError, PersistenceError, ValidationError
from models.stock import StockItem, VisitConsumable

logger = logging.getLogger(__name__)

CATEGORIES = [
    "Syringes",
    "Needles & Infusion",
    "Cannula",
    "Solutions",
    "Medicines",
    "Other Items",
    "Housekeeping",
]

DEFAULT_UNITS = ["pcs", "ml", "mg", "mcg", "Units", "vial", "box", "amp", "bottle", "tube", "pkt"]


# ---------------------------------------------------------
# Packaging states
# ---------------------------------------------------------
@dataclass(frozen=True)
class Unconfigured:
    base_unit: str


@dataclass(frozen=True)
class Configured:
    packaging_unit: str
    base_unit: str
    units_per_package: float


Packaging = Union[Unconfigured, Configured]


def packaging_of(item: StockItem) -> Packaging:
    if item.packaging_unit and item.units_per_package and item.units_per_package > 0:
        return Configured(item.packaging_unit, item.unit, float(item.units_per_package))
    return Unconfigured(item.unit)


# ---------------------------------------------------------
# Quantity conversion
# ---------------------------------------------------------
def compute_added_quantity(stock_to_add=None, packages_to_add=None, units_per_package=None) -> float:
    """Base-unit quantity for a restock.

    Either ``packages_to_add * units_per_package`` or ``stock_to_add``
    unchanged. Anything that does not come out strictly positive is rejected.
    """
    if packages_to_add is not None:
        if units_per_package is None or units_per_package <= 0:
            raise ValidationError("Units per package must be greater than zero.")
        quantity = packages_to_add * units_per_package
    elif stock_to_add is not None:
        quantity = stock_to_add
    else:
        raise ValidationError("Enter a quantity to add.")

    if not (math.isfinite(quantity) and quantity > 0):
        raise ValidationError("Quantity to add must be greater than zero.")
    return quantity


# ---------------------------------------------------------
# Restock wizard (pure)
# ---------------------------------------------------------
@dataclass(frozen=True)
class StockWizardState:
    step: str = "packaging"  # packaging | base_unit | quantity
    packaging_unit: str | None = None
    base_unit: str | None = None
    units_per_package: float | None = None
    configured: bool = False


@dataclass(frozen=True)
class ChoosePackaging:
    packaging_unit: str


@dataclass(frozen=True)
class SkipPackaging:
    pass


@dataclass(frozen=True)
class ChooseBaseUnit:
    base_unit: str
    units_per_package: float


@dataclass(frozen=True)
class Back:
    pass


@dataclass(frozen=True)
class Reset:
    pass


def start_wizard(item: StockItem) -> StockWizardState:
    packaging = packaging_of(item)
    if isinstance(packaging, Configured):
        return StockWizardState(
            step="quantity",
            packaging_unit=packaging.packaging_unit,
            base_unit=packaging.base_unit,
            units_per_package=packaging.units_per_package,
            configured=True,
        )
    return StockWizardState(step="packaging", base_unit=packaging.base_unit)


def reduce_wizard(state: StockWizardState, event) -> StockWizardState:
    """Return the next wizard state. Invalid events leave the state as is."""
    if isinstance(event, Reset):
        if state.configured:
            return state
        return StockWizardState(base_unit=state.base_unit)

    if state.configured:
        # Packaging is fixed once configured; only quantity entry remains
        return state

    if state.step == "packaging":
        if isinstance(event, ChoosePackaging) and event.packaging_unit.strip():
            return replace(state, step="base_unit", packaging_unit=event.packaging_unit.strip())
        if isinstance(event, SkipPackaging):
            return replace(state, step="quantity", packaging_unit=None, units_per_package=None)
        return state

    if state.step == "base_unit":
        if isinstance(event, ChooseBaseUnit):
            if not event.base_unit.strip() or event.units_per_package is None or event.units_per_package <= 0:
                return state
            return replace(
                state,
                step="quantity",
                base_unit=event.base_unit.strip(),
                units_per_package=float(event.units_per_package),
            )
        if isinstance(event, Back):
            return replace(state, step="packaging", packaging_unit=None)
        return state

    if state.step == "quantity" and isinstance(event, Back):
        if state.packaging_unit:
            return replace(state, step="base_unit", units_per_package=None)
        return replace(state, step="packaging")

    return state


def wizard_packaging(state: StockWizardState) -> Configured | None:
    """The packaging the wizard would persist, if any."""
    if state.step != "quantity" or state.configured or not state.packaging_unit:
        return None
    return Configured(state.packaging_unit, state.base_unit, state.units_per_package)


# ---------------------------------------------------------
# Restock
# ---------------------------------------------------------
def add_stock(
    db: Session,
    item_id: int,
    *,
    stock_to_add=None,
    packages_to_add=None,
    packaging: Configured | None = None,
) -> StockItem:
    """Increase ``current_stock`` and, on first use, configure packaging.

    Validation happens before anything is written. The packaging columns and
    the stock increase are committed together.
    """
    item = db.get(StockItem, item_id)
    if item is None:
        raise NotFoundError(f"Stock item {item_id} not found.")

    current = packaging_of(item)
    if packaging is not None:
        if not packaging.packaging_unit or not packaging.base_unit:
            raise ValidationError("Packaging unit and base unit are required.")
        if packaging.units_per_package is None or packaging.units_per_package <= 0:
            raise ValidationError("Units per package must be greater than zero.")
        if isinstance(current, Configured) and current != packaging:
            raise ValidationError(
                f"{item.item_name} is already packaged as "
                f"{current.packaging_unit} of {current.units_per_package:g} {current.base_unit}."
            )
        effective = packaging
    else:
        effective = current

    if packages_to_add is not None:
        if not isinstance(effective, Configured):
            raise ValidationError(f"{item.item_name} has no packaging configured.")
        quantity = compute_added_quantity(
            packages_to_add=packages_to_add,
            units_per_package=effective.units_per_package,
        )
    else:
        quantity = compute_added_quantity(stock_to_add=stock_to_add)

    try:
        if packaging is not None and isinstance(current, Unconfigured):
            item.packaging_unit = packaging.packaging_unit
            item.units_per_package = packaging.units_per_package
            item.unit = packaging.base_unit
        item.current_stock = (item.current_stock or 0) + quantity
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to add stock to item %s", item_id)
        raise PersistenceError("Adding stock failed; nothing was saved.") from exc

    db.refresh(item)
    logger.info("Added %g %s to %s (now %g)", quantity, item.unit, item.item_name, item.current_stock)
    return item


# ---------------------------------------------------------
# Catalog
# ---------------------------------------------------------
def create_stock_item(
    db: Session,
    item_name: str,
    category: str,
    unit: str = "pcs",
    *,
    brand: str | None = None,
    variant: str | None = None,
) -> StockItem:
    item_name = (item_name or "").strip()
    if not item_name:
        raise ValidationError("Item name is required.")
    if not category:
        raise ValidationError("Category is required.")
    if not (unit or "").strip():
        raise ValidationError("Unit is required.")

    item = StockItem(
        item_name=item_name,
        category=category,
        unit=unit.strip(),
        brand=(brand or "").strip() or None,
        variant=(variant or "").strip() or None,
        current_stock=0,
        status="active",
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info("Created stock item %s (%s)", item.item_name, item.category)
    return item


def update_stock_item(db: Session, item_id: int, **fields) -> StockItem:
    item = db.get(StockItem, item_id)
    if item is None:
        raise NotFoundError(f"Stock item {item_id} not found.")

    if "item_name" in fields and not (fields["item_name"] or "").strip():
        raise ValidationError("Item name is required.")
    if "category" in fields and not fields["category"]:
        raise ValidationError("Category is required.")

    for key in ("item_name", "category", "unit", "brand", "variant"):
        if key in fields:
            value = fields[key]
            setattr(item, key, value.strip() if isinstance(value, str) else value)

    db.commit()
    db.refresh(item)
    return item


def deactivate_stock_item(db: Session, item_id: int) -> StockItem:
    item = db.get(StockItem, item_id)
    if item is None:
        raise NotFoundError(f"Stock item {item_id} not found.")
    item.status = "inactive"
    db.commit()
    db.refresh(item)
    logger.info("Deactivated stock item %s", item.item_name)
    return item


def list_stock_items(db: Session, active_only: bool = True, category: str | None = None):
    query = db.query(StockItem)
    if active_only:
        query = query.filter(StockItem.status == "active")
    if category:
        query = query.filter(StockItem.category == category)
    return query.order_by(StockItem.category, StockItem.item_name).all()


def category_counts(items) -> dict[str, int]:
    counts: dict[str, int] = {}
    for item in items:
        counts[item.category] = counts.get(item.category, 0) + 1
    return counts


# ---------------------------------------------------------
# Usage
# ---------------------------------------------------------
@dataclass(frozen=True)
class ConsumableUse:
    stock_item_id: int
    quantity: float
    notes: str | None = None


def add_usage_rows(db: Session, visit_id: int, uses, recorded_by: int | None = None):
    """Stage ``VisitConsumable`` rows on the session without committing.

    Stock is only reduced when CLINIC_DEDUCT_STOCK_ON_USE is enabled, and
    then never below zero.
    """
    deduct = get_settings().deduct_stock_on_use
    rows = []
    for use in uses:
        if use.quantity is None or use.quantity <= 0:
            continue
        item = db.get(StockItem, use.stock_item_id)
        if item is None:
            raise NotFoundError(f"Stock item {use.stock_item_id} not found.")
        row = VisitConsumable(
            visit_id=visit_id,
            stock_item_id=use.stock_item_id,
            quantity_used=use.quantity,
            notes=use.notes,
            recorded_by=recorded_by,
        )
        db.add(row)
        rows.append(row)
        if deduct:
            item.current_stock = max(0, (item.current_stock or 0) - use.quantity)
    return rows

