"""
Package ledger: purchased treatment sessions per patient/treatment pair.

A package is created at purchase time and afterwards mutated by exactly one
operation, ``consume_session``, which takes one session per administered
treatment when a visit is completed.
"""

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import case, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import get_settings
from core.errors import NotFoundError, PackageDepletedError, PersistenceError, ValidationError
from models.package import Package, PackagePayment
from models.patient import Patient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageLine:
    treatment_id: int
    sessions: int


@dataclass(frozen=True)
class PaymentSplit:
    method: str
    amount: float


# ------------------------------------------
# Session consumption
# ------------------------------------------
def consume_session(db: Session, package_id: int) -> Package:
    """Take one session from a package inside the caller's transaction.

    The decrement is a single conditional UPDATE, so two concurrent
    completions cannot both read the same remaining count, and a package
    with no sessions left is refused rather than driven negative.
    Nothing is committed here.
    """
    db.flush()
    stmt = (
        update(Package)
        .where(Package.id == package_id, Package.sessions_remaining > 0)
        # status first: both assignments read the pre-update count on every backend
        .ordered_values(
            (Package.status, case((Package.sessions_remaining <= 1, "depleted"), else_="active")),
            (Package.sessions_remaining, Package.sessions_remaining - 1),
        )
        .execution_options(synchronize_session=False)
    )
    updated = db.execute(stmt).rowcount

    package = db.get(Package, package_id)
    if package is None:
        raise NotFoundError(f"Package {package_id} not found.")
    if not updated:
        raise PackageDepletedError(package_id)

    db.refresh(package)
    logger.info(
        "Package %s consumed one session (%s remaining, %s)",
        package_id, package.sessions_remaining, package.status,
    )
    return package


# ------------------------------------------
# Queries
# ------------------------------------------
def list_administrable_packages(db: Session, patient_id: int, treatment_ids=None):
    """Active packages that still have sessions; the only ones offered for administration."""
    query = db.query(Package).filter(
        Package.patient_id == patient_id,
        Package.status == "active",
        Package.sessions_remaining > 0,
    )
    if treatment_ids is not None:
        query = query.filter(Package.treatment_id.in_(list(treatment_ids)))
    return query.order_by(Package.purchase_date.asc(), Package.id.asc()).all()


def get_patient_packages(db: Session, patient_id: int):
    return (
        db.query(Package)
        .filter(Package.patient_id == patient_id)
        .order_by(Package.purchase_date.desc(), Package.id.desc())
        .all()
    )


# ------------------------------------------
# Purchase
# ------------------------------------------
def package_total(base_price: float) -> float:
    """VAT-inclusive package price."""
    return round(base_price * (1 + get_settings().vat_rate), 2)


def purchase_packages(
    db: Session,
    patient_id: int,
    lines,
    *,
    base_price: float,
    payments=(),
    complimentary_lines=(),
    payment_status: str = "paid",
    next_payment_date: date | None = None,
    next_payment_amount: float | None = None,
    mismatch_reason: str | None = None,
    created_by: int | None = None,
):
    """Create one package per purchased line (plus free complimentary ones).

    Returns the list of created packages, paid lines first.
    """
    settings = get_settings()

    valid_lines = [line for line in lines if line.treatment_id and line.sessions > 0]
    if not valid_lines:
        raise ValidationError("Please add at least one treatment with sessions.")

    total_amount = package_total(base_price)
    if total_amount <= 0:
        raise ValidationError("Please enter the package price.")

    if payment_status not in {"paid", "pending"}:
        raise ValidationError(f"Unknown payment status '{payment_status}'.")

    total_paid = round(sum(p.amount or 0 for p in payments), 2)
    shortfall = total_amount - total_paid
    if (
        payment_status == "paid"
        and shortfall > settings.payment_mismatch_tolerance
        and not (mismatch_reason or "").strip()
    ):
        raise ValidationError(
            f"Payments fall {shortfall:.2f} short of the total {total_amount:.2f}; "
            "a reason is required."
        )

    patient = db.get(Patient, patient_id)
    if patient is None:
        raise NotFoundError(f"Patient {patient_id} not found.")

    effective_status = "paid" if total_paid >= total_amount else "pending"
    created = []
    try:
        for line in valid_lines:
            package = Package(
                patient_id=patient_id,
                treatment_id=line.treatment_id,
                sessions_purchased=line.sessions,
                sessions_remaining=line.sessions,
                payment_status=effective_status,
                status="active",
                created_by=created_by,
                total_amount=total_amount,
                amount_paid=total_paid,
                next_payment_date=next_payment_date if payment_status == "pending" else None,
                next_payment_amount=(
                    next_payment_amount
                    if payment_status == "pending" and (next_payment_amount or 0) > 0
                    else None
                ),
                package_notes=mismatch_reason or None,
            )
            db.add(package)
            created.append(package)

        for line in complimentary_lines:
            if not line.treatment_id or line.sessions <= 0:
                continue
            package = Package(
                patient_id=patient_id,
                treatment_id=line.treatment_id,
                sessions_purchased=line.sessions,
                sessions_remaining=line.sessions,
                payment_status="paid",
                status="active",
                created_by=created_by,
                total_amount=0,
                amount_paid=0,
            )
            db.add(package)
            created.append(package)

        db.flush()
        for package in created[: len(valid_lines)]:
            package.bundle_id = created[0].id

        for split in payments:
            if split.amount and split.amount > 0:
                db.add(
                    PackagePayment(
                        package_id=created[0].id,
                        amount=split.amount,
                        payment_method=split.method.lower(),
                        notes=mismatch_reason or None,
                    )
                )

        if patient.consultation_status in {"consulted", "awaiting_consultation"}:
            patient.consultation_status = "converted"

        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to add packages for patient %s", patient_id)
        raise PersistenceError("Adding the packages failed; nothing was saved.") from exc

    for package in created:
        db.refresh(package)
    logger.info(
        "Patient %s bought %d package(s), total %.2f, paid %.2f (%s)",
        patient_id, len(created), total_amount, total_paid, effective_status,
    )
    return created


# ------------------------------------------
# Later payments
# ------------------------------------------
def bundle_packages(db: Session, package: Package):
    """The paid lines bought together with ``package`` (just itself for older rows)."""
    if package.bundle_id is None:
        return [package]
    return (
        db.query(Package)
        .filter(Package.bundle_id == package.bundle_id)
        .order_by(Package.id.asc())
        .all()
    )


def record_payment(db: Session, package_id: int, amount: float, method: str, notes: str | None = None):
    """Apply a later payment to the whole purchase ``package_id`` belongs to.

    Every package of the purchase carries the purchase total, so all of them
    get the new ``amount_paid`` and flip to ``paid`` together. The payment
    row is kept on the first package, next to the purchase-time splits.
    """
    if amount is None or not amount > 0:
        raise ValidationError("Payment amount must be greater than zero.")

    package = db.get(Package, package_id)
    if package is None:
        raise NotFoundError(f"Package {package_id} not found.")

    bundle = bundle_packages(db, package)
    amount_paid = round((bundle[0].amount_paid or 0) + amount, 2)
    settled = package.total_amount is not None and amount_paid >= package.total_amount

    try:
        db.add(PackagePayment(package_id=bundle[0].id, amount=amount, payment_method=method.lower(), notes=notes))
        for member in bundle:
            member.amount_paid = amount_paid
            if settled:
                member.payment_status = "paid"
                member.next_payment_date = None
                member.next_payment_amount = None
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to record payment on package %s", package_id)
        raise PersistenceError("Recording the payment failed; nothing was saved.") from exc

    db.refresh(package)
    logger.info(
        "Recorded payment of %.2f on package %s (%d in purchase, %s)",
        amount, package_id, len(bundle), package.payment_status,
    )
    return package
