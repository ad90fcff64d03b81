import pytest
from sqlalchemy import event
from sqlalchemy.exc import OperationalError

from core.errors import NotFoundError, PackageDepletedError, PersistenceError, ValidationError
from models import Package, PackagePayment
from services.package_service import (
    PackageLine,
    PaymentSplit,
    consume_session,
    list_administrable_packages,
    package_total,
    purchase_packages,
    record_payment,
)


@pytest.mark.parametrize("remaining", [1, 2, 5, 12])
def test_consume_session_decrements_and_sets_status(db, patient, make_treatment, make_package, remaining):
    pkg = make_package(patient, make_treatment(), remaining=remaining, purchased=12)

    consume_session(db, pkg.id)
    db.commit()

    db.refresh(pkg)
    assert pkg.sessions_remaining == remaining - 1
    assert pkg.status == ("depleted" if remaining == 1 else "active")


def test_last_session_depletes_package_and_hides_it(db, patient, make_treatment, make_package):
    treatment = make_treatment()
    pkg = make_package(patient, treatment, remaining=1, purchased=6)

    consume_session(db, pkg.id)
    db.commit()

    db.refresh(pkg)
    assert (pkg.sessions_remaining, pkg.status) == (0, "depleted")
    assert list_administrable_packages(db, patient.id) == []


def test_consume_session_refuses_empty_package(db, patient, make_treatment, make_package):
    pkg = make_package(patient, make_treatment(), remaining=0, purchased=6, status="depleted")

    with pytest.raises(PackageDepletedError):
        consume_session(db, pkg.id)

    db.refresh(pkg)
    assert pkg.sessions_remaining == 0


def test_consume_session_unknown_package(db):
    with pytest.raises(NotFoundError):
        consume_session(db, 999)


def test_administrable_packages_filter_by_treatment(db, patient, make_treatment, make_package):
    botox = make_treatment("Botox")
    drip = make_treatment("IV Drip", unit="Session")
    make_package(patient, botox, remaining=2)
    drip_pkg = make_package(patient, drip, remaining=1)

    result = list_administrable_packages(db, patient.id, {drip.id})

    assert [p.id for p in result] == [drip_pkg.id]


def test_package_total_includes_vat():
    assert package_total(1000) == 1050.0


def test_purchase_creates_paid_packages_and_payments(db, patient, make_treatment):
    botox = make_treatment("Botox")
    booster = make_treatment("Skin Booster", unit="ml")
    patient.consultation_status = "consulted"
    db.commit()

    created = purchase_packages(
        db,
        patient.id,
        [PackageLine(botox.id, 3), PackageLine(booster.id, 2), PackageLine(None, 4)],
        base_price=1000,
        payments=[PaymentSplit("Cash", 500), PaymentSplit("Card", 550)],
        complimentary_lines=[PackageLine(booster.id, 1)],
    )

    assert len(created) == 3
    assert all(p.sessions_remaining == p.sessions_purchased for p in created)
    assert [p.payment_status for p in created] == ["paid", "paid", "paid"]
    assert created[2].total_amount == 0
    payments = db.query(PackagePayment).all()
    assert {p.package_id for p in payments} == {created[0].id}
    assert sorted(p.payment_method for p in payments) == ["card", "cash"]
    db.refresh(patient)
    assert patient.consultation_status == "converted"


def test_purchase_short_payment_needs_reason(db, patient, make_treatment):
    botox = make_treatment()

    with pytest.raises(ValidationError):
        purchase_packages(
            db, patient.id, [PackageLine(botox.id, 3)],
            base_price=1000, payments=[PaymentSplit("Cash", 500)],
        )
    assert db.query(Package).count() == 0

    created = purchase_packages(
        db, patient.id, [PackageLine(botox.id, 3)],
        base_price=1000, payments=[PaymentSplit("Cash", 500)],
        mismatch_reason="Discount approved by manager",
    )
    assert created[0].payment_status == "pending"
    assert created[0].package_notes == "Discount approved by manager"


def test_purchase_requires_a_line(db, patient):
    with pytest.raises(ValidationError):
        purchase_packages(db, patient.id, [PackageLine(None, 2)], base_price=100)


def test_record_payment_settles_pending_package(db, patient, make_treatment):
    botox = make_treatment()
    (pkg,) = purchase_packages(
        db, patient.id, [PackageLine(botox.id, 3)],
        base_price=1000, payments=[PaymentSplit("Cash", 50)], payment_status="pending",
    )
    assert pkg.payment_status == "pending"

    record_payment(db, pkg.id, 1000, "Card")

    assert pkg.payment_status == "paid"
    assert pkg.amount_paid == 1050


def test_record_payment_rejects_zero(db, patient, make_treatment, make_package):
    pkg = make_package(patient, make_treatment())
    with pytest.raises(ValidationError):
        record_payment(db, pkg.id, 0, "Cash")


def _failing_commit(*args, **kwargs):
    raise OperationalError("COMMIT", {}, Exception("disk I/O error"))


def test_depleting_update_reads_count_before_decrementing(db, patient, make_treatment, make_package):
    pkg = make_package(patient, make_treatment(), remaining=2)
    statements = []

    def capture(conn, cursor, statement, *args):
        statements.append(statement)

    engine = db.get_bind()
    event.listen(engine, "before_cursor_execute", capture)
    try:
        consume_session(db, pkg.id)
    finally:
        event.remove(engine, "before_cursor_execute", capture)

    (update_sql,) = [s for s in statements if s.startswith("UPDATE packages")]
    assert update_sql.index("status=") < update_sql.index("sessions_remaining=")


def test_payment_settles_every_package_of_the_purchase(db, patient, make_treatment):
    botox = make_treatment("Botox")
    booster = make_treatment("Skin Booster", unit="ml")
    first, second, free = purchase_packages(
        db, patient.id, [PackageLine(botox.id, 3), PackageLine(booster.id, 2)],
        base_price=1000, payments=[PaymentSplit("Cash", 50)],
        complimentary_lines=[PackageLine(booster.id, 1)], payment_status="pending",
    )
    assert first.bundle_id == second.bundle_id == first.id
    assert free.bundle_id is None

    record_payment(db, first.id, 500, "Card")
    db.refresh(second)
    assert [(p.payment_status, p.amount_paid) for p in (first, second)] == [("pending", 550), ("pending", 550)]

    record_payment(db, second.id, 500, "Cash")
    db.refresh(first)
    assert [(p.payment_status, p.amount_paid) for p in (first, second)] == [("paid", 1050), ("paid", 1050)]
    assert first.next_payment_date is None

    payments = db.query(PackagePayment).all()
    assert {p.package_id for p in payments} == {first.id}
    assert sum(p.amount for p in payments) == 1050


def test_failed_purchase_commit_is_rolled_back(db, patient, make_treatment, monkeypatch):
    botox = make_treatment()
    monkeypatch.setattr(db, "commit", _failing_commit)

    with pytest.raises(PersistenceError) as exc_info:
        purchase_packages(
            db, patient.id, [PackageLine(botox.id, 3)],
            base_price=1000, payments=[PaymentSplit("Cash", 1050)],
        )

    assert isinstance(exc_info.value.__cause__, OperationalError)
    assert db.query(Package).count() == 0
    assert db.query(PackagePayment).count() == 0


def test_failed_payment_commit_leaves_package_pending(db, patient, make_treatment, monkeypatch):
    botox = make_treatment()
    (pkg,) = purchase_packages(
        db, patient.id, [PackageLine(botox.id, 3)],
        base_price=1000, payments=[PaymentSplit("Cash", 50)], payment_status="pending",
    )
    monkeypatch.setattr(db, "commit", _failing_commit)

    with pytest.raises(PersistenceError):
        record_payment(db, pkg.id, 1000, "Card")

    db.refresh(pkg)
    assert (pkg.payment_status, pkg.amount_paid) == ("pending", 50)
