import os
from datetime import date

import pytest

os.environ.setdefault("CLINIC_DATABASE_URL", "sqlite://")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import models  # noqa: E402,F401
from core.config import get_settings  # noqa: E402
from core.database import Base  # noqa: E402
from models import Package, Patient, Staff, StockItem, Treatment, Visit  # noqa: E402


@pytest.fixture(autouse=True)
def settings_env(tmp_path, monkeypatch):
    monkeypatch.setenv("CLINIC_UPLOAD_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("CLINIC_TIMEZONE", "UTC")
    monkeypatch.delenv("CLINIC_DEDUCT_STOCK_ON_USE", raising=False)
    monkeypatch.setenv("CLINIC_ARABIC_FONT_PATH", str(tmp_path / "fonts" / "missing.ttf"))
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def staff(db):
    member = Staff(email="doc@clinic.test", full_name="Dr Test", role="doctor", password_hash="x")
    db.add(member)
    db.commit()
    return member


@pytest.fixture
def patient(db):
    p = Patient(
        file_number="CF0001",
        full_name="Mariam Saleh",
        phone_number="+971500000001",
        email="mariam@example.com",
        date_of_birth=date(1990, 4, 2),
    )
    db.add(p)
    db.commit()
    return p


@pytest.fixture
def make_treatment(db):
    def _make(name="Botox", unit="Units", default_dose="20"):
        t = Treatment(treatment_name=name, category="Injectables", dosage_unit=unit, default_dose=default_dose)
        db.add(t)
        db.commit()
        return t
    return _make


@pytest.fixture
def make_package(db):
    def _make(patient, treatment, remaining=3, purchased=None, status="active"):
        pkg = Package(
            patient_id=patient.id,
            treatment_id=treatment.id,
            sessions_purchased=purchased or max(remaining, 1),
            sessions_remaining=remaining,
            status=status,
            payment_status="paid",
            total_amount=1050,
            amount_paid=1050,
        )
        db.add(pkg)
        db.commit()
        return pkg
    return _make


@pytest.fixture
def make_stock_item(db):
    def _make(name="Syringe 3ml", unit="pcs", current_stock=0, packaging_unit=None, units_per_package=None):
        item = StockItem(
            item_name=name,
            category="Syringes",
            unit=unit,
            current_stock=current_stock,
            packaging_unit=packaging_unit,
            units_per_package=units_per_package,
        )
        db.add(item)
        db.commit()
        return item
    return _make


@pytest.fixture
def visit(db, patient):
    v = Visit(patient_id=patient.id, visit_number=1, current_status="in_progress")
    db.add(v)
    db.commit()
    return v
