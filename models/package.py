# models/package.py

from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from core.database import Base
from core.time_utils import now_utc


class Package(Base):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)

    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id"), nullable=False)

    # Session ledger: 0 <= sessions_remaining <= sessions_purchased
    sessions_purchased = Column(Integer, nullable=False)
    sessions_remaining = Column(Integer, nullable=False)

    # active | depleted | expired
    status = Column(String, nullable=False, default="active")
    # paid | pending
    payment_status = Column(String, nullable=False, default="pending")

    total_amount = Column(Float, nullable=True)
    amount_paid = Column(Float, nullable=False, default=0)
    next_payment_date = Column(Date, nullable=True)
    next_payment_amount = Column(Float, nullable=True)
    package_notes = Column(Text, nullable=True)

    purchase_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    expiry_date = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(Integer, ForeignKey("staff.id"), nullable=True)

    # Paid lines of one purchase share the id of its first package
    bundle_id = Column(Integer, ForeignKey("packages.id"), nullable=True, index=True)

    # ORM relationships
    patient = relationship("Patient", backref="packages")
    treatment = relationship("Treatment")

    def __repr__(self):
        return f"<Package {self.id} {self.sessions_remaining}/{self.sessions_purchased} ({self.status})>"


class PackagePayment(Base):
    __tablename__ = "package_payments"

    id = Column(Integer, primary_key=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    payment_method = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    created_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    package = relationship("Package", backref="payments")
