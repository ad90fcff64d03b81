# models/visit.py

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey
from sqlalchemy import Text
from sqlalchemy.orm import relationship

from core.database import Base
from core.time_utils import now_utc


class Visit(Base):
    __tablename__ = "visits"

    id = Column(Integer, primary_key=True, index=True)

    # Link to patient
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)

    # Per-patient sequence: first visit is 1
    visit_number = Column(Integer, nullable=False)
    visit_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    # waiting -> in_progress -> completed
    current_status = Column(String, nullable=False, default="waiting")

    # Vitals
    weight_kg = Column(Float, nullable=True)
    blood_pressure_systolic = Column(Integer, nullable=True)
    blood_pressure_diastolic = Column(Integer, nullable=True)
    heart_rate = Column(Integer, nullable=True)
    temperature = Column(Float, nullable=True)
    spo2 = Column(Integer, nullable=True)

    doctor_notes = Column(Text, nullable=True)

    # Workflow flags
    consent_signed = Column(Boolean, nullable=False, default=False)
    vitals_completed = Column(Boolean, nullable=False, default=False)
    treatment_completed = Column(Boolean, nullable=False, default=False)
    # Terminal: no clinical edits once set
    is_locked = Column(Boolean, nullable=False, default=False)

    # Staff assignment
    reception_staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)
    nurse_staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)
    doctor_staff_id = Column(Integer, ForeignKey("staff.id"), nullable=True)

    created_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    completed_date = Column(DateTime(timezone=True), nullable=True)

    # ORM relationships
    patient = relationship("Patient", backref="visits")
    nurse = relationship("Staff", foreign_keys=[nurse_staff_id])
    doctor = relationship("Staff", foreign_keys=[doctor_staff_id])

    def __repr__(self):
        return f"<Visit #{self.visit_number} for Patient {self.patient_id} ({self.current_status})>"


class VisitTreatment(Base):
    """One administered dose. Written once at visit completion, never edited."""

    __tablename__ = "visit_treatments"

    id = Column(Integer, primary_key=True)
    visit_id = Column(Integer, ForeignKey("visits.id"), nullable=False, index=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id"), nullable=False)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False)

    dose_administered = Column(String, nullable=False)
    dose_unit = Column(String, nullable=False)
    administration_details = Column(String, nullable=True)
    sessions_deducted = Column(Integer, nullable=False, default=1)

    performed_by = Column(Integer, ForeignKey("staff.id"), nullable=True)
    timestamp = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    visit = relationship("Visit", backref="visit_treatments")
    treatment = relationship("Treatment")
    package = relationship("Package")
