# models/treatment.py

from sqlalchemy import Column, Integer, String, DateTime, JSON
from core.database import Base
from core.time_utils import now_utc

DOSAGE_UNITS = ("mg", "ml", "Units", "mcg", "Session")


class Treatment(Base):
    __tablename__ = "treatments"

    id = Column(Integer, primary_key=True)
    treatment_name = Column(String, nullable=False)
    category = Column(String, nullable=False)
    dosage_unit = Column(String, nullable=False, default="Session")

    # Preset doses offered as quick picks, e.g. ["5", "10", "20"]
    common_doses = Column(JSON, nullable=True)
    default_dose = Column(String, nullable=True)
    administration_method = Column(String, nullable=True)

    # Plain reference (consent_templates.treatment_id already points back here)
    consent_template_id = Column(Integer, nullable=True)

    status = Column(String, nullable=False, default="active")
    created_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    def __repr__(self):
        return f"<Treatment {self.treatment_name} ({self.dosage_unit})>"
