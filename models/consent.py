# models/consent.py

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from core.database import Base
from core.time_utils import now_utc


class ConsentTemplate(Base):
    __tablename__ = "consent_templates"

    id = Column(Integer, primary_key=True)
    form_name = Column(String, nullable=False)
    treatment_id = Column(Integer, ForeignKey("treatments.id"), nullable=True, index=True)

    # English body plus optional Arabic translation; may contain [PATIENT_NAME] etc.
    consent_text = Column(Text, nullable=False)
    consent_text_ar = Column(Text, nullable=True)

    version_number = Column(Integer, nullable=False, default=1)
    is_current_version = Column(Boolean, nullable=False, default=True)
    status = Column(String, nullable=False, default="active")

    created_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    last_updated = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    treatment = relationship("Treatment")


class ConsentForm(Base):
    """A signed consent for one treatment in one visit."""

    __tablename__ = "consent_forms"

    id = Column(Integer, primary_key=True)
    visit_id = Column(Integer, ForeignKey("visits.id"), nullable=False, index=True)
    treatment_id = Column(Integer, ForeignKey("treatments.id"), nullable=False)
    consent_template_id = Column(Integer, ForeignKey("consent_templates.id"), nullable=False)

    signature_url = Column(String, nullable=False)
    pdf_url = Column(String, nullable=True)
    # en | ar
    language = Column(String, nullable=False, default="en")
    signed_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    visit = relationship("Visit", backref="consent_forms")
    treatment = relationship("Treatment")
    consent_template = relationship("ConsentTemplate")
