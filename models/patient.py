# models/patient.py

from sqlalchemy import Column, Integer, String, Date, DateTime
from core.database import Base
from core.time_utils import now_utc


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)

    # Human-friendly clinic file number (CF0001, CF0002...)
    file_number = Column(String, unique=True, index=True, nullable=False)

    # Identity
    full_name = Column(String, nullable=False)
    phone_number = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, nullable=False)
    date_of_birth = Column(Date, nullable=False)

    # Optional stored info
    emirates_id = Column(String, nullable=True)
    address = Column(String, nullable=True)
    registration_signature_url = Column(String, nullable=True)

    # Patients are never deleted; status flips to inactive instead
    status = Column(String, nullable=False, default="active")

    # awaiting_consultation -> consulted -> converted
    consultation_status = Column(String, nullable=True)

    registration_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    def __repr__(self):
        return f"<Patient {self.file_number} - {self.full_name}>"
