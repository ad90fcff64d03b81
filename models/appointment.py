# models/appointment.py

from sqlalchemy import Column, Integer, String, Boolean, Date, Time, DateTime, ForeignKey
from core.database import Base
from core.time_utils import now_utc

APPOINTMENT_STATUSES = ("upcoming", "completed", "no_show", "rescheduled", "cancelled")


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Appointments may be booked before the caller is registered as a patient
    patient_name = Column(String, nullable=False)
    phone = Column(String, nullable=False)

    appointment_date = Column(Date, nullable=False, index=True)
    appointment_time = Column(Time, nullable=False)
    service = Column(String, nullable=False)
    booked_by = Column(String, nullable=True)

    status = Column(String, nullable=False, default="upcoming", index=True)
    confirmation_status = Column(String, nullable=False, default="unconfirmed")
    is_new_patient = Column(Boolean, nullable=False, default=False)
    no_show_count = Column(Integer, nullable=False, default=0)

    rescheduled_from = Column(Integer, ForeignKey("appointments.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    def __repr__(self):
        return f"<Appointment {self.patient_name} {self.appointment_date} {self.appointment_time}>"
