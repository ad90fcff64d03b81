# models/staff.py

from sqlalchemy import Column, Integer, String, DateTime
from core.database import Base
from core.time_utils import now_utc

STAFF_ROLES = ("admin", "reception", "nurse", "doctor")


class Staff(Base):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)

    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)

    # admin | reception | nurse | doctor
    role = Column(String, nullable=False, default="reception")
    status = Column(String, nullable=False, default="active")

    password_hash = Column(String, nullable=False)

    created_date = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    def __repr__(self):
        return f"<Staff {self.email} ({self.role})>"
