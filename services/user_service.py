import logging
import os

from sqlalchemy.orm import Session

from core.auth import hash_password, verify_password
from core.errors import NotFoundError, ValidationError
from models.staff import STAFF_ROLES, Staff

logger = logging.getLogger(__name__)


def authenticate(db: Session, email: str, password: str):
    """Return the active staff member for these credentials, or None."""
    email = (email or "").strip().lower()
    if not email or not password:
        return None

    staff = db.query(Staff).filter(Staff.email == email).first()
    if staff is None or staff.status != "active":
        return None
    if not verify_password(password, staff.password_hash):
        logger.info("Failed login for %s", email)
        return None
    return staff


def create_staff(db: Session, email: str, full_name: str, role: str, password: str) -> Staff:
    email = (email or "").strip().lower()
    full_name = (full_name or "").strip()
    role = (role or "").strip().lower()

    if not email or "@" not in email:
        raise ValidationError("A valid email address is required.")
    if not full_name:
        raise ValidationError("Full name is required.")
    if role not in STAFF_ROLES:
        raise ValidationError(f"Role must be one of {', '.join(STAFF_ROLES)}.")
    if not password or len(password) < 6:
        raise ValidationError("Password must be at least 6 characters.")
    if db.query(Staff).filter(Staff.email == email).first():
        raise ValidationError("A staff member with this email already exists.")

    staff = Staff(
        email=email,
        full_name=full_name,
        role=role,
        status="active",
        password_hash=hash_password(password),
    )
    db.add(staff)
    db.commit()
    db.refresh(staff)
    logger.info("Created %s account %s", role, email)
    return staff


def ensure_default_staff(db: Session):
    """
    Creates the first admin account on a fresh database.
    Credentials come from CLINIC_ADMIN_EMAIL / CLINIC_ADMIN_PASSWORD.
    """
    if db.query(Staff).first():
        return None

    staff = create_staff(
        db,
        os.getenv("CLINIC_ADMIN_EMAIL", "admin@clinic.local"),
        "Administrator",
        "admin",
        os.getenv("CLINIC_ADMIN_PASSWORD", "admin123"),
    )
    logger.warning("Default admin account %s created; change its password.", staff.email)
    return staff


def list_staff(db: Session, role: str | None = None, active_only: bool = True):
    query = db.query(Staff)
    if role:
        query = query.filter(Staff.role == role)
    if active_only:
        query = query.filter(Staff.status == "active")
    return query.order_by(Staff.full_name).all()


def set_staff_status(db: Session, staff_id: int, status: str) -> Staff:
    if status not in ("active", "inactive"):
        raise ValidationError("Status must be 'active' or 'inactive'.")
    staff = db.get(Staff, staff_id)
    if staff is None:
        raise NotFoundError(f"Staff member {staff_id} not found.")
    staff.status = status
    db.commit()
    db.refresh(staff)
    logger.info("Staff %s set to %s", staff.email, status)
    return staff
