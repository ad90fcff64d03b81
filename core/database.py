import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from contextlib import contextmanager
from dotenv import load_dotenv

load_dotenv()

# Path: project_root/data/clinic.db
BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DB_PATH = os.path.join(BASE_DIR, "data", "clinic.db")

DATABASE_URL = os.getenv("CLINIC_DATABASE_URL", f"sqlite:///{DB_PATH}")

if DATABASE_URL.startswith("sqlite"):
    os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)
    _connect_args = {"check_same_thread": False}
else:
    _connect_args = {}

# Create engine
engine = create_engine(DATABASE_URL, connect_args=_connect_args)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def get_db():
    """
    Generator yielding a session that is closed when exhausted.
    Pages call ``next(get_db())`` for a short-lived session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context():
    """
    Context manager for database sessions.
    Automatically closes session when done.

    Usage:
        with get_db_context() as db:
            result = db.query(Model).all()
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables registered on ``Base``."""
    import models  # noqa: F401  registers every table on Base.metadata

    Base.metadata.create_all(bind=bind or engine)
