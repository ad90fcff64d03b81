from .database import get_db, get_db_context, engine, SessionLocal, Base, init_db
from .auth import hash_password, verify_password
from .helpers import save_uploaded_file
from .session_manager import init_session_state, login, logout, clear_session, require_role

__all__ = [
    "get_db",
    "get_db_context",
    "engine",
    "SessionLocal",
    "Base",
    "init_db",
    "hash_password",
    "verify_password",
    "save_uploaded_file",
    "init_session_state",
    "login",
    "logout",
    "clear_session",
    "require_role",
]
