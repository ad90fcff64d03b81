import streamlit as st


def init_session_state():
    """Ensure required session keys exist."""
    if "user" not in st.session_state:
        st.session_state.user = None
    if "role" not in st.session_state:
        st.session_state.role = None


def login(staff):
    """Persist the logged-in staff member as a plain dict and their role.

    The ORM row is detached once its session closes, so only the fields the
    pages need are kept.
    """
    st.session_state.user = {
        "id": staff.id,
        "email": staff.email,
        "full_name": staff.full_name,
        "role": staff.role,
    }
    st.session_state.role = staff.role


def logout():
    """Clear session and redirect to main app page."""
    clear_session()
    st.query_params.clear()
    st.switch_page("app.py")


def clear_session():
    """Clear session without redirect."""
    st.session_state.pop("user", None)
    st.session_state.pop("role", None)


def require_role(*roles: str):
    """Restrict page by role; send unauthorized users to app.py.

    Admin passes every gate.
    """
    init_session_state()

    if st.session_state.user is None:
        st.warning("Please log in to access this page.")
        st.switch_page("app.py")

    current = (st.session_state.role or "").strip().lower()
    allowed = {r.strip().lower() for r in roles} | {"admin"}

    if current not in allowed:
        st.error(f"Access denied. This page requires one of: {', '.join(sorted(allowed))}.")
        st.switch_page("app.py")


def current_staff_id():
    user = st.session_state.get("user") or {}
    return user.get("id")
