import logging

import streamlit as st

from core.config import get_settings
from core.database import get_db_context, init_db
from core.helpers import hide_sidebar_completely, render_staff_sidebar
from core.logging_config import configure_logging
from core.session_manager import init_session_state, login, logout
from services.user_service import authenticate, ensure_default_staff

logger = logging.getLogger(__name__)

HOME_PAGES = {
    "admin": "pages/a_daily_report.py",
    "reception": "pages/r_waiting_area.py",
    "nurse": "pages/r_waiting_area.py",
    "doctor": "pages/r_waiting_area.py",
}


@st.cache_resource
def bootstrap():
    """Runs once per server process."""
    configure_logging()
    init_db()
    with get_db_context() as db:
        ensure_default_staff(db)
    return True


def main():
    settings = get_settings()
    st.set_page_config(
        page_title=settings.clinic_name,
        page_icon="💉",
        layout="wide",
        initial_sidebar_state="collapsed",
    )

    bootstrap()
    init_session_state()

    user = st.session_state.get("user")
    role = st.session_state.get("role")

    cols = st.columns([4, 2])
    with cols[0]:
        st.title(settings.clinic_name)
        st.caption(settings.clinic_subtitle)
    with cols[1]:
        if user:
            st.info(f"Logged in as: **{user.get('full_name', '')}** ({role})")
            if st.button("Log out"):
                logout()

    st.write("---")

    if user is None or role is None:
        hide_sidebar_completely()
        st.subheader("Staff login")

        with st.form("login_form"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Login")

        if submitted:
            with get_db_context() as db:
                staff = authenticate(db, email, password)
                if staff:
                    login(staff)
            if staff:
                logger.info("%s logged in", staff.email)
                st.query_params.clear()
                st.switch_page(HOME_PAGES.get(st.session_state.role, "pages/r_waiting_area.py"))
            else:
                st.error("Invalid credentials. Try again.")
        return

    render_staff_sidebar()
    st.subheader("Quick navigation")
    if st.button("Go to my start page", type="primary"):
        st.switch_page(HOME_PAGES.get(role, "pages/r_waiting_area.py"))


if __name__ == "__main__":
    main()
