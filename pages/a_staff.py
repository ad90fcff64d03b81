import streamlit as st

from core.database import get_db
from core.errors import ClinicError
from core.helpers import render_staff_sidebar, show_error
from core.session_manager import current_staff_id, require_role
from models.staff import STAFF_ROLES
from services.user_service import create_staff, list_staff, set_staff_status


def main():
    require_role("admin")
    render_staff_sidebar()

    st.title("Staff")
    db = next(get_db())

    with st.expander("Add staff member"):
        with st.form("new_staff"):
            full_name = st.text_input("Full Name *")
            email = st.text_input("Email *")
            role = st.selectbox("Role *", STAFF_ROLES)
            password = st.text_input("Password *", type="password")
            if st.form_submit_button("Create Account", type="primary"):
                try:
                    create_staff(db, email, full_name, role, password)
                    st.success("Account created.")
                    st.rerun()
                except ClinicError as e:
                    show_error("Creating account", e)

    for staff in list_staff(db, active_only=False):
        c1, c2 = st.columns([4, 1])
        c1.markdown(f"**{staff.full_name}** · {staff.email} · {staff.role} · {staff.status}")
        if staff.id == current_staff_id():
            continue
        target = "inactive" if staff.status == "active" else "active"
        if c2.button("Deactivate" if target == "inactive" else "Reactivate", key=f"staff_{staff.id}"):
            set_staff_status(db, staff.id, target)
            st.rerun()


if __name__ == "__main__":
    main()
