from datetime import date

import streamlit as st

from core.database import get_db
from core.errors import ClinicError
from core.helpers import render_staff_sidebar, save_uploaded_file, show_error
from core.session_manager import current_staff_id, require_role
from services.patient_service import CONSULTATION_STATUSES, register_patient
from services.visit_service import check_in


def main():
    require_role("reception")
    render_staff_sidebar()

    st.title("Register New Patient")

    db = next(get_db())

    with st.form("patient_registration_form"):
        full_name = st.text_input("Full Name *")
        c1, c2 = st.columns(2)
        with c1:
            phone = st.text_input("Phone Number *", placeholder="+971 50 123 4567")
            dob = st.date_input(
                "Date of Birth *",
                value=None,
                min_value=date(1900, 1, 1),
                max_value=date.today(),
            )
        with c2:
            email = st.text_input("Email *")
            emirates_id = st.text_input("Emirates ID")
        address = st.text_area("Address")
        consultation = st.selectbox(
            "Consultation status",
            ["(none)"] + list(CONSULTATION_STATUSES),
        )
        signed_form = st.file_uploader("Signed registration form", type=["png", "jpg", "jpeg", "pdf"])
        check_in_now = st.checkbox("Check in to the waiting area after registering", value=True)
        submitted = st.form_submit_button("Register Patient", type="primary")

    if not submitted:
        return

    try:
        signed_path = save_uploaded_file(signed_form, "registration") if signed_form else None
        patient = register_patient(
            db,
            full_name,
            phone,
            email,
            dob,
            emirates_id=emirates_id,
            address=address,
            consultation_status=None if consultation == "(none)" else consultation,
            registration_signature_url=signed_path,
        )
        st.success(f"Registered {patient.full_name} as {patient.file_number}.")
        if check_in_now:
            visit = check_in(db, patient.id, reception_staff_id=current_staff_id())
            st.info(f"Checked in as visit #{visit.visit_number}.")
    except ClinicError as e:
        show_error("Registration", e)


if __name__ == "__main__":
    main()
