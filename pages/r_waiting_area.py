import streamlit as st
from streamlit_searchbox import st_searchbox

from core.database import get_db
from core.errors import ClinicError
from core.helpers import render_staff_sidebar, show_error
from core.session_manager import current_staff_id, require_role
from services.patient_service import search_patients
from services.visit_service import check_in, list_waiting, start_visit


def _patient_lookup(term: str):
    db = next(get_db())
    return [
        (f"{p.file_number} - {p.full_name} ({p.phone_number})", p.id)
        for p in search_patients(db, term)
    ]


def _open(visit_id: int, page: str):
    st.session_state["current_visit_id"] = visit_id
    st.switch_page(page)


def main():
    require_role("reception", "nurse", "doctor")
    render_staff_sidebar()

    db = next(get_db())
    role = st.session_state.role

    st.title("Waiting Area")

    if role in ("reception", "admin"):
        st.subheader("Check in a patient")
        patient_id = st_searchbox(
            _patient_lookup,
            key="checkin_search",
            placeholder="Search by name, phone or file number",
        )
        if patient_id and st.button("Check In", type="primary"):
            try:
                visit = check_in(db, patient_id, reception_staff_id=current_staff_id())
                st.success(f"Checked in as visit #{visit.visit_number}.")
                st.rerun()
            except ClinicError as e:
                show_error("Check-in", e)
        st.write("---")

    visits = list_waiting(db)
    st.subheader(f"Patients waiting ({len(visits)})")
    if not visits:
        st.info("No patients in the waiting area.")
        return

    for visit in visits:
        with st.container(border=True):
            c1, c2, c3, c4 = st.columns([3, 1, 1, 1])
            with c1:
                st.markdown(f"**{visit.patient.full_name}** · {visit.patient.file_number}")
                flags = [
                    ("Vitals", visit.vitals_completed),
                    ("Consent", visit.consent_signed),
                ]
                st.caption(
                    f"Visit #{visit.visit_number} · {visit.current_status} · "
                    + " · ".join(f"{label} {'✅' if done else '⏳'}" for label, done in flags)
                )
            with c2:
                if role in ("nurse", "admin") and st.button("Vitals", key=f"vitals_{visit.id}"):
                    _open(visit.id, "pages/n_vitals_entry.py")
            with c3:
                if st.button("Consent", key=f"consent_{visit.id}"):
                    _open(visit.id, "pages/n_consent_signing.py")
            with c4:
                if role in ("doctor", "admin") and st.button("Treat", key=f"treat_{visit.id}", type="primary"):
                    try:
                        start_visit(db, visit.id)
                    except ClinicError as e:
                        show_error("Opening visit", e)
                        continue
                    _open(visit.id, "pages/d_treatment_administration.py")


if __name__ == "__main__":
    main()
