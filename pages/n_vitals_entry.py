import streamlit as st

from core.database import get_db
from core.errors import ClinicError
from core.helpers import render_staff_sidebar, show_error
from core.session_manager import current_staff_id, require_role
from services.user_service import list_staff
from services.visit_service import get_visit_by_id, record_vitals

# Page config is set globally in app.py

require_role("nurse")
render_staff_sidebar()

st.title("Enter Patient Vitals")

if "current_visit_id" not in st.session_state:
    st.error("No visit selected. Open one from the waiting area.")
    st.stop()

db = next(get_db())
visit_id = st.session_state["current_visit_id"]

try:
    visit = get_visit_by_id(db, visit_id)
except ClinicError as e:
    st.error(str(e))
    st.stop()

st.caption(f"{visit.patient.full_name} · visit #{visit.visit_number}")

if visit.is_locked:
    st.warning("This visit is completed and locked.")
    st.stop()

nurses = list_staff(db, role="nurse")
nurse_ids = [n.id for n in nurses]
default_index = nurse_ids.index(current_staff_id()) if current_staff_id() in nurse_ids else None
nurse_id = st.selectbox(
    "Recorded by *",
    nurse_ids,
    index=default_index,
    format_func=lambda sid: next(n.full_name for n in nurses if n.id == sid),
)

c1, c2 = st.columns(2)
with c1:
    weight = st.number_input("Weight (kg)", min_value=0.0, value=float(visit.weight_kg or 0.0), step=0.1)
    systolic = st.number_input("Systolic BP", min_value=0, value=int(visit.blood_pressure_systolic or 0), step=1)
    diastolic = st.number_input("Diastolic BP", min_value=0, value=int(visit.blood_pressure_diastolic or 0), step=1)
with c2:
    heart_rate = st.number_input("Heart Rate", min_value=0, value=int(visit.heart_rate or 0), step=1)
    temperature = st.number_input(
        "Temperature (°C)", min_value=0.0, value=float(visit.temperature or 0.0), step=0.1, format="%.1f"
    )
    spo2 = st.number_input("SpO2 (%)", min_value=0, max_value=100, value=int(visit.spo2 or 0), step=1)

if st.button("Save Vitals", type="primary"):
    # Zero means "not measured"
    values = {
        "weight_kg": weight,
        "blood_pressure_systolic": systolic,
        "blood_pressure_diastolic": diastolic,
        "heart_rate": heart_rate,
        "temperature": temperature,
        "spo2": spo2,
    }
    try:
        record_vitals(db, visit_id, nurse_id, **{k: v for k, v in values.items() if v})
        st.success("Vitals saved successfully.")
        st.switch_page("pages/r_waiting_area.py")
    except ClinicError as e:
        show_error("Saving vitals", e)
