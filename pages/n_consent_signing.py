import streamlit as st
from streamlit_drawable_canvas import st_canvas

from core.database import get_db
from core.errors import ClinicError
from core.helpers import canvas_to_png, render_staff_sidebar, show_error
from core.session_manager import require_role
from core.time_utils import now_local
from services.consent_service import (
    arabic_font_available,
    current_template_for,
    fill_placeholders,
    sign_consent,
)
from services.treatment_service import list_active_treatments
from services.visit_service import get_visit_by_id


def main():
    require_role("reception", "nurse", "doctor")
    render_staff_sidebar()

    st.title("Consent Form")

    visit_id = st.session_state.get("current_visit_id")
    if not visit_id:
        st.error("No visit selected. Open one from the waiting area.")
        return

    db = next(get_db())
    try:
        visit = get_visit_by_id(db, visit_id)
    except ClinicError as e:
        st.error(str(e))
        return

    patient = visit.patient
    st.caption(f"{patient.full_name} · visit #{visit.visit_number}")

    signed = {c.treatment_id for c in visit.consent_forms}
    if signed:
        st.success("Signed: " + ", ".join(c.treatment.treatment_name for c in visit.consent_forms))

    if visit.is_locked:
        st.warning("This visit is completed and locked.")
        return

    treatments = [t for t in list_active_treatments(db) if t.id not in signed]
    if not treatments:
        st.info("No further treatments to consent.")
        return

    treatment_id = st.selectbox(
        "Treatment",
        [t.id for t in treatments],
        format_func=lambda tid: next(t.treatment_name for t in treatments if t.id == tid),
    )
    treatment = next(t for t in treatments if t.id == treatment_id)
    template = current_template_for(db, treatment_id)
    if template is None:
        st.error(f"No consent template is linked to {treatment.treatment_name}.")
        return

    language = st.radio(
        "Language",
        ["en", "ar"],
        format_func=lambda code: "English" if code == "en" else "العربية",
        horizontal=True,
    )
    if language == "ar" and not arabic_font_available():
        st.warning(
            "No Arabic font is installed, so the signed PDF will be in English. "
            "Add assets/fonts/Amiri-Regular.ttf or set CLINIC_ARABIC_FONT_PATH."
        )
    text = template.consent_text_ar if language == "ar" and template.consent_text_ar else template.consent_text
    st.markdown(f"### {template.form_name}")
    st.markdown(fill_placeholders(text, patient.full_name, treatment.treatment_name, now_local()))

    st.write("Patient signature")
    canvas_result = st_canvas(
        stroke_width=3,
        stroke_color="#000000",
        background_color="#FFFFFF",
        update_streamlit=True,
        height=180,
        width=600,
        drawing_mode="freedraw",
        key=f"consent_canvas_{visit_id}_{treatment_id}",
    )

    if st.button("Sign Consent", type="primary"):
        signature = canvas_to_png(canvas_result.image_data)
        try:
            sign_consent(db, visit_id, treatment_id, signature, language=language)
            st.toast("Consent signed")
            st.rerun()
        except ClinicError as e:
            show_error("Signing consent", e)


if __name__ == "__main__":
    main()
