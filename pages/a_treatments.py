import streamlit as st

from core.database import get_db
from core.errors import ClinicError
from core.helpers import render_staff_sidebar, show_error
from core.session_manager import require_role
from models.treatment import DOSAGE_UNITS
from services.consent_service import create_template, current_template_for, new_template_version
from services.stock_service import list_stock_items
from services.treatment_service import (
    create_treatment,
    deactivate_treatment,
    get_default_consumables,
    list_active_treatments,
    set_default_consumables,
)


def _new_treatment_form(db):
    with st.form("new_treatment"):
        name = st.text_input("Treatment name *")
        c1, c2 = st.columns(2)
        category = c1.text_input("Category *")
        unit = c2.selectbox("Dosage unit *", DOSAGE_UNITS, index=DOSAGE_UNITS.index("Session"))
        doses = st.text_input("Common doses (comma separated)")
        default_dose = st.text_input("Default dose")
        if st.form_submit_button("Add Treatment", type="primary"):
            try:
                create_treatment(
                    db, name, category, unit,
                    common_doses=doses.split(","),
                    default_dose=default_dose,
                )
                st.rerun()
            except ClinicError as e:
                show_error("Adding treatment", e)


def _defaults_editor(db, treatment, stock_items):
    by_id = {i.id: i for i in stock_items}
    current = get_default_consumables(db, treatment.id)

    chosen = st.multiselect(
        "Default consumables",
        list(by_id),
        default=[sid for sid in current if sid in by_id],
        format_func=lambda sid: by_id[sid].item_name,
        key=f"defaults_{treatment.id}",
    )
    pairs = []
    for sid in chosen:
        qty = st.number_input(
            f"{by_id[sid].item_name} ({by_id[sid].unit})",
            min_value=0.0,
            value=float(current.get(sid, 1)),
            key=f"default_qty_{treatment.id}_{sid}",
        )
        pairs.append((sid, qty))
    if st.button("Save defaults", key=f"save_defaults_{treatment.id}"):
        try:
            set_default_consumables(db, treatment.id, pairs)
            st.toast("Defaults saved")
        except ClinicError as e:
            show_error("Saving defaults", e)


def _consent_editor(db, treatment):
    template = current_template_for(db, treatment.id)
    if template:
        st.caption(f"{template.form_name} · version {template.version_number}")
    form_name = st.text_input(
        "Form name", value=template.form_name if template else f"{treatment.treatment_name} Consent",
        key=f"form_name_{treatment.id}", disabled=template is not None,
    )
    text = st.text_area(
        "Consent text ([PATIENT_NAME], [TREATMENT_NAME], [DATE])",
        value=template.consent_text if template else "",
        key=f"consent_text_{treatment.id}",
    )
    text_ar = st.text_area(
        "Arabic text (optional)",
        value=(template.consent_text_ar or "") if template else "",
        key=f"consent_text_ar_{treatment.id}",
    )
    if st.button("Save consent", key=f"save_consent_{treatment.id}"):
        try:
            if template:
                new_template_version(db, template.id, text, text_ar or None)
            else:
                create_template(db, form_name, text, treatment_id=treatment.id, consent_text_ar=text_ar or None)
            st.toast("Consent template saved")
        except ClinicError as e:
            show_error("Saving consent", e)


def main():
    require_role("admin")
    render_staff_sidebar()

    st.title("Treatments")
    db = next(get_db())

    with st.expander("Add treatment"):
        _new_treatment_form(db)

    stock_items = list_stock_items(db)
    for treatment in list_active_treatments(db):
        with st.expander(f"{treatment.treatment_name} · {treatment.category} · {treatment.dosage_unit}"):
            tab_defaults, tab_consent = st.tabs(["Consumables", "Consent"])
            with tab_defaults:
                _defaults_editor(db, treatment, stock_items)
            with tab_consent:
                _consent_editor(db, treatment)
            if st.button("Deactivate", key=f"deactivate_treatment_{treatment.id}"):
                deactivate_treatment(db, treatment.id)
                st.rerun()


if __name__ == "__main__":
    main()
