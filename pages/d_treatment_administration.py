from dataclasses import replace

import streamlit as st

from core.database import get_db
from core.errors import ClinicError, VisitCompletionError
from core.helpers import render_staff_sidebar, show_error
from core.session_manager import current_staff_id, require_role
from services.stock_service import ConsumableUse, list_stock_items
from services.treatment_service import merge_default_consumables
from services.visit_service import administration_plan, complete_visit, get_visit_by_id


def _treatment_inputs(entries):
    """Dose fields per consented treatment; an empty dose leaves it out."""
    edited = []
    for entry in entries:
        with st.container(border=True):
            st.markdown(f"**{entry.treatment_name}**")
            if entry.package_id is None:
                st.error("No active package with sessions left.")
            else:
                st.caption(f"{entry.sessions_remaining} session(s) left in package")
            c1, c2 = st.columns([2, 1])
            with c1:
                dose = st.text_input("Dose", value=entry.dose_administered, key=f"dose_{entry.treatment_id}")
            with c2:
                st.text_input("Unit", value=entry.dose_unit, disabled=True, key=f"unit_{entry.treatment_id}")
            details = st.text_input("Administration details", key=f"details_{entry.treatment_id}")
            edited.append(replace(entry, dose_administered=dose, administration_details=details))
    return edited


def _consumable_inputs(db, defaults):
    items = list_stock_items(db)
    by_id = {i.id: i for i in items}
    default_qty = {d.stock_item_id: d.quantity for d in defaults}

    selected = st.multiselect(
        "Consumables used",
        [i.id for i in items],
        default=[sid for sid in default_qty if sid in by_id],
        format_func=lambda sid: f"{by_id[sid].item_name} ({by_id[sid].unit})",
    )
    uses = []
    for sid in selected:
        qty = st.number_input(
            f"{by_id[sid].item_name} ({by_id[sid].unit})",
            min_value=0.0,
            value=float(default_qty.get(sid, 1)),
            step=1.0,
            key=f"consumable_{sid}",
        )
        uses.append(ConsumableUse(stock_item_id=sid, quantity=qty))
    return uses


def main():
    require_role("doctor")
    render_staff_sidebar()

    st.title("Treatment Administration")

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

    st.caption(f"{visit.patient.full_name} · visit #{visit.visit_number}")
    if visit.is_locked:
        st.success("This visit is completed and locked.")
        return
    if not visit.consent_signed:
        st.warning("No consent has been signed for this visit yet.")

    entries = administration_plan(db, visit_id)
    if not entries:
        st.info("Sign a consent form for each treatment before administering it.")

    st.subheader("Treatments")
    edited = _treatment_inputs(entries)

    st.subheader("Consumables")
    defaults = merge_default_consumables(db, [e.treatment_id for e in entries])
    uses = _consumable_inputs(db, defaults)

    notes = st.text_area("Doctor notes")

    if st.button("Complete Visit", type="primary"):
        try:
            result = complete_visit(db, visit_id, edited, uses, doctor_notes=notes, staff_id=current_staff_id())
        except VisitCompletionError as e:
            st.toast(f"Failed at step: {e.step}", icon="⚠️")
            st.error(f"Nothing was saved. {e}")
            return
        except ClinicError as e:
            show_error("Completing visit", e)
            return
        st.session_state.pop("current_visit_id", None)
        st.success(
            f"Visit completed: {len(result.treatments_recorded)} treatment(s), "
            f"{len(result.consumables_recorded)} consumable(s)."
        )
        st.switch_page("pages/r_waiting_area.py")


if __name__ == "__main__":
    main()
