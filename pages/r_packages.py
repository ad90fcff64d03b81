import streamlit as st
from streamlit_searchbox import st_searchbox

from core.config import get_settings
from core.database import get_db
from core.errors import ClinicError
from core.helpers import render_staff_sidebar, show_error
from core.session_manager import current_staff_id, require_role
from services.package_service import (
    PackageLine,
    PaymentSplit,
    get_patient_packages,
    package_total,
    purchase_packages,
    record_payment,
)
from services.patient_service import get_patient, search_patients
from services.treatment_service import list_active_treatments

PAYMENT_METHODS = ["Cash", "Card", "Tabby", "Tamara", "Bank Transfer"]


def _patient_lookup(term: str):
    db = next(get_db())
    return [(f"{p.file_number} - {p.full_name}", p.id) for p in search_patients(db, term)]


def _line_editor(prefix: str, treatments, count: int):
    lines = []
    for i in range(count):
        c1, c2 = st.columns([3, 1])
        with c1:
            treatment_id = st.selectbox(
                "Treatment",
                [None] + [t.id for t in treatments],
                format_func=lambda tid: "Select..." if tid is None else next(
                    t.treatment_name for t in treatments if t.id == tid
                ),
                key=f"{prefix}_treatment_{i}",
            )
        with c2:
            sessions = st.number_input("Sessions", min_value=0, value=1, step=1, key=f"{prefix}_sessions_{i}")
        lines.append(PackageLine(treatment_id=treatment_id, sessions=int(sessions)))
    return lines


def _existing_packages(db, patient_id):
    packages = get_patient_packages(db, patient_id)
    if not packages:
        st.info("No packages yet.")
        return

    for pkg in packages:
        with st.container(border=True):
            c1, c2 = st.columns([3, 2])
            with c1:
                st.markdown(f"**{pkg.treatment.treatment_name}** · {pkg.status}")
                st.caption(
                    f"{pkg.sessions_remaining}/{pkg.sessions_purchased} sessions left · "
                    f"payment {pkg.payment_status} · paid {pkg.amount_paid:.2f} of {pkg.total_amount or 0:.2f}"
                )
            with c2:
                if pkg.payment_status == "pending" and pkg.bundle_id not in (None, pkg.id):
                    st.caption(f"Paid with package #{pkg.bundle_id}")
                elif pkg.payment_status == "pending":
                    amount = st.number_input("Amount", min_value=0.0, step=50.0, key=f"pay_amt_{pkg.id}")
                    method = st.selectbox("Method", PAYMENT_METHODS, key=f"pay_method_{pkg.id}")
                    if st.button("Record Payment", key=f"pay_{pkg.id}"):
                        try:
                            record_payment(db, pkg.id, amount, method)
                            st.rerun()
                        except ClinicError as e:
                            show_error("Recording payment", e)


def main():
    require_role("reception")
    render_staff_sidebar()

    st.title("Packages")
    db = next(get_db())
    settings = get_settings()

    patient_id = st_searchbox(_patient_lookup, key="package_patient", placeholder="Search patient")
    if not patient_id:
        st.info("Select a patient to view or add packages.")
        return

    patient = get_patient(db, patient_id)
    st.subheader(f"{patient.full_name} · {patient.file_number}")

    tab_existing, tab_new = st.tabs(["Current packages", "New purchase"])
    with tab_existing:
        _existing_packages(db, patient_id)

    with tab_new:
        treatments = list_active_treatments(db)
        line_count = st.number_input("Number of treatments", min_value=1, max_value=6, value=1, step=1)
        lines = _line_editor("paid", treatments, int(line_count))

        with st.expander("Complimentary sessions"):
            free_count = st.number_input("Complimentary treatments", min_value=0, max_value=3, value=0, step=1)
            free_lines = _line_editor("free", treatments, int(free_count))

        base_price = st.number_input("Package price (before VAT)", min_value=0.0, step=100.0)
        total = package_total(base_price)
        st.metric("Total incl. VAT", f"{total:,.2f}", help=f"VAT {settings.vat_rate:.0%}")

        payment_status = st.radio("Payment", ["paid", "pending"], horizontal=True)
        split_count = st.number_input("Payment methods", min_value=0, max_value=4, value=1, step=1)
        payments = []
        for i in range(int(split_count)):
            c1, c2 = st.columns(2)
            with c1:
                method = st.selectbox("Method", PAYMENT_METHODS, key=f"split_method_{i}")
            with c2:
                amount = st.number_input("Amount", min_value=0.0, step=50.0, key=f"split_amount_{i}")
            payments.append(PaymentSplit(method=method, amount=amount))

        next_date = next_amount = None
        if payment_status == "pending":
            next_date = st.date_input("Next payment date", value=None)
            next_amount = st.number_input("Next payment amount", min_value=0.0, step=50.0)

        paid = sum(p.amount for p in payments)
        mismatch_reason = None
        if payment_status == "paid" and total - paid > settings.payment_mismatch_tolerance:
            st.warning(f"Payments are {total - paid:,.2f} short of the total.")
            mismatch_reason = st.text_input("Reason for the difference *")

        if st.button("Create Packages", type="primary"):
            try:
                created = purchase_packages(
                    db,
                    patient_id,
                    lines,
                    base_price=base_price,
                    payments=payments,
                    complimentary_lines=free_lines,
                    payment_status=payment_status,
                    next_payment_date=next_date,
                    next_payment_amount=next_amount,
                    mismatch_reason=mismatch_reason,
                    created_by=current_staff_id(),
                )
                st.success(f"Created {len(created)} package(s).")
            except ClinicError as e:
                show_error("Creating packages", e)


if __name__ == "__main__":
    main()
