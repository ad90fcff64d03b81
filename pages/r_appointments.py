from datetime import time

import streamlit as st

from core.database import get_db
from core.errors import ClinicError
from core.helpers import render_staff_sidebar, show_error
from core.session_manager import require_role
from core.time_utils import today_local
from services.appointment_service import (
    book_appointment,
    cancel_appointment,
    complete_appointment,
    list_for_day,
    mark_no_shows,
    reschedule,
)
from services.messaging_service import send_whatsapp, trigger_voice_call


def _appointment_row(db, appt):
    with st.container(border=True):
        c1, c2 = st.columns([3, 2])
        with c1:
            st.markdown(f"**{appt.appointment_time:%H:%M}** · {appt.patient_name} · {appt.service}")
            st.caption(f"{appt.phone} · {appt.status} · {appt.confirmation_status}")
        if appt.status != "upcoming":
            return
        with c2:
            b1, b2, b3, b4 = st.columns(4)
            try:
                if b1.button("Done", key=f"done_{appt.id}"):
                    complete_appointment(db, appt.id)
                    st.rerun()
                if b2.button("Cancel", key=f"cancel_{appt.id}"):
                    cancel_appointment(db, appt.id)
                    st.rerun()
                if b3.button("Remind", key=f"remind_{appt.id}"):
                    send_whatsapp(
                        appt.phone,
                        f"Reminder: your appointment on {appt.appointment_date:%d %b} at {appt.appointment_time:%H:%M}.",
                        patient_name=appt.patient_name,
                    )
                    st.toast("Reminder sent")
                if b4.button("Call", key=f"call_{appt.id}"):
                    trigger_voice_call(appt.id)
                    st.toast("Call started")
            except ClinicError as e:
                show_error("Appointment action", e)

        with st.popover("Reschedule"):
            new_date = st.date_input("New date", key=f"rs_date_{appt.id}")
            new_time = st.time_input("New time", value=time(10, 0), key=f"rs_time_{appt.id}")
            if st.button("Confirm", key=f"rs_ok_{appt.id}"):
                try:
                    reschedule(db, appt.id, new_date, new_time, booked_by=st.session_state.user.get("full_name"))
                    st.rerun()
                except ClinicError as e:
                    show_error("Rescheduling", e)


def main():
    require_role("reception")
    render_staff_sidebar()

    st.title("Appointments")
    db = next(get_db())

    marked = mark_no_shows(db)
    if marked:
        st.info(f"{len(marked)} appointment(s) marked as no-show.")

    day = st.date_input("Day", value=today_local())

    with st.expander("Book an appointment"):
        with st.form("book_appointment"):
            name = st.text_input("Patient name *")
            phone = st.text_input("Phone *")
            c1, c2 = st.columns(2)
            appt_date = c1.date_input("Date *", value=day)
            appt_time = c2.time_input("Time *", value=time(10, 0))
            service = st.text_input("Service *")
            is_new = st.checkbox("New patient")
            if st.form_submit_button("Book", type="primary"):
                try:
                    book_appointment(
                        db, name, phone, appt_date, appt_time, service,
                        booked_by=st.session_state.user.get("full_name"),
                        is_new_patient=is_new,
                    )
                    st.rerun()
                except ClinicError as e:
                    show_error("Booking", e)

    appointments = list_for_day(db, day)
    if not appointments:
        st.info("No appointments for this day.")
    for appt in appointments:
        _appointment_row(db, appt)


if __name__ == "__main__":
    main()
