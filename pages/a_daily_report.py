import streamlit as st

from core.database import get_db
from core.helpers import render_staff_sidebar
from core.session_manager import require_role
from core.time_utils import today_local
from services.report_service import consumables_summary, export_daily_report, report_filename, staff_activity
from services.visit_service import list_completed_on


def main():
    require_role("admin")
    render_staff_sidebar()

    st.title("Daily Report")
    db = next(get_db())

    c1, c2 = st.columns(2)
    start = c1.date_input("From", value=today_local())
    end = c2.date_input("To", value=start, min_value=start)

    completed = list_completed_on(db, start)
    st.metric("Visits completed on first day", len(completed))

    st.subheader("Consumables used")
    summary = consumables_summary(db, start)
    if summary:
        st.dataframe(summary, use_container_width=True, hide_index=True)
    else:
        st.caption("None recorded.")

    st.subheader("Staff activity")
    activity = staff_activity(db, start, end)
    if activity:
        st.dataframe(activity, use_container_width=True, hide_index=True)
    else:
        st.caption("No completed visits in range.")

    st.download_button(
        "Download Excel report",
        data=export_daily_report(db, start, end),
        file_name=report_filename(start, end),
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        type="primary",
    )


if __name__ == "__main__":
    main()
