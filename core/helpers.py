import os
import uuid
from io import BytesIO

import numpy as np
import streamlit as st
from PIL import Image

from core.config import get_settings


def save_uploaded_file(uploaded_file, subfolder: str) -> str:
    """Saves an uploaded file under the upload dir and returns its full path."""
    folder_path = os.path.join(get_settings().upload_dir, subfolder)
    os.makedirs(folder_path, exist_ok=True)

    file_ext = os.path.splitext(uploaded_file.name)[1]
    filename = f"{uuid.uuid4().hex}{file_ext}"
    file_path = os.path.join(folder_path, filename)

    with open(file_path, "wb") as f:
        f.write(uploaded_file.getbuffer())

    return file_path


def canvas_to_png(image_data) -> bytes | None:
    """Convert drawable-canvas RGBA pixels to PNG bytes.

    Returns None when nothing has been drawn.
    """
    if image_data is None:
        return None
    pixels = np.asarray(image_data).astype("uint8")
    if pixels.ndim != 3 or pixels.shape[2] != 4 or not pixels[:, :, 3].any():
        return None

    # Flatten onto white so the signature prints on paper
    img = Image.fromarray(pixels, mode="RGBA")
    background = Image.new("RGB", img.size, (255, 255, 255))
    background.paste(img, mask=img.split()[3])

    buf = BytesIO()
    background.save(buf, format="PNG")
    return buf.getvalue()


def show_error(action: str, exc: Exception):
    """Toast plus inline error naming the failed action."""
    st.toast(f"{action} failed", icon="⚠️")
    st.error(f"{action} failed: {exc}")


# -----------------------------
# Sidebar helpers
# -----------------------------
NAV_ITEMS = [
    ("Waiting Area", "pages/r_waiting_area.py", ("reception", "nurse", "doctor")),
    ("Register Patient", "pages/r_patient_registration.py", ("reception",)),
    ("Packages", "pages/r_packages.py", ("reception",)),
    ("Appointments", "pages/r_appointments.py", ("reception",)),
    ("Consumables", "pages/a_consumables.py", ("nurse",)),
    ("Treatments", "pages/a_treatments.py", ()),
    ("Daily Report", "pages/a_daily_report.py", ()),
    ("Staff", "pages/a_staff.py", ()),
]


def hide_default_sidebar_nav():
    """Hide Streamlit's default multi-page navigation for a cleaner custom menu."""
    st.markdown(
        """
        <style>
        [data-testid="stSidebarNav"] { display: none; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def hide_sidebar_completely():
    """Completely hide the sidebar and its toggle (login view)."""
    st.markdown(
        """
        <style>
        [data-testid="stSidebar"] { display: none !important; }
        [data-testid="collapsedControl"] { display: none !important; }
        </style>
        """,
        unsafe_allow_html=True,
    )


def render_staff_sidebar():
    """Menu limited to the pages the logged-in role may open. Admin sees all."""
    hide_default_sidebar_nav()
    user = st.session_state.get("user") or {}
    role = user.get("role")
    with st.sidebar:
        st.markdown(f"### {get_settings().clinic_name}")
        st.caption(f"{user.get('full_name', '')} ({role})")
        for label, page, roles in NAV_ITEMS:
            if role == "admin" or role in roles:
                if st.button(label, use_container_width=True, key=f"nav_{page}"):
                    st.switch_page(page)
        st.divider()
        if st.button("Logout", use_container_width=True):
            from core.session_manager import logout
            logout()
