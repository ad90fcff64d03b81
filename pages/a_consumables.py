import streamlit as st

from core.database import get_db
from core.errors import ClinicError
from core.helpers import render_staff_sidebar, show_error
from core.session_manager import require_role
from services.stock_service import (
    CATEGORIES,
    DEFAULT_UNITS,
    Back,
    ChooseBaseUnit,
    ChoosePackaging,
    Configured,
    Reset,
    SkipPackaging,
    add_stock,
    category_counts,
    create_stock_item,
    deactivate_stock_item,
    list_stock_items,
    packaging_of,
    reduce_wizard,
    start_wizard,
    wizard_packaging,
)

PACKAGING_UNITS = ["Box", "Pack", "Carton", "Bottle", "Vial", "Bag"]


def _wizard_key(item_id: int) -> str:
    return f"stock_wizard_{item_id}"


def _dispatch(item_id: int, event):
    key = _wizard_key(item_id)
    st.session_state[key] = reduce_wizard(st.session_state[key], event)
    st.rerun()


def _add_stock_wizard(db, item):
    key = _wizard_key(item.id)
    if key not in st.session_state:
        st.session_state[key] = start_wizard(item)
    state = st.session_state[key]

    if state.step == "packaging":
        st.write("How does this item arrive?")
        unit = st.selectbox("Packaging unit", PACKAGING_UNITS, key=f"pkg_unit_{item.id}")
        c1, c2 = st.columns(2)
        if c1.button("Use packaging", key=f"pkg_next_{item.id}"):
            _dispatch(item.id, ChoosePackaging(unit))
        if c2.button("Single units", key=f"pkg_skip_{item.id}"):
            _dispatch(item.id, SkipPackaging())
        return

    if state.step == "base_unit":
        st.write(f"What is inside one {state.packaging_unit}?")
        base_unit = st.selectbox(
            "Base unit",
            DEFAULT_UNITS,
            index=DEFAULT_UNITS.index(state.base_unit) if state.base_unit in DEFAULT_UNITS else 0,
            key=f"base_unit_{item.id}",
        )
        per = st.number_input(
            f"{base_unit} per {state.packaging_unit}", min_value=0.0, value=1.0, step=1.0, key=f"per_{item.id}"
        )
        c1, c2 = st.columns(2)
        if c1.button("Back", key=f"base_back_{item.id}"):
            _dispatch(item.id, Back())
        if c2.button("Next", key=f"base_next_{item.id}"):
            _dispatch(item.id, ChooseBaseUnit(base_unit, per))
        return

    # quantity step
    packaging = wizard_packaging(state)
    current = packaging_of(item)
    effective = packaging or (current if isinstance(current, Configured) else None)

    packages = stock = None
    if effective is not None:
        packages = st.number_input(
            f"{effective.packaging_unit}(es) to add", min_value=0.0, step=1.0, key=f"qty_pkg_{item.id}"
        )
        st.caption(f"= {packages * effective.units_per_package:g} {effective.base_unit}")
    else:
        stock = st.number_input(f"{state.base_unit} to add", min_value=0.0, step=1.0, key=f"qty_units_{item.id}")

    c1, c2 = st.columns(2)
    if not state.configured and c1.button("Back", key=f"qty_back_{item.id}"):
        _dispatch(item.id, Back())
    if c2.button("Add Stock", type="primary", key=f"qty_add_{item.id}"):
        try:
            add_stock(db, item.id, stock_to_add=stock, packages_to_add=packages, packaging=packaging)
        except ClinicError as e:
            show_error("Adding stock", e)
            return
        st.session_state.pop(_wizard_key(item.id), None)
        st.toast(f"Stock updated for {item.item_name}")
        st.rerun()


def _new_item_form(db):
    with st.form("new_stock_item"):
        name = st.text_input("Item name *")
        c1, c2, c3 = st.columns(3)
        category = c1.selectbox("Category *", CATEGORIES)
        unit = c2.selectbox("Unit *", DEFAULT_UNITS)
        brand = c3.text_input("Brand")
        variant = st.text_input("Variant")
        if st.form_submit_button("Add Item"):
            try:
                create_stock_item(db, name, category, unit, brand=brand, variant=variant)
                st.rerun()
            except ClinicError as e:
                show_error("Adding item", e)


def main():
    require_role("nurse")
    render_staff_sidebar()

    st.title("Consumables")
    db = next(get_db())

    with st.expander("Add a new item"):
        _new_item_form(db)

    items = list_stock_items(db)
    counts = category_counts(items)
    category = st.radio(
        "Category",
        ["All"] + CATEGORIES,
        format_func=lambda c: f"{c} ({len(items) if c == 'All' else counts.get(c, 0)})",
        horizontal=True,
    )
    shown = items if category == "All" else [i for i in items if i.category == category]

    for item in shown:
        packaging = packaging_of(item)
        label = f"{item.item_name} · {item.current_stock:g} {item.unit}"
        if isinstance(packaging, Configured):
            label += f" · {packaging.packaging_unit} of {packaging.units_per_package:g}"
        with st.expander(label):
            _add_stock_wizard(db, item)
            st.divider()
            c1, c2 = st.columns(2)
            if c1.button("Restart", key=f"reset_{item.id}"):
                _dispatch(item.id, Reset())
            if c2.button("Deactivate", key=f"deactivate_{item.id}"):
                try:
                    deactivate_stock_item(db, item.id)
                    st.rerun()
                except ClinicError as e:
                    show_error("Deactivating item", e)


if __name__ == "__main__":
    main()
