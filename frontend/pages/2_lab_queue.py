import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parent.parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import pandas as pd
import plotly.express as px
import streamlit as st

from utils.api_client import ApiClient, cached_stats, error_message
from utils.theme import (
    PLOTLY_COLORS,
    apply_theme,
    auth_guard,
    get_colors,
    plotly_layout_defaults,
    render_sidebar_profile,
    section_title,
    status_badge,
)

st.set_page_config(page_title="Lab Queue", page_icon="🧪", layout="wide")
apply_theme()
user = auth_guard("Doctor", "Technician", "Admin")
client = ApiClient(token=st.session_state.token)
render_sidebar_profile(on_logout=client.logout)
COLORS = get_colors()

st.markdown(
    f"""
    <span style="font-size:1.6rem;font-weight:800;color:{COLORS['text']};">🧪 Lab Queue</span>
    <p style="color:{COLORS['text_muted']};margin-top:0;">Open orders, most urgent first.</p>
    """,
    unsafe_allow_html=True,
)

# ── Filters ───────────────────────────────────────────────────────────────
cols = st.columns(4)
status = cols[0].selectbox("Order status", ["", "Pending", "InProgress", "Completed", "Cancelled"])
test_status = cols[1].selectbox("Test status", ["", "Ordered", "Collected", "InProgress", "Completed", "Cancelled"])
priority = cols[2].selectbox("Priority", ["", "STAT", "Urgent", "Routine"])
category = cols[3].selectbox(
    "Category", ["", "Hematology", "Chemistry", "Microbiology", "Immunology", "Pathology", "Radiology"]
)

res = client.queue(status=status, testStatus=test_status, priority=priority, category=category)
if not res.ok:
    st.error(error_message(res))
    st.stop()
orders = res.json()["orders"]

rows = [
    {
        "Order": o["orderId"],
        "Patient": f"{o['patient']['firstName']} {o['patient']['lastName']}" if o["patient"] else "",
        "Test": line["testName"],
        "Priority": line["priority"],
        "Test Status": line["status"],
        "Order Status": o["status"],
        "Ordered": o["orderedAt"],
    }
    for o in orders
    for line in o["tests"]
]
if rows:
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
else:
    st.info("The queue is empty.")

# ── Status update ─────────────────────────────────────────────────────────
if orders and user.get("role") in ("Technician", "Admin"):
    section_title("Update Test Status")
    by_id = {o["orderId"]: o for o in orders}
    order_id = st.selectbox("Order", list(by_id.keys()))
    order = by_id[order_id]
    lines = {line["testName"]: line for line in order["tests"]}
    test_name = st.selectbox("Test", list(lines.keys()))
    line = lines[test_name]
    st.markdown(f"Current status: {status_badge(line['status'])}", unsafe_allow_html=True)

    with st.form("status_form"):
        new_status = st.selectbox("New status", ["Collected", "InProgress", "Completed", "Cancelled"])
        notes = st.text_input("Notes")
        submitted = st.form_submit_button("Update", type="primary")
    if submitted:
        upd = client.update_test_status(order_id, line["testId"], new_status, notes or None)
        if upd.ok:
            st.success(f"{test_name} is now {new_status}.")
            st.rerun()
        else:
            st.error(error_message(upd))

# ── Statistics ────────────────────────────────────────────────────────────
if user.get("role") in ("Technician", "Admin"):
    ok, data = cached_stats(st.session_state.token)
    if ok and data.get("categoryStats"):
        section_title("Tests by Category")
        fig = px.bar(
            pd.DataFrame(data["categoryStats"]),
            x="category",
            y="count",
            color="category",
            color_discrete_sequence=PLOTLY_COLORS,
        )
        fig.update_layout(**plotly_layout_defaults(height=320), showlegend=False)
        st.plotly_chart(fig, use_container_width=True)
