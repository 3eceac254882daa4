import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parent.parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import pandas as pd
import streamlit as st

from utils.api_client import ApiClient, cached_lab_tests, error_message
from utils.theme import apply_theme, auth_guard, get_colors, render_sidebar_profile, section_title

st.set_page_config(page_title="Lab Orders", page_icon="🧾", layout="wide")
apply_theme()
auth_guard("Doctor")
client = ApiClient(token=st.session_state.token)
render_sidebar_profile(on_logout=client.logout)
COLORS = get_colors()

st.markdown(
    f"""
    <span style="font-size:1.6rem;font-weight:800;color:{COLORS['text']};">🧾 New Lab Order</span>
    <p style="color:{COLORS['text_muted']};margin-top:0;">Pick tests from the catalog and send them to the lab.</p>
    """,
    unsafe_allow_html=True,
)

ok, catalog = cached_lab_tests(st.session_state.token)
if not ok:
    st.error("Failed to load the lab test catalog.")
    st.stop()

# ── Catalog browser ───────────────────────────────────────────────────────
section_title("Test Catalog")
search = st.text_input("Search tests", placeholder="e.g. glucose, CBC, TSH")
if search:
    res = client.lab_tests(search=search)
    visible = res.json()["tests"] if res.ok else []
else:
    visible = catalog

if visible:
    st.dataframe(
        pd.DataFrame(
            [
                {
                    "Code": t["testCode"],
                    "Test": t["testName"],
                    "Category": t["category"],
                    "Specimen": t["specimen"],
                    "TAT (h)": t["turnaroundTime"],
                    "Price": t["price"],
                }
                for t in visible
            ]
        ),
        use_container_width=True,
        hide_index=True,
    )
else:
    st.info("No tests match your search.")

# ── Order form ────────────────────────────────────────────────────────────
section_title("Order")
labels = {f"{t['testCode']} · {t['testName']}": t for t in catalog}

with st.form("order_form"):
    patient_id = st.text_input("Patient ID")
    encounter_id = st.text_input("Encounter ID (optional)")
    selected = st.multiselect("Tests", options=list(labels.keys()))
    priority = st.selectbox("Priority", ["Routine", "Urgent", "STAT"])
    instructions = st.text_input("Instructions for the lab (optional)")
    clinical_info = st.text_area("Clinical information")
    submitted = st.form_submit_button("Place order", type="primary")

if selected:
    total = sum(labels[label]["price"] for label in selected)
    st.caption(f"Estimated total: ${total:,.2f}")

if submitted:
    tests = [
        {"testId": labels[label]["id"], "priority": priority, "instructions": instructions or None}
        for label in selected
    ]
    res = client.create_order(patient_id.strip(), tests, clinical_info or None, encounter_id or None)
    if res.ok:
        order = res.json()["order"]
        st.success(f"Order {order['orderId']} created. Total ${order['totalAmount']:,.2f}")
        st.session_state.last_order_id = order["orderId"]
    else:
        st.error(error_message(res))
