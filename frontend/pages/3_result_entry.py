import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parent.parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import streamlit as st

from utils.api_client import ApiClient, error_message
from utils.theme import apply_theme, auth_guard, flag_badge, get_colors, render_sidebar_profile, section_title

st.set_page_config(page_title="Result Entry", page_icon="🔬", layout="wide")
apply_theme()
auth_guard("Technician")
client = ApiClient(token=st.session_state.token)
render_sidebar_profile(on_logout=client.logout)
COLORS = get_colors()

st.markdown(
    f"""
    <span style="font-size:1.6rem;font-weight:800;color:{COLORS['text']};">🔬 Result Entry</span>
    <p style="color:{COLORS['text_muted']};margin-top:0;">
        Record results for tests whose specimen has been collected.
    </p>
    """,
    unsafe_allow_html=True,
)

order_id = st.text_input("Order number", value=st.session_state.get("last_order_id", ""), placeholder="LAB000001")
if not order_id:
    st.stop()

res = client.order(order_id.strip())
if not res.ok:
    st.error(error_message(res))
    st.stop()
order = res.json()["order"]

ready = [line for line in order["tests"] if line["status"] in ("Collected", "InProgress")]
if not ready:
    st.info("No tests of this order are ready for result entry. Mark the specimen as collected first.")
    st.stop()

section_title(f"Order {order['orderId']}")
lines = {line["testName"]: line for line in ready}
test_name = st.selectbox("Test", list(lines.keys()))
line = lines[test_name]

with st.form("result_form"):
    kind = st.radio("Value type", ["Numeric", "Text"], horizontal=True)
    if kind == "Numeric":
        value = st.number_input("Value", format="%.3f")
    else:
        value = st.text_input("Value")
    unit = st.text_input("Unit (leave blank for the catalog unit)")
    flag = st.selectbox("Flag (used when the value can't be checked against a numeric range)",
                        ["", "Normal", "Abnormal", "High", "Low", "Critical"])
    interpretation = st.text_area("Interpretation")
    comments = st.text_input("Comments")
    methodology = st.text_input("Methodology")
    instrument = st.text_input("Instrument")
    submitted = st.form_submit_button("Save result", type="primary")

if submitted:
    payload = {
        "orderId": order["orderId"],
        "testId": line["testId"],
        "result": {"value": value, "unit": unit or None, "flag": flag or None},
        "interpretation": interpretation or None,
        "comments": comments or None,
        "methodology": methodology or None,
        "instrument": instrument or None,
    }
    saved = client.enter_result(payload)
    if saved.ok:
        result = saved.json()["result"]
        st.markdown(
            f"Saved {result['testName']}: <b>{result['result']['value']} {result['result']['unit'] or ''}</b> "
            f"{flag_badge(result['result']['flag'])} (ref. {result['referenceRange']})",
            unsafe_allow_html=True,
        )
    else:
        st.error(error_message(saved))
