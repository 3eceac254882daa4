import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parent.parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from utils.api_client import ApiClient, cached_reports, error_message
from utils.theme import (
    apply_theme,
    auth_guard,
    flag_badge,
    get_colors,
    kpi_tile,
    plotly_layout_defaults,
    render_sidebar_profile,
    section_title,
    status_badge,
)

st.set_page_config(page_title="Lab Report", page_icon="📋", layout="wide")
apply_theme()
user = auth_guard()
client = ApiClient(token=st.session_state.token)
render_sidebar_profile(on_logout=client.logout)
COLORS = get_colors()
token = st.session_state.token

st.markdown(
    f"""
    <span style="font-size:1.6rem;font-weight:800;color:{COLORS['text']};">📋 Lab Report</span>
    <p style="color:{COLORS['text_muted']};margin-top:0;">Results and synthesized report of one lab order.</p>
    """,
    unsafe_allow_html=True,
)

# ── Order selector ────────────────────────────────────────────────────────
known = []
if user.get("role") in ("Doctor", "Technician", "Admin"):
    ok, reports = cached_reports(token)
    if ok:
        known = [r["orderId"] for r in reports]

if known:
    order_id = st.selectbox("Order", known)
else:
    order_id = st.text_input("Order number", placeholder="LAB000001")
if not order_id:
    st.stop()

res = client.report(order_id.strip())
if not res.ok:
    st.error(error_message(res))
    st.stop()
data = res.json()["report"]
order = data["order"]
lab_report = data["labReport"]

# ── Header tiles ──────────────────────────────────────────────────────────
patient = data["patient"] or {}
doctor = data["doctor"] or {}
cols = st.columns(4)
cols[0].markdown(kpi_tile("Order", order["orderId"], COLORS["primary"]), unsafe_allow_html=True)
cols[1].markdown(kpi_tile("Patient", f"{patient.get('firstName', '')} {patient.get('lastName', '')}", COLORS["text"]),
                 unsafe_allow_html=True)
cols[2].markdown(kpi_tile("Doctor", f"Dr. {doctor.get('lastName', '')}", COLORS["text"]), unsafe_allow_html=True)
cols[3].markdown(kpi_tile("Status", order["status"], COLORS["info"]), unsafe_allow_html=True)

if data.get("clinicalInfo"):
    st.caption(f"Clinical information: {data['clinicalInfo']}")

# ── Per-test results ──────────────────────────────────────────────────────
section_title("Results")
rows = []
for test in data["tests"]:
    result = test["result"] or {}
    value = (result.get("result") or {}).get("value")
    rows.append(
        {
            "Test": test["testName"],
            "Category": test["category"],
            "Status": test["status"],
            "Value": "" if value is None else str(value),
            "Unit": (result.get("result") or {}).get("unit") or "",
            "Flag": (result.get("result") or {}).get("flag") or "",
            "Reference": result.get("referenceRange") or "",
        }
    )
st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

# Numeric results against their catalog range.
numeric = [
    (t, t["result"]["result"]["value"])
    for t in data["tests"]
    if t["result"]
    and isinstance(t["result"]["result"]["value"], (int, float))
    and t["normalRange"]["min"] is not None
    and t["normalRange"]["max"] is not None
]
if numeric:
    fig = go.Figure()
    for test, value in numeric:
        low, high = test["normalRange"]["min"], test["normalRange"]["max"]
        fig.add_trace(
            go.Bar(
                x=[high - low],
                base=[low],
                y=[test["testName"]],
                orientation="h",
                marker_color=COLORS["success_light"],
                showlegend=False,
                hovertemplate=f"Normal {low}-{high}<extra></extra>",
            )
        )
        flagged = test["result"]["result"]["flag"] != "Normal"
        fig.add_trace(
            go.Scatter(
                x=[value],
                y=[test["testName"]],
                mode="markers",
                marker=dict(size=14, color=COLORS["danger"] if flagged else COLORS["primary"]),
                showlegend=False,
                hovertemplate=f"{value} {test['normalRange']['unit'] or ''}<extra></extra>",
            )
        )
    fig.update_layout(**plotly_layout_defaults("Value vs. normal range", height=120 + 60 * len(numeric)))
    st.plotly_chart(fig, use_container_width=True)

# ── Synthesized report ────────────────────────────────────────────────────
section_title("Report")
if not lab_report:
    st.info("No results have been completed for this order yet.")
    st.stop()

summary = lab_report["summary"]
st.markdown(
    f"{lab_report['reportId']} {status_badge(lab_report['status'])} &nbsp; "
    f"{summary['completedTests']}/{summary['totalTests']} completed, "
    f"{summary['abnormalResults']} abnormal, {summary['criticalResults']} critical",
    unsafe_allow_html=True,
)
for finding in lab_report["abnormalFindings"]:
    st.markdown(
        f"{flag_badge('Abnormal')} <b>{finding['testName']}</b>: {finding['finding']} ({finding['significance']})",
        unsafe_allow_html=True,
    )
st.markdown(f'<div class="info-card">{lab_report["clinicalSummary"] or ""}</div>', unsafe_allow_html=True)
if lab_report.get("finalDiagnosis"):
    st.markdown(f"**Final diagnosis:** {lab_report['finalDiagnosis']}")
if lab_report.get("recommendations"):
    st.markdown(f"**Recommendations:** {lab_report['recommendations']}")

if user.get("role") in ("Doctor", "Admin"):
    section_title("Verify Results")
    for test in data["tests"]:
        result = test["result"]
        if result and result["status"] == "Completed":
            if st.button(f"Verify {test['testName']}", key=f"verify_{result['id']}"):
                verified = client.verify_result(result["id"])
                if verified.ok:
                    st.success(f"{test['testName']} verified.")
                    st.rerun()
                else:
                    st.error(error_message(verified))

    if lab_report["status"] in ("Final", "Reviewed"):
        section_title("Review Report")
        with st.form("review_form"):
            diagnosis = st.text_area("Final diagnosis", value=lab_report.get("finalDiagnosis") or "")
            recommendations = st.text_area("Recommendations", value=lab_report.get("recommendations") or "")
            submitted = st.form_submit_button("Save review", type="primary")
        if submitted:
            reviewed = client.review_report(order["orderId"], diagnosis or None, recommendations or None)
            if reviewed.ok:
                st.success("Report reviewed.")
                st.rerun()
            else:
                st.error(error_message(reviewed))
