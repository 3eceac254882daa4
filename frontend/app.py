import sys
from pathlib import Path

APP_DIR = Path(__file__).resolve().parent
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

import streamlit as st
from utils.api_client import ApiClient, cached_stats, error_message
from utils.theme import (
    apply_theme,
    get_colors,
    kpi_tile,
    render_sidebar_profile,
)

st.set_page_config(
    page_title="Hospital Lab",
    page_icon="🧪",
    layout="wide",
    initial_sidebar_state="expanded",
)
apply_theme()
COLORS = get_colors()

# ── Session defaults ──────────────────────────────────────────────────────
if "token" not in st.session_state:
    st.session_state.token = None
if "user" not in st.session_state:
    st.session_state.user = None

client = ApiClient(token=st.session_state.token)

# ── Logged-in view ────────────────────────────────────────────────────────
if st.session_state.token:
    render_sidebar_profile(on_logout=client.logout)

    user = st.session_state.get("user") or {}
    role = user.get("role", "")

    st.markdown(
        f"""
        <div style="margin-bottom:8px;">
            <span style="font-size:1.8rem;font-weight:800;color:{COLORS['text']};">
                Welcome back, {user.get('firstName', '')}
            </span>
        </div>
        <p style="color:{COLORS['text_muted']};margin-top:0;">Signed in as {role}.</p>
        """,
        unsafe_allow_html=True,
    )

    if role in ("Admin", "Technician"):
        ok, data = cached_stats(st.session_state.token)
        if ok:
            stats = data["stats"]
            cols = st.columns(5)
            tiles = [
                ("Total Orders", stats["totalOrders"], COLORS["primary"]),
                ("Pending", stats["pendingOrders"], COLORS["info"]),
                ("In Progress", stats["inProgressOrders"], COLORS["warning"]),
                ("Completed", stats["completedOrders"], COLORS["success"]),
                ("Revenue", f"${stats['totalRevenue']:,.2f}", COLORS["text"]),
            ]
            for col, (label, value, color) in zip(cols, tiles):
                col.markdown(kpi_tile(label, value, color), unsafe_allow_html=True)

    st.markdown("<div style='height:24px'></div>", unsafe_allow_html=True)
    pages = {
        "Doctor": ["**Lab Orders**: order tests for a patient.", "**Lab Report**: review results and reports."],
        "Technician": [
            "**Lab Queue**: work through pending orders.",
            "**Result Entry**: record results for collected specimens.",
        ],
        "Admin": ["**Lab Queue**: monitor the lab.", "**Lab Report**: review any order."],
        "Patient": ["**Lab Report**: view your own lab reports."],
    }
    for line in pages.get(role, ["Use the sidebar to navigate."]):
        st.markdown(f"- {line}")

# ── Auth view ─────────────────────────────────────────────────────────────
else:
    _spacer_l, center, _spacer_r = st.columns([1, 2, 1])
    with center:
        st.markdown(
            f"""
            <h1 style="text-align:center;color:{COLORS['text']};margin:40px 0 4px 0;">🧪 Hospital Lab</h1>
            <p style="text-align:center;color:{COLORS['text_muted']};margin-bottom:32px;">
                Order tests, run the lab queue, and publish lab reports.
            </p>
            """,
            unsafe_allow_html=True,
        )

        tab_login, tab_register = st.tabs(["Login", "Register"])

        with tab_login:
            with st.form("login_form"):
                email = st.text_input("Email", placeholder="you@hospital.org")
                pwd = st.text_input("Password", type="password", placeholder="••••••••")
                submitted = st.form_submit_button("Sign in", use_container_width=True, type="primary")
            if submitted:
                if not email or not pwd:
                    st.error("Please enter both email and password.")
                else:
                    res = client.login(email, pwd)
                    if res.ok:
                        data = res.json()
                        st.session_state.token = data["token"]
                        st.session_state.user = data["user"]
                        st.rerun()
                    else:
                        st.error(error_message(res))

        with tab_register:
            with st.form("register_form"):
                first = st.text_input("First name")
                last = st.text_input("Last name")
                email_r = st.text_input("Email", key="reg_em")
                pwd_r = st.text_input("Password", type="password", placeholder="Min 6 characters", key="reg_pw")
                role_r = st.selectbox("Role", ["Patient", "Doctor", "Nurse", "Technician", "Receptionist"])
                gender_r = st.selectbox("Gender", ["", "Male", "Female", "Other"])
                submitted_r = st.form_submit_button("Create account", use_container_width=True, type="primary")
            if submitted_r:
                if not email_r or not pwd_r or not first or not last:
                    st.error("Name, email and password are required.")
                elif len(pwd_r) < 6:
                    st.error("Password must be at least 6 characters.")
                else:
                    res = client.register(
                        email=email_r,
                        password=pwd_r,
                        firstName=first,
                        lastName=last,
                        role=role_r,
                        gender=gender_r or None,
                    )
                    if res.ok:
                        data = res.json()
                        st.session_state.token = data["token"]
                        st.session_state.user = data["user"]
                        st.rerun()
                    else:
                        st.error(f"Registration failed: {error_message(res)}")
