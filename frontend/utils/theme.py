"""
Shared theme, CSS injection, color palette, and UI helper functions
for the Hospital Lab Streamlit frontend.
"""

from __future__ import annotations

import streamlit as st

# ---------------------------------------------------------------------------
# Color palettes (light + dark)
# ---------------------------------------------------------------------------
COLORS_LIGHT: dict[str, str] = {
    "primary": "#0D9488",       # teal-600
    "accent": "#F97316",        # orange-500
    "danger": "#EF4444",        # red-500
    "danger_light": "#FEE2E2",  # red-100
    "warning": "#F59E0B",       # amber-500
    "warning_light": "#FEF3C7", # amber-100
    "success": "#10B981",       # emerald-500
    "success_light": "#D1FAE5", # emerald-100
    "info": "#3B82F6",          # blue-500
    "info_light": "#DBEAFE",    # blue-100
    "text": "#1E293B",          # slate-800
    "text_muted": "#475569",    # slate-600
    "bg_card": "#FFFFFF",
    "bg_page": "#F8FAFC",       # slate-50
    "border": "#E2E8F0",        # slate-200
}

COLORS_DARK: dict[str, str] = {
    "primary": "#14B8A6",       # teal-400
    "accent": "#FB923C",        # orange-400
    "danger": "#F87171",        # red-400
    "danger_light": "#450A0A",  # red-950
    "warning": "#FBBF24",       # amber-400
    "warning_light": "#451A03", # amber-950
    "success": "#34D399",       # emerald-400
    "success_light": "#022C22", # emerald-950
    "info": "#60A5FA",          # blue-400
    "info_light": "#172554",    # blue-950
    "text": "#F1F5F9",          # slate-100
    "text_muted": "#94A3B8",    # slate-400
    "bg_card": "#1E293B",       # slate-800
    "bg_page": "#0F172A",       # slate-900
    "border": "#334155",        # slate-700
}


def get_colors() -> dict[str, str]:
    """Return the active palette based on ``st.session_state.dark_mode``."""
    if st.session_state.get("dark_mode", False):
        return COLORS_DARK
    return COLORS_LIGHT


# ---------------------------------------------------------------------------
# Plotly helpers (palette-aware)
# ---------------------------------------------------------------------------
PLOTLY_COLORS = [
    COLORS_LIGHT["primary"], COLORS_LIGHT["accent"], COLORS_LIGHT["info"],
    COLORS_LIGHT["success"], COLORS_LIGHT["danger"], COLORS_LIGHT["warning"],
]


def plotly_layout_defaults(title: str = "", height: int = 400) -> dict:
    """Return a dict of common Plotly layout kwargs for consistent styling."""
    c = get_colors()
    dark = st.session_state.get("dark_mode", False)
    axis = dict(
        tickfont=dict(size=12, color=c["text"]),
        linecolor=c["border"],
        gridcolor=c["border"],
    )
    return dict(
        title=dict(text=title, font=dict(size=16, color=c["text"])),
        template="plotly_dark" if dark else "plotly_white",
        height=height,
        margin=dict(l=40, r=20, t=50, b=40),
        font=dict(family="Inter, system-ui, sans-serif", size=13, color=c["text"]),
        plot_bgcolor=c["bg_card"] if dark else "rgba(0,0,0,0)",
        paper_bgcolor="rgba(0,0,0,0)",
        xaxis=dict(**axis),
        yaxis=dict(**axis),
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
    )


# ---------------------------------------------------------------------------
# CSS injection (built dynamically for active palette)
# ---------------------------------------------------------------------------
_CSS_TEMPLATE = """
<style>
[data-testid="stAppViewContainer"] {
    background-color: %(bg_page)s;
}
[data-testid="stAppViewContainer"] > section[data-testid="stMain"] p,
[data-testid="stAppViewContainer"] > section[data-testid="stMain"] span,
[data-testid="stAppViewContainer"] > section[data-testid="stMain"] li {
    color: %(text)s;
}

/* ---------- Badges ---------- */
.badge {
    display: inline-block;
    padding: 2px 10px;
    border-radius: 9999px;
    font-size: 0.75rem;
    font-weight: 600;
    letter-spacing: 0.03em;
}
.badge-danger  { background: %(danger_light)s;  color: %(danger)s; }
.badge-warning { background: %(warning_light)s; color: %(warning)s; }
.badge-info    { background: %(info_light)s;    color: %(info)s; }
.badge-success { background: %(success_light)s; color: %(success)s; }

/* ---------- KPI tile ---------- */
.kpi-tile {
    background: %(bg_card)s;
    border: 1px solid %(border)s;
    border-radius: 12px;
    padding: 20px;
    text-align: center;
    box-shadow: 0 1px 3px rgba(0,0,0,0.06);
}
.kpi-value {
    font-size: 2rem;
    font-weight: 800;
    line-height: 1.1;
}
.kpi-label {
    font-size: 0.82rem;
    color: %(text_muted)s;
    text-transform: uppercase;
    letter-spacing: 0.04em;
    margin-top: 6px;
}

/* ---------- Info card ---------- */
.info-card {
    background: %(bg_card)s;
    border: 1px solid %(border)s;
    border-left: 4px solid %(primary)s;
    border-radius: 8px;
    padding: 16px 20px;
    margin-bottom: 12px;
    color: %(text)s;
    font-size: 0.92rem;
    line-height: 1.5;
    white-space: pre-wrap;
}

/* ---------- Section title ---------- */
.section-title {
    font-size: 1.15rem;
    font-weight: 700;
    color: %(text)s;
    margin: 24px 0 12px 0;
    padding-bottom: 8px;
    border-bottom: 2px solid %(primary)s;
    display: inline-block;
}

/* ---------- Sidebar ---------- */
[data-testid="stSidebar"] {
    background-color: %(bg_card)s !important;
}
[data-testid="stSidebar"] * {
    color: %(text)s !important;
}
</style>
"""


def apply_theme() -> None:
    """Inject global CSS into the page. Call once at the top of every page."""
    if "dark_mode" not in st.session_state:
        st.session_state.dark_mode = False
    st.markdown(_CSS_TEMPLATE % get_colors(), unsafe_allow_html=True)


# ---------------------------------------------------------------------------
# Auth guard
# ---------------------------------------------------------------------------
def auth_guard(*roles: str) -> dict:
    """Stop the page unless someone is logged in, optionally with one of ``roles``."""
    if not st.session_state.get("token"):
        st.warning("Please log in from the **Home** page to continue.")
        st.stop()
    user = st.session_state.get("user") or {}
    if roles and user.get("role") not in roles:
        st.error(f"This page is available to: {', '.join(roles)}.")
        st.stop()
    return user


# ---------------------------------------------------------------------------
# Sidebar profile / logout / dark-mode toggle
# ---------------------------------------------------------------------------
def render_sidebar_profile(on_logout=None) -> None:
    """Render user initials, role, logout button, and dark-mode toggle."""
    if not st.session_state.get("token"):
        return
    user = st.session_state.get("user") or {}
    name = f"{user.get('firstName', '')} {user.get('lastName', '')}".strip() or user.get("email", "")
    initials = "".join(w[0].upper() for w in name.split()[:2]) if name else "?"
    c = get_colors()

    with st.sidebar:
        st.markdown(
            f"""
            <div style="text-align:center; padding: 16px 0 8px 0;">
                <div style="width:56px;height:56px;border-radius:50%;background:{c['primary']};
                    color:white;font-size:1.3rem;font-weight:700;display:inline-flex;
                    align-items:center;justify-content:center;margin-bottom:6px;">
                    {initials}
                </div>
                <div style="font-weight:600;color:{c['text']};font-size:0.95rem;">{name}</div>
                <div style="color:{c['text_muted']};font-size:0.8rem;">{user.get('role', '')}</div>
            </div>
            """,
            unsafe_allow_html=True,
        )
        st.divider()

        dark = st.toggle("🌙 Dark mode", value=st.session_state.get("dark_mode", False), key="dark_mode_toggle")
        if dark != st.session_state.get("dark_mode", False):
            st.session_state.dark_mode = dark
            st.rerun()

        if st.button("Logout", use_container_width=True, type="secondary"):
            if on_logout:
                on_logout()
            st.session_state.token = None
            st.session_state.user = None
            st.rerun()
        st.divider()


# ---------------------------------------------------------------------------
# Reusable HTML helpers
# ---------------------------------------------------------------------------
_FLAG_STYLES = {
    "Normal": "badge-success",
    "Low": "badge-info",
    "High": "badge-danger",
    "Abnormal": "badge-warning",
    "Critical": "badge-danger",
}

_STATUS_STYLES = {
    "Ordered": "badge-info",
    "Pending": "badge-info",
    "Collected": "badge-warning",
    "InProgress": "badge-warning",
    "Preliminary": "badge-warning",
    "Completed": "badge-success",
    "Final": "badge-success",
    "Reviewed": "badge-success",
    "Cancelled": "badge-danger",
}


def flag_badge(flag: str | None) -> str:
    """Return an HTML span styled as a result flag badge."""
    flag = flag or "Normal"
    return f'<span class="badge {_FLAG_STYLES.get(flag, "badge-info")}">{flag.upper()}</span>'


def status_badge(status: str | None) -> str:
    status = status or "Pending"
    return f'<span class="badge {_STATUS_STYLES.get(status, "badge-info")}">{status}</span>'


def kpi_tile(label: str, value: str | int | float, color: str) -> str:
    """Return HTML for a single KPI tile."""
    return (
        f'<div class="kpi-tile">'
        f'  <div class="kpi-value" style="color:{color};">{value}</div>'
        f'  <div class="kpi-label">{label}</div>'
        f'</div>'
    )


def section_title(text: str) -> None:
    """Render a styled section heading."""
    st.markdown(f'<div class="section-title">{text}</div>', unsafe_allow_html=True)
