"""
app.py
-------
Streamlit application entry point for the Subscription Detection Engine.

Run from the project root:
    streamlit run ui/app.py

Architecture:
    - Uploaded transactions, detections and the confirmed-subscription store
      are kept in st.session_state and recomputed only when inputs change.
    - Sidebar handles data upload, navigation and the confidence controls.
    - Each view is a separate module for maintainability.
"""

import sys
import os
import hashlib
from io import BytesIO
import streamlit as st
import pandas as pd

# Ensure project root is on path regardless of where streamlit is invoked
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from pipeline import SubscriptionPipeline
from config.config_loader import get_default_min_confidence
from storage.json_repository import JsonFileSubscriptionRepository
from ui.subscription_view import render_subscription_view
from ui.tuning_view import render_tuning_view


# =============================================================================
# PAGE CONFIG
# =============================================================================

st.set_page_config(
    page_title="Subscription Detection",
    page_icon="🔁",
    layout="wide",
    initial_sidebar_state="expanded",
)


# =============================================================================
# CUSTOM CSS
# =============================================================================

st.markdown("""
<style>
    .stApp {
        font-family: 'Segoe UI', system-ui, sans-serif;
        background-color: #f4f6f9;
    }
    [data-testid="stSidebar"] {
        background-color: #1a2332 !important;
    }
    [data-testid="stSidebar"] * {
        color: #c8d6e5 !important;
    }

    .main-header {
        background: linear-gradient(135deg, #1a2332 0%, #2c3e50 100%);
        color: white;
        padding: 20px 30px;
        border-radius: 12px;
        margin-bottom: 20px;
    }
    .main-header h1 { margin: 0; font-size: 24px; font-weight: 600; }
    .main-header p { margin: 4px 0 0 0; opacity: 0.7; font-size: 13px; }

    .kpi-card {
        background: white;
        border-radius: 10px;
        padding: 18px 20px;
        box-shadow: 0 2px 8px rgba(0,0,0,0.06);
        border-left: 4px solid #3498db;
    }
    .kpi-card.green  { border-left-color: #27ae60; }
    .kpi-card.orange { border-left-color: #e67e22; }
    .kpi-card.purple { border-left-color: #8e44ad; }
    .kpi-value { font-size: 28px; font-weight: 700; color: #1a2332; line-height: 1.2; }
    .kpi-label {
        font-size: 12px;
        color: #7f8c8d;
        text-transform: uppercase;
        letter-spacing: 0.5px;
        margin-top: 4px;
    }

    .badge {
        display: inline-block;
        padding: 3px 10px;
        border-radius: 12px;
        font-size: 12px;
        font-weight: 600;
        text-transform: uppercase;
    }
    .badge-high   { background: #d4edda; color: #155724; }
    .badge-medium { background: #fff3cd; color: #856404; }
    .badge-low    { background: #f8d7da; color: #721c24; }

    .section-title {
        font-size: 14px;
        font-weight: 600;
        color: #1a2332;
        text-transform: uppercase;
        letter-spacing: 0.8px;
        padding-bottom: 8px;
        border-bottom: 2px solid #edf1f4;
        margin-bottom: 12px;
    }
</style>
""", unsafe_allow_html=True)


# =============================================================================
# DATA LOADING & CACHING
# =============================================================================

@st.cache_data(show_spinner="Loading transactions...")
def load_transactions(file_bytes: bytes) -> pd.DataFrame:
    """
    Loads and caches an uploaded transaction CSV.
    Column validation and date parsing happen in transactions_from_frame().
    """
    return pd.read_csv(BytesIO(file_bytes))


def upload_fingerprint(file_bytes: bytes) -> str:
    """Content hash of an upload; a re-upload of an edited file changes it."""
    return hashlib.sha1(file_bytes).hexdigest()


def run_detection(transactions: pd.DataFrame, min_confidence: int) -> list:
    """Runs detection and keeps DetectedSubscription objects for confirmation."""
    pipeline = SubscriptionPipeline(min_confidence=min_confidence)
    return pipeline.run_detection_only(transactions)


def initialize_data():
    """
    Ensures transactions, detections and the subscription store are in session state.
    Detection only re-runs when the upload or the confidence threshold changes.
    """
    if "repository" not in st.session_state:
        store_path = os.path.join(PROJECT_ROOT, "outputs", "confirmed_subscriptions.json")
        st.session_state["repository"] = JsonFileSubscriptionRepository(store_path)
        st.session_state["confirmed"] = st.session_state["repository"].load_subscriptions()

    if "transactions" not in st.session_state:
        return

    min_confidence = st.session_state.get("min_confidence", int(get_default_min_confidence()))
    cache_key = (st.session_state.get("upload_hash"), min_confidence)
    if st.session_state.get("_detection_key") != cache_key:
        try:
            st.session_state["detected"] = run_detection(st.session_state["transactions"], min_confidence)
        except ValueError as e:
            st.error(f"❌ {e}")
            st.stop()
        st.session_state["_detection_key"] = cache_key


# =============================================================================
# SIDEBAR
# =============================================================================

def render_sidebar():
    """Renders the sidebar upload, navigation and global controls."""

    st.sidebar.markdown("""
        <div style="padding: 10px 0 20px 0; text-align: center;">
            <div style="font-size: 22px; font-weight: 700; color: #fff;">🔁 Subscriptions</div>
            <div style="font-size: 11px; color: #7f8c8d; margin-top: 2px;">Recurring Payment Detection</div>
        </div>
    """, unsafe_allow_html=True)

    # --- Upload ---
    uploaded = st.sidebar.file_uploader("Transactions CSV", type=["csv"])
    if uploaded is not None:
        file_bytes = uploaded.getvalue()
        fingerprint = upload_fingerprint(file_bytes)
        if st.session_state.get("upload_hash") != fingerprint:
            st.session_state["transactions"] = load_transactions(file_bytes)
            st.session_state["upload_hash"] = fingerprint

    # --- Navigation ---
    pages = {
        "📋  Subscriptions": "subscriptions",
        "⚙️  Tuning & QA": "tuning",
    }
    for label, key in pages.items():
        if st.sidebar.button(label, key=f"nav_{key}", use_container_width=True):
            st.session_state["current_page"] = key
            st.rerun()

    # --- Global Controls ---
    st.sidebar.markdown("<hr style='border-color:#2c3e50; margin: 20px 0 12px 0;'>", unsafe_allow_html=True)
    st.session_state["min_confidence"] = st.sidebar.slider(
        "Minimum Confidence",
        min_value=0, max_value=100,
        value=st.session_state.get("min_confidence", int(get_default_min_confidence())),
        step=5,
    )
    st.session_state["level_filter"] = st.sidebar.multiselect(
        "Confidence Levels",
        options=["high", "medium", "low"],
        default=st.session_state.get("level_filter", ["high", "medium", "low"]),
    )

    txns = st.session_state.get("transactions")
    # Malformed uploads are reported by initialize_data()
    if txns is not None and {"date", "amount"}.issubset(txns.columns):
        dates = pd.to_datetime(txns["date"], errors="coerce").dropna()
        period = f"{dates.min():%b %Y} – {dates.max():%b %Y}" if len(dates) else "No valid dates"
        st.sidebar.markdown(f"""
            <div style='font-size:11px; color:#5a6a7a; line-height:1.6;'>
                <b style='color:#8a9bb0;'>Dataset</b><br>
                {len(txns):,} transactions<br>
                {(txns['amount'] < 0).sum():,} expenses<br>
                {period}
            </div>
        """, unsafe_allow_html=True)


# =============================================================================
# MAIN APP
# =============================================================================

def main():
    render_sidebar()
    initialize_data()

    if "transactions" not in st.session_state:
        st.info("Upload a transactions CSV (transaction_id, date, amount, description) to begin.")
        return

    levels = set(st.session_state.get("level_filter", []))
    detected = [d for d in st.session_state["detected"] if d.confidence_level in levels]

    page = st.session_state.get("current_page", "subscriptions")

    if page == "subscriptions":
        render_subscription_view(
            detected=detected,
            repository=st.session_state["repository"],
        )
    elif page == "tuning":
        render_tuning_view(
            transactions=st.session_state["transactions"],
            min_confidence=st.session_state["min_confidence"],
        )


if __name__ == "__main__":
    main()
