"""
subscription_view.py
---------------------
Subscriptions View — detected recurring payments and confirmation.

Layout:
    Header
    KPI row (3 cards)
    Detected subscriptions table
    Confidence breakdown chart | Upcoming payments
    Confirm & save
"""

import streamlit as st
import pandas as pd
import plotly.graph_objects as go

from pipeline import SubscriptionPipeline
from core.subscriptions import (
    billing_frequency_label, calculate_monthly_subscription_cost, create_subscription,
)


# One color per sub-score
SCORE_COLORS = {
    "Amount":     "#3498db",
    "Timing":     "#27ae60",
    "Occurrence": "#e67e22",
    "Clarity":    "#8e44ad",
}


def render_subscription_view(detected: list, repository):
    """Renders the full Subscriptions page."""

    st.markdown("""
        <div class="main-header">
            <h1>📋 Subscriptions</h1>
            <p>Recurring payments detected in the uploaded transactions</p>
        </div>
    """, unsafe_allow_html=True)

    if not detected:
        st.warning("No subscriptions detected. Try lowering the minimum confidence.")
        return

    _render_kpis(detected)

    st.markdown('<div class="section-title" style="margin-top:28px;">Detected Subscriptions</div>', unsafe_allow_html=True)
    table = SubscriptionPipeline.serialize_subscriptions(detected)
    st.dataframe(
        table[[
            "recipient_name", "billing_frequency_label", "average_amount", "amount_type",
            "confidence", "confidence_level", "occurrence_count", "last_seen", "next_expected_date",
        ]],
        use_container_width=True,
        hide_index=True,
    )

    col_chart, col_upcoming = st.columns([3, 2], gap="medium")
    with col_chart:
        _render_score_breakdown(detected)
    with col_upcoming:
        _render_upcoming(detected)

    _render_confirmation(detected, repository)


# =============================================================================
# KPIs
# =============================================================================

def _render_kpis(detected: list):
    candidates = [create_subscription(d) for d in detected]
    monthly_cost = calculate_monthly_subscription_cost(candidates)
    high = sum(1 for d in detected if d.confidence_level == "high")

    kpis = [
        ("Detected Subscriptions", f"{len(detected):,}", ""),
        ("High Confidence", f"{high:,}", "green"),
        ("Estimated Monthly Cost", f"{monthly_cost:,.2f}", "purple"),
    ]

    for col, (label, value, color_class) in zip(st.columns(3, gap="small"), kpis):
        with col:
            st.markdown(f"""
                <div class="kpi-card {color_class}">
                    <div class="kpi-value">{value}</div>
                    <div class="kpi-label">{label}</div>
                </div>
            """, unsafe_allow_html=True)


# =============================================================================
# SCORE BREAKDOWN
# =============================================================================

def _render_score_breakdown(detected: list):
    """Stacked horizontal bars: the four sub-scores per subscription."""
    st.markdown('<div class="section-title" style="margin-top:28px;">Confidence Breakdown</div>', unsafe_allow_html=True)

    names = [d.recipient_name for d in detected]
    parts = {
        "Amount": [d.score_breakdown.amount_score for d in detected],
        "Timing": [d.score_breakdown.timing_score for d in detected],
        "Occurrence": [d.score_breakdown.occurrence_score for d in detected],
        "Clarity": [d.score_breakdown.clarity_score for d in detected],
    }

    fig = go.Figure()
    for label, values in parts.items():
        fig.add_trace(go.Bar(y=names, x=values, name=label, orientation="h", marker_color=SCORE_COLORS[label]))

    fig.update_layout(
        barmode="stack",
        height=max(250, 28 * len(names) + 80),
        margin=dict(l=10, r=10, t=10, b=10),
        xaxis=dict(range=[0, 100], title="Confidence"),
        yaxis=dict(autorange="reversed"),
        legend=dict(orientation="h", y=-0.15),
        plot_bgcolor="white",
    )
    st.plotly_chart(fig, use_container_width=True)


# =============================================================================
# UPCOMING PAYMENTS
# =============================================================================

def _render_upcoming(detected: list):
    st.markdown('<div class="section-title" style="margin-top:28px;">Upcoming Payments</div>', unsafe_allow_html=True)

    upcoming = pd.DataFrame([
        {
            "Date": d.next_expected_date.strftime("%Y-%m-%d"),
            "Recipient": d.recipient_name,
            "Amount": f"{d.average_amount:,.2f}",
            "Frequency": billing_frequency_label(d.billing_frequency),
        }
        for d in sorted(detected, key=lambda d: d.next_expected_date)
    ])
    st.dataframe(upcoming, use_container_width=True, hide_index=True)


# =============================================================================
# CONFIRMATION
# =============================================================================

def _render_confirmation(detected: list, repository):
    """Lets the user confirm detections and persist them as subscriptions."""
    st.markdown('<div class="section-title" style="margin-top:28px;">Confirm Subscriptions</div>', unsafe_allow_html=True)

    confirmed = st.session_state.get("confirmed", [])
    confirmed_ids = {s.id for s in confirmed}
    pending = [d for d in detected if d.id not in confirmed_ids]

    if not pending:
        st.success(f"✅ All detections confirmed. {len(confirmed)} subscriptions saved.")
        return

    labels = {f"{d.recipient_name} · {d.average_amount:,.2f} · {d.billing_frequency}": d for d in pending}
    selected = st.multiselect("Select detections to confirm", options=list(labels.keys()))
    recurring_type = st.radio(
        "Type", options=["subscription", "recurring_expense"], horizontal=True,
        format_func=lambda t: "Subscription" if t == "subscription" else "Fixed expense",
    )

    if st.button("💾 Confirm & Save", key="confirm_btn", disabled=not selected):
        new_subscriptions = [create_subscription(labels[key], recurring_type=recurring_type) for key in selected]
        updated = confirmed + new_subscriptions
        if repository.save_subscriptions(updated):
            st.session_state["confirmed"] = updated
            st.success(f"Saved {len(new_subscriptions)} subscriptions.")
            st.rerun()
        else:
            # In-memory result stays usable; only persistence failed
            st.session_state["confirmed"] = updated
            st.warning("Subscriptions confirmed for this session but could not be saved to disk.")
