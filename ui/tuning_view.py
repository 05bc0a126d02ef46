"""
tuning_view.py
---------------
Tuning & QA View — why merchants were or were not detected.

Layout:
    Header
    Tab 1: Group Diagnostics (every expense group and the gate it stopped at)
    Tab 2: Merchant Explorer (search term → interval stats, gaps chart, verdict)
    Tab 3: Config Viewer (cadences, tolerances, scoring tables)
"""

import streamlit as st
import pandas as pd
import plotly.graph_objects as go

from pipeline import transactions_from_frame
from config.config_loader import load_config
from core.frequency_analyzer import FrequencyAnalyzer
from core.subscription_detector import SubscriptionDetector, DETECTED


VERDICT_LABELS = {
    "no_cadence": "❌ No cadence",
    "too_few_occurrences": "❌ Too few occurrences",
    "amount_mismatch": "❌ Amounts differ",
    "low_confidence": "⚠️ Low confidence",
    "detected": "✅ Detected",
}


def render_tuning_view(transactions: pd.DataFrame, min_confidence: int):
    """Renders the full Tuning & QA page."""

    st.markdown("""
        <div class="main-header">
            <h1>⚙️ Tuning & QA</h1>
            <p>Per-merchant diagnostics, gap analysis and live config</p>
        </div>
    """, unsafe_allow_html=True)

    detector = SubscriptionDetector(min_confidence=min_confidence)
    txns = transactions_from_frame(transactions)

    tab1, tab2, tab3 = st.tabs([
        "🔍 Group Diagnostics",
        "🧭 Merchant Explorer",
        "📄 Config Viewer",
    ])

    with tab1:
        # Empty search term matches every description
        _render_group_diagnostics(detector.explain(txns, ""))

    with tab2:
        _render_merchant_explorer(detector, txns)

    with tab3:
        _render_config_viewer()


# =============================================================================
# TAB 1: GROUP DIAGNOSTICS
# =============================================================================

def _render_group_diagnostics(diagnostics: list):
    """Table of every expense group with the gate it stopped at."""
    if not diagnostics:
        st.info("No expense transactions in the dataset.")
        return

    rows = []
    for d in diagnostics:
        rows.append({
            "Recipient": d.recipient_name,
            "Transactions": d.occurrence_count,
            "Verdict": VERDICT_LABELS.get(d.verdict, d.verdict),
            "Cadence": d.frequency_match.cadence if d.frequency_match else "—",
            "Gap Consistency": f"{d.frequency_match.gap_consistency:.0%}" if d.frequency_match else "—",
            "Core Amount": f"{d.amount_profile.core_amount:,.2f}" if d.amount_profile else "—",
            "Variance": f"{d.amount_profile.relative_variance:.1%}" if d.amount_profile else "—",
            "Amount Match": f"{d.amount_profile.match_ratio:.0%}" if d.amount_profile else "—",
            "Confidence": d.confidence.score if d.confidence else None,
        })

    df = pd.DataFrame(rows)
    # Near misses first: groups that reached scoring, then by size
    df = df.sort_values(["Confidence", "Transactions"], ascending=[False, False], na_position="last")

    verdict_counts = pd.Series([d.verdict for d in diagnostics]).value_counts()
    cols = st.columns(len(VERDICT_LABELS), gap="small")
    for col, (verdict, label) in zip(cols, VERDICT_LABELS.items()):
        with col:
            st.metric(label, int(verdict_counts.get(verdict, 0)))

    st.dataframe(df, use_container_width=True, hide_index=True)


# =============================================================================
# TAB 2: MERCHANT EXPLORER
# =============================================================================

def _render_merchant_explorer(detector: SubscriptionDetector, txns: list):
    term = st.text_input("Search descriptions", placeholder="e.g. netflix")
    if not term:
        return

    diagnostics = detector.explain(txns, term)
    if not diagnostics:
        st.warning(f"No expense transactions contain '{term}'.")
        return

    dates_by_id = {t.id: t.date for t in txns}

    for d in diagnostics:
        with st.expander(f"{VERDICT_LABELS.get(d.verdict, d.verdict)} · {d.recipient_name} ({d.occurrence_count})",
                         expanded=d.verdict != DETECTED):
            st.markdown(f"**{d.message}**")
            st.caption("Raw descriptions: " + " | ".join(d.descriptions[:10]))

            stats = FrequencyAnalyzer.get_interval_statistics([dates_by_id[i] for i in d.transaction_ids])
            for col, key in zip(st.columns(4, gap="small"), ["median", "mean", "std", "max"]):
                with col:
                    st.metric(f"{key.title()} Gap", f"{stats[key]:.1f} d")

            if d.gaps:
                fig = go.Figure(go.Bar(x=list(range(1, len(d.gaps) + 1)), y=d.gaps, marker_color="#3498db"))
                if d.frequency_match:
                    expected = d.frequency_match.expected_gap_days
                    tolerance = d.frequency_match.tolerance_days
                    fig.add_hrect(y0=expected - tolerance, y1=expected + tolerance,
                                  fillcolor="#27ae60", opacity=0.15, line_width=0)
                fig.update_layout(
                    height=220,
                    margin=dict(l=10, r=10, t=10, b=10),
                    xaxis_title="Gap #",
                    yaxis_title="Days",
                    plot_bgcolor="white",
                )
                st.plotly_chart(fig, use_container_width=True)


# =============================================================================
# TAB 3: CONFIG VIEWER
# =============================================================================

def _render_config_viewer():
    config = load_config()
    detection = config["subscription_detection"]

    st.markdown('<div class="section-title">Cadences</div>', unsafe_allow_html=True)
    st.dataframe(pd.DataFrame(detection["cadences"]), use_container_width=True, hide_index=True)

    st.markdown('<div class="section-title" style="margin-top:20px;">Amount Tolerances</div>', unsafe_allow_html=True)
    st.json(detection["amount_tolerances"])

    st.markdown('<div class="section-title" style="margin-top:20px;">Confidence Scoring</div>', unsafe_allow_html=True)
    st.json(config["confidence_scoring"])
