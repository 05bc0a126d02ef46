"""
pipeline.py
------------
Main orchestration layer. Wires together:
    1. DataFrame → Transaction conversion and validation
    2. SubscriptionDetector      →  produces DetectedSubscriptions
    3. Output serialization      →  flat DataFrame, one row per subscription

This is the single entry point for DataFrame-based callers (CLI, dashboard).
The engine itself only ever sees Transaction objects.

Usage:
    from pipeline import SubscriptionPipeline

    pipeline = SubscriptionPipeline()
    results_df = pipeline.run(transactions_df)
"""

import logging
from typing import List

import pandas as pd

from core.models import DetectedSubscription, Transaction
from core.subscription_detector import SubscriptionDetector
from core.subscriptions import billing_day_label, billing_frequency_label

logger = logging.getLogger(__name__)


REQUIRED_COLUMNS = ["transaction_id", "date", "amount", "description"]
OPTIONAL_COLUMNS = ["category_id", "subcategory_id"]

OUTPUT_COLUMNS = [
    "subscription_id", "recipient_name", "billing_frequency", "billing_frequency_label",
    "confidence", "confidence_level", "average_amount", "min_amount", "max_amount",
    "amount_type", "amount_variance_pct", "occurrence_count", "first_seen", "last_seen",
    "next_expected_date", "expected_billing_day", "billing_day_label", "common_day_of_month",
    "category_id", "subcategory_id", "amount_score", "timing_score", "occurrence_score",
    "clarity_score", "transaction_ids",
]


def _optional_id(value) -> str | None:
    if value is None or pd.isna(value):
        return None
    return str(value)


def transactions_from_frame(df: pd.DataFrame) -> List[Transaction]:
    """
    Validates a transactions DataFrame and converts it to Transaction objects.

    Required columns: transaction_id, date, amount, description.
    Optional columns: category_id, subcategory_id.

    Raises:
        ValueError: If a required column is missing.
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    df = df.copy()
    if not pd.api.types.is_datetime64_any_dtype(df["date"]):
        df["date"] = pd.to_datetime(df["date"])
    for column in OPTIONAL_COLUMNS:
        if column not in df.columns:
            df[column] = None

    return [
        Transaction(
            id=str(row.transaction_id),
            date=row.date.to_pydatetime(),
            amount=float(row.amount),
            description="" if pd.isna(row.description) else str(row.description),
            category_id=_optional_id(row.category_id),
            subcategory_id=_optional_id(row.subcategory_id),
        )
        for row in df.itertuples(index=False)
    ]


class SubscriptionPipeline:
    """
    End-to-end subscription detection over a transactions DataFrame.
    """

    def __init__(self, min_confidence: float | None = None):
        """
        Args:
            min_confidence: Override default admission threshold from config.
        """
        self.detector = SubscriptionDetector(min_confidence=min_confidence)
        self.min_confidence = self.detector.min_confidence

        logger.info(f"Pipeline initialized. Min confidence: {self.min_confidence}.")

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def run(self, transactions: pd.DataFrame) -> pd.DataFrame:
        """
        Run the full detection pipeline.

        Args:
            transactions: DataFrame with the required columns (see transactions_from_frame).

        Returns:
            DataFrame of detected subscriptions, highest confidence first.
        """
        logger.info(f"Pipeline starting. Input: {len(transactions):,} transactions.")

        subscriptions = self.run_detection_only(transactions)

        output_df = self.serialize_subscriptions(subscriptions)
        logger.info(f"Pipeline complete. Output rows: {len(output_df):,}.")

        return output_df

    def run_detection_only(self, transactions: pd.DataFrame) -> List[DetectedSubscription]:
        """
        Returns DetectedSubscription objects instead of a DataFrame. Used by
        the dashboard, which needs the objects for confirmation.
        """
        return self.detector.detect(transactions_from_frame(transactions))

    # -------------------------------------------------------------------------
    # OUTPUT SERIALIZATION
    # -------------------------------------------------------------------------

    @staticmethod
    def serialize_subscriptions(subscriptions: List[DetectedSubscription]) -> pd.DataFrame:
        """Converts DetectedSubscription objects to a flat DataFrame."""
        if not subscriptions:
            return pd.DataFrame(columns=OUTPUT_COLUMNS)

        rows = []
        for s in subscriptions:
            rows.append({
                "subscription_id": s.id,
                "recipient_name": s.recipient_name,
                "billing_frequency": s.billing_frequency,
                "billing_frequency_label": billing_frequency_label(s.billing_frequency),
                "confidence": s.confidence,
                "confidence_level": s.confidence_level,
                "average_amount": s.average_amount,
                "min_amount": s.min_amount,
                "max_amount": s.max_amount,
                "amount_type": s.amount_type,
                "amount_variance_pct": s.amount_variance,
                "occurrence_count": s.occurrence_count,
                "first_seen": s.first_seen.strftime("%Y-%m-%d"),
                "last_seen": s.last_seen.strftime("%Y-%m-%d"),
                "next_expected_date": s.next_expected_date.strftime("%Y-%m-%d"),
                "expected_billing_day": s.expected_billing_day,
                "billing_day_label": billing_day_label(s.expected_billing_day, s.billing_frequency),
                "common_day_of_month": s.common_day_of_month,
                "category_id": s.category_id,
                "subcategory_id": s.subcategory_id,
                **s.score_breakdown.to_dict(),
                "transaction_ids": "|".join(s.transaction_ids),
            })

        df = pd.DataFrame(rows, columns=OUTPUT_COLUMNS)

        # Detector output is already ordered; stable sort keeps ties in place
        df = df.sort_values("confidence", ascending=False, kind="stable").reset_index(drop=True)

        return df
