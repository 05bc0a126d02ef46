"""
synthesizer.py
---------------
Builds a DetectedSubscription from a group that passed every gate.

Billing day and next expected date are derived from the cadence; category
fields are inherited only when every transaction in the group agrees.
"""

import hashlib
from datetime import datetime
from typing import List, Sequence

import pandas as pd

from core.models import (
    ANNUAL, BIWEEKLY, MONTHLY, QUARTERLY, WEEKDAY_CADENCES, WEEKLY,
    AmountProfile, ConfidenceResult, DetectedSubscription, FrequencyMatch, Transaction,
)


# One cadence step. Month and year steps use calendar arithmetic and clip to
# the last day of shorter months (Jan 31 + 1 month = Feb 28/29).
CADENCE_STEPS = {
    WEEKLY: pd.DateOffset(days=7),
    BIWEEKLY: pd.DateOffset(days=14),
    MONTHLY: pd.DateOffset(months=1),
    QUARTERLY: pd.DateOffset(months=3),
    ANNUAL: pd.DateOffset(years=1),
}


def generate_subscription_id(recipient_name: str, core_amount: float) -> str:
    """Deterministic id from (recipient_name, core_amount)."""
    key = f"{recipient_name}-{abs(core_amount):.2f}"
    return "sub-" + hashlib.sha1(key.encode("utf-8")).hexdigest()[:12]


def most_common(values: Sequence[int]) -> int:
    """Mode of the values; ties resolve to the smallest value."""
    return int(pd.Series(list(values)).mode().iloc[0])


def expected_billing_day(dates: Sequence[datetime], cadence: str) -> int:
    """Most common weekday (Mon=0) for weekly cadences, else most common day of month."""
    if cadence in WEEKDAY_CADENCES:
        return most_common([d.weekday() for d in dates])
    return most_common([d.day for d in dates])


def predict_next_date(last_date: datetime, cadence: str) -> datetime:
    """Advances last_date by exactly one cadence step."""
    next_date = pd.Timestamp(last_date) + CADENCE_STEPS[cadence]
    return next_date.to_pydatetime()


def shared_value(values: Sequence):
    """The single value shared by all items, or None when they differ."""
    distinct = set(values)
    return distinct.pop() if len(distinct) == 1 else None


class SubscriptionSynthesizer:
    """Turns a qualifying recipient group into an immutable DetectedSubscription."""

    def synthesize(
        self,
        recipient_name: str,
        group: List[Transaction],
        frequency_match: FrequencyMatch,
        amount_profile: AmountProfile,
        confidence: ConfidenceResult,
    ) -> DetectedSubscription:
        """
        Args:
            recipient_name: Normalized merchant key of the group.
            group: Group transactions sorted ascending by date.
            frequency_match: Chosen cadence.
            amount_profile: Amount statistics for the group.
            confidence: Score, breakdown and level.
        """
        dates = [t.date for t in group]
        abs_amounts = [abs(t.amount) for t in group]
        cadence = frequency_match.cadence

        return DetectedSubscription(
            id=generate_subscription_id(recipient_name, amount_profile.core_amount),
            recipient_name=recipient_name,
            average_amount=round(amount_profile.core_amount, 2),
            min_amount=round(min(abs_amounts), 2),
            max_amount=round(max(abs_amounts), 2),
            amount_variance=round(amount_profile.relative_variance * 100, 2),
            amount_type=amount_profile.amount_type,
            billing_frequency=cadence,
            common_day_of_month=most_common([d.day for d in dates]),
            expected_billing_day=expected_billing_day(dates, cadence),
            first_seen=dates[0],
            last_seen=dates[-1],
            next_expected_date=predict_next_date(dates[-1], cadence),
            transaction_ids=tuple(t.id for t in group),
            occurrence_count=len(group),
            confidence=confidence.score,
            confidence_level=confidence.level,
            score_breakdown=confidence.breakdown,
            category_id=shared_value([t.category_id for t in group]),
            subcategory_id=shared_value([t.subcategory_id for t in group]),
            recurring_type=None,
        )
