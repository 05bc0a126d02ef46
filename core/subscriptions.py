"""
subscriptions.py
-----------------
Operations on confirmed subscriptions: confirmation, transaction marking,
grouping and cost roll-ups, display labels.

All functions are pure; persistence lives in storage/.
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional

from core.models import (
    ANNUAL, BIWEEKLY, MONTHLY, QUARTERLY, RECURRING_SUBSCRIPTION, RECURRING_TYPES, WEEKDAY_CADENCES, WEEKLY,
    Badge, DetectedSubscription, Subscription, Transaction,
)


FREQUENCY_LABELS = {
    WEEKLY: "Weekly",
    BIWEEKLY: "Bi-weekly",
    MONTHLY: "Monthly",
    QUARTERLY: "Quarterly",
    ANNUAL: "Annual",
}

# Billing events per month for each cadence
MONTHLY_FACTORS = {
    WEEKLY: 52 / 12,
    BIWEEKLY: 26 / 12,
    MONTHLY: 1.0,
    QUARTERLY: 1 / 3,
    ANNUAL: 1 / 12,
}

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

SUBSCRIPTION_BADGE = Badge(type="subscription", label="Subscription")
FIXED_BADGE = Badge(type="fixed", label="Fixed")


def create_subscription(
    detected: DetectedSubscription,
    recurring_type: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Subscription:
    """
    Convert a confirmed DetectedSubscription into a Subscription.

    recurring_type falls back to the detected value, then to "subscription".
    """
    resolved_type = recurring_type or detected.recurring_type or RECURRING_SUBSCRIPTION
    if resolved_type not in RECURRING_TYPES:
        raise ValueError(f"Unknown recurring type '{resolved_type}'. Expected one of {RECURRING_TYPES}")

    return Subscription(
        id=detected.id,
        name=detected.recipient_name,
        amount=detected.average_amount,
        billing_day=detected.common_day_of_month,
        recurring_type=resolved_type,
        category_id=detected.category_id,
        subcategory_id=detected.subcategory_id,
        transaction_ids=list(detected.transaction_ids),
        created_at=created_at or datetime.now(),
        is_active=True,
        confidence=detected.confidence,
        billing_frequency=detected.billing_frequency,
        amount_type=detected.amount_type,
        next_expected_date=detected.next_expected_date,
    )


def mark_transactions_as_recurring(
    transactions: Iterable[Transaction], recurring_ids: Mapping[str, str]
) -> List[Transaction]:
    """
    Flag transactions that belong to a recurring payment.

    Args:
        transactions: Transactions to mark. Not modified.
        recurring_ids: transaction id -> recurring type.

    Returns:
        New list; marked transactions carry is_subscription=True and one
        "Subscription" or "Fixed" badge.
    """
    marked = []
    for t in transactions:
        recurring_type = recurring_ids.get(t.id)
        if not recurring_type:
            marked.append(t)
            continue

        has_badge = any(b.type in ("subscription", "fixed") for b in t.badges)
        badge = SUBSCRIPTION_BADGE if recurring_type == RECURRING_SUBSCRIPTION else FIXED_BADGE
        badges = t.badges if has_badge else t.badges + (badge,)
        marked.append(replace(t, is_subscription=True, badges=badges))
    return marked


def mark_transactions_as_subscriptions(
    transactions: Iterable[Transaction], subscription_ids: Iterable[str]
) -> List[Transaction]:
    """Legacy wrapper: every id is treated as a "subscription"."""
    return mark_transactions_as_recurring(
        transactions, {tid: RECURRING_SUBSCRIPTION for tid in subscription_ids}
    )


def group_subscriptions_by_subcategory(
    subscriptions: Iterable[Subscription],
) -> Dict[Optional[str], List[Subscription]]:
    groups: Dict[Optional[str], List[Subscription]] = {}
    for sub in subscriptions:
        groups.setdefault(sub.subcategory_id, []).append(sub)
    return groups


def monthly_amount(subscription: Subscription) -> float:
    """Subscription amount expressed per month. Unknown cadence counts as monthly."""
    factor = MONTHLY_FACTORS.get(subscription.billing_frequency or MONTHLY, 1.0)
    return subscription.amount * factor


def calculate_monthly_subscription_cost(subscriptions: Iterable[Subscription]) -> float:
    """Total monthly cost of the active subscriptions."""
    return round(sum(monthly_amount(s) for s in subscriptions if s.is_active), 2)


def billing_frequency_label(frequency: str) -> str:
    return FREQUENCY_LABELS.get(frequency, frequency.title())


def billing_day_label(day: int, frequency: str) -> str:
    """Weekday name for weekly cadences (Mon=0), "Day N" otherwise."""
    if frequency in WEEKDAY_CADENCES:
        return DAY_NAMES[day] if 0 <= day < len(DAY_NAMES) else f"Day {day}"
    return f"Day {day}"
