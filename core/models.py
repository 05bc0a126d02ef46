"""
models.py
----------
Core domain models. These are the typed contracts between engine layers.

- Transaction: Normalized bank transaction. Input to the engine, never mutated.

- FrequencyMatch / AmountProfile / ConfidenceResult: Intermediate analysis
  results for a single recipient group.

- DetectedSubscription: Output of the detection engine. One per recipient
  group that clears the confidence gate.

- Subscription: User-confirmed subscription, created from a
  DetectedSubscription and owned by the persistence layer.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


# Billing cadences
WEEKLY = "weekly"
BIWEEKLY = "biweekly"
MONTHLY = "monthly"
QUARTERLY = "quarterly"
ANNUAL = "annual"
BILLING_FREQUENCIES = (WEEKLY, BIWEEKLY, MONTHLY, QUARTERLY, ANNUAL)

# Cadences whose billing day is a weekday rather than a day of month
WEEKDAY_CADENCES = (WEEKLY, BIWEEKLY)

# Amount types
FIXED = "fixed"
VARIABLE = "variable"

# Confidence levels
HIGH = "high"
MEDIUM = "medium"
LOW = "low"

# Recurring types (a user decision, never set by the engine)
RECURRING_SUBSCRIPTION = "subscription"
RECURRING_EXPENSE = "recurring_expense"
RECURRING_TYPES = (RECURRING_SUBSCRIPTION, RECURRING_EXPENSE)


@dataclass(frozen=True)
class Badge:
    """Presentation badge attached to a transaction (e.g. "Subscription")."""
    type: str                        # "subscription" | "fixed"
    label: str


@dataclass(frozen=True)
class Transaction:
    """
    A single, already-parsed bank transaction.

    Amounts are signed: negative = expense, positive = income.
    """

    id: str
    date: datetime
    amount: float
    description: str
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None

    # Presentation flags, untouched by detection
    is_subscription: bool = False
    badges: tuple[Badge, ...] = ()


@dataclass(frozen=True)
class Cadence:
    """One row of the known-cadence table in config.yaml."""
    name: str
    expected_gap_days: float
    tolerance_days: float
    min_occurrences: int


@dataclass
class FrequencyMatch:
    """Best-fit cadence for a group's date gaps."""

    cadence: str
    expected_gap_days: float
    tolerance_days: float
    min_occurrences: int
    gap_consistency: float           # 0.0 – 1.0. Share of gaps within tolerance.
    median_gap_days: float = 0.0


@dataclass
class AmountProfile:
    """Robust amount statistics for a group."""

    core_amount: float               # Median absolute amount
    relative_variance: float         # Median relative deviation from core_amount
    amount_type: str                 # "fixed" | "variable"
    matching_count: int              # Amounts within tolerance_used of core_amount
    tolerance_used: float
    sample_size: int = 0

    @property
    def match_ratio(self) -> float:
        return self.matching_count / self.sample_size if self.sample_size else 0.0


@dataclass
class ConfidenceBreakdown:
    """Four independently capped sub-scores."""

    amount_score: int                # 0 – 30
    timing_score: int                # 0 – 30
    occurrence_score: int            # 0 – 20
    clarity_score: int               # 0 – 20

    @property
    def total(self) -> int:
        return self.amount_score + self.timing_score + self.occurrence_score + self.clarity_score

    def to_dict(self) -> dict:
        return {
            "amount_score": self.amount_score,
            "timing_score": self.timing_score,
            "occurrence_score": self.occurrence_score,
            "clarity_score": self.clarity_score,
        }


@dataclass
class ConfidenceResult:
    score: int                       # 0 – 100
    breakdown: ConfidenceBreakdown
    level: str                       # "high" | "medium" | "low"


@dataclass(frozen=True)
class DetectedSubscription:
    """
    Detection engine output. Immutable.

    transaction_ids always reference expense transactions from exactly one
    recipient group, in ascending date order.
    """

    # Identity
    id: str
    recipient_name: str

    # Amount
    average_amount: float            # Core (median) amount, absolute, rounded to cents
    min_amount: float
    max_amount: float
    amount_variance: float           # Relative variance as a percentage, 2 dp
    amount_type: str

    # Timing
    billing_frequency: str
    common_day_of_month: int
    expected_billing_day: int        # Weekday (Mon=0) for weekly cadences, else day of month
    first_seen: datetime
    last_seen: datetime
    next_expected_date: datetime

    # Evidence
    transaction_ids: tuple[str, ...]
    occurrence_count: int

    # Confidence
    confidence: int
    confidence_level: str
    score_breakdown: ConfidenceBreakdown

    # Classification
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    recurring_type: Optional[str] = None


@dataclass
class Subscription:
    """
    User-confirmed recurring payment.

    Created once from a DetectedSubscription, then edited only by explicit
    user action (rename, recategorize, deactivate).
    """

    id: str
    name: str
    amount: float
    billing_day: int
    recurring_type: str
    category_id: Optional[str]
    subcategory_id: Optional[str]
    transaction_ids: list[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    is_active: bool = True

    confidence: Optional[int] = None
    billing_frequency: Optional[str] = None
    amount_type: Optional[str] = None
    next_expected_date: Optional[datetime] = None
