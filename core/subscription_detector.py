"""
subscription_detector.py
-------------------------
Recurring payment (subscription) detection engine.

Answers one question for every merchant in a batch of transactions:

    "Is this a periodic charge, and how sure are we?"

Output: a DetectedSubscription per qualifying recipient group, sorted by
descending confidence.

Design decisions:
    - Grouping key is the normalized recipient name. Only expenses are grouped.
    - Cadence detection matches the median inter-transaction gap against a
      fixed table of known cadences, so one missed billing cycle is tolerated.
    - Amounts are summarized with medians (core amount, relative variance),
      never means.
    - The confidence score is the single admission gate; the analyzers run on
      every group, including the ones rejected here.
    - The engine is a pure batch function: no I/O, no shared mutable state,
      input transactions are never modified.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from core.amount_analyzer import AmountAnalyzer
from core.confidence import ConfidenceScorer
from core.frequency_analyzer import FrequencyAnalyzer, compute_gaps
from core.grouper import group_by_recipient
from core.models import AmountProfile, ConfidenceResult, DetectedSubscription, FrequencyMatch, Transaction
from core.normalizer import RecipientNameNormalizer
from core.synthesizer import SubscriptionSynthesizer
from config.config_loader import get_default_min_confidence

logger = logging.getLogger(__name__)


# Diagnostic verdicts, in pipeline order
NO_CADENCE = "no_cadence"
TOO_FEW_OCCURRENCES = "too_few_occurrences"
AMOUNT_MISMATCH = "amount_mismatch"
LOW_CONFIDENCE = "low_confidence"
DETECTED = "detected"


@dataclass
class GroupDiagnostic:
    """Why a recipient group was (or was not) detected. Used by explain()."""

    recipient_name: str
    descriptions: List[str]
    occurrence_count: int
    gaps: List[float]
    verdict: str
    message: str
    frequency_match: Optional[FrequencyMatch] = None
    amount_profile: Optional[AmountProfile] = None
    confidence: Optional[ConfidenceResult] = None
    subscription: Optional[DetectedSubscription] = None
    transaction_ids: List[str] = field(default_factory=list)


def minimum_amount_matches(occurrence_count: int) -> int:
    """Amounts that must match the core amount: at least half the group."""
    return math.ceil(occurrence_count / 2)


class SubscriptionDetector:
    """
    Detects subscriptions in a flat list of transactions.

    Usage:
        detector = SubscriptionDetector()
        subscriptions = detector.detect(transactions)
    """

    def __init__(
        self,
        normalizer: RecipientNameNormalizer | None = None,
        frequency_analyzer: FrequencyAnalyzer | None = None,
        amount_analyzer: AmountAnalyzer | None = None,
        scorer: ConfidenceScorer | None = None,
        synthesizer: SubscriptionSynthesizer | None = None,
        min_confidence: float | None = None,
    ):
        self.normalizer = normalizer or RecipientNameNormalizer()
        self.frequency_analyzer = frequency_analyzer or FrequencyAnalyzer()
        self.amount_analyzer = amount_analyzer or AmountAnalyzer()
        self.scorer = scorer or ConfidenceScorer()
        self.synthesizer = synthesizer or SubscriptionSynthesizer()
        self.min_confidence = (
            min_confidence if min_confidence is not None else get_default_min_confidence()
        )
        _validate_min_confidence(self.min_confidence)

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def detect(
        self, transactions: Iterable[Transaction], min_confidence: float | None = None
    ) -> List[DetectedSubscription]:
        """
        Run subscription detection on a batch of transactions.

        Args:
            transactions: Transactions in any order. Income is ignored.
            min_confidence: Override the admission threshold (0–100).

        Returns:
            List of DetectedSubscription, highest confidence first.
        """
        threshold = self.min_confidence if min_confidence is None else min_confidence
        _validate_min_confidence(threshold)

        groups = group_by_recipient(transactions, self.normalizer)
        detected: List[DetectedSubscription] = []

        for recipient_name, group in groups.items():
            diagnostic = self._evaluate_group(recipient_name, group, threshold)
            if diagnostic.subscription is not None:
                detected.append(diagnostic.subscription)
            else:
                logger.debug(f"Rejected '{recipient_name}': {diagnostic.message}")

        # Stable sort keeps grouping order among equal scores
        detected.sort(key=lambda s: s.confidence, reverse=True)

        logger.info(
            f"Subscription detection complete. Groups: {len(groups):,}. "
            f"Detected: {len(detected):,} (min confidence {threshold})."
        )
        return detected

    def explain(
        self, transactions: Iterable[Transaction], search_term: str, min_confidence: float | None = None
    ) -> List[GroupDiagnostic]:
        """
        Explain why transactions matching a search term were or were not detected.

        Args:
            transactions: Full transaction list.
            search_term: Case-insensitive substring of the raw description.
            min_confidence: Override the admission threshold (0–100).

        Returns:
            One GroupDiagnostic per normalized recipient among the matches.
        """
        threshold = self.min_confidence if min_confidence is None else min_confidence
        _validate_min_confidence(threshold)

        term = search_term.lower()
        matching = [t for t in transactions if term in t.description.lower()]
        logger.info(f"Found {len(matching)} transactions containing '{search_term}'.")

        diagnostics = [
            self._evaluate_group(name, group, threshold)
            for name, group in group_by_recipient(matching, self.normalizer).items()
        ]
        for d in diagnostics:
            logger.info(f"Group '{d.recipient_name}' ({d.occurrence_count} transactions): {d.verdict}. {d.message}")
        return diagnostics

    # -------------------------------------------------------------------------
    # INTERNAL: PER-GROUP EVALUATION
    # -------------------------------------------------------------------------

    def _evaluate_group(
        self, recipient_name: str, group: List[Transaction], threshold: float
    ) -> GroupDiagnostic:
        """
        Runs one group through every gate, stopping at the first failure.
        """
        ordered = sorted(group, key=lambda t: t.date)
        dates = [t.date for t in ordered]
        gaps = compute_gaps(dates)
        n = len(ordered)

        diagnostic = GroupDiagnostic(
            recipient_name=recipient_name,
            descriptions=sorted({t.description for t in ordered}),
            occurrence_count=n,
            gaps=[round(float(g), 2) for g in gaps],
            verdict=NO_CADENCE,
            message="",
            transaction_ids=[t.id for t in ordered],
        )

        # --- Cadence ---
        frequency_match = self.frequency_analyzer.analyze_gaps(gaps)
        if frequency_match is None:
            diagnostic.message = "No matching billing cadence for the observed gaps."
            return diagnostic
        diagnostic.frequency_match = frequency_match

        # --- Occurrence gate ---
        if n < frequency_match.min_occurrences:
            diagnostic.verdict = TOO_FEW_OCCURRENCES
            diagnostic.message = (
                f"Only {n} occurrences; {frequency_match.cadence} needs {frequency_match.min_occurrences}."
            )
            return diagnostic

        # --- Amount gate ---
        amount_profile = self.amount_analyzer.analyze([t.amount for t in ordered])
        diagnostic.amount_profile = amount_profile
        required = minimum_amount_matches(n)
        if amount_profile.matching_count < required:
            diagnostic.verdict = AMOUNT_MISMATCH
            diagnostic.message = (
                f"Only {amount_profile.matching_count} of {n} amounts ({amount_profile.match_ratio:.0%}) "
                f"match core amount {amount_profile.core_amount:.2f} (need {required}, "
                f"variance {amount_profile.relative_variance:.1%})."
            )
            return diagnostic

        # --- Confidence gate ---
        confidence = self.scorer.score(amount_profile, frequency_match, n, n)
        diagnostic.confidence = confidence
        b = confidence.breakdown
        score_text = (
            f"Confidence {confidence.score} (amount={b.amount_score}/30, timing={b.timing_score}/30, "
            f"count={b.occurrence_score}/20, clarity={b.clarity_score}/20)"
        )
        if confidence.score < threshold:
            diagnostic.verdict = LOW_CONFIDENCE
            diagnostic.message = f"{score_text} is below {threshold}."
            return diagnostic

        diagnostic.verdict = DETECTED
        diagnostic.message = f"{score_text}, {confidence.level}."
        diagnostic.subscription = self.synthesizer.synthesize(
            recipient_name, ordered, frequency_match, amount_profile, confidence
        )
        return diagnostic


def _validate_min_confidence(value: float) -> None:
    if not 0 <= value <= 100:
        raise ValueError(f"min_confidence must be between 0 and 100, got {value}")


def detect_subscriptions(
    transactions: Iterable[Transaction], min_confidence: float | None = None
) -> List[DetectedSubscription]:
    """Shortcut: detect with the default engine. min_confidence defaults to config (70)."""
    return SubscriptionDetector().detect(transactions, min_confidence=min_confidence)
