"""
confidence.py
--------------
Confidence scoring for candidate subscriptions.

Score = amount (0–30) + timing (0–30) + occurrence (0–20) + clarity (0–20).

The first three sub-scores are step functions read from ordered threshold
tables in config.yaml and evaluated by one helper, step_score(). Clarity is a
joint check: it only pays out in full when timing AND amount are both strong,
which penalizes groups that are regular on one axis only.
"""

from typing import Any, Dict, Sequence

from core.models import AmountProfile, ConfidenceBreakdown, ConfidenceResult, FrequencyMatch, LOW
from config.config_loader import get_confidence_scoring_config, get_confidence_tiers


AT_MOST = "at_most"
AT_LEAST = "at_least"


def step_score(value: float, steps: Sequence[Sequence[float]], default: int, direction: str) -> int:
    """
    Returns the points of the first (threshold, points) row the value satisfies.

    direction "at_most" tests value <= threshold, "at_least" tests value >= threshold.
    """
    for threshold, points in steps:
        if direction == AT_MOST and value <= threshold:
            return int(points)
        if direction == AT_LEAST and value >= threshold:
            return int(points)
    return int(default)


class ConfidenceScorer:
    """
    Pure scoring function over the analyzer outputs.

    Usage:
        result = ConfidenceScorer().score(amount_profile, frequency_match, 6, 6)
    """

    def __init__(
        self,
        scoring: Dict[str, Any] | None = None,
        tiers: Dict[str, Dict[str, float]] | None = None,
    ):
        self.scoring = scoring or get_confidence_scoring_config()
        self.tiers = tiers or get_confidence_tiers()

    def score(
        self,
        amount_profile: AmountProfile,
        frequency_match: FrequencyMatch | None,
        occurrence_count: int,
        total_in_group: int,
    ) -> ConfidenceResult:
        gap_consistency = frequency_match.gap_consistency if frequency_match else 0.0
        match_ratio = amount_profile.matching_count / total_in_group if total_in_group else 0.0

        breakdown = ConfidenceBreakdown(
            amount_score=self._table_score("amount", amount_profile.relative_variance),
            timing_score=self._table_score("timing", gap_consistency),
            occurrence_score=self._table_score("occurrence", occurrence_count),
            clarity_score=self.clarity_score(frequency_match is not None, gap_consistency, match_ratio),
        )
        total = breakdown.total

        return ConfidenceResult(score=total, breakdown=breakdown, level=self.confidence_level(total))

    def _table_score(self, name: str, value: float) -> int:
        table = self.scoring[name]
        return step_score(value, table["steps"], table["default"], table["direction"])

    def clarity_score(self, has_cadence: bool, gap_consistency: float, match_ratio: float) -> int:
        clarity = self.scoring["clarity"]
        if not has_cadence:
            return int(clarity["default"])

        for tier in ("strong", "relaxed"):
            rule = clarity[tier]
            if gap_consistency >= rule["gap_consistency"] and match_ratio >= rule["amount_match_ratio"]:
                return int(rule["points"])

        return int(clarity["cadence_only"])

    def confidence_level(self, score: float) -> str:
        """Maps a 0–100 score to "high" | "medium" | "low"."""
        ordered = sorted(self.tiers.items(), key=lambda item: item[1]["min_score"], reverse=True)
        for tier_name, bounds in ordered:
            if score >= bounds["min_score"]:
                return tier_name
        return LOW
