"""
amount_analyzer.py
-------------------
Robust amount statistics for a recipient group.

The core amount is the median absolute amount, and variance is the median
relative deviation from it, so a single price spike or a misfiled refund
cannot dominate either number. The variance picks one of three tolerance
tiers from config.yaml, and that tolerance decides which amounts count as
matching the core amount.
"""

from typing import Dict, Sequence

import numpy as np

from core.models import AmountProfile, FIXED, VARIABLE
from config.config_loader import get_amount_tolerances


class AmountAnalyzer:
    """
    Usage:
        profile = AmountAnalyzer().analyze([-149.0, -149.0, -159.0])
    """

    def __init__(self, tolerances: Dict[str, float] | None = None):
        tolerances = tolerances or get_amount_tolerances()
        self.strict = float(tolerances["strict"])
        self.normal = float(tolerances["normal"])
        self.loose = float(tolerances["loose"])

    def analyze(self, signed_amounts: Sequence[float]) -> AmountProfile:
        abs_amounts = np.abs(np.asarray(signed_amounts, dtype=float))

        core_amount = float(np.median(abs_amounts)) if abs_amounts.size else 0.0
        variance = self.relative_variance(abs_amounts, core_amount)
        tolerance, amount_type = self.select_tier(variance)

        if core_amount > 0:
            deviations = np.abs(abs_amounts - core_amount) / core_amount
            matching_count = int(np.sum(deviations <= tolerance))
        else:
            matching_count = int(np.sum(abs_amounts == 0))

        return AmountProfile(
            core_amount=core_amount,
            relative_variance=variance,
            amount_type=amount_type,
            matching_count=matching_count,
            tolerance_used=tolerance,
            sample_size=int(abs_amounts.size),
        )

    @staticmethod
    def relative_variance(abs_amounts: np.ndarray, reference: float) -> float:
        """Median of |a - reference| / reference. Zero for an empty or zero reference."""
        if reference == 0 or abs_amounts.size == 0:
            return 0.0
        return float(np.median(np.abs(abs_amounts - reference) / reference))

    def select_tier(self, variance: float) -> tuple[float, str]:
        """Maps a relative variance to (tolerance, amount_type)."""
        if variance <= self.strict:
            return self.strict, FIXED
        if variance <= self.normal:
            return self.normal, FIXED
        return self.loose, VARIABLE
