"""
frequency_analyzer.py
----------------------
Billing cadence detection from inter-transaction gaps.

The median gap is matched against the known-cadence table in config.yaml and
the closest cadence wins, provided it lies within twice that cadence's
tolerance. Using the median rather than the mean means one skipped or doubled
billing cycle does not break detection; gap_consistency still records how
many gaps were actually on schedule.
"""

import logging
from datetime import datetime
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from core.models import Cadence, FrequencyMatch
from config.config_loader import get_cadences

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def load_cadences() -> List[Cadence]:
    """Builds the ordered cadence table from config."""
    return [
        Cadence(
            name=row["name"],
            expected_gap_days=float(row["expected_gap_days"]),
            tolerance_days=float(row["tolerance_days"]),
            min_occurrences=int(row["min_occurrences"]),
        )
        for row in get_cadences()
    ]


def compute_gaps(sorted_dates: Sequence[datetime]) -> np.ndarray:
    """Day gaps between consecutive dates (fractional days for datetimes)."""
    if len(sorted_dates) < 2:
        return np.array([], dtype=float)
    timestamps = pd.to_datetime(pd.Series(list(sorted_dates)))
    seconds = timestamps.diff().dropna().dt.total_seconds().to_numpy(dtype=float)
    return np.abs(seconds) / SECONDS_PER_DAY


class FrequencyAnalyzer:
    """
    Matches a group's gap distribution to a known billing cadence.

    Usage:
        analyzer = FrequencyAnalyzer()
        match = analyzer.analyze(sorted_dates)   # FrequencyMatch or None
    """

    def __init__(self, cadences: List[Cadence] | None = None):
        self.cadences = cadences if cadences is not None else load_cadences()

    def analyze(self, sorted_dates: Sequence[datetime]) -> FrequencyMatch | None:
        """
        Args:
            sorted_dates: Transaction dates in ascending order.

        Returns:
            The best-fit FrequencyMatch, or None if no cadence is close enough.
        """
        return self.analyze_gaps(compute_gaps(sorted_dates))

    def analyze_gaps(self, gaps: np.ndarray) -> FrequencyMatch | None:
        if len(gaps) == 0:
            return None

        median_gap = float(np.median(gaps))
        cadence = self._closest_cadence(median_gap)
        if cadence is None:
            logger.debug(f"No cadence within tolerance of median gap {median_gap:.1f} days.")
            return None

        on_schedule = np.abs(gaps - cadence.expected_gap_days) <= cadence.tolerance_days
        gap_consistency = float(np.sum(on_schedule)) / len(gaps)

        return FrequencyMatch(
            cadence=cadence.name,
            expected_gap_days=cadence.expected_gap_days,
            tolerance_days=cadence.tolerance_days,
            min_occurrences=cadence.min_occurrences,
            gap_consistency=gap_consistency,
            median_gap_days=median_gap,
        )

    def _closest_cadence(self, median_gap: float) -> Cadence | None:
        best: Cadence | None = None
        best_distance = float("inf")

        for cadence in self.cadences:
            distance = abs(median_gap - cadence.expected_gap_days)
            # Strict "<" keeps the earlier table row on a tie
            if distance < best_distance and distance <= cadence.tolerance_days * 2:
                best_distance = distance
                best = cadence

        return best

    @staticmethod
    def get_interval_statistics(sorted_dates: Sequence[datetime]) -> Dict[str, float]:
        """
        Calculate detailed interval statistics.

        Returns:
            Dictionary with mean, median, std, min, max gaps in days.
        """
        gaps = compute_gaps(sorted_dates)
        if len(gaps) == 0:
            return {"mean": 0.0, "median": 0.0, "std": 0.0, "min": 0.0, "max": 0.0}

        return {
            "mean": float(np.mean(gaps)),
            "median": float(np.median(gaps)),
            "std": float(np.std(gaps)),
            "min": float(np.min(gaps)),
            "max": float(np.max(gaps)),
        }
