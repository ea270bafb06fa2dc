"""Domain enumerations for the portfolio optimizer.

All string-valued enums use str mixin so they serialize cleanly to JSON
and remain comparable to plain strings (Pydantic default behaviour).
"""

from enum import Enum


class RiskMetric(str, Enum):
    STDDEV = "StdDev"
    VAR = "var"


class SolveMethod(str, Enum):
    """Caller-selected solve strategy; there is no silent fallback."""

    EXACT = "exact"
    RANDOM = "random"


class RandomMethod(str, Enum):
    """Sampling strategy of the random portfolio generator."""

    SIMPLEX = "simplex"
    SAMPLE = "sample"
    GRID = "grid"


class CovMethod(str, Enum):
    """Covariance matrix (Σ) estimation method."""

    SAMPLE = "sample"
    LEDOIT_WOLF = "ledoit_wolf"


class RebalanceOn(str, Enum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    QUARTERS = "quarters"
    YEARS = "years"

    @property
    def period_alias(self) -> str:
        """pandas Period frequency used to bucket the date index."""
        return {
            RebalanceOn.DAYS: "D",
            RebalanceOn.WEEKS: "W",
            RebalanceOn.MONTHS: "M",
            RebalanceOn.QUARTERS: "Q",
            RebalanceOn.YEARS: "Y",
        }[self]
