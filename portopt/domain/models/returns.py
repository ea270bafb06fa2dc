"""Returns window value object.

ReturnsWindow wraps one training slice of the returns matrix as a dense
(periods × assets) array and caches the two statistics every objective
needs:

    μ = mean over periods               (per asset)
    Σ = sample covariance, ddof = 1     (unless an estimate is injected)

With the sample covariance, wᵀΣw is exactly the sample variance of the
portfolio return series R·w, so the exact and random solvers score
portfolios identically.
"""

from __future__ import annotations

from functools import cached_property

import numpy as np
import pandas as pd


class ReturnsWindow:
    """Read-only numeric view of a returns slice.

    Safe to share across threads once constructed: the cached statistics
    are computed from immutable inputs and never mutated afterwards.
    """

    def __init__(
        self,
        values: np.ndarray,
        assets: tuple[str, ...],
        covariance: np.ndarray | None = None,
    ) -> None:
        values = np.array(values, dtype=float)
        values.setflags(write=False)
        self.values = values
        self.assets = assets
        self._covariance = covariance

    @classmethod
    def from_frame(
        cls, returns: pd.DataFrame, covariance: np.ndarray | None = None
    ) -> ReturnsWindow:
        return cls(
            returns.to_numpy(dtype=float),
            tuple(str(c) for c in returns.columns),
            covariance=covariance,
        )

    @property
    def n_periods(self) -> int:
        return self.values.shape[0]

    @property
    def n_assets(self) -> int:
        return self.values.shape[1]

    @cached_property
    def mean(self) -> np.ndarray:
        return self.values.mean(axis=0)

    @cached_property
    def covariance(self) -> np.ndarray:
        if self._covariance is not None:
            return np.asarray(self._covariance, dtype=float)
        return np.atleast_2d(np.cov(self.values, rowvar=False, ddof=1))

    def portfolio_returns(self, weights: np.ndarray) -> np.ndarray:
        return self.values @ weights

    def portfolio_mean(self, weights: np.ndarray) -> float:
        return float(self.mean @ weights)

    def portfolio_variance(self, weights: np.ndarray) -> float:
        return max(float(weights @ self.covariance @ weights), 0.0)
