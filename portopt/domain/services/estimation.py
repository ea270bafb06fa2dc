"""Estimation service: covariance matrix for a training window.

The objective evaluator and the exact solver both read Σ from a
ReturnsWindow; this service builds that window with the requested
covariance estimator.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from sklearn.covariance import LedoitWolf

from portopt.domain.models.enums import CovMethod
from portopt.domain.models.returns import ReturnsWindow


class EstimationService:
    """Pure computation service for covariance estimation.

    Stateless; the estimator is chosen per call.
    """

    def compute_sigma(
        self,
        returns: pd.DataFrame,
        method: CovMethod = CovMethod.SAMPLE,
    ) -> np.ndarray:
        """Compute the periodic covariance matrix Σ.

        Methods:
          SAMPLE      — sample covariance, normalized by N-1 (pandas default).
          LEDOIT_WOLF — shrinkage toward a scaled identity via
                        sklearn.covariance.LedoitWolf; positive definite for
                        any window, including one with fewer periods than assets.

        Returns:
            2-D numpy array of shape (n_assets, n_assets), symmetric.
        """
        if method == CovMethod.LEDOIT_WOLF:
            return LedoitWolf().fit(returns.to_numpy()).covariance_
        return returns.cov().to_numpy()

    def build_window(
        self,
        returns: pd.DataFrame,
        method: CovMethod = CovMethod.SAMPLE,
    ) -> ReturnsWindow:
        """Wrap an aligned returns slice with its covariance estimate.

        The sample estimate is left to ReturnsWindow, which computes it lazily.
        """
        if method == CovMethod.SAMPLE:
            return ReturnsWindow.from_frame(returns)
        return ReturnsWindow.from_frame(returns, covariance=self.compute_sigma(returns, method))
