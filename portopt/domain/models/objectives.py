"""Objective domain models.

Each objective evaluates one scalar measure for a weight vector over a
returns window, and converts that measure into a signed contribution to
the aggregate score.  The aggregate score is always maximized:

    ReturnObjective            +weight · mean(R·w)
    RiskObjective              −weight · StdDev(R·w)   or  −weight · Var(R·w)
    RiskBudgetObjective        −penalty · Σ violation of [min_pct, max_pct]
    QuadraticUtilityObjective  +(mean(R·w) − λ · Var(R·w))
    ConcentrationObjective     −weight · Σwᵢ²

A weight of zero keeps the measure in the reported summary without letting
it influence the optimum.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from portopt.domain.errors import ConfigError

from .enums import RiskMetric
from .returns import ReturnsWindow

_VARIANCE_FLOOR = 1e-18


def risk_contributions(weights: np.ndarray, covariance: np.ndarray) -> np.ndarray:
    """Percentage contribution of each asset to portfolio variance.

        g      = Σw
        PRC_i  = wᵢ · gᵢ / (wᵀΣw)          Σ PRC_i = 1

    Returns zeros when portfolio variance is effectively zero.
    """
    g = covariance @ weights
    variance = float(weights @ g)
    if variance < _VARIANCE_FLOOR:
        return np.zeros(len(weights))
    return weights * g / variance


class _ObjectiveBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str | None = None

    @property
    def label(self) -> str:
        """Key used in the objective-measure summary."""
        return self.name or self.default_name()

    def default_name(self) -> str:
        raise NotImplementedError

    def evaluate(self, weights: np.ndarray, window: ReturnsWindow) -> float:
        raise NotImplementedError

    def contribution(self, value: float) -> float:
        raise NotImplementedError


def _check_weight(weight: float) -> None:
    if weight < 0.0 or not np.isfinite(weight):
        raise ConfigError(
            f"objective weight must be a finite non-negative number, got {weight}"
        )


class ReturnObjective(_ObjectiveBase):
    kind: Literal["return"] = "return"
    weight: float = 1.0

    @model_validator(mode="after")
    def _valid_weight(self) -> ReturnObjective:
        _check_weight(self.weight)
        return self

    def default_name(self) -> str:
        return "mean"

    def evaluate(self, weights, window) -> float:
        return window.portfolio_mean(weights)

    def contribution(self, value: float) -> float:
        return self.weight * value


class RiskObjective(_ObjectiveBase):
    kind: Literal["risk"] = "risk"
    metric: RiskMetric = RiskMetric.STDDEV
    weight: float = 1.0

    @model_validator(mode="after")
    def _valid_weight(self) -> RiskObjective:
        _check_weight(self.weight)
        return self

    def default_name(self) -> str:
        return self.metric.value

    def evaluate(self, weights, window) -> float:
        variance = window.portfolio_variance(weights)
        if self.metric == RiskMetric.STDDEV:
            return float(np.sqrt(variance))
        return variance

    def contribution(self, value: float) -> float:
        return -self.weight * value


class RiskBudgetObjective(_ObjectiveBase):
    """Soft risk budget on each asset's share of portfolio variance.

    Contributions outside [min_pct, max_pct] are penalized linearly in the
    size of the breach, scaled by ``penalty``; a budget-compliant portfolio
    scores zero.  The penalty is finite so random search can still rank
    near-compliant candidates.
    """

    kind: Literal["risk_budget"] = "risk_budget"
    metric: RiskMetric = RiskMetric.STDDEV
    min_pct: float | list[float] = 0.0
    max_pct: float | list[float] = 1.0
    penalty: float = 1e4

    @model_validator(mode="after")
    def _valid_budget(self) -> RiskBudgetObjective:
        lo = np.atleast_1d(np.asarray(self.min_pct, dtype=float))
        hi = np.atleast_1d(np.asarray(self.max_pct, dtype=float))
        if len(lo) > 1 and len(hi) > 1 and len(lo) != len(hi):
            raise ConfigError("risk budget min_pct and max_pct lengths differ")
        if np.any(lo > hi):
            raise ConfigError("risk budget min_pct must not exceed max_pct")
        if self.penalty <= 0.0:
            raise ConfigError(f"risk budget penalty must be positive, got {self.penalty}")
        return self

    def default_name(self) -> str:
        return f"risk_budget_{self.metric.value}"

    def contributions(self, weights: np.ndarray, window: ReturnsWindow) -> np.ndarray:
        # Percentage contributions are identical for StdDev and variance.
        return risk_contributions(weights, window.covariance)

    def evaluate(self, weights, window) -> float:
        pct = self.contributions(weights, window)
        lo = np.broadcast_to(np.asarray(self.min_pct, dtype=float), pct.shape)
        hi = np.broadcast_to(np.asarray(self.max_pct, dtype=float), pct.shape)
        breach = np.maximum(lo - pct, 0.0) + np.maximum(pct - hi, 0.0)
        return self.penalty * float(np.sum(breach))

    def contribution(self, value: float) -> float:
        return -value


class QuadraticUtilityObjective(_ObjectiveBase):
    """mean(R·w) − risk_aversion · Var(R·w); requires risk_aversion > 0."""

    kind: Literal["quadratic_utility"] = "quadratic_utility"
    risk_aversion: float

    @model_validator(mode="after")
    def _positive_risk_aversion(self) -> QuadraticUtilityObjective:
        if not self.risk_aversion > 0.0:
            raise ConfigError(
                f"risk_aversion must be strictly positive, got {self.risk_aversion}"
            )
        return self

    def default_name(self) -> str:
        return "quadratic_utility"

    def evaluate(self, weights, window) -> float:
        return window.portfolio_mean(weights) - self.risk_aversion * window.portfolio_variance(
            weights
        )

    def contribution(self, value: float) -> float:
        return value


class ConcentrationObjective(_ObjectiveBase):
    """Herfindahl penalty Σwᵢ² discouraging near-single-asset allocations."""

    kind: Literal["concentration"] = "concentration"
    weight: float = 1.0

    @model_validator(mode="after")
    def _valid_weight(self) -> ConcentrationObjective:
        _check_weight(self.weight)
        return self

    def default_name(self) -> str:
        return "HHI"

    def evaluate(self, weights, window) -> float:
        return float(np.sum(weights**2))

    def contribution(self, value: float) -> float:
        return -self.weight * value


Objective = Annotated[
    Union[
        ReturnObjective,
        RiskObjective,
        RiskBudgetObjective,
        QuadraticUtilityObjective,
        ConcentrationObjective,
    ],
    Field(discriminator="kind"),
]
