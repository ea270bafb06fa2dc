"""Objective evaluator.

Scores a weight vector against every objective of a PortfolioSpec over one
returns window:

    measures[label] = objective.evaluate(w, window)
    score           = Σ objective.contribution(measures[label])

The score is maximized.  Return and utility terms contribute positively;
risk, risk-budget, and concentration terms contribute negatively.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from portopt.domain.errors import ConfigError
from portopt.domain.models.portfolio import PortfolioSpec
from portopt.domain.models.returns import ReturnsWindow


@dataclass(frozen=True)
class Evaluation:
    measures: dict[str, float]
    score: float


class ObjectiveEvaluator:
    """Pure computation service for objective measures and aggregate scores.

    Stateless and read-only with respect to its inputs, so one instance can
    score candidates from several threads.
    """

    def evaluate(
        self,
        spec: PortfolioSpec,
        weights: np.ndarray,
        window: ReturnsWindow,
    ) -> Evaluation:
        if not spec.objectives:
            raise ConfigError("the portfolio specification has no objectives")
        measures: dict[str, float] = {}
        score = 0.0
        for objective in spec.objectives:
            value = objective.evaluate(weights, window)
            measures[objective.label] = value
            score += objective.contribution(value)
        return Evaluation(measures=measures, score=score)

    def score(self, spec: PortfolioSpec, weights: np.ndarray, window: ReturnsWindow) -> float:
        return self.evaluate(spec, weights, window).score
