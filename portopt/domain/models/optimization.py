"""Optimization result model.

OptimizationResult carries the chosen weights, the realized value of every
objective measure, the aggregate score, and solver metadata.  The
no-solution sentinel (is_feasible=False, weights=None) is what the
rebalancing engine records for a date whose solve was infeasible.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import pandas as pd

from .enums import SolveMethod


@dataclass(frozen=True)
class OptimizationResult:
    """Output of a single-period optimization.

    When is_feasible=False, weights and score are None, objective_measures is
    empty, and infeasibility_reason carries a plain-language explanation.
    """

    weights: pd.Series | None
    objective_measures: dict[str, float]
    score: float | None
    method: SolveMethod
    iterations: int
    is_feasible: bool = True
    infeasibility_reason: str | None = None
    solver_meta: dict[str, object] = field(default_factory=dict)

    @classmethod
    def no_solution(
        cls,
        reason: str,
        method: SolveMethod,
        iterations: int = 0,
    ) -> OptimizationResult:
        return cls(
            weights=None,
            objective_measures={},
            score=None,
            method=method,
            iterations=iterations,
            is_feasible=False,
            infeasibility_reason=reason,
        )
