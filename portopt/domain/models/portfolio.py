"""Portfolio specification model.

PortfolioSpec aggregates the asset universe, constraints, and objectives
for one optimization run.  It is frozen: add_constraint / add_objective
return a new, fully re-validated spec, so a template spec can be extended
per call without aliasing between concurrent optimizations.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Union

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, model_validator

from portopt.domain.errors import ConfigError

from .constraints import (
    BoxConstraint,
    Constraint,
    FactorExposureConstraint,
    GroupConstraint,
    TurnoverConstraint,
    WeightSumConstraint,
)
from .objectives import Objective, RiskBudgetObjective

_DEFAULT_LOWER = 0.0
_DEFAULT_UPPER = 1.0

WeightsLike = Union[pd.Series, Mapping[str, float], Sequence[float], np.ndarray]


class PortfolioSpec(BaseModel):
    """Assets + constraints + objectives.

    Invariants (enforced by validator):
      assets          — non-empty, unique, ordered
      Box / risk-budget per-asset lists have one entry per asset
      Group constraints partition the asset set
      factor exposure matrices have one row per asset
      turnover base weights, when given, have one entry per asset
      objective labels are unique (they key the measure summary)
    """

    model_config = ConfigDict(frozen=True)

    assets: tuple[str, ...]
    constraints: tuple[Constraint, ...] = ()
    objectives: tuple[Objective, ...] = ()

    @model_validator(mode="after")
    def _validate(self) -> PortfolioSpec:
        if not self.assets:
            raise ConfigError("a portfolio needs at least one asset")
        if len(set(self.assets)) != len(self.assets):
            raise ConfigError(f"asset identifiers must be unique: {list(self.assets)}")

        n = len(self.assets)
        for c in self.constraints:
            if isinstance(c, BoxConstraint):
                for label, bound in (("min", c.min), ("max", c.max)):
                    if isinstance(bound, list) and len(bound) != n:
                        raise ConfigError(
                            f"Box {label} has {len(bound)} entries for {n} assets"
                        )
            elif isinstance(c, GroupConstraint):
                c.check_partition(self.assets)
            elif isinstance(c, FactorExposureConstraint):
                if len(c.exposures) != n:
                    raise ConfigError(
                        f"factor exposures have {len(c.exposures)} rows for {n} assets"
                    )
            elif isinstance(c, TurnoverConstraint):
                if c.base_weights is not None and len(c.base_weights) != n:
                    raise ConfigError(
                        f"turnover base_weights have {len(c.base_weights)} entries "
                        f"for {n} assets"
                    )

        for o in self.objectives:
            if isinstance(o, RiskBudgetObjective):
                for label, bound in (("min_pct", o.min_pct), ("max_pct", o.max_pct)):
                    if isinstance(bound, list) and len(bound) != n:
                        raise ConfigError(
                            f"risk budget {label} has {len(bound)} entries for {n} assets"
                        )

        labels = [o.label for o in self.objectives]
        if len(set(labels)) != len(labels):
            raise ConfigError(
                f"objective names must be unique, got {labels}; set `name` to disambiguate"
            )
        return self

    @classmethod
    def create(cls, assets: Sequence[str]) -> PortfolioSpec:
        """Named constructor — an empty spec over the given assets."""
        return cls(assets=tuple(assets))

    # ─────────────────────────────────────────────────────────────────── #
    # Incremental construction                                             #
    # ─────────────────────────────────────────────────────────────────── #

    def add_constraint(self, constraint: Constraint) -> PortfolioSpec:
        return PortfolioSpec(
            assets=self.assets,
            constraints=self.constraints + (constraint,),
            objectives=self.objectives,
        )

    def add_objective(self, objective: Objective) -> PortfolioSpec:
        return PortfolioSpec(
            assets=self.assets,
            constraints=self.constraints,
            objectives=self.objectives + (objective,),
        )

    def with_base_weights(self, base_weights: WeightsLike) -> PortfolioSpec:
        """Fill every TurnoverConstraint's base_weights from prior weights."""
        base = self.weights_array(base_weights).tolist()
        return PortfolioSpec(
            assets=self.assets,
            constraints=tuple(
                c.model_copy(update={"base_weights": base})
                if isinstance(c, TurnoverConstraint)
                else c
                for c in self.constraints
            ),
            objectives=self.objectives,
        )

    def without_turnover(self) -> PortfolioSpec:
        return PortfolioSpec(
            assets=self.assets,
            constraints=tuple(
                c for c in self.constraints if not isinstance(c, TurnoverConstraint)
            ),
            objectives=self.objectives,
        )

    # ─────────────────────────────────────────────────────────────────── #
    # Derived feasible-region quantities                                   #
    # ─────────────────────────────────────────────────────────────────── #

    @property
    def n_assets(self) -> int:
        return len(self.assets)

    def bounds(self) -> tuple[np.ndarray, np.ndarray]:
        """Effective per-asset (lower, upper): intersection of all Box constraints.

        Defaults to [0, 1] for every asset when no Box constraint is set.
        """
        boxes = [c for c in self.constraints if isinstance(c, BoxConstraint)]
        n = self.n_assets
        if not boxes:
            return np.full(n, _DEFAULT_LOWER), np.full(n, _DEFAULT_UPPER)
        lower = np.full(n, -np.inf)
        upper = np.full(n, np.inf)
        for box in boxes:
            lo, hi = box.bounds(n)
            lower = np.maximum(lower, lo)
            upper = np.minimum(upper, hi)
        return lower, upper

    def weight_sum_range(self) -> tuple[float, float]:
        """Effective (min_sum, max_sum): intersection of all WeightSum constraints.

        Without a budget constraint the range is implied by the box bounds.
        """
        budgets = [c for c in self.constraints if isinstance(c, WeightSumConstraint)]
        if not budgets:
            lower, upper = self.bounds()
            return float(np.sum(lower)), float(np.sum(upper))
        return (
            max(c.min_sum for c in budgets),
            min(c.max_sum for c in budgets),
        )

    def turnover_constraints(self) -> list[TurnoverConstraint]:
        return [c for c in self.constraints if isinstance(c, TurnoverConstraint)]

    def needs_base_weights(self) -> bool:
        return any(c.base_weights is None for c in self.turnover_constraints())

    # ─────────────────────────────────────────────────────────────────── #
    # Feasibility                                                          #
    # ─────────────────────────────────────────────────────────────────── #

    def is_feasible(self, weights: np.ndarray, tol: float = 1e-9) -> bool:
        """True when weights satisfy the default box and every constraint."""
        if not any(isinstance(c, BoxConstraint) for c in self.constraints):
            if np.any(weights < _DEFAULT_LOWER - tol) or np.any(weights > _DEFAULT_UPPER + tol):
                return False
        return all(c.is_satisfied(weights, self.assets, tol) for c in self.constraints)

    def project_or_reject(self, weights: np.ndarray, tol: float = 1e-9) -> np.ndarray | None:
        """Run every constraint's repair step, then check the full feasible region."""
        candidate: np.ndarray | None = weights
        for c in self.constraints:
            candidate = c.project_or_reject(candidate, self.assets, tol)
            if candidate is None:
                return None
        return candidate if self.is_feasible(candidate, tol) else None

    # ─────────────────────────────────────────────────────────────────── #
    # Input alignment                                                      #
    # ─────────────────────────────────────────────────────────────────── #

    def align_returns(self, returns: pd.DataFrame) -> pd.DataFrame:
        """Validate a returns matrix against this spec and order its columns.

        Raises ConfigError when the column set differs from the asset list,
        when any value is missing, or when the index is not strictly ascending.
        """
        columns = [str(c) for c in returns.columns]
        if len(set(columns)) != len(columns):
            raise ConfigError(f"returns matrix has duplicate columns: {columns}")
        if set(columns) != set(self.assets):
            missing = sorted(set(self.assets) - set(columns))
            extra = sorted(set(columns) - set(self.assets))
            raise ConfigError(
                f"returns columns do not match portfolio assets "
                f"(missing: {missing}, unexpected: {extra})"
            )
        if returns.isna().to_numpy().any():
            raise ConfigError("returns matrix contains missing values")
        if not (returns.index.is_monotonic_increasing and returns.index.is_unique):
            raise ConfigError("returns index must be strictly ascending")
        aligned = returns.copy()
        aligned.columns = columns
        return aligned[list(self.assets)].astype(float)

    def weights_array(self, weights: WeightsLike) -> np.ndarray:
        """Coerce a Series / mapping / sequence into an array in asset order."""
        if isinstance(weights, (pd.Series, Mapping)):
            mapping = dict(weights.items())
            missing = [a for a in self.assets if a not in mapping]
            if missing:
                raise ConfigError(f"weights are missing assets: {missing}")
            return np.array([float(mapping[a]) for a in self.assets])
        arr = np.asarray(weights, dtype=float)
        if arr.shape != (self.n_assets,):
            raise ConfigError(
                f"expected {self.n_assets} weights, got shape {arr.shape}"
            )
        return arr
