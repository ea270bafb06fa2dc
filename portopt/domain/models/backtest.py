"""Backtest domain models.

RebalancingConfig — schedule, window, and solver parameters for a backtest
BacktestEntry     — one rebalancing date and its optimization result
BacktestResult    — ordered entries (the weight time series) plus schedule
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
from pydantic import BaseModel, ConfigDict, model_validator

from portopt.domain.errors import ConfigError

from .enums import CovMethod, RandomMethod, RebalanceOn, SolveMethod
from .optimization import OptimizationResult

_MIN_WINDOW = 2   # sample variance needs at least two periods


class RebalancingConfig(BaseModel):
    """Walk-forward rebalancing parameters.

    training_period — periods of history required before the first rebalance;
                      defaults to rolling_window when unset.
    rolling_window  — length of the training slice [t − rolling_window, t);
                      None means an expanding window [start, t).
    seed            — root seed; each date gets an independent child seed so
                      results do not depend on execution order.
    initial_weights — turnover base for the first rebalancing date.
    unconstrained_first_turnover — explicitly drop turnover constraints on the
                      first date when no initial_weights are available.
    """

    model_config = ConfigDict(frozen=True)

    rebalance_on: RebalanceOn = RebalanceOn.MONTHS
    training_period: int | None = None
    rolling_window: int | None = None
    method: SolveMethod = SolveMethod.RANDOM
    random_method: RandomMethod | None = None
    cov_method: CovMethod | None = None
    permutations: int | None = None
    seed: int | None = None
    initial_weights: dict[str, float] | list[float] | None = None
    unconstrained_first_turnover: bool = False
    max_workers: int = 1

    @model_validator(mode="after")
    def _valid_windows(self) -> RebalancingConfig:
        if self.training_period is None and self.rolling_window is None:
            raise ConfigError("set training_period, rolling_window, or both")
        for label, value in (
            ("training_period", self.training_period),
            ("rolling_window", self.rolling_window),
        ):
            if value is not None and value < _MIN_WINDOW:
                raise ConfigError(f"{label} must be at least {_MIN_WINDOW}, got {value}")
        if self.permutations is not None and self.permutations <= 0:
            raise ConfigError(f"permutations must be positive, got {self.permutations}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {self.max_workers}")
        return self

    @property
    def first_position(self) -> int:
        """Smallest row position eligible to be a rebalancing date."""
        return max(self.training_period or 0, self.rolling_window or 0)


@dataclass(frozen=True)
class BacktestEntry:
    date: pd.Timestamp
    result: OptimizationResult

    @property
    def is_gap(self) -> bool:
        return not self.result.is_feasible


@dataclass(frozen=True)
class BacktestResult:
    """Date-ascending optimization results, one per scheduled rebalancing date.

    Infeasible dates are kept as no-solution entries (gaps); the weight
    matrix shows them as rows of NaN.
    """

    assets: tuple[str, ...]
    schedule: tuple[pd.Timestamp, ...]
    entries: tuple[BacktestEntry, ...]

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def dates(self) -> list[pd.Timestamp]:
        return [e.date for e in self.entries]

    @property
    def failed_dates(self) -> list[pd.Timestamp]:
        return [e.date for e in self.entries if e.is_gap]

    @property
    def weights(self) -> pd.DataFrame:
        """Weight time series (dates × assets)."""
        rows = [
            e.result.weights.to_numpy() if e.result.weights is not None
            else np.full(len(self.assets), np.nan)
            for e in self.entries
        ]
        return pd.DataFrame(
            np.array(rows).reshape(len(rows), len(self.assets)),
            index=pd.DatetimeIndex(self.dates, name="date"),
            columns=list(self.assets),
        )

    @property
    def objective_measures(self) -> pd.DataFrame:
        """Realized objective measures per date (NaN for gaps)."""
        frame = pd.DataFrame(
            [e.result.objective_measures for e in self.entries],
            index=pd.DatetimeIndex(self.dates, name="date"),
        )
        frame["score"] = [e.result.score for e in self.entries]
        return frame.astype(float)
