"""Rebalancing backtest service.

Walk-forward optimization over a returns history:

    schedule   = period end-points of the index (days / weeks / months /
                 quarters / years) at row positions p ≥ first_position
    window(p)  = rows [p − rolling_window, p)    rolling
               = rows [0, p)                     expanding
    result(p)  = OptimizationService.optimize(spec, window(p))

A date whose solve raises InfeasibleError is recorded as a no-solution gap
and the backtest continues; every other error aborts the backtest.

Each date draws its random candidates from its own child of the root
SeedSequence, so a parallel run reproduces a sequential one exactly.
Results are always assembled in schedule (date-ascending) order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pandas as pd

from portopt.domain.errors import ConfigError, InfeasibleError
from portopt.domain.models.backtest import BacktestEntry, BacktestResult, RebalancingConfig
from portopt.domain.models.optimization import OptimizationResult
from portopt.domain.models.portfolio import PortfolioSpec

from .optimization import OptimizationService

logger = logging.getLogger(__name__)


class RebalancingService:
    """Pure computation service for rolling-window rebalancing backtests."""

    def __init__(self, optimizer: OptimizationService | None = None) -> None:
        self.optimizer = optimizer or OptimizationService()

    # ─────────────────────────────────────────────────────────────────── #
    # Public API                                                           #
    # ─────────────────────────────────────────────────────────────────── #

    def compute_schedule(
        self, index: pd.Index, config: RebalancingConfig
    ) -> list[pd.Timestamp]:
        """Rebalancing dates for a returns index."""
        return list(index[self._schedule_positions(index, config)])

    def backtest(
        self,
        spec: PortfolioSpec,
        returns: pd.DataFrame,
        config: RebalancingConfig,
    ) -> BacktestResult:
        """Re-optimize at every scheduled date and collect the weight history.

        Raises:
            ConfigError: malformed inputs, a training period longer than the
                history, or turnover limits with no base weights available.
            SolverError: an exact solve failed to converge (aborts).
        """
        aligned = spec.align_returns(returns)
        positions = self._schedule_positions(aligned.index, config)
        dates = [aligned.index[p] for p in positions]
        seeds = np.random.SeedSequence(config.seed).spawn(len(positions))

        chained = spec.needs_base_weights()
        if chained and config.initial_weights is None and not config.unconstrained_first_turnover:
            raise ConfigError(
                "TurnoverConstraint needs prior weights on the first rebalancing date; "
                "set initial_weights or unconstrained_first_turnover=True."
            )

        logger.info(
            "backtest: %d rebalancing dates from %s to %s",
            len(dates), dates[0], dates[-1],
        )

        if chained:
            results = self._run_chained(spec, aligned, config, positions, dates, seeds)
        elif config.max_workers > 1:
            results = self._run_parallel(spec, aligned, config, positions, dates, seeds)
        else:
            results = [
                self._solve_date(spec, aligned, config, p, d, s)
                for p, d, s in zip(positions, dates, seeds)
            ]

        entries = tuple(BacktestEntry(date=d, result=r) for d, r in zip(dates, results))
        n_gaps = sum(e.is_gap for e in entries)
        if n_gaps:
            logger.info("backtest finished with %d infeasible date(s)", n_gaps)
        return BacktestResult(assets=spec.assets, schedule=tuple(dates), entries=entries)

    # ─────────────────────────────────────────────────────────────────── #
    # Schedule                                                             #
    # ─────────────────────────────────────────────────────────────────── #

    def _schedule_positions(self, index: pd.Index, config: RebalancingConfig) -> list[int]:
        if not isinstance(index, pd.DatetimeIndex):
            raise ConfigError("backtesting requires a DatetimeIndex on the returns matrix")
        n = len(index)
        first = config.first_position
        if first >= n:
            raise ConfigError(
                f"training period of {first} periods exceeds the available history "
                f"of {n} periods"
            )

        periods = index.to_period(config.rebalance_on.period_alias)
        is_end = np.append(np.asarray(periods[1:] != periods[:-1]), True)
        positions = [int(p) for p in np.flatnonzero(is_end) if p >= first]
        if not positions:
            raise ConfigError(
                f"no {config.rebalance_on.value} end-points remain after the first "
                f"{first} periods of training history"
            )
        return positions

    # ─────────────────────────────────────────────────────────────────── #
    # Execution                                                            #
    # ─────────────────────────────────────────────────────────────────── #

    def _run_chained(
        self,
        spec: PortfolioSpec,
        returns: pd.DataFrame,
        config: RebalancingConfig,
        positions: list[int],
        dates: list[pd.Timestamp],
        seeds: list[np.random.SeedSequence],
    ) -> list[OptimizationResult]:
        """Sequential run where each date's turnover base is the last solution."""
        prior = (
            spec.weights_array(config.initial_weights)
            if config.initial_weights is not None
            else None
        )
        results: list[OptimizationResult] = []
        for position, date, seed in zip(positions, dates, seeds):
            if prior is None:
                logger.warning(
                    "no prior weights on %s; turnover constraint left unconstrained "
                    "as configured", date,
                )
                date_spec = spec.without_turnover()
            else:
                date_spec = spec.with_base_weights(prior)

            result = self._solve_date(date_spec, returns, config, position, date, seed)
            if result.is_feasible:
                prior = result.weights.to_numpy()
            results.append(result)
        return results

    def _run_parallel(
        self,
        spec: PortfolioSpec,
        returns: pd.DataFrame,
        config: RebalancingConfig,
        positions: list[int],
        dates: list[pd.Timestamp],
        seeds: list[np.random.SeedSequence],
    ) -> list[OptimizationResult]:
        with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
            futures = [
                pool.submit(self._solve_date, spec, returns, config, p, d, s)
                for p, d, s in zip(positions, dates, seeds)
            ]
            try:
                # Collected in submission order, i.e. by date.
                return [f.result() for f in futures]
            except Exception:
                for f in futures:
                    f.cancel()
                raise

    def _solve_date(
        self,
        spec: PortfolioSpec,
        returns: pd.DataFrame,
        config: RebalancingConfig,
        position: int,
        date: pd.Timestamp,
        seed: np.random.SeedSequence,
    ) -> OptimizationResult:
        start = position - config.rolling_window if config.rolling_window else 0
        window = returns.iloc[start:position]
        try:
            return self.optimizer.optimize(
                spec,
                window,
                method=config.method,
                permutations=config.permutations,
                seed=seed,
                random_method=config.random_method,
                cov_method=config.cov_method,
            )
        except InfeasibleError as exc:
            logger.info("no feasible portfolio on %s: %s", date, exc)
            return OptimizationResult.no_solution(str(exc), config.method)
