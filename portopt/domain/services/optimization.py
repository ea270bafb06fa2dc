"""Portfolio optimization service (solver dispatch).

Two strategies, chosen explicitly by the caller — there is no silent
fallback from one to the other:

  EXACT  — linear constraints + quadratic objective:
               min_w  wᵀQw + cᵀw   s.t.  A_eq·w = b_eq,  A_ineq·w ≤ b_ineq
           delegated to an injectable QPSolver (default: linprog + SLSQP).
  RANDOM — stochastic search: draw candidates from RandomPortfolioGenerator,
           repair / reject each against every constraint, score the
           feasible ones with ObjectiveEvaluator, keep the best.  Ties go
           to the first candidate generated.

Also provides the efficient frontier (minimum variance for a grid of
target returns) over the portfolio's linear constraints.

All methods are pure computation; results are returned, never stored.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence

import numpy as np
import pandas as pd

from portopt.config import settings
from portopt.domain.errors import ConfigError, InfeasibleError, SolverError
from portopt.domain.models.constraints import (
    BoxConstraint,
    LeverageExposureConstraint,
    LinearRows,
)
from portopt.domain.models.enums import CovMethod, RandomMethod, RiskMetric, SolveMethod
from portopt.domain.models.objectives import (
    ConcentrationObjective,
    QuadraticUtilityObjective,
    ReturnObjective,
    RiskObjective,
)
from portopt.domain.models.optimization import OptimizationResult
from portopt.domain.models.portfolio import PortfolioSpec, WeightsLike
from portopt.domain.models.returns import ReturnsWindow

from .estimation import EstimationService
from .objectives import ObjectiveEvaluator
from .qp import QPSolver, find_feasible_point, solve_qp
from .random_portfolios import RandomPortfolioGenerator, SeedLike

logger = logging.getLogger(__name__)

_WEIGHT_TOL = 1e-10         # weights below this are treated as zero
_SOLUTION_TOL = 1e-6        # exact-mode solutions must satisfy constraints to this
_MIN_PERIODS = 2


class OptimizationService:
    """Pure computation service for constrained portfolio optimization.

    Responsibilities (single, focused):
      - Validate the returns matrix against the specification.
      - Dispatch to the exact QP or the random-portfolio search.
      - Check obvious infeasibility before solving and report it plainly.
      - Trace the efficient frontier over the linear constraints.

    The class holds only collaborators (estimator, evaluator, QP routine);
    all problem configuration is passed per-call, so one instance can serve
    concurrent optimizations.
    """

    def __init__(
        self,
        qp_solver: QPSolver = solve_qp,
        evaluator: ObjectiveEvaluator | None = None,
        estimation: EstimationService | None = None,
    ) -> None:
        self.qp_solver = qp_solver
        self.evaluator = evaluator or ObjectiveEvaluator()
        self.estimation = estimation or EstimationService()

    # ─────────────────────────────────────────────────────────────────── #
    # Public API                                                           #
    # ─────────────────────────────────────────────────────────────────── #

    def optimize(
        self,
        spec: PortfolioSpec,
        returns: pd.DataFrame,
        method: SolveMethod | str = SolveMethod.RANDOM,
        base_weights: WeightsLike | None = None,
        permutations: int | None = None,
        seed: SeedLike = None,
        random_method: RandomMethod | str | None = None,
        cov_method: CovMethod | str | None = None,
        stop_event: threading.Event | None = None,
        fev: Sequence[float] = (1.0,),
    ) -> OptimizationResult:
        """Optimize the portfolio's objectives over one returns window.

        Args:
            spec: Assets, constraints, and objectives.
            returns: Periodic returns (dates × assets); columns must match spec.assets.
            method: SolveMethod.EXACT or SolveMethod.RANDOM.
            base_weights: Prior weights for turnover constraints without their own.
            permutations: Number of random candidates (RANDOM only).
            seed: RNG seed for reproducible random search.
            random_method: simplex / sample / grid (RANDOM only).
            cov_method: Covariance estimator for risk terms.
            stop_event: When set during a random search, the best candidate so
                far is returned instead of finishing the search.
            fev: Simplex sharpening exponents (simplex only).

        Raises:
            ConfigError: malformed inputs or a spec the chosen method cannot solve.
            InfeasibleError: the feasible region is empty / no feasible candidate.
            SolverError: the exact solver failed to converge.
        """
        method = _as_enum(SolveMethod, method, "method")
        spec = self._resolve_turnover(spec, base_weights)
        window = self._window(spec, returns, cov_method)

        feasible, reason = self.check_feasibility(spec)
        if not feasible:
            raise InfeasibleError(reason)

        if method == SolveMethod.EXACT:
            return self._solve_exact(spec, window)

        generator = RandomPortfolioGenerator.from_spec(
            spec,
            method=_as_enum(
                RandomMethod, random_method or settings.random_method, "random_method"
            ),
            permutations=permutations,
            seed=seed,
            fev=fev,
        )
        return self._solve_random(spec, window, generator, stop_event)

    def efficient_frontier(
        self,
        spec: PortfolioSpec,
        returns: pd.DataFrame,
        n_points: int = 20,
        cov_method: CovMethod | str | None = None,
    ) -> list[OptimizationResult]:
        """Minimum-variance portfolios for n_points target returns.

        The target grid spans [mean of the minimum-variance portfolio, max
        achievable mean under the linear constraints].  Infeasible points are
        kept as no-solution results so callers can see the boundary.

        Returns a single-element list containing the minimum-variance
        portfolio when the grid degenerates.
        """
        if n_points < 1:
            raise ConfigError(f"n_points must be positive, got {n_points}")
        window = self._window(spec, returns, cov_method)
        feasible, reason = self.check_feasibility(spec)
        if not feasible:
            raise InfeasibleError(reason)

        rows = self._linear_rows(spec)
        sigma, mu = window.covariance, window.mean
        zeros = np.zeros(spec.n_assets)

        mvp = self.qp_solver(sigma, zeros, rows.a_eq, rows.b_eq, rows.a_ineq, rows.b_ineq)
        mvp_point = self._frontier_result(spec, mvp.weights, window, mvp.iterations)

        lower = window.portfolio_mean(mvp.weights)
        upper = window.portfolio_mean(
            find_feasible_point(rows.a_eq, rows.b_eq, rows.a_ineq, rows.b_ineq, objective=-mu)
        )
        if upper <= lower + _WEIGHT_TOL:
            return [mvp_point]

        points: list[OptimizationResult] = []
        for target in np.linspace(lower, upper, n_points):
            target_rows = rows.stack(
                LinearRows(
                    a_eq=mu.reshape(1, -1),
                    b_eq=np.array([target]),
                    a_ineq=np.zeros((0, spec.n_assets)),
                    b_ineq=np.zeros(0),
                )
            )
            try:
                sol = self.qp_solver(
                    sigma, zeros,
                    target_rows.a_eq, target_rows.b_eq,
                    target_rows.a_ineq, target_rows.b_ineq,
                )
            except (InfeasibleError, SolverError) as exc:
                points.append(
                    OptimizationResult.no_solution(
                        f"No feasible solution at target return {target:.6f}: {exc}",
                        SolveMethod.EXACT,
                    )
                )
                continue
            points.append(self._frontier_result(spec, sol.weights, window, sol.iterations))
        return points

    def check_feasibility(self, spec: PortfolioSpec) -> tuple[bool, str | None]:
        """Check necessary conditions for feasibility before calling a solver.

        Returns (True, None) when no obvious infeasibility is detected.
        Returns (False, plain-language reason) otherwise.

        Checks performed:
          1. Box intersection empty for some asset (min > max).
          2. Sum of minimum bounds exceeds the maximum budget.
          3. Sum of maximum bounds falls short of the minimum budget.
        """
        lower, upper = spec.bounds()
        min_sum, max_sum = spec.weight_sum_range()
        tol = settings.feasibility_tol

        crossed = [a for a, lo, hi in zip(spec.assets, lower, upper) if lo > hi + tol]
        if crossed:
            return False, f"Box bounds leave no admissible weight for assets {crossed}."
        if min_sum > max_sum + tol:
            return False, (
                f"Weight-sum constraints do not overlap "
                f"(min {min_sum:.4f} > max {max_sum:.4f})."
            )
        if float(np.sum(lower)) > max_sum + tol:
            return False, (
                f"Sum of minimum asset bounds ({np.sum(lower):.4f}) exceeds the "
                f"maximum weight sum ({max_sum:.4f}); the budget cannot be satisfied."
            )
        if float(np.sum(upper)) < min_sum - tol:
            return False, (
                f"Sum of maximum asset bounds ({np.sum(upper):.4f}) is below the "
                f"minimum weight sum ({min_sum:.4f}); the budget cannot be satisfied."
            )
        return True, None

    # ─────────────────────────────────────────────────────────────────── #
    # Exact mode                                                           #
    # ─────────────────────────────────────────────────────────────────── #

    def _solve_exact(self, spec: PortfolioSpec, window: ReturnsWindow) -> OptimizationResult:
        rows = self._linear_rows(spec)
        q, c = self._quadratic_form(spec, window)
        sol = self.qp_solver(q, c, rows.a_eq, rows.b_eq, rows.a_ineq, rows.b_ineq)

        lower, upper = spec.bounds()
        weights = np.clip(sol.weights, lower, upper)
        weights = np.where(np.abs(weights) < _WEIGHT_TOL, 0.0, weights)
        if not spec.is_feasible(weights, tol=_SOLUTION_TOL):
            raise SolverError(
                "The exact solver returned a point outside the feasible region."
            )
        return self._build_result(
            spec, weights, window,
            method=SolveMethod.EXACT,
            iterations=sol.iterations,
            solver_meta={"message": sol.message, "nit": sol.iterations},
        )

    def _linear_rows(self, spec: PortfolioSpec) -> LinearRows:
        """Stack every constraint's linear form; the default box applies when no Box is set."""
        n = spec.n_assets
        rows = LinearRows.empty(n)
        if not any(isinstance(c, BoxConstraint) for c in spec.constraints):
            rows = rows.stack(BoxConstraint().to_linear(spec.assets))

        lower, _ = spec.bounds()
        for constraint in spec.constraints:
            if isinstance(constraint, LeverageExposureConstraint):
                if np.any(lower < 0.0):
                    raise ConfigError(
                        "LeverageExposureConstraint is only linear when every lower "
                        "bound is non-negative; use method='random' for long-short specs."
                    )
            elif not constraint.linear:
                raise ConfigError(
                    f"{type(constraint).__name__} is not linear; "
                    "use method='random' for this specification."
                )
            rows = rows.stack(constraint.to_linear(spec.assets))
        return rows

    def _quadratic_form(
        self, spec: PortfolioSpec, window: ReturnsWindow
    ) -> tuple[np.ndarray, np.ndarray]:
        """Translate the objectives into Q, c with  score = −(wᵀQw + cᵀw).

        StdDev is not quadratic, but minimizing it alone has the same argmin
        as minimizing variance, so it is accepted only as the sole weighted
        objective.
        """
        if not spec.objectives:
            raise ConfigError("the portfolio specification has no objectives")
        n = spec.n_assets
        sigma, mu = window.covariance, window.mean
        q = np.zeros((n, n))
        c = np.zeros(n)

        active = [o for o in spec.objectives if getattr(o, "weight", 1.0) > 0.0]
        for objective in spec.objectives:
            if isinstance(objective, ReturnObjective):
                c -= objective.weight * mu
            elif isinstance(objective, RiskObjective):
                if objective.metric == RiskMetric.STDDEV and objective.weight > 0.0:
                    if len(active) > 1:
                        raise ConfigError(
                            "StdDev risk can only be solved exactly as the sole objective; "
                            "use metric='var' or method='random'."
                        )
                q += objective.weight * sigma
            elif isinstance(objective, QuadraticUtilityObjective):
                c -= mu
                q += objective.risk_aversion * sigma
            elif isinstance(objective, ConcentrationObjective):
                q += objective.weight * np.eye(n)
            else:
                raise ConfigError(
                    f"{type(objective).__name__} is not quadratic; use method='random'."
                )
        return q, c

    # ─────────────────────────────────────────────────────────────────── #
    # Random mode                                                          #
    # ─────────────────────────────────────────────────────────────────── #

    def _solve_random(
        self,
        spec: PortfolioSpec,
        window: ReturnsWindow,
        generator: RandomPortfolioGenerator,
        stop_event: threading.Event | None,
    ) -> OptimizationResult:
        if not spec.objectives:
            raise ConfigError("the portfolio specification has no objectives")
        tol = settings.feasibility_tol
        best_weights: np.ndarray | None = None
        best_score = -np.inf
        evaluated = feasible = 0
        interrupted = False

        for candidate in generator:
            if stop_event is not None and stop_event.is_set():
                interrupted = True
                break
            evaluated += 1
            weights = spec.project_or_reject(candidate, tol)
            if weights is None:
                continue
            feasible += 1
            score = self.evaluator.score(spec, weights, window)
            if best_weights is None or score > best_score:
                best_weights, best_score = weights, score

        if best_weights is None:
            raise InfeasibleError(
                f"None of the {evaluated} random portfolios satisfied every constraint; "
                "increase permutations or relax the constraints."
            )
        if interrupted:
            logger.warning(
                "random search interrupted after %d candidates; returning best so far",
                evaluated,
            )
        logger.debug("random search: %d/%d feasible candidates", feasible, evaluated)
        return self._build_result(
            spec, best_weights, window,
            method=SolveMethod.RANDOM,
            iterations=evaluated,
            solver_meta={
                "random_method": generator.method.value,
                "seed": generator.seed,
                "candidates": evaluated,
                "feasible": feasible,
                "interrupted": interrupted,
            },
        )

    # ─────────────────────────────────────────────────────────────────── #
    # Shared helpers                                                       #
    # ─────────────────────────────────────────────────────────────────── #

    def _window(
        self, spec: PortfolioSpec, returns: pd.DataFrame, cov_method: CovMethod | str | None
    ) -> ReturnsWindow:
        aligned = spec.align_returns(returns)
        if len(aligned) < _MIN_PERIODS:
            raise ConfigError(
                f"at least {_MIN_PERIODS} return periods are required, got {len(aligned)}"
            )
        method = _as_enum(CovMethod, cov_method or settings.cov_method, "cov_method")
        return self.estimation.build_window(aligned, method)

    def _resolve_turnover(
        self, spec: PortfolioSpec, base_weights: WeightsLike | None
    ) -> PortfolioSpec:
        if not spec.needs_base_weights():
            return spec
        if base_weights is None:
            raise ConfigError(
                "TurnoverConstraint has no base_weights and none were passed; "
                "provide prior weights for the turnover limit."
            )
        return spec.with_base_weights(base_weights)

    def _build_result(
        self,
        spec: PortfolioSpec,
        weights: np.ndarray,
        window: ReturnsWindow,
        method: SolveMethod,
        iterations: int,
        solver_meta: dict[str, object],
    ) -> OptimizationResult:
        evaluation = self.evaluator.evaluate(spec, weights, window)
        return OptimizationResult(
            weights=pd.Series(weights, index=list(spec.assets), name="weight"),
            objective_measures=evaluation.measures,
            score=evaluation.score,
            method=method,
            iterations=iterations,
            solver_meta=solver_meta,
        )

    def _frontier_result(
        self,
        spec: PortfolioSpec,
        raw_weights: np.ndarray,
        window: ReturnsWindow,
        iterations: int,
    ) -> OptimizationResult:
        lower, upper = spec.bounds()
        weights = np.clip(raw_weights, lower, upper)
        variance = window.portfolio_variance(weights)
        return OptimizationResult(
            weights=pd.Series(weights, index=list(spec.assets), name="weight"),
            objective_measures={
                "mean": window.portfolio_mean(weights),
                "StdDev": float(np.sqrt(variance)),
                "var": variance,
            },
            score=None,
            method=SolveMethod.EXACT,
            iterations=iterations,
        )


def _as_enum(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ConfigError(f"unknown {label}: {value!r}") from exc
