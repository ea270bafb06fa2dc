"""Unit tests for OptimizationService.

Closed-form references use a returns matrix whose de-meaned columns are
orthogonal (Hadamard rows), so the sample covariance is exactly diagonal:

  MVP (uncorrelated assets):        w_i ∝ 1/σ_i²
  Quadratic utility (uncorrelated): w_i = (μ_i − γ) / (2λσ_i²),  Σw_i = 1

Test layout:
  - Helpers / Fixtures
  - check_feasibility
  - optimize (exact)
  - optimize (random)
  - Exact vs random agreement
  - Error handling
  - efficient_frontier
"""

from __future__ import annotations

import logging
import threading

import numpy as np
import pandas as pd
import pytest

from portopt.domain.errors import ConfigError, InfeasibleError, SolverError
from portopt.domain.models.constraints import (
    BoxConstraint,
    DiversificationConstraint,
    FactorExposureConstraint,
    FullInvestmentConstraint,
    GroupBound,
    GroupConstraint,
    LeverageExposureConstraint,
    LongOnlyConstraint,
    PositionLimitConstraint,
    TurnoverConstraint,
    WeightSumConstraint,
)
from portopt.domain.models.enums import CovMethod, RandomMethod, RiskMetric, SolveMethod
from portopt.domain.models.objectives import (
    QuadraticUtilityObjective,
    ReturnObjective,
    RiskBudgetObjective,
    RiskObjective,
)
from portopt.domain.models.portfolio import PortfolioSpec
from portopt.domain.services.optimization import OptimizationService
from portopt.domain.services.qp import QPSolution

ASSETS = ("A", "B", "C")


# ═══════════════════════════════════════════════════════════════════════════ #
# Helpers                                                                      #
# ═══════════════════════════════════════════════════════════════════════════ #


def _monthly_returns(n_periods: int = 24, seed: int = 7) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    return pd.DataFrame(
        rng.normal(0.01, 0.04, size=(n_periods, len(ASSETS))),
        index=pd.date_range("2020-01-31", periods=n_periods, freq="ME"),
        columns=list(ASSETS),
    )


def _orthogonal_returns() -> pd.DataFrame:
    """σ² = [4/3·1e-4, 4/3·4e-4, 4/3·4e-4], zero correlation, μ = [1%, 2%, 3%]."""
    signs = np.array(
        [
            [1.0, 1.0, 1.0],
            [-1.0, 1.0, -1.0],
            [1.0, -1.0, -1.0],
            [-1.0, -1.0, 1.0],
        ]
    )
    values = signs * np.array([0.01, 0.02, 0.02]) + np.array([0.01, 0.02, 0.03])
    return pd.DataFrame(
        values,
        index=pd.date_range("2023-01-31", periods=4, freq="ME"),
        columns=list(ASSETS),
    )


def _fully_invested(*extra) -> PortfolioSpec:
    spec = (
        PortfolioSpec.create(ASSETS)
        .add_constraint(FullInvestmentConstraint())
        .add_constraint(LongOnlyConstraint())
    )
    for item in extra:
        if isinstance(item, (RiskObjective, ReturnObjective, QuadraticUtilityObjective,
                             RiskBudgetObjective)):
            spec = spec.add_objective(item)
        else:
            spec = spec.add_constraint(item)
    return spec


class _StopAfter(threading.Event):
    """Event that reports itself set after `n` checks."""

    def __init__(self, n: int) -> None:
        super().__init__()
        self.n = n
        self.calls = 0

    def is_set(self) -> bool:
        self.calls += 1
        return self.calls > self.n


# ═══════════════════════════════════════════════════════════════════════════ #
# Fixtures                                                                     #
# ═══════════════════════════════════════════════════════════════════════════ #


@pytest.fixture
def svc() -> OptimizationService:
    return OptimizationService()


@pytest.fixture
def returns() -> pd.DataFrame:
    return _monthly_returns()


@pytest.fixture
def orthogonal() -> pd.DataFrame:
    return _orthogonal_returns()


@pytest.fixture
def min_stddev_spec() -> PortfolioSpec:
    return _fully_invested(RiskObjective(metric=RiskMetric.STDDEV))


# ═══════════════════════════════════════════════════════════════════════════ #
# check_feasibility                                                            #
# ═══════════════════════════════════════════════════════════════════════════ #


class TestCheckFeasibility:
    def test_returns_true_when_no_issues(self, svc, min_stddev_spec) -> None:
        ok, reason = svc.check_feasibility(min_stddev_spec)
        assert ok is True
        assert reason is None

    def test_min_bounds_exceed_budget(self, svc) -> None:
        spec = _fully_invested(BoxConstraint(min=[0.5, 0.4, 0.3], max=1.0))
        ok, reason = svc.check_feasibility(spec)
        assert ok is False
        assert "Sum of minimum asset bounds" in reason

    def test_max_bounds_below_budget(self, svc) -> None:
        spec = _fully_invested(BoxConstraint(min=0.0, max=0.3))
        ok, reason = svc.check_feasibility(spec)
        assert ok is False
        assert "Sum of maximum asset bounds" in reason

    def test_crossed_boxes(self, svc) -> None:
        spec = _fully_invested(
            BoxConstraint(min=[0.6, 0.0, 0.0], max=1.0),
            BoxConstraint(min=0.0, max=0.5),
        )
        ok, reason = svc.check_feasibility(spec)
        assert ok is False
        assert "['A']" in reason

    def test_disjoint_budgets(self, svc) -> None:
        spec = _fully_invested(WeightSumConstraint(min_sum=0.2, max_sum=0.5))
        ok, reason = svc.check_feasibility(spec)
        assert ok is False
        assert "do not overlap" in reason


# ═══════════════════════════════════════════════════════════════════════════ #
# optimize (exact)                                                             #
# ═══════════════════════════════════════════════════════════════════════════ #


class TestOptimizeExact:
    def test_min_stddev_is_fully_invested_long_only(self, svc, min_stddev_spec, returns) -> None:
        result = svc.optimize(min_stddev_spec, returns, method=SolveMethod.EXACT)
        assert result.is_feasible
        assert result.method == SolveMethod.EXACT
        assert result.weights.sum() == pytest.approx(1.0, abs=1e-9)
        assert (result.weights >= 0).all()

    def test_min_stddev_beats_every_single_asset(self, svc, min_stddev_spec, returns) -> None:
        result = svc.optimize(min_stddev_spec, returns, method="exact")
        single_asset = returns.std(ddof=1).min()
        assert result.objective_measures["StdDev"] <= single_asset + 1e-10

    def test_weights_indexed_by_assets(self, svc, min_stddev_spec, returns) -> None:
        result = svc.optimize(min_stddev_spec, returns[["C", "A", "B"]], method="exact")
        assert list(result.weights.index) == list(ASSETS)
        assert result.weights.name == "weight"

    def test_mvp_inverse_variance(self, svc, orthogonal) -> None:
        # w ∝ 1/σ² = [1, 1/4, 1/4]  →  [2/3, 1/6, 1/6]
        spec = _fully_invested(RiskObjective(metric=RiskMetric.VAR))
        result = svc.optimize(spec, orthogonal, method="exact")
        np.testing.assert_allclose(result.weights.to_numpy(), [2 / 3, 1 / 6, 1 / 6], atol=1e-4)

    def test_box_bounds_respected(self, svc, orthogonal) -> None:
        # Cap A at 0.4; the remainder splits evenly over the equal-variance B and C.
        spec = _fully_invested(
            RiskObjective(metric=RiskMetric.VAR),
            BoxConstraint(min=[0.2, 0.1, 0.1], max=0.4),
        )
        result = svc.optimize(spec, orthogonal, method="exact")
        w = result.weights.to_numpy()
        assert np.all(w >= np.array([0.2, 0.1, 0.1]) - 1e-6)
        assert np.all(w <= 0.4 + 1e-6)
        np.testing.assert_allclose(w, [0.4, 0.3, 0.3], atol=1e-4)

    def test_group_bound_binds(self, svc, orthogonal) -> None:
        spec = _fully_invested(
            RiskObjective(metric=RiskMetric.VAR),
            GroupConstraint(
                groups=[
                    GroupBound(group_id="core", assets=["A"], max=0.5),
                    GroupBound(group_id="satellite", assets=["B", "C"], min=0.5),
                ]
            ),
        )
        result = svc.optimize(spec, orthogonal, method="exact")
        np.testing.assert_allclose(result.weights.to_numpy(), [0.5, 0.25, 0.25], atol=1e-4)

    def test_factor_exposure_binds(self, svc, orthogonal) -> None:
        spec = _fully_invested(
            RiskObjective(metric=RiskMetric.VAR),
            FactorExposureConstraint(exposures=[[1.0], [0.0], [0.0]], min=[0.0], max=[0.5]),
        )
        result = svc.optimize(spec, orthogonal, method="exact")
        np.testing.assert_allclose(result.weights.to_numpy(), [0.5, 0.25, 0.25], atol=1e-4)

    def test_leverage_accepted_for_long_only(self, svc, orthogonal) -> None:
        spec = _fully_invested(
            RiskObjective(metric=RiskMetric.VAR),
            LeverageExposureConstraint(max_leverage=1.0),
        )
        result = svc.optimize(spec, orthogonal, method="exact")
        assert result.weights.abs().sum() <= 1.0 + 1e-6

    def test_quadratic_utility_closed_form(self, svc, orthogonal) -> None:
        # λ = 50: γ = 0.6875 / 112.5,  w = [75, 18.75, 18.75] · (μ − γ)
        spec = _fully_invested(QuadraticUtilityObjective(risk_aversion=50.0))
        result = svc.optimize(spec, orthogonal, method="exact")
        np.testing.assert_allclose(
            result.weights.to_numpy(), [0.2916667, 0.2604167, 0.4479167], atol=1e-4
        )
        assert result.objective_measures["quadratic_utility"] == pytest.approx(result.score)

    def test_unbounded_box_solves(self, svc, orthogonal) -> None:
        # No finite box rows: the unconstrained MVP is still inverse-variance.
        spec = (
            PortfolioSpec.create(ASSETS)
            .add_constraint(FullInvestmentConstraint())
            .add_constraint(BoxConstraint(min=-np.inf, max=np.inf))
            .add_objective(RiskObjective(metric=RiskMetric.VAR))
        )
        result = svc.optimize(spec, orthogonal, method="exact")
        np.testing.assert_allclose(result.weights.to_numpy(), [2 / 3, 1 / 6, 1 / 6], atol=1e-4)

    def test_injected_solver_receives_linear_rows(self, orthogonal) -> None:
        captured: dict[str, np.ndarray] = {}

        def fake_solver(q, c, a_eq, b_eq, a_ineq, b_ineq):
            captured.update(q=q, c=c, a_eq=a_eq, b_eq=b_eq, a_ineq=a_ineq, b_ineq=b_ineq)
            return QPSolution(weights=np.array([0.5, 0.25, 0.25]), iterations=3, message="ok")

        svc = OptimizationService(qp_solver=fake_solver)
        spec = _fully_invested(RiskObjective(metric=RiskMetric.VAR))
        result = svc.optimize(spec, orthogonal, method="exact")

        np.testing.assert_allclose(captured["a_eq"], [[1.0, 1.0, 1.0]])
        np.testing.assert_allclose(captured["b_eq"], [1.0])
        assert captured["a_ineq"].shape == (6, 3)
        np.testing.assert_allclose(captured["c"], np.zeros(3))
        np.testing.assert_allclose(result.weights.to_numpy(), [0.5, 0.25, 0.25])
        assert result.iterations == 3
        assert result.solver_meta["message"] == "ok"

    def test_solver_error_propagates(self, orthogonal) -> None:
        def failing_solver(q, c, a_eq, b_eq, a_ineq, b_ineq):
            raise SolverError("Solver did not converge: Iteration limit reached")

        svc = OptimizationService(qp_solver=failing_solver)
        spec = _fully_invested(RiskObjective(metric=RiskMetric.VAR))
        with pytest.raises(SolverError):
            svc.optimize(spec, orthogonal, method="exact")

    def test_solution_outside_region_is_solver_error(self, orthogonal) -> None:
        def sloppy_solver(q, c, a_eq, b_eq, a_ineq, b_ineq):
            return QPSolution(weights=np.array([0.5, 0.2, 0.2]), iterations=1, message="ok")

        svc = OptimizationService(qp_solver=sloppy_solver)
        spec = _fully_invested(RiskObjective(metric=RiskMetric.VAR))
        with pytest.raises(SolverError):
            svc.optimize(spec, orthogonal, method="exact")

    def test_ledoit_wolf_covariance(self, svc, min_stddev_spec, returns) -> None:
        result = svc.optimize(
            min_stddev_spec, returns, method="exact", cov_method=CovMethod.LEDOIT_WOLF
        )
        assert result.weights.sum() == pytest.approx(1.0, abs=1e-9)


# ═══════════════════════════════════════════════════════════════════════════ #
# optimize (random)                                                            #
# ═══════════════════════════════════════════════════════════════════════════ #


class TestOptimizeRandom:
    def test_min_stddev_is_fully_invested_long_only(self, svc, min_stddev_spec, returns) -> None:
        result = svc.optimize(min_stddev_spec, returns, method="random", seed=1)
        assert result.method == SolveMethod.RANDOM
        assert result.weights.sum() == pytest.approx(1.0, abs=1e-9)
        assert (result.weights >= 0).all()

    def test_min_stddev_beats_every_single_asset(self, svc, min_stddev_spec, returns) -> None:
        result = svc.optimize(min_stddev_spec, returns, method="random", seed=1)
        assert result.objective_measures["StdDev"] <= returns.std(ddof=1).min()

    def test_same_seed_same_result(self, svc, min_stddev_spec, returns) -> None:
        a = svc.optimize(min_stddev_spec, returns, permutations=300, seed=5)
        b = svc.optimize(min_stddev_spec, returns, permutations=300, seed=5)
        pd.testing.assert_series_equal(a.weights, b.weights)
        assert a.score == b.score

    def test_solver_meta(self, svc, min_stddev_spec, returns) -> None:
        result = svc.optimize(min_stddev_spec, returns, permutations=250, seed=5)
        assert result.iterations == 250
        assert result.solver_meta["candidates"] == 250
        assert result.solver_meta["feasible"] == 250
        assert result.solver_meta["random_method"] == "simplex"
        assert result.solver_meta["interrupted"] is False

    @pytest.mark.parametrize("random_method", list(RandomMethod))
    def test_every_strategy_finds_a_feasible_portfolio(
        self, svc, min_stddev_spec, returns, random_method
    ) -> None:
        result = svc.optimize(
            min_stddev_spec, returns, permutations=300, seed=2, random_method=random_method
        )
        assert min_stddev_spec.is_feasible(result.weights.to_numpy())

    def test_box_bounds_respected(self, svc, returns) -> None:
        spec = _fully_invested(
            RiskObjective(), BoxConstraint(min=[0.2, 0.1, 0.1], max=0.4)
        )
        result = svc.optimize(spec, returns, permutations=500, seed=3)
        w = result.weights.to_numpy()
        assert np.all(w >= np.array([0.2, 0.1, 0.1]) - 1e-9)
        assert np.all(w <= 0.4 + 1e-9)

    def test_turnover_limit_respected(self, svc, returns) -> None:
        base = np.full(3, 1 / 3)
        spec = _fully_invested(RiskObjective(), TurnoverConstraint(max_turnover=0.2))
        result = svc.optimize(spec, returns, base_weights=base, permutations=2000, seed=4)
        assert np.abs(result.weights.to_numpy() - base).sum() <= 0.2 + 1e-9

    def test_turnover_base_from_series(self, svc, returns) -> None:
        base = pd.Series({"C": 0.2, "B": 0.3, "A": 0.5})
        spec = _fully_invested(RiskObjective(), TurnoverConstraint(max_turnover=0.3))
        result = svc.optimize(spec, returns, base_weights=base, permutations=2000, seed=4)
        assert np.abs(result.weights.to_numpy() - np.array([0.5, 0.3, 0.2])).sum() <= 0.3 + 1e-9

    def test_position_limit_repairs_candidates(self, svc, returns) -> None:
        spec = _fully_invested(RiskObjective(), PositionLimitConstraint(max_pos=2))
        result = svc.optimize(spec, returns, permutations=300, seed=6)
        assert int((result.weights > 1e-8).sum()) <= 2
        assert result.weights.sum() == pytest.approx(1.0)

    def test_risk_budget_objective(self, svc, returns) -> None:
        spec = _fully_invested(RiskObjective(), RiskBudgetObjective(max_pct=0.5))
        result = svc.optimize(spec, returns, permutations=1000, seed=8)
        assert "risk_budget_StdDev" in result.objective_measures
        # Any breach beyond a sliver costs more than the whole StdDev range.
        assert result.objective_measures["risk_budget_StdDev"] < 0.05

    def test_no_feasible_candidate_raises(self, svc, returns) -> None:
        # 1 − Σw² ≤ 2/3 for three fully invested assets.
        spec = _fully_invested(RiskObjective(), DiversificationConstraint(target=0.9))
        with pytest.raises(InfeasibleError, match="None of the 200 random portfolios"):
            svc.optimize(spec, returns, permutations=200, seed=1)

    def test_stop_event_returns_best_so_far(self, svc, min_stddev_spec, returns, caplog) -> None:
        stop = _StopAfter(50)
        with caplog.at_level(logging.WARNING):
            result = svc.optimize(
                min_stddev_spec, returns, permutations=1000, seed=9, stop_event=stop
            )
        assert result.iterations == 50
        assert result.solver_meta["interrupted"] is True
        assert "interrupted" in caplog.text

    def test_stop_event_before_any_candidate_raises(self, svc, min_stddev_spec, returns) -> None:
        stop = threading.Event()
        stop.set()
        with pytest.raises(InfeasibleError):
            svc.optimize(min_stddev_spec, returns, stop_event=stop)


# ═══════════════════════════════════════════════════════════════════════════ #
# Exact vs random agreement                                                    #
# ═══════════════════════════════════════════════════════════════════════════ #


class TestExactRandomAgreement:
    def test_min_variance_scores_within_one_percent(self, svc, orthogonal) -> None:
        spec = _fully_invested(RiskObjective(metric=RiskMetric.VAR))
        exact = svc.optimize(spec, orthogonal, method="exact")
        random = svc.optimize(spec, orthogonal, method="random", permutations=5000, seed=0)
        assert random.score <= exact.score + 1e-10
        assert random.score == pytest.approx(exact.score, rel=0.01)

    def test_both_modes_report_the_same_measures(self, svc, orthogonal) -> None:
        spec = _fully_invested(RiskObjective(metric=RiskMetric.VAR))
        exact = svc.optimize(spec, orthogonal, method="exact")
        random = svc.optimize(spec, orthogonal, method="random", permutations=100, seed=0)
        assert set(exact.objective_measures) == set(random.objective_measures) == {"var"}


# ═══════════════════════════════════════════════════════════════════════════ #
# Error handling                                                               #
# ═══════════════════════════════════════════════════════════════════════════ #


class TestErrors:
    @pytest.mark.parametrize("method", ["exact", "random"])
    def test_min_bounds_above_budget_infeasible(self, svc, returns, method) -> None:
        spec = _fully_invested(RiskObjective(), BoxConstraint(min=[0.5, 0.4, 0.3], max=1.0))
        with pytest.raises(InfeasibleError, match="Sum of minimum asset bounds"):
            svc.optimize(spec, returns, method=method)

    @pytest.mark.parametrize("method", ["exact", "random"])
    def test_conflicting_group_caps_infeasible(self, svc, returns, method) -> None:
        # Group caps total 0.7, so full investment is out of reach.
        spec = _fully_invested(
            RiskObjective(metric=RiskMetric.VAR),
            GroupConstraint(
                groups=[
                    GroupBound(group_id="core", assets=["A"], max=0.2),
                    GroupBound(group_id="satellite", assets=["B", "C"], max=0.5),
                ]
            ),
        )
        assert svc.check_feasibility(spec) == (True, None)
        with pytest.raises(InfeasibleError):
            svc.optimize(spec, returns, method=method, permutations=200, seed=0)

    def test_unknown_method_raises(self, svc, min_stddev_spec, returns) -> None:
        with pytest.raises(ConfigError, match="unknown method"):
            svc.optimize(min_stddev_spec, returns, method="annealing")

    def test_unknown_random_method_raises(self, svc, min_stddev_spec, returns) -> None:
        with pytest.raises(ConfigError, match="unknown random_method"):
            svc.optimize(min_stddev_spec, returns, random_method="sobol")

    def test_unknown_cov_method_raises(self, svc, min_stddev_spec, returns) -> None:
        with pytest.raises(ConfigError, match="unknown cov_method"):
            svc.optimize(min_stddev_spec, returns, cov_method="shrunk")

    def test_column_mismatch_raises(self, svc, min_stddev_spec, returns) -> None:
        with pytest.raises(ConfigError):
            svc.optimize(min_stddev_spec, returns.rename(columns={"C": "D"}))

    def test_single_period_raises(self, svc, min_stddev_spec, returns) -> None:
        with pytest.raises(ConfigError, match="at least 2 return periods"):
            svc.optimize(min_stddev_spec, returns.iloc[:1])

    def test_no_objectives_raises(self, svc, returns) -> None:
        spec = PortfolioSpec.create(ASSETS).add_constraint(FullInvestmentConstraint())
        with pytest.raises(ConfigError):
            svc.optimize(spec, returns, method="exact")
        with pytest.raises(ConfigError):
            svc.optimize(spec, returns, method="random", permutations=10)

    def test_turnover_without_base_weights_raises(self, svc, returns) -> None:
        spec = _fully_invested(RiskObjective(), TurnoverConstraint(max_turnover=0.2))
        with pytest.raises(ConfigError, match="base_weights"):
            svc.optimize(spec, returns)

    def test_exact_rejects_turnover(self, svc, returns) -> None:
        spec = _fully_invested(
            RiskObjective(metric=RiskMetric.VAR),
            TurnoverConstraint(max_turnover=0.2, base_weights=[1 / 3] * 3),
        )
        with pytest.raises(ConfigError, match="not linear"):
            svc.optimize(spec, returns, method="exact")

    def test_exact_rejects_position_limits(self, svc, returns) -> None:
        spec = _fully_invested(
            RiskObjective(metric=RiskMetric.VAR), PositionLimitConstraint(max_pos=2)
        )
        with pytest.raises(ConfigError):
            svc.optimize(spec, returns, method="exact")

    def test_exact_rejects_risk_budget(self, svc, returns) -> None:
        spec = _fully_invested(RiskBudgetObjective(max_pct=0.5))
        with pytest.raises(ConfigError, match="not quadratic"):
            svc.optimize(spec, returns, method="exact")

    def test_exact_rejects_stddev_with_other_objectives(self, svc, returns) -> None:
        spec = _fully_invested(RiskObjective(metric=RiskMetric.STDDEV), ReturnObjective())
        with pytest.raises(ConfigError, match="StdDev"):
            svc.optimize(spec, returns, method="exact")

    def test_exact_rejects_leverage_for_long_short(self, svc, returns) -> None:
        spec = (
            PortfolioSpec.create(ASSETS)
            .add_constraint(FullInvestmentConstraint())
            .add_constraint(BoxConstraint(min=-0.5, max=1.5))
            .add_constraint(LeverageExposureConstraint(max_leverage=1.6))
            .add_objective(RiskObjective(metric=RiskMetric.VAR))
        )
        with pytest.raises(ConfigError, match="LeverageExposureConstraint"):
            svc.optimize(spec, returns, method="exact")


# ═══════════════════════════════════════════════════════════════════════════ #
# efficient_frontier                                                           #
# ═══════════════════════════════════════════════════════════════════════════ #


class TestEfficientFrontier:
    def test_point_count(self, svc, orthogonal) -> None:
        spec = _fully_invested(RiskObjective(metric=RiskMetric.VAR))
        points = svc.efficient_frontier(spec, orthogonal, n_points=5)
        assert len(points) == 5

    def test_first_point_is_minimum_variance(self, svc, orthogonal) -> None:
        spec = _fully_invested(RiskObjective(metric=RiskMetric.VAR))
        first = svc.efficient_frontier(spec, orthogonal, n_points=5)[0]
        assert first.is_feasible
        np.testing.assert_allclose(first.weights.to_numpy(), [2 / 3, 1 / 6, 1 / 6], atol=1e-3)

    def test_risk_increases_with_target_return(self, svc, orthogonal) -> None:
        spec = _fully_invested(RiskObjective(metric=RiskMetric.VAR))
        points = [
            p for p in svc.efficient_frontier(spec, orthogonal, n_points=6) if p.is_feasible
        ]
        assert len(points) >= 2
        means = [p.objective_measures["mean"] for p in points]
        stdevs = [p.objective_measures["StdDev"] for p in points]
        assert means == sorted(means)
        assert all(b >= a - 1e-6 for a, b in zip(stdevs, stdevs[1:]))
        for p in points:
            assert p.weights.sum() == pytest.approx(1.0, abs=1e-6)

    def test_zero_points_raises(self, svc, orthogonal) -> None:
        spec = _fully_invested(RiskObjective(metric=RiskMetric.VAR))
        with pytest.raises(ConfigError):
            svc.efficient_frontier(spec, orthogonal, n_points=0)
