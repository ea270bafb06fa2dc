"""Domain model package.

All domain objects are pure Python / Pydantic models with no solver or
infrastructure dependencies.  Import from this package to avoid coupling
application code to individual module paths.
"""

from .backtest import BacktestEntry, BacktestResult, RebalancingConfig
from .constraints import (
    BoxConstraint,
    Constraint,
    DiversificationConstraint,
    FactorExposureConstraint,
    FullInvestmentConstraint,
    GroupBound,
    GroupConstraint,
    LeverageExposureConstraint,
    LinearRows,
    LongOnlyConstraint,
    PositionLimitConstraint,
    TurnoverConstraint,
    WeightSumConstraint,
)
from .enums import CovMethod, RandomMethod, RebalanceOn, RiskMetric, SolveMethod
from .objectives import (
    ConcentrationObjective,
    Objective,
    QuadraticUtilityObjective,
    ReturnObjective,
    RiskBudgetObjective,
    RiskObjective,
    risk_contributions,
)
from .optimization import OptimizationResult
from .portfolio import PortfolioSpec
from .returns import ReturnsWindow

__all__ = [
    # enums
    "CovMethod",
    "RandomMethod",
    "RebalanceOn",
    "RiskMetric",
    "SolveMethod",
    # constraints
    "BoxConstraint",
    "Constraint",
    "DiversificationConstraint",
    "FactorExposureConstraint",
    "FullInvestmentConstraint",
    "GroupBound",
    "GroupConstraint",
    "LeverageExposureConstraint",
    "LinearRows",
    "LongOnlyConstraint",
    "PositionLimitConstraint",
    "TurnoverConstraint",
    "WeightSumConstraint",
    # objectives
    "ConcentrationObjective",
    "Objective",
    "QuadraticUtilityObjective",
    "ReturnObjective",
    "RiskBudgetObjective",
    "RiskObjective",
    "risk_contributions",
    # portfolio
    "PortfolioSpec",
    "ReturnsWindow",
    # results
    "OptimizationResult",
    "BacktestEntry",
    "BacktestResult",
    "RebalancingConfig",
]
