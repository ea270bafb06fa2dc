"""Domain services package."""

from .estimation import EstimationService
from .objectives import ObjectiveEvaluator
from .optimization import OptimizationService
from .qp import QPSolution, solve_qp
from .random_portfolios import RandomPortfolioGenerator
from .rebalancing import RebalancingService

__all__ = [
    "EstimationService",
    "ObjectiveEvaluator",
    "OptimizationService",
    "QPSolution",
    "RandomPortfolioGenerator",
    "RebalancingService",
    "solve_qp",
]
