"""Quadratic-programming routine for the exact solver.

    min_w  wᵀQw + cᵀw    s.t.  A_eq·w = b_eq,   A_ineq·w ≤ b_ineq

Solver: scipy.
  - Phase 1: scipy.optimize.linprog (HiGHS) finds a feasible point or
    proves the region empty, which is reported as InfeasibleError.
  - Phase 2: scipy.optimize.minimize (SLSQP) from that point.  Failure to
    converge is reported as SolverError.

Any callable with the QPSolver signature can be injected into
OptimizationService in place of solve_qp.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from scipy.optimize import linprog, minimize

from portopt.config import settings
from portopt.domain.errors import InfeasibleError, SolverError

logger = logging.getLogger(__name__)

_LINPROG_INFEASIBLE = 2
_SLSQP_INCOMPATIBLE = 4     # "Inequality constraints incompatible"


@dataclass(frozen=True)
class QPSolution:
    weights: np.ndarray
    iterations: int
    message: str


class QPSolver(Protocol):
    def __call__(
        self,
        q: np.ndarray,
        c: np.ndarray,
        a_eq: np.ndarray,
        b_eq: np.ndarray,
        a_ineq: np.ndarray,
        b_ineq: np.ndarray,
    ) -> QPSolution: ...


def find_feasible_point(
    a_eq: np.ndarray,
    b_eq: np.ndarray,
    a_ineq: np.ndarray,
    b_ineq: np.ndarray,
    objective: np.ndarray | None = None,
) -> np.ndarray:
    """Solve the linear program min objectiveᵀw over the region (0 by default).

    Raises InfeasibleError when the region is empty, SolverError on any other
    linprog failure.
    """
    n = a_eq.shape[1]
    res = linprog(
        np.zeros(n) if objective is None else objective,
        A_ub=a_ineq if len(b_ineq) else None,
        b_ub=b_ineq if len(b_ineq) else None,
        A_eq=a_eq if len(b_eq) else None,
        b_eq=b_eq if len(b_eq) else None,
        bounds=[(None, None)] * n,
        method="highs",
    )
    if res.status == _LINPROG_INFEASIBLE:
        raise InfeasibleError(
            "The linear constraints admit no solution: the feasible region is empty."
        )
    if not res.success:
        raise SolverError(f"Linear program failed: {res.message}")
    return np.asarray(res.x, dtype=float)


def solve_qp(
    q: np.ndarray,
    c: np.ndarray,
    a_eq: np.ndarray,
    b_eq: np.ndarray,
    a_ineq: np.ndarray,
    b_ineq: np.ndarray,
) -> QPSolution:
    """Default QPSolver: linprog feasibility phase followed by SLSQP."""
    x0 = find_feasible_point(a_eq, b_eq, a_ineq, b_ineq)

    # SLSQP sees the objective normalized to unit scale.
    scale = max(float(np.abs(q).max(initial=0.0)), float(np.abs(c).max(initial=0.0)), 1e-12)
    q_sym = (q + q.T) / (2.0 * scale)
    c_scaled = c / scale
    cons: list[dict] = []
    if len(b_eq):
        cons.append({"type": "eq", "fun": lambda w: a_eq @ w - b_eq, "jac": lambda w: a_eq})
    if len(b_ineq):
        cons.append(
            {"type": "ineq", "fun": lambda w: b_ineq - a_ineq @ w, "jac": lambda w: -a_ineq}
        )

    sol = minimize(
        fun=lambda w: float(w @ q_sym @ w + c_scaled @ w),
        x0=x0,
        jac=lambda w: 2.0 * q_sym @ w + c_scaled,
        method="SLSQP",
        constraints=cons,
        options={"ftol": settings.solver_ftol, "maxiter": settings.solver_maxiter},
    )
    logger.debug("SLSQP finished: status=%s nit=%s message=%s", sol.status, sol.nit, sol.message)

    if not sol.success:
        if sol.status == _SLSQP_INCOMPATIBLE:
            raise InfeasibleError(f"Constraints are incompatible: {sol.message}")
        raise SolverError(f"Solver did not converge: {sol.message}")
    return QPSolution(
        weights=np.asarray(sol.x, dtype=float),
        iterations=int(sol.nit),
        message=str(sol.message),
    )
