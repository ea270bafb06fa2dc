"""Constraint domain models.

Each constraint is a tagged variant (discriminated on ``kind``) carrying
exactly the fields it needs, validated at construction time:

WeightSumConstraint        — min_sum ≤ Σwᵢ ≤ max_sum
FullInvestmentConstraint   — WeightSum(1, 1)
BoxConstraint              — minᵢ ≤ wᵢ ≤ maxᵢ  (scalar or per-asset)
LongOnlyConstraint         — Box(0, 1)
GroupConstraint            — per-group weight-sum bounds over a partition
TurnoverConstraint         — Σ|wᵢ − baseᵢ| ≤ max_turnover
DiversificationConstraint  — 1 − Σwᵢ² ≥ target
PositionLimitConstraint    — caps on the number of non-zero positions
FactorExposureConstraint   — min_k ≤ (Bᵀw)_k ≤ max_k
LeverageExposureConstraint — Σ|wᵢ| ≤ max_leverage

Feasibility checks take the ordered asset list so that constraints keyed by
asset identifier (groups, factor exposures) can resolve column positions.
Cross-asset validation (per-asset lengths, group partition) happens in
PortfolioSpec, which is the only place the asset list is known.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Annotated, ClassVar, Literal, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from portopt.domain.errors import ConfigError

_POSITION_TOL = 1e-8        # |wᵢ| at or below this is not a position


@dataclass(frozen=True)
class LinearRows:
    """Linear form of a constraint:  A_eq·w = b_eq  and  A_ineq·w ≤ b_ineq."""

    a_eq: np.ndarray
    b_eq: np.ndarray
    a_ineq: np.ndarray
    b_ineq: np.ndarray

    @classmethod
    def empty(cls, n: int) -> LinearRows:
        return cls(
            a_eq=np.zeros((0, n)),
            b_eq=np.zeros(0),
            a_ineq=np.zeros((0, n)),
            b_ineq=np.zeros(0),
        )

    def stack(self, other: LinearRows) -> LinearRows:
        return LinearRows(
            a_eq=np.vstack([self.a_eq, other.a_eq]),
            b_eq=np.concatenate([self.b_eq, other.b_eq]),
            a_ineq=np.vstack([self.a_ineq, other.a_ineq]),
            b_ineq=np.concatenate([self.b_ineq, other.b_ineq]),
        )


def _range_rows(row: np.ndarray, lower: float, upper: float) -> LinearRows:
    """Rows for lower ≤ row·w ≤ upper; collapses to one equality when lower = upper."""
    n = len(row)
    if lower == upper:
        return LinearRows(
            a_eq=row.reshape(1, n),
            b_eq=np.array([lower]),
            a_ineq=np.zeros((0, n)),
            b_ineq=np.zeros(0),
        )
    a_rows: list[np.ndarray] = []
    b_rows: list[float] = []
    if np.isfinite(upper):
        a_rows.append(row)
        b_rows.append(upper)
    if np.isfinite(lower):
        a_rows.append(-row)
        b_rows.append(-lower)
    return LinearRows(
        a_eq=np.zeros((0, n)),
        b_eq=np.zeros(0),
        a_ineq=np.array(a_rows).reshape(len(a_rows), n),
        b_ineq=np.array(b_rows),
    )


class _ConstraintBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    linear: ClassVar[bool] = False

    def is_satisfied(
        self, weights: np.ndarray, assets: Sequence[str], tol: float = 1e-9
    ) -> bool:
        raise NotImplementedError

    def project_or_reject(
        self, weights: np.ndarray, assets: Sequence[str], tol: float = 1e-9
    ) -> np.ndarray | None:
        """Return a (possibly repaired) weight vector, or None to reject it.

        The default never repairs: a candidate is kept only if it already
        satisfies the constraint.
        """
        return weights if self.is_satisfied(weights, assets, tol) else None

    def to_linear(self, assets: Sequence[str]) -> LinearRows:
        raise ConfigError(
            f"{type(self).__name__} is not linear and cannot be passed to the exact solver."
        )


# ─────────────────────────────────────────────────────────────────────────── #
# Budget                                                                       #
# ─────────────────────────────────────────────────────────────────────────── #


class WeightSumConstraint(_ConstraintBase):
    """min_sum ≤ Σwᵢ ≤ max_sum.  min_sum = max_sum enforces an exact budget."""

    kind: Literal["weight_sum"] = "weight_sum"
    min_sum: float
    max_sum: float
    linear: ClassVar[bool] = True

    @model_validator(mode="after")
    def _valid_range(self) -> WeightSumConstraint:
        if self.min_sum > self.max_sum:
            raise ConfigError(
                f"min_sum ({self.min_sum}) must not exceed max_sum ({self.max_sum})"
            )
        return self

    def is_satisfied(self, weights, assets, tol=1e-9) -> bool:
        total = float(np.sum(weights))
        return self.min_sum - tol <= total <= self.max_sum + tol

    def to_linear(self, assets):
        return _range_rows(np.ones(len(assets)), self.min_sum, self.max_sum)


class FullInvestmentConstraint(WeightSumConstraint):
    """Σwᵢ = 1."""

    kind: Literal["full_investment"] = "full_investment"
    min_sum: float = 1.0
    max_sum: float = 1.0

    @model_validator(mode="after")
    def _exact_budget(self) -> FullInvestmentConstraint:
        if self.min_sum != 1.0 or self.max_sum != 1.0:
            raise ConfigError("FullInvestmentConstraint is fixed at WeightSum(1, 1)")
        return self


# ─────────────────────────────────────────────────────────────────────────── #
# Per-asset bounds                                                             #
# ─────────────────────────────────────────────────────────────────────────── #


class BoxConstraint(_ConstraintBase):
    """Per-asset weight bounds [min, max].

    Either bound may be a scalar (applied to every asset) or a list with one
    entry per asset; list lengths are checked against the asset count by
    PortfolioSpec.
    """

    kind: Literal["box"] = "box"
    min: float | list[float] = 0.0
    max: float | list[float] = 1.0
    linear: ClassVar[bool] = True

    @model_validator(mode="after")
    def _valid_range(self) -> BoxConstraint:
        lo = np.atleast_1d(np.asarray(self.min, dtype=float))
        hi = np.atleast_1d(np.asarray(self.max, dtype=float))
        if len(lo) > 1 and len(hi) > 1 and len(lo) != len(hi):
            raise ConfigError(
                f"Box min has {len(lo)} entries but max has {len(hi)}"
            )
        if np.any(np.isnan(lo)) or np.any(np.isnan(hi)):
            raise ConfigError("Box bounds must not be NaN")
        if np.any(lo > hi):
            raise ConfigError("Box min must not exceed max for any asset")
        return self

    def bounds(self, n: int) -> tuple[np.ndarray, np.ndarray]:
        """Resolve (lower, upper) arrays of length n."""
        lower = np.broadcast_to(np.asarray(self.min, dtype=float), (n,)).copy()
        upper = np.broadcast_to(np.asarray(self.max, dtype=float), (n,)).copy()
        return lower, upper

    def is_satisfied(self, weights, assets, tol=1e-9) -> bool:
        lower, upper = self.bounds(len(weights))
        return bool(np.all(weights >= lower - tol) and np.all(weights <= upper + tol))

    def to_linear(self, assets):
        n = len(assets)
        lower, upper = self.bounds(n)
        eye = np.eye(n)
        # Infinite bounds leave the weight unconstrained on that side.
        keep_hi = np.isfinite(upper)
        keep_lo = np.isfinite(lower)
        return LinearRows(
            a_eq=np.zeros((0, n)),
            b_eq=np.zeros(0),
            a_ineq=np.vstack([eye[keep_hi], -eye[keep_lo]]),
            b_ineq=np.concatenate([upper[keep_hi], -lower[keep_lo]]),
        )


class LongOnlyConstraint(BoxConstraint):
    """0 ≤ wᵢ ≤ 1 for every asset."""

    kind: Literal["long_only"] = "long_only"
    min: float | list[float] = 0.0
    max: float | list[float] = 1.0

    @model_validator(mode="after")
    def _fixed_bounds(self) -> LongOnlyConstraint:
        if self.min != 0.0 or self.max != 1.0:
            raise ConfigError("LongOnlyConstraint is fixed at Box(0, 1)")
        return self


# ─────────────────────────────────────────────────────────────────────────── #
# Groups                                                                       #
# ─────────────────────────────────────────────────────────────────────────── #


class GroupBound(BaseModel):
    """One group of assets whose combined weight must lie in [min, max]."""

    model_config = ConfigDict(frozen=True)

    group_id: str
    assets: list[str]
    min: float = 0.0
    max: float = 1.0

    @model_validator(mode="after")
    def _valid(self) -> GroupBound:
        if not self.assets:
            raise ConfigError(f"Group {self.group_id!r} has no assets")
        if self.min > self.max:
            raise ConfigError(
                f"Group {self.group_id!r}: min ({self.min}) must not exceed max ({self.max})"
            )
        return self

    def indicator(self, assets: Sequence[str]) -> np.ndarray:
        members = set(self.assets)
        return np.array([1.0 if a in members else 0.0 for a in assets])


class GroupConstraint(_ConstraintBase):
    """Group weight-sum bounds.  Groups must partition the asset set."""

    kind: Literal["group"] = "group"
    groups: list[GroupBound]
    linear: ClassVar[bool] = True

    @model_validator(mode="after")
    def _unique_ids(self) -> GroupConstraint:
        ids = [g.group_id for g in self.groups]
        if len(set(ids)) != len(ids):
            raise ConfigError(f"Duplicate group ids: {ids}")
        return self

    def check_partition(self, assets: Sequence[str]) -> None:
        """Raise ConfigError unless every asset belongs to exactly one group."""
        seen: dict[str, str] = {}
        universe = set(assets)
        for group in self.groups:
            for asset in group.assets:
                if asset not in universe:
                    raise ConfigError(
                        f"Group {group.group_id!r} references unknown asset {asset!r}"
                    )
                if asset in seen:
                    raise ConfigError(
                        f"Asset {asset!r} appears in groups {seen[asset]!r} "
                        f"and {group.group_id!r}; groups must not overlap"
                    )
                seen[asset] = group.group_id
        missing = [a for a in assets if a not in seen]
        if missing:
            raise ConfigError(f"Assets not assigned to any group: {missing}")

    def is_satisfied(self, weights, assets, tol=1e-9) -> bool:
        for group in self.groups:
            total = float(group.indicator(assets) @ weights)
            if total < group.min - tol or total > group.max + tol:
                return False
        return True

    def to_linear(self, assets):
        rows = LinearRows.empty(len(assets))
        for group in self.groups:
            rows = rows.stack(_range_rows(group.indicator(assets), group.min, group.max))
        return rows


# ─────────────────────────────────────────────────────────────────────────── #
# Non-linear constraints                                                       #
# ─────────────────────────────────────────────────────────────────────────── #


class TurnoverConstraint(_ConstraintBase):
    """Σ|wᵢ − baseᵢ| ≤ max_turnover.

    base_weights may be left unset in a template spec; a backtest fills it in
    from the previous rebalancing date's solution.  Checking feasibility
    without base weights raises ConfigError.
    """

    kind: Literal["turnover"] = "turnover"
    max_turnover: float
    base_weights: list[float] | None = None

    @model_validator(mode="after")
    def _positive(self) -> TurnoverConstraint:
        if self.max_turnover <= 0.0:
            raise ConfigError(f"max_turnover must be positive, got {self.max_turnover}")
        return self

    def turnover(self, weights: np.ndarray) -> float:
        if self.base_weights is None:
            raise ConfigError(
                "TurnoverConstraint requires base_weights; pass prior weights "
                "or configure the first rebalancing period as unconstrained."
            )
        return float(np.sum(np.abs(weights - np.asarray(self.base_weights))))

    def is_satisfied(self, weights, assets, tol=1e-9) -> bool:
        return self.turnover(weights) <= self.max_turnover + tol


class DiversificationConstraint(_ConstraintBase):
    """1 − Σwᵢ² ≥ target  (target ∈ [0, 1))."""

    kind: Literal["diversification"] = "diversification"
    target: float

    @model_validator(mode="after")
    def _valid_target(self) -> DiversificationConstraint:
        if not 0.0 <= self.target < 1.0:
            raise ConfigError(f"diversification target must be in [0, 1), got {self.target}")
        return self

    def is_satisfied(self, weights, assets, tol=1e-9) -> bool:
        return 1.0 - float(np.sum(weights**2)) >= self.target - tol


class PositionLimitConstraint(_ConstraintBase):
    """Caps on the number of non-zero, long, and short positions.

    project_or_reject repairs a candidate by zeroing its smallest positions
    and redistributing the removed weight pro rata over the survivors, which
    preserves Σwᵢ.  Box bounds are re-checked downstream.
    """

    kind: Literal["position_limit"] = "position_limit"
    max_pos: int | None = None
    max_pos_long: int | None = None
    max_pos_short: int | None = None

    @model_validator(mode="after")
    def _valid_limits(self) -> PositionLimitConstraint:
        limits = (self.max_pos, self.max_pos_long, self.max_pos_short)
        if all(v is None for v in limits):
            raise ConfigError("PositionLimitConstraint needs at least one limit")
        if any(v is not None and v < 0 for v in limits):
            raise ConfigError("position limits must be non-negative")
        return self

    def is_satisfied(self, weights, assets, tol=1e-9) -> bool:
        n_long = int(np.sum(weights > _POSITION_TOL))
        n_short = int(np.sum(weights < -_POSITION_TOL))
        if self.max_pos is not None and n_long + n_short > self.max_pos:
            return False
        if self.max_pos_long is not None and n_long > self.max_pos_long:
            return False
        if self.max_pos_short is not None and n_short > self.max_pos_short:
            return False
        return True

    def project_or_reject(self, weights, assets, tol=1e-9):
        if self.is_satisfied(weights, assets, tol):
            return weights
        w = weights.copy()
        w = _keep_largest(w, w > _POSITION_TOL, self.max_pos_long)
        w = _keep_largest(w, w < -_POSITION_TOL, self.max_pos_short)
        w = _keep_largest(w, np.abs(w) > _POSITION_TOL, self.max_pos)

        kept = np.abs(w) > _POSITION_TOL
        kept_total = float(np.sum(w[kept]))
        if not kept.any() or abs(kept_total) <= _POSITION_TOL:
            return None
        w[kept] *= float(np.sum(weights)) / kept_total
        return w if self.is_satisfied(w, assets, tol) else None


def _keep_largest(w: np.ndarray, mask: np.ndarray, limit: int | None) -> np.ndarray:
    """Zero all but the `limit` largest-magnitude entries selected by mask."""
    if limit is None or int(mask.sum()) <= limit:
        return w
    idx = np.flatnonzero(mask)
    order = idx[np.argsort(-np.abs(w[idx]), kind="stable")]
    w[order[limit:]] = 0.0
    return w


class FactorExposureConstraint(_ConstraintBase):
    """min_k ≤ Σᵢ B_{ik}·wᵢ ≤ max_k for every factor k.

    exposures is an (n_assets × n_factors) loading matrix in asset order.
    """

    kind: Literal["factor_exposure"] = "factor_exposure"
    exposures: list[list[float]]
    min: list[float]
    max: list[float]
    linear: ClassVar[bool] = True

    @model_validator(mode="after")
    def _shape(self) -> FactorExposureConstraint:
        widths = {len(row) for row in self.exposures}
        if len(widths) != 1:
            raise ConfigError("factor exposure rows must all have the same length")
        k = widths.pop()
        if len(self.min) != k or len(self.max) != k:
            raise ConfigError(
                f"factor exposure bounds must have {k} entries (one per factor)"
            )
        if any(lo > hi for lo, hi in zip(self.min, self.max)):
            raise ConfigError("factor exposure min must not exceed max")
        return self

    @property
    def loadings(self) -> np.ndarray:
        return np.asarray(self.exposures, dtype=float)

    def is_satisfied(self, weights, assets, tol=1e-9) -> bool:
        exposure = self.loadings.T @ weights
        return bool(
            np.all(exposure >= np.asarray(self.min) - tol)
            and np.all(exposure <= np.asarray(self.max) + tol)
        )

    def to_linear(self, assets):
        rows = LinearRows.empty(len(assets))
        for k, column in enumerate(self.loadings.T):
            rows = rows.stack(_range_rows(column, self.min[k], self.max[k]))
        return rows


class LeverageExposureConstraint(_ConstraintBase):
    """Σ|wᵢ| ≤ max_leverage.

    Linear only when every weight is bounded below by zero; the solver
    dispatcher decides whether the linear form applies.
    """

    kind: Literal["leverage_exposure"] = "leverage_exposure"
    max_leverage: float

    @model_validator(mode="after")
    def _positive(self) -> LeverageExposureConstraint:
        if self.max_leverage <= 0.0:
            raise ConfigError(f"max_leverage must be positive, got {self.max_leverage}")
        return self

    def is_satisfied(self, weights, assets, tol=1e-9) -> bool:
        return float(np.sum(np.abs(weights))) <= self.max_leverage + tol

    def to_linear(self, assets):
        return _range_rows(np.ones(len(assets)), -np.inf, self.max_leverage)


Constraint = Annotated[
    Union[
        WeightSumConstraint,
        FullInvestmentConstraint,
        BoxConstraint,
        LongOnlyConstraint,
        GroupConstraint,
        TurnoverConstraint,
        DiversificationConstraint,
        PositionLimitConstraint,
        FactorExposureConstraint,
        LeverageExposureConstraint,
    ],
    Field(discriminator="kind"),
]
