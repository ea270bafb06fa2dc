"""Random portfolio generator.

Produces a finite, lazy, restartable sequence of candidate weight vectors
inside a box [lower, upper] with a weight-sum budget [min_sum, max_sum].

Strategies:
  simplex — exponential variates normalized onto the unit simplex
            (uniform Dirichlet draw), mapped to  w = lower + (s − Σlower)·d.
            Lower bounds and the budget hold by construction; draws that
            breach an upper bound are resampled up to max_resample times.
            Optional fev exponents (cycled per candidate) sharpen the draw
            toward the corners of the simplex.
  sample  — each weight drawn uniformly inside its box, then rescaled to
            the budget.  Rescaling can push weights outside their box, so
            candidates must be re-checked downstream.
  grid    — every lattice point with spacing grid_step inside the box whose
            sum lies in the budget.  Deterministic; capped at permutations.

Iterating twice over the same generator yields the same candidates: every
iteration starts a fresh RNG from the stored seed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence

import numpy as np

from portopt.config import settings
from portopt.domain.errors import ConfigError
from portopt.domain.models.enums import RandomMethod
from portopt.domain.models.portfolio import PortfolioSpec

logger = logging.getLogger(__name__)

_LATTICE_EPS = 1e-9
_SUM_FLOOR = 1e-12

SeedLike = int | np.random.SeedSequence | None


class RandomPortfolioGenerator:
    """Candidate weight vectors for stochastic search."""

    def __init__(
        self,
        lower: np.ndarray,
        upper: np.ndarray,
        min_sum: float,
        max_sum: float,
        method: RandomMethod = RandomMethod.SIMPLEX,
        permutations: int | None = None,
        seed: SeedLike = None,
        fev: Sequence[float] = (1.0,),
        grid_step: float | None = None,
        max_resample: int | None = None,
        tol: float | None = None,
    ) -> None:
        self.lower = np.asarray(lower, dtype=float)
        self.upper = np.asarray(upper, dtype=float)
        if self.lower.shape != self.upper.shape or self.lower.ndim != 1:
            raise ConfigError("lower and upper bounds must be 1-D arrays of equal length")
        if not (np.all(np.isfinite(self.lower)) and np.all(np.isfinite(self.upper))):
            raise ConfigError("random portfolios need finite box bounds")
        if not (np.isfinite(min_sum) and np.isfinite(max_sum)) or min_sum > max_sum:
            raise ConfigError(f"invalid weight-sum range [{min_sum}, {max_sum}]")

        self.min_sum = float(min_sum)
        self.max_sum = float(max_sum)
        self.method = RandomMethod(method)
        self.permutations = settings.permutations if permutations is None else permutations
        if self.permutations <= 0:
            raise ConfigError(f"permutations must be positive, got {self.permutations}")
        if not fev or any(q <= 0 for q in fev):
            raise ConfigError("fev exponents must be positive")
        self.fev = tuple(float(q) for q in fev)
        self.grid_step = settings.grid_step if grid_step is None else grid_step
        if self.grid_step <= 0:
            raise ConfigError(f"grid_step must be positive, got {self.grid_step}")
        self.max_resample = settings.max_resample if max_resample is None else max_resample
        self.tol = settings.feasibility_tol if tol is None else tol

        # Pin an entropy value so an unseeded generator is still restartable.
        if seed is None:
            seed = int(np.random.SeedSequence().entropy)
        self.seed = seed

    @classmethod
    def from_spec(cls, spec: PortfolioSpec, **kwargs) -> RandomPortfolioGenerator:
        """Generator over the portfolio's effective box and budget."""
        lower, upper = spec.bounds()
        min_sum, max_sum = spec.weight_sum_range()
        return cls(lower, upper, min_sum, max_sum, **kwargs)

    @property
    def n_assets(self) -> int:
        return len(self.lower)

    def __iter__(self) -> Iterator[np.ndarray]:
        if self.method == RandomMethod.SIMPLEX:
            return self._simplex(np.random.default_rng(self.seed))
        if self.method == RandomMethod.SAMPLE:
            return self._sample(np.random.default_rng(self.seed))
        return self._grid()

    def generate(self) -> np.ndarray:
        """Materialize every candidate as a (candidates × assets) matrix."""
        rows = list(self)
        return np.array(rows).reshape(len(rows), self.n_assets)

    # ─────────────────────────────────────────────────────────────────── #
    # Strategies                                                           #
    # ─────────────────────────────────────────────────────────────────── #

    def _target_sum(self, rng: np.random.Generator) -> float:
        # Draw only from sums the box can reach.
        lo = max(self.min_sum, float(np.sum(self.lower)))
        hi = min(self.max_sum, float(np.sum(self.upper)))
        if lo > hi:
            lo, hi = self.min_sum, self.max_sum
        if lo == hi:
            return lo
        return float(rng.uniform(lo, hi))

    def _simplex(self, rng: np.random.Generator) -> Iterator[np.ndarray]:
        n = self.n_assets
        lower_total = float(np.sum(self.lower))
        for i in range(self.permutations):
            q = self.fev[i % len(self.fev)]
            slack = self._target_sum(rng) - lower_total
            w = self.lower.copy()
            for _ in range(max(self.max_resample, 1)):
                e = rng.exponential(size=n) ** q
                w = self.lower + slack * (e / np.sum(e))
                if slack < 0 or np.all(w <= self.upper + self.tol):
                    break
            yield w

    def _sample(self, rng: np.random.Generator) -> Iterator[np.ndarray]:
        for _ in range(self.permutations):
            w = rng.uniform(self.lower, self.upper)
            target = self._target_sum(rng)
            total = float(np.sum(w))
            if abs(total) > _SUM_FLOOR:
                w = w * (target / total)
            yield w

    def _grid(self) -> Iterator[np.ndarray]:
        step = self.grid_step
        lo_k = np.ceil(self.lower / step - _LATTICE_EPS).astype(int)
        hi_k = np.floor(self.upper / step + _LATTICE_EPS).astype(int)
        min_k = int(np.ceil(self.min_sum / step - _LATTICE_EPS))
        max_k = int(np.floor(self.max_sum / step + _LATTICE_EPS))

        # Smallest / largest achievable lattice sum of assets i..n-1.
        rest_lo = np.concatenate([np.cumsum(lo_k[::-1])[::-1], [0]])
        rest_hi = np.concatenate([np.cumsum(hi_k[::-1])[::-1], [0]])

        emitted = 0
        for point in self._walk(lo_k, hi_k, rest_lo, rest_hi, min_k, max_k):
            if emitted >= self.permutations:
                logger.warning(
                    "grid enumeration truncated at %d candidates; "
                    "increase grid_step or permutations for an exhaustive grid",
                    self.permutations,
                )
                return
            emitted += 1
            yield np.asarray(point, dtype=float) * step

    def _walk(
        self,
        lo_k: np.ndarray,
        hi_k: np.ndarray,
        rest_lo: np.ndarray,
        rest_hi: np.ndarray,
        min_k: int,
        max_k: int,
    ) -> Iterator[list[int]]:
        """Depth-first lattice walk in lexicographic order, pruned on reachable sums.

        Each stack frame (i, k) is the next lattice value to try for asset i;
        prefix and sums hold the current path, so memory stays linear in the
        number of assets.
        """
        n = len(lo_k)
        if n == 0:
            return
        prefix: list[int] = []
        sums = [0]
        stack = [(0, int(lo_k[0]))]
        while stack:
            i, k = stack.pop()
            del prefix[i:]
            del sums[i + 1:]
            total = sums[i] + k
            if k > hi_k[i] or total + rest_lo[i + 1] > max_k:
                continue
            stack.append((i, k + 1))
            if total + rest_hi[i + 1] < min_k:
                continue
            prefix.append(k)
            sums.append(total)
            if i + 1 == n:
                yield list(prefix)
            else:
                stack.append((i + 1, int(lo_k[i + 1])))
