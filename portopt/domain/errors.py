"""Domain error taxonomy.

ConfigError     — malformed specification or inputs; never retried.
InfeasibleError — the feasible region is empty (or no feasible candidate
                  was found by random search).
SolverError     — the exact solver failed for reasons other than
                  infeasibility (ill-conditioning, iteration budget).
"""


class PortfolioError(Exception):
    """Base class for all portfolio optimization errors."""


class ConfigError(PortfolioError):
    """The portfolio specification or its inputs are malformed."""


class InfeasibleError(PortfolioError):
    """No weight vector satisfies every active constraint."""


class SolverError(PortfolioError):
    """The numeric solve failed to converge."""
