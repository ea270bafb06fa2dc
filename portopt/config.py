"""Optimizer defaults, overridable through PORTOPT_* environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from portopt.domain.models.enums import CovMethod, RandomMethod


class OptimizerSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PORTOPT_", env_file=".env", extra="ignore")

    permutations: int = 2000
    random_method: RandomMethod = RandomMethod.SIMPLEX
    grid_step: float = 0.05
    max_resample: int = 100
    feasibility_tol: float = 1e-9
    solver_ftol: float = 1e-10
    solver_maxiter: int = 1000
    cov_method: CovMethod = CovMethod.SAMPLE


settings = OptimizerSettings()
