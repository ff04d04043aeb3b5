"""
Default numerical settings and the YAML loader for parameter sweeps.

Usage:
    from glv.config import load_sweep_config

    config = load_sweep_config('sweep.yaml')  # keys override SweepConfig defaults
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field

# Condition number above which A is treated as singular.
SINGULAR_COND = 1e12


@dataclass(frozen=True)
class IntegrationConfig:
    method: str = 'RK45'
    rtol: float = 1e-6
    atol: float = 1e-9
    # step of the Euler-Maruyama scheme used for noisy dynamics
    dt: float = 0.01


@dataclass(frozen=True)
class AssemblyConfig:
    tspan: Tuple[float, float] = (0.0, 10_000.0)
    # abundances at or below this value count as extinct
    threshold: float = 1e-6


@dataclass(frozen=True)
class CavityConfig:
    tol: float = 1e-6
    max_iter: int = 1000


class SweepConfig(BaseModel):
    """Parameters of a mean-interaction sweep run by glv.run_experiment."""
    model_config = ConfigDict(extra = 'forbid', frozen = True)

    richness: int = Field(default = 50, gt = 1, description = "Number of species in the pool")
    mu_min: float = Field(default = -2.0, description = "Smallest size-free mean interaction")
    mu_max: float = Field(default = 0.0, description = "Largest size-free mean interaction")
    n_mu: int = Field(default = 20, ge = 1, description = "Number of mean interaction values")
    sigma: float = Field(default = 0.3, ge = 0, description = "Size-free interaction standard deviation")
    K_mean: float = Field(default = 1.0, description = "Mean carrying capacity")
    K_std: float = Field(default = 0.2, ge = 0, description = "Standard deviation of the carrying capacities")
    t_max: float = Field(default = 1000.0, gt = 0, description = "Duration of each simulation")
    replicates: int = Field(default = 1, ge = 1, description = "Communities sampled per mean interaction")
    seed: int = Field(default = 12345, ge = 0, description = "Root random seed")
    n_jobs: int = Field(default = 1, description = "joblib workers, -1 for all cores")

    def mu_values(self):
        step = (self.mu_max - self.mu_min) / max(self.n_mu - 1, 1)
        return [self.mu_min + i * step for i in range(self.n_mu)]


INTEGRATION = IntegrationConfig()
ASSEMBLY = AssemblyConfig()
CAVITY = CavityConfig()


def load_sweep_config(path, **overrides) -> SweepConfig:
    """
    Load a sweep configuration from a YAML mapping.

    Args:
        path (str or Path): YAML file. Missing keys keep their defaults.
        **overrides: Values applied after the file (e.g. from the command line).
            None values are ignored.

    Returns:
        SweepConfig: Merged configuration.

    Raises:
        pydantic.ValidationError: If a key is unknown or a value has the wrong
            type or range. It is a ValueError.
    """
    with open(Path(path)) as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"sweep config must be a mapping, got {type(loaded).__name__}")

    merged = {**loaded, **{k: v for k, v in overrides.items() if v is not None}}
    return SweepConfig.model_validate(merged)
