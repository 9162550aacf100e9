"""
Solver Configuration
====================
All tolerances and caps for the power-iteration eigendecomposition.
Single source of truth for defaults.

Usage:
    from powerpca.config import CONFIG, SolverConfig, load_config

    tol = CONFIG['power_iteration']['tol']
    config = SolverConfig()                      # defaults
    config = load_config('solver.yaml')          # YAML overrides
    config = config.replace(max_iter=500)        # ad-hoc override
"""

from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


CONFIG = {

    # =================================================================
    # Power iteration (dominant eigenpair)
    # =================================================================
    'power_iteration': {
        'tol': 1e-5,            # ||x - x'|| below this → converged
        'max_iter': 100,        # hard cap on inner steps
        'null_tol': 1e-12,      # ||Mx|| below this → x is in the null space
        'start_rtol': 1e-6,     # ||M·1|| / ||M|| below this → fall back to a basis vector
    },

    # =================================================================
    # Decomposition loop
    # =================================================================
    'decompose': {
        'discard_threshold': 1e-5,   # eigenvalues below this are null space
        'symmetry_rtol': 1e-5,
        'symmetry_atol': 1e-8,
    },

    # =================================================================
    # Matrix-vector multiply
    # =================================================================
    'matvec': {
        'n_workers': 1,         # 1 = plain numpy, >1 = row blocks on threads
        'min_rows_per_worker': 64,
    },
}


def _coerce(name: str, value: Any, kind: Any) -> Union[int, float]:
    """Convert a config value to float, or to int for count fields."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None
    if kind in (int, 'int'):
        if not number.is_integer():
            raise ValueError(f"{name} must be an integer, got {value!r}")
        return int(number)
    return number


@dataclass(frozen=True)
class SolverConfig:
    """Flat view of CONFIG used by the solver, deflator and decomposer."""
    tol: float = CONFIG['power_iteration']['tol']
    max_iter: int = CONFIG['power_iteration']['max_iter']
    null_tol: float = CONFIG['power_iteration']['null_tol']
    start_rtol: float = CONFIG['power_iteration']['start_rtol']
    discard_threshold: float = CONFIG['decompose']['discard_threshold']
    symmetry_rtol: float = CONFIG['decompose']['symmetry_rtol']
    symmetry_atol: float = CONFIG['decompose']['symmetry_atol']
    n_workers: int = CONFIG['matvec']['n_workers']
    min_rows_per_worker: int = CONFIG['matvec']['min_rows_per_worker']

    def __post_init__(self):
        # YAML reads 1e-5 (no decimal point) as a string
        for f in fields(self):
            object.__setattr__(self, f.name, _coerce(f.name, getattr(self, f.name), f.type))

        if not self.tol > 0:
            raise ValueError(f"tol must be positive, got {self.tol}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}")
        if not self.null_tol >= 0:
            raise ValueError(f"null_tol must be non-negative, got {self.null_tol}")
        if not self.start_rtol >= 0:
            raise ValueError(f"start_rtol must be non-negative, got {self.start_rtol}")
        if not (self.symmetry_rtol >= 0 and self.symmetry_atol >= 0):
            raise ValueError("symmetry tolerances must be non-negative")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")
        if self.min_rows_per_worker < 1:
            raise ValueError(
                f"min_rows_per_worker must be >= 1, got {self.min_rows_per_worker}"
            )

    @classmethod
    def from_dict(cls, values: Optional[Dict[str, Any]]) -> 'SolverConfig':
        """
        Build from a flat or sectioned mapping.

        Accepts either flat keys ({'tol': 1e-6}) or the CONFIG layout
        ({'power_iteration': {'tol': 1e-6}}). Unknown keys raise ValueError.
        """
        if not values:
            return cls()

        known = {f.name for f in fields(cls)}
        flat: Dict[str, Any] = {}
        for key, val in values.items():
            if key in CONFIG and isinstance(val, dict):
                for sub_key, sub_val in val.items():
                    if sub_key not in known:
                        raise ValueError(f"Unknown config key: {key}.{sub_key}")
                    flat[sub_key] = sub_val
            elif key in known:
                flat[key] = val
            else:
                raise ValueError(f"Unknown config key: {key}. Available: {sorted(known)}")
        return cls(**flat)

    def replace(self, **overrides) -> 'SolverConfig':
        """Copy with overrides applied. None values are ignored."""
        values = asdict(self)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return SolverConfig(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: Union[str, Path]) -> SolverConfig:
    """Load a SolverConfig from a YAML file. Empty file → defaults."""
    with open(path) as f:
        cfg = yaml.safe_load(f)
    if cfg is None:
        return SolverConfig()
    if not isinstance(cfg, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(cfg).__name__}")
    return SolverConfig.from_dict(cfg)
