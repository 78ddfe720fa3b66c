"""Base classes and bootstrap configuration.

This module defines the abstract base estimator, the bootstrap configuration
data structure, and the standardized estimation results container.
"""

# eslstat/estimators/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from eslstat.core import bootstrap as bt

__all__ = [
    "BaseEstimator",
    "BootConfig",
    "EstimationResult",
    "ci_level_to_alpha",
    "normalize_ci_level",
]


def normalize_ci_level(level: float | None, *, default: float = 0.95) -> float:
    """Normalize confidence level to a probability (0, 1)."""
    if not (0.0 < float(default) < 1.0):
        raise ValueError("default confidence level must lie in (0, 1)")
    if level is None:
        coerced = float(default)
    else:
        coerced = float(level)
        # Accept percentage-style inputs (e.g., 90 for 90%)
        if coerced > 1.0:
            coerced /= 100.0
    if not (0.0 < coerced < 1.0):
        raise ValueError("ci_level must be in (0, 1); supply e.g. 0.95 or 95")
    return coerced


def ci_level_to_alpha(level: float | None, *, default: float = 0.95) -> float:
    """Return the corresponding tail probability ``alpha`` for a confidence level."""
    ci_level = normalize_ci_level(level, default=default)
    return 1.0 - ci_level


# ---------------------------------------------------------------------
# Results container, estimator-agnostic
# ---------------------------------------------------------------------
@dataclass
class EstimationResult:
    """Container for estimation results.

    Stores parameter estimates, standard errors (if computed), bootstrap
    bands, and diagnostics.
    """

    params: pd.Series
    se: pd.Series | None = None
    bands: dict[str, pd.DataFrame] | None = None
    n_obs: int | None = None
    model_info: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    """Dictionary for estimator-specific diagnostics and intermediate results."""

    def __repr__(self) -> str:  # pragma: no cover - convenience only
        head = ", ".join(f"{k}={v}" for k, v in self.model_info.items())
        return f"EstimationResult(k={len(self.params)}, n={self.n_obs}, {head})"


# ---------------------------------------------------------------------
# Bootstrap configuration (nonparametric pairs bootstrap)
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BootConfig:
    """Pairs bootstrap configuration shared by estimators.

    Notes
    -----
    - Replications: default is 200 (project-wide).
    - Reproducibility: ``seed`` initializes a ``np.random.Generator``;
      indices are drawn before any refit, so ``n_jobs`` never changes
      results.
    - Workers: ``n_jobs=None`` defers to ``ESLSTAT_N_JOBS`` (serial when unset).
    - ``ci_level`` accepts 0.95 or 95.

    """

    n_boot: int = bt.DEFAULT_BOOTSTRAP_ITERATIONS
    seed: int | None = None
    n_jobs: int | None = None
    ci_level: float = 0.95

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if int(self.n_boot) < 2:
            msg = f"n_boot must be >= 2 for interval estimation, got {self.n_boot}"
            raise ValueError(msg)
        if self.n_jobs is not None and int(self.n_jobs) < 1:
            raise ValueError("n_jobs must be a positive integer or None")
        normalize_ci_level(self.ci_level)

    @property
    def alpha(self) -> float:
        return ci_level_to_alpha(self.ci_level)


class BaseEstimator(ABC):
    """Abstract base class for all `eslstat` estimators.

    Principles
    ----------
    1) All linear algebra goes through `core.linalg`.
    2) Resampling goes through `core.bootstrap`.
    3) Modes and families are validated once, in ``__init__``.
    """

    def __init__(self) -> None:
        self._results: EstimationResult | None = None

    @abstractmethod
    def fit(
        self, *args: Any, **kwargs: Any,
    ) -> EstimationResult:  # pragma: no cover - abstract
        """Fit the estimator and return EstimationResult (abstract)."""
        ...

    # -- convenience accessors ----------------------------------------
    @property
    def results(self) -> EstimationResult:
        if self._results is None:
            msg = "Model has not been fitted yet. Call .fit() first."
            raise RuntimeError(msg)
        return self._results

    @property
    def params(self) -> pd.Series:
        return self.results.params

    @property
    def se(self) -> pd.Series | None:
        return self.results.se

    @property
    def n_obs(self) -> int | None:
        return self.results.n_obs
