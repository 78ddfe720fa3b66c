"""eslstat: classical statistical-learning methods.

Gaussian discriminant classifiers (quadratic and linear) and basis-expansion
regression (truncated-power, natural, and smoothing splines) with analytic,
Bayesian, and bootstrap inference.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = [
    "BaseEstimator",
    "BootConfig",
    "DiscriminantAnalysis",
    "DiscriminantMode",
    "EstimationResult",
    "RegressionSpline",
    "SmoothingSpline",
    "SplineBasis",
    "augment_with_products",
    "error_rate_table",
    "fit_plot",
    "load_bone",
    "load_ozone",
    "load_vowel",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseEstimator": ("eslstat.estimators.base", "BaseEstimator"),
    "BootConfig": ("eslstat.estimators.base", "BootConfig"),
    "EstimationResult": ("eslstat.estimators.base", "EstimationResult"),
    "DiscriminantAnalysis": ("eslstat.estimators.discriminant", "DiscriminantAnalysis"),
    "DiscriminantMode": ("eslstat.estimators.discriminant", "DiscriminantMode"),
    "RegressionSpline": ("eslstat.estimators.spline", "RegressionSpline"),
    "SmoothingSpline": ("eslstat.estimators.spline", "SmoothingSpline"),
    "SplineBasis": ("eslstat.utils.basis", "SplineBasis"),
    "augment_with_products": ("eslstat.utils.features", "augment_with_products"),
    "error_rate_table": ("eslstat.output.summary", "error_rate_table"),
    "fit_plot": ("eslstat.output.plots", "fit_plot"),
    "load_bone": ("eslstat.datasets", "load_bone"),
    "load_ozone": ("eslstat.datasets", "load_ozone"),
    "load_vowel": ("eslstat.datasets", "load_vowel"),
}


def __getattr__(name: str) -> Any:
    """Lazily import public estimators and utilities on first access."""
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        module = import_module(module_name)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module 'eslstat' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Ensure dir() exposes lazily imported names."""
    return sorted(set(globals()) | set(__all__))
