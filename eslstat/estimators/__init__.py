"""Estimator exports with lazy loading.

Public estimator classes and result containers. Uses lazy imports to avoid
circular dependencies.
"""
from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = [
    "BaseEstimator",
    "BootConfig",
    "DiscriminantAnalysis",
    "DiscriminantMode",
    "EstimationResult",
    "FittedSpline",
    "RegressionSpline",
    "SmoothingSpline",
    "SplineFitter",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BaseEstimator": ("eslstat.estimators.base", "BaseEstimator"),
    "BootConfig": ("eslstat.estimators.base", "BootConfig"),
    "EstimationResult": ("eslstat.estimators.base", "EstimationResult"),
    "DiscriminantAnalysis": ("eslstat.estimators.discriminant", "DiscriminantAnalysis"),
    "DiscriminantMode": ("eslstat.estimators.discriminant", "DiscriminantMode"),
    "FittedSpline": ("eslstat.estimators.spline", "FittedSpline"),
    "RegressionSpline": ("eslstat.estimators.spline", "RegressionSpline"),
    "SmoothingSpline": ("eslstat.estimators.spline", "SmoothingSpline"),
    "SplineFitter": ("eslstat.estimators.spline", "SplineFitter"),
}


def __getattr__(name: str) -> Any:
    """Lazily import estimator classes and shared containers."""
    if name in _LAZY_IMPORTS:
        module_name, attr_name = _LAZY_IMPORTS[name]
        module = import_module(module_name)
        attr = getattr(module, attr_name)
        globals()[name] = attr
        return attr
    raise AttributeError(f"module 'eslstat.estimators' has no attribute '{name}'")


def __dir__() -> list[str]:
    """Expose lazily loaded attributes to ``dir()``."""
    return sorted(set(globals()) | set(__all__))
