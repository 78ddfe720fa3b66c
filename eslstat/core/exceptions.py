"""Exception hierarchy shared by every eslstat module."""

from __future__ import annotations

__all__ = [
    "DimensionMismatchError",
    "EslstatError",
    "InsufficientDataError",
    "InvalidModeError",
]


class EslstatError(Exception):
    """Base class for errors raised by eslstat."""


class InsufficientDataError(EslstatError, ValueError):
    """A dataset is empty or a class has too few members for a covariance."""


class InvalidModeError(EslstatError, ValueError):
    """Unknown discriminant mode or spline family."""


class DimensionMismatchError(EslstatError, ValueError):
    """Feature vector length disagrees with the trained dimensionality."""
