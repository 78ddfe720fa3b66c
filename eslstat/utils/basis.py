"""Spline basis construction.

Two families are supported:

- truncated-power (regression spline) bases of order ``M`` with interior
  knots xi: columns x^0..x^(M-1) followed by (x - xi_l)_+^(M-1);
- natural cubic spline bases on knots xi_1 < ... < xi_K:
  N_1 = 1, N_2 = x, N_(k+2) = d_k - d_(K-1) for k = 1..K-2 with
  d_k(x) = [(x - xi_k)_+^3 - (x - xi_K)_+^3] / (xi_K - xi_k).

Both include the intercept column, so fits use the design matrix as is.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from eslstat.core.exceptions import DimensionMismatchError, InsufficientDataError, InvalidModeError

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "SplineBasis",
    "SplineFamily",
    "cutoff",
    "interior_knots",
    "knots_from_quantiles",
    "knots_from_unique",
    "natural_spline_basis",
    "truncated_power_basis",
]


class SplineFamily(str, Enum):
    """Basis family; values match the short codes "bs" and "ns"."""

    TRUNCATED_POWER = "bs"
    NATURAL = "ns"

    @classmethod
    def coerce(cls, value: SplineFamily | str) -> SplineFamily:
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_")
        aliases = {
            "bs": cls.TRUNCATED_POWER,
            "truncated_power": cls.TRUNCATED_POWER,
            "regression": cls.TRUNCATED_POWER,
            "ns": cls.NATURAL,
            "natural": cls.NATURAL,
        }
        if key not in aliases:
            msg = f"unknown spline family {value!r}; expected one of {sorted(aliases)}"
            raise InvalidModeError(msg)
        return aliases[key]


def cutoff(v):
    """Positive part, max(v, 0)."""
    return np.maximum(v, 0.0)


def _as_points(x) -> NDArray[np.float64]:
    xd = np.asarray(x, dtype=np.float64)
    if xd.ndim == 2 and xd.shape[1] == 1:
        xd = xd[:, 0]
    if xd.ndim == 0:
        xd = xd.reshape(1)
    if xd.ndim != 1:
        msg = f"spline bases take a single predictor; got shape {xd.shape}"
        raise DimensionMismatchError(msg)
    return xd


def _check_knots(knots) -> NDArray[np.float64]:
    k = np.asarray(knots, dtype=np.float64).reshape(-1)
    if not np.all(np.isfinite(k)):
        raise ValueError("knots must be finite")
    if k.size > 1 and np.any(np.diff(k) <= 0.0):
        raise ValueError("knots must be strictly increasing")
    return k


def truncated_power_basis(x, knots, order: int = 4) -> NDArray[np.float64]:
    """Truncated-power design matrix, shape (n, order + len(knots))."""
    xd = _as_points(x)
    k = _check_knots(knots)
    M = int(order)
    poly = np.vander(xd, M, increasing=True)
    if k.size == 0:
        return poly
    if M == 1:
        # piecewise constant: steps 1{x > xi}
        trunc = (xd[:, None] > k[None, :]).astype(np.float64)
    else:
        trunc = cutoff(xd[:, None] - k[None, :]) ** (M - 1)
    return np.hstack([poly, trunc])


def _natural_d(xd: NDArray[np.float64], k: NDArray[np.float64], power: int, scale: float) -> NDArray[np.float64]:
    """Columns d_j for j = 0..K-2 (0-based), raised to ``power``, times ``scale``."""
    last = k[-1]
    num = cutoff(xd[:, None] - k[None, :-1]) ** power - (cutoff(xd - last) ** power)[:, None]
    return scale * num / (last - k[None, :-1])


def natural_spline_basis(x, knots) -> NDArray[np.float64]:
    """Natural cubic spline design matrix, shape (n, K)."""
    xd = _as_points(x)
    k = _check_knots(knots)
    K = k.size
    if K < 2:
        raise InsufficientDataError("a natural spline basis needs at least 2 knots")
    cols = [np.ones_like(xd), xd]
    if K > 2:
        d = _natural_d(xd, k, 3, 1.0)
        cols.extend((d[:, :-1] - d[:, [-1]]).T)
    return np.column_stack(cols)


def _distinct_knots(q: NDArray[np.float64]) -> NDArray[np.float64]:
    k = np.unique(q)
    if k.size < q.size:
        warnings.warn(
            f"tied predictor values merged {q.size} quantile knots into {k.size}; "
            "the basis has fewer columns than requested.",
            RuntimeWarning,
            stacklevel=3,
        )
    return k


def knots_from_unique(x) -> NDArray[np.float64]:
    """One knot per distinct predictor value."""
    return np.unique(_as_points(x))


def knots_from_quantiles(x, n_knots: int) -> NDArray[np.float64]:
    """``n_knots`` knots at equally spaced quantiles, endpoints included."""
    if int(n_knots) < 2:
        raise ValueError("n_knots must be >= 2")
    xd = _as_points(x)
    if xd.size == 0:
        raise InsufficientDataError("cannot place knots on an empty predictor")
    return _distinct_knots(np.quantile(xd, np.linspace(0.0, 1.0, int(n_knots))))


def interior_knots(x, df: int, order: int = 4) -> NDArray[np.float64]:
    """Interior knots for a truncated-power basis with ``df`` columns.

    ``df - order`` knots are placed at equally spaced interior quantiles.
    """
    n_int = int(df) - int(order)
    if n_int < 0:
        msg = f"df={df} is smaller than the polynomial order {order}"
        raise ValueError(msg)
    xd = _as_points(x)
    if n_int == 0:
        return np.empty(0, dtype=np.float64)
    probs = np.linspace(0.0, 1.0, n_int + 2)[1:-1]
    return _distinct_knots(np.quantile(xd, probs))


@dataclass(frozen=True)
class SplineBasis:
    """A knot set plus basis family.

    Parameters
    ----------
    family : SplineFamily or str
        ``"bs"`` (truncated power) or ``"ns"`` (natural cubic).
    knots : array-like
        Strictly increasing. Interior knots for ``"bs"``; all knots,
        boundaries included, for ``"ns"``.
    order : int, default 4
        Polynomial order ``M`` of the truncated-power family (4 = cubic).
        Ignored for natural splines.
    boundary : (float, float), optional
        Integration range of the curvature penalty for ``"bs"`` bases.

    """

    family: SplineFamily
    knots: NDArray[np.float64]
    order: int = 4
    boundary: tuple[float, float] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "family", SplineFamily.coerce(self.family))
        object.__setattr__(self, "knots", _check_knots(self.knots))
        if int(self.order) < 1:
            raise ValueError("order must be >= 1")
        if self.family is SplineFamily.NATURAL and self.knots.size < 2:
            raise InsufficientDataError("a natural spline basis needs at least 2 knots")

    @classmethod
    def natural(cls, knots) -> SplineBasis:
        return cls(SplineFamily.NATURAL, knots)

    @classmethod
    def truncated_power(cls, knots, order: int = 4, *, x=None) -> SplineBasis:
        boundary = None
        if x is not None:
            xd = _as_points(x)
            boundary = (float(xd.min()), float(xd.max()))
        return cls(SplineFamily.TRUNCATED_POWER, knots, order=order, boundary=boundary)

    @property
    def n_basis(self) -> int:
        if self.family is SplineFamily.NATURAL:
            return int(self.knots.size)
        return int(self.order) + int(self.knots.size)

    def design_matrix(self, x) -> NDArray[np.float64]:
        """Basis evaluated at every point of ``x``; rows follow ``x``."""
        if self.family is SplineFamily.NATURAL:
            return natural_spline_basis(x, self.knots)
        return truncated_power_basis(x, self.knots, self.order)

    def evaluate(self, x0: float) -> NDArray[np.float64]:
        """Basis vector h(x0) at a single point."""
        return self.design_matrix(np.array([float(x0)]))[0]

    def second_derivatives(self, x) -> NDArray[np.float64]:
        """Second derivative of every basis function at ``x``."""
        xd = _as_points(x)
        k = self.knots
        if self.family is SplineFamily.NATURAL:
            out = np.zeros((xd.size, k.size), dtype=np.float64)
            if k.size > 2:
                d2 = _natural_d(xd, k, 1, 6.0)
                out[:, 2:] = d2[:, :-1] - d2[:, [-1]]
            return out
        M = int(self.order)
        j = np.arange(M, dtype=np.float64)
        poly = np.where(j >= 2, j * (j - 1) * xd[:, None] ** np.maximum(j - 2, 0), 0.0)
        if k.size == 0:
            return poly
        if M < 3:
            trunc = np.zeros((xd.size, k.size), dtype=np.float64)
        elif M == 3:
            trunc = 2.0 * (xd[:, None] > k[None, :]).astype(np.float64)
        else:
            trunc = (M - 1) * (M - 2) * cutoff(xd[:, None] - k[None, :]) ** (M - 3)
        return np.hstack([poly, trunc])

    def penalty_matrix(self) -> NDArray[np.float64]:
        """Curvature penalty Omega_jk = integral of h_j'' h_k''.

        Integrated piecewise between knots with Gauss-Legendre nodes, exact
        for the polynomial pieces involved. Natural splines integrate over
        [xi_1, xi_K] (the second derivatives vanish outside); truncated-power
        bases need ``boundary``.
        """
        if self.family is SplineFamily.NATURAL:
            lo, hi = float(self.knots[0]), float(self.knots[-1])
            n_nodes = 2
        else:
            if self.boundary is None:
                raise ValueError("truncated-power penalty needs a boundary; build with x=...")
            lo, hi = self.boundary
            n_nodes = max(int(self.order), 2)
        inner = self.knots[(self.knots > lo) & (self.knots < hi)]
        breaks = np.concatenate([[lo], inner, [hi]])
        nodes, weights = np.polynomial.legendre.leggauss(n_nodes)
        p = self.n_basis
        omega = np.zeros((p, p), dtype=np.float64)
        for a, b in zip(breaks[:-1], breaks[1:]):
            half = 0.5 * (b - a)
            t = a + half * (nodes + 1.0)
            G = self.second_derivatives(t)
            omega += (G * (half * weights)[:, None]).T @ G
        return 0.5 * (omega + omega.T)
