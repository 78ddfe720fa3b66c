"""Ordinary and penalized least squares on a basis design matrix.

All normal equations are solved with the generalized inverse from
:mod:`eslstat.core.linalg`, so collinear bases never fail. Smoothing
parameter selection (GCV, leave-one-out, or a target degrees of freedom)
is delegated to :mod:`scipy.optimize`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from scipy import optimize

from eslstat.core import linalg as la
from eslstat.core.exceptions import DimensionMismatchError, InsufficientDataError, InvalidModeError

if TYPE_CHECKING:
    from numpy.typing import NDArray

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "effective_df",
    "estimate_noise_variance",
    "fit_ols",
    "fit_ridge",
    "gcv_score",
    "lambda_for_df",
    "loo_score",
    "select_lambda",
    "smoother_matrix",
]

# search window for log10(lambda)
LOG10_LAMBDA_BOUNDS: tuple[float, float] = (-10.0, 6.0)


def _validate_xy(X, y) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    Xd = la.as_2d(X)
    yd = la.to_dense(y).reshape(-1)
    if Xd.shape[0] != yd.shape[0]:
        msg = f"design has {Xd.shape[0]} rows but response has {yd.shape[0]}"
        raise DimensionMismatchError(msg)
    if Xd.shape[0] == 0:
        raise InsufficientDataError("cannot fit on an empty dataset")
    la._assert_all_finite(Xd, yd)  # noqa: SLF001
    return Xd, yd


def _penalty(omega, p: int) -> NDArray[np.float64]:
    if omega is None:
        return np.eye(p, dtype=np.float64)
    Od = la.as_2d(omega)
    if Od.shape != (p, p):
        msg = f"penalty matrix must be {p}x{p}, got {Od.shape}"
        raise DimensionMismatchError(msg)
    return Od


def fit_ols(X, y) -> NDArray[np.float64]:
    """theta = pinv(X'X) X'y."""
    Xd, yd = _validate_xy(X, y)
    return la.pinv(la.tdot(Xd)) @ la.crossprod(Xd, yd)


def fit_ridge(X, y, omega, lam: float) -> NDArray[np.float64]:
    """theta = pinv(X'X + lam * Omega) X'y.

    ``omega`` may be ``None`` for the identity (plain ridge) or any
    positive semi-definite ``p x p`` matrix such as a curvature penalty.
    """
    Xd, yd = _validate_xy(X, y)
    lam = float(lam)
    if not np.isfinite(lam) or lam < 0.0:
        msg = f"lam must be finite and >= 0, got {lam}"
        raise ValueError(msg)
    Od = _penalty(omega, Xd.shape[1])
    return la.pinv(la.tdot(Xd) + lam * Od) @ la.crossprod(Xd, yd)


def estimate_noise_variance(fitted, y) -> float:
    """(1/N) sum (y_i - yhat_i)^2."""
    f = la.to_dense(fitted).reshape(-1)
    yd = la.to_dense(y).reshape(-1)
    if f.shape != yd.shape:
        msg = f"fitted length {f.shape[0]} != response length {yd.shape[0]}"
        raise DimensionMismatchError(msg)
    if yd.size == 0:
        raise InsufficientDataError("cannot estimate noise variance from zero residuals")
    r = yd - f
    return float(r @ r) / float(yd.size)


def smoother_matrix(X, omega=None, lam: float = 0.0) -> NDArray[np.float64]:
    """Hat matrix S = X pinv(X'X + lam * Omega) X' mapping y to fitted values."""
    Xd = la.as_2d(X)
    Od = _penalty(omega, Xd.shape[1])
    return la.dot(Xd, la.pinv(la.tdot(Xd) + float(lam) * Od)) @ la.transpose(Xd)


def effective_df(X, omega=None, lam: float = 0.0) -> float:
    """Effective degrees of freedom, trace(S_lambda)."""
    Xd = la.as_2d(X)
    Od = _penalty(omega, Xd.shape[1])
    # trace(X A X') == trace(A X'X) avoids the n x n product
    A = la.pinv(la.tdot(Xd) + float(lam) * Od)
    return float(np.trace(A @ la.tdot(Xd)))


def gcv_score(X, y, omega=None, lam: float = 0.0) -> float:
    """Generalized cross-validation: mean[((y - yhat) / (1 - df/N))^2]."""
    Xd, yd = _validate_xy(X, y)
    S = smoother_matrix(Xd, omega, lam)
    resid = yd - S @ yd
    n = float(yd.size)
    denom = 1.0 - np.trace(S) / n
    if denom <= 0.0:
        return float("inf")
    return float(np.mean((resid / denom) ** 2))


def loo_score(X, y, omega=None, lam: float = 0.0) -> float:
    """Leave-one-out CV for a linear smoother via the hat diagonal."""
    Xd, yd = _validate_xy(X, y)
    S = smoother_matrix(Xd, omega, lam)
    resid = yd - S @ yd
    denom = 1.0 - np.diag(S)
    if np.any(denom <= 0.0):
        return float("inf")
    return float(np.mean((resid / denom) ** 2))


_CRITERIA = {"gcv": gcv_score, "loo": loo_score, "cv": loo_score}


def select_lambda(
    X,
    y,
    omega=None,
    *,
    criterion: str = "gcv",
    bounds: tuple[float, float] = LOG10_LAMBDA_BOUNDS,
) -> float:
    """Choose lambda minimizing GCV or leave-one-out CV.

    The search runs over ``log10(lambda)`` inside ``bounds`` with a bounded
    scalar minimizer.
    """
    key = str(criterion).strip().lower()
    if key not in _CRITERIA:
        msg = f"criterion must be one of {sorted(_CRITERIA)}, got {criterion!r}"
        raise InvalidModeError(msg)
    score = _CRITERIA[key]
    Xd, yd = _validate_xy(X, y)
    Od = _penalty(omega, Xd.shape[1])

    res = optimize.minimize_scalar(
        lambda t: score(Xd, yd, Od, 10.0 ** t),
        bounds=bounds,
        method="bounded",
        options={"xatol": 1e-4},
    )
    lam = float(10.0 ** res.x)
    _LOGGER.debug("select_lambda(%s): lambda=%.6g score=%.6g", key, lam, float(res.fun))
    return lam


def lambda_for_df(
    X,
    omega,
    df: float,
    *,
    bounds: tuple[float, float] = LOG10_LAMBDA_BOUNDS,
) -> float:
    """Solve trace(S_lambda) = df for lambda.

    ``df`` must lie strictly between the unpenalized degrees of freedom at
    the upper bound and the column count of ``X``.
    """
    Xd = la.as_2d(X)
    Od = _penalty(omega, Xd.shape[1])
    lo, hi = bounds
    df_lo = effective_df(Xd, Od, 10.0 ** hi)
    df_hi = effective_df(Xd, Od, 10.0 ** lo)
    target = float(df)
    if not (df_lo < target < df_hi):
        msg = (
            f"df={target} is outside the attainable range ({df_lo:.4g}, {df_hi:.4g}) "
            f"for log10(lambda) in {bounds}"
        )
        raise ValueError(msg)
    t = optimize.brentq(lambda u: effective_df(Xd, Od, 10.0 ** u) - target, lo, hi, xtol=1e-8)
    lam = float(10.0 ** t)
    _LOGGER.debug("lambda_for_df: df=%.4g -> lambda=%.6g", target, lam)
    return lam
