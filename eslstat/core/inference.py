"""Inference utilities for basis-expansion fits.

Pointwise standard errors from the fitted design matrix, and Gaussian-prior
(ridge) posterior summaries over spline coefficients. Every function is a
read-only projection of a fixed fit: inputs are never modified.

Rows of ``H`` are basis evaluations h(x) at the points of interest (see
:meth:`eslstat.utils.basis.SplineBasis.design_matrix`).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from eslstat.core import linalg as la
from eslstat.core.exceptions import DimensionMismatchError

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "coefficient_covariance",
    "posterior_covariance",
    "posterior_draws",
    "posterior_mean",
    "standard_error",
]


def _basis_rows(H, X: NDArray[np.float64]) -> tuple[NDArray[np.float64], bool]:
    Hd = la.to_dense(H)
    single = Hd.ndim == 1
    Hd = Hd.reshape(1, -1) if single else Hd
    if Hd.shape[1] != X.shape[1]:
        msg = f"basis rows have {Hd.shape[1]} columns but the design has {X.shape[1]}"
        raise DimensionMismatchError(msg)
    return Hd, single


def _posterior_precision(X: NDArray[np.float64], sigma2: float, tau: float) -> NDArray[np.float64]:
    if tau <= 0.0:
        msg = f"prior variance tau must be positive, got {tau}"
        raise ValueError(msg)
    p = X.shape[1]
    return la.tdot(X) + (float(sigma2) / float(tau)) * np.eye(p)


def coefficient_covariance(X, sigma2: float, omega=None, lam: float = 0.0) -> NDArray[np.float64]:
    """Sampling covariance of the fitted coefficients.

    sigma^2 pinv(X'X) for an unpenalized fit; for a penalized fit with
    A = pinv(X'X + lam Omega) the sandwich sigma^2 A X'X A.
    """
    Xd = la.as_2d(X)
    G = la.tdot(Xd)
    if float(lam) == 0.0:
        return float(sigma2) * la.pinv(G)
    Od = np.eye(Xd.shape[1]) if omega is None else la.as_2d(omega)
    A = la.pinv(G + float(lam) * Od)
    return float(sigma2) * (A @ G @ A)


def standard_error(H, X, sigma2: float, *, omega=None, lam: float = 0.0) -> NDArray[np.float64] | float:
    """sigma * sqrt(h(x)' pinv(X'X) h(x)) for each row h(x) of ``H``.

    With ``lam > 0`` the penalized-fit covariance from
    :func:`coefficient_covariance` replaces sigma^2 pinv(X'X).
    """
    Xd = la.as_2d(X)
    Hd, single = _basis_rows(H, Xd)
    if float(lam) == 0.0:
        A = la.pinv(la.tdot(Xd))
        q = np.maximum(la.quadratic_form(Hd, A), 0.0)
        se = np.sqrt(float(sigma2)) * np.sqrt(q)
    else:
        V = coefficient_covariance(Xd, sigma2, omega, lam)
        se = np.sqrt(np.maximum(la.quadratic_form(Hd, V), 0.0))
    return float(se[0]) if single else se


def posterior_mean(H, X, y, sigma2: float, tau: float) -> NDArray[np.float64] | float:
    """h(x)' pinv(X'X + (sigma^2/tau) I) X'y.

    Posterior mean of the curve under the prior theta ~ N(0, tau I).
    """
    Xd = la.as_2d(X)
    Hd, single = _basis_rows(H, Xd)
    coef = la.pinv(_posterior_precision(Xd, sigma2, tau)) @ la.crossprod(Xd, la.to_dense(y).reshape(-1))
    out = Hd @ coef
    return float(out[0]) if single else out


def posterior_covariance(H1, H2, X, sigma2: float, tau: float) -> NDArray[np.float64] | float:
    """h(x)' pinv(X'X + (sigma^2/tau) I) h(x') sigma^2.

    With 1-D inputs returns the scalar covariance between two points;
    with 2-D inputs returns the full cross-covariance matrix.
    """
    Xd = la.as_2d(X)
    A1, single1 = _basis_rows(H1, Xd)
    A2, single2 = _basis_rows(H2, Xd)
    cov = float(sigma2) * (A1 @ la.pinv(_posterior_precision(Xd, sigma2, tau)) @ A2.T)
    if single1 and single2:
        return float(cov[0, 0])
    return cov


def posterior_draws(  # noqa: PLR0913
    H,
    X,
    y,
    sigma2: float,
    tau: float,
    n_draws: int,
    *,
    rng: np.random.Generator | int | None = None,
) -> NDArray[np.float64]:
    """Sample curves h(x)'theta from the Gaussian coefficient posterior.

    Returns an array of shape (n_points, n_draws).
    """
    if int(n_draws) < 1:
        raise ValueError("n_draws must be >= 1")
    Xd = la.as_2d(X)
    Hd, _ = _basis_rows(H, Xd)
    gen = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)
    A = la.pinv(_posterior_precision(Xd, sigma2, tau))
    mean = A @ la.crossprod(Xd, la.to_dense(y).reshape(-1))
    cov = float(sigma2) * 0.5 * (A + A.T)
    theta = gen.multivariate_normal(mean, cov, size=int(n_draws), method="eigh")
    return Hd @ theta.T
