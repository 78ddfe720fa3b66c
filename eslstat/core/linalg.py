"""Linear algebra routines for discriminant analysis and spline fitting.

Every inversion in the package goes through :func:`pinv`, an SVD-based
Moore-Penrose inverse that tolerates singular and near-singular matrices
(rank-deficient class covariances, collinear spline columns). No routine
here raises because a matrix is singular.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
import scipy.linalg as sla

if TYPE_CHECKING:
    from numpy.typing import NDArray

# Matrix type alias
Matrix = Any

__all__ = [
    "as_2d",
    "crossprod",
    "dot",
    "logdet",
    "pinv",
    "quadratic_form",
    "tdot",
    "to_dense",
    "transpose",
]


def _check_array_finiteness(arr: NDArray[np.float64]) -> None:
    """Helper to validate array finiteness with clear error message."""
    if not np.all(np.isfinite(arr)):
        raise ValueError(
            "Input contains NA/NaN/Inf; please drop/clean rows before fitting.",
        )


def _assert_all_finite(*arrays: Matrix) -> None:
    """Raise ValueError if any input contains NaN or Inf."""
    for a in arrays:
        if a is None:
            continue
        _check_array_finiteness(np.asarray(a))


def to_dense(A: Matrix) -> NDArray[np.float64]:
    """Convert a matrix-like object (ndarray, DataFrame, list) to float64."""
    if hasattr(A, "to_numpy"):
        return np.asarray(A.to_numpy(), dtype=np.float64)
    return np.asarray(A, dtype=np.float64)


def as_2d(A: Matrix) -> NDArray[np.float64]:
    """Return ``A`` as a 2-D array; 1-D input becomes a single column."""
    Ad = to_dense(A)
    if Ad.ndim == 1:
        return Ad.reshape(-1, 1)
    if Ad.ndim != 2:
        msg = f"expected a 1-D or 2-D array, got ndim={Ad.ndim}"
        raise ValueError(msg)
    return Ad


def transpose(A: Matrix) -> NDArray[np.float64]:
    return as_2d(A).T


def dot(A: Matrix, B: Matrix) -> NDArray[np.float64]:
    """Dense matrix product in double precision."""
    return to_dense(A) @ to_dense(B)


def tdot(X: Matrix) -> NDArray[np.float64]:
    """X' X (dense result)."""
    Xd = as_2d(X)
    _assert_all_finite(Xd)
    return (Xd.T @ Xd).astype(np.float64)


def crossprod(X: Matrix, y: Matrix) -> NDArray[np.float64]:
    """Compute X'y, keeping a 1-D result when ``y`` is a vector."""
    Xd = as_2d(X)
    yd = to_dense(y)
    _assert_all_finite(Xd, yd)
    return (Xd.T @ yd).astype(np.float64)


def _singular_tol(shape: tuple[int, ...], s: NDArray[np.float64], rcond: float | None) -> float:
    """Cutoff below which a singular value counts as zero."""
    if rcond is None:
        rcond = np.finfo(float).eps * max(shape)
    return float(rcond) * (s.max() if s.size else 0.0)


def pinv(A: Matrix, *, rcond: float | None = None) -> NDArray[np.float64]:
    """Compute Moore-Penrose pseudo-inverse with explicit rcond handling.

    Singular values below ``rcond * max(s)`` are treated as zero. The
    default ``rcond`` is ``eps * max(m, n)``, the usual machine-precision
    cutoff relative to the largest singular value.
    """
    Ad = as_2d(A)
    _assert_all_finite(Ad)
    if Ad.size == 0:
        return np.zeros((Ad.shape[1], Ad.shape[0]), dtype=np.float64)
    U, s, Vt = sla.svd(Ad, full_matrices=False, lapack_driver="gesdd")
    tol = _singular_tol(Ad.shape, s, rcond)
    s_inv = np.zeros_like(s)
    keep = s > tol
    s_inv[keep] = 1.0 / s[keep]
    return (Vt.T * s_inv) @ U.T


def logdet(A: Matrix, *, rcond: float | None = None) -> float:
    """log(det(A)) for a covariance matrix.

    Returns ``-inf`` when ``A`` is singular under the same cutoff
    :func:`pinv` uses (smallest singular value at or below
    ``rcond * max(s)``), or when the determinant is not positive.
    """
    Ad = as_2d(A)
    _assert_all_finite(Ad)
    if Ad.size == 0:
        return 0.0
    s = sla.svdvals(Ad)
    if s.min() <= _singular_tol(Ad.shape, s, rcond):
        return float("-inf")
    sign, value = np.linalg.slogdet(Ad)
    if sign <= 0:
        return float("-inf")
    return float(value)


def quadratic_form(
    u: NDArray[np.float64], M: NDArray[np.float64], v: NDArray[np.float64] | None = None,
) -> NDArray[np.float64] | float:
    """Row-wise u' M v; ``v`` defaults to ``u``.

    ``u``/``v`` may be single vectors (scalar result) or stacked rows
    (one value per row).
    """
    ud = to_dense(u)
    vd = ud if v is None else to_dense(v)
    if ud.ndim == 1:
        return float(ud @ M @ vd)
    return np.einsum("ij,jk,ik->i", ud, M, vd)
