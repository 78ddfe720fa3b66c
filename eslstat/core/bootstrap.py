"""Nonparametric bootstrap and cross-validation for basis-expansion fits.

This module draws bootstrap resamples, refits a pluggable model on each,
and aggregates the ensemble into pivotal confidence intervals, bootstrap
standard errors, and cross-validated prediction error (leave-one-out and
bagged). The refit core is shared: every routine takes a ``fit_fn`` that
maps ``(x, y)`` to an object with ``predict(x_new)``.

Bootstrap indices are drawn up front from a single seeded generator, so
results are reproducible whether the refits run serially or on a thread
pool.
"""

from __future__ import annotations

import logging
import os
import warnings
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any, Callable, Protocol

import numpy as np

from eslstat.core import linalg as la
from eslstat.core.exceptions import DimensionMismatchError, InsufficientDataError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

_LOGGER = logging.getLogger(__name__)

# Default bootstrap replications
DEFAULT_BOOTSTRAP_ITERATIONS: int = 200

# Environment override for the refit worker count
N_JOBS_ENV: str = "ESLSTAT_N_JOBS"

__all__ = [
    "DEFAULT_BOOTSTRAP_ITERATIONS",
    "FitFn",
    "Predictor",
    "bagged_cv",
    "bootstrap_indices",
    "bootstrap_predictions",
    "bootstrap_refits",
    "bootstrap_sample",
    "bootstrap_se",
    "default_n_jobs",
    "loo_cv",
    "pivotal_interval",
]


class Predictor(Protocol):
    def predict(self, x: Any) -> NDArray[np.float64]: ...


FitFn = Callable[[Any, Any], Predictor]


def default_n_jobs() -> int:
    """Worker count from ``ESLSTAT_N_JOBS`` (1 when unset or invalid)."""
    raw = str(os.environ.get(N_JOBS_ENV, "")).strip()
    if not raw:
        return 1
    try:
        n = int(raw)
    except ValueError:
        _LOGGER.debug("Ignoring non-integer %s=%r", N_JOBS_ENV, raw)
        return 1
    if n <= 0:
        return max(os.cpu_count() or 1, 1)
    return n


def _as_generator(rng: np.random.Generator | int | None) -> np.random.Generator:
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def _check_xy(x, y) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    xd = la.to_dense(x)
    yd = la.to_dense(y).reshape(-1)
    if xd.shape[0] != yd.shape[0]:
        msg = f"x has {xd.shape[0]} rows but y has {yd.shape[0]}"
        raise DimensionMismatchError(msg)
    if yd.shape[0] == 0:
        raise InsufficientDataError("resampling requires a non-empty dataset")
    return xd, yd


def _map_ordered(func: Callable[[int], Any], n_items: int, n_jobs: int | None) -> list[Any]:
    """Evaluate ``func(i)`` for i in range(n_items); slot i holds result i."""
    jobs = default_n_jobs() if n_jobs is None else int(n_jobs)
    out: list[Any] = [None] * n_items
    if jobs <= 1 or n_items <= 1:
        for i in range(n_items):
            out[i] = func(i)
        return out
    with ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = {executor.submit(func, i): i for i in range(n_items)}
        for fut, i in futures.items():
            out[i] = fut.result()
    return out


def bootstrap_indices(
    n: int,
    n_boot: int = DEFAULT_BOOTSTRAP_ITERATIONS,
    *,
    rng: np.random.Generator | int | None = None,
) -> NDArray[np.int64]:
    """Draw a (n_boot, n) matrix of row indices, uniformly with replacement."""
    if int(n) <= 0:
        raise InsufficientDataError("cannot resample an empty dataset")
    if int(n_boot) < 1:
        raise ValueError("n_boot must be >= 1")
    gen = _as_generator(rng)
    return gen.integers(0, int(n), size=(int(n_boot), int(n)), dtype=np.int64)


def bootstrap_sample(
    x, y, *, rng: np.random.Generator | int | None = None,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """One bootstrap resample of ``(x, y)`` of the original size."""
    xd, yd = _check_xy(x, y)
    idx = bootstrap_indices(yd.shape[0], 1, rng=rng)[0]
    return xd[idx], yd[idx]


def bootstrap_refits(  # noqa: PLR0913
    x,
    y,
    fit_fn: FitFn,
    *,
    n_boot: int = DEFAULT_BOOTSTRAP_ITERATIONS,
    rng: np.random.Generator | int | None = None,
    indices: NDArray[np.int64] | None = None,
    n_jobs: int | None = None,
) -> list[Predictor]:
    """Fit ``fit_fn`` on each bootstrap resample.

    Returns the ensemble as a list whose position ``b`` is the model fit
    on resample ``b`` (row ``b`` of ``indices`` when supplied).
    """
    xd, yd = _check_xy(x, y)
    idx = (
        bootstrap_indices(yd.shape[0], n_boot, rng=rng)
        if indices is None
        else np.asarray(indices, dtype=np.int64)
    )
    _LOGGER.debug("bootstrap_refits: B=%d, n=%d", idx.shape[0], yd.shape[0])

    def _one(b: int) -> Predictor:
        rows = idx[b]
        return fit_fn(xd[rows], yd[rows])

    return _map_ordered(_one, idx.shape[0], n_jobs)


def bootstrap_predictions(models: Sequence[Predictor], x_eval) -> NDArray[np.float64]:
    """Stack ensemble predictions into shape (n_points, B)."""
    if len(models) == 0:
        raise InsufficientDataError("empty bootstrap ensemble")
    cols = [la.to_dense(m.predict(x_eval)).reshape(-1) for m in models]
    return np.column_stack(cols).astype(np.float64)


def pivotal_interval(
    original,
    boot_predictions,
    alpha: float = 0.05,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Bias-corrected (basic/pivotal) bootstrap interval per point.

    lower = 2 * original - quantile(1 - alpha/2)
    upper = 2 * original - quantile(alpha/2)

    Parameters
    ----------
    original : (n_points,) array
        Estimate from the fit on the full data.
    boot_predictions : (n_points, B) array
        Bootstrap replicates, one column per resample.
    alpha : float
        Two-sided tail probability.

    """
    theta = la.to_dense(original).reshape(-1)
    star = la.as_2d(boot_predictions)
    if star.shape[0] != theta.shape[0] and star.shape[1] == theta.shape[0]:
        star = star.T
    if star.shape[0] != theta.shape[0]:
        msg = (
            "boot_predictions must have shape (n_points, B) with "
            f"n_points={theta.shape[0]}; got {star.shape}"
        )
        raise DimensionMismatchError(msg)
    if not (0.0 < float(alpha) < 1.0):
        raise ValueError("alpha must lie in (0, 1)")
    q_hi = np.quantile(star, 1.0 - float(alpha) / 2.0, axis=1)
    q_lo = np.quantile(star, float(alpha) / 2.0, axis=1)
    return 2.0 * theta - q_hi, 2.0 * theta - q_lo


def bootstrap_se(boot_predictions) -> NDArray[np.float64]:
    """Pointwise spread of bootstrap curves, one value per evaluation point.

    ``boot_predictions`` is the (points, B) matrix returned by
    :func:`bootstrap_predictions`; the result is the ddof=1 standard
    deviation across replicates, reported as the ``se`` column of a
    bootstrap band. A 1-D input is read as a single point.
    """
    star = la.as_2d(boot_predictions).T if np.ndim(boot_predictions) == 1 else la.to_dense(boot_predictions)
    if star.ndim != 2:
        msg = f"bootstrap predictions must be (points, B); got shape {star.shape}"
        raise ValueError(msg)
    n_b = star.shape[1]
    if n_b < 2:
        msg = f"a bootstrap standard error needs at least 2 replicates, got {n_b}"
        raise ValueError(msg)
    bad_points = np.flatnonzero(~np.isfinite(star).all(axis=1))
    if bad_points.size:
        msg = f"non-finite bootstrap predictions at points {bad_points[:10].tolist()}"
        raise ValueError(msg)
    return star.std(axis=1, ddof=1)


def loo_cv(x, y, fit_fn: FitFn, *, n_jobs: int | None = None) -> float:
    """Leave-one-out prediction error by explicit refits.

    For each row i, refit on the data without row i, predict at x_i, and
    average the squared errors over all rows.
    """
    xd, yd = _check_xy(x, y)
    n = yd.shape[0]
    if n < 2:
        raise InsufficientDataError("leave-one-out CV needs at least 2 rows")

    def _one(i: int) -> float:
        keep = np.arange(n) != i
        model = fit_fn(xd[keep], yd[keep])
        pred = la.to_dense(model.predict(xd[i : i + 1])).reshape(-1)[0]
        return float((yd[i] - pred) ** 2)

    errors = _map_ordered(_one, n, n_jobs)
    return float(np.mean(errors))


def _rows_sharing_value(xd: NDArray[np.float64], value: NDArray[np.float64] | float) -> NDArray[np.bool_]:
    if xd.ndim == 1:
        return xd == value
    return np.all(xd == value, axis=1)


def bagged_cv(  # noqa: PLR0913
    x,
    y,
    fit_fn: FitFn,
    *,
    indices: NDArray[np.int64] | None = None,
    n_boot: int = DEFAULT_BOOTSTRAP_ITERATIONS,
    rng: np.random.Generator | int | None = None,
    n_jobs: int | None = None,
) -> float:
    """Cross-validated error of the bagged (bootstrap-averaged) predictor.

    For each training row i and each bootstrap resample b, every row of
    resample b whose predictor equals x_i is removed (exclusion by value,
    not by row identity), the model is refit on the remainder, and the
    prediction at x_i is recorded. Predictions are averaged over b and the
    squared error against y_i is averaged over i.

    Resamples left empty after exclusion are skipped.
    """
    xd, yd = _check_xy(x, y)
    n = yd.shape[0]
    idx = (
        bootstrap_indices(n, n_boot, rng=rng)
        if indices is None
        else np.asarray(indices, dtype=np.int64)
    )
    n_b = idx.shape[0]
    _LOGGER.debug("bagged_cv: n=%d, B=%d (%d refits)", n, n_b, n * n_b)

    def _one(i: int) -> float:
        preds = []
        for b in range(n_b):
            rows = idx[b]
            rows = rows[~_rows_sharing_value(xd[rows], xd[i])]
            if rows.size == 0:
                continue
            model = fit_fn(xd[rows], yd[rows])
            preds.append(la.to_dense(model.predict(xd[i : i + 1])).reshape(-1)[0])
        if not preds:
            return float("nan")
        return float((yd[i] - np.mean(preds)) ** 2)

    errors = np.asarray(_map_ordered(_one, n, n_jobs), dtype=np.float64)
    missing = ~np.isfinite(errors)
    if np.all(missing):
        raise InsufficientDataError("no bootstrap resample survived value exclusion")
    if np.any(missing):
        warnings.warn(
            f"{int(missing.sum())} rows had no usable resample after exclusion; "
            "they are omitted from the bagged CV average.",
            RuntimeWarning,
            stacklevel=2,
        )
    return float(np.mean(errors[~missing]))
