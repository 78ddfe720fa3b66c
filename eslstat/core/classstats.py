"""Per-class moments for discriminant analysis.

Computes class means, priors, within-class sample covariances, and the
pooled covariance from labeled training data. Statistics are computed once
and never updated incrementally: refit from scratch when the data change.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

import numpy as np

from eslstat.core import linalg as la
from eslstat.core.exceptions import DimensionMismatchError, InsufficientDataError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

__all__ = ["ClassStatistics", "compute_class_statistics"]


@dataclass(frozen=True)
class ClassStatistics:
    """Read-only moments for ``K`` classes in ``p`` features.

    Attributes
    ----------
    classes : (K,) array
        Sorted class labels; position ``k`` indexes every other array.
    counts : (K,) int array
        Training rows per class.
    means : (K, p) array
    covariances : (K, p, p) array
        Sample covariances with divisor ``N_k - 1``.
    priors : (K,) array
        ``N_k / N``; sums to one.
    pooled_cov : (p, p) array
        ``sum_k (N_k - 1) S_k / (N - K)``.

    """

    classes: NDArray
    counts: NDArray[np.int64]
    means: NDArray[np.float64]
    covariances: NDArray[np.float64]
    priors: NDArray[np.float64]
    pooled_cov: NDArray[np.float64]

    @property
    def n_classes(self) -> int:
        return int(self.classes.shape[0])

    @property
    def n_features(self) -> int:
        return int(self.means.shape[1])

    def index_of(self, label) -> int:
        hits = np.flatnonzero(self.classes == label)
        if hits.size == 0:
            msg = f"label {label!r} is not one of the trained classes {self.classes.tolist()}"
            raise KeyError(msg)
        return int(hits[0])

    def with_priors(self, priors: Sequence[float]) -> ClassStatistics:
        """Copy with replaced priors (renormalized to sum to one)."""
        pr = np.asarray(priors, dtype=np.float64).reshape(-1)
        if pr.shape[0] != self.n_classes:
            msg = f"expected {self.n_classes} priors, got {pr.shape[0]}"
            raise DimensionMismatchError(msg)
        if np.any(pr <= 0) or not np.all(np.isfinite(pr)):
            raise ValueError("priors must be finite and strictly positive")
        return replace(self, priors=pr / pr.sum())

    def tied(self) -> ClassStatistics:
        """Copy where every class covariance equals the pooled covariance."""
        cov = np.broadcast_to(self.pooled_cov, self.covariances.shape).copy()
        return replace(self, covariances=cov)


def compute_class_statistics(
    X,
    labels,
    *,
    classes: Sequence | None = None,
) -> ClassStatistics:
    """Estimate :class:`ClassStatistics` from a labeled training set.

    Parameters
    ----------
    X : array-like, shape (n, p)
        Feature matrix (ndarray or DataFrame).
    labels : array-like, shape (n,)
        Class label per row.
    classes : sequence, optional
        Explicit label set. Defaults to the sorted distinct labels, so the
        number of classes follows the data rather than a fixed constant.
        Every label must belong to it.

    Raises
    ------
    InsufficientDataError
        If the dataset is empty or any class has fewer than two rows.
    ValueError
        If a label is not in ``classes``.

    """
    Xd = la.as_2d(X)
    y = np.asarray(labels).reshape(-1)
    n, p = Xd.shape
    if n == 0:
        raise InsufficientDataError("cannot compute class statistics from an empty dataset")
    if y.shape[0] != n:
        msg = f"labels length {y.shape[0]} != number of rows {n}"
        raise DimensionMismatchError(msg)
    la._assert_all_finite(Xd)  # noqa: SLF001

    cls = np.unique(y) if classes is None else np.asarray(classes)
    stray = np.unique(y[~np.isin(y, cls)])
    if stray.size:
        msg = f"labels {stray.tolist()} are not in the class set {cls.tolist()}"
        raise ValueError(msg)
    K = int(cls.shape[0])
    counts = np.array([int(np.sum(y == c)) for c in cls], dtype=np.int64)
    small = [c for c, m in zip(cls.tolist(), counts.tolist()) if m < 2]
    if small:
        msg = (
            f"classes {small} have fewer than 2 observations; "
            "their sample covariance is undefined"
        )
        raise InsufficientDataError(msg)
    if n - K <= 0:
        msg = f"pooled covariance needs more rows than classes (n={n}, K={K})"
        raise InsufficientDataError(msg)

    means = np.empty((K, p), dtype=np.float64)
    covs = np.empty((K, p, p), dtype=np.float64)
    scatter = np.zeros((p, p), dtype=np.float64)
    for k, c in enumerate(cls):
        Xk = Xd[y == c]
        means[k] = Xk.mean(axis=0)
        centered = Xk - means[k]
        Sk = la.tdot(centered) / float(counts[k] - 1)
        covs[k] = Sk
        scatter += (counts[k] - 1) * Sk
    pooled = scatter / float(n - K)
    priors = counts.astype(np.float64) / float(n)
    return ClassStatistics(
        classes=cls,
        counts=counts,
        means=means,
        covariances=covs,
        priors=priors,
        pooled_cov=pooled,
    )
