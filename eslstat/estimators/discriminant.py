"""Quadratic and linear discriminant analysis.

Scores follow the Gaussian class-conditional model:

    delta_k(x) = -1/2 log|S_k| - 1/2 (x - m_k)' S_k^+ (x - m_k) + log pi_k     (quadratic)
    delta_k(x) = x' S^+ m_k - 1/2 m_k' S^+ m_k + log pi_k                    (linear)

with ``S^+`` the generalized inverse, so rank-deficient covariances never
fail. Classification takes the argmax; ties go to the first class in sorted
label order.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from eslstat.core import linalg as la
from eslstat.core.classstats import ClassStatistics, compute_class_statistics
from eslstat.core.exceptions import DimensionMismatchError, InsufficientDataError, InvalidModeError

from .base import BaseEstimator, EstimationResult

if TYPE_CHECKING:
    from collections.abc import Sequence

    from numpy.typing import NDArray

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "DiscriminantAnalysis",
    "DiscriminantMode",
    "ErrorRates",
    "classify",
    "confusion_matrix",
    "discriminant_scores",
    "evaluate_error_rate",
    "predict",
    "score_linear",
    "score_quadratic",
]


class DiscriminantMode(str, Enum):
    """Discriminant family; values match the short codes "Q" and "L"."""

    QUADRATIC = "Q"
    LINEAR = "L"

    @classmethod
    def coerce(cls, value: DiscriminantMode | str) -> DiscriminantMode:
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {
            "q": cls.QUADRATIC,
            "qda": cls.QUADRATIC,
            "quadratic": cls.QUADRATIC,
            "l": cls.LINEAR,
            "lda": cls.LINEAR,
            "linear": cls.LINEAR,
        }
        if key not in aliases:
            msg = f"unknown discriminant mode {value!r}; expected quadratic ('Q') or linear ('L')"
            raise InvalidModeError(msg)
        return aliases[key]


def score_quadratic(x, mean, cov, prior: float) -> float:
    """-1/2 log|cov| - 1/2 (x - mean)' cov^+ (x - mean) + log(prior).

    A singular ``cov`` (zero determinant) scores ``-inf``.
    """
    ld = la.logdet(cov)
    if not np.isfinite(ld):
        return float("-inf")
    diff = la.to_dense(x).reshape(-1) - la.to_dense(mean).reshape(-1)
    q = la.quadratic_form(diff, la.pinv(cov))
    return -0.5 * ld - 0.5 * q + float(np.log(prior))


def score_linear(x, mean, pooled_cov, prior: float) -> float:
    """x' S^+ mean - 1/2 mean' S^+ mean + log(prior)."""
    xd = la.to_dense(x).reshape(-1)
    m = la.to_dense(mean).reshape(-1)
    A = la.pinv(pooled_cov)
    return float(xd @ A @ m) - 0.5 * la.quadratic_form(m, A) + float(np.log(prior))


def _check_features(X, stats: ClassStatistics) -> NDArray[np.float64]:
    Xd = la.as_2d(X)
    if Xd.shape[1] != stats.n_features:
        msg = f"feature vectors have length {Xd.shape[1]} but the model was trained on {stats.n_features}"
        raise DimensionMismatchError(msg)
    la._assert_all_finite(Xd)  # noqa: SLF001
    return Xd


def discriminant_scores(X, stats: ClassStatistics, mode: DiscriminantMode | str) -> NDArray[np.float64]:
    """Score matrix of shape (n, K), column k for class ``stats.classes[k]``."""
    mode = DiscriminantMode.coerce(mode)
    Xd = _check_features(X, stats)
    K = stats.n_classes
    log_prior = np.log(stats.priors)
    out = np.empty((Xd.shape[0], K), dtype=np.float64)
    if mode is DiscriminantMode.LINEAR:
        A = la.pinv(stats.pooled_cov)
        AM = A @ stats.means.T
        const = -0.5 * np.einsum("kj,jk->k", stats.means, AM) + log_prior
        return Xd @ AM + const[None, :]
    singular = []
    for k in range(K):
        ld = la.logdet(stats.covariances[k])
        if not np.isfinite(ld):
            out[:, k] = -np.inf
            singular.append(stats.classes[k])
            continue
        diff = Xd - stats.means[k]
        q = la.quadratic_form(diff, la.pinv(stats.covariances[k]))
        out[:, k] = -0.5 * ld - 0.5 * q + log_prior[k]
    if singular:
        warnings.warn(
            f"singular covariance for classes {singular}; their quadratic scores are -inf.",
            RuntimeWarning,
            stacklevel=2,
        )
    return out


def predict(X, stats: ClassStatistics, mode: DiscriminantMode | str) -> NDArray:
    """Predicted label per row (first maximum wins ties)."""
    scores = discriminant_scores(X, stats, mode)
    return stats.classes[np.argmax(scores, axis=1)]


def classify(x, mode: DiscriminantMode | str, stats: ClassStatistics):
    """Label of the class with the highest score at a single point ``x``."""
    xd = la.to_dense(x).reshape(1, -1)
    return predict(xd, stats, mode)[0]


@dataclass(frozen=True)
class ErrorRates:
    """Misclassification summary.

    ``per_class`` is indexed by class label; a class absent from the
    evaluation data has count 0 and error rate 0.
    """

    per_class: pd.Series
    counts: pd.Series
    overall: float

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"count": self.counts, "error_rate": self.per_class})


def evaluate_error_rate(
    X,
    labels,
    mode: DiscriminantMode | str,
    stats: ClassStatistics,
) -> ErrorRates:
    """Per-class and overall misclassification rates on ``(X, labels)``."""
    y = np.asarray(labels).reshape(-1)
    Xd = la.as_2d(X)
    if Xd.shape[0] != y.shape[0]:
        msg = f"labels length {y.shape[0]} != number of rows {Xd.shape[0]}"
        raise DimensionMismatchError(msg)
    if y.shape[0] == 0:
        raise InsufficientDataError("cannot evaluate error rates on an empty dataset")
    pred = predict(Xd, stats, mode)
    wrong = pred != y
    counts = np.array([int(np.sum(y == c)) for c in stats.classes], dtype=np.int64)
    errors = np.array([int(np.sum(wrong & (y == c))) for c in stats.classes], dtype=np.int64)
    rates = np.divide(
        errors.astype(np.float64),
        counts.astype(np.float64),
        out=np.zeros(counts.shape, dtype=np.float64),
        where=counts > 0,
    )
    absent = stats.classes[counts == 0].tolist()
    if absent:
        warnings.warn(
            f"classes {absent} do not occur in the evaluation data; reporting a zero error rate.",
            RuntimeWarning,
            stacklevel=2,
        )
    index = pd.Index(stats.classes, name="class")
    return ErrorRates(
        per_class=pd.Series(rates, index=index, name="error_rate"),
        counts=pd.Series(counts, index=index, name="count"),
        overall=float(np.mean(wrong)),
    )


def confusion_matrix(labels, predicted, classes: Sequence | None = None) -> pd.DataFrame:
    """Counts with true labels on rows and predicted labels on columns."""
    y = np.asarray(labels).reshape(-1)
    yhat = np.asarray(predicted).reshape(-1)
    cls = np.unique(np.concatenate([y, yhat])) if classes is None else np.asarray(classes)
    pos = {c: i for i, c in enumerate(cls.tolist())}
    out = np.zeros((cls.size, cls.size), dtype=np.int64)
    for t, p in zip(y.tolist(), yhat.tolist()):
        out[pos[t], pos[p]] += 1
    return pd.DataFrame(
        out,
        index=pd.Index(cls, name="true"),
        columns=pd.Index(cls, name="predicted"),
    )


class DiscriminantAnalysis(BaseEstimator):
    """Gaussian discriminant classifier (quadratic or linear).

    Parameters
    ----------
    X : array-like, shape (n, p)
        Training features (ndarray or DataFrame).
    labels : array-like, shape (n,)
        Class labels.
    mode : {"quadratic", "linear"} or DiscriminantMode, default "quadratic"
        Also accepts the short codes "Q" and "L".
    classes : sequence, optional
        Explicit label set; defaults to the distinct training labels.

    Examples
    --------
    >>> model = DiscriminantAnalysis(X_train, y_train, mode="linear")
    >>> res = model.fit()
    >>> model.error_rate(X_test, y_test).overall

    """

    def __init__(
        self,
        X,
        labels,
        *,
        mode: DiscriminantMode | str = DiscriminantMode.QUADRATIC,
        classes: Sequence | None = None,
    ) -> None:
        super().__init__()
        self.mode = DiscriminantMode.coerce(mode)
        self.feature_names = (
            [str(c) for c in X.columns] if isinstance(X, pd.DataFrame) else None
        )
        self.X = la.as_2d(X)
        self.labels = np.asarray(labels).reshape(-1)
        self._classes = classes
        self._stats: ClassStatistics | None = None

    @property
    def stats(self) -> ClassStatistics:
        if self._stats is None:
            msg = "Model has not been fitted yet. Call .fit() first."
            raise RuntimeError(msg)
        return self._stats

    def fit(self) -> EstimationResult:
        stats = compute_class_statistics(self.X, self.labels, classes=self._classes)
        self._stats = stats
        names = self.feature_names or [f"x.{j + 1}" for j in range(stats.n_features)]
        params = pd.Series(
            stats.means.reshape(-1),
            index=pd.MultiIndex.from_product([stats.classes, names], names=["class", "feature"]),
            name="mean",
        )
        train = evaluate_error_rate(self.X, self.labels, self.mode, stats)
        _LOGGER.debug(
            "%s fit: K=%d, p=%d, training error %.4f",
            self.mode.name, stats.n_classes, stats.n_features, train.overall,
        )
        self._results = EstimationResult(
            params=params,
            n_obs=int(self.X.shape[0]),
            model_info={
                "Estimator": "QDA" if self.mode is DiscriminantMode.QUADRATIC else "LDA",
                "Classes": stats.n_classes,
                "Features": stats.n_features,
            },
            extra={
                "stats": stats,
                "priors": pd.Series(stats.priors, index=pd.Index(stats.classes, name="class")),
                "train_error": train,
            },
        )
        return self._results

    def decision_function(self, X) -> NDArray[np.float64]:
        return discriminant_scores(X, self.stats, self.mode)

    def predict(self, X) -> NDArray:
        return predict(X, self.stats, self.mode)

    def error_rate(self, X, labels) -> ErrorRates:
        return evaluate_error_rate(X, labels, self.mode, self.stats)
