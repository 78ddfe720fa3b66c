"""Synthetic data generators.

Small, seeded simulators shaped like the vowel and bone/ozone tables, for
smoke tests and the demo when the real files are not at hand.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from eslstat.datasets import ClassificationData, RegressionData


def simulate_gaussian_classes(
    n_per_class: int = 48,
    n_classes: int = 11,
    n_features: int = 10,
    *,
    separation: float = 1.5,
    tied: bool = False,
    seed: int | None = 42,
) -> ClassificationData:
    """Gaussian classes labelled ``1..n_classes`` with features ``x.1..x.p``.

    Class means are drawn from N(0, separation^2 I). With ``tied=False``
    each class gets its own random covariance; with ``tied=True`` all
    classes share one, which is the setting where LDA is correct.
    """
    if n_per_class < 2:
        raise ValueError("n_per_class must be >= 2")
    rng = np.random.default_rng(seed)
    means = separation * rng.standard_normal((n_classes, n_features))

    def _random_cov() -> np.ndarray:
        A = rng.standard_normal((n_features, n_features)) / np.sqrt(n_features)
        return A @ A.T + 0.5 * np.eye(n_features)

    shared = _random_cov()
    blocks = []
    labels = []
    for k in range(n_classes):
        cov = shared if tied else _random_cov()
        blocks.append(rng.multivariate_normal(means[k], cov, size=n_per_class))
        labels.append(np.full(n_per_class, k + 1, dtype=np.int64))
    X = np.vstack(blocks)
    y = np.concatenate(labels)
    cols = [f"x.{j + 1}" for j in range(n_features)]
    return ClassificationData(
        features=pd.DataFrame(X, columns=cols),
        labels=pd.Series(y, name="y"),
    )


def simulate_smooth_curve(
    n_obs: int = 200,
    *,
    noise: float = 0.3,
    x_range: tuple[float, float] = (0.0, 1.0),
    seed: int | None = 123,
) -> RegressionData:
    """y = sin(2 pi x) + x + eps on uniform x, eps ~ N(0, noise^2)."""
    if n_obs < 1:
        raise ValueError("n_obs must be >= 1")
    rng = np.random.default_rng(seed)
    lo, hi = x_range
    x = rng.uniform(lo, hi, size=n_obs)
    y = true_curve(x) + noise * rng.standard_normal(n_obs)
    return RegressionData(x=pd.Series(x, name="x"), y=pd.Series(y, name="y"))


def true_curve(x) -> np.ndarray:
    """Noise-free mean function used by :func:`simulate_smooth_curve`."""
    xd = np.asarray(x, dtype=np.float64)
    return np.sin(2.0 * np.pi * xd) + xd
