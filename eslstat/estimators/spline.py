"""Regression, natural, and smoothing spline estimators.

A fit is a :class:`FittedSpline`: the basis, the coefficient vector, the
residual variance, and the training design it came from. Fits are
immutable; prediction, standard errors, and posterior summaries are
read-only projections.

:func:`fit_spline` is the single refit core. :class:`SplineFitter` wraps it
with a fixed basis so bootstrap and cross-validation loops can refit
without rebuilding knots.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from eslstat.core import bootstrap as bt
from eslstat.core import inference as inf
from eslstat.core import linalg as la
from eslstat.core import penalized as pen
from eslstat.core.exceptions import DimensionMismatchError, InsufficientDataError
from eslstat.utils.basis import (
    SplineBasis,
    SplineFamily,
    interior_knots,
    knots_from_quantiles,
    knots_from_unique,
)

from .base import BaseEstimator, BootConfig, EstimationResult

if TYPE_CHECKING:
    from numpy.typing import NDArray

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "FittedSpline",
    "RegressionSpline",
    "SmoothingSpline",
    "SplineFitter",
    "fit_spline",
]


@dataclass(frozen=True)
class FittedSpline:
    """Basis plus fitted coefficients and noise variance.

    ``len(coef) == basis.n_basis`` and ``design`` rows match the training
    observations one to one.
    """

    basis: SplineBasis
    coef: NDArray[np.float64]
    sigma2: float
    design: NDArray[np.float64]
    y: NDArray[np.float64]
    lam: float = 0.0
    penalty: NDArray[np.float64] | None = None

    @property
    def n_obs(self) -> int:
        return int(self.design.shape[0])

    @property
    def fitted(self) -> NDArray[np.float64]:
        return self.design @ self.coef

    @property
    def residuals(self) -> NDArray[np.float64]:
        return self.y - self.fitted

    @property
    def df(self) -> float:
        """Effective degrees of freedom of the fit."""
        return pen.effective_df(self.design, self.penalty, self.lam)

    def predict(self, x) -> NDArray[np.float64]:
        return la.dot(self.basis.design_matrix(x), self.coef)

    def standard_error(self, x) -> NDArray[np.float64]:
        H = self.basis.design_matrix(x)
        return inf.standard_error(H, self.design, self.sigma2, omega=self.penalty, lam=self.lam)

    def pointwise_band(self, x, z: float = 2.0) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """fit -/+ z * se at each point of ``x``."""
        fit = self.predict(x)
        se = self.standard_error(x)
        return fit - z * se, fit + z * se

    # -- Gaussian-prior posterior ------------------------------------
    def posterior_mean(self, x, tau: float) -> NDArray[np.float64]:
        H = self.basis.design_matrix(x)
        return inf.posterior_mean(H, self.design, self.y, self.sigma2, tau)

    def posterior_covariance(self, x1, x2, tau: float) -> NDArray[np.float64]:
        H1 = self.basis.design_matrix(x1)
        H2 = self.basis.design_matrix(x2)
        return inf.posterior_covariance(H1, H2, self.design, self.sigma2, tau)

    def posterior_draws(self, x, tau: float, n_draws: int, *, rng=None) -> NDArray[np.float64]:
        H = self.basis.design_matrix(x)
        return inf.posterior_draws(H, self.design, self.y, self.sigma2, tau, n_draws, rng=rng)


def _resolve_penalty(basis: SplineBasis, penalty) -> NDArray[np.float64] | None:
    if penalty is None:
        return None
    if isinstance(penalty, str):
        key = penalty.strip().lower()
        if key == "curvature":
            return basis.penalty_matrix()
        if key == "ridge":
            return np.eye(basis.n_basis)
        msg = f"penalty must be 'curvature', 'ridge', or a matrix; got {penalty!r}"
        raise ValueError(msg)
    return la.as_2d(penalty)


def fit_spline(x, y, basis: SplineBasis, *, lam: float = 0.0, penalty=None) -> FittedSpline:
    """Fit basis coefficients by OLS (``lam == 0``) or penalized least squares.

    Parameters
    ----------
    x, y : array-like, shape (n,)
        Predictor and response.
    basis : SplineBasis
    lam : float, default 0
        Penalty weight; zero gives ordinary least squares.
    penalty : {"curvature", "ridge"} or (p, p) array, optional
        Penalty matrix Omega. Required when ``lam > 0`` unless the identity
        (ridge) is intended, which is also the fallback for ``None``.

    """
    xd = la.to_dense(x).reshape(-1)
    yd = la.to_dense(y).reshape(-1)
    if xd.shape[0] != yd.shape[0]:
        msg = f"x has {xd.shape[0]} rows but y has {yd.shape[0]}"
        raise DimensionMismatchError(msg)
    if xd.shape[0] == 0:
        raise InsufficientDataError("cannot fit a spline to an empty dataset")
    X = basis.design_matrix(xd)
    omega = _resolve_penalty(basis, penalty)
    if float(lam) == 0.0:
        coef = pen.fit_ols(X, yd)
    else:
        coef = pen.fit_ridge(X, yd, omega, lam)
    sigma2 = pen.estimate_noise_variance(X @ coef, yd)
    return FittedSpline(
        basis=basis,
        coef=coef,
        sigma2=sigma2,
        design=X,
        y=yd,
        lam=float(lam),
        penalty=omega,
    )


@dataclass(frozen=True)
class SplineFitter:
    """Pluggable refit function with a fixed basis and penalty."""

    basis: SplineBasis
    lam: float = 0.0
    penalty: Any = None

    def __call__(self, x, y) -> FittedSpline:
        return fit_spline(x, y, self.basis, lam=self.lam, penalty=self.penalty)


class _SplineEstimator(BaseEstimator):
    """Shared fit/bootstrap plumbing for spline estimators."""

    estimator_name = "Spline"

    def __init__(self, x, y) -> None:
        super().__init__()
        self.x_name = getattr(x, "name", None) or "x"
        self.y_name = getattr(y, "name", None) or "y"
        self.x = la.to_dense(x).reshape(-1)
        self.y = la.to_dense(y).reshape(-1)
        if self.x.shape[0] != self.y.shape[0]:
            msg = f"x has {self.x.shape[0]} rows but y has {self.y.shape[0]}"
            raise DimensionMismatchError(msg)
        if self.x.shape[0] == 0:
            raise InsufficientDataError("cannot fit a spline to an empty dataset")
        la._assert_all_finite(self.x, self.y)  # noqa: SLF001
        self._fit: FittedSpline | None = None

    @abstractmethod
    def _fitter(self) -> SplineFitter:  # pragma: no cover - abstract
        """Refit function with this estimator's basis and penalty."""

    def _model_info(self, fitted: FittedSpline) -> dict[str, Any]:
        return {
            "Estimator": self.estimator_name,
            "Family": fitted.basis.family.value,
            "Knots": int(fitted.basis.knots.size),
            "df": round(fitted.df, 4),
        }

    @property
    def spline(self) -> FittedSpline:
        if self._fit is None:
            msg = "Model has not been fitted yet. Call .fit() first."
            raise RuntimeError(msg)
        return self._fit

    def fit(self, boot: BootConfig | None = None, *, grid=None, z: float = 2.0) -> EstimationResult:
        """Fit on the full data; optionally add pivotal bootstrap bands.

        ``grid`` sets the evaluation points for bands (default: the sorted
        distinct training x values).
        """
        fitter = self._fitter()
        fitted = fitter(self.x, self.y)
        self._fit = fitted
        names = [f"h{j + 1}" for j in range(fitted.basis.n_basis)]
        V = inf.coefficient_covariance(fitted.design, fitted.sigma2, fitted.penalty, fitted.lam)
        se = np.sqrt(np.maximum(np.diag(V), 0.0))

        xg = np.unique(self.x) if grid is None else la.to_dense(grid).reshape(-1)
        fit_g = fitted.predict(xg)
        se_g = fitted.standard_error(xg)
        bands: dict[str, pd.DataFrame] = {
            "pointwise": pd.DataFrame(
                {
                    self.x_name: xg,
                    "fit": fit_g,
                    "se": se_g,
                    "lower": fit_g - z * se_g,
                    "upper": fit_g + z * se_g,
                },
            ),
        }
        extra: dict[str, Any] = {"spline": fitted, "fitter": fitter, "sigma2": fitted.sigma2}

        if boot is not None:
            models = bt.bootstrap_refits(
                self.x,
                self.y,
                fitter,
                n_boot=boot.n_boot,
                rng=boot.seed,
                n_jobs=boot.n_jobs,
            )
            star = bt.bootstrap_predictions(models, xg)
            lo, hi = bt.pivotal_interval(fit_g, star, alpha=boot.alpha)
            bands["bootstrap"] = pd.DataFrame(
                {
                    self.x_name: xg,
                    "fit": fit_g,
                    "se": bt.bootstrap_se(star),
                    "lower": lo,
                    "upper": hi,
                },
            )
            extra["boot_predictions"] = star
            _LOGGER.debug("%s bootstrap: B=%d, grid=%d", self.estimator_name, star.shape[1], xg.size)

        self._results = EstimationResult(
            params=pd.Series(fitted.coef, index=names, name="coef"),
            se=pd.Series(se, index=names, name="se"),
            bands=bands,
            n_obs=fitted.n_obs,
            model_info=self._model_info(fitted),
            extra=extra,
        )
        return self._results

    def predict(self, x) -> NDArray[np.float64]:
        return self.spline.predict(x)

    def loo_cv(self, *, n_jobs: int | None = None) -> float:
        """Leave-one-out error with the basis held fixed across refits."""
        return bt.loo_cv(self.x, self.y, self._fitter(), n_jobs=n_jobs)

    def bagged_cv(self, boot: BootConfig) -> float:
        return bt.bagged_cv(
            self.x,
            self.y,
            self._fitter(),
            n_boot=boot.n_boot,
            rng=boot.seed,
            n_jobs=boot.n_jobs,
        )


class RegressionSpline(_SplineEstimator):
    """Least-squares fit on a truncated-power or natural spline basis.

    Parameters
    ----------
    x, y : array-like, shape (n,)
    family : {"bs", "ns"}, default "bs"
        Truncated-power ("bs") or natural cubic ("ns") basis.
    knots : array-like, optional
        Interior knots for "bs"; all knots for "ns". Overrides ``df``.
    df : int, default 6
        Basis dimension when ``knots`` is not given. For "bs" this places
        ``df - order`` interior knots at quantiles; for "ns" ``df`` knots at
        quantiles including the range endpoints.
    order : int, default 4
        Polynomial order of the truncated-power family.
    lam : float, default 0
        Optional ridge/curvature penalty weight.
    penalty : {"curvature", "ridge"} or array, optional

    """

    estimator_name = "RegressionSpline"

    def __init__(  # noqa: PLR0913
        self,
        x,
        y,
        *,
        family: SplineFamily | str = SplineFamily.TRUNCATED_POWER,
        knots=None,
        df: int = 6,
        order: int = 4,
        lam: float = 0.0,
        penalty=None,
    ) -> None:
        super().__init__(x, y)
        self.family = SplineFamily.coerce(family)
        self.order = int(order)
        self.lam = float(lam)
        self.penalty = penalty
        if self.family is SplineFamily.NATURAL:
            k = knots_from_quantiles(self.x, df) if knots is None else knots
            self.basis = SplineBasis.natural(k)
        else:
            k = interior_knots(self.x, df, self.order) if knots is None else knots
            self.basis = SplineBasis.truncated_power(k, self.order, x=self.x)

    def _fitter(self) -> SplineFitter:
        return SplineFitter(self.basis, lam=self.lam, penalty=self.penalty)


class SmoothingSpline(_SplineEstimator):
    """Curvature-penalized natural spline with one knot per distinct x.

    The smoothing parameter comes from, in order of precedence: ``lam``;
    ``df`` (solve trace(S_lambda) = df); or ``criterion`` ("gcv" or "loo"),
    minimized numerically.
    """

    estimator_name = "SmoothingSpline"

    def __init__(
        self,
        x,
        y,
        *,
        lam: float | None = None,
        df: float | None = None,
        criterion: str = "gcv",
    ) -> None:
        super().__init__(x, y)
        self.basis = SplineBasis.natural(knots_from_unique(self.x))
        if self.basis.n_basis < 3:
            raise InsufficientDataError("a smoothing spline needs at least 3 distinct x values")
        self.omega = self.basis.penalty_matrix()
        self.criterion = criterion
        X = self.basis.design_matrix(self.x)
        if lam is not None:
            self.lam = float(lam)
        elif df is not None:
            self.lam = pen.lambda_for_df(X, self.omega, df)
        else:
            self.lam = pen.select_lambda(X, self.y, self.omega, criterion=criterion)
        _LOGGER.debug("SmoothingSpline: lambda=%.6g", self.lam)

    def _fitter(self) -> SplineFitter:
        return SplineFitter(self.basis, lam=self.lam, penalty=self.omega)

    def _model_info(self, fitted: FittedSpline) -> dict[str, Any]:
        info = super()._model_info(fitted)
        info["lambda"] = self.lam
        return info
