import numpy as np
import pytest

from eslstat.core import penalized as pen
from eslstat.core.exceptions import DimensionMismatchError, InvalidModeError
from eslstat.utils.basis import SplineBasis, knots_from_quantiles

# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------

@pytest.fixture
def rng():
    return np.random.default_rng(2024)

@pytest.fixture
def curve(rng):
    x = np.sort(rng.uniform(0.0, 1.0, 40))
    y = np.sin(2 * np.pi * x) + 0.2 * rng.standard_normal(40)
    basis = SplineBasis.natural(knots_from_quantiles(x, 10))
    return basis.design_matrix(x), y, basis.penalty_matrix()

# ---------------------------------------------------------------------
# Least squares
# ---------------------------------------------------------------------

def test_fit_ols_recovers_line():
    x = np.linspace(0.0, 1.0, 6)
    X = np.column_stack([np.ones(6), x])
    theta = pen.fit_ols(X, 1.0 + 2.0 * x)
    assert np.allclose(theta, [1.0, 2.0])

def test_fit_ols_collinear_design_does_not_fail():
    x = np.linspace(0.0, 1.0, 6)
    X = np.column_stack([np.ones(6), x, 2 * x])
    theta = pen.fit_ols(X, 1.0 + 2.0 * x)
    assert np.allclose(X @ theta, 1.0 + 2.0 * x)

def test_fit_ridge_zero_equals_ols(curve):
    X, y, omega = curve
    assert np.allclose(pen.fit_ridge(X, y, omega, 0.0), pen.fit_ols(X, y))

def test_fit_ridge_shrinks(curve):
    X, y, _ = curve
    small = pen.fit_ridge(X, y, None, 1e-3)
    big = pen.fit_ridge(X, y, None, 1e3)
    assert np.linalg.norm(big) < np.linalg.norm(small)

def test_fit_ridge_rejects_negative_lambda(curve):
    X, y, omega = curve
    with pytest.raises(ValueError):
        pen.fit_ridge(X, y, omega, -1.0)

def test_penalty_shape_checked(curve):
    X, y, _ = curve
    with pytest.raises(DimensionMismatchError):
        pen.fit_ridge(X, y, np.eye(2), 1.0)

def test_noise_variance_divides_by_n():
    assert np.isclose(pen.estimate_noise_variance([0.0, 0.0, 0.0, 0.0], [1.0, -1.0, 1.0, -1.0]), 1.0)
    with pytest.raises(DimensionMismatchError):
        pen.estimate_noise_variance([0.0], [1.0, 2.0])

# ---------------------------------------------------------------------
# Smoother diagnostics
# ---------------------------------------------------------------------

def test_effective_df_bounds(curve):
    X, _, omega = curve
    df0 = pen.effective_df(X, omega, 0.0)
    assert np.isclose(df0, np.linalg.matrix_rank(X))
    assert np.isclose(pen.effective_df(X, omega, 1e6), 2.0, atol=0.05)
    dfs = [pen.effective_df(X, omega, lam) for lam in (1e-6, 1e-4, 1e-2)]
    assert dfs[0] > dfs[1] > dfs[2]

def test_smoother_matrix_trace(curve):
    X, _, omega = curve
    S = pen.smoother_matrix(X, omega, 1e-3)
    assert np.isclose(np.trace(S), pen.effective_df(X, omega, 1e-3))
    assert np.allclose(S, S.T, atol=1e-8)

def test_loo_score_matches_explicit_refits():
    rng = np.random.default_rng(3)
    x = rng.uniform(size=15)
    y = 1.0 + x + 0.1 * rng.standard_normal(15)
    X = np.column_stack([np.ones(15), x])
    errs = []
    for i in range(15):
        keep = np.arange(15) != i
        th = pen.fit_ols(X[keep], y[keep])
        errs.append((y[i] - X[i] @ th) ** 2)
    assert np.isclose(pen.loo_score(X, y), np.mean(errs))

def test_gcv_is_inf_for_interpolation():
    X = np.eye(4)
    assert pen.gcv_score(X, np.arange(4.0)) == float("inf")

# ---------------------------------------------------------------------
# Smoothing parameter
# ---------------------------------------------------------------------

def test_select_lambda_inside_bounds(curve):
    X, y, omega = curve
    lam = pen.select_lambda(X, y, omega, criterion="gcv")
    lo, hi = pen.LOG10_LAMBDA_BOUNDS
    assert 10.0 ** lo <= lam <= 10.0 ** hi
    lam_loo = pen.select_lambda(X, y, omega, criterion="loo")
    assert lam_loo > 0.0

def test_select_lambda_invalid_criterion(curve):
    X, y, omega = curve
    with pytest.raises(InvalidModeError):
        pen.select_lambda(X, y, omega, criterion="aic")

def test_lambda_for_df_hits_target(curve):
    X, _, omega = curve
    lam = pen.lambda_for_df(X, omega, 5.0)
    assert np.isclose(pen.effective_df(X, omega, lam), 5.0, atol=1e-4)

def test_lambda_for_df_out_of_range(curve):
    X, _, omega = curve
    with pytest.raises(ValueError, match="attainable"):
        pen.lambda_for_df(X, omega, 1.0)
