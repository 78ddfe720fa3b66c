import numpy as np
import pytest

from eslstat.core import inference as inf
from eslstat.core import penalized as pen
from eslstat.core.exceptions import DimensionMismatchError

# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------

@pytest.fixture
def line():
    rng = np.random.default_rng(11)
    x = np.linspace(0.0, 1.0, 30)
    y = 0.5 + 1.5 * x + 0.1 * rng.standard_normal(30)
    X = np.column_stack([np.ones(30), x, x**2])
    sigma2 = pen.estimate_noise_variance(X @ pen.fit_ols(X, y), y)
    return X, y, sigma2

# ---------------------------------------------------------------------
# Standard errors
# ---------------------------------------------------------------------

def test_standard_error_matches_hat_diagonal(line):
    X, _, sigma2 = line
    se = inf.standard_error(X, X, sigma2)
    hat = np.diag(X @ np.linalg.inv(X.T @ X) @ X.T)
    assert np.allclose(se, np.sqrt(sigma2 * hat))

def test_standard_error_single_point_is_float(line):
    X, _, sigma2 = line
    out = inf.standard_error(X[3], X, sigma2)
    assert isinstance(out, float)
    assert out > 0.0

def test_penalized_standard_error_not_larger(line):
    X, _, sigma2 = line
    se0 = inf.standard_error(X, X, sigma2)
    se1 = inf.standard_error(X, X, sigma2, omega=np.eye(3), lam=1.0)
    assert np.all(se1 <= se0 + 1e-12)

def test_standard_error_column_mismatch(line):
    X, _, sigma2 = line
    with pytest.raises(DimensionMismatchError):
        inf.standard_error(np.ones((2, 5)), X, sigma2)

def test_coefficient_covariance_ols(line):
    X, _, sigma2 = line
    V = inf.coefficient_covariance(X, sigma2)
    assert np.allclose(V, sigma2 * np.linalg.inv(X.T @ X))

# ---------------------------------------------------------------------
# Gaussian-prior posterior
# ---------------------------------------------------------------------

def test_posterior_mean_vague_prior_equals_ols(line):
    X, y, sigma2 = line
    ols = X @ pen.fit_ols(X, y)
    post = inf.posterior_mean(X, X, y, sigma2, tau=1e10)
    assert np.allclose(post, ols, atol=1e-6)

def test_posterior_mean_tight_prior_shrinks(line):
    X, y, sigma2 = line
    post = inf.posterior_mean(X, X, y, sigma2, tau=1e-12)
    assert np.allclose(post, 0.0, atol=1e-4)

def test_posterior_covariance_shapes(line):
    X, _, sigma2 = line
    C = inf.posterior_covariance(X[:4], X[:4], X, sigma2, tau=1.0)
    assert C.shape == (4, 4)
    assert np.allclose(C, C.T)
    c = inf.posterior_covariance(X[0], X[1], X, sigma2, tau=1.0)
    assert isinstance(c, float)
    assert np.isclose(c, C[0, 1])

def test_posterior_rejects_nonpositive_tau(line):
    X, y, sigma2 = line
    with pytest.raises(ValueError):
        inf.posterior_mean(X[0], X, y, sigma2, tau=0.0)

def test_posterior_draws_reproducible_and_centered(line):
    X, y, sigma2 = line
    H = X[[0, 15, 29]]
    a = inf.posterior_draws(H, X, y, sigma2, 1.0, 4000, rng=5)
    b = inf.posterior_draws(H, X, y, sigma2, 1.0, 4000, rng=5)
    assert a.shape == (3, 4000)
    assert np.array_equal(a, b)
    mean = inf.posterior_mean(H, X, y, sigma2, 1.0)
    sd = np.sqrt(np.diag(inf.posterior_covariance(H, H, X, sigma2, 1.0)))
    assert np.all(np.abs(a.mean(axis=1) - mean) < 5 * sd / np.sqrt(4000))
