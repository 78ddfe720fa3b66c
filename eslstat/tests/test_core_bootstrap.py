import numpy as np
import pytest

from eslstat.core import bootstrap as bs
from eslstat.core import penalized as pen
from eslstat.core.exceptions import InsufficientDataError
from eslstat.estimators.spline import SplineFitter
from eslstat.utils.basis import SplineBasis

# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------

@pytest.fixture
def line_fitter():
    return SplineFitter(SplineBasis.truncated_power([], order=2))

@pytest.fixture
def mean_fitter():
    return SplineFitter(SplineBasis.truncated_power([], order=1))

@pytest.fixture
def noisy():
    rng = np.random.default_rng(99)
    x = rng.uniform(0.0, 1.0, 25)
    y = 1.0 + 2.0 * x + 0.3 * rng.standard_normal(25)
    return x, y

# ---------------------------------------------------------------------
# Resampling
# ---------------------------------------------------------------------

def test_bootstrap_indices_shape_and_range():
    idx = bs.bootstrap_indices(7, 50, rng=1)
    assert idx.shape == (50, 7)
    assert idx.min() >= 0
    assert idx.max() <= 6

def test_bootstrap_indices_reproducible():
    assert np.array_equal(bs.bootstrap_indices(10, 5, rng=3), bs.bootstrap_indices(10, 5, rng=3))

def test_bootstrap_indices_reject_empty():
    with pytest.raises(InsufficientDataError):
        bs.bootstrap_indices(0, 5)

def test_bootstrap_sample_size(noisy):
    x, y = noisy
    xs, ys = bs.bootstrap_sample(x, y, rng=0)
    assert xs.shape == x.shape
    assert ys.shape == y.shape

def test_refits_serial_and_threaded_agree(noisy, line_fitter):
    x, y = noisy
    grid = np.linspace(0.0, 1.0, 5)
    serial = bs.bootstrap_refits(x, y, line_fitter, n_boot=20, rng=8, n_jobs=1)
    threaded = bs.bootstrap_refits(x, y, line_fitter, n_boot=20, rng=8, n_jobs=4)
    assert np.allclose(
        bs.bootstrap_predictions(serial, grid),
        bs.bootstrap_predictions(threaded, grid),
    )

def test_bootstrap_predictions_shape(noisy, line_fitter):
    x, y = noisy
    models = bs.bootstrap_refits(x, y, line_fitter, n_boot=12, rng=2)
    assert bs.bootstrap_predictions(models, np.linspace(0, 1, 4)).shape == (4, 12)

def test_default_n_jobs_from_env(monkeypatch):
    monkeypatch.delenv(bs.N_JOBS_ENV, raising=False)
    assert bs.default_n_jobs() == 1
    monkeypatch.setenv(bs.N_JOBS_ENV, "3")
    assert bs.default_n_jobs() == 3
    monkeypatch.setenv(bs.N_JOBS_ENV, "many")
    assert bs.default_n_jobs() == 1

# ---------------------------------------------------------------------
# Intervals and standard errors
# ---------------------------------------------------------------------

def test_pivotal_interval_formula():
    lo, hi = bs.pivotal_interval([3.0], [[1.0, 2.0, 3.0, 4.0, 5.0]], alpha=0.5)
    # quantiles 2 and 4 -> (2*3 - 4, 2*3 - 2)
    assert np.allclose(lo, [2.0])
    assert np.allclose(hi, [4.0])

def test_pivotal_interval_brackets_symmetric_replicates():
    star = np.array([[-2.0, -1.0, 0.0, 1.0, 2.0], [8.0, 9.0, 10.0, 11.0, 12.0]])
    lo, hi = bs.pivotal_interval([0.0, 10.0], star)
    assert np.all(lo <= [0.0, 10.0])
    assert np.all(hi >= [0.0, 10.0])

def test_pivotal_interval_accepts_transposed():
    star = np.arange(12.0).reshape(4, 3)  # (B, n_points)
    lo, hi = bs.pivotal_interval(np.zeros(3), star)
    lo_t, hi_t = bs.pivotal_interval(np.zeros(3), star.T)
    assert np.allclose(lo, lo_t)
    assert np.allclose(hi, hi_t)

def test_pivotal_interval_rejects_bad_alpha():
    with pytest.raises(ValueError):
        bs.pivotal_interval([0.0], [[1.0, 2.0]], alpha=1.5)

def test_bootstrap_se():
    se = bs.bootstrap_se([[1.0, 2.0, 3.0], [5.0, 5.0, 5.0]])
    assert np.allclose(se, [1.0, 0.0])
    assert np.allclose(bs.bootstrap_se([1.0, 2.0, 3.0]), [1.0])
    with pytest.raises(ValueError, match="at least 2 replicates"):
        bs.bootstrap_se([[1.0]])
    with pytest.raises(ValueError, match=r"points \[1\]"):
        bs.bootstrap_se([[1.0, 2.0], [1.0, np.nan]])

# ---------------------------------------------------------------------
# Cross-validation
# ---------------------------------------------------------------------

def test_loo_cv_collinear_points_is_zero(line_fitter):
    x = np.array([0.0, 1.0, 2.0, 3.0, 4.0])
    y = 1.0 + 2.0 * x
    assert bs.loo_cv(x, y, line_fitter) < 1e-20

def test_loo_cv_matches_hat_shortcut(noisy, line_fitter):
    x, y = noisy
    X = np.column_stack([np.ones_like(x), x])
    assert np.isclose(bs.loo_cv(x, y, line_fitter), pen.loo_score(X, y))
    assert np.isclose(bs.loo_cv(x, y, line_fitter, n_jobs=3), pen.loo_score(X, y))

def test_loo_cv_needs_two_rows(line_fitter):
    with pytest.raises(InsufficientDataError):
        bs.loo_cv([1.0], [1.0], line_fitter)

def test_bagged_cv_constant_response(mean_fitter):
    x = np.array([0.0, 1.0, 2.0, 3.0, 4.0, 5.0])
    y = np.full(6, 2.5)
    assert bs.bagged_cv(x, y, mean_fitter, n_boot=20, rng=4) == pytest.approx(0.0, abs=1e-20)

def test_bagged_cv_excludes_by_value(mean_fitter):
    x = np.array([0.0, 1.0, 2.0])
    y = np.array([1.0, 2.0, 3.0])
    idx = np.array([[0, 0, 0]])
    # row 0 has no usable resample; rows 1 and 2 are predicted by y[0]
    with pytest.warns(RuntimeWarning, match="no usable resample"):
        err = bs.bagged_cv(x, y, mean_fitter, indices=idx)
    assert np.isclose(err, (1.0 + 4.0) / 2.0)

def test_bagged_cv_all_excluded(mean_fitter):
    with pytest.raises(InsufficientDataError):
        bs.bagged_cv(np.array([1.0]), np.array([1.0]), mean_fitter, indices=np.array([[0]]))

def test_bagged_cv_reproducible(noisy, line_fitter):
    x, y = noisy
    a = bs.bagged_cv(x, y, line_fitter, n_boot=10, rng=6)
    b = bs.bagged_cv(x, y, line_fitter, n_boot=10, rng=6, n_jobs=2)
    assert np.isclose(a, b)
    assert a > 0.0
