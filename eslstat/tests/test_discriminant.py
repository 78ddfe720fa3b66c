import warnings
from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from eslstat.core.classstats import ClassStatistics, compute_class_statistics
from eslstat.core.exceptions import DimensionMismatchError, InsufficientDataError, InvalidModeError
from eslstat.estimators.discriminant import (
    DiscriminantAnalysis,
    DiscriminantMode,
    classify,
    confusion_matrix,
    discriminant_scores,
    evaluate_error_rate,
    predict,
    score_linear,
    score_quadratic,
)

# ---------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------

@pytest.fixture
def rng():
    return np.random.default_rng(7)

@pytest.fixture
def three_class(rng):
    means = np.array([[0.0, 0.0, 0.0], [8.0, 0.0, 0.0], [0.0, 8.0, 0.0]])
    X = np.vstack([m + rng.standard_normal((25, 3)) for m in means])
    y = np.repeat([1, 2, 3], 25)
    return X, y

@pytest.fixture
def symmetric_stats():
    return ClassStatistics(
        classes=np.array([1, 2]),
        counts=np.array([10, 10]),
        means=np.array([[-1.0], [1.0]]),
        covariances=np.array([[[1.0]], [[1.0]]]),
        priors=np.array([0.5, 0.5]),
        pooled_cov=np.array([[1.0]]),
    )

# ---------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------

def test_mode_coerce_aliases():
    assert DiscriminantMode.coerce("Q") is DiscriminantMode.QUADRATIC
    assert DiscriminantMode.coerce("lda") is DiscriminantMode.LINEAR
    assert DiscriminantMode.coerce(DiscriminantMode.LINEAR) is DiscriminantMode.LINEAR

def test_invalid_mode_rejected(three_class):
    X, y = three_class
    with pytest.raises(InvalidModeError):
        DiscriminantMode.coerce("X")
    with pytest.raises(ValueError):
        DiscriminantAnalysis(X, y, mode="cubic")

# ---------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------

def test_scores_shift_with_common_prior_scale():
    x = np.array([0.3, -0.2])
    mean = np.array([0.0, 1.0])
    cov = np.array([[1.0, 0.2], [0.2, 2.0]])
    dq = score_quadratic(x, mean, cov, 0.2) - score_quadratic(x, mean, cov, 0.1)
    dl = score_linear(x, mean, cov, 0.2) - score_linear(x, mean, cov, 0.1)
    assert np.isclose(dq, np.log(2.0))
    assert np.isclose(dl, np.log(2.0))

def test_vectorized_scores_match_scalar(three_class):
    X, y = three_class
    st = compute_class_statistics(X, y)
    S = discriminant_scores(X[:4], st, "Q")
    for i in range(4):
        for k in range(st.n_classes):
            ref = score_quadratic(X[i], st.means[k], st.covariances[k], st.priors[k])
            assert np.isclose(S[i, k], ref)
    L = discriminant_scores(X[:4], st, "L")
    assert np.isclose(L[0, 1], score_linear(X[0], st.means[1], st.pooled_cov, st.priors[1]))

def test_tied_quadratic_differs_from_linear_by_constant(three_class):
    X, y = three_class
    st = compute_class_statistics(X, y)
    diff = discriminant_scores(X, st.tied(), "Q") - discriminant_scores(X, st, "L")
    assert np.allclose(diff, diff[:, [0]])
    assert np.array_equal(predict(X, st.tied(), "Q"), predict(X, st, "L"))

def test_prior_rescaling_leaves_labels_unchanged(three_class):
    X, y = three_class
    st = compute_class_statistics(X, y)
    scaled = replace(st, priors=3.0 * st.priors)
    assert not np.allclose(scaled.priors, st.priors)
    for mode in ("Q", "L"):
        assert np.array_equal(predict(X, st, mode), predict(X, scaled, mode))

def test_ties_go_to_first_class(symmetric_stats):
    assert classify([0.0], "Q", symmetric_stats) == 1
    assert classify([0.0], "L", symmetric_stats) == 1
    assert classify([0.5], "L", symmetric_stats) == 2

def test_singular_covariance_scores_minus_inf():
    X = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 0.5], [0.0, 1.0], [1.0, 1.0], [2.0, 1.0]])
    y = np.array([1, 1, 1, 2, 2, 2])
    st = compute_class_statistics(X, y)
    assert score_quadratic(X[0], st.means[1], st.covariances[1], st.priors[1]) == float("-inf")
    with pytest.warns(RuntimeWarning, match="singular"):
        S = discriminant_scores(X, st, "Q")
    assert np.all(np.isneginf(S[:, 1]))
    assert np.all(np.isfinite(S[:, 0]))

def test_tilted_rank_one_class_does_not_capture_far_points(rng):
    t = np.linspace(-1.0, 1.0, 15)
    line = np.column_stack([t + 6.0, 0.1 * t + 6.3])
    blob = rng.standard_normal((30, 2))
    X = np.vstack([blob, line])
    y = np.repeat([1, 2], [30, 15])
    st = compute_class_statistics(X, y)
    with pytest.warns(RuntimeWarning, match="singular"):
        pred = predict(blob, st, "Q")
    assert np.all(pred == 1)

def test_dimension_mismatch(three_class):
    X, y = three_class
    st = compute_class_statistics(X, y)
    with pytest.raises(DimensionMismatchError):
        predict(np.zeros((2, 5)), st, "L")
    with pytest.raises(DimensionMismatchError):
        classify([1.0, 2.0], "Q", st)

# ---------------------------------------------------------------------
# Error rates
# ---------------------------------------------------------------------

def test_error_rate_separated_classes(three_class):
    X, y = three_class
    st = compute_class_statistics(X, y)
    er = evaluate_error_rate(X, y, "Q", st)
    assert er.overall < 0.05
    assert er.counts.tolist() == [25, 25, 25]
    assert list(er.per_class.index) == [1, 2, 3]

def test_error_rate_absent_class(three_class):
    X, y = three_class
    st = compute_class_statistics(X, y)
    keep = y != 3
    with pytest.warns(RuntimeWarning, match="do not occur"):
        er = evaluate_error_rate(X[keep], y[keep], "L", st)
    assert er.counts.loc[3] == 0
    assert er.per_class.loc[3] == 0.0

def test_error_rate_empty_dataset(symmetric_stats):
    with pytest.raises(InsufficientDataError, match="empty"):
        evaluate_error_rate(np.zeros((0, 1)), [], "L", symmetric_stats)

def test_error_rate_counts_mistakes(symmetric_stats):
    X = np.array([[-2.0], [2.0], [-0.5], [0.5]])
    y = np.array([1, 2, 2, 1])
    er = evaluate_error_rate(X, y, "L", symmetric_stats)
    assert np.isclose(er.overall, 0.5)
    assert np.allclose(er.per_class.to_numpy(), [0.5, 0.5])
    frame = er.to_frame()
    assert list(frame.columns) == ["count", "error_rate"]

def test_confusion_matrix():
    cm = confusion_matrix([1, 1, 2, 2], [1, 2, 2, 2])
    assert cm.loc[1, 1] == 1
    assert cm.loc[1, 2] == 1
    assert cm.loc[2, 2] == 2
    assert cm.to_numpy().sum() == 4

# ---------------------------------------------------------------------
# Estimator
# ---------------------------------------------------------------------

def test_estimator_fit_and_predict(three_class):
    X, y = three_class
    frame = pd.DataFrame(X, columns=["x.1", "x.2", "x.3"])
    model = DiscriminantAnalysis(frame, y, mode="L")
    res = model.fit()
    assert res.model_info["Estimator"] == "LDA"
    assert res.model_info["Classes"] == 3
    assert res.params.loc[(2, "x.1")] == pytest.approx(model.stats.means[1, 0])
    assert np.isclose(res.extra["priors"].sum(), 1.0)
    assert res.extra["train_error"].overall < 0.05
    assert model.predict(X[:3]).tolist() == [1, 1, 1]
    assert model.decision_function(X).shape == (75, 3)

def test_estimator_requires_fit(three_class):
    X, y = three_class
    model = DiscriminantAnalysis(X, y)
    with pytest.raises(RuntimeError):
        model.predict(X)
    with pytest.raises(RuntimeError):
        _ = model.results

def test_quadratic_beats_linear_on_unequal_spread(rng):
    # same means, different spreads: only the quadratic rule separates them
    X = np.vstack([0.3 * rng.standard_normal((200, 2)), 3.0 * rng.standard_normal((200, 2))])
    y = np.repeat([1, 2], 200)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        q = DiscriminantAnalysis(X, y, mode="Q").fit().extra["train_error"].overall
        lin = DiscriminantAnalysis(X, y, mode="L").fit().extra["train_error"].overall
    assert q < lin
