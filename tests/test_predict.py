import numpy as np
import pandas as pd
import pytest
from scipy.special import logsumexp
from scipy.stats import multivariate_normal

from sparse_discrim import InputError, Strategy, fit, fit_formula, predict

FEATURES = ["sepal_length", "sepal_width", "petal_length", "petal_width"]

ALL_STRATEGIES = [s.value for s in Strategy]


@pytest.fixture
def iris_model(iris_split):
    train, _ = iris_split

    def _fit(strategy, **kwargs):
        return fit(train[FEATURES], train["species"], strategy=strategy, **kwargs)

    return _fit


@pytest.mark.parametrize("strategy", ALL_STRATEGIES)
def test_iris_half_split(iris_split, iris_model, strategy):
    """Every strategy labels all 75 held-out flowers with a known species."""
    _, test = iris_split
    model = iris_model(strategy)
    labels = predict(model, test[FEATURES])
    assert labels.shape == (75,)
    assert set(labels) <= {"setosa", "versicolor", "virginica"}
    assert np.mean(labels == test["species"].to_numpy()) > 0.8


@pytest.mark.parametrize("strategy", ALL_STRATEGIES)
def test_posteriors_are_probabilities(iris_split, iris_model, strategy):
    _, test = iris_split
    probs = predict(iris_model(strategy), test[FEATURES], mode="prob")
    assert probs.shape == (75, 3)
    assert list(probs.columns) == list(iris_model(strategy).classes)
    np.testing.assert_allclose(probs.sum(axis=1), 1.0, atol=1e-9)
    assert ((probs >= 0) & (probs <= 1)).all().all()


@pytest.mark.parametrize("strategy", ALL_STRATEGIES)
def test_most_probable_class_is_predicted_class(iris_split, iris_model, strategy):
    _, test = iris_split
    model = iris_model(strategy)
    probs = predict(model, test[FEATURES], mode="prob")
    labels = predict(model, test[FEATURES])
    np.testing.assert_array_equal(probs.idxmax(axis=1).to_numpy(), labels)


def test_scores_are_labelled_by_class_and_row(iris_split, iris_model):
    _, test = iris_split
    model = iris_model("qda_diag")
    scores = predict(model, test[FEATURES], mode="score")
    assert list(scores.columns) == list(model.classes)
    assert scores.index.equals(test.index)
    assert np.isfinite(scores.to_numpy()).all()


def test_prediction_is_repeatable(iris_split, iris_model):
    _, test = iris_split
    model = iris_model("lda_schafer")
    first = predict(model, test[FEATURES], mode="prob")
    second = predict(model, test[FEATURES], mode="prob")
    pd.testing.assert_frame_equal(first, second)


def test_unknown_mode_fails(iris_split, iris_model):
    _, test = iris_split
    with pytest.raises(InputError, match="mode"):
        predict(iris_model("lda_diag"), test[FEATURES], mode="response")


def test_wrong_feature_count_fails(iris_model):
    with pytest.raises(InputError, match="features"):
        predict(iris_model("lda_diag"), np.ones((2, 3)))


def test_single_vector_is_one_observation(iris_model):
    labels = predict(iris_model("lda_diag"), [5.0, 3.4, 1.5, 0.2])
    assert labels.shape == (1,)
    assert labels[0] == "setosa"


@pytest.mark.parametrize(
    "strategy", ["lda_diag", "qda_diag", "lda_shrink_mean", "qda_shrink_mean", "lda_schafer", "lda_pseudo"]
)
def test_single_feature(iris_frame, strategy):
    """Sepal length alone, training on every third flower."""
    train_rows = np.arange(0, 150, 3)
    test_rows = np.setdiff1d(np.arange(150), train_rows)
    X = iris_frame["sepal_length"].to_numpy()
    y = iris_frame["species"].to_numpy()

    model = fit(X[train_rows], y[train_rows], strategy=strategy)
    labels = predict(model, X[test_rows][:, None])
    assert labels.shape == (100,)
    assert set(labels) <= set(model.classes)

    probs = predict(model, X[test_rows][:, None], mode="prob")
    np.testing.assert_allclose(probs.sum(axis=1), 1.0, atol=1e-9)


def test_ties_go_to_the_first_class():
    X = np.array([[-1.0], [-3.0], [1.0], [3.0]])
    y = ["b", "b", "a", "a"]
    for strategy in ("lda_diag", "qda_diag", "lda", "qda"):
        model = fit(X, y, strategy=strategy)
        assert model.classes == ("b", "a")
        assert predict(model, [[0.0]])[0] == "b"


def test_zero_prior_class_is_never_predicted(iris_split):
    train, test = iris_split
    model = fit(train[FEATURES], train["species"], prior=[1.0, 0.0, 0.0])
    probs = predict(model, test[FEATURES], mode="prob")
    assert set(predict(model, test[FEATURES])) == {model.classes[0]}
    np.testing.assert_allclose(probs.iloc[:, 1:].to_numpy(), 0.0)


def test_formula_matches_matrix_interface(iris_split):
    train, test = iris_split
    by_formula = fit_formula("species ~ .", train, strategy="lda_schafer")
    by_matrix = fit(train[FEATURES], train["species"], strategy="lda_schafer")
    np.testing.assert_allclose(
        predict(by_formula, test, mode="prob").to_numpy(),
        predict(by_matrix, test[FEATURES], mode="prob").to_numpy(),
    )


def test_formula_drops_incomplete_rows(iris_split):
    train, test = iris_split
    train = train.copy()
    train.iloc[0, 0] = np.nan
    model = fit_formula("species ~ .", train)
    assert model.n_obs == 74
    assert model.design_info is not None
    assert predict(model, test).shape == (75,)


@pytest.mark.parametrize("strategy", ["lda_pseudo", "lda_schafer", "lda_diag", "qda_diag"])
def test_more_features_than_observations(wide_data, strategy):
    X, y = wide_data
    model = fit(X, y, strategy=strategy)
    probs = predict(model, X, mode="prob")
    assert np.isfinite(probs.to_numpy()).all()
    assert set(predict(model, X)) <= {"a", "b"}


@pytest.mark.parametrize("strategy", ["lda_schafer", "lda_diag", "qda_diag"])
def test_separated_wide_classes_are_recovered(wide_data, strategy):
    X, y = wide_data
    model = fit(X, y, strategy=strategy)
    assert np.mean(predict(model, X) == y) >= 0.8


def _class_rows(train, label):
    return train.loc[train["species"] == label, FEATURES].to_numpy()


@pytest.mark.parametrize("strategy", ["qda", "qda_diag", "lda"])
def test_scores_match_gaussian_discriminant(iris_split, iris_model, strategy):
    """score_k = -1/2 (quad + logdet_k) + log prior_k, logdet only for class covariances."""
    train, test = iris_split
    model = iris_model(strategy)
    X = test[FEATURES].to_numpy()
    scores = predict(model, test[FEATURES], mode="score")

    for label in model.classes:
        X_k = _class_rows(train, label)
        if strategy == "qda":
            S = np.cov(X_k, rowvar=False)
        elif strategy == "qda_diag":
            S = np.diag(X_k.var(axis=0))
        else:
            resid = np.vstack([_class_rows(train, c) - _class_rows(train, c).mean(axis=0) for c in model.classes])
            S = resid.T @ resid / (75 - 3)
        centered = X - X_k.mean(axis=0)
        quad = np.sum(centered @ np.linalg.inv(S) * centered, axis=1)
        logdet = 0.0 if strategy == "lda" else np.linalg.slogdet(S)[1]
        expected = -0.5 * (quad + logdet) + np.log(len(X_k) / 75)
        np.testing.assert_allclose(scores[label].to_numpy(), expected, rtol=1e-8)


@pytest.mark.parametrize("strategy", ["qda", "lda", "lda_diag", "lda_schafer", "lda_pseudo"])
def test_posteriors_follow_bayes_rule(iris_split, iris_model, strategy):
    train, test = iris_split
    model = iris_model(strategy)
    X = test[FEATURES].to_numpy()

    log_post = []
    for label, est in model.stats.items():
        if strategy == "qda":
            cov = np.cov(_class_rows(train, label), rowvar=False)
        elif strategy == "lda_diag":
            cov = np.diag(est.cov.variances)
        else:
            cov = est.cov.covariance
        log_post.append(np.log(est.prior) + multivariate_normal(est.mean, cov).logpdf(X))
    log_post = np.column_stack(log_post)
    expected = np.exp(log_post - logsumexp(log_post, axis=1, keepdims=True))

    probs = predict(model, test[FEATURES], mode="prob")
    np.testing.assert_allclose(probs.to_numpy(), expected, rtol=1e-6, atol=1e-12)


def test_mixed_label_types_are_returned_unchanged():
    X = np.array([[0.0], [1.0], [5.0], [6.0]])
    model = fit(X, [1, 1, "a", "a"], strategy="lda_diag")
    labels = predict(model, [[0.5], [5.5]])
    assert labels[0] == 1 and not isinstance(labels[0], str)
    assert labels[1] == "a"
