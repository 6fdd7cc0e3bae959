import numpy as np
import pandas as pd
from scipy.special import logsumexp

from .data import process_newdata
from .errors import InputError

MODES = ("class", "prob", "score")


def discriminant_scores(model, X):
    """
    Discriminant score of every observation for every class.

        score_k(x) = -1/2 [ (x - xbar_k)' M_k (x - xbar_k) + logdet_k ] + log(prior_k)

    logdet_k is only included when classes have their own covariance; for a
    shared covariance it is the same for every class and dropped.
    X: (m, p)
    Return: (m, K), larger = more probable
    """
    scores = np.empty((X.shape[0], model.num_classes))
    with np.errstate(divide="ignore"):
        for k, est in enumerate(model.stats.values()):
            det_term = 0.0 if model.shared_covariance else est.cov.log_det
            scores[:, k] = -0.5 * (est.cov.quadform(X - est.mean) + det_term) + np.log(est.prior)
    return scores


def posterior_probs(model, X):
    """
    Posterior class probabilities via Bayes' rule.

    Each class contributes prior_k * N(x; xbar_k, Sigma_k), evaluated in log
    space through the class covariance representation and normalized per row.
    X: (m, p)
    Return: (m, K), rows sum to one
    """
    log_post = np.empty((X.shape[0], model.num_classes))
    with np.errstate(divide="ignore"):
        for k, est in enumerate(model.stats.values()):
            log_post[:, k] = np.log(est.prior) + est.cov.log_density(X - est.mean)
    return np.exp(log_post - logsumexp(log_post, axis=1, keepdims=True))


def class_array(classes):
    """Class labels as an ndarray; mixed label types are kept as objects."""
    values = list(classes)
    if len({type(v) for v in values}) > 1:
        labels = np.empty(len(values), dtype=object)
        labels[:] = values
        return labels
    return np.asarray(values)


def score_to_class(scores, classes):
    """
    Assign each row to the class with the largest score.
    Ties go to the first class in model order.
    """
    return class_array(classes)[np.argmax(scores, axis=1)]


def predict(model, newdata, mode="class"):
    """
    Predict new observations with a fitted model.

    mode:
        "class" -> ndarray of labels, (m,)
        "prob"  -> DataFrame of posterior probabilities, (m, K)
        "score" -> DataFrame of discriminant scores, (m, K)
    """
    if mode not in MODES:
        raise InputError(f"Unknown prediction mode '{mode}'; expected one of: {', '.join(MODES)}")

    index = newdata.index if isinstance(newdata, pd.DataFrame) else None
    X = process_newdata(model, newdata)
    columns = list(model.classes)

    if mode == "prob":
        return pd.DataFrame(posterior_probs(model, X), columns=columns, index=index)

    scores = discriminant_scores(model, X)
    if mode == "class":
        return score_to_class(scores, model.classes)
    return pd.DataFrame(scores, columns=columns, index=index)
