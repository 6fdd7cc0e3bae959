"""
Per-class statistics and the fitted model.

One generic estimator serves every classifier variant; the Strategy chosen at
fit time decides how class means and covariances are estimated and which
CovarianceRepresentation the scorer sees.
"""
from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

import numpy as np

from .config import FitOptions
from .covariance import center_by_class, check_variances, cov_class, cov_pool, pseudo_inverse, var_class, var_pool
from .data import formula_to_inputs, normalize_inputs
from .errors import InputError
from .representation import CovarianceRepresentation, DiagonalVector, FullMatrix, PseudoInverse, ShrinkagePrecision
from .shrinkage import shrink_estimate, tong_mean_shrinkage

logger = logging.getLogger(__name__)

__all__ = ["Strategy", "ClassStatistics", "FittedModel", "fit", "fit_formula"]


class Strategy(str, Enum):
    LDA = "lda"
    QDA = "qda"
    LDA_DIAG = "lda_diag"
    QDA_DIAG = "qda_diag"
    LDA_SHRINK_MEAN = "lda_shrink_mean"
    QDA_SHRINK_MEAN = "qda_shrink_mean"
    LDA_PSEUDO = "lda_pseudo"
    LDA_SCHAFER = "lda_schafer"

    @property
    def shared(self) -> bool:
        """True when all classes share one covariance."""
        return self.value.startswith("lda")

    @property
    def shrink_mean(self) -> bool:
        return self.value.endswith("shrink_mean")

    @classmethod
    def resolve(cls, strategy) -> "Strategy":
        try:
            return cls(strategy)
        except ValueError:
            choices = ", ".join(s.value for s in cls)
            raise InputError(f"Unknown strategy '{strategy}'; expected one of: {choices}") from None


@dataclass(frozen=True, eq=False)
class ClassStatistics:
    label: Any
    mean: np.ndarray
    n: int
    prior: float
    cov: CovarianceRepresentation


@dataclass(frozen=True, eq=False)
class FittedModel:
    strategy: Strategy
    classes: tuple
    stats: Mapping[Any, ClassStatistics]
    n_features: int
    n_obs: int
    options: FitOptions
    feature_names: Optional[tuple] = None
    design_info: Any = None

    @property
    def num_classes(self) -> int:
        return len(self.classes)

    @property
    def shared_covariance(self) -> bool:
        return self.strategy.shared

    @property
    def priors(self) -> np.ndarray:
        return np.array([s.prior for s in self.stats.values()])

    def __repr__(self):
        return (
            f"FittedModel(strategy='{self.strategy.value}', "
            f"covariance='{next(iter(self.stats.values())).cov.kind}', classes={list(self.classes)}, "
            f"n_features={self.n_features}, n_obs={self.n_obs})"
        )


def _check_prior(prior, K, tol):
    prior = np.asarray(prior, dtype=np.float64).ravel()
    if prior.size != K:
        raise InputError(
            f"The number of 'prior' probabilities ({prior.size}) must match the number of classes ({K})"
        )
    if np.isnan(prior).any() or (prior < 0).any():
        raise InputError("The 'prior' probabilities must be nonnegative")
    if abs(prior.sum() - 1.0) > tol:
        raise InputError(f"The 'prior' probabilities must sum to one, got {prior.sum()}")
    return prior


# Covariance builders, one per strategy: (X, codes, K, options, feature_names, classes)
# -> list of K representations (the same object repeated when shared)

def _pooled_full(X, codes, K, options, feature_names, classes):
    return [FullMatrix(cov_pool(X, codes, K), singular_tol=options.chol_tol)] * K


def _class_full(X, codes, K, options, feature_names, classes):
    return [FullMatrix(cov_class(X[codes == k]), singular_tol=options.chol_tol) for k in range(K)]


def _pooled_diag(X, codes, K, options, feature_names, classes):
    var = check_variances(var_pool(X, codes, K), X, options.var_tol, feature_names)
    return [DiagonalVector(var)] * K


def _class_diag(X, codes, K, options, feature_names, classes):
    reps = []
    for k in range(K):
        X_k = X[codes == k]
        var = check_variances(var_class(X_k), X_k, options.var_tol, feature_names, classes[k])
        reps.append(DiagonalVector(var))
    return reps


def _pooled_pseudo(X, codes, K, options, feature_names, classes):
    S = cov_pool(X, codes, K)
    P, eigvals, eigvecs = pseudo_inverse(S, tol=options.pinv_tol)
    return [PseudoInverse(S, P, eigvals, eigvecs)] * K


def _pooled_schafer(X, codes, K, options, feature_names, classes):
    est = shrink_estimate(
        center_by_class(X, codes, K),
        lambda_cor=options.lambda_cor,
        lambda_var=options.lambda_var,
        var_tol=options.var_tol,
    )
    return [ShrinkagePrecision(est.covariance, est.precision, est.log_det, est.lambda_cor, est.lambda_var)] * K


_COVARIANCE_BUILDERS: Mapping[Strategy, Callable] = {
    Strategy.LDA: _pooled_full,
    Strategy.QDA: _class_full,
    Strategy.LDA_DIAG: _pooled_diag,
    Strategy.QDA_DIAG: _class_diag,
    Strategy.LDA_SHRINK_MEAN: _pooled_diag,
    Strategy.QDA_SHRINK_MEAN: _class_diag,
    Strategy.LDA_PSEUDO: _pooled_pseudo,
    Strategy.LDA_SCHAFER: _pooled_schafer,
}


def fit(x, y, prior=None, strategy="lda_diag", options: Optional[FitOptions] = None, **overrides) -> FittedModel:
    """
    Fit a Gaussian discriminant model.

    x: (n, p) features (ndarray, DataFrame, list or tensor)
    y: (n,) class labels
    prior: class prior probabilities in class order; None = sample proportions
    strategy: a Strategy or its string value
    options: FitOptions; keyword overrides (e.g. pinv_tol=1e-6) are applied on top
    """
    strategy = Strategy.resolve(strategy)
    options = options if options is not None else FitOptions()
    if overrides:
        options = options.replace(**overrides)

    X, labels, feature_names = normalize_inputs(x, y)
    classes = tuple(labels.categories.tolist())
    codes = labels.codes.astype(np.intp)
    K = len(classes)
    N, p = X.shape

    counts = np.bincount(codes, minlength=K)
    if prior is None:
        priors = counts / N
    else:
        priors = _check_prior(prior, K, options.prior_tol)

    covs = _COVARIANCE_BUILDERS[strategy](X, codes, K, options, feature_names, classes)

    stats = {}
    for k, label in enumerate(classes):
        X_k = X[codes == k]
        if strategy.shrink_mean:
            # pooled strategies measure dispersion against the pooled variances
            variances = covs[k].variances if strategy.shared else None
            mean = tong_mean_shrinkage(X_k, r_opt=options.r_opt, var_tol=options.var_tol, variances=variances)
        else:
            mean = X_k.mean(axis=0)
        mean = np.array(mean, dtype=np.float64)
        mean.flags.writeable = False
        stats[label] = ClassStatistics(label, mean, int(counts[k]), float(priors[k]), covs[k])

    logger.info(f"Fitted '{strategy.value}': n={N}, p={p}, classes={K}")
    return FittedModel(
        strategy=strategy,
        classes=classes,
        stats=MappingProxyType(stats),
        n_features=p,
        n_obs=N,
        options=options,
        feature_names=feature_names,
    )


def fit_formula(formula: str, data, prior=None, strategy="lda_diag", options: Optional[FitOptions] = None,
                **overrides) -> FittedModel:
    """
    Fit from a formula such as "species ~ ." over a DataFrame.

    The model keeps the formula's design info so that prediction on a
    DataFrame rebuilds the same columns.
    """
    X, y, design_info = formula_to_inputs(formula, data)
    model = fit(X, y, prior=prior, strategy=strategy, options=options, **overrides)
    return dataclasses.replace(model, design_info=design_info)
