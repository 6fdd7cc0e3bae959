import logging

import numpy as np

from .errors import NumericalError

logger = logging.getLogger(__name__)


def class_means(X, codes, K):
    """
    X: (N, p)
    codes: (N,) class index in [0, K)
    Return: (K, p) sample mean of each class
    """
    return np.stack([X[codes == k].mean(axis=0) for k in range(K)])


def center_by_class(X, codes, K):
    """
    Subtract each class mean from the rows of that class.
    Return: (N, p) within-class residuals
    """
    return X - class_means(X, codes, K)[codes]


def cov_class(X_k):
    """
    X_k: (n_k, p) rows of one class
    Return: (p, p) unbiased sample covariance
    """
    return np.atleast_2d(np.cov(X_k, rowvar=False, ddof=1))


def cov_pool(X, codes, K):
    """
    Pooled sample covariance of the within-class residuals, df = N - K.
    Return: (p, p)
    """
    R = center_by_class(X, codes, K)
    return R.T @ R / (X.shape[0] - K)


def var_class(X_k):
    """
    X_k: (n_k, p)
    Return: (p,) maximum likelihood variances (divide by n_k)
    """
    return X_k.var(axis=0)


def var_pool(X, codes, K):
    """
    Pooled per-feature variance of the within-class residuals, df = N - K.
    Return: (p,)
    """
    R = center_by_class(X, codes, K)
    return (R ** 2).sum(axis=0) / (X.shape[0] - K)


def check_variances(var, X, var_tol, feature_names=None, where=""):
    """
    Raise NumericalError when a feature has (numerically) zero variance.

    var must come from centered residuals. It counts as zero when
    var <= var_tol * mean(x^2) over the rows of X, i.e. below the floating-point
    resolution of the column (var_tol near eps^2).
    """
    scale = np.mean(X ** 2, axis=0)
    zero = np.flatnonzero(var <= var_tol * scale)
    if zero.size:
        names = [feature_names[j] if feature_names else f"x{j + 1}" for j in zero]
        suffix = f" in class {where}" if where else ""
        raise NumericalError(f"Zero variance for feature(s) {', '.join(names)}{suffix}")
    return var


def pseudo_inverse(S, tol=1e-8):
    """
    Moore-Penrose pseudo-inverse of a symmetric matrix.

    Eigenvalues with |lambda| <= tol * max|lambda| are treated as zero; only the
    retained eigenvalues are inverted. For a full-rank S this is S^{-1}.
    S: (p, p)
    Return: P (p, p), retained eigenvalues (r,), retained eigenvectors (p, r)
    """
    eigvals, eigvecs = np.linalg.eigh(S)
    largest = np.max(np.abs(eigvals))
    keep = np.abs(eigvals) > tol * largest
    if not keep.any():
        raise NumericalError("Covariance matrix is zero; the pseudo-inverse has rank 0")

    eigvals = eigvals[keep]
    eigvecs = eigvecs[:, keep]
    P = (eigvecs / eigvals) @ eigvecs.T
    P = 0.5 * (P + P.T)
    logger.debug(f"Pseudo-inverse retained {eigvals.size} of {S.shape[0]} eigenvalues")
    return P, eigvals, eigvecs
