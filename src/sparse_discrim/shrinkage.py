"""
Shrinkage estimators.

Schafer-Strimmer covariance/precision:
    Schafer, J., and Strimmer, K. (2005). "A shrinkage approach to large-scale
    covariance estimation and implications for functional genomics,"
    Statist. Appl. Genet. Mol. Biol. 4, 32.

Lindley-type shrunken mean:
    Tong, T., Chen, L., and Zhao, H. (2012). "Improved Mean Estimation and Its
    Application to Diagonal Discriminant Analysis," Bioinformatics, 28(4), 531-537.
"""
import logging
from typing import NamedTuple, Optional

import numpy as np

from .covariance import check_variances
from .errors import InputError, NumericalError

logger = logging.getLogger(__name__)


class ShrinkageEstimate(NamedTuple):
    covariance: np.ndarray
    precision: np.ndarray
    log_det: float
    lambda_cor: float
    lambda_var: float


def estimate_lambda(xs: np.ndarray) -> float:
    """
    Correlation shrinkage intensity toward the identity.

    xs: (n, p) standardized data (centered, unit unbiased variance)
    """
    n, p = xs.shape
    if p == 1:
        return 1.0

    q1_sq = (xs.T @ xs / n) ** 2
    q2 = (xs ** 2).T @ (xs ** 2) / n - q1_sq
    off = ~np.eye(p, dtype=bool)

    denominator = q1_sq[off].sum()
    if denominator == 0:
        return 1.0
    lam = q2[off].sum() / denominator / (n - 1)
    return float(np.clip(lam, 0.0, 1.0))


def estimate_lambda_var(xc: np.ndarray) -> float:
    """
    Variance shrinkage intensity toward the median variance.

    xc: (n, p) centered data
    """
    n, p = xc.shape
    if p == 1:
        return 1.0

    zz = xc ** 2
    q1 = zz.mean(axis=0)
    q2 = (zz ** 2).mean(axis=0) - q1 ** 2
    h1 = n / (n - 1)
    target = np.median(q1 * h1)

    denominator = ((q1 - target / h1) ** 2).sum()
    if denominator == 0:
        return 1.0
    lam = q2.sum() / denominator / (n - 1)
    return float(np.clip(lam, 0.0, 1.0))


def _correlation_inverse(xs, lam):
    """
    Inverse and log determinant of R* = (1 - lam) R + lam I from the SVD of xs.

    With xs = U D V', R* has eigenvalues lam + (1 - lam) d^2 / (n - 1) on the
    span of V and lam on its complement, so no matrix is inverted.
    """
    n, p = xs.shape
    if lam == 1.0:
        return np.eye(p), 0.0

    _, d, Vt = np.linalg.svd(xs, full_matrices=False)
    keep = d > max(n, p) * d.max() * np.finfo(float).eps
    d, V = d[keep], Vt[keep].T
    rank = d.size
    if lam == 0.0 and rank < p:
        raise NumericalError(
            f"Correlation matrix has rank {rank} < {p} and no shrinkage was applied"
        )

    eig = lam + (1.0 - lam) * d ** 2 / (n - 1)
    inv = (V / eig) @ V.T
    log_det = float(np.log(eig).sum())
    if lam > 0.0:
        inv += (np.eye(p) - V @ V.T) / lam
        log_det += (p - rank) * np.log(lam)
    return 0.5 * (inv + inv.T), log_det


def shrink_estimate(x, lambda_cor: Optional[float] = None, lambda_var: Optional[float] = None,
                    var_tol: float = 0.0):
    """
    Schafer-Strimmer shrinkage covariance together with its precision.

    The precision is computed analytically from the shrinkage intensities and
    the SVD of the standardized data; the shrunk covariance is never inverted.
    x: (n, p), rows are observations
    """
    x = np.asarray(x, dtype=np.float64)
    n, p = x.shape
    if n < 2:
        raise InputError("Shrinkage estimation needs at least 2 observations")

    xc = x - x.mean(axis=0)
    v = (xc ** 2).sum(axis=0) / (n - 1)
    check_variances(v, x, var_tol)
    xs = xc / np.sqrt(v)

    lam = estimate_lambda(xs) if lambda_cor is None else float(lambda_cor)
    lam_var = estimate_lambda_var(xc) if lambda_var is None else float(lambda_var)
    logger.debug(f"Schafer-Strimmer intensities: lambda={lam:.4g}, lambda_var={lam_var:.4g}")

    v_star = lam_var * np.median(v) + (1.0 - lam_var) * v
    sd_star = np.sqrt(v_star)

    R_star = (1.0 - lam) * (xs.T @ xs / (n - 1))
    np.fill_diagonal(R_star, 1.0)
    covariance = R_star * np.outer(sd_star, sd_star)

    inv_R, log_det_R = _correlation_inverse(xs, lam)
    precision = inv_R / np.outer(sd_star, sd_star)
    log_det = float(np.log(v_star).sum() + log_det_R)

    return ShrinkageEstimate(covariance, precision, log_det, lam, lam_var)


def cov_shrink(x, lambda_cor=None, lambda_var=None):
    """Schafer-Strimmer shrinkage covariance, (p, p)."""
    return shrink_estimate(x, lambda_cor, lambda_var).covariance


def invcov_shrink(x, lambda_cor=None, lambda_var=None):
    """Schafer-Strimmer shrinkage precision, (p, p), computed without inversion."""
    return shrink_estimate(x, lambda_cor, lambda_var).precision


def tong_optimal_r(n: int, p: int) -> float:
    """
    Closed-form shrinkage coefficient r = (n - 1)(p - 2) / (n (n - 3)).

    Clamped below at 0 and defined as 0 for n <= 3, so that
    0 <= r <= 3 (p - 2) / n.
    """
    if n <= 3:
        return 0.0
    return max(0.0, (n - 1) * (p - 2) / (n * (n - 3)))


def tong_mean_shrinkage(X_k, r_opt: Optional[float] = None, var_tol: float = 0.0,
                       variances: Optional[np.ndarray] = None):
    """
    Lindley-type shrunken mean of one class.

    xbar_s = m + max(0, 1 - r / D) (xbar - m), with m the grand mean of the
    feature means and D = sum_j (xbar_j - m)^2 / s_j^2.
    X_k: (n, p)
    r_opt: used as-is when given; otherwise tong_optimal_r(n, p)
    variances: (p,) s_j^2 to use in D, e.g. pooled variances; None = the
               unbiased variances of X_k
    Return: (p,)
    """
    n, p = X_k.shape
    if r_opt is None:
        r_opt = tong_optimal_r(n, p)
    elif r_opt < 0:
        raise InputError(f"'r_opt' must be nonnegative, got {r_opt}")

    xbar = X_k.mean(axis=0)
    if variances is None:
        var_feature = check_variances(X_k.var(axis=0, ddof=1), X_k, var_tol)
    else:
        var_feature = np.asarray(variances, dtype=np.float64)
    grand_mean = xbar.mean()
    dev = xbar - grand_mean

    # p == 1 or identical feature means: nothing to shrink
    dispersion = np.sum(dev ** 2 / var_feature)
    if dispersion == 0:
        return xbar

    factor = max(0.0, 1.0 - r_opt / dispersion)
    return grand_mean + factor * dev
