"""
Covariance representations consumed by the scorer.

Every representation answers the same questions about a class covariance:
the quadratic form v' M v of centered rows against its (pseudo-)inverse, the
log (pseudo-)determinant, and the multivariate-normal log density.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np
import scipy.linalg

from .errors import NumericalError

__all__ = [
    "CovarianceRepresentation",
    "FullMatrix",
    "DiagonalVector",
    "ShrinkagePrecision",
    "PseudoInverse",
]

LOG_2PI = np.log(2.0 * np.pi)


def _readonly(a: np.ndarray) -> np.ndarray:
    a = np.array(a, dtype=np.float64)
    a.flags.writeable = False
    return a


def _quadform(centered: np.ndarray, M: np.ndarray) -> np.ndarray:
    return np.einsum("ij,jk,ik->i", centered, M, centered)


class CovarianceRepresentation(ABC):
    kind: str = ""

    @property
    @abstractmethod
    def n_features(self) -> int:
        ...

    @property
    @abstractmethod
    def log_det(self) -> float:
        ...

    @property
    def rank(self) -> int:
        return self.n_features

    @abstractmethod
    def quadform(self, centered: np.ndarray) -> np.ndarray:
        """
        centered: (m, p) observations minus the class mean
        Return: (m,) quadratic forms against the precision
        """

    def log_density(self, centered: np.ndarray) -> np.ndarray:
        """Multivariate-normal log density of each centered row, (m,)."""
        return -0.5 * (self.rank * LOG_2PI + self.log_det + self.quadform(centered))


@dataclass(frozen=True, eq=False)
class FullMatrix(CovarianceRepresentation):
    """
    Explicit covariance with a Cholesky factor; requires a true inverse.

    singular_tol: a squared Cholesky pivot <= singular_tol * max variance
                  marks the matrix as numerically singular
    """
    covariance: np.ndarray
    singular_tol: float = 1e-12
    _factor: tuple = field(init=False, repr=False)

    kind = "full"

    def __post_init__(self):
        cov = _readonly(self.covariance)
        try:
            c, lower = scipy.linalg.cho_factor(cov, lower=True)
        except np.linalg.LinAlgError as err:
            raise NumericalError(
                "Covariance matrix is not positive definite; "
                "use the 'lda_pseudo' or 'lda_schafer' strategy instead"
            ) from err

        pivots = np.diag(c) ** 2
        if pivots.min() <= self.singular_tol * np.max(np.diag(cov)):
            raise NumericalError(
                "Covariance matrix is numerically singular; "
                "use the 'lda_pseudo' or 'lda_schafer' strategy instead"
            )
        object.__setattr__(self, "covariance", cov)
        object.__setattr__(self, "_factor", (c, lower))

    @property
    def n_features(self) -> int:
        return self.covariance.shape[0]

    @property
    def log_det(self) -> float:
        return float(2.0 * np.log(np.diag(self._factor[0])).sum())

    def quadform(self, centered):
        solved = scipy.linalg.cho_solve(self._factor, centered.T)
        return np.einsum("ij,ji->i", centered, solved)


@dataclass(frozen=True, eq=False)
class DiagonalVector(CovarianceRepresentation):
    """Per-feature variances; off-diagonal covariances are taken as zero."""
    variances: np.ndarray

    kind = "diagonal"

    def __post_init__(self):
        object.__setattr__(self, "variances", _readonly(self.variances))

    @property
    def n_features(self) -> int:
        return self.variances.shape[0]

    @property
    def log_det(self) -> float:
        return float(np.log(self.variances).sum())

    def quadform(self, centered):
        return (centered ** 2 / self.variances).sum(axis=1)


@dataclass(frozen=True, eq=False)
class ShrinkagePrecision(CovarianceRepresentation):
    """
    Schafer-Strimmer shrunk covariance and its analytic precision.

    Scoring only ever touches `precision`; `covariance` is kept for inspection.
    """
    covariance: np.ndarray
    precision: np.ndarray
    shrunk_log_det: float
    lambda_cor: float
    lambda_var: float

    kind = "shrinkage"

    def __post_init__(self):
        object.__setattr__(self, "covariance", _readonly(self.covariance))
        object.__setattr__(self, "precision", _readonly(self.precision))

    @property
    def n_features(self) -> int:
        return self.precision.shape[0]

    @property
    def log_det(self) -> float:
        return self.shrunk_log_det

    def quadform(self, centered):
        return _quadform(centered, self.precision)


@dataclass(frozen=True, eq=False)
class PseudoInverse(CovarianceRepresentation):
    """
    Moore-Penrose pseudo-inverse of a possibly singular covariance.

    The density is the degenerate Gaussian on the span of the retained
    eigenvectors, so `log_det` is the log pseudo-determinant.
    """
    covariance: np.ndarray
    precision: np.ndarray
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray

    kind = "pseudo"

    def __post_init__(self):
        for name in ("covariance", "precision", "eigenvalues", "eigenvectors"):
            object.__setattr__(self, name, _readonly(getattr(self, name)))

    @property
    def n_features(self) -> int:
        return self.precision.shape[0]

    @property
    def rank(self) -> int:
        return int(self.eigenvalues.size)

    @property
    def log_det(self) -> float:
        return float(np.log(np.abs(self.eigenvalues)).sum())

    def quadform(self, centered):
        return _quadform(centered, self.precision)
