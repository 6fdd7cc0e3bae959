from __future__ import annotations

from dataclasses import dataclass, fields, replace as _replace
from typing import Optional

from .errors import InputError

__all__ = ["FitOptions"]


@dataclass(frozen=True)
class FitOptions:
    """
    Numerical knobs for a single fit call.

    pinv_tol:   eigenvalues with |lambda| <= pinv_tol * max|lambda| are treated
                as zero by the pseudo-inverse
    prior_tol:  supplied priors must sum to one within this tolerance
    var_tol:    a feature variance <= var_tol * mean(x^2) counts as zero;
                the default sits just above eps^2
    chol_tol:   a squared Cholesky pivot <= chol_tol * max variance marks a
                full covariance as singular
    r_opt:      Tong shrinkage coefficient; None = closed-form estimate
    lambda_cor: Schafer-Strimmer correlation intensity; None = estimate
    lambda_var: Schafer-Strimmer variance intensity; None = estimate
    """
    pinv_tol: float = 1e-8
    prior_tol: float = 1e-8
    var_tol: float = 1e-30
    chol_tol: float = 1e-12
    r_opt: Optional[float] = None
    lambda_cor: Optional[float] = None
    lambda_var: Optional[float] = None

    def __post_init__(self):
        for name in ("pinv_tol", "prior_tol", "var_tol", "chol_tol"):
            if getattr(self, name) < 0:
                raise InputError(f"'{name}' must be nonnegative, got {getattr(self, name)}")
        if self.r_opt is not None and self.r_opt < 0:
            raise InputError(f"'r_opt' must be nonnegative, got {self.r_opt}")
        for name in ("lambda_cor", "lambda_var"):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise InputError(f"'{name}' must lie in [0, 1], got {value}")

    def replace(self, **overrides) -> "FitOptions":
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise InputError(f"Unknown fit option(s): {', '.join(unknown)}")
        return _replace(self, **overrides)
