"""Regularized Gaussian discriminant analysis for small-n, large-p data."""

from .classifiers import (
    LDA,
    QDA,
    DiscriminantClassifier,
    LDADiag,
    LDAPseudo,
    LDASchafer,
    LDAShrinkMean,
    QDADiag,
    QDAShrinkMean,
)
from .config import FitOptions
from .errors import DiscrimError, InputError, NumericalError
from .estimates import ClassStatistics, FittedModel, Strategy, fit, fit_formula
from .predict import discriminant_scores, posterior_probs, predict, score_to_class

__all__ = [
    "ClassStatistics",
    "DiscrimError",
    "DiscriminantClassifier",
    "FitOptions",
    "FittedModel",
    "InputError",
    "LDA",
    "LDADiag",
    "LDAPseudo",
    "LDASchafer",
    "LDAShrinkMean",
    "NumericalError",
    "QDA",
    "QDADiag",
    "QDAShrinkMean",
    "Strategy",
    "discriminant_scores",
    "fit",
    "fit_formula",
    "posterior_probs",
    "predict",
    "score_to_class",
]
