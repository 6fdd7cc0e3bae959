import logging
import re

import numpy as np
import pandas as pd
import patsy
import torch

from .errors import InputError

logger = logging.getLogger(__name__)

# bare "." on the right-hand side of a formula, i.e. "all other columns"
_DOT = re.compile(r"(?<![\w.])\.(?![\w.])")
_KEEP_NA = patsy.NAAction(NA_types=[])


def to_feature_matrix(x):
    """
    Coerce x into a float feature matrix.

    x: ndarray, nested list, pandas DataFrame/Series or torch tensor.
       A 1-D input is treated as a single feature column.
    Return: X (n, p) float64, feature_names (tuple of str or None)
    """
    feature_names = None
    if isinstance(x, torch.Tensor):
        x = x.detach().cpu().numpy()
    if isinstance(x, pd.Series):
        x = x.to_frame()
    if isinstance(x, pd.DataFrame):
        feature_names = tuple(str(c) for c in x.columns)
        try:
            X = x.to_numpy(dtype=np.float64, na_value=np.nan)
        except (TypeError, ValueError) as err:
            raise InputError(f"Features must be numeric: {err}") from err
    else:
        try:
            X = np.asarray(x, dtype=np.float64)
        except (TypeError, ValueError) as err:
            raise InputError(f"Features must be numeric: {err}") from err

    if X.ndim == 1:
        X = X[:, None]
    if X.ndim != 2:
        raise InputError(f"Features must be a 2-D matrix, got {X.ndim} dimensions")
    if X.shape[1] == 0:
        raise InputError("The feature matrix has no columns")
    return X, feature_names


def to_labels(y):
    """
    Coerce y into a categorical label vector.

    Classes keep the category order of a pandas Categorical (unused categories
    dropped); any other input orders classes by first appearance.
    """
    if isinstance(y, torch.Tensor):
        y = y.detach().cpu().numpy()
    if isinstance(y, pd.DataFrame):
        if y.shape[1] != 1:
            raise InputError(f"Labels must be a single column, got {y.shape[1]}")
        y = y.iloc[:, 0]
    if isinstance(y, pd.Series):
        if isinstance(y.dtype, pd.CategoricalDtype):
            y = y.array
        else:
            y = y.reset_index(drop=True)
    if isinstance(y, pd.Categorical):
        return y.remove_unused_categories()

    if not isinstance(y, pd.Series):
        arr = np.asarray(y)
        if arr.ndim == 2 and arr.shape[1] == 1:
            arr = arr[:, 0]
        if arr.ndim != 1:
            raise InputError(f"Labels must be a vector, got shape {arr.shape}")
        y = pd.Series(arr)

    categories = pd.unique(y[y.notna()])
    return pd.Categorical(y, categories=categories)


def normalize_inputs(x, y):
    """
    Build a complete-case (FeatureMatrix, LabelVector) pair.

    Rows with a missing feature or a missing label are dropped from both sides.
    Return: X (n, p) read-only, labels (pandas Categorical), feature_names
    """
    X, feature_names = to_feature_matrix(x)
    labels = to_labels(y)
    if X.shape[0] != len(labels):
        raise InputError(
            f"The number of rows in x ({X.shape[0]}) must match the length of y ({len(labels)})"
        )

    complete = ~np.isnan(X).any(axis=1) & ~np.asarray(pd.isna(labels))
    if not complete.all():
        logger.debug(f"Dropping {int((~complete).sum())} incomplete observations")
    X = np.ascontiguousarray(X[complete])
    labels = labels[complete].remove_unused_categories()

    if X.shape[0] == 0:
        raise InputError("No complete observations remain after removing missing values")

    counts = np.bincount(labels.codes, minlength=len(labels.categories))
    too_small = [str(c) for c, n in zip(labels.categories, counts) if n < 2]
    if too_small:
        raise InputError(
            f"There must be at least 2 observations in each class; too few in: {', '.join(too_small)}"
        )

    X.flags.writeable = False
    return X, labels, feature_names


def formula_to_inputs(formula: str, data: pd.DataFrame):
    """
    Translate "response ~ terms" into a design matrix and a label column.

    "." on the right-hand side stands for every column except the response.
    The intercept is always removed. Missing values are passed through so that
    normalize_inputs drops them from both sides.
    Return: X (DataFrame), y (Series), patsy design info
    """
    if not isinstance(data, pd.DataFrame):
        data = pd.DataFrame(data)
    if "~" not in formula:
        raise InputError(f"Formula must have the form 'response ~ terms', got '{formula}'")

    lhs, rhs = (part.strip() for part in formula.split("~", 1))
    if lhs not in data.columns:
        raise InputError(f"Response '{lhs}' is not a column of data")

    if _DOT.search(rhs):
        others = [c for c in data.columns if c != lhs]
        if not others:
            raise InputError("Formula has no predictors")
        terms = " + ".join(c if str(c).isidentifier() else f"Q({str(c)!r})" for c in others)
        rhs = _DOT.sub(lambda _: terms, rhs)

    try:
        X = patsy.dmatrix(f"{rhs} - 1", data, NA_action=_KEEP_NA, return_type="dataframe")
    except patsy.PatsyError as err:
        raise InputError(f"Could not build a design matrix from '{formula}': {err}") from err

    return X, data[lhs], X.design_info


def process_newdata(model, newdata):
    """
    Turn new observations into an (m, p) matrix matching the fitted model.

    DataFrames are routed through the model's formula (if any) or matched to
    its feature names; a 1-D vector of length p is one observation.
    """
    one_row = getattr(newdata, "ndim", None) == 1 or (
        isinstance(newdata, (list, tuple)) and np.ndim(newdata) == 1
    )

    if isinstance(newdata, pd.DataFrame):
        if model.design_info is not None:
            try:
                (newdata,) = patsy.build_design_matrices(
                    [model.design_info], newdata, NA_action=_KEEP_NA, return_type="dataframe"
                )
            except patsy.PatsyError as err:
                raise InputError(f"Could not build the design matrix for new data: {err}") from err
        elif model.feature_names is not None:
            renamed = newdata.rename(columns=str)
            if set(model.feature_names) <= set(renamed.columns):
                newdata = renamed[list(model.feature_names)]

    X, _ = to_feature_matrix(newdata)
    if one_row and model.n_features > 1 and X.shape == (model.n_features, 1):
        X = X.T

    if X.shape[1] != model.n_features:
        raise InputError(
            f"New data has {X.shape[1]} features but the model was fit with {model.n_features}"
        )
    if np.isnan(X).any():
        raise InputError("New data contains missing values")
    return X
