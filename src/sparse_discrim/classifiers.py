import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.utils.validation import check_is_fitted

from .data import process_newdata
from .estimates import Strategy, fit
from .predict import class_array, discriminant_scores, posterior_probs


class DiscriminantClassifier(ClassifierMixin, BaseEstimator):
    """
    Gaussian discriminant classifier with a pluggable covariance strategy.

        lda              pooled covariance, true inverse
        qda              class covariances, true inverse
        lda_diag         pooled diagonal variances (DLDA)
        qda_diag         class diagonal variances (DQDA)
        lda_shrink_mean  DLDA with Tong shrunken means
        qda_shrink_mean  DQDA with Tong shrunken means
        lda_pseudo       Moore-Penrose pseudo-inverse of the pooled covariance
        lda_schafer      Schafer-Strimmer shrinkage precision

    After fit():
      model_ holds the FittedModel, classes_ the class labels in model order
    """

    def __init__(self, strategy="lda_diag", prior=None, pinv_tol=1e-8, r_opt=None,
                 lambda_cor=None, lambda_var=None):
        self.strategy = strategy
        self.prior = prior
        self.pinv_tol = pinv_tol
        self.r_opt = r_opt
        self.lambda_cor = lambda_cor
        self.lambda_var = lambda_var

    def fit(self, X, y):
        """
        X: (N, D)
        y: (N,)
        """
        self.model_ = fit(
            X, y,
            prior=self.prior,
            strategy=self.strategy,
            pinv_tol=self.pinv_tol,
            r_opt=self.r_opt,
            lambda_cor=self.lambda_cor,
            lambda_var=self.lambda_var,
        )
        self.classes_ = class_array(self.model_.classes)
        self.n_features_in_ = self.model_.n_features
        return self

    def decision_function(self, X):
        """Return: (N, K) discriminant scores"""
        check_is_fitted(self, "model_")
        return discriminant_scores(self.model_, process_newdata(self.model_, X))

    def predict_proba(self, X):
        """Return: (N, K) posterior probabilities"""
        check_is_fitted(self, "model_")
        return posterior_probs(self.model_, process_newdata(self.model_, X))

    def predict(self, X):
        return self.classes_[np.argmax(self.decision_function(X), axis=1)]


class LDA(DiscriminantClassifier):
    """Classical LDA; fails on a singular pooled covariance."""

    def __init__(self, prior=None):
        super().__init__(strategy=Strategy.LDA.value, prior=prior)


class QDA(DiscriminantClassifier):
    """Classical QDA; fails when a class covariance is singular."""

    def __init__(self, prior=None):
        super().__init__(strategy=Strategy.QDA.value, prior=prior)


class LDADiag(DiscriminantClassifier):
    """
    Diagonal LDA (Dudoit et al., 2002): features assumed independent, one
    pooled variance per feature shared by all classes.
    """

    def __init__(self, prior=None):
        super().__init__(strategy=Strategy.LDA_DIAG.value, prior=prior)


class QDADiag(DiscriminantClassifier):
    """Diagonal QDA (Dudoit et al., 2002): one variance per feature and class."""

    def __init__(self, prior=None):
        super().__init__(strategy=Strategy.QDA_DIAG.value, prior=prior)


class LDAShrinkMean(DiscriminantClassifier):
    """DLDA with the Lindley-type shrunken class means of Tong et al. (2012)."""

    def __init__(self, prior=None, r_opt=None):
        super().__init__(strategy=Strategy.LDA_SHRINK_MEAN.value, prior=prior, r_opt=r_opt)


class QDAShrinkMean(DiscriminantClassifier):
    """DQDA with the Lindley-type shrunken class means of Tong et al. (2012)."""

    def __init__(self, prior=None, r_opt=None):
        super().__init__(strategy=Strategy.QDA_SHRINK_MEAN.value, prior=prior, r_opt=r_opt)


class LDAPseudo(DiscriminantClassifier):
    """
    LDA with the Moore-Penrose pseudo-inverse of the pooled covariance:
        S^+ = V diag(1 / lambda_i) V'  over eigenvalues |lambda_i| > pinv_tol * max|lambda|
    """

    def __init__(self, prior=None, pinv_tol=1e-8):
        super().__init__(strategy=Strategy.LDA_PSEUDO.value, prior=prior, pinv_tol=pinv_tol)


class LDASchafer(DiscriminantClassifier):
    """
    LDA with the Schafer-Strimmer (2005) shrinkage precision:
        R* = (1 - lambda) R + lambda I,   v* = lambda_var median(v) + (1 - lambda_var) v
    Intensities are estimated from the data unless given.
    """

    def __init__(self, prior=None, lambda_cor=None, lambda_var=None):
        super().__init__(
            strategy=Strategy.LDA_SCHAFER.value, prior=prior, lambda_cor=lambda_cor, lambda_var=lambda_var
        )


if __name__ == "__main__":
    from sklearn.datasets import load_iris
    from sklearn.metrics import accuracy_score
    from sklearn.model_selection import train_test_split

    X, y = load_iris(return_X_y=True)
    X_train, X_test, y_train, y_test = train_test_split(
        X, y, test_size=0.5, random_state=42, stratify=y
    )

    for strategy in Strategy:
        clf = DiscriminantClassifier(strategy=strategy.value)
        clf.fit(X_train, y_train)
        acc = accuracy_score(y_test, clf.predict(X_test))
        print(f"[{strategy.value}] acc = {acc:.3f}")
