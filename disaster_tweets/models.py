"""
models.py
----------
Model trainers, probability-cutoff tuning and the kernel-density naive
Bayes estimator.

Every trainer honours the same contract: ``fit(X, y)`` on the combined
feature matrix and 0/1 labels, ``predict_proba(X)`` returning the
positive-class probability per row, and ``evaluate(X)`` packaging the
probabilities and thresholded labels as a ``ModelOutput``.
"""

import warnings
from dataclasses import dataclass
from typing import Tuple

import numpy as np
import pandas as pd
from scipy import sparse
from scipy.special import logsumexp
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.ensemble import RandomForestClassifier
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegressionCV
from sklearn.metrics import accuracy_score, roc_auc_score
from sklearn.model_selection import StratifiedKFold, train_test_split
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import FunctionTransformer, MaxAbsScaler, StandardScaler
from sklearn.svm import SVC

from .errors import ModelFitError


# 0.30, 0.31, ..., 0.70
DEFAULT_CUTOFFS = tuple(np.round(np.arange(30, 71) / 100, 2).tolist())

# 1e-4 .. 10; weaker penalties do not converge on the full corpus
DEFAULT_CS = tuple(np.logspace(-4, 1, 10).tolist())


@dataclass(frozen=True, eq=False)
class ModelOutput:
    name: str
    proba: np.ndarray
    labels: np.ndarray
    threshold: float


# ──────────────────────────────────────────────────────────
# Cutoff tuning
# ──────────────────────────────────────────────────────────

def threshold_labels(proba, threshold=0.5):
    """Label 1 iff the probability is strictly above ``threshold``."""
    return (np.asarray(proba, dtype=float) > threshold).astype(int)


def select_cutoff(y_true, proba, cutoffs=DEFAULT_CUTOFFS):
    """Pick the cutoff with the best accuracy on ``(y_true, proba)``.

    Ties go to the earliest cutoff in ``cutoffs``.

    Returns
    -------
    (cutoff, accuracy)
    """
    accuracies = [accuracy_score(y_true, threshold_labels(proba, c))
                  for c in cutoffs]
    best = int(np.argmax(accuracies))
    return float(cutoffs[best]), float(accuracies[best])


# ──────────────────────────────────────────────────────────
# Kernel density naive Bayes
# ──────────────────────────────────────────────────────────

def silverman_bandwidth(x):
    """Rule-of-thumb Gaussian bandwidth: 0.9 * min(sd, IQR/1.34) * n^(-1/5).

    A zero spread falls back to the standard deviation, then ``|x[0]|``,
    then 1.
    """
    x = np.asarray(x, dtype=float)
    n = x.shape[0]
    sd = float(np.std(x, ddof=1)) if n > 1 else 0.0
    q75, q25 = np.percentile(x, [75, 25])
    lo = min(sd, (q75 - q25) / 1.34)
    if not lo:
        lo = sd or abs(x[0]) or 1.0
    return 0.9 * lo * n ** -0.2


def _dense_column(X, j):
    if sparse.issparse(X):
        return X[:, [j]].toarray().ravel()
    return np.asarray(X[:, j], dtype=float)


def _has_nan(X):
    values = X.data if sparse.issparse(X) else np.asarray(X, dtype=float)
    return bool(np.isnan(values).any())


class KernelDensityNB(ClassifierMixin, BaseEstimator):
    """Naive Bayes with a Gaussian kernel density estimate per feature.

    Each class-conditional feature density is a Gaussian KDE over the
    training values of that class, with rule-of-thumb bandwidth scaled by
    ``adjust``. No smoothing is applied; densities that underflow to zero
    are replaced by ``threshold``.

    Training values are stored as (distinct value, frequency) pairs, which
    keeps bag-of-words columns (mostly 0/1/2) cheap to evaluate.

    Parameters
    ----------
    adjust : float
        Bandwidth multiplier (default: 1.0).
    threshold : float
        Replacement for zero densities (default: 0.001).
    """

    def __init__(self, adjust=1.0, threshold=0.001):
        self.adjust = adjust
        self.threshold = threshold

    def fit(self, X, y):
        if _has_nan(X):
            raise ValueError("KernelDensityNB does not accept NaN input")
        if sparse.issparse(X):
            X = X.tocsr()
        y = np.asarray(y)
        if X.shape[0] != y.shape[0]:
            raise ValueError(f"X has {X.shape[0]} rows, y has {y.shape[0]}")

        self.classes_, y_idx = np.unique(y, return_inverse=True)
        counts = np.bincount(y_idx)
        self.class_log_prior_ = np.log(counts / counts.sum())
        self.n_features_in_ = X.shape[1]

        self.kernels_ = []
        for k in range(len(self.classes_)):
            Xk = X[y_idx == k]
            if sparse.issparse(Xk):
                Xk = Xk.tocsc()
            per_feature = []
            for j in range(self.n_features_in_):
                col = _dense_column(Xk, j)
                support, freq = np.unique(col, return_counts=True)
                bandwidth = silverman_bandwidth(col) * self.adjust
                per_feature.append((support, freq / col.shape[0], bandwidth))
            self.kernels_.append(per_feature)
        return self

    def _joint_log_likelihood(self, X):
        if X.shape[1] != self.n_features_in_:
            raise ValueError(f"Expected {self.n_features_in_} features, "
                             f"got {X.shape[1]}")
        if sparse.issparse(X):
            X = X.tocsc()

        jll = np.tile(self.class_log_prior_, (X.shape[0], 1))
        norm = np.sqrt(2 * np.pi)
        for j in range(self.n_features_in_):
            values, inverse = np.unique(_dense_column(X, j), return_inverse=True)
            for k, per_feature in enumerate(self.kernels_):
                support, weights, bandwidth = per_feature[j]
                z = (values[:, None] - support[None, :]) / bandwidth
                density = np.exp(-0.5 * z ** 2) @ weights / (bandwidth * norm)
                density = np.where(density <= 0, self.threshold, density)
                jll[:, k] += np.log(density)[inverse.ravel()]
        return jll

    def predict_log_proba(self, X):
        jll = self._joint_log_likelihood(X)
        return jll - logsumexp(jll, axis=1, keepdims=True)

    def predict_proba(self, X):
        return np.exp(self.predict_log_proba(X))

    def predict(self, X):
        return self.classes_[np.argmax(self._joint_log_likelihood(X), axis=1)]


# ──────────────────────────────────────────────────────────
# Trainers
# ──────────────────────────────────────────────────────────

def _check_binary(name, X, y):
    y = np.asarray(y)
    if y.ndim != 1 or y.shape[0] != X.shape[0]:
        raise ModelFitError(
            name, f"X has {X.shape[0]} rows but y has shape {y.shape}")

    labels = set(np.unique(y).tolist())
    if labels != {0, 1}:
        raise ModelFitError(
            name, f"labels must be 0/1 with both classes present, "
                  f"got {sorted(labels, key=str)}")
    return y.astype(int)


def _positive_proba(estimator, X):
    return estimator.predict_proba(X)[:, list(estimator.classes_).index(1)]


def _to_dense(X):
    return X.toarray() if sparse.issparse(X) else np.asarray(X)


class ModelTrainer:
    """Base trainer: builds a fresh estimator, fits it, thresholds its output.

    Solver convergence warnings are treated as fitting failures.

    Parameters
    ----------
    random_state : int
    threshold : float
        Probability cutoff for the positive label (default: 0.5).
    """

    name = 'model'

    def __init__(self, random_state=0, threshold=0.5):
        self.random_state = random_state
        self.threshold = threshold
        self.model_ = None

    def build(self):
        raise NotImplementedError

    def _fit_estimator(self, X, y):
        estimator = self.build()
        with warnings.catch_warnings():
            warnings.simplefilter('error', ConvergenceWarning)
            try:
                estimator.fit(X, y)
            except (ValueError, ConvergenceWarning,
                    np.linalg.LinAlgError) as exc:
                raise ModelFitError(self.name, exc) from exc
        return estimator

    def fit(self, X, y):
        y = _check_binary(self.name, X, y)
        self.model_ = self._fit_estimator(X, y)
        return self

    def predict_proba(self, X):
        if self.model_ is None:
            raise RuntimeError(f"[{self.name}] call fit() first.")
        return _positive_proba(self.model_, X)

    def evaluate(self, X):
        """Score ``X``; scoring failures are reported under the model name."""
        try:
            proba = self.predict_proba(X)
        except ValueError as exc:
            raise ModelFitError(self.name, exc) from exc
        return ModelOutput(name=self.name, proba=proba,
                           labels=threshold_labels(proba, self.threshold),
                           threshold=self.threshold)


@dataclass(frozen=True)
class LogisticConfig:
    """L1 logistic regression settings.

    ``Cs`` is the regularisation path searched by cross-validation;
    ``holdout_size`` is the share of training rows kept aside to tune the
    probability cutoff over ``cutoffs``.
    """
    cv_folds: int = 10
    Cs: Tuple[float, ...] = DEFAULT_CS
    scoring: str = 'roc_auc'
    max_iter: int = 5000
    holdout_size: float = 0.3
    cutoffs: Tuple[float, ...] = DEFAULT_CUTOFFS


class LogisticRegressionTrainer(ModelTrainer):
    """Lasso logistic regression with k-fold AUC model selection.

    The cutoff is tuned on a stratified held-out split: a model fitted on
    the remaining rows scores the held-out rows and the most accurate
    cutoff wins. The final model is then refitted on all training rows.
    """

    name = 'logreg'

    def __init__(self, random_state=0, config=LogisticConfig()):
        super().__init__(random_state=random_state)
        self.config = config
        self.cutoff_accuracy_ = None
        self.holdout_auc_ = None

    def build(self):
        cfg = self.config
        cv = StratifiedKFold(n_splits=cfg.cv_folds, shuffle=True,
                             random_state=self.random_state)
        return make_pipeline(
            MaxAbsScaler(),
            LogisticRegressionCV(Cs=cfg.Cs, cv=cv, penalty='l1',
                                 solver='liblinear', scoring=cfg.scoring,
                                 max_iter=cfg.max_iter,
                                 random_state=self.random_state),
        )

    def tune_cutoff(self, X, y):
        """Fit on part of ``(X, y)``, tune the cutoff on the rest."""
        y = _check_binary(self.name, X, y)
        try:
            fit_idx, hold_idx = train_test_split(
                np.arange(X.shape[0]), test_size=self.config.holdout_size,
                stratify=y, random_state=self.random_state)
        except ValueError as exc:
            raise ModelFitError(self.name, exc) from exc

        tuning_model = self._fit_estimator(X[fit_idx], y[fit_idx])
        hold_proba = _positive_proba(tuning_model, X[hold_idx])

        self.threshold, self.cutoff_accuracy_ = select_cutoff(
            y[hold_idx], hold_proba, self.config.cutoffs)
        self.holdout_auc_ = roc_auc_score(y[hold_idx], hold_proba)

        print(f"  [{self.name}] held-out AUC: {self.holdout_auc_:.4f}  "
              f"cutoff: {self.threshold:.2f} "
              f"(accuracy {self.cutoff_accuracy_:.4f})")
        return self.threshold

    def fit(self, X, y):
        self.tune_cutoff(X, y)
        super().fit(X, y)
        clf = self.model_[-1]
        n_active = int(np.count_nonzero(clf.coef_))
        print(f"  [{self.name}] C={clf.C_[0]:.4g}, "
              f"{n_active}/{clf.coef_.shape[1]} non-zero coefficients")
        return self


class NaiveBayesTrainer(ModelTrainer):
    name = 'nb'

    def __init__(self, random_state=0, adjust=1.0):
        super().__init__(random_state=random_state)
        self.adjust = adjust

    def build(self):
        return KernelDensityNB(adjust=self.adjust)


class RandomForestTrainer(ModelTrainer):
    name = 'rf'

    def __init__(self, random_state=0, n_estimators=5, max_features=5):
        super().__init__(random_state=random_state)
        self.n_estimators = n_estimators
        self.max_features = max_features

    def build(self):
        return RandomForestClassifier(n_estimators=self.n_estimators,
                                      max_features=self.max_features,
                                      random_state=self.random_state)

    def feature_importances(self, feature_names, top=20):
        """Impurity-based importances, highest first (diagnostic only)."""
        if self.model_ is None:
            raise RuntimeError(f"[{self.name}] call fit() first.")
        importances = pd.Series(self.model_.feature_importances_,
                                index=list(feature_names))
        return importances.sort_values(ascending=False).head(top)


class SVMTrainer(ModelTrainer):
    """RBF support-vector machine on centred, scaled (densified) input.

    Slow on the full bag-of-words matrix; not part of the default run.
    """

    name = 'svm'

    def __init__(self, random_state=0, C=1.0, gamma='scale'):
        super().__init__(random_state=random_state)
        self.C = C
        self.gamma = gamma

    def build(self):
        return make_pipeline(
            FunctionTransformer(_to_dense),
            StandardScaler(),
            SVC(kernel='rbf', C=self.C, gamma=self.gamma, probability=True,
                random_state=self.random_state),
        )


def get_trainers(random_state=0, include_svm=False,
                 logistic_config=LogisticConfig()):
    """Return the trainers to run, keyed by model name, in run order."""
    trainers = [
        LogisticRegressionTrainer(random_state, config=logistic_config),
        NaiveBayesTrainer(random_state),
        RandomForestTrainer(random_state),
    ]
    if include_svm:
        trainers.append(SVMTrainer(random_state))
    return {t.name: t for t in trainers}
