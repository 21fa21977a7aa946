"""
ensemble.py
------------
Fixed-weight average of model probabilities.
"""

import numpy as np

from .errors import MissingModelOutputError, ShapeMismatchError
from .models import ModelOutput, threshold_labels


# Best configuration found: naive Bayes stays in the contract but gets no weight
ENSEMBLE_WEIGHTS = {'logreg': 2.0, 'rf': 1.0, 'nb': 0.0}
ENSEMBLE_THRESHOLD = 0.5


def weighted_average(outputs, weights=None):
    """Combine positive-class probabilities as ``sum(w * p) / sum(w)``.

    Parameters
    ----------
    outputs : dict of name -> ModelOutput (or probability array)
    weights : dict of name -> float
        Every named model must be present in ``outputs``, including those
        with zero weight.

    Raises
    ------
    MissingModelOutputError
        If a weighted model has no output.
    ShapeMismatchError
        If the probability vectors differ in length.
    """
    if weights is None:
        weights = ENSEMBLE_WEIGHTS

    missing = [name for name in weights if outputs.get(name) is None]
    if missing:
        raise MissingModelOutputError(missing)

    total = sum(weights.values())
    if total <= 0:
        raise ValueError(f"Ensemble weights must sum to a positive value: {weights}")

    combined = None
    n_rows = None
    for name, weight in weights.items():
        out = outputs[name]
        proba = np.asarray(out.proba if isinstance(out, ModelOutput) else out,
                           dtype=float)
        if n_rows is None:
            n_rows = proba.shape[0]
        elif proba.shape[0] != n_rows:
            raise ShapeMismatchError(f"{name} probabilities", n_rows,
                                     proba.shape[0])
        term = weight * proba
        combined = term if combined is None else combined + term

    return combined / total


def ensemble_predict(outputs, weights=None, threshold=ENSEMBLE_THRESHOLD):
    """Weighted-average the model probabilities and threshold strictly.

    A combined score of exactly ``threshold`` is labelled 0.
    """
    combined = weighted_average(outputs, weights)
    return ModelOutput(name='ensemble', proba=combined,
                       labels=threshold_labels(combined, threshold),
                       threshold=threshold)
