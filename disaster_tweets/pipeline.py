"""
pipeline.py
------------
End-to-end run: features -> shared vocabulary -> combined matrices ->
per-model predictions -> weighted ensemble -> submission files.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from .ensemble import ENSEMBLE_WEIGHTS, ensemble_predict
from .errors import ShapeMismatchError
from .features import CombinedFeatureBuilder, VocabularyConfig, explore_svd
from .models import LogisticConfig, get_trainers
from .preprocessing import TweetFeatureExtractor


@dataclass(frozen=True)
class RunConfig:
    """Settings for one run. ``seed`` drives every random component."""
    seed: int = 500
    vocab: VocabularyConfig = field(default_factory=VocabularyConfig)
    logistic: LogisticConfig = field(default_factory=LogisticConfig)
    include_svm: bool = False
    svd_components: Optional[int] = None
    fill_missing: Optional[float] = 0.0


@dataclass
class RunResult:
    outputs: dict
    ensemble: object
    feature_names: list
    trainers: dict


def _banner(title):
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70)


def build_feature_matrices(train, test, cfg=RunConfig(), polarity=None):
    """Return ``(X_train, X_test, builder)`` for the two tweet frames."""
    _banner("1. SCALAR FEATURES")
    extractor = TweetFeatureExtractor(polarity=polarity)
    train_feat = extractor.transform(train)
    test_feat = extractor.transform(test)
    for name, df in [("Train", train_feat), ("Test", test_feat)]:
        n_empty = int(df['capital_proportion'].isna().sum())
        print(f"  {name}: {len(df)} tweets, {int(df['url_count'].sum())} URLs, "
              f"{n_empty} empty")

    _banner("2. VOCABULARY + DOCUMENT-TERM MATRIX")
    builder = CombinedFeatureBuilder(cfg.vocab, fill_missing=cfg.fill_missing)
    builder.fit(train_feat, test_feat)
    X_train = builder.transform(train_feat)
    X_test = builder.transform(test_feat)

    for name, X, df in [("Train", X_train, train), ("Test", X_test, test)]:
        if X.shape[0] != len(df):
            raise ShapeMismatchError(f"{name} combined matrix", len(df), X.shape[0])
        print(f"  {name}: {X.shape[0]} x {X.shape[1]} "
              f"({X.nnz} non-zero entries)")

    return X_train, X_test, builder


def train_models(X_train, y_train, X_test, trainers, feature_names=None):
    """Fit each trainer and score the test split. Returns name -> ModelOutput."""
    _banner("3. MODELS")
    outputs = {}
    for name, trainer in trainers.items():
        print(f"\n  {name}")
        print(f"  {'─' * 55}")
        trainer.fit(X_train, y_train)
        out = trainer.evaluate(X_test)
        outputs[name] = out
        print(f"  threshold: {out.threshold:.2f}  "
              f"predicted positive: {out.labels.mean():.1%}")

        if feature_names is not None and hasattr(trainer, 'feature_importances'):
            print("  Top features:")
            for feat, imp in trainer.feature_importances(feature_names).items():
                print(f"    {feat:<30s} {imp:.4f}")
    return outputs


def submission_frame(ids, labels):
    return pd.DataFrame({'id': np.asarray(ids), 'target': np.asarray(labels, dtype=int)})


def write_submissions(ids, outputs, out_dir):
    """Write one ``submission_<model>.csv`` (id,target) per output."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    paths = {}
    ids = np.asarray(ids)
    for name, out in outputs.items():
        if len(out.labels) != len(ids):
            raise ShapeMismatchError(f"{name} predictions", len(ids),
                                     len(out.labels))
        path = out_dir / f"submission_{name}.csv"
        submission_frame(ids, out.labels).to_csv(path, index=False)
        paths[name] = path
        print(f"  {name:<10s} → {path}")
    return paths


def run(train, test, cfg=RunConfig(), out_dir=None, polarity=None,
        weights=None):
    """Run the full pipeline on loaded train/test frames.

    Parameters
    ----------
    train : DataFrame with id, text, target
    test : DataFrame with id, text
    cfg : RunConfig
    out_dir : str or Path or None
        Where to write submissions; nothing is written when None.
    polarity : callable or None
        Sentence polarity function (default: VADER).
    weights : dict or None
        Ensemble weights (default: ``ENSEMBLE_WEIGHTS``).

    Returns
    -------
    RunResult
    """
    X_train, X_test, builder = build_feature_matrices(train, test, cfg,
                                                      polarity=polarity)
    feature_names = builder.get_feature_names()

    if cfg.svd_components:
        _banner("2b. DIMENSIONALITY REDUCTION (exploratory)")
        explore_svd(X_train, cfg.svd_components, random_state=cfg.seed)

    trainers = get_trainers(cfg.seed, include_svm=cfg.include_svm,
                            logistic_config=cfg.logistic)
    outputs = train_models(X_train, train['target'].to_numpy(), X_test,
                           trainers, feature_names)

    _banner("4. ENSEMBLE")
    if weights is None:
        weights = ENSEMBLE_WEIGHTS
    print("  " + " + ".join(f"{w:g}×{n}" for n, w in weights.items()))
    combined = ensemble_predict(outputs, weights)
    print(f"  predicted positive: {combined.labels.mean():.1%}")

    if out_dir is not None:
        _banner("5. SUBMISSIONS")
        write_submissions(test['id'], {**outputs, 'ensemble': combined}, out_dir)

    return RunResult(outputs=outputs, ensemble=combined,
                     feature_names=feature_names, trainers=trainers)
