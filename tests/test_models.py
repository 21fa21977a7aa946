import numpy as np
import pytest
from scipy import sparse

from disaster_tweets.errors import ModelFitError
from disaster_tweets.models import (DEFAULT_CS, DEFAULT_CUTOFFS, KernelDensityNB,
                                    LogisticConfig, LogisticRegressionTrainer,
                                    ModelOutput, NaiveBayesTrainer,
                                    RandomForestTrainer, SVMTrainer,
                                    get_trainers, select_cutoff,
                                    silverman_bandwidth, threshold_labels)


def _noisy_binary_data(n=120, n_features=8, seed=0):
    rng = np.random.RandomState(seed)
    y = np.arange(n) % 2
    X = rng.normal(size=(n, n_features))
    X[:, 0] += 2.5 * y
    X[:, 1] += 1.0 * y
    # flip a few labels so the classes overlap
    flip = rng.rand(n) < 0.1
    y = np.where(flip, 1 - y, y)
    return X, y


def test_default_cutoffs_sweep():
    assert DEFAULT_CUTOFFS[0] == 0.30
    assert DEFAULT_CUTOFFS[-1] == 0.70
    assert len(DEFAULT_CUTOFFS) == 41
    assert 0.5 in DEFAULT_CUTOFFS


def test_threshold_is_strict():
    assert threshold_labels([0.49, 0.5, 0.51], 0.5).tolist() == [0, 0, 1]


def test_select_cutoff_matches_brute_force():
    rng = np.random.RandomState(3)
    y = rng.randint(0, 2, size=200)
    proba = np.clip(0.5 * y + 0.5 * rng.rand(200) - 0.1, 0, 1)

    cutoff, acc = select_cutoff(y, proba)

    best_cut, best_acc = None, -1.0
    for c in DEFAULT_CUTOFFS:
        a = np.mean((proba > c).astype(int) == y)
        if a > best_acc:
            best_cut, best_acc = c, a
    assert cutoff == best_cut
    assert acc == pytest.approx(best_acc)


def test_select_cutoff_ties_pick_first():
    y = np.array([0, 1])
    proba = np.array([0.1, 0.9])
    # every cutoff in [0.30, 0.70] is perfect
    assert select_cutoff(y, proba) == (0.30, 1.0)


def test_silverman_bandwidth():
    x = np.array([1.0, 2.0, 3.0, 4.0])
    iqr = 3.25 - 1.75
    expected = 0.9 * min(np.std(x, ddof=1), iqr / 1.34) * 4 ** -0.2
    assert silverman_bandwidth(x) == pytest.approx(expected)

    # zero spread falls back to 1
    assert silverman_bandwidth(np.zeros(32)) == pytest.approx(0.9 * 32 ** -0.2)
    # zero IQR but non-zero sd falls back to the sd
    x = np.array([0.0] * 9 + [5.0])
    assert silverman_bandwidth(x) == pytest.approx(
        0.9 * np.std(x, ddof=1) * 10 ** -0.2)


def test_kernel_density_nb_probabilities():
    X, y = _noisy_binary_data()
    nb = KernelDensityNB().fit(X, y)

    proba = nb.predict_proba(X)

    assert proba.shape == (len(y), 2)
    np.testing.assert_allclose(proba.sum(axis=1), 1.0)
    assert ((proba >= 0) & (proba <= 1)).all()
    assert np.mean(nb.predict(X) == y) > 0.7


def test_kernel_density_nb_sparse_matches_dense():
    rng = np.random.RandomState(1)
    X = rng.poisson(0.4, size=(60, 6)).astype(float)
    y = np.arange(60) % 2
    X[y == 1, 0] += 1

    dense = KernelDensityNB().fit(X, y).predict_proba(X)
    sp = KernelDensityNB().fit(sparse.csr_matrix(X), y).predict_proba(
        sparse.csr_matrix(X))

    np.testing.assert_allclose(dense, sp)


def test_kernel_density_nb_rejects_nan():
    X = np.array([[0.0, np.nan], [1.0, 2.0]])
    with pytest.raises(ValueError):
        KernelDensityNB().fit(X, [0, 1])


@pytest.mark.parametrize("trainer", [NaiveBayesTrainer(), RandomForestTrainer(),
                                     LogisticRegressionTrainer()])
@pytest.mark.parametrize("y", [
    np.array([0, 1, 2, 1, 0, 1]),     # not binary
    np.array([1, 1, 1, 1, 1, 1]),     # single class
    np.array([0, 1, 0, 1]),           # wrong length
])
def test_trainers_reject_bad_labels(trainer, y):
    X = np.ones((6, 8))
    with pytest.raises(ModelFitError, match=trainer.name):
        trainer.fit(X, y)


def test_fit_error_names_the_model():
    X, y = _noisy_binary_data(n_features=8)
    X[0, 0] = np.inf
    with pytest.raises(ModelFitError) as err:
        RandomForestTrainer().fit(X, y)
    assert err.value.model_name == 'rf'


def test_evaluate_error_names_the_model():
    X, y = _noisy_binary_data(n_features=8)
    trainer = RandomForestTrainer().fit(X, y)
    with pytest.raises(ModelFitError) as err:
        trainer.evaluate(X[:, :5])
    assert err.value.model_name == 'rf'


def test_random_forest_trainer():
    X, y = _noisy_binary_data()
    trainer = RandomForestTrainer(random_state=4).fit(X, y)

    out = trainer.evaluate(X)

    assert isinstance(out, ModelOutput)
    assert out.name == 'rf'
    assert ((out.proba >= 0) & (out.proba <= 1)).all()
    np.testing.assert_array_equal(out.labels, (out.proba > 0.5).astype(int))
    assert len(trainer.model_.estimators_) == 5

    names = [f"f{i}" for i in range(X.shape[1])]
    top = trainer.feature_importances(names, top=3)
    assert len(top) == 3
    assert top.is_monotonic_decreasing


def test_random_forest_is_reproducible_with_seed():
    X, y = _noisy_binary_data()
    a = RandomForestTrainer(random_state=11).fit(X, y).predict_proba(X)
    b = RandomForestTrainer(random_state=11).fit(X, y).predict_proba(X)
    np.testing.assert_array_equal(a, b)


def test_logistic_trainer_tunes_cutoff():
    X, y = _noisy_binary_data(n=150)
    cfg = LogisticConfig(cv_folds=3, Cs=5)
    trainer = LogisticRegressionTrainer(random_state=0, config=cfg)

    trainer.fit(sparse.csr_matrix(X), y)
    out = trainer.evaluate(sparse.csr_matrix(X))

    assert 0.30 <= trainer.threshold <= 0.70
    assert trainer.threshold in cfg.cutoffs
    assert trainer.cutoff_accuracy_ > 0.6
    assert out.threshold == trainer.threshold
    np.testing.assert_array_equal(
        out.labels, (out.proba > trainer.threshold).astype(int))
    assert np.mean(out.labels == y) > 0.7


def _token_count_corpus(n=3000, vocab=400, seed=0):
    # Zipf-distributed token counts plus two length-like count columns
    rng = np.random.RandomState(seed)
    freq = 1.0 / np.arange(1, vocab + 1)
    counts = rng.multinomial(12, freq / freq.sum(), size=n)
    score = (counts[:, 5:15].sum(axis=1) - counts[:, 15:25].sum(axis=1)
             + rng.normal(scale=1.5, size=n))
    y = (score > np.median(score)).astype(int)
    lengths = np.column_stack([rng.randint(20, 140, size=n),
                               rng.poisson(3, size=n)])
    X = sparse.hstack([sparse.csr_matrix(lengths), sparse.csr_matrix(counts)])
    return X.tocsr(), y


def test_default_logistic_config_fits_a_corpus_sized_matrix():
    X, y = _token_count_corpus()
    trainer = LogisticRegressionTrainer(random_state=500)

    trainer.fit(X, y)

    assert trainer.config.Cs == DEFAULT_CS
    assert max(trainer.config.Cs) <= 10
    assert trainer.model_[-1].C_[0] <= 10
    assert trainer.holdout_auc_ > 0.6


def test_svm_trainer_outputs_probabilities():
    X, y = _noisy_binary_data(n=80)
    out = SVMTrainer(random_state=0).fit(sparse.csr_matrix(X), y).evaluate(X)

    assert out.name == 'svm'
    assert ((out.proba >= 0) & (out.proba <= 1)).all()


def test_get_trainers():
    trainers = get_trainers(random_state=9)
    assert list(trainers) == ['logreg', 'nb', 'rf']
    assert all(t.random_state == 9 for t in trainers.values())

    assert 'svm' in get_trainers(include_svm=True)


def test_predict_before_fit_raises():
    with pytest.raises(RuntimeError):
        NaiveBayesTrainer().predict_proba(np.ones((2, 2)))


def test_trainers_label_through_evaluate_only():
    for trainer in get_trainers(include_svm=True).values():
        assert hasattr(trainer, 'evaluate')
        assert not hasattr(trainer, 'predict')
