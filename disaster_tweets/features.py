"""
features.py
------------
Shared bag-of-words vocabulary, count vectorization and the combined
(scalar + document-term) feature matrix.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np
from scipy import sparse
from sklearn.decomposition import TruncatedSVD
from sklearn.feature_extraction.text import CountVectorizer
from sklearn.preprocessing import MaxAbsScaler

from .errors import InputShapeError, ShapeMismatchError
from .preprocessing import SCALAR_FEATURES


# Lower-cased word tokens, single characters included
TOKEN_PATTERN = r'(?u)\b\w+\b'
TOKEN_PREFIX = 'tok_'


@dataclass(frozen=True)
class VocabularyConfig:
    """Pruning thresholds for the shared vocabulary.

    A token is kept iff it occurs at least ``min_count`` times in total and
    appears in a proportion of documents within
    ``[min_doc_proportion, max_doc_proportion]``.

    ``fit_on_test`` adds the test text (never its labels) to the corpus the
    vocabulary is counted on. This leaks test-corpus token statistics into
    the feature space; set it to False to count on training text only.
    """
    min_count: int = 10
    max_doc_proportion: float = 0.5
    min_doc_proportion: float = 0.001
    fit_on_test: bool = True


@dataclass(frozen=True)
class Vocabulary:
    tokens: Tuple[str, ...]
    term_counts: Tuple[int, ...]
    doc_counts: Tuple[int, ...]
    n_docs: int

    def __len__(self):
        return len(self.tokens)


def _count_vectorizer(vocabulary=None) -> CountVectorizer:
    return CountVectorizer(lowercase=True, token_pattern=TOKEN_PATTERN,
                           vocabulary=vocabulary)


def build_vocabulary(corpora: Iterable[Iterable[str]],
                     cfg: VocabularyConfig = VocabularyConfig()) -> Vocabulary:
    """Count and prune tokens over the union of ``corpora``.

    Tokens come back sorted, so the result does not depend on the order
    in which the corpora (or documents) are given.
    """
    texts = [text for corpus in corpora for text in corpus]
    if not texts:
        raise InputShapeError("Cannot build a vocabulary from an empty corpus")

    counter = _count_vectorizer()
    try:
        X = counter.fit_transform(texts)
    except ValueError as exc:
        raise InputShapeError(f"No tokens found in corpus: {exc}") from exc

    tokens = counter.get_feature_names_out()
    term_counts = np.asarray(X.sum(axis=0)).ravel()
    doc_counts = np.asarray((X > 0).sum(axis=0)).ravel()
    n_docs = X.shape[0]
    doc_prop = doc_counts / n_docs

    keep = ((term_counts >= cfg.min_count)
            & (doc_prop >= cfg.min_doc_proportion)
            & (doc_prop <= cfg.max_doc_proportion))
    if not keep.any():
        raise InputShapeError(
            f"Vocabulary pruning removed all {len(tokens)} tokens "
            f"(min_count={cfg.min_count}, doc proportion in "
            f"[{cfg.min_doc_proportion}, {cfg.max_doc_proportion}])")

    vocab = Vocabulary(
        tokens=tuple(tokens[keep].tolist()),
        term_counts=tuple(int(c) for c in term_counts[keep]),
        doc_counts=tuple(int(c) for c in doc_counts[keep]),
        n_docs=n_docs,
    )
    print(f"  Vocabulary: kept {len(vocab)} of {len(tokens)} tokens "
          f"from {n_docs} documents")
    return vocab


def vectorize(texts: Iterable[str], vocabulary: Vocabulary) -> sparse.csr_matrix:
    """Document-term count matrix with columns in vocabulary order."""
    vec = _count_vectorizer(vocabulary.tokens)
    return vec.fit_transform(list(texts)).tocsr()


def combine_features(scalar_frame, dtm, fill_missing: Optional[float] = 0.0):
    """Stack the scalar feature columns in front of the document-term matrix.

    Parameters
    ----------
    scalar_frame : DataFrame
        Must hold every column of ``SCALAR_FEATURES``.
    dtm : sparse matrix
        Document-term counts for the same rows, in the same order.
    fill_missing : float or None
        Replacement for NaN sentinels (empty tweets have an undefined
        ``capital_proportion``). None keeps the NaNs.

    Raises
    ------
    ShapeMismatchError
        If the two blocks do not have the same number of rows.
    """
    missing = [c for c in SCALAR_FEATURES if c not in scalar_frame.columns]
    if missing:
        raise InputShapeError(f"Scalar features missing: {missing}")

    scalar = scalar_frame.loc[:, list(SCALAR_FEATURES)].to_numpy(dtype=float)
    if scalar.shape[0] != dtm.shape[0]:
        raise ShapeMismatchError("document-term matrix",
                                 scalar.shape[0], dtm.shape[0])

    if fill_missing is not None:
        scalar = np.where(np.isnan(scalar), fill_missing, scalar)

    return sparse.hstack([sparse.csr_matrix(scalar), dtm],
                         format='csr', dtype=float)


def combined_feature_names(vocabulary: Vocabulary) -> Sequence[str]:
    return list(SCALAR_FEATURES) + [TOKEN_PREFIX + t for t in vocabulary.tokens]


class CombinedFeatureBuilder:
    """Fits the shared vocabulary once, then builds matrices per split.

    Parameters
    ----------
    vocab_config : VocabularyConfig
    fill_missing : float or None
        Passed to ``combine_features``.
    text_column : str
        Column with URL-substituted text (default: 'clean_text').
    """

    def __init__(self, vocab_config=VocabularyConfig(), fill_missing=0.0,
                 text_column='clean_text'):
        self.vocab_config = vocab_config
        self.fill_missing = fill_missing
        self.text_column = text_column
        self.vocabulary_ = None

    def fit(self, train_frame, test_frame=None):
        corpora = [train_frame[self.text_column]]
        if self.vocab_config.fit_on_test and test_frame is not None:
            corpora.append(test_frame[self.text_column])
            print("  Vocabulary counted on train + test text (no labels)")
        else:
            print("  Vocabulary counted on train text only")

        self.vocabulary_ = build_vocabulary(corpora, self.vocab_config)
        return self

    def transform(self, frame):
        if self.vocabulary_ is None:
            raise RuntimeError("Call fit() before transform().")

        dtm = vectorize(frame[self.text_column], self.vocabulary_)
        return combine_features(frame, dtm, fill_missing=self.fill_missing)

    def get_feature_names(self):
        if self.vocabulary_ is None:
            raise RuntimeError("Call fit() before get_feature_names().")
        return combined_feature_names(self.vocabulary_)


def explore_svd(X, n_components=100, random_state=0):
    """Report how much variance a truncated SVD of ``X`` retains.

    Columns are max-abs scaled first so the count-valued scalar features
    do not swamp the token columns. Returns the cumulative explained
    variance ratio per component.
    """
    n_components = max(1, min(n_components, X.shape[1] - 1))
    X_scaled = MaxAbsScaler().fit_transform(X)
    svd = TruncatedSVD(n_components=n_components, random_state=random_state)
    svd.fit(X_scaled)

    cumulative = np.cumsum(svd.explained_variance_ratio_)
    print(f"  SVD: {n_components} components explain "
          f"{cumulative[-1]:.1%} of the variance")
    for k in (10, 50, 100, 250):
        if k <= n_components:
            print(f"    first {k:>3d}: {cumulative[k - 1]:.1%}")
    return cumulative
