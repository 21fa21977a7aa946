"""
preprocessing.py
-----------------
Tweet loading and hand-crafted feature extraction.

Every scalar feature is a pattern count over the raw tweet, except the
sentiment score and word count, which are computed on the text after URLs
have been replaced by a placeholder token.
"""

import re
import string
from dataclasses import astuple, dataclass, fields

import nltk
import numpy as np
import pandas as pd
from nltk.sentiment.vader import SentimentIntensityAnalyzer
from nltk.tokenize.punkt import PunktSentenceTokenizer

from .errors import InputShapeError


URL_PATTERN = re.compile(r'https?://\S+|www\.\S+')
URL_TOKEN = 'URL'

HANDLE_PATTERN = re.compile(r'@\w+')
HASHTAG_PATTERN = re.compile(r'#\w+')
CAPITAL_PATTERN = re.compile(r'[A-Z]')
DIGIT_PATTERN = re.compile(r'[0-9]')
WORD_PATTERN = re.compile(r'\w+')
PUNCTUATION = frozenset(string.punctuation)


@dataclass(frozen=True)
class TweetFeatures:
    """Scalar features of one tweet.

    ``capital_proportion`` is NaN for an empty tweet (``char_count == 0``).
    """
    url_count: int
    punctuation_count: int
    handle_count: int
    hashtag_count: int
    char_count: int
    capital_count: int
    capital_proportion: float
    number_count: int
    sentiment_score: float
    word_count: int


# Column order of the scalar block in the combined feature matrix
SCALAR_FEATURES = tuple(f.name for f in fields(TweetFeatures))


# ──────────────────────────────────────────────────────────
# Sentiment
# ──────────────────────────────────────────────────────────

_sentence_tokenizer = PunktSentenceTokenizer()
_vader = None


def vader_polarity(sentence):
    """VADER compound polarity of a single sentence, in [-1, 1]."""
    global _vader
    if _vader is None:
        nltk.download('vader_lexicon', quiet=True)
        _vader = SentimentIntensityAnalyzer()
    return _vader.polarity_scores(sentence)['compound']


def split_sentences(text):
    return [s for s in _sentence_tokenizer.tokenize(text) if s.strip()]


def average_sentiment(text, polarity=vader_polarity):
    """Mean polarity over the sentences of ``text`` (0.0 if there are none)."""
    sentences = split_sentences(text)
    if not sentences:
        return 0.0
    return float(np.mean([polarity(s) for s in sentences]))


# ──────────────────────────────────────────────────────────
# Feature extraction
# ──────────────────────────────────────────────────────────

def replace_urls(text):
    """Return ``(url_count, text)`` with each URL swapped for ``URL_TOKEN``."""
    clean_text, n_urls = URL_PATTERN.subn(f' {URL_TOKEN} ', text)
    return n_urls, clean_text


def extract_tweet_features(text, polarity=vader_polarity):
    """Compute the scalar features of one tweet.

    Parameters
    ----------
    text : str
        Raw tweet. Anything else (e.g. NaN from an empty CSV cell) is
        treated as the empty string.
    polarity : callable
        Maps a sentence to a signed polarity score.

    Returns
    -------
    features : TweetFeatures
    clean_text : str
        ``text`` with URLs replaced, used for tokenization downstream.
    """
    if not isinstance(text, str):
        text = ""

    url_count, clean_text = replace_urls(text)
    char_count = len(text)
    capital_count = len(CAPITAL_PATTERN.findall(text))
    capital_proportion = (capital_count / char_count
                          if char_count else float('nan'))

    features = TweetFeatures(
        url_count=url_count,
        punctuation_count=sum(ch in PUNCTUATION for ch in text),
        handle_count=len(HANDLE_PATTERN.findall(text)),
        hashtag_count=len(HASHTAG_PATTERN.findall(text)),
        char_count=char_count,
        capital_count=capital_count,
        capital_proportion=capital_proportion,
        number_count=len(DIGIT_PATTERN.findall(text)),
        sentiment_score=average_sentiment(clean_text, polarity),
        word_count=len(WORD_PATTERN.findall(clean_text)),
    )
    return features, clean_text


class TweetFeatureExtractor:
    """Adds scalar feature columns and a ``clean_text`` column to a frame.

    Parameters
    ----------
    polarity : callable or None
        Sentence polarity function (default: VADER compound score).
    text_column : str
        Column holding the raw tweet text (default: 'text').
    """

    def __init__(self, polarity=None, text_column='text'):
        self.polarity = polarity or vader_polarity
        self.text_column = text_column

    def __call__(self, text):
        return extract_tweet_features(text, self.polarity)

    def transform(self, df):
        """Return a new frame with the feature columns; ``df`` is untouched."""
        records, cleaned = [], []
        for text in df[self.text_column]:
            features, clean_text = self(text)
            records.append(astuple(features))
            cleaned.append(clean_text)

        feature_frame = pd.DataFrame(records, columns=list(SCALAR_FEATURES),
                                     index=df.index)
        return df.assign(clean_text=cleaned,
                         **{c: feature_frame[c] for c in SCALAR_FEATURES})


# ──────────────────────────────────────────────────────────
# Loading
# ──────────────────────────────────────────────────────────

def load_tweets(path, require_target=False):
    """Read a tweet CSV (``id,text[,target]``) into a DataFrame.

    Raises
    ------
    InputShapeError
        If a required column is missing or ``target`` is not 0/1.
    """
    df = pd.read_csv(path, dtype={'text': str})

    required = ['id', 'text'] + (['target'] if require_target else [])
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise InputShapeError(f"{path}: missing column(s) {missing}")

    df = df.assign(text=df['text'].fillna(''))

    if require_target:
        target = df['target']
        if target.isna().any() or not set(target.unique()) <= {0, 1}:
            raise InputShapeError(
                f"{path}: 'target' must only contain 0/1, "
                f"found {sorted(target.dropna().unique().tolist())}")
        df = df.assign(target=target.astype(int))

    print(f"  {path}: {len(df)} tweets")
    return df
