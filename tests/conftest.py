import numpy as np
import pandas as pd
import pytest


def stub_polarity(sentence):
    """Tiny lexicon so tests never need the VADER download."""
    text = sentence.lower()
    if 'fire' in text:
        return -0.5
    if 'good' in text:
        return 0.5
    return 0.0


@pytest.fixture
def polarity():
    return stub_polarity


TEMPLATES = [
    ("Huge fire near the station, evacuate now", 0.85),
    ("Flood waters rising on main road #flood", 0.8),
    ("Earthquake shook the city at 3am http://t.co/abc", 0.8),
    ("Loving this new music album, good vibes", 0.15),
    ("Party tonight with friends @dave", 0.2),
    ("This movie was fire lol", 0.3),
]


@pytest.fixture
def tweet_frames():
    """Small train/test frames built from repeated templates.

    Each template appears with both labels, so no classifier can separate
    the training set perfectly.
    """
    rng = np.random.RandomState(0)
    rows = []
    for i in range(96):
        text, p_disaster = TEMPLATES[i % len(TEMPLATES)]
        rows.append({'id': i, 'text': text,
                     'target': int(rng.rand() < p_disaster)})
    train = pd.DataFrame(rows)
    # make sure every template carries both labels
    for k in range(len(TEMPLATES)):
        train.loc[k, 'target'] = 1
        train.loc[k + len(TEMPLATES), 'target'] = 0

    test = pd.DataFrame({
        'id': [1000 + i for i in range(len(TEMPLATES))],
        'text': [t for t, _ in TEMPLATES],
    })
    return train, test
