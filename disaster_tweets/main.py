#!/usr/bin/env python3
"""
main.py
--------
Command-line entry point.

Usage:
    python -m disaster_tweets.main --train train.csv --test test.csv
"""

import argparse
import sys
import warnings

from disaster_tweets.errors import PipelineError
from disaster_tweets.features import VocabularyConfig
from disaster_tweets.models import LogisticConfig
from disaster_tweets.pipeline import RunConfig, run
from disaster_tweets.preprocessing import load_tweets

warnings.filterwarnings('ignore', category=FutureWarning)


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Disaster tweet classifier: lexical features + bag of "
                    "words, three models and a weighted ensemble")
    p.add_argument('--train', required=True, help='Path to train CSV (id,text,target)')
    p.add_argument('--test', required=True, help='Path to test CSV (id,text)')
    p.add_argument('--out-dir', default='submissions',
                   help='Directory for the submission CSVs')
    p.add_argument('--seed', type=int, default=500)

    p.add_argument('--min-count', type=int, default=10,
                   help='Minimum total occurrences of a vocabulary token')
    p.add_argument('--max-doc-prop', type=float, default=0.5)
    p.add_argument('--min-doc-prop', type=float, default=0.001)
    p.add_argument('--train-only-vocab', action='store_true',
                   help='Count the vocabulary on train text only')

    p.add_argument('--cv-folds', type=int, default=10,
                   help='Folds for logistic regression model selection')
    p.add_argument('--with-svm', action='store_true',
                   help='Also fit the (slow) RBF SVM')
    p.add_argument('--explore-svd', type=int, default=None, metavar='N',
                   help='Report variance kept by an N-component truncated SVD')
    return p.parse_args(argv)


def config_from_args(args):
    return RunConfig(
        seed=args.seed,
        vocab=VocabularyConfig(min_count=args.min_count,
                               max_doc_proportion=args.max_doc_prop,
                               min_doc_proportion=args.min_doc_prop,
                               fit_on_test=not args.train_only_vocab),
        logistic=LogisticConfig(cv_folds=args.cv_folds),
        include_svm=args.with_svm,
        svd_components=args.explore_svd,
    )


def main(argv=None):
    args = parse_args(argv)
    cfg = config_from_args(args)

    print("=" * 70)
    print("0. DATA LOADING")
    print("=" * 70)
    try:
        train = load_tweets(args.train, require_target=True)
        test = load_tweets(args.test)
        run(train, test, cfg, out_dir=args.out_dir)
    except PipelineError as exc:
        print(f"\nABORTED: {exc}", file=sys.stderr)
        raise

    print(f"\nDone. Submissions in: {args.out_dir}")


if __name__ == "__main__":
    main()
