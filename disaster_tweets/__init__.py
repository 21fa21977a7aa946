"""
disaster_tweets
================
Predicts whether a tweet describes a real disaster.

Modules
-------
- preprocessing : CSV loading and hand-crafted lexical/sentiment features
- features      : Shared vocabulary, count vectorization, combined matrix
- models        : Model trainers, cutoff tuning, kernel-density naive Bayes
- ensemble      : Fixed-weight probability ensemble
- pipeline      : End-to-end orchestration and submission files
"""

from .errors import (PipelineError, InputShapeError, ShapeMismatchError,
                     ModelFitError, MissingModelOutputError)
from .preprocessing import (TweetFeatures, TweetFeatureExtractor,
                            extract_tweet_features, load_tweets,
                            SCALAR_FEATURES)
from .features import (VocabularyConfig, Vocabulary, CombinedFeatureBuilder,
                       build_vocabulary, vectorize, combine_features,
                       combined_feature_names, explore_svd)
from .models import (ModelOutput, ModelTrainer, LogisticConfig,
                     LogisticRegressionTrainer, NaiveBayesTrainer,
                     RandomForestTrainer, SVMTrainer, KernelDensityNB,
                     get_trainers, select_cutoff, threshold_labels)
from .ensemble import ENSEMBLE_WEIGHTS, weighted_average, ensemble_predict
from .pipeline import RunConfig, run, write_submissions

__all__ = [
    'PipelineError',
    'InputShapeError',
    'ShapeMismatchError',
    'ModelFitError',
    'MissingModelOutputError',
    'TweetFeatures',
    'TweetFeatureExtractor',
    'extract_tweet_features',
    'load_tweets',
    'SCALAR_FEATURES',
    'VocabularyConfig',
    'Vocabulary',
    'CombinedFeatureBuilder',
    'build_vocabulary',
    'vectorize',
    'combine_features',
    'combined_feature_names',
    'explore_svd',
    'ModelOutput',
    'ModelTrainer',
    'LogisticConfig',
    'LogisticRegressionTrainer',
    'NaiveBayesTrainer',
    'RandomForestTrainer',
    'SVMTrainer',
    'KernelDensityNB',
    'get_trainers',
    'select_cutoff',
    'threshold_labels',
    'ENSEMBLE_WEIGHTS',
    'weighted_average',
    'ensemble_predict',
    'RunConfig',
    'run',
    'write_submissions',
]
