from scripts.config import *  # noqa: F403, F401

__all__ = [
    'RANDOM_STATE',
    'SPLIT_RATIO',
    'TRAINING_TIME_BUDGET_SECS',
    'MAX_MODELS',
    'CV_FOLDS',
    'RANKING_METRIC',
    'EXCLUDED_ALGORITHMS',
    'PERMUTATION_COUNT',
    'FEATURE_SELECT_STRATEGY',
    'MAX_EXPLAINED_FEATURES',
    'RunConfig',
    'load_config',
    'get_space',
]
