"""Workshop Pipeline – Global Configuration

This module centralises every *immutable* knob that governs the split, the
AutoGluon search-space and the local explanation.  **Never** import these
constants into a function just to mutate them; build a :class:`RunConfig`
instead.
"""
from __future__ import annotations

import json
import numbers
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from components.errors import ConfigError

# ---------------------------------------------------------------------------
# Reproducibility
# ---------------------------------------------------------------------------
RANDOM_STATE: int = 1  # Global seed – split, search plan and explainer

# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------
SPLIT_RATIO: float = 0.75  # fraction of rows in the training partition
BOSTON_TARGET: str = "medv"

# ---------------------------------------------------------------------------
# Engine Budgets
# ---------------------------------------------------------------------------
TRAINING_TIME_BUDGET_SECS: int = 120
MAX_MODELS: int = 100
CV_FOLDS: int = 5
NUM_STACK_LEVELS: int = 0

# ---------------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------------
# name -> (AutoGluon eval_metric, greater_is_better)
RANKING_METRICS: Dict[str, Tuple[str, bool]] = {
    "rmse": ("root_mean_squared_error", False),
    "mse": ("mean_squared_error", False),
    "mean_residual_deviance": ("mean_squared_error", False),
    "mae": ("mean_absolute_error", False),
    "r2": ("r2", True),
}
RANKING_METRIC: str = "rmse"

# ---------------------------------------------------------------------------
# Algorithm families
# ---------------------------------------------------------------------------
# Map our generic family names to AutoGluon's internal model keys.
AUTOGLUON_MODEL_MAP: Dict[str, str] = {
    "LightGBM": "GBM",
    "CatBoost": "CAT",
    "XGBoost": "XGB",
    "RandomForest": "RF",
    "ExtraTrees": "XT",
    "KNN": "KNN",
    "LinearModel": "LR",
    "NeuralNet": "NN_TORCH",
    "FastAI": "FASTAI",
}
# Not a base family: excluding it switches ensemble construction off.
STACKED_ENSEMBLE: str = "StackedEnsemble"
ALGORITHM_FAMILIES: Tuple[str, ...] = tuple(AUTOGLUON_MODEL_MAP) + (STACKED_ENSEMBLE,)

DEFAULT_ALGORITHM: str = "LightGBM"
EXCLUDED_ALGORITHMS: Tuple[str, ...] = ("NeuralNet", "FastAI")

# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
PERMUTATION_COUNT: int = 5_000
FEATURE_SELECT_STRATEGIES: Tuple[str, ...] = (
    "auto",
    "none",
    "forward_selection",
    "highest_weights",
    "lasso_path",
)
FEATURE_SELECT_STRATEGY: str = "auto"
MAX_EXPLAINED_FEATURES: int = 13
EXPLAINED_ROW: int = 0  # first row of the test partition

# ---------------------------------------------------------------------------
# Search-Space – AutoGluon default configurations (tried first)
# ---------------------------------------------------------------------------
_DEFAULT_CONFIGS: dict[str, list[dict]] = {
    "LightGBM": [
        {"extra_trees": True, "ag_args": {"name_suffix": "XT"}},
        {},
        {
            "learning_rate": 0.03,
            "num_leaves": 128,
            "feature_fraction": 0.9,
            "min_data_in_leaf": 3,
            "ag_args": {"name_suffix": "Large", "priority": 0},
        },
    ],
    "CatBoost": [{}],
    "XGBoost": [{}],
    "RandomForest": [
        {"criterion": "squared_error", "ag_args": {"name_suffix": "MSE", "problem_types": ["regression"]}},
    ],
    "ExtraTrees": [
        {"criterion": "squared_error", "ag_args": {"name_suffix": "MSE", "problem_types": ["regression"]}},
    ],
    "KNN": [
        {"weights": "uniform", "ag_args": {"name_suffix": "Unif"}},
        {"weights": "distance", "ag_args": {"name_suffix": "Dist"}},
    ],
    "LinearModel": [{}],
    "NeuralNet": [{}],
    "FastAI": [{}],
}

# ---------------------------------------------------------------------------
# Search-Space – random grids (sampled after the defaults)
# ---------------------------------------------------------------------------
# NOTE: These ranges are intentionally **narrow** – they expose
# representative values so the grid phase stays cheap on a workshop laptop.
_GRID_SPACE: dict[str, dict] = {
    "LightGBM": {
        "learning_rate": [0.01, 0.03, 0.05, 0.1],
        "num_leaves": [16, 31, 64, 128],
        "feature_fraction": [0.6, 0.8, 1.0],
        "min_data_in_leaf": [3, 10, 20],
    },
    "CatBoost": {
        "learning_rate": [0.03, 0.05, 0.1],
        "depth": [4, 6, 8],
        "l2_leaf_reg": [1.0, 3.0, 5.0],
    },
    "XGBoost": {
        "learning_rate": [0.03, 0.05, 0.1],
        "max_depth": [3, 6, 9],
        "colsample_bytree": [0.6, 0.8, 1.0],
        "min_child_weight": [1, 3, 5],
    },
    "RandomForest": {
        "n_estimators": [100, 300],
        "max_features": ["sqrt", "log2", 1.0],
        "criterion": ["squared_error"],
    },
    "ExtraTrees": {
        "n_estimators": [100, 300],
        "max_features": ["sqrt", "log2", 1.0],
        "criterion": ["squared_error"],
    },
    "KNN": {
        "n_neighbors": [3, 5, 10, 20],
        "weights": ["uniform", "distance"],
    },
    "LinearModel": {
        "C": [0.1, 1.0, 10.0],
    },
    "NeuralNet": {
        "learning_rate": [1e-4, 3e-4, 1e-3],
        "dropout_prob": [0.0, 0.1, 0.2],
    },
    "FastAI": {
        "lr": [1e-3, 1e-2],
        "bs": [128, 256],
    },
}

# Grid draws per family when ``max_models`` leaves the count unbounded.
UNBOUNDED_GRID_DRAWS: int = 10


# option -> (accepted types, may be None)
_OPTION_TYPES = (
    ("seed", numbers.Integral, False),
    ("split_ratio", numbers.Real, False),
    ("training_time_budget_secs", numbers.Real, True),
    ("max_models", numbers.Integral, True),
    ("cv_folds", numbers.Integral, False),
    ("ranking_metric", str, False),
    ("permutation_count", numbers.Integral, False),
    ("feature_select_strategy", str, False),
    ("max_explained_features", numbers.Integral, False),
)


# ---------------------------------------------------------------------------
# Run configuration – the recognised option surface
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RunConfig:
    """Every option the pipeline recognises, with validated values."""

    seed: int = RANDOM_STATE
    split_ratio: float = SPLIT_RATIO
    training_time_budget_secs: Optional[int] = TRAINING_TIME_BUDGET_SECS
    max_models: Optional[int] = MAX_MODELS
    cv_folds: int = CV_FOLDS
    ranking_metric: str = RANKING_METRIC
    excluded_algorithms: Tuple[str, ...] = EXCLUDED_ALGORITHMS
    permutation_count: int = PERMUTATION_COUNT
    feature_select_strategy: str = FEATURE_SELECT_STRATEGY
    max_explained_features: int = MAX_EXPLAINED_FEATURES

    def __post_init__(self):
        excluded = self.excluded_algorithms
        if isinstance(excluded, (str, bytes)) or not isinstance(excluded, Iterable):
            raise ConfigError(
                f"excluded_algorithms must be a list of family names, got {type(excluded).__name__}"
            )
        # Lists arriving from JSON or argparse are frozen here.
        object.__setattr__(self, "excluded_algorithms", tuple(excluded))
        self.validate()

    def _check_types(self) -> None:
        for name, kinds, optional in _OPTION_TYPES:
            value = getattr(self, name)
            if value is None and optional:
                continue
            if isinstance(value, bool) or not isinstance(value, kinds):
                raise ConfigError(
                    f"{name} has the wrong type: got {type(value).__name__} {value!r}"
                )
        strays = [a for a in self.excluded_algorithms if not isinstance(a, str)]
        if strays:
            raise ConfigError(f"excluded_algorithms must hold family names, got {strays}")

    def validate(self) -> None:
        self._check_types()
        if not 0.0 < self.split_ratio < 1.0:
            raise ConfigError(f"split_ratio must lie in (0, 1), got {self.split_ratio}")
        if self.training_time_budget_secs is None and self.max_models is None:
            raise ConfigError("at least one of training_time_budget_secs / max_models must be set")
        if self.training_time_budget_secs is not None and self.training_time_budget_secs <= 0:
            raise ConfigError(
                f"training_time_budget_secs must be positive, got {self.training_time_budget_secs}"
            )
        if self.max_models is not None and self.max_models < 1:
            raise ConfigError(f"max_models must be >= 1, got {self.max_models}")
        if self.cv_folds == 1 or self.cv_folds < 0:
            raise ConfigError(f"cv_folds must be 0 (holdout) or >= 2, got {self.cv_folds}")
        if self.ranking_metric not in RANKING_METRICS:
            raise ConfigError(
                f"Unsupported ranking_metric {self.ranking_metric!r}; "
                f"choose one of {sorted(RANKING_METRICS)}"
            )
        unknown = [a for a in self.excluded_algorithms if a not in ALGORITHM_FAMILIES]
        if unknown:
            raise ConfigError(f"Unknown algorithm families in excluded_algorithms: {unknown}")
        if self.permutation_count < 2:
            raise ConfigError(f"permutation_count must be >= 2, got {self.permutation_count}")
        if self.feature_select_strategy not in FEATURE_SELECT_STRATEGIES:
            raise ConfigError(
                f"Unsupported feature_select_strategy {self.feature_select_strategy!r}; "
                f"choose one of {list(FEATURE_SELECT_STRATEGIES)}"
            )
        if self.max_explained_features < 1:
            raise ConfigError(
                f"max_explained_features must be >= 1, got {self.max_explained_features}"
            )

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "RunConfig":
        """Build a config from *options*, rejecting keys we do not recognise."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigError(f"Unrecognised configuration options: {unknown}")
        return cls(**dict(options))

    def with_overrides(self, **overrides: Any) -> "RunConfig":
        """Return a copy with the non-``None`` *overrides* applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["excluded_algorithms"] = list(self.excluded_algorithms)
        return data


def load_config(path: str | Path) -> RunConfig:
    """Read a JSON object of options from *path* into a :class:`RunConfig`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path) as f:
        try:
            options = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(options, dict):
        raise ConfigError(f"Config file {path} must hold a JSON object")
    return RunConfig.from_mapping(options)


# ---------------------------------------------------------------------------
# Helper – expose search-space tables for the engine wrapper
# ---------------------------------------------------------------------------

def get_space(kind: str):
    """Return the approved search-space table for *kind*.

    Parameters
    ----------
    kind
        Either ``"default"`` (AutoGluon's stock configurations per family)
        or ``"grid"`` (value lists sampled after the defaults).

    Returns
    -------
    dict
        A copy keyed by algorithm family.
    """
    if kind == "default":
        return {family: [dict(c) for c in configs] for family, configs in _DEFAULT_CONFIGS.items()}
    elif kind == "grid":
        return {family: dict(grid) for family, grid in _GRID_SPACE.items()}
    else:
        raise ValueError("kind must be 'default' or 'grid'")


__all__ = [
    "RANDOM_STATE",
    "SPLIT_RATIO",
    "BOSTON_TARGET",
    "TRAINING_TIME_BUDGET_SECS",
    "MAX_MODELS",
    "CV_FOLDS",
    "NUM_STACK_LEVELS",
    "RANKING_METRICS",
    "RANKING_METRIC",
    "AUTOGLUON_MODEL_MAP",
    "STACKED_ENSEMBLE",
    "ALGORITHM_FAMILIES",
    "DEFAULT_ALGORITHM",
    "EXCLUDED_ALGORITHMS",
    "PERMUTATION_COUNT",
    "FEATURE_SELECT_STRATEGIES",
    "FEATURE_SELECT_STRATEGY",
    "MAX_EXPLAINED_FEATURES",
    "EXPLAINED_ROW",
    "UNBOUNDED_GRID_DRAWS",
    "RunConfig",
    "load_config",
    "get_space",
]
