import json

import pytest

from components.errors import ConfigError
from scripts.config import RunConfig, get_space, load_config


def test_defaults_are_valid():
    config = RunConfig()
    assert config.seed == 1
    assert config.split_ratio == 0.75
    assert config.training_time_budget_secs == 120
    assert config.max_models == 100
    assert config.max_explained_features == 13
    assert config.permutation_count == 5000


def test_from_mapping_accepts_every_recognised_option():
    options = {
        "seed": 3,
        "split_ratio": 0.8,
        "training_time_budget_secs": 30,
        "max_models": 5,
        "cv_folds": 3,
        "ranking_metric": "mae",
        "excluded_algorithms": ["KNN", "StackedEnsemble"],
        "permutation_count": 1000,
        "feature_select_strategy": "highest_weights",
        "max_explained_features": 4,
    }
    config = RunConfig.from_mapping(options)
    assert config.excluded_algorithms == ("KNN", "StackedEnsemble")
    assert config.to_dict() == options


def test_from_mapping_rejects_unknown_option():
    with pytest.raises(ConfigError, match="nfolds"):
        RunConfig.from_mapping({"nfolds": 5})


@pytest.mark.parametrize(
    "overrides",
    [
        {"split_ratio": 1.0},
        {"training_time_budget_secs": None, "max_models": None},
        {"training_time_budget_secs": 0},
        {"max_models": 0},
        {"cv_folds": 1},
        {"ranking_metric": "auc"},
        {"excluded_algorithms": ("DeepLearning",)},
        {"permutation_count": 1},
        {"feature_select_strategy": "tree"},
        {"max_explained_features": 0},
    ],
)
def test_invalid_values_raise(overrides):
    with pytest.raises(ConfigError):
        RunConfig(**overrides)


def test_with_overrides_ignores_none():
    config = RunConfig().with_overrides(seed=9, max_models=None)
    assert config.seed == 9
    assert config.max_models == 100


def test_load_config_from_json(tmp_path):
    path = tmp_path / "options.json"
    path.write_text(json.dumps({"seed": 11, "max_models": 7}))
    config = load_config(path)
    assert (config.seed, config.max_models) == (11, 7)


def test_load_config_rejects_non_object(tmp_path):
    path = tmp_path / "options.json"
    path.write_text("[1, 2]")
    with pytest.raises(ConfigError):
        load_config(path)


def test_get_space():
    defaults = get_space("default")
    grid = get_space("grid")
    assert "LightGBM" in defaults and "LightGBM" in grid
    defaults["LightGBM"].append({"mutated": True})
    assert {"mutated": True} not in get_space("default")["LightGBM"]
    with pytest.raises(ValueError):
        get_space("preprocessor")


def test_root_config_reexports_the_constants():
    import config

    assert config.RunConfig is RunConfig
    assert config.RANDOM_STATE == RunConfig().seed


@pytest.mark.parametrize(
    "options",
    [
        {"split_ratio": "0.5"},
        {"max_models": "10"},
        {"max_models": 2.5},
        {"seed": True},
        {"training_time_budget_secs": "fast"},
        {"cv_folds": None},
        {"ranking_metric": 3},
        {"excluded_algorithms": "KNN"},
        {"excluded_algorithms": 5},
        {"excluded_algorithms": ["KNN", 1]},
        {"permutation_count": 500.0},
        {"feature_select_strategy": None},
        {"max_explained_features": [13]},
    ],
)
def test_wrong_types_raise_config_error(options):
    with pytest.raises(ConfigError):
        RunConfig.from_mapping(options)


def test_wrong_type_in_json_config(tmp_path):
    path = tmp_path / "options.json"
    path.write_text(json.dumps({"split_ratio": "0.5"}))
    with pytest.raises(ConfigError, match="split_ratio"):
        load_config(path)
