import json

import numpy as np
import pytest

from components.errors import TrainingError
from components.records import ModelHandle


def test_train_returns_registered_handle(engine, session, housing, partition):
    handle = engine.train(housing.features, "medv", partition.train, model_id="single_gbm", seed=1)
    assert isinstance(handle, ModelHandle)
    assert handle.algorithm == "LightGBM"
    assert handle.model_name == "LightGBM"
    assert handle.features == tuple(housing.features)
    assert session.get("single_gbm") is handle
    assert engine.run_info["model_id"] == "single_gbm"


def test_train_passes_single_family_to_engine(engine, fake_autogluon, housing, partition):
    engine.train(
        housing.features, "medv", partition.train,
        model_id="xgb", algorithm="XGBoost", hyperparameters={"max_depth": 3},
    )
    fit_kwargs = fake_autogluon.instances[-1].fit_kwargs
    assert fit_kwargs["hyperparameters"] == {"XGB": {"max_depth": 3}}
    assert fit_kwargs["fit_weighted_ensemble"] is False


def test_predictions_cover_every_row(engine, housing, partition):
    handle = engine.train(housing.features, "medv", partition.train, model_id="m")
    preds = handle.predict(partition.test)
    assert preds.shape == (len(partition.test),)
    assert np.isfinite(preds).all()
    np.testing.assert_allclose(engine.predict(handle, partition.test), preds)


def test_training_does_not_modify_partition(engine, housing, partition):
    before = partition.train.copy()
    engine.train(housing.features, "medv", partition.train, model_id="m")
    assert partition.train.equals(before)


def test_missing_feature_is_named(engine, housing, partition):
    features = housing.features + ["garage"]
    with pytest.raises(TrainingError, match="garage"):
        engine.train(features, "medv", partition.train, model_id="m")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"algorithm": "DeepLearning"},
        {"hyperparameters": [("max_depth", 3)]},
        {"hyperparameters": {"fail": True}},
    ],
)
def test_invalid_training_requests(engine, housing, partition, kwargs):
    with pytest.raises(TrainingError):
        engine.train(housing.features, "medv", partition.train, model_id="m", **kwargs)


def test_target_listed_as_feature(engine, housing, partition):
    with pytest.raises(TrainingError, match="target"):
        engine.train(housing.features + ["medv"], "medv", partition.train, model_id="m")


def test_duplicate_model_id(engine, housing, partition):
    engine.train(housing.features, "medv", partition.train, model_id="m")
    with pytest.raises(TrainingError, match="already exists"):
        engine.train(housing.features, "medv", partition.train, model_id="m")


def test_export_and_load(engine, housing, partition, tmp_path):
    handle = engine.train(housing.features, "medv", partition.train, model_id="m")
    target_dir = engine.export(handle, tmp_path / "export")
    manifest = json.loads((target_dir / "handle.json").read_text())
    assert manifest["model_id"] == "m"
    assert manifest["features"] == housing.features

    restored = engine.load(target_dir, model_id="m_restored")
    assert restored.model_id == "m_restored"
    np.testing.assert_allclose(restored.predict(partition.test), handle.predict(partition.test))


def test_export_refuses_non_empty_directory(engine, housing, partition, tmp_path):
    handle = engine.train(housing.features, "medv", partition.train, model_id="m")
    target_dir = tmp_path / "export"
    target_dir.mkdir()
    (target_dir / "other.txt").write_text("keep me")
    with pytest.raises(FileExistsError):
        engine.export(handle, target_dir)


def test_load_missing_directory(engine, tmp_path):
    with pytest.raises(FileNotFoundError):
        engine.load(tmp_path / "nothing")
