from pathlib import Path
import pickle
import sys
import types

import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import Ridge

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

BOSTON_COLUMNS = [
    "crim", "zn", "indus", "chas", "nox", "rm", "age",
    "dis", "rad", "tax", "ptratio", "b", "lstat", "medv",
]

# AutoGluon model keys -> the name prefix AutoGluon gives trained models
_MODEL_NAMES = {
    "GBM": "LightGBM",
    "CAT": "CatBoost",
    "XGB": "XGBoost",
    "RF": "RandomForest",
    "XT": "ExtraTrees",
    "KNN": "KNeighbors",
    "LR": "LinearModel",
    "NN_TORCH": "NeuralNetTorch",
    "FASTAI": "NeuralNetFastAI",
}


class FakeTabularPredictor:
    """Minimal stand-in for ``autogluon.tabular.TabularPredictor``.

    Every requested configuration becomes a ridge model with its own alpha so
    scores differ; ``time_limit < 1`` stops after the first candidate.
    """

    instances = []

    def __init__(self, label, problem_type=None, eval_metric=None, path=None, verbosity=2, **kwargs):
        self.label = label
        self.problem_type = problem_type
        self.eval_metric = eval_metric
        self.path = str(path)
        self.verbosity = verbosity
        self.fit_kwargs = None
        self._models = {}
        self._scores = {}
        self._stack_levels = {}
        FakeTabularPredictor.instances.append(self)

    def fit(self, train_data, hyperparameters=None, time_limit=None, fit_weighted_ensemble=True, **kwargs):
        self.fit_kwargs = dict(
            hyperparameters=hyperparameters,
            time_limit=time_limit,
            fit_weighted_ensemble=fit_weighted_ensemble,
            **kwargs,
        )
        X = train_data.drop(columns=[self.label])
        y = train_data[self.label]
        bagged = bool(kwargs.get("num_bag_folds"))
        alpha = 0.1
        for key, configs in hyperparameters.items():
            if isinstance(configs, dict):
                configs = [configs]
            for config in configs:
                if "fail" in config:
                    raise ValueError(f"Invalid hyperparameter for {key}: fail")
                if time_limit is not None and time_limit < 1 and self._models:
                    break
                suffix = config.get("ag_args", {}).get("name_suffix", "")
                name = _MODEL_NAMES[key] + suffix + ("_BAG_L1" if bagged else "")
                model = Ridge(alpha=alpha).fit(X, y)
                alpha *= 10
                self._add(name, model, X, y, stack_level=1)
        if fit_weighted_ensemble and len(self._models) > 1:
            self._add("WeightedEnsemble_L2", list(self._models.values()), X, y, stack_level=2)
        Path(self.path).mkdir(parents=True, exist_ok=True)
        with open(Path(self.path) / "predictor.pkl", "wb") as f:
            pickle.dump(self, f)
        return self

    def _add(self, name, model, X, y, stack_level):
        self._models[name] = model
        self._stack_levels[name] = stack_level
        rmse = float(np.sqrt(np.mean((self._predict(name, X) - y.to_numpy()) ** 2)))
        self._scores[name] = -rmse

    def _predict(self, name, X):
        model = self._models[name]
        if isinstance(model, list):
            return np.mean([m.predict(X) for m in model], axis=0)
        return model.predict(X)

    @property
    def model_best(self):
        return max(self._scores, key=self._scores.get)

    def leaderboard(self, data=None, **kwargs):
        rows = [
            {
                "model": name,
                "score_val": score,
                "fit_time": 0.01,
                "stack_level": self._stack_levels[name],
            }
            for name, score in self._scores.items()
        ]
        frame = pd.DataFrame(rows, columns=["model", "score_val", "fit_time", "stack_level"])
        return frame.sort_values("score_val", ascending=False).reset_index(drop=True)

    def predict(self, data, model=None):
        name = model or self.model_best
        X = data.drop(columns=[self.label], errors="ignore")
        return pd.Series(self._predict(name, X), index=data.index, name=self.label)

    @classmethod
    def load(cls, path, **kwargs):
        with open(Path(path) / "predictor.pkl", "rb") as f:
            predictor = pickle.load(f)
        predictor.path = str(path)
        return predictor


@pytest.fixture
def fake_autogluon(monkeypatch):
    """Install the fake predictor as ``autogluon.tabular``."""
    FakeTabularPredictor.instances = []
    autogluon = types.ModuleType("autogluon")
    tabular = types.ModuleType("autogluon.tabular")
    tabular.TabularPredictor = FakeTabularPredictor
    autogluon.tabular = tabular
    monkeypatch.setitem(sys.modules, "autogluon", autogluon)
    monkeypatch.setitem(sys.modules, "autogluon.tabular", tabular)
    return FakeTabularPredictor


@pytest.fixture
def session(fake_autogluon, tmp_path):
    from engines.session import ComputeSession

    with ComputeSession(workspace=tmp_path / "workspace") as s:
        yield s


@pytest.fixture
def engine(session):
    from engines.autogluon_wrapper import AutoGluonEngine

    return AutoGluonEngine(session, metric="rmse")


def make_housing_frame(n_rows=506, seed=0):
    """Synthetic table with the Boston housing schema and a linear target."""
    rng = np.random.RandomState(seed)
    features = BOSTON_COLUMNS[:-1]
    frame = pd.DataFrame(rng.normal(size=(n_rows, len(features))), columns=features)
    frame["chas"] = rng.randint(0, 2, size=n_rows).astype(float)
    coefs = np.linspace(-3.0, 3.0, len(features))
    frame["medv"] = 22.0 + frame[features].to_numpy() @ coefs + rng.normal(scale=0.5, size=n_rows)
    return frame


@pytest.fixture
def housing():
    from components.records import Dataset

    return Dataset(make_housing_frame(), target="medv", name="housing")


@pytest.fixture
def partition(housing):
    from scripts.data_loader import split_frame

    return split_frame(housing, ratio=0.75, seed=1)
