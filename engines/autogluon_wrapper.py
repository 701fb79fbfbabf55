"""autogluon_wrapper – model training, automated search and persistence"""
from __future__ import annotations

import json
import logging
import random
import shutil
import time
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype
from rich.tree import Tree

from components.base import BaseEngine
from components.errors import (
    ConfigError,
    SearchBudgetExhausted,
    SearchError,
    TrainingError,
)
from components.records import Leaderboard, LeaderboardEntry, ModelHandle
from components.visualize import console
from engines.search_space import build_search_plan
from engines.session import ComputeSession
from scripts.config import (
    AUTOGLUON_MODEL_MAP,
    CV_FOLDS,
    DEFAULT_ALGORITHM,
    EXCLUDED_ALGORITHMS,
    MAX_MODELS,
    NUM_STACK_LEVELS,
    RANDOM_STATE,
    RANKING_METRIC,
    RANKING_METRICS,
    STACKED_ENSEMBLE,
    TRAINING_TIME_BUDGET_SECS,
)

logger = logging.getLogger(__name__)

# AutoGluon model-name prefixes -> our family names. Order matters:
# "NeuralNetTorch" must be checked before a bare "NeuralNet".
_FAMILY_PREFIXES = (
    ("WeightedEnsemble", STACKED_ENSEMBLE),
    ("LightGBM", "LightGBM"),
    ("CatBoost", "CatBoost"),
    ("XGBoost", "XGBoost"),
    ("RandomForest", "RandomForest"),
    ("ExtraTrees", "ExtraTrees"),
    ("KNeighbors", "KNN"),
    ("LinearModel", "LinearModel"),
    ("NeuralNetTorch", "NeuralNet"),
    ("NeuralNetFastAI", "FastAI"),
)

_MANIFEST = "handle.json"
_PREDICTOR_DIR = "predictor"


def _family_of(model_name: str) -> str:
    for prefix, family in _FAMILY_PREFIXES:
        if model_name.startswith(prefix):
            return family
    return "Unknown"


def _seed_everything(seed: int) -> None:
    random.seed(seed)
    np.random.seed(seed)


@dataclass
class SearchResult:
    """Outcome of one automated search – possibly partial."""

    project_name: str
    leaderboard: Leaderboard
    n_planned: int
    n_completed: int
    elapsed_secs: float
    budget_exhausted: bool
    predictor: Any = field(default=None, repr=False)

    @property
    def leader(self) -> ModelHandle:
        return self.leaderboard.leader

    def summary(self) -> Dict[str, Any]:
        return {
            "project_name": self.project_name,
            "leader": self.leader.model_id,
            "n_planned": self.n_planned,
            "n_completed": self.n_completed,
            "n_leaderboard": len(self.leaderboard),
            "elapsed_secs": self.elapsed_secs,
            "budget_exhausted": self.budget_exhausted,
        }


class AutoGluonEngine(BaseEngine):
    """AutoGluon adapter conforming to the orchestrator's API."""

    def __init__(self, session: ComputeSession, metric: str = RANKING_METRIC):
        if metric not in RANKING_METRICS:
            raise ConfigError(f"Unsupported metric {metric!r}; choose one of {sorted(RANKING_METRICS)}")
        self.session = session
        self.metric = metric
        self._ag_metric, self.greater_is_better = RANKING_METRICS[metric]
        self._last_run: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return "AutoGluonEngine"

    @property
    def run_info(self) -> dict:
        if not self._last_run:
            return {"status": "not_fitted"}
        return dict(self._last_run)

    # Helpers -----------------------------------------------------------------
    def _validate_schema(
        self,
        call: str,
        model_id: str,
        features: Sequence[str],
        target: str,
        frame: pd.DataFrame,
    ) -> List[str]:
        features = list(features)
        where = f"{call}(model_id={model_id!r})"
        if not features:
            raise TrainingError(f"{where}: no features given")
        if target in features:
            raise TrainingError(f"{where}: target {target!r} is also listed as a feature")
        duplicated = sorted({f for f in features if features.count(f) > 1})
        if duplicated:
            raise TrainingError(f"{where}: duplicated features {duplicated}")
        missing = [c for c in features + [target] if c not in frame.columns]
        if missing:
            raise TrainingError(f"{where}: columns missing from the training partition: {missing}")
        if frame.empty:
            raise TrainingError(f"{where}: training partition is empty")
        if not is_numeric_dtype(frame[target]):
            raise TrainingError(
                f"{where}: target {target!r} must be numeric for regression, got {frame[target].dtype}"
            )
        return features

    def _new_predictor(self, model_id: str, target: str):
        return self.session.predictor_cls(
            label=target,
            problem_type="regression",
            eval_metric=self._ag_metric,
            path=str(self.session.model_path(model_id)),
            verbosity=self.session.verbosity,
        )

    def _entries(self, predictor, project_name, features, target, seed) -> List[LeaderboardEntry]:
        entries = []
        for row in predictor.leaderboard().to_dict("records"):
            score = row.get("score_val")
            if score is None or pd.isna(score):
                continue
            model_name = str(row["model"])
            handle = ModelHandle(
                model_id=f"{project_name}.{model_name}",
                algorithm=_family_of(model_name),
                features=tuple(features),
                target=target,
                seed=seed,
                metric=self.metric,
                model_name=model_name,
                predictor=predictor,
            )
            # AutoGluon reports every score as higher-is-better.
            value = float(score) if self.greater_is_better else -float(score)
            entries.append(
                LeaderboardEntry(
                    handle=handle,
                    metric_value=value,
                    fit_time=float(row.get("fit_time", float("nan"))),
                    stack_level=int(row.get("stack_level", 1)),
                )
            )
        return entries

    # Training ----------------------------------------------------------------
    def train(
        self,
        features: Sequence[str],
        target: str,
        train: pd.DataFrame,
        *,
        model_id: str,
        seed: int = RANDOM_STATE,
        algorithm: str = DEFAULT_ALGORITHM,
        hyperparameters: Optional[Mapping[str, Any]] = None,
    ) -> ModelHandle:
        """Train a single *algorithm* model on *train* and register its handle."""
        self.session.ensure_started()
        features = self._validate_schema("train", model_id, features, target, train)
        if model_id in self.session:
            raise TrainingError(f"train(model_id={model_id!r}): model id already exists in this session")
        if algorithm not in AUTOGLUON_MODEL_MAP:
            raise TrainingError(
                f"train(model_id={model_id!r}): unknown algorithm {algorithm!r}; "
                f"choose one of {sorted(AUTOGLUON_MODEL_MAP)}"
            )
        if hyperparameters is None:
            hyperparameters = {}
        elif not isinstance(hyperparameters, Mapping):
            raise TrainingError(
                f"train(model_id={model_id!r}): hyperparameters must be a mapping, "
                f"got {type(hyperparameters).__name__}"
            )

        root = Tree(f"[AutoGluon] train {model_id}")
        logger.info("[%s] train-start model_id=%s algorithm=%s seed=%d", self.name, model_id, algorithm, seed)
        _seed_everything(seed)
        start = time.perf_counter()

        predictor = self._new_predictor(model_id, target)
        try:
            predictor.fit(
                train_data=train[features + [target]],
                hyperparameters={AUTOGLUON_MODEL_MAP[algorithm]: dict(hyperparameters)},
                fit_weighted_ensemble=False,
            )
        except Exception as exc:  # noqa: BLE001
            raise TrainingError(
                f"train(model_id={model_id!r}, algorithm={algorithm}): engine rejected the fit: {exc}"
            ) from exc

        if predictor.leaderboard().empty:
            raise TrainingError(
                f"train(model_id={model_id!r}, algorithm={algorithm}): no model was trained; "
                f"check hyperparameters {dict(hyperparameters)}"
            )

        handle = ModelHandle(
            model_id=model_id,
            algorithm=algorithm,
            features=tuple(features),
            target=target,
            seed=seed,
            metric=self.metric,
            model_name=str(predictor.model_best),
            predictor=predictor,
        )
        self.session.register(handle)

        duration = time.perf_counter() - start
        root.add(f"{handle.model_name} trained in {duration:.1f}s")
        console.print(root)
        logger.info("[%s] train-end model_id=%s (%.1fs)", self.name, model_id, duration)
        self._last_run = {"call": "train", "model_id": model_id, "duration_seconds": duration}
        return handle

    # Automated search ----------------------------------------------------------
    def search(
        self,
        features: Sequence[str],
        target: str,
        train: pd.DataFrame,
        *,
        max_runtime_secs: Optional[int] = TRAINING_TIME_BUDGET_SECS,
        max_models: Optional[int] = MAX_MODELS,
        cv_folds: int = CV_FOLDS,
        seed: int = RANDOM_STATE,
        exclude: Sequence[str] = EXCLUDED_ALGORITHMS,
        num_stack_levels: int = NUM_STACK_LEVELS,
        project_name: str = "automl",
    ) -> SearchResult:
        """Train a budgeted battery of candidates plus ensembles and rank them.

        Running out of time is not a failure: whatever completed is ranked and
        returned, and a :class:`SearchBudgetExhausted` warning is emitted.
        """
        self.session.ensure_started()
        features = self._validate_schema("search", project_name, features, target, train)
        if max_runtime_secs is None and max_models is None:
            raise ConfigError("search(): set max_runtime_secs and/or max_models")
        if max_runtime_secs is not None and max_runtime_secs <= 0:
            raise ConfigError(f"search(): max_runtime_secs must be positive, got {max_runtime_secs}")
        if cv_folds == 1 or cv_folds < 0:
            raise ConfigError(f"search(): cv_folds must be 0 (holdout) or >= 2, got {cv_folds}")
        if self.session.model_path(project_name).exists():
            raise ConfigError(f"search(): project {project_name!r} already exists in this session")

        plan = build_search_plan(exclude=exclude, max_models=max_models, seed=seed)
        fit_kwargs: Dict[str, Any] = {
            "train_data": train[features + [target]],
            "hyperparameters": plan.to_hyperparameters(),
            "fit_weighted_ensemble": plan.ensemble,
            "num_stack_levels": num_stack_levels if plan.ensemble else 0,
        }
        if cv_folds >= 2:
            fit_kwargs["num_bag_folds"] = cv_folds
        if max_runtime_secs is not None:
            fit_kwargs["time_limit"] = max_runtime_secs

        root = Tree(f"[AutoGluon] search {project_name}")
        root.add(f"{plan.n_candidates} planned candidates: {', '.join(plan.families)}")
        logger.info(
            "[%s] search-start project=%s budget=%ss max_models=%s folds=%d",
            self.name, project_name, max_runtime_secs, max_models, cv_folds,
        )
        _seed_everything(seed)
        start = time.perf_counter()

        predictor = self._new_predictor(project_name, target)
        try:
            predictor.fit(**fit_kwargs)
        except Exception as exc:  # noqa: BLE001
            raise SearchError(f"search(project={project_name!r}): engine failed: {exc}") from exc
        elapsed = time.perf_counter() - start

        entries = self._entries(predictor, project_name, features, target, seed)
        if not entries:
            raise SearchError(
                f"search(project={project_name!r}): no candidate completed within {max_runtime_secs}s"
            )
        leaderboard = Leaderboard(entries, self.metric, self.greater_is_better)
        for entry in leaderboard:
            self.session.register(entry.handle)

        n_completed = sum(1 for e in leaderboard if not e.is_ensemble)
        exhausted = max_runtime_secs is not None and n_completed < plan.n_candidates
        if exhausted:
            message = (
                f"search(project={project_name!r}): time budget of {max_runtime_secs}s expired after "
                f"{n_completed}/{plan.n_candidates} candidates; returning the partial leaderboard"
            )
            logger.warning("[%s] %s", self.name, message)
            warnings.warn(message, SearchBudgetExhausted, stacklevel=2)

        result = SearchResult(
            project_name=project_name,
            leaderboard=leaderboard,
            n_planned=plan.n_candidates,
            n_completed=n_completed,
            elapsed_secs=elapsed,
            budget_exhausted=exhausted,
            predictor=predictor,
        )
        root.add(f"{len(leaderboard)} models ranked by {self.metric}; leader {result.leader.model_id}")
        console.print(root)
        logger.info(
            "[%s] search-end leader=%s %s=%.4f (%.1fs)",
            self.name, result.leader.model_id, self.metric, leaderboard[0].metric_value, elapsed,
        )
        self._last_run = {"call": "search", **result.summary()}
        return result

    # Prediction & persistence ----------------------------------------------------
    def predict(self, handle: ModelHandle, frame: pd.DataFrame) -> np.ndarray:
        return handle.predict(frame)

    def export(self, handle: ModelHandle, directory: str | Path) -> Path:
        """Copy the predictor behind *handle* to *directory* with a manifest."""
        self.session.ensure_started()
        directory = Path(directory)
        if directory.exists() and any(directory.iterdir()):
            raise FileExistsError(f"Export directory is not empty: {directory}")
        directory.mkdir(parents=True, exist_ok=True)
        shutil.copytree(handle.predictor.path, directory / _PREDICTOR_DIR)
        with open(directory / _MANIFEST, "w") as f:
            json.dump(handle.describe(), f, indent=2)
        logger.info("[%s] Exported %s to %s", self.name, handle.model_id, directory)
        return directory

    def load(self, directory: str | Path, model_id: Optional[str] = None) -> ModelHandle:
        """Restore an exported model into this session."""
        self.session.ensure_started()
        directory = Path(directory)
        manifest_path = directory / _MANIFEST
        if not manifest_path.exists():
            raise FileNotFoundError(f"No exported model found at {directory}")
        with open(manifest_path) as f:
            manifest = json.load(f)
        predictor = self.session.predictor_cls.load(str(directory / _PREDICTOR_DIR))
        handle = ModelHandle(
            model_id=model_id or manifest["model_id"],
            algorithm=manifest["algorithm"],
            features=tuple(manifest["features"]),
            target=manifest["target"],
            seed=int(manifest["seed"]),
            metric=manifest["metric"],
            model_name=manifest["model_name"],
            predictor=predictor,
        )
        self.session.register(handle)
        logger.info("[%s] Loaded %s from %s", self.name, handle.model_id, directory)
        return handle


__all__ = ["AutoGluonEngine", "SearchResult"]
