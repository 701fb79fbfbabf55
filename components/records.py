"""Value types passed between the pipeline stages.

Every stage hands the next one an explicit object from this module
(``Dataset`` -> ``Partition`` -> ``ModelHandle`` / ``Leaderboard`` ->
``PerformanceReport`` -> ``Explanation``) instead of sharing global state.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, Mapping, Sequence, Tuple

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype

from components.errors import DatasetError, SearchError, SessionStateError


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------

class Dataset:
    """A fixed-schema table with one designated regression target."""

    def __init__(self, frame: pd.DataFrame, target: str, name: str = "dataset"):
        if frame.empty:
            raise DatasetError(f"Dataset {name!r} has no rows")
        if target not in frame.columns:
            raise DatasetError(
                f"Target column {target!r} not found in dataset {name!r}; columns: {list(frame.columns)}"
            )
        if not is_numeric_dtype(frame[target]):
            raise DatasetError(
                f"Target column {target!r} must be numeric for regression, got dtype {frame[target].dtype}"
            )
        n_missing = int((~np.isfinite(frame[target].to_numpy(dtype=float, na_value=np.nan))).sum())
        if n_missing:
            raise DatasetError(
                f"Target column {target!r} of dataset {name!r} has {n_missing} missing or non-finite values"
            )
        self._frame = frame.copy()
        self.target = target
        self.name = name

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame.copy()

    @property
    def features(self) -> list[str]:
        return [c for c in self._frame.columns if c != self.target]

    @property
    def n_rows(self) -> int:
        return int(self._frame.shape[0])

    @property
    def n_columns(self) -> int:
        return int(self._frame.shape[1])

    def __repr__(self) -> str:
        return f"Dataset(name={self.name!r}, rows={self.n_rows}, columns={self.n_columns}, target={self.target!r})"


@dataclass(frozen=True)
class Partition:
    """Disjoint train/test row subsets of one :class:`Dataset`."""

    train: pd.DataFrame
    test: pd.DataFrame
    ratio: float
    seed: int

    @property
    def sizes(self) -> Tuple[int, int]:
        return len(self.train), len(self.test)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class ModelHandle:
    """Opaque reference to a model owned by a :class:`ComputeSession`.

    ``model_name`` is the engine-side identifier inside ``predictor``; several
    handles may share one predictor (every leaderboard entry of a search does).
    """

    model_id: str
    algorithm: str
    features: Tuple[str, ...]
    target: str
    seed: int
    metric: str
    model_name: str
    predictor: Any = field(repr=False)
    session: Any = field(default=None, repr=False)
    released: bool = field(default=False, repr=False)

    def predict(self, frame: pd.DataFrame) -> np.ndarray:
        """Predict the target for every row of *frame*."""
        if self.released:
            raise SessionStateError(
                f"Model {self.model_id!r} was released when its session stopped"
            )
        missing = [f for f in self.features if f not in frame.columns]
        if missing:
            raise DatasetError(f"predict(model_id={self.model_id!r}): frame lacks features {missing}")
        preds = self.predictor.predict(frame[list(self.features)], model=self.model_name)
        return np.asarray(preds, dtype=float).reshape(-1)

    def release(self) -> None:
        self.released = True

    def describe(self) -> Dict[str, Any]:
        return {
            "model_id": self.model_id,
            "model_name": self.model_name,
            "algorithm": self.algorithm,
            "features": list(self.features),
            "target": self.target,
            "seed": self.seed,
            "metric": self.metric,
        }


@dataclass(frozen=True)
class LeaderboardEntry:
    handle: ModelHandle
    metric_value: float
    fit_time: float = float("nan")
    stack_level: int = 1

    @property
    def model_id(self) -> str:
        return self.handle.model_id

    @property
    def is_ensemble(self) -> bool:
        return self.handle.algorithm == "StackedEnsemble" or self.stack_level > 1


class Leaderboard(Sequence[LeaderboardEntry]):
    """Candidates ordered best-first by ``metric``."""

    def __init__(self, entries: Iterable[LeaderboardEntry], metric: str, greater_is_better: bool):
        self.metric = metric
        self.greater_is_better = greater_is_better
        self._entries: Tuple[LeaderboardEntry, ...] = tuple(
            sorted(entries, key=lambda e: e.metric_value, reverse=greater_is_better)
        )

    def __getitem__(self, index):
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LeaderboardEntry]:
        return iter(self._entries)

    @property
    def leader(self) -> ModelHandle:
        if not self._entries:
            raise SearchError("Leaderboard is empty; no leader available")
        return self._entries[0].handle

    def get(self, model_id: str) -> ModelHandle:
        for entry in self._entries:
            if entry.model_id == model_id:
                return entry.handle
        raise KeyError(model_id)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "model_id": e.model_id,
                    "algorithm": e.handle.algorithm,
                    self.metric: e.metric_value,
                    "fit_time": e.fit_time,
                    "stack_level": e.stack_level,
                }
                for e in self._entries
            ],
            columns=["model_id", "algorithm", self.metric, "fit_time", "stack_level"],
        )


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

class PerformanceReport(Mapping[str, float]):
    """Read-only ``metric -> value`` mapping for one (model, frame) pair."""

    def __init__(self, model_id: str, metrics: Mapping[str, float], n_rows: int):
        self.model_id = model_id
        self.n_rows = n_rows
        self._metrics = {k: float(v) for k, v in metrics.items()}

    def __getitem__(self, key: str) -> float:
        return self._metrics[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._metrics)

    def __len__(self) -> int:
        return len(self._metrics)

    def to_dict(self) -> Dict[str, float]:
        return dict(self._metrics)

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v:.4f}" for k, v in self._metrics.items())
        return f"PerformanceReport(model_id={self.model_id!r}, n_rows={self.n_rows}, {body})"


@dataclass(frozen=True)
class ExplanationRow:
    feature: str
    feature_value: Any
    weight: float
    feature_desc: str


_SORT_KEYS = {
    "weight": lambda r: r.weight,
    "abs_weight": lambda r: abs(r.weight),
    "feature": lambda r: r.feature,
}


@dataclass(frozen=True)
class Explanation:
    """Local linear approximation of one model around one row."""

    model_id: str
    case: Any
    model_prediction: float
    intercept: float
    local_prediction: float
    explanation_fit: float
    rows: Tuple[ExplanationRow, ...]

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[ExplanationRow]:
        return iter(self.rows)

    @property
    def features(self) -> list[str]:
        return [r.feature for r in self.rows]

    @property
    def weight_total(self) -> float:
        """Intercept plus every reported weight."""
        return float(self.intercept + sum(r.weight for r in self.rows))

    def sort_by(self, key: str = "weight", descending: bool = True) -> "Explanation":
        if key not in _SORT_KEYS:
            raise ValueError(f"Unknown sort key {key!r}; choose one of {sorted(_SORT_KEYS)}")
        rows = tuple(sorted(self.rows, key=_SORT_KEYS[key], reverse=descending))
        return replace(self, rows=rows)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "model_id": self.model_id,
                    "case": self.case,
                    "feature": r.feature,
                    "feature_value": r.feature_value,
                    "feature_weight": r.weight,
                    "feature_desc": r.feature_desc,
                    "model_intercept": self.intercept,
                    "model_prediction": self.model_prediction,
                    "local_prediction": self.local_prediction,
                    "explanation_fit": self.explanation_fit,
                }
                for r in self.rows
            ],
            columns=[
                "model_id",
                "case",
                "feature",
                "feature_value",
                "feature_weight",
                "feature_desc",
                "model_intercept",
                "model_prediction",
                "local_prediction",
                "explanation_fit",
            ],
        )


__all__ = [
    "Dataset",
    "Partition",
    "ModelHandle",
    "LeaderboardEntry",
    "Leaderboard",
    "PerformanceReport",
    "ExplanationRow",
    "Explanation",
]
