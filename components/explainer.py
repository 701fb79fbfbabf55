"""Local surrogate explanations for a single model prediction.

A row is explained by perturbing it with values drawn from a reference
table, asking the model for predictions on every perturbation and fitting a
proximity-weighted linear model on "same bin as the row" indicators:

* numeric features are quartile-binned on the reference data
  (``lime.discretize.QuartileDiscretizer``); a perturbed value is drawn
  inside a bin sampled with the reference bin frequencies,
* non-numeric features are drawn from their reference value frequencies,
* the weighted fit and the feature selection are
  ``lime.lime_base.LimeBase.explain_instance_with_data``.

Because the explained row is all ones in indicator space, the surrogate's
intercept plus its reported weights equals its local prediction exactly.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from lime.discretize import QuartileDiscretizer
from lime.lime_base import LimeBase
from pandas.api.types import is_bool_dtype, is_integer_dtype, is_numeric_dtype
from sklearn.metrics import pairwise_distances
from sklearn.utils import check_random_state

from components.errors import ExplainError
from components.records import Explanation, ExplanationRow, ModelHandle
from scripts.config import (
    FEATURE_SELECT_STRATEGIES,
    FEATURE_SELECT_STRATEGY,
    MAX_EXPLAINED_FEATURES,
    PERMUTATION_COUNT,
    RANDOM_STATE,
)

logger = logging.getLogger(__name__)


def _frequencies(values: np.ndarray):
    uniques, counts = np.unique(values, return_counts=True)
    return uniques, counts / counts.sum()


class LocalSurrogateExplainer:
    """Explain individual predictions of *model* relative to *reference*."""

    def __init__(
        self,
        reference: pd.DataFrame,
        model: ModelHandle,
        *,
        seed: int = RANDOM_STATE,
        kernel_width: Optional[float] = None,
    ):
        missing = [f for f in model.features if f not in reference.columns]
        if missing:
            raise ExplainError(
                f"Reference data lacks features used by model {model.model_id!r}: {missing}"
            )
        if reference.empty:
            raise ExplainError("Reference data has no rows")

        self.model = model
        self.features: List[str] = list(model.features)
        self.reference = reference[self.features].copy()
        self.seed = seed
        self.kernel_width = kernel_width or float(np.sqrt(len(self.features)) * 0.75)
        self._rng = check_random_state(seed)
        self._base = LimeBase(self._kernel, verbose=False, random_state=seed)

        self.numeric = [
            f for f in self.features
            if is_numeric_dtype(self.reference[f]) and not is_bool_dtype(self.reference[f])
        ]
        self.categorical = [f for f in self.features if f not in self.numeric]

        self._discretizer = None
        self._bin_freqs = []
        if self.numeric:
            data = self.reference[self.numeric].to_numpy(dtype=float)
            if np.isnan(data).any():
                raise ExplainError("Reference data has missing values in numeric features")
            self._discretizer = QuartileDiscretizer(data, [], self.numeric, random_state=seed)
            bins = self._discretizer.discretize(data).astype(int)
            self._bin_freqs = [_frequencies(bins[:, j]) for j in range(len(self.numeric))]
        self._value_freqs = {
            f: _frequencies(self.reference[f].astype(object).to_numpy()) for f in self.categorical
        }
        logger.debug(
            "[Explainer] %s: %d numeric / %d categorical features, kernel width %.3f",
            model.model_id, len(self.numeric), len(self.categorical), self.kernel_width,
        )

    def _kernel(self, distances):
        return np.sqrt(np.exp(-(distances ** 2) / self.kernel_width ** 2))

    # Public API ------------------------------------------------------------
    def explain(
        self,
        rows: Union[pd.DataFrame, pd.Series],
        *,
        n_permutations: int = PERMUTATION_COUNT,
        feature_select: str = FEATURE_SELECT_STRATEGY,
        n_features: int = MAX_EXPLAINED_FEATURES,
        features: Optional[Sequence[str]] = None,
    ) -> List[Explanation]:
        """Return one :class:`Explanation` per row of *rows*.

        ``features`` restricts the surrogate to a subset of the reference
        schema; naming anything outside it is an :class:`ExplainError`.
        """
        if isinstance(rows, pd.Series):
            rows = rows.to_frame().T
        if n_permutations < 2:
            raise ExplainError(f"n_permutations must be >= 2, got {n_permutations}")
        if n_features < 1:
            raise ExplainError(f"n_features must be >= 1, got {n_features}")
        if feature_select not in FEATURE_SELECT_STRATEGIES:
            raise ExplainError(
                f"Unknown feature_select {feature_select!r}; choose one of {list(FEATURE_SELECT_STRATEGIES)}"
            )
        missing = [f for f in self.features if f not in rows.columns]
        if missing:
            raise ExplainError(
                f"Rows to explain do not match the reference schema; missing features {missing}"
            )

        if features is None:
            columns = list(range(len(self.features)))
        else:
            unknown = [f for f in features if f not in self.features]
            if unknown:
                raise ExplainError(f"Requested features not in the reference schema: {unknown}")
            columns = [self.features.index(f) for f in dict.fromkeys(features)]
        if feature_select == "none" and len(columns) > n_features:
            raise ExplainError(
                f"feature_select='none' keeps all {len(columns)} features but n_features={n_features}"
            )

        explanations = []
        for case, row in rows.iterrows():
            explanations.append(
                self._explain_row(case, row, n_permutations, feature_select, min(n_features, len(columns)), columns)
            )
        return explanations

    # Internals ------------------------------------------------------------
    def _perturb(self, row: pd.Series, n: int):
        """Return (indicator matrix, perturbed frame, instance bins); row 0 is *row*."""
        binary = np.ones((n, len(self.features)))
        columns = {}
        instance_bins = None

        if self.numeric:
            try:
                values = np.array([row[f] for f in self.numeric], dtype=float)
            except (TypeError, ValueError) as exc:
                raise ExplainError(f"Row {row.name!r} has non-numeric values in numeric features: {exc}") from exc
            if np.isnan(values).any():
                raise ExplainError(f"Row {row.name!r} has missing values in numeric features")
            instance_bins = self._discretizer.discretize(values).astype(int)
            sampled = np.empty((n, len(self.numeric)), dtype=int)
            for j, (bins, probs) in enumerate(self._bin_freqs):
                sampled[:, j] = self._rng.choice(bins, size=n, replace=True, p=probs)
            sampled[0] = instance_bins
            drawn = self._discretizer.undiscretize(sampled.astype(float))
            drawn[0] = values
            for j, f in enumerate(self.numeric):
                if is_integer_dtype(self.reference[f]):
                    drawn[:, j] = np.round(drawn[:, j])
                    columns[f] = drawn[:, j].astype(self.reference[f].dtype)
                else:
                    columns[f] = drawn[:, j]
            # Indicators follow the values the model scores, not the sampled bins.
            scored_bins = self._discretizer.discretize(drawn).astype(int)
            for j, f in enumerate(self.numeric):
                binary[:, self.features.index(f)] = scored_bins[:, j] == instance_bins[j]

        for f in self.categorical:
            uniques, probs = self._value_freqs[f]
            drawn = self._rng.choice(uniques, size=n, replace=True, p=probs)
            drawn[0] = row[f]
            binary[:, self.features.index(f)] = drawn == row[f]
            columns[f] = pd.Series(drawn).astype(self.reference[f].dtype)

        frame = pd.DataFrame(columns)[self.features]
        return binary, frame, instance_bins

    def _describe(self, feature: str, value, instance_bins) -> str:
        if feature in self.numeric:
            j = self.numeric.index(feature)
            return self._discretizer.names[j][instance_bins[j]]
        return f"{feature} = {value}"

    def _explain_row(self, case, row, n_permutations, feature_select, n_features, columns) -> Explanation:
        binary, perturbed, instance_bins = self._perturb(row, n_permutations)
        predictions = self.model.predict(perturbed)
        local = binary[:, columns]
        distances = pairwise_distances(local, local[0].reshape(1, -1), metric="euclidean").ravel()

        intercept, weights, score, local_pred = self._base.explain_instance_with_data(
            local,
            predictions.reshape(-1, 1),
            distances,
            0,
            n_features,
            feature_selection=feature_select,
        )

        rows = []
        for position, weight in weights:
            feature = self.features[columns[position]]
            rows.append(
                ExplanationRow(
                    feature=feature,
                    feature_value=row[feature],
                    weight=float(weight),
                    feature_desc=self._describe(feature, row[feature], instance_bins),
                )
            )
        explanation = Explanation(
            model_id=self.model.model_id,
            case=case,
            model_prediction=float(predictions[0]),
            intercept=float(intercept),
            local_prediction=float(np.ravel(local_pred)[0]),
            explanation_fit=float(score),
            rows=tuple(rows),
        )
        logger.info(
            "[Explainer] case %s: prediction=%.4f local=%.4f fit=%.3f, %d features",
            case, explanation.model_prediction, explanation.local_prediction, score, len(rows),
        )
        return explanation


def explain(
    reference: pd.DataFrame,
    model: ModelHandle,
    rows: Union[pd.DataFrame, pd.Series],
    *,
    n_permutations: int = PERMUTATION_COUNT,
    feature_select: str = FEATURE_SELECT_STRATEGY,
    n_features: int = MAX_EXPLAINED_FEATURES,
    seed: int = RANDOM_STATE,
) -> List[Explanation]:
    """One-shot helper: build an explainer on *reference* and explain *rows*."""
    explainer = LocalSurrogateExplainer(reference, model, seed=seed)
    return explainer.explain(
        rows,
        n_permutations=n_permutations,
        feature_select=feature_select,
        n_features=n_features,
    )


__all__ = ["LocalSurrogateExplainer", "explain"]
