"""Candidate planning for the automated search.

AutoGluon trains whatever ``hyperparameters`` mapping it is handed, so the
model-count budget is enforced here: defaults first, then seeded random grid
draws round-robin across families, truncated to ``max_models``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from sklearn.model_selection import ParameterGrid, ParameterSampler

from components.errors import ConfigError
from scripts.config import (
    AUTOGLUON_MODEL_MAP,
    STACKED_ENSEMBLE,
    UNBOUNDED_GRID_DRAWS,
    get_space,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchPlan:
    """Base candidates to hand to the engine, in training order."""

    candidates: Tuple[Tuple[str, dict], ...]
    ensemble: bool

    @property
    def n_candidates(self) -> int:
        return len(self.candidates)

    @property
    def families(self) -> List[str]:
        return sorted({family for family, _ in self.candidates})

    def to_hyperparameters(self) -> Dict[str, List[dict]]:
        """AutoGluon ``hyperparameters`` mapping (``model key -> [configs]``)."""
        hyperparameters: Dict[str, List[dict]] = {}
        for family, config in self.candidates:
            hyperparameters.setdefault(AUTOGLUON_MODEL_MAP[family], []).append(config)
        return hyperparameters


def resolve_families(exclude: Sequence[str] = ()) -> Tuple[List[str], bool]:
    """Return the included base families and whether ensembles are allowed."""
    unknown = [name for name in exclude if name not in AUTOGLUON_MODEL_MAP and name != STACKED_ENSEMBLE]
    if unknown:
        raise ConfigError(f"Unknown algorithm families in exclude: {unknown}")
    families = [family for family in AUTOGLUON_MODEL_MAP if family not in exclude]
    if not families:
        raise ConfigError("Every algorithm family is excluded; nothing to search")
    return families, STACKED_ENSEMBLE not in exclude


def _grid_draws(family: str, grid: dict, n_draws: int, seed: int) -> List[dict]:
    if n_draws <= 0 or not grid:
        return []
    n_iter = min(n_draws, len(ParameterGrid(grid)))
    draws = []
    for i, params in enumerate(ParameterSampler(grid, n_iter=n_iter, random_state=seed), start=1):
        config = dict(params)
        config["ag_args"] = {"name_suffix": f"_r{i}"}
        draws.append(config)
    return draws


def build_search_plan(
    exclude: Sequence[str] = (),
    max_models: Optional[int] = None,
    seed: int = 0,
) -> SearchPlan:
    """Plan at most *max_models* base candidates over the included families."""
    if max_models is not None and max_models < 1:
        raise ConfigError(f"max_models must be >= 1, got {max_models}")
    families, ensemble = resolve_families(exclude)
    defaults = get_space("default")
    grids = get_space("grid")

    candidates: List[Tuple[str, dict]] = [
        (family, config) for family in families for config in defaults.get(family, [{}])
    ]

    if max_models is None:
        per_family = UNBOUNDED_GRID_DRAWS
    else:
        remaining = max_models - len(candidates)
        per_family = -(-remaining // len(families)) if remaining > 0 else 0

    draws = {family: _grid_draws(family, grids.get(family, {}), per_family, seed) for family in families}
    # Round-robin so a small budget still samples every family.
    depth = max((len(d) for d in draws.values()), default=0)
    for i in range(depth):
        for family in families:
            if i < len(draws[family]):
                candidates.append((family, draws[family][i]))

    if max_models is not None:
        candidates = candidates[:max_models]

    plan = SearchPlan(candidates=tuple(candidates), ensemble=ensemble)
    logger.info(
        "[SearchPlan] %d base candidates over %s (ensemble=%s)",
        plan.n_candidates, ", ".join(plan.families), ensemble,
    )
    return plan


__all__ = ["SearchPlan", "resolve_families", "build_search_plan"]
