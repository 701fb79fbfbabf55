"""Base abstraction for the modelling engine wrapper.

Every engine wrapper **must** inherit from `BaseEngine` so the orchestrator
can drive training, search, prediction and persistence through one API.
Models themselves never leave the engine: callers only ever hold
:class:`~components.records.ModelHandle` objects.
"""
from __future__ import annotations

from abc import ABC, abstractmethod


class BaseEngine(ABC):
    """Base class for all modelling engine wrappers."""

    @abstractmethod
    def train(self, features, target, train, *, model_id, seed, algorithm, hyperparameters=None):
        """Train exactly one model and return its handle."""
        raise NotImplementedError

    @abstractmethod
    def search(self, features, target, train, *, max_runtime_secs, max_models, cv_folds, seed, exclude=()):
        """Run a budgeted automated search and return its ranked result."""
        raise NotImplementedError

    @abstractmethod
    def predict(self, handle, frame):
        """Predict targets for *frame* with the model behind *handle*."""
        raise NotImplementedError

    @abstractmethod
    def export(self, handle, directory):
        """Persist the model behind *handle* under *directory*."""
        raise NotImplementedError

    @abstractmethod
    def load(self, directory, model_id=None):
        """Restore a model exported by :meth:`export` and return its handle."""
        raise NotImplementedError

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of the engine."""
        raise NotImplementedError

    @property
    @abstractmethod
    def run_info(self) -> dict:
        """Return information about the engine's last run."""
        raise NotImplementedError
