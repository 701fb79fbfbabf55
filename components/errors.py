"""Exception taxonomy shared by every stage of the workshop pipeline.

Nothing here retries: each error is raised at the failing call and carries
enough context (call name, model id, offending columns) to diagnose it.
"""
from __future__ import annotations


class AutoMLError(Exception):
    """Root of the project's exception hierarchy."""


class ConfigError(AutoMLError, ValueError):
    """An option is unknown or outside its valid range."""


class DatasetError(AutoMLError, ValueError):
    """The dataset or the requested split is unusable."""


class EngineConnectionError(AutoMLError, ConnectionError):
    """The modelling engine could not be reached or launched."""


class SessionStateError(AutoMLError, RuntimeError):
    """A call was made against a session (or handle) in the wrong state."""


class TrainingError(AutoMLError):
    """Schema mismatch or invalid hyper-parameters on a training request."""


class SearchError(AutoMLError):
    """The automated search produced no usable candidate at all."""


class EvaluationError(AutoMLError):
    """The evaluation frame does not match the model schema."""


class ExplainError(AutoMLError):
    """The explained rows do not match the reference schema."""


class SearchBudgetExhausted(UserWarning):
    """The search stopped on its time budget; the leaderboard is partial.

    Emitted through :func:`warnings.warn`, never raised as a failure.
    """


__all__ = [
    "AutoMLError",
    "ConfigError",
    "DatasetError",
    "EngineConnectionError",
    "SessionStateError",
    "TrainingError",
    "SearchError",
    "EvaluationError",
    "ExplainError",
    "SearchBudgetExhausted",
]
