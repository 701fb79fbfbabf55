from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from sklearn.metrics import (
    mean_absolute_error,
    mean_squared_error,
    mean_squared_log_error,
    r2_score,
)

from components.errors import EvaluationError
from components.records import ModelHandle, PerformanceReport

logger = logging.getLogger(__name__)


def _rmse(y_true, y_pred):
    """Root Mean Squared Error helper – always returns positive value."""
    return np.sqrt(mean_squared_error(y_true, y_pred))


def _rmsle(y_true, y_pred):
    """RMSLE is undefined for negative values; report NaN rather than fail."""
    if np.any(np.asarray(y_true) < 0) or np.any(np.asarray(y_pred) < 0):
        return float("nan")
    return np.sqrt(mean_squared_log_error(y_true, y_pred))


def model_performance(handle: ModelHandle, frame: pd.DataFrame) -> PerformanceReport:
    """Score *handle* against *frame* without touching the model.

    *frame* must carry every model feature and the target column.
    """
    missing = [c for c in list(handle.features) + [handle.target] if c not in frame.columns]
    if missing:
        raise EvaluationError(
            f"model_performance(model_id={handle.model_id!r}): frame lacks columns {missing}"
        )
    if frame.empty:
        raise EvaluationError(f"model_performance(model_id={handle.model_id!r}): frame is empty")

    y_true = frame[handle.target].to_numpy(dtype=float, na_value=np.nan)
    n_missing = int((~np.isfinite(y_true)).sum())
    if n_missing:
        raise EvaluationError(
            f"model_performance(model_id={handle.model_id!r}): target {handle.target!r} has "
            f"{n_missing} missing or non-finite values"
        )
    y_pred = handle.predict(frame)
    mse = mean_squared_error(y_true, y_pred)
    metrics = {
        "mse": mse,
        "rmse": _rmse(y_true, y_pred),
        "mae": mean_absolute_error(y_true, y_pred),
        "rmsle": _rmsle(y_true, y_pred),
        # Gaussian deviance reduces to the MSE.
        "mean_residual_deviance": mse,
        "r2": r2_score(y_true, y_pred) if len(y_true) > 1 else float("nan"),
    }
    report = PerformanceReport(handle.model_id, metrics, n_rows=len(frame))
    logger.info(
        "[Evaluator] %s: RMSE=%.4f, MAE=%.4f, R²=%.4f on %d rows",
        handle.model_id, report["rmse"], report["mae"], report["r2"], report.n_rows,
    )
    return report


__all__ = ["model_performance"]
