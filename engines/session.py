"""Compute session – lifecycle of the external modelling engine.

The session owns every trained model: predictors are written under its
workspace directory and addressed only through :class:`ModelHandle` objects
registered here.  Lifecycle is ``uninitialized -> started -> stopped``.
"""
from __future__ import annotations

import importlib
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from components.errors import EngineConnectionError, SessionStateError, TrainingError
from components.records import ModelHandle

logger = logging.getLogger(__name__)

UNINITIALIZED = "uninitialized"
STARTED = "started"
STOPPED = "stopped"

_ENGINE_MODULE = "autogluon.tabular"


class ComputeSession:
    """Connection to the AutoGluon engine plus its on-disk model workspace."""

    def __init__(
        self,
        workspace: str | Path | None = None,
        *,
        keep_workspace: bool = False,
        verbosity: int = 0,
    ):
        self._requested_workspace = Path(workspace) if workspace is not None else None
        self.keep_workspace = keep_workspace
        self.verbosity = verbosity
        self.workspace: Optional[Path] = None
        self.state = UNINITIALIZED
        self._engine: Any = None
        self._handles: Dict[str, ModelHandle] = {}

    # Lifecycle ------------------------------------------------------------
    def start(self) -> "ComputeSession":
        if self.state == STARTED:
            logger.warning("[Session] start() called on a running session; ignoring")
            return self
        if self.state == STOPPED:
            raise SessionStateError("A stopped session cannot be restarted; create a new one")

        try:
            self._engine = importlib.import_module(_ENGINE_MODULE)
        except ImportError as exc:
            raise EngineConnectionError(
                f"Could not launch the modelling engine ({_ENGINE_MODULE}): {exc}"
            ) from exc

        try:
            if self._requested_workspace is None:
                self.workspace = Path(tempfile.mkdtemp(prefix="automl-session-"))
            else:
                self._requested_workspace.mkdir(parents=True, exist_ok=True)
                self.workspace = self._requested_workspace
        except OSError as exc:
            raise EngineConnectionError(
                f"Could not create the session workspace {self._requested_workspace}: {exc}"
            ) from exc

        self.state = STARTED
        logger.info("[Session] started – engine=%s workspace=%s", _ENGINE_MODULE, self.workspace)
        return self

    def stop(self) -> None:
        if self.state != STARTED:
            logger.debug("[Session] stop() on a %s session; nothing to release", self.state)
            self.state = STOPPED
            return
        for handle in self._handles.values():
            handle.release()
        released = len(self._handles)
        self._handles.clear()
        if self.workspace is not None and not self.keep_workspace:
            shutil.rmtree(self.workspace, ignore_errors=True)
        self.state = STOPPED
        logger.info("[Session] stopped – released %d model handle(s)", released)

    def __enter__(self) -> "ComputeSession":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def ensure_started(self) -> None:
        if self.state != STARTED:
            raise SessionStateError(f"Session is {self.state}; call start() first")

    # Engine access --------------------------------------------------------
    @property
    def predictor_cls(self):
        """``TabularPredictor`` from the connected engine."""
        self.ensure_started()
        return self._engine.TabularPredictor

    def model_path(self, model_id: str) -> Path:
        self.ensure_started()
        return self.workspace / model_id

    # Model registry -------------------------------------------------------
    def register(self, handle: ModelHandle) -> ModelHandle:
        self.ensure_started()
        if handle.model_id in self._handles:
            raise TrainingError(f"Model id {handle.model_id!r} already exists in this session")
        handle.session = self
        self._handles[handle.model_id] = handle
        logger.debug("[Session] registered model %s (%s)", handle.model_id, handle.algorithm)
        return handle

    def get(self, model_id: str) -> ModelHandle:
        self.ensure_started()
        try:
            return self._handles[model_id]
        except KeyError:
            raise KeyError(f"No model {model_id!r} in this session") from None

    def __contains__(self, model_id: str) -> bool:
        return model_id in self._handles

    @property
    def handles(self) -> List[ModelHandle]:
        return list(self._handles.values())


__all__ = ["ComputeSession", "UNINITIALIZED", "STARTED", "STOPPED"]
