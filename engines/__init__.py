"""Modelling engine package.

``session`` owns the connection to AutoGluon and the model registry,
``autogluon_wrapper`` drives training, automated search and persistence on
top of it, and ``search_space`` plans the budgeted candidate list.
"""
from __future__ import annotations

from engines.session import ComputeSession
from engines.autogluon_wrapper import AutoGluonEngine, SearchResult

__all__ = ["ComputeSession", "AutoGluonEngine", "SearchResult"]
