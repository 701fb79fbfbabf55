"""Pipeline Components Package

This namespace groups the value types passed between pipeline stages, the
error taxonomy, the evaluator, the local surrogate explainer and the
reporting helpers.
"""
from __future__ import annotations
