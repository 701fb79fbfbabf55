#!/usr/bin/env python
"""Verify the modelling and explanation libraries are installed.

Run this before the workshop. It prints the installed versions or an error
message for every missing library.
"""
from __future__ import annotations
import importlib
import sys

REQUIRED = ("autogluon.tabular", "lime", "sklearn", "pandas", "matplotlib")


def main() -> None:
    py_ver = f"{sys.version_info.major}.{sys.version_info.minor}"
    if sys.version_info < (3, 9):
        print(f"✗ Python {py_ver} is too old for AutoGluon")
        sys.exit(1)

    failed = False
    for name in REQUIRED:
        try:
            module = importlib.import_module(name)
            print(f"✓ {name} {getattr(module, '__version__', '?')} detected under Python {py_ver}")
        except ImportError as exc:
            print(f"✗ {name} import failed: {exc}")
            failed = True
    if failed:
        sys.exit(1)


if __name__ == "__main__":
    main()
