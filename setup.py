#!/usr/bin/env python3
# =============================================================================
#  ir-reachables — setup.py  (legacy compatibility shim)
#
#  All authoritative metadata lives in pyproject.toml.
#  This file only pins the package list, so that `pip install -e .` works on
#  older pip / setuptools that pre-date PEP 660 editable installs.
#
#  For new tooling, prefer:
#      pip install -e ".[dev]"
#      python -m build
#      python -m pytest
# =============================================================================

from __future__ import annotations

from setuptools import setup, find_packages

setup(
    packages=find_packages(
        include=["ir_reachables", "ir_reachables.*"],
        exclude=["tests", "tests.*", "docs", "docs.*"],
    ),
    package_data={"ir_reachables": ["py.typed"]},
    zip_safe=False,
)
